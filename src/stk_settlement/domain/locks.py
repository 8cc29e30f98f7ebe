"""Lock service boundary and the ordered multi-key acquisition helper.

Lock keys:
  wallet:{user_id}      any read-then-write of a wallet's balances
  bet:{bet_id}          bet status and outcome totals
  resolution:{bet_id}   serialises resolvers of one bet

Whenever several are needed they are acquired in the order given by the
caller (resolution, wallets sorted by user id, bet) and released in reverse.
"""

import logging
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Protocol

from src.stk_common.errors import LockTimeoutError

logger = logging.getLogger(__name__)


def wallet_lock_key(user_id: str) -> str:
    return f"wallet:{user_id}"


def bet_lock_key(bet_id: str) -> str:
    return f"bet:{bet_id}"


def resolution_lock_key(bet_id: str) -> str:
    return f"resolution:{bet_id}"


class LockServiceProtocol(Protocol):
    async def acquire(
        self, key: str, ttl_seconds: float, timeout_seconds: float
    ) -> str | None:
        """Return an ownership token, or None if not acquired within timeout."""
        ...

    async def release(self, key: str, token: str) -> None:
        """Release only if ``token`` still owns ``key``."""
        ...


@asynccontextmanager
async def hold_locks(
    service: LockServiceProtocol,
    locks: Sequence[tuple[str, float]],
    timeout_seconds: float,
) -> AsyncIterator[list[str]]:
    """Acquire (key, ttl) pairs in order under one overall deadline.

    Raises LockTimeoutError naming the first key that could not be taken;
    anything already held is released before raising.
    """
    deadline = time.monotonic() + timeout_seconds
    held: list[tuple[str, str]] = []
    try:
        for key, ttl in locks:
            if any(k == key for k, _ in held):
                continue
            remaining = max(0.0, deadline - time.monotonic())
            token = await service.acquire(key, ttl, remaining)
            if token is None:
                logger.warning("Lock timeout: key=%s waited=%.3fs", key, timeout_seconds)
                raise LockTimeoutError(key)
            held.append((key, token))
        yield [k for k, _ in held]
    finally:
        for key, token in reversed(held):
            try:
                await service.release(key, token)
            except Exception:
                # the TTL frees the key; the caller's outcome is already decided
                logger.exception("Failed to release lock %s", key)
