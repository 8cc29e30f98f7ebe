"""Rebuild wallet balances from the ledger and compare with the cached row."""

import logging
from collections.abc import Iterable

from src.stk_common.errors import AppError
from src.stk_ledger.domain.models import LedgerEntry
from src.stk_wallet.domain.models import Wallet

logger = logging.getLogger(__name__)


def replay(wallet: Wallet, entries: Iterable[LedgerEntry]) -> Wallet:
    """Fold entries (in ledger order) over an empty copy of ``wallet``."""
    scratch = Wallet(id=wallet.id, user_id=wallet.user_id, created_at=wallet.created_at)
    for entry in entries:
        scratch.apply_entry(entry)
    return scratch


def verify_wallet_matches_ledger(
    wallet: Wallet, entries: list[LedgerEntry]
) -> list[str]:
    """Check the cached balances against the ledger. Returns violation strings.

    INV-W1: available_balance == replayed available
    INV-W2: locked_balance == replayed locked
    INV-W3: entries are in non-decreasing created_at order
    """
    violations: list[str] = []
    for prev, cur in zip(entries, entries[1:]):
        if cur.created_at < prev.created_at:
            violations.append(
                f"INV-W3 violated: wallet={wallet.id} entry {cur.id} created before {prev.id}"
            )

    try:
        derived = replay(wallet, entries)
    except AppError as exc:
        violations.append(
            f"INV-W0 violated: wallet={wallet.id} ledger does not replay: {exc.message}"
        )
    else:
        if derived.available_balance != wallet.available_balance:
            violations.append(
                f"INV-W1 violated: wallet={wallet.id} available={wallet.available_balance} "
                f"!= ledger {derived.available_balance}"
            )
        if derived.locked_balance != wallet.locked_balance:
            violations.append(
                f"INV-W2 violated: wallet={wallet.id} locked={wallet.locked_balance} "
                f"!= ledger {derived.locked_balance}"
            )

    for msg in violations:
        logger.error(msg)
    if not violations:
        logger.debug("Wallet invariants OK: wallet=%s entries=%d", wallet.id, len(entries))
    return violations
