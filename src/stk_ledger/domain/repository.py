"""Repository Protocol: dependency inversion for testability.

Ledger storage is append-only: there is no update or delete.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_ledger.domain.models import LedgerEntry


class LedgerRepositoryProtocol(Protocol):
    async def append(self, db: AsyncSession, entry: LedgerEntry) -> LedgerEntry: ...

    async def get_by_idempotency_key(
        self, db: AsyncSession, idempotency_key: str
    ) -> LedgerEntry | None: ...

    async def list_for_wallet(
        self, db: AsyncSession, wallet_id: str
    ) -> list[LedgerEntry]: ...

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_seq: int | None,
        limit: int,
        kind: str | None,
    ) -> list[LedgerEntry]: ...
