"""LedgerRepository: concrete implementation of LedgerRepositoryProtocol.

INSERT and SELECT only. The ledger_entries table also carries a trigger that
rejects UPDATE/DELETE (alembic 003), so the append-only rule holds even for
writers that bypass this class.

Transaction ownership: the CALLER commits via `atomic(db)`.
"""

import dataclasses
import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_common.enums import LedgerEntryKind
from src.stk_common.errors import InternalError
from src.stk_common.money import Money
from src.stk_ledger.domain.models import LedgerEntry

_COLUMNS = """
    seq, id, wallet_id, user_id, kind, amount, description,
    bet_id, stake_id, idempotency_key, metadata, created_at
"""

_INSERT_ENTRY_SQL = text("""
    INSERT INTO ledger_entries
        (id, wallet_id, user_id, kind, amount, description,
         bet_id, stake_id, idempotency_key, metadata, created_at)
    VALUES
        (:id, :wallet_id, :user_id, :kind, :amount, :description,
         :bet_id, :stake_id, :idempotency_key, CAST(:metadata AS JSONB), :created_at)
    RETURNING seq
""")

_GET_BY_KEY_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM ledger_entries
    WHERE idempotency_key = :idempotency_key
""")

_LIST_FOR_WALLET_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM ledger_entries
    WHERE wallet_id = :wallet_id
    ORDER BY seq ASC
""")

_LIST_FOR_USER_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM ledger_entries
    WHERE user_id = :user_id
      AND (CAST(:cursor_seq AS BIGINT) IS NULL OR seq < CAST(:cursor_seq AS BIGINT))
      AND (CAST(:kind AS TEXT) IS NULL OR kind = CAST(:kind AS TEXT))
    ORDER BY seq DESC
    LIMIT :limit
""")


def _row_to_entry(row: Any) -> LedgerEntry:
    metadata = row.metadata
    if isinstance(metadata, str):
        metadata = json.loads(metadata)
    return LedgerEntry(
        id=row.id,
        wallet_id=row.wallet_id,
        user_id=row.user_id,
        kind=LedgerEntryKind(row.kind),
        amount=Money.from_cents(row.amount),
        description=row.description,
        created_at=row.created_at,
        bet_id=row.bet_id,
        stake_id=row.stake_id,
        idempotency_key=row.idempotency_key,
        metadata=metadata,
        seq=row.seq,
    )


class LedgerRepository:
    async def append(self, db: AsyncSession, entry: LedgerEntry) -> LedgerEntry:
        result = await db.execute(
            _INSERT_ENTRY_SQL,
            {
                "id": entry.id,
                "wallet_id": entry.wallet_id,
                "user_id": entry.user_id,
                "kind": entry.kind.value,
                "amount": entry.amount.cents,
                "description": entry.description,
                "bet_id": entry.bet_id,
                "stake_id": entry.stake_id,
                "idempotency_key": entry.idempotency_key,
                "metadata": json.dumps(entry.metadata) if entry.metadata else None,
                "created_at": entry.created_at,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no rows")
        return dataclasses.replace(entry, seq=row.seq)

    async def get_by_idempotency_key(
        self, db: AsyncSession, idempotency_key: str
    ) -> LedgerEntry | None:
        result = await db.execute(_GET_BY_KEY_SQL, {"idempotency_key": idempotency_key})
        row = result.fetchone()
        return _row_to_entry(row) if row else None

    async def list_for_wallet(
        self, db: AsyncSession, wallet_id: str
    ) -> list[LedgerEntry]:
        result = await db.execute(_LIST_FOR_WALLET_SQL, {"wallet_id": wallet_id})
        return [_row_to_entry(row) for row in result.fetchall()]

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_seq: int | None,
        limit: int,
        kind: str | None,
    ) -> list[LedgerEntry]:
        result = await db.execute(
            _LIST_FOR_USER_SQL,
            {
                "user_id": user_id,
                "cursor_seq": cursor_seq,
                "kind": kind,
                "limit": limit,
            },
        )
        return [_row_to_entry(row) for row in result.fetchall()]
