"""StakeRepository: concrete implementation of StakeRepositoryProtocol.

All queries use raw text() SQL (no ORM).
stakes.idempotency_key is UNIQUE (alembic 005); a duplicate insert surfaces
as IntegrityError and is translated by `atomic(db)`.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_common.enums import StakeStatus
from src.stk_common.money import Money
from src.stk_stake.domain.models import Stake

_COLUMNS = """
    id, user_id, bet_id, outcome_id, status, stake_amount,
    potential_payout, actual_payout, idempotency_key, created_at, resolved_at
"""

_GET_SQL = text(f"SELECT {_COLUMNS} FROM stakes WHERE id = :stake_id")

_GET_BY_KEY_SQL = text(
    f"SELECT {_COLUMNS} FROM stakes WHERE idempotency_key = :idempotency_key"
)

_LIST_FOR_BET_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM stakes
    WHERE bet_id = :bet_id
    ORDER BY created_at ASC, id ASC
""")

_LIST_FOR_USER_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM stakes
    WHERE user_id = :user_id
      AND (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
      AND (
          CAST(:cursor_ts AS TIMESTAMPTZ) IS NULL
          OR created_at < CAST(:cursor_ts AS TIMESTAMPTZ)
          OR (
              created_at = CAST(:cursor_ts AS TIMESTAMPTZ)
              AND id < CAST(:cursor_id AS TEXT)
          )
      )
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

_INSERT_SQL = text("""
    INSERT INTO stakes
        (id, user_id, bet_id, outcome_id, status, stake_amount,
         potential_payout, actual_payout, idempotency_key, created_at, resolved_at)
    VALUES
        (:id, :user_id, :bet_id, :outcome_id, :status, :stake_amount,
         :potential_payout, :actual_payout, :idempotency_key, :created_at, :resolved_at)
""")

_UPDATE_SQL = text("""
    UPDATE stakes
    SET status = :status,
        actual_payout = :actual_payout,
        resolved_at = :resolved_at
    WHERE id = :id
""")


def _cents(value: Money | None) -> int | None:
    return value.cents if value is not None else None


def _money(value: int | None) -> Money | None:
    return Money.from_cents(value) if value is not None else None


def _row_to_stake(row: Any) -> Stake:
    return Stake(
        id=row.id,
        user_id=row.user_id,
        bet_id=row.bet_id,
        outcome_id=row.outcome_id,
        status=StakeStatus(row.status),
        stake_amount=Money.from_cents(row.stake_amount),
        potential_payout=_money(row.potential_payout),
        actual_payout=_money(row.actual_payout),
        idempotency_key=row.idempotency_key,
        created_at=row.created_at,
        resolved_at=row.resolved_at,
    )


class StakeRepository:
    async def get_stake(self, db: AsyncSession, stake_id: str) -> Stake | None:
        result = await db.execute(_GET_SQL, {"stake_id": stake_id})
        row = result.fetchone()
        return _row_to_stake(row) if row else None

    async def get_by_idempotency_key(
        self, db: AsyncSession, idempotency_key: str
    ) -> Stake | None:
        result = await db.execute(_GET_BY_KEY_SQL, {"idempotency_key": idempotency_key})
        row = result.fetchone()
        return _row_to_stake(row) if row else None

    async def add_stake(self, db: AsyncSession, stake: Stake) -> Stake:
        await db.execute(
            _INSERT_SQL,
            {
                "id": stake.id,
                "user_id": stake.user_id,
                "bet_id": stake.bet_id,
                "outcome_id": stake.outcome_id,
                "status": stake.status.value,
                "stake_amount": stake.stake_amount.cents,
                "potential_payout": _cents(stake.potential_payout),
                "actual_payout": _cents(stake.actual_payout),
                "idempotency_key": stake.idempotency_key,
                "created_at": stake.created_at,
                "resolved_at": stake.resolved_at,
            },
        )
        return stake

    async def save_stake(self, db: AsyncSession, stake: Stake) -> None:
        await db.execute(
            _UPDATE_SQL,
            {
                "id": stake.id,
                "status": stake.status.value,
                "actual_payout": _cents(stake.actual_payout),
                "resolved_at": stake.resolved_at,
            },
        )

    async def list_for_bet(self, db: AsyncSession, bet_id: str) -> list[Stake]:
        result = await db.execute(_LIST_FOR_BET_SQL, {"bet_id": bet_id})
        return [_row_to_stake(row) for row in result.fetchall()]

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        status: str | None,
        cursor_created_at: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Stake]:
        result = await db.execute(
            _LIST_FOR_USER_SQL,
            {
                "user_id": user_id,
                "status": status,
                "cursor_ts": cursor_created_at,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_stake(row) for row in result.fetchall()]
