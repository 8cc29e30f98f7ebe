"""BetRepository: concrete implementation of BetRepositoryProtocol.

All queries use raw text() SQL (no ORM).
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
Outcomes are loaded with their bet; the outcome set never changes after creation.
"""

from collections import defaultdict
from datetime import datetime
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_common.enums import BetCategory, BetStatus
from src.stk_common.money import Money
from src.stk_market.domain.models import Bet, Outcome

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_BET_COLUMNS = """
    id, title, description, category, status,
    closing_time, resolution_time,
    total_staked, participant_count,
    resolved_outcome_id, resolved_at, resolution_notes, resolution_idempotency_key,
    created_at, updated_at
"""

_GET_BET_SQL = text(f"SELECT {_BET_COLUMNS} FROM bets WHERE id = :bet_id")

_GET_BET_FOR_UPDATE_SQL = text(
    f"SELECT {_BET_COLUMNS} FROM bets WHERE id = :bet_id FOR UPDATE"
)

_LIST_BETS_SQL = text(f"""
    SELECT {_BET_COLUMNS}
    FROM bets
    WHERE
        (CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT))
        AND (CAST(:category AS TEXT) IS NULL OR category = CAST(:category AS TEXT))
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

_OUTCOMES_FOR_BETS_SQL = text("""
    SELECT id, bet_id, title, total_staked, stake_count, created_at
    FROM outcomes
    WHERE bet_id IN :bet_ids
    ORDER BY bet_id, created_at, id
""").bindparams(bindparam("bet_ids", expanding=True))

_INSERT_BET_SQL = text("""
    INSERT INTO bets
        (id, title, description, category, status, closing_time, resolution_time,
         total_staked, participant_count, created_at)
    VALUES
        (:id, :title, :description, :category, :status, :closing_time, :resolution_time,
         :total_staked, :participant_count, :created_at)
""")

_INSERT_OUTCOME_SQL = text("""
    INSERT INTO outcomes (id, bet_id, title, total_staked, stake_count, created_at)
    VALUES (:id, :bet_id, :title, :total_staked, :stake_count, :created_at)
""")

_UPDATE_BET_SQL = text("""
    UPDATE bets
    SET status = :status,
        total_staked = :total_staked,
        participant_count = :participant_count,
        resolved_outcome_id = :resolved_outcome_id,
        resolved_at = :resolved_at,
        resolution_notes = :resolution_notes,
        resolution_idempotency_key = :resolution_idempotency_key,
        updated_at = :updated_at
    WHERE id = :id
""")

_UPDATE_OUTCOME_SQL = text("""
    UPDATE outcomes
    SET total_staked = :total_staked,
        stake_count = :stake_count
    WHERE id = :id AND bet_id = :bet_id
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_outcome(row: Any) -> Outcome:
    return Outcome(
        id=row.id,
        bet_id=row.bet_id,
        title=row.title,
        total_staked=Money.from_cents(row.total_staked),
        stake_count=row.stake_count,
        created_at=row.created_at,
    )


def _row_to_bet(row: Any, outcomes: list[Outcome]) -> Bet:
    return Bet(
        id=row.id,
        title=row.title,
        description=row.description,
        category=BetCategory(row.category),
        status=BetStatus(row.status),
        closing_time=row.closing_time,
        resolution_time=row.resolution_time,
        outcomes=outcomes,
        total_staked=Money.from_cents(row.total_staked),
        participant_count=row.participant_count,
        resolved_outcome_id=row.resolved_outcome_id,
        resolved_at=row.resolved_at,
        resolution_notes=row.resolution_notes,
        resolution_idempotency_key=row.resolution_idempotency_key,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class BetRepository:
    async def get_bet(
        self, db: AsyncSession, bet_id: str, for_update: bool = False
    ) -> Bet | None:
        sql = _GET_BET_FOR_UPDATE_SQL if for_update else _GET_BET_SQL
        result = await db.execute(sql, {"bet_id": bet_id})
        row = result.fetchone()
        if row is None:
            return None
        outcomes = await self._load_outcomes(db, [bet_id])
        return _row_to_bet(row, outcomes.get(bet_id, []))

    async def create_bet(self, db: AsyncSession, bet: Bet) -> Bet:
        await db.execute(
            _INSERT_BET_SQL,
            {
                "id": bet.id,
                "title": bet.title,
                "description": bet.description,
                "category": bet.category.value,
                "status": bet.status.value,
                "closing_time": bet.closing_time,
                "resolution_time": bet.resolution_time,
                "total_staked": bet.total_staked.cents,
                "participant_count": bet.participant_count,
                "created_at": bet.created_at,
            },
        )
        for o in bet.outcomes:
            await db.execute(
                _INSERT_OUTCOME_SQL,
                {
                    "id": o.id,
                    "bet_id": bet.id,
                    "title": o.title,
                    "total_staked": o.total_staked.cents,
                    "stake_count": o.stake_count,
                    "created_at": o.created_at,
                },
            )
        return bet

    async def save_bet(self, db: AsyncSession, bet: Bet) -> None:
        await db.execute(
            _UPDATE_BET_SQL,
            {
                "id": bet.id,
                "status": bet.status.value,
                "total_staked": bet.total_staked.cents,
                "participant_count": bet.participant_count,
                "resolved_outcome_id": bet.resolved_outcome_id,
                "resolved_at": bet.resolved_at,
                "resolution_notes": bet.resolution_notes,
                "resolution_idempotency_key": bet.resolution_idempotency_key,
                "updated_at": bet.updated_at,
            },
        )
        for o in bet.outcomes:
            await db.execute(
                _UPDATE_OUTCOME_SQL,
                {
                    "id": o.id,
                    "bet_id": bet.id,
                    "total_staked": o.total_staked.cents,
                    "stake_count": o.stake_count,
                },
            )

    async def list_bets(
        self,
        db: AsyncSession,
        status: str | None,
        category: str | None,
        cursor_created_at: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Bet]:
        result = await db.execute(
            _LIST_BETS_SQL,
            {
                "status": status,
                "category": category,
                "cursor_ts": cursor_created_at,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        rows = result.fetchall()
        if not rows:
            return []
        outcomes = await self._load_outcomes(db, [row.id for row in rows])
        return [_row_to_bet(row, outcomes.get(row.id, [])) for row in rows]

    async def _load_outcomes(
        self, db: AsyncSession, bet_ids: list[str]
    ) -> dict[str, list[Outcome]]:
        result = await db.execute(_OUTCOMES_FOR_BETS_SQL, {"bet_ids": bet_ids})
        grouped: dict[str, list[Outcome]] = defaultdict(list)
        for row in result.fetchall():
            grouped[row.bet_id].append(_row_to_outcome(row))
        return grouped
