"""Pydantic schemas for the bets API."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.stk_common.enums import BetCategory
from src.stk_market.domain.models import Bet, Outcome


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateBetRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    category: BetCategory
    closing_time: datetime
    resolution_time: datetime
    outcomes: list[str] = Field(..., min_length=2, description="Outcome titles")


class ResolveBetRequest(BaseModel):
    winning_outcome_id: str = Field(..., min_length=1)
    idempotency_key: str = Field(..., min_length=1, max_length=128)
    notes: str | None = Field(None, max_length=2000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class OutcomeOut(BaseModel):
    id: str
    title: str
    total_staked: str
    total_staked_display: str
    stake_count: int

    @classmethod
    def from_domain(cls, o: Outcome) -> "OutcomeOut":
        return cls(
            id=o.id,
            title=o.title,
            total_staked=str(o.total_staked),
            total_staked_display=o.total_staked.to_display(),
            stake_count=o.stake_count,
        )


class BetListItem(BaseModel):
    id: str
    title: str
    category: str
    status: str
    closing_time: str
    total_staked: str
    total_staked_display: str
    participant_count: int
    outcomes: list[OutcomeOut]

    @classmethod
    def from_domain(cls, b: Bet) -> "BetListItem":
        return cls(
            id=b.id,
            title=b.title,
            category=b.category.value,
            status=b.status.value,
            closing_time=b.closing_time.isoformat(),
            total_staked=str(b.total_staked),
            total_staked_display=b.total_staked.to_display(),
            participant_count=b.participant_count,
            outcomes=[OutcomeOut.from_domain(o) for o in b.outcomes],
        )


class BetListResponse(BaseModel):
    items: list[BetListItem]
    next_cursor: str | None
    has_more: bool


class BetDetail(BetListItem):
    description: str
    resolution_time: str
    resolved_outcome_id: str | None
    resolved_at: str | None
    resolution_notes: str | None
    created_at: str
    updated_at: str | None

    @classmethod
    def from_domain(cls, b: Bet) -> "BetDetail":
        base = BetListItem.from_domain(b).model_dump()
        return cls(
            **base,
            description=b.description,
            resolution_time=b.resolution_time.isoformat(),
            resolved_outcome_id=b.resolved_outcome_id,
            resolved_at=_iso(b.resolved_at),
            resolution_notes=b.resolution_notes,
            created_at=b.created_at.isoformat(),
            updated_at=_iso(b.updated_at),
        )


class BetVerificationResponse(BaseModel):
    bet_id: str
    stakes: int
    consistent: bool
    violations: list[str]
