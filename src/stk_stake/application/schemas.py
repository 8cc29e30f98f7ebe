"""Pydantic schemas for the stakes API."""

from decimal import Decimal

from pydantic import BaseModel, Field

from src.stk_common.money import MAX_AMOUNT, Money
from src.stk_stake.domain.models import Stake


def _amount(m: Money | None) -> str | None:
    return str(m) if m is not None else None


class PlaceStakeRequest(BaseModel):
    bet_id: str = Field(..., min_length=1)
    outcome_id: str = Field(..., min_length=1)
    amount: Decimal = Field(
        ..., gt=0, le=MAX_AMOUNT, description="Stake in currency units, 2 decimals"
    )
    idempotency_key: str = Field(..., min_length=1, max_length=128)


class StakeResponse(BaseModel):
    id: str
    bet_id: str
    outcome_id: str
    status: str
    stake_amount: str
    stake_amount_display: str
    potential_payout: str | None
    actual_payout: str | None
    created_at: str
    resolved_at: str | None

    @classmethod
    def from_domain(cls, s: Stake) -> "StakeResponse":
        return cls(
            id=s.id,
            bet_id=s.bet_id,
            outcome_id=s.outcome_id,
            status=s.status.value,
            stake_amount=str(s.stake_amount),
            stake_amount_display=s.stake_amount.to_display(),
            potential_payout=_amount(s.potential_payout),
            actual_payout=_amount(s.actual_payout),
            created_at=s.created_at.isoformat(),
            resolved_at=s.resolved_at.isoformat() if s.resolved_at else None,
        )


class StakeListResponse(BaseModel):
    items: list[StakeResponse]
    next_cursor: str | None
    has_more: bool
