"""Stake: one user's position on one outcome of one bet.

Active -> Won | Lost | Cancelled, each terminal. A repeated identical
transition is a no-op (returns False); anything else after settlement is an
InvalidStateTransition.
"""

from dataclasses import dataclass, field
from datetime import datetime

from src.stk_common.datetime_utils import utc_now
from src.stk_common.enums import StakeStatus
from src.stk_common.errors import StakeAlreadySettledError, ValidationError
from src.stk_common.id_generator import generate_id
from src.stk_common.money import Money


@dataclass
class Stake:
    id: str
    user_id: str
    bet_id: str
    outcome_id: str
    stake_amount: Money
    idempotency_key: str
    status: StakeStatus = StakeStatus.ACTIVE
    potential_payout: Money | None = None
    actual_payout: Money | None = None
    created_at: datetime = field(default_factory=utc_now)
    resolved_at: datetime | None = None

    @classmethod
    def create(
        cls,
        user_id: str,
        bet_id: str,
        outcome_id: str,
        amount: Money,
        idempotency_key: str,
        potential_payout: Money | None = None,
        now: datetime | None = None,
    ) -> "Stake":
        for name, value in (("user_id", user_id), ("bet_id", bet_id), ("outcome_id", outcome_id)):
            if not value:
                raise ValidationError(f"Stake requires {name}")
        if not isinstance(amount, Money) or not amount.is_positive():
            raise ValidationError("Stake amount must be positive")
        if not idempotency_key or not idempotency_key.strip():
            raise ValidationError("Stake requires an idempotency key")
        return cls(
            id=generate_id(),
            user_id=user_id,
            bet_id=bet_id,
            outcome_id=outcome_id,
            stake_amount=amount,
            idempotency_key=idempotency_key,
            potential_payout=potential_payout,
            created_at=now or utc_now(),
        )

    @property
    def is_active(self) -> bool:
        return self.status == StakeStatus.ACTIVE

    def matches(self, user_id: str, bet_id: str, outcome_id: str, amount: Money) -> bool:
        """True when a placement request carries the same inputs as this stake."""
        return (
            self.user_id == user_id
            and self.bet_id == bet_id
            and self.outcome_id == outcome_id
            and self.stake_amount == amount
        )

    def mark_as_won(self, payout: Money, now: datetime | None = None) -> bool:
        if self.status == StakeStatus.WON and self.actual_payout == payout:
            return False
        self._require_active(StakeStatus.WON)
        self.actual_payout = payout
        self._settle(StakeStatus.WON, now)
        return True

    def mark_as_lost(self, now: datetime | None = None) -> bool:
        if self.status == StakeStatus.LOST:
            return False
        self._require_active(StakeStatus.LOST)
        self.actual_payout = Money.zero()
        self._settle(StakeStatus.LOST, now)
        return True

    def cancel(self, now: datetime | None = None) -> bool:
        if self.status == StakeStatus.CANCELLED:
            return False
        self._require_active(StakeStatus.CANCELLED)
        self._settle(StakeStatus.CANCELLED, now)
        return True

    def _require_active(self, target: StakeStatus) -> None:
        if self.status != StakeStatus.ACTIVE:
            raise StakeAlreadySettledError(self.id, self.status.value, target.value)

    def _settle(self, status: StakeStatus, now: datetime | None) -> None:
        self.status = status
        self.resolved_at = now or utc_now()
