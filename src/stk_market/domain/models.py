"""Bet / Outcome aggregate.

A Bet owns its Outcomes; both are mutated only through the methods below.
Status changes go through ``_transition`` which checks the explicit table.
"""

from dataclasses import dataclass, field
from datetime import datetime

from src.stk_common.datetime_utils import ensure_utc, utc_now
from src.stk_common.enums import BetCategory, BetStatus
from src.stk_common.errors import (
    BetNotAcceptingStakesError,
    BetTimingError,
    InvalidStateTransitionError,
    OutcomeNotInBetError,
    ValidationError,
)
from src.stk_common.id_generator import generate_id
from src.stk_common.money import Money

MIN_OUTCOMES = 2

BET_TRANSITIONS: dict[BetStatus, frozenset[BetStatus]] = {
    BetStatus.DRAFT: frozenset({BetStatus.OPEN, BetStatus.CANCELLED}),
    BetStatus.OPEN: frozenset({BetStatus.CLOSED, BetStatus.CANCELLED}),
    BetStatus.CLOSED: frozenset({BetStatus.RESOLVED, BetStatus.CANCELLED}),
    BetStatus.RESOLVED: frozenset({BetStatus.PAID}),
    BetStatus.PAID: frozenset(),
    BetStatus.CANCELLED: frozenset(),
}

SETTLED_STATUSES = frozenset({BetStatus.RESOLVED, BetStatus.PAID})


@dataclass
class Outcome:
    id: str
    bet_id: str
    title: str
    total_staked: Money = field(default_factory=Money.zero)
    stake_count: int = 0
    created_at: datetime = field(default_factory=utc_now)

    def record_stake(self, amount: Money) -> None:
        if not amount.is_positive():
            raise ValidationError("Stake amount must be positive")
        self.total_staked = self.total_staked + amount
        self.stake_count += 1


@dataclass
class Bet:
    id: str
    title: str
    description: str
    category: BetCategory
    closing_time: datetime
    resolution_time: datetime
    outcomes: list[Outcome]
    status: BetStatus = BetStatus.DRAFT
    total_staked: Money = field(default_factory=Money.zero)
    participant_count: int = 0
    resolved_outcome_id: str | None = None
    resolved_at: datetime | None = None
    resolution_notes: str | None = None
    resolution_idempotency_key: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime | None = None

    @classmethod
    def create(
        cls,
        title: str,
        description: str,
        category: BetCategory | str,
        closing_time: datetime,
        resolution_time: datetime,
        outcome_titles: list[str],
        now: datetime | None = None,
    ) -> "Bet":
        if not title or not title.strip():
            raise ValidationError("Bet title must not be empty")
        if not description or not description.strip():
            raise ValidationError("Bet description must not be empty")
        try:
            category = BetCategory(category)
        except ValueError as exc:
            raise ValidationError(f"Unknown bet category: {category}") from exc
        closing_time = ensure_utc(closing_time)
        resolution_time = ensure_utc(resolution_time)
        if resolution_time <= closing_time:
            raise ValidationError("resolution_time must be after closing_time")

        titles = [t.strip() for t in outcome_titles if t and t.strip()]
        if len(titles) != len(outcome_titles):
            raise ValidationError("Outcome titles must not be empty")
        if len(titles) < MIN_OUTCOMES:
            raise ValidationError(f"A bet needs at least {MIN_OUTCOMES} outcomes")
        if len({t.casefold() for t in titles}) != len(titles):
            raise ValidationError("Outcome titles must be distinct")

        created_at = now or utc_now()
        bet_id = generate_id()
        outcomes = [
            Outcome(id=generate_id(), bet_id=bet_id, title=t, created_at=created_at)
            for t in titles
        ]
        return cls(
            id=bet_id,
            title=title.strip(),
            description=description.strip(),
            category=category,
            closing_time=closing_time,
            resolution_time=resolution_time,
            outcomes=outcomes,
            created_at=created_at,
        )

    # --- queries ---

    def outcome(self, outcome_id: str) -> Outcome | None:
        for o in self.outcomes:
            if o.id == outcome_id:
                return o
        return None

    def is_open_at(self, now: datetime) -> bool:
        return self.status == BetStatus.OPEN and now < self.closing_time

    @property
    def is_open(self) -> bool:
        return self.is_open_at(utc_now())

    @property
    def is_settled(self) -> bool:
        return self.status in SETTLED_STATUSES

    # --- lifecycle ---

    def open(self, now: datetime | None = None) -> None:
        self._transition(BetStatus.OPEN, now)

    def close(self, now: datetime | None = None) -> None:
        now = now or utc_now()
        self._require(BetStatus.CLOSED)
        if now < self.closing_time:
            raise BetTimingError(
                f"Bet {self.id} cannot close before {self.closing_time.isoformat()}"
            )
        self._transition(BetStatus.CLOSED, now)

    def resolve(
        self,
        winning_outcome_id: str,
        notes: str | None = None,
        idempotency_key: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Closed -> Resolved. Returns False for a replay of the same resolution."""
        if (
            self.is_settled
            and self.resolved_outcome_id == winning_outcome_id
            and self.resolution_idempotency_key == idempotency_key
        ):
            return False
        now = now or utc_now()
        self._require(BetStatus.RESOLVED)
        if now < self.resolution_time:
            raise BetTimingError(
                f"Bet {self.id} cannot resolve before {self.resolution_time.isoformat()}"
            )
        if self.outcome(winning_outcome_id) is None:
            raise OutcomeNotInBetError(winning_outcome_id, self.id)
        self.resolved_outcome_id = winning_outcome_id
        self.resolution_notes = notes
        self.resolution_idempotency_key = idempotency_key
        self.resolved_at = now
        self._transition(BetStatus.RESOLVED, now)
        return True

    def cancel(self, now: datetime | None = None) -> None:
        self._transition(BetStatus.CANCELLED, now)

    def mark_paid(self, now: datetime | None = None) -> None:
        self._transition(BetStatus.PAID, now)

    def add_stake(self, amount: Money, now: datetime | None = None) -> None:
        now = now or utc_now()
        if not self.is_open_at(now):
            raise BetNotAcceptingStakesError(self.id, self.status.value)
        if not amount.is_positive():
            raise ValidationError("Stake amount must be positive")
        self.total_staked = self.total_staked + amount
        # counts accepted stakes, not distinct users
        self.participant_count += 1
        self.updated_at = now

    def _require(self, target: BetStatus) -> None:
        if target not in BET_TRANSITIONS[self.status]:
            raise InvalidStateTransitionError(
                f"Bet {self.id} cannot move from {self.status.value} to {target.value}"
            )

    def _transition(self, target: BetStatus, now: datetime | None) -> None:
        self._require(target)
        self.status = target
        self.updated_at = now or utc_now()
