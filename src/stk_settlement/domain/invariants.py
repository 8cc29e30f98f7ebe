"""Bet invariant verification (pure, no DB access)."""

import logging
from collections.abc import Sequence

from src.stk_common.enums import BetStatus, StakeStatus
from src.stk_common.money import Money
from src.stk_market.domain.models import Bet
from src.stk_stake.domain.models import Stake

logger = logging.getLogger(__name__)


def verify_bet_totals(bet: Bet, stakes: Sequence[Stake]) -> list[str]:
    """Check a bet's cached totals. Returns violation strings.

    INV-B1: bet.total_staked == sum(outcome.total_staked)
    INV-B2: outcome.total_staked == sum of stakes placed on it
    INV-B3: outcome.stake_count == number of stakes placed on it
    INV-B4: bet.participant_count == number of stakes on the bet
    INV-B5: no ACTIVE stake remains on a settled or cancelled bet
    """
    violations: list[str] = []

    outcome_sum = Money.total(o.total_staked for o in bet.outcomes)
    if bet.total_staked != outcome_sum:
        violations.append(
            f"INV-B1 violated: bet={bet.id} total_staked={bet.total_staked} "
            f"!= outcomes {outcome_sum}"
        )

    for o in bet.outcomes:
        on_outcome = [s for s in stakes if s.outcome_id == o.id]
        placed = Money.total(s.stake_amount for s in on_outcome)
        if o.total_staked != placed:
            violations.append(
                f"INV-B2 violated: outcome={o.id} total_staked={o.total_staked} != stakes {placed}"
            )
        if o.stake_count != len(on_outcome):
            violations.append(
                f"INV-B3 violated: outcome={o.id} stake_count={o.stake_count} "
                f"!= stakes {len(on_outcome)}"
            )

    if bet.participant_count != len(stakes):
        violations.append(
            f"INV-B4 violated: bet={bet.id} participant_count={bet.participant_count} "
            f"!= stakes {len(stakes)}"
        )

    if bet.is_settled or bet.status == BetStatus.CANCELLED:
        active = [s.id for s in stakes if s.status == StakeStatus.ACTIVE]
        if active:
            violations.append(
                f"INV-B5 violated: bet={bet.id} status={bet.status.value} has active stakes {active}"
            )

    for msg in violations:
        logger.error(msg)
    return violations
