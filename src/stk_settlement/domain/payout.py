"""Payout policy: how a resolved bet's pool is split.

Pari-mutuel, integer cents:
  winning_pool = sum of active stakes on the winning outcome
  losing_pool  = sum of the other active stakes
  winner:  winnings = floor(stake * losing_pool / winning_pool)
           fee      = ceil(winnings * fee_bps / 10000)
           credited WIN_PAYOUT(stake + winnings), debited PLATFORM_FEE(fee)
  loser:   principal forfeit (STAKE_FORFEIT)
  nobody on the winning outcome: every stake is refunded

Rounding dust (losing_pool - sum(winnings)) plus fees is platform revenue.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from src.stk_common.enums import SettlementResult
from src.stk_common.money import Money, calculate_fee
from src.stk_stake.domain.models import Stake

DEFAULT_FEE_BPS = 500


@dataclass(frozen=True)
class StakeSettlement:
    stake_id: str
    user_id: str
    result: SettlementResult
    principal: Money
    gross_payout: Money = field(default_factory=Money.zero)
    fee: Money = field(default_factory=Money.zero)

    @property
    def net_payout(self) -> Money:
        return self.gross_payout - self.fee


@dataclass(frozen=True)
class SettlementPlan:
    settlements: list[StakeSettlement]
    winning_pool: Money
    losing_pool: Money
    fees: Money
    rounding_dust: Money

    @property
    def platform_revenue(self) -> Money:
        return self.fees + self.rounding_dust

    @classmethod
    def refund_all(cls, stakes: Sequence[Stake]) -> "SettlementPlan":
        """Every active stake gets its principal back; nothing is earned."""
        active = [s for s in stakes if s.is_active]
        return cls(
            settlements=[
                StakeSettlement(s.id, s.user_id, SettlementResult.REFUNDED, s.stake_amount)
                for s in active
            ],
            winning_pool=Money.zero(),
            losing_pool=Money.total(s.stake_amount for s in active),
            fees=Money.zero(),
            rounding_dust=Money.zero(),
        )


class PayoutPolicyProtocol(Protocol):
    def estimate(self, bet_outcomes: dict[str, Money], outcome_id: str, amount: Money) -> Money:
        """Net payout if the outcome won with the pools as they stand plus this stake."""
        ...

    def settle(self, stakes: Sequence[Stake], winning_outcome_id: str) -> SettlementPlan: ...


class ParimutuelPayoutPolicy:
    def __init__(self, fee_bps: int = DEFAULT_FEE_BPS) -> None:
        self._fee_bps = fee_bps

    @property
    def fee_bps(self) -> int:
        return self._fee_bps

    def _winner_amounts(
        self, amount: Money, winning_pool: Money, losing_pool: Money
    ) -> tuple[Money, Money]:
        winnings = losing_pool.prorate(amount, winning_pool)
        return amount + winnings, calculate_fee(winnings, self._fee_bps)

    def estimate(self, bet_outcomes: dict[str, Money], outcome_id: str, amount: Money) -> Money:
        winning_pool = bet_outcomes.get(outcome_id, Money.zero()) + amount
        losing_pool = Money.total(m for oid, m in bet_outcomes.items() if oid != outcome_id)
        gross, fee = self._winner_amounts(amount, winning_pool, losing_pool)
        return gross - fee

    def settle(self, stakes: Sequence[Stake], winning_outcome_id: str) -> SettlementPlan:
        active = [s for s in stakes if s.is_active]
        winners = [s for s in active if s.outcome_id == winning_outcome_id]
        losers = [s for s in active if s.outcome_id != winning_outcome_id]
        winning_pool = Money.total(s.stake_amount for s in winners)
        losing_pool = Money.total(s.stake_amount for s in losers)

        if not winners:
            return SettlementPlan.refund_all(active)

        settlements: list[StakeSettlement] = []
        distributed = Money.zero()
        fees = Money.zero()
        for s in winners:
            gross, fee = self._winner_amounts(s.stake_amount, winning_pool, losing_pool)
            distributed = distributed + (gross - s.stake_amount)
            fees = fees + fee
            settlements.append(
                StakeSettlement(s.id, s.user_id, SettlementResult.WON, s.stake_amount, gross, fee)
            )
        for s in losers:
            settlements.append(
                StakeSettlement(s.id, s.user_id, SettlementResult.LOST, s.stake_amount)
            )
        return SettlementPlan(
            settlements=settlements,
            winning_pool=winning_pool,
            losing_pool=losing_pool,
            fees=fees,
            rounding_dust=losing_pool - distributed,
        )
