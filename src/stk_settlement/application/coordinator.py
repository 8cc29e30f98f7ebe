"""SettlementCoordinator: every balance-moving operation goes through here.

Each operation follows the same shape:
  1. acquire locks (wallet before bet; resolution before both)
  2. inside one `atomic(db)` unit: load, validate, mutate aggregates in
     memory, append ledger entries, write everything back
  3. release locks once the commit or rollback has finished

All validation happens before the first aggregate is mutated, so an error
leaves nothing behind. Idempotency keys make every operation safe to retry:
a repeated call with the same inputs returns the stored result, the same key
with different inputs is an IdempotencyConflictError.
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.stk_common.database import atomic
from src.stk_common.datetime_utils import Clock, utc_now
from src.stk_common.enums import BetStatus, LedgerEntryKind, SettlementResult
from src.stk_common.errors import (
    BetNotAcceptingStakesError,
    BetNotFoundError,
    ConcurrencyError,
    DuplicateKeyError,
    IdempotencyConflictError,
    InsufficientFundsError,
    OutcomeNotFoundError,
    StakeAmountOutOfRangeError,
    ValidationError,
    WalletNotFoundError,
)
from src.stk_common.money import Money
from src.stk_ledger.domain.models import PRINCIPAL_KEY, LedgerEntry
from src.stk_ledger.domain.repository import LedgerRepositoryProtocol
from src.stk_ledger.infrastructure.persistence import LedgerRepository
from src.stk_market.domain.models import Bet
from src.stk_market.domain.repository import BetRepositoryProtocol
from src.stk_market.infrastructure.persistence import BetRepository
from src.stk_settlement.domain.locks import (
    LockServiceProtocol,
    bet_lock_key,
    hold_locks,
    resolution_lock_key,
    wallet_lock_key,
)
from src.stk_settlement.domain.payout import (
    ParimutuelPayoutPolicy,
    PayoutPolicyProtocol,
    SettlementPlan,
)
from src.stk_stake.domain.models import Stake
from src.stk_stake.domain.repository import StakeRepositoryProtocol
from src.stk_stake.infrastructure.persistence import StakeRepository
from src.stk_wallet.domain.models import Wallet
from src.stk_wallet.domain.repository import WalletRepositoryProtocol
from src.stk_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)


def _require_key(idempotency_key: str) -> None:
    if not idempotency_key or not idempotency_key.strip():
        raise ValidationError("idempotency_key is required")


class SettlementCoordinator:
    def __init__(
        self,
        lock_service: LockServiceProtocol,
        wallet_repo: WalletRepositoryProtocol | None = None,
        ledger_repo: LedgerRepositoryProtocol | None = None,
        bet_repo: BetRepositoryProtocol | None = None,
        stake_repo: StakeRepositoryProtocol | None = None,
        payout_policy: PayoutPolicyProtocol | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._locks = lock_service
        self._wallets: WalletRepositoryProtocol = wallet_repo or WalletRepository()
        self._ledger: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()
        self._bets: BetRepositoryProtocol = bet_repo or BetRepository()
        self._stakes: StakeRepositoryProtocol = stake_repo or StakeRepository()
        self._payout: PayoutPolicyProtocol = payout_policy or ParimutuelPayoutPolicy()
        self._clock = clock

    @staticmethod
    def _timeout(timeout_seconds: float | None) -> float:
        if timeout_seconds is None:
            return settings.LOCK_WAIT_TIMEOUT_SECONDS
        return timeout_seconds

    async def _load_wallet(self, db: AsyncSession, user_id: str) -> Wallet:
        wallet = await self._wallets.get_wallet_by_user_id(db, user_id, for_update=True)
        if wallet is None:
            raise WalletNotFoundError(user_id)
        return wallet

    async def _load_bet(self, db: AsyncSession, bet_id: str) -> Bet:
        bet = await self._bets.get_bet(db, bet_id, for_update=True)
        if bet is None:
            raise BetNotFoundError(bet_id)
        return bet

    # ------------------------------------------------------------------
    # Funds in / out
    # ------------------------------------------------------------------

    async def deposit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: Decimal | int | str | Money,
        idempotency_key: str,
        timeout_seconds: float | None = None,
    ) -> Wallet:
        return await self._move_funds(
            db, user_id, Money.of(amount), idempotency_key,
            LedgerEntryKind.DEPOSIT, timeout_seconds,
        )

    async def withdraw(
        self,
        db: AsyncSession,
        user_id: str,
        amount: Decimal | int | str | Money,
        idempotency_key: str,
        timeout_seconds: float | None = None,
    ) -> Wallet:
        return await self._move_funds(
            db, user_id, Money.of(amount), idempotency_key,
            LedgerEntryKind.WITHDRAWAL, timeout_seconds,
        )

    async def _move_funds(
        self,
        db: AsyncSession,
        user_id: str,
        amount: Money,
        idempotency_key: str,
        kind: LedgerEntryKind,
        timeout_seconds: float | None,
    ) -> Wallet:
        _require_key(idempotency_key)
        if not amount.is_positive():
            raise ValidationError(f"{kind.value.lower()} amount must be positive")
        entry_key = f"{kind.value.lower()}:{idempotency_key}"
        locks = [(wallet_lock_key(user_id), settings.WALLET_LOCK_TTL_SECONDS)]

        async with hold_locks(self._locks, locks, self._timeout(timeout_seconds)):
            async with atomic(db):
                wallet = await self._load_wallet(db, user_id)
                existing = await self._ledger.get_by_idempotency_key(db, entry_key)
                if existing is not None:
                    if existing.user_id != user_id or existing.amount != amount:
                        raise IdempotencyConflictError(idempotency_key)
                    logger.info("%s replay: user=%s key=%s", kind.value, user_id, idempotency_key)
                    return wallet

                now = self._clock()
                description = "Deposit" if kind is LedgerEntryKind.DEPOSIT else "Withdrawal"
                entry = LedgerEntry.create(
                    wallet.id, user_id, kind, amount, description,
                    idempotency_key=entry_key, now=now,
                )
                wallet.apply_entry(entry)
                await self._ledger.append(db, entry)
                wallet = await self._wallets.save_wallet(db, wallet)

        logger.info(
            "%s: user=%s amount=%s available=%s",
            kind.value, user_id, amount, wallet.available_balance,
        )
        return wallet

    # ------------------------------------------------------------------
    # Stake placement
    # ------------------------------------------------------------------

    def _check_stake_range(self, amount: Money) -> None:
        minimum = Money.of(settings.MIN_STAKE_AMOUNT)
        maximum = Money.of(settings.MAX_STAKE_AMOUNT)
        if amount < minimum or amount > maximum:
            raise StakeAmountOutOfRangeError(amount, minimum, maximum)

    async def place_stake(
        self,
        db: AsyncSession,
        user_id: str,
        bet_id: str,
        outcome_id: str,
        amount: Decimal | int | str | Money,
        idempotency_key: str,
        timeout_seconds: float | None = None,
    ) -> Stake:
        """Lock funds on one outcome. Returns the (possibly pre-existing) Stake."""
        amount = Money.of(amount)
        _require_key(idempotency_key)
        locks = [
            (wallet_lock_key(user_id), settings.WALLET_LOCK_TTL_SECONDS),
            (bet_lock_key(bet_id), settings.BET_LOCK_TTL_SECONDS),
        ]
        async with hold_locks(self._locks, locks, self._timeout(timeout_seconds)):
            try:
                return await self._place_stake_locked(
                    db, user_id, bet_id, outcome_id, amount, idempotency_key
                )
            except DuplicateKeyError:
                # Same key committed by a request we did not serialise with
                # (another user's wallet lock). Treat as replay or conflict.
                existing = await self._stakes.get_by_idempotency_key(db, idempotency_key)
                if existing is None:
                    raise
                if not existing.matches(user_id, bet_id, outcome_id, amount):
                    raise IdempotencyConflictError(idempotency_key) from None
                return existing

    async def _place_stake_locked(
        self,
        db: AsyncSession,
        user_id: str,
        bet_id: str,
        outcome_id: str,
        amount: Money,
        idempotency_key: str,
    ) -> Stake:
        async with atomic(db):
            existing = await self._stakes.get_by_idempotency_key(db, idempotency_key)
            if existing is not None:
                if not existing.matches(user_id, bet_id, outcome_id, amount):
                    raise IdempotencyConflictError(idempotency_key)
                logger.info("Stake replay: key=%s stake=%s", idempotency_key, existing.id)
                return existing

            self._check_stake_range(amount)
            wallet = await self._load_wallet(db, user_id)
            bet = await self._load_bet(db, bet_id)
            outcome = bet.outcome(outcome_id)
            if outcome is None:
                raise OutcomeNotFoundError(outcome_id)

            now = self._clock()
            if not bet.is_open_at(now):
                raise BetNotAcceptingStakesError(bet.id, bet.status.value)
            if not wallet.can_afford(amount):
                raise InsufficientFundsError(required=amount, available=wallet.available_balance)

            pools = {o.id: o.total_staked for o in bet.outcomes}
            stake = Stake.create(
                user_id, bet_id, outcome_id, amount, idempotency_key,
                potential_payout=self._payout.estimate(pools, outcome_id, amount),
                now=now,
            )
            entry = LedgerEntry.create(
                wallet.id, user_id, LedgerEntryKind.STAKE_LOCKED, amount,
                f"Stake on '{outcome.title}' in '{bet.title}'",
                bet_id=bet.id, stake_id=stake.id,
                idempotency_key=f"stake-lock:{idempotency_key}", now=now,
            )

            wallet.record_stake_locked(amount, now)
            bet.add_stake(amount, now)
            outcome.record_stake(amount)

            await self._stakes.add_stake(db, stake)
            await self._ledger.append(db, entry)
            await self._wallets.save_wallet(db, wallet)
            await self._bets.save_bet(db, bet)

        logger.info(
            "Stake placed: stake=%s user=%s bet=%s outcome=%s amount=%s",
            stake.id, user_id, bet_id, outcome_id, amount,
        )
        return stake

    # ------------------------------------------------------------------
    # Bet-wide settlement
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _hold_bet_settlement_locks(
        self, db: AsyncSession, bet_id: str, timeout_seconds: float | None
    ) -> AsyncIterator[set[str]]:
        """resolution:{bet} -> wallet:{u} for every staker (sorted) -> bet:{bet}.

        Yields the set of user ids whose wallets are held.
        """
        timeout = self._timeout(timeout_seconds)
        deadline = time.monotonic() + timeout
        resolution = [(resolution_lock_key(bet_id), settings.RESOLUTION_LOCK_TTL_SECONDS)]
        async with hold_locks(self._locks, resolution, timeout):
            async with atomic(db):
                stakers = sorted({s.user_id for s in await self._stakes.list_for_bet(db, bet_id)})
            locks = [
                (wallet_lock_key(u), settings.RESOLUTION_LOCK_TTL_SECONDS) for u in stakers
            ]
            locks.append((bet_lock_key(bet_id), settings.RESOLUTION_LOCK_TTL_SECONDS))
            remaining = max(0.0, deadline - time.monotonic())
            async with hold_locks(self._locks, locks, remaining):
                yield set(stakers)

    async def _load_settlement_state(
        self, db: AsyncSession, bet_id: str, held_users: set[str]
    ) -> tuple[Bet, list[Stake], dict[str, Wallet]]:
        bet = await self._load_bet(db, bet_id)
        stakes = await self._stakes.list_for_bet(db, bet_id)
        users = {s.user_id for s in stakes}
        unlocked = users - held_users
        if unlocked:
            raise ConcurrencyError(
                f"Stakes on bet {bet_id} changed while acquiring locks; retry"
            )
        wallets = await self._wallets.get_wallets_by_user_ids(db, sorted(users), for_update=True)
        for u in users:
            if u not in wallets:
                raise WalletNotFoundError(u)
        return bet, stakes, wallets

    async def _write_settlement(
        self,
        db: AsyncSession,
        bet: Bet,
        stakes: list[Stake],
        entries: list[LedgerEntry],
        wallets: dict[str, Wallet],
    ) -> None:
        await self._bets.save_bet(db, bet)
        for stake in stakes:
            await self._stakes.save_stake(db, stake)
        for entry in entries:
            await self._ledger.append(db, entry)
        for user_id in sorted(wallets):
            await self._wallets.save_wallet(db, wallets[user_id])

    @staticmethod
    def _settlement_entry(
        wallet: Wallet,
        bet: Bet,
        stake: Stake,
        kind: LedgerEntryKind,
        amount: Money,
        key_prefix: str,
        description: str,
        now: datetime,
        metadata: dict[str, str] | None = None,
    ) -> LedgerEntry:
        return LedgerEntry.create(
            wallet.id, wallet.user_id, kind, amount, description,
            bet_id=bet.id, stake_id=stake.id,
            idempotency_key=f"{key_prefix}:{stake.id}", metadata=metadata, now=now,
        )

    def _apply_plan(
        self,
        bet: Bet,
        plan: SettlementPlan,
        stakes: dict[str, Stake],
        wallets: dict[str, Wallet],
        now: datetime,
    ) -> tuple[list[Stake], list[LedgerEntry]]:
        """Mutate stakes and wallets per the plan; return what must be written."""
        touched: list[Stake] = []
        entries: list[LedgerEntry] = []
        for item in plan.settlements:
            stake = stakes[item.stake_id]
            wallet = wallets[item.user_id]
            if item.result is SettlementResult.WON:
                stake.mark_as_won(item.net_payout, now)
                entries.append(self._settlement_entry(
                    wallet, bet, stake, LedgerEntryKind.WIN_PAYOUT, item.gross_payout,
                    "payout", f"Winning payout for '{bet.title}'", now,
                    metadata={PRINCIPAL_KEY: str(item.principal.cents)},
                ))
                wallet.record_win_payout(item.gross_payout, item.principal, now)
                if item.fee.is_positive():
                    entries.append(self._settlement_entry(
                        wallet, bet, stake, LedgerEntryKind.PLATFORM_FEE, item.fee,
                        "fee", f"Platform fee on winnings for '{bet.title}'", now,
                    ))
                    wallet.record_platform_fee(item.fee, now)
            elif item.result is SettlementResult.LOST:
                stake.mark_as_lost(now)
                entries.append(self._settlement_entry(
                    wallet, bet, stake, LedgerEntryKind.STAKE_FORFEIT, item.principal,
                    "forfeit", f"Losing stake on '{bet.title}'", now,
                ))
                wallet.record_stake_forfeit(item.principal, now)
            else:
                stake.cancel(now)
                entries.append(self._settlement_entry(
                    wallet, bet, stake, LedgerEntryKind.STAKE_REFUND, item.principal,
                    "refund", f"Refund for '{bet.title}'", now,
                ))
                wallet.record_stake_refund(item.principal, now)
            touched.append(stake)
        return touched, entries

    async def resolve_bet(
        self,
        db: AsyncSession,
        bet_id: str,
        winning_outcome_id: str,
        idempotency_key: str,
        notes: str | None = None,
        timeout_seconds: float | None = None,
    ) -> Bet:
        """Closed -> Resolved, settling every active stake in one commit."""
        _require_key(idempotency_key)
        async with self._hold_bet_settlement_locks(db, bet_id, timeout_seconds) as held:
            async with atomic(db):
                bet, stakes, wallets = await self._load_settlement_state(db, bet_id, held)
                now = self._clock()
                if not bet.resolve(winning_outcome_id, notes, idempotency_key, now):
                    logger.info("Resolve replay: bet=%s key=%s", bet_id, idempotency_key)
                    return bet

                plan = self._payout.settle(stakes, winning_outcome_id)
                touched, entries = self._apply_plan(
                    bet, plan, {s.id: s for s in stakes}, wallets, now
                )
                await self._write_settlement(db, bet, touched, entries, wallets)

        logger.info(
            "Bet resolved: bet=%s outcome=%s stakes=%d winning_pool=%s losing_pool=%s "
            "fees=%s dust=%s",
            bet_id, winning_outcome_id, len(plan.settlements), plan.winning_pool,
            plan.losing_pool, plan.fees, plan.rounding_dust,
        )
        return bet

    async def cancel_bet(
        self,
        db: AsyncSession,
        bet_id: str,
        timeout_seconds: float | None = None,
    ) -> Bet:
        """Draft/Open/Closed -> Cancelled, refunding every active stake."""
        async with self._hold_bet_settlement_locks(db, bet_id, timeout_seconds) as held:
            async with atomic(db):
                bet, stakes, wallets = await self._load_settlement_state(db, bet_id, held)
                if bet.status == BetStatus.CANCELLED:
                    return bet
                now = self._clock()
                bet.cancel(now)
                refunds = SettlementPlan.refund_all(stakes)
                touched, entries = self._apply_plan(
                    bet, refunds, {s.id: s for s in stakes}, wallets, now
                )
                await self._write_settlement(db, bet, touched, entries, wallets)

        logger.info("Bet cancelled: bet=%s refunded=%d", bet_id, len(touched))
        return bet

    # ------------------------------------------------------------------
    # Simple lifecycle moves (bet lock only)
    # ------------------------------------------------------------------

    _LIFECYCLE = {
        BetStatus.OPEN: Bet.open,
        BetStatus.CLOSED: Bet.close,
        BetStatus.PAID: Bet.mark_paid,
    }

    async def _move_bet(
        self,
        db: AsyncSession,
        bet_id: str,
        target: BetStatus,
        timeout_seconds: float | None,
    ) -> Bet:
        locks = [(bet_lock_key(bet_id), settings.BET_LOCK_TTL_SECONDS)]
        async with hold_locks(self._locks, locks, self._timeout(timeout_seconds)):
            async with atomic(db):
                bet = await self._load_bet(db, bet_id)
                if target == BetStatus.PAID and bet.status == BetStatus.PAID:
                    return bet
                self._LIFECYCLE[target](bet, self._clock())
                await self._bets.save_bet(db, bet)
        logger.info("Bet %s: bet=%s", target.value.lower(), bet_id)
        return bet

    async def open_bet(
        self, db: AsyncSession, bet_id: str, timeout_seconds: float | None = None
    ) -> Bet:
        return await self._move_bet(db, bet_id, BetStatus.OPEN, timeout_seconds)

    async def close_bet(
        self, db: AsyncSession, bet_id: str, timeout_seconds: float | None = None
    ) -> Bet:
        return await self._move_bet(db, bet_id, BetStatus.CLOSED, timeout_seconds)

    async def mark_bet_paid(
        self, db: AsyncSession, bet_id: str, timeout_seconds: float | None = None
    ) -> Bet:
        """Resolved -> Paid. Calling it again on a Paid bet is a no-op."""
        return await self._move_bet(db, bet_id, BetStatus.PAID, timeout_seconds)
