"""Tests for bet-wide settlement: resolve, cancel, lifecycle moves."""

import pytest

from src.stk_common.enums import BetStatus, LedgerEntryKind, StakeStatus
from src.stk_common.errors import (
    BetNotFoundError,
    BetTimingError,
    ConcurrencyError,
    InvalidStateTransitionError,
    LockTimeoutError,
    OutcomeNotInBetError,
)
from src.stk_common.money import Money
from src.stk_ledger.domain.models import PRINCIPAL_KEY
from src.stk_market.domain.models import Bet
from src.stk_settlement.application.coordinator import SettlementCoordinator
from src.stk_settlement.domain.invariants import verify_bet_totals
from src.stk_settlement.infrastructure.locks import LocalLockService
from src.stk_wallet.domain.replay import verify_wallet_matches_ledger
from tests.unit.fakes import (
    T0,
    FakeClock,
    FakeSession,
    InMemoryStore,
    fund,
    money,
    put_open_bet,
)

USERS = ("alice", "bob", "carol")


async def _staked_bet(
    coordinator: SettlementCoordinator,
    store: InMemoryStore,
    db: FakeSession,
    outcomes: tuple[str, ...] = ("Yes", "No"),
) -> Bet:
    """alice 300 and bob 100 on the first outcome, carol 200 on the second."""
    for u in USERS:
        await fund(coordinator, store, u, "1000")
    bet = put_open_bet(store, outcomes)
    first, second = bet.outcomes[0].id, bet.outcomes[1].id
    await coordinator.place_stake(db, "alice", bet.id, first, 300, "s-alice")
    await coordinator.place_stake(db, "bob", bet.id, first, 100, "s-bob")
    await coordinator.place_stake(db, "carol", bet.id, second, 200, "s-carol")
    return bet


async def _close(
    coordinator: SettlementCoordinator, db: FakeSession, clock: FakeClock, bet: Bet
) -> None:
    clock.advance(hours=1)
    await coordinator.close_bet(db, bet.id)
    clock.advance(hours=1)


def _stake_of(store: InMemoryStore, user_id: str):
    return next(s for s in store.stakes.values() if s.user_id == user_id)


def _balances(store: InMemoryStore) -> dict[str, tuple[Money, Money]]:
    return {u: (w.available_balance, w.locked_balance) for u, w in store.wallets.items()}


def _assert_consistent(store: InMemoryStore, bet_id: str) -> None:
    for user_id, wallet in store.wallets.items():
        assert verify_wallet_matches_ledger(wallet, store.entries_for(user_id)) == []
    stakes = [s for s in store.stakes.values() if s.bet_id == bet_id]
    assert verify_bet_totals(store.bets[bet_id], stakes) == []


class TestResolveBet:
    async def test_pays_winners_and_forfeits_losers(
        self,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        await _close(coordinator, db, clock, bet)
        winner = bet.outcomes[0].id

        resolved = await coordinator.resolve_bet(db, bet.id, winner, "r-1", notes="final score")

        assert resolved.status == BetStatus.RESOLVED
        assert resolved.resolved_outcome_id == winner
        assert resolved.resolved_at == clock.now
        assert store.bets[bet.id].resolution_notes == "final score"

        alice, bob, carol = (store.wallets[u] for u in USERS)
        assert alice.available_balance == money("1142.50")
        assert bob.available_balance == money("1047.50")
        assert carol.available_balance == money(800)
        assert all(w.locked_balance == Money.zero() for w in (alice, bob, carol))

        assert _stake_of(store, "alice").status == StakeStatus.WON
        assert _stake_of(store, "alice").actual_payout == money("442.50")
        assert _stake_of(store, "carol").status == StakeStatus.LOST
        assert _stake_of(store, "carol").actual_payout == Money.zero()

    async def test_ledger_entries_for_winner(
        self,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        await _close(coordinator, db, clock, bet)
        await coordinator.resolve_bet(db, bet.id, bet.outcomes[0].id, "r-1")

        stake = _stake_of(store, "alice")
        entries = store.entries_for("alice")
        assert [e.kind for e in entries] == [
            LedgerEntryKind.DEPOSIT,
            LedgerEntryKind.STAKE_LOCKED,
            LedgerEntryKind.WIN_PAYOUT,
            LedgerEntryKind.PLATFORM_FEE,
        ]
        payout, fee = entries[2], entries[3]
        assert payout.amount == money(450)
        assert payout.metadata == {PRINCIPAL_KEY: "30000"}
        assert payout.idempotency_key == f"payout:{stake.id}"
        assert fee.amount == money("7.50")
        assert fee.idempotency_key == f"fee:{stake.id}"

        forfeit = store.entries_for("carol")[-1]
        assert forfeit.kind is LedgerEntryKind.STAKE_FORFEIT
        assert forfeit.amount == money(200)

    async def test_money_is_conserved(
        self,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        await _close(coordinator, db, clock, bet)
        await coordinator.resolve_bet(db, bet.id, bet.outcomes[0].id, "r-1")

        total = Money.total(w.total_balance for w in store.wallets.values())
        fees = Money.total(
            e.amount for e in store.ledger if e.kind is LedgerEntryKind.PLATFORM_FEE
        )
        assert total + fees == money(3000)
        _assert_consistent(store, bet.id)

    async def test_replay_keeps_first_resolution(
        self,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        await _close(coordinator, db, clock, bet)
        first = await coordinator.resolve_bet(db, bet.id, bet.outcomes[0].id, "r-1")
        entries_before = len(store.ledger)

        clock.advance(days=1)
        again = await coordinator.resolve_bet(db, bet.id, bet.outcomes[0].id, "r-1")

        assert again.resolved_at == first.resolved_at
        assert len(store.ledger) == entries_before
        assert store.wallets["alice"].available_balance == money("1142.50")

    async def test_second_resolution_with_other_outcome(
        self,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        await _close(coordinator, db, clock, bet)
        await coordinator.resolve_bet(db, bet.id, bet.outcomes[0].id, "r-1")
        with pytest.raises(InvalidStateTransitionError):
            await coordinator.resolve_bet(db, bet.id, bet.outcomes[1].id, "r-2")

    async def test_no_winners_refunds_everyone(
        self,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
    ) -> None:
        bet = await _staked_bet(coordinator, store, db, outcomes=("Home", "Away", "Draw"))
        await _close(coordinator, db, clock, bet)
        await coordinator.resolve_bet(db, bet.id, bet.outcomes[2].id, "r-1")

        for u in USERS:
            wallet = store.wallets[u]
            assert wallet.available_balance == money(1000)
            assert wallet.locked_balance == Money.zero()
            assert store.entries_for(u)[-1].kind is LedgerEntryKind.STAKE_REFUND
            assert _stake_of(store, u).status == StakeStatus.CANCELLED
        assert store.bets[bet.id].status == BetStatus.RESOLVED
        _assert_consistent(store, bet.id)

    async def test_user_with_stakes_on_both_sides(
        self,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
    ) -> None:
        await fund(coordinator, store, "alice", "1000")
        await fund(coordinator, store, "bob", "1000")
        bet = put_open_bet(store)
        yes, no = bet.outcomes[0].id, bet.outcomes[1].id
        await coordinator.place_stake(db, "alice", bet.id, yes, 200, "a-yes")
        await coordinator.place_stake(db, "alice", bet.id, no, 100, "a-no")
        await coordinator.place_stake(db, "bob", bet.id, no, 200, "b-no")
        await _close(coordinator, db, clock, bet)

        await coordinator.resolve_bet(db, bet.id, yes, "r-1")

        alice = store.wallets["alice"]
        # 1000 - 300 staked + 500 payout - 15 fee
        assert alice.available_balance == money(1185)
        assert alice.locked_balance == Money.zero()
        assert store.wallets["bob"].total_balance == money(800)
        _assert_consistent(store, bet.id)

    async def test_before_resolution_time(
        self,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        clock.advance(hours=1)
        await coordinator.close_bet(db, bet.id)
        with pytest.raises(BetTimingError):
            await coordinator.resolve_bet(db, bet.id, bet.outcomes[0].id, "r-1")
        assert store.wallets["alice"].locked_balance == money(300)

    async def test_open_bet_cannot_resolve(
        self,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        clock.advance(hours=3)
        with pytest.raises(InvalidStateTransitionError):
            await coordinator.resolve_bet(db, bet.id, bet.outcomes[0].id, "r-1")

    async def test_unknown_outcome(
        self,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        await _close(coordinator, db, clock, bet)
        with pytest.raises(OutcomeNotInBetError):
            await coordinator.resolve_bet(db, bet.id, "elsewhere", "r-1")
        assert store.bets[bet.id].status == BetStatus.CLOSED

    async def test_unknown_bet(
        self, coordinator: SettlementCoordinator, db: FakeSession
    ) -> None:
        with pytest.raises(BetNotFoundError):
            await coordinator.resolve_bet(db, "missing", "o", "r-1")

    async def test_resolution_lock_held(
        self,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
        locks: LocalLockService,
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        await _close(coordinator, db, clock, bet)
        await locks.acquire(f"resolution:{bet.id}", 10, 0.1)
        with pytest.raises(LockTimeoutError):
            await coordinator.resolve_bet(
                db, bet.id, bet.outcomes[0].id, "r-1", timeout_seconds=0.02
            )
        assert store.bets[bet.id].status == BetStatus.CLOSED

    async def test_locks_released_after_settlement(
        self,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
        locks: LocalLockService,
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        await _close(coordinator, db, clock, bet)
        await coordinator.resolve_bet(db, bet.id, bet.outcomes[0].id, "r-1")
        keys = [f"resolution:{bet.id}", f"bet:{bet.id}"] + [f"wallet:{u}" for u in USERS]
        assert not any(locks.is_held(k) for k in keys)

    async def test_failed_commit_leaves_nothing_behind(
        self,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
        locks: LocalLockService,
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        await _close(coordinator, db, clock, bet)
        balances = _balances(store)
        entries = len(store.ledger)

        # the staker lookup commits first, the settlement write fails
        db.fail_next_commit = True
        db.commits_before_failure = 1
        with pytest.raises(ConcurrencyError):
            await coordinator.resolve_bet(db, bet.id, bet.outcomes[0].id, "r-1")

        assert store.bets[bet.id].status == BetStatus.CLOSED
        assert store.bets[bet.id].resolved_at is None
        assert all(s.status == StakeStatus.ACTIVE for s in store.stakes.values())
        assert len(store.ledger) == entries
        assert _balances(store) == balances
        assert not locks.is_held(f"resolution:{bet.id}")

        resolved = await coordinator.resolve_bet(db, bet.id, bet.outcomes[0].id, "r-1")
        assert resolved.status == BetStatus.RESOLVED
        assert store.wallets["alice"].available_balance == money("1142.50")
        _assert_consistent(store, bet.id)


class TestCancelBet:
    async def test_refunds_active_stakes(
        self, coordinator: SettlementCoordinator, store: InMemoryStore, db: FakeSession
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        cancelled = await coordinator.cancel_bet(db, bet.id)

        assert cancelled.status == BetStatus.CANCELLED
        for u in USERS:
            assert store.wallets[u].available_balance == money(1000)
            assert store.wallets[u].locked_balance == Money.zero()
            assert _stake_of(store, u).status == StakeStatus.CANCELLED
        refund = store.entries_for("alice")[-1]
        assert refund.kind is LedgerEntryKind.STAKE_REFUND
        assert refund.idempotency_key == f"refund:{_stake_of(store, 'alice').id}"
        _assert_consistent(store, bet.id)

    async def test_cancel_twice_is_noop(
        self, coordinator: SettlementCoordinator, store: InMemoryStore, db: FakeSession
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        await coordinator.cancel_bet(db, bet.id)
        entries = len(store.ledger)
        again = await coordinator.cancel_bet(db, bet.id)
        assert again.status == BetStatus.CANCELLED
        assert len(store.ledger) == entries

    async def test_resolved_bet_cannot_be_cancelled(
        self,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        await _close(coordinator, db, clock, bet)
        await coordinator.resolve_bet(db, bet.id, bet.outcomes[0].id, "r-1")
        with pytest.raises(InvalidStateTransitionError):
            await coordinator.cancel_bet(db, bet.id)

    async def test_failed_commit_leaves_nothing_behind(
        self, coordinator: SettlementCoordinator, store: InMemoryStore, db: FakeSession
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        balances = _balances(store)
        entries = len(store.ledger)

        db.fail_next_commit = True
        db.commits_before_failure = 1
        with pytest.raises(ConcurrencyError):
            await coordinator.cancel_bet(db, bet.id)

        assert store.bets[bet.id].status == BetStatus.OPEN
        assert all(s.status == StakeStatus.ACTIVE for s in store.stakes.values())
        assert len(store.ledger) == entries
        assert _balances(store) == balances

        cancelled = await coordinator.cancel_bet(db, bet.id)
        assert cancelled.status == BetStatus.CANCELLED
        assert all(w.locked_balance == Money.zero() for w in store.wallets.values())
        _assert_consistent(store, bet.id)


class TestLifecycleMoves:
    async def test_open_draft_bet(
        self, coordinator: SettlementCoordinator, store: InMemoryStore, db: FakeSession
    ) -> None:
        bet = put_open_bet(store)
        draft = Bet.create(
            title="Draft market",
            description="Not yet open",
            category=bet.category,
            closing_time=bet.closing_time,
            resolution_time=bet.resolution_time,
            outcome_titles=["A", "B"],
            now=T0,
        )
        store.bets[draft.id] = draft
        opened = await coordinator.open_bet(db, draft.id)
        assert opened.status == BetStatus.OPEN
        assert store.bets[draft.id].status == BetStatus.OPEN

    async def test_close_before_closing_time(
        self, coordinator: SettlementCoordinator, store: InMemoryStore, db: FakeSession
    ) -> None:
        bet = put_open_bet(store)
        with pytest.raises(BetTimingError):
            await coordinator.close_bet(db, bet.id)
        assert store.bets[bet.id].status == BetStatus.OPEN

    async def test_mark_paid(
        self,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
    ) -> None:
        bet = await _staked_bet(coordinator, store, db)
        await _close(coordinator, db, clock, bet)
        await coordinator.resolve_bet(db, bet.id, bet.outcomes[0].id, "r-1")

        paid = await coordinator.mark_bet_paid(db, bet.id)
        assert paid.status == BetStatus.PAID
        again = await coordinator.mark_bet_paid(db, bet.id)
        assert again.status == BetStatus.PAID
        _assert_consistent(store, bet.id)

    async def test_mark_paid_requires_resolution(
        self, coordinator: SettlementCoordinator, store: InMemoryStore, db: FakeSession
    ) -> None:
        bet = put_open_bet(store)
        with pytest.raises(InvalidStateTransitionError):
            await coordinator.mark_bet_paid(db, bet.id)
