"""Tests for StakeApplicationService and AdminService."""

from decimal import Decimal

import pytest

from src.stk_common.errors import BetNotFoundError, StakeNotFoundError, ValidationError
from src.stk_market.application.schemas import ResolveBetRequest
from src.stk_settlement.application.admin_service import AdminService
from src.stk_settlement.application.coordinator import SettlementCoordinator
from src.stk_stake.application.schemas import PlaceStakeRequest
from src.stk_stake.application.service import StakeApplicationService
from src.stk_wallet.application.service import WalletApplicationService
from tests.unit.fakes import FakeClock, FakeSession, InMemoryStore, fund, put_open_bet


@pytest.fixture
def stakes(
    repos: dict[str, object], coordinator: SettlementCoordinator
) -> StakeApplicationService:
    return StakeApplicationService(repo=repos["stake_repo"], coordinator=coordinator)


@pytest.fixture
def admin(repos: dict[str, object], coordinator: SettlementCoordinator) -> AdminService:
    wallets = WalletApplicationService(
        repo=repos["wallet_repo"], ledger_repo=repos["ledger_repo"], coordinator=coordinator
    )
    return AdminService(
        bet_repo=repos["bet_repo"],
        stake_repo=repos["stake_repo"],
        wallet_service=wallets,
        coordinator=coordinator,
    )


def _req(bet_id: str, outcome_id: str, amount: str, key: str) -> PlaceStakeRequest:
    return PlaceStakeRequest(
        bet_id=bet_id, outcome_id=outcome_id, amount=Decimal(amount), idempotency_key=key
    )


class TestStakeService:
    async def test_place_and_get(
        self,
        stakes: StakeApplicationService,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
    ) -> None:
        await fund(coordinator, store, "alice", "1000")
        bet = put_open_bet(store)
        placed = await stakes.place_stake(db, "alice", _req(bet.id, bet.outcomes[0].id, "250", "k1"))

        assert placed.status == "ACTIVE"
        assert placed.stake_amount == "250.00"
        assert placed.potential_payout == "250.00"
        fetched = await stakes.get_stake(db, "alice", placed.id)
        assert fetched.id == placed.id

    async def test_other_users_stake_is_hidden(
        self,
        stakes: StakeApplicationService,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
    ) -> None:
        await fund(coordinator, store, "alice", "1000")
        bet = put_open_bet(store)
        placed = await stakes.place_stake(db, "alice", _req(bet.id, bet.outcomes[0].id, "250", "k1"))
        with pytest.raises(StakeNotFoundError):
            await stakes.get_stake(db, "mallory", placed.id)

    async def test_list_with_status_filter(
        self,
        stakes: StakeApplicationService,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
    ) -> None:
        await fund(coordinator, store, "alice", "1000")
        bet = put_open_bet(store)
        for i in range(3):
            await stakes.place_stake(db, "alice", _req(bet.id, bet.outcomes[0].id, "100", f"k{i}"))

        page = await stakes.list_stakes(db, "alice", "ACTIVE", None, 2)
        assert len(page.items) == 2
        assert page.has_more
        rest = await stakes.list_stakes(db, "alice", "ACTIVE", page.next_cursor, 2)
        assert len(rest.items) == 1
        assert not (await stakes.list_stakes(db, "alice", "WON", None, 10)).items

    async def test_unknown_status(
        self, stakes: StakeApplicationService, db: FakeSession
    ) -> None:
        with pytest.raises(ValidationError):
            await stakes.list_stakes(db, "alice", "PENDING", None, 10)


class TestAdminService:
    async def test_resolve_pay_and_verify(
        self,
        admin: AdminService,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
        clock: FakeClock,
    ) -> None:
        await fund(coordinator, store, "alice", "1000")
        await fund(coordinator, store, "bob", "1000")
        bet = put_open_bet(store)
        await coordinator.place_stake(db, "alice", bet.id, bet.outcomes[0].id, 100, "a")
        await coordinator.place_stake(db, "bob", bet.id, bet.outcomes[1].id, 100, "b")
        clock.advance(hours=1)
        await coordinator.close_bet(db, bet.id)
        clock.advance(hours=1)

        req = ResolveBetRequest(winning_outcome_id=bet.outcomes[0].id, idempotency_key="r-1")
        resolved = await admin.resolve_bet(db, bet.id, req)
        assert resolved.status == "RESOLVED"
        assert resolved.resolved_outcome_id == bet.outcomes[0].id

        paid = await admin.mark_bet_paid(db, bet.id)
        assert paid.status == "PAID"

        report = await admin.verify_bet(db, bet.id)
        assert report.consistent
        assert report.stakes == 2
        for user in ("alice", "bob"):
            assert (await admin.verify_wallet(db, user)).consistent

    async def test_cancel(
        self,
        admin: AdminService,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
    ) -> None:
        await fund(coordinator, store, "alice", "1000")
        bet = put_open_bet(store)
        await coordinator.place_stake(db, "alice", bet.id, bet.outcomes[0].id, 100, "a")
        cancelled = await admin.cancel_bet(db, bet.id)
        assert cancelled.status == "CANCELLED"
        assert store.wallets["alice"].available_balance.cents == 100000

    async def test_verify_missing_bet(self, admin: AdminService, db: FakeSession) -> None:
        with pytest.raises(BetNotFoundError):
            await admin.verify_bet(db, "missing")
