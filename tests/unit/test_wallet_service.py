"""Tests for WalletApplicationService against in-memory repositories."""

import pytest

from src.stk_common.errors import ValidationError, WalletNotFoundError
from src.stk_settlement.application.coordinator import SettlementCoordinator
from src.stk_wallet.application.service import WalletApplicationService
from src.stk_wallet.domain.models import Wallet
from tests.unit.fakes import (
    FakeSession,
    InMemoryLedgerRepository,
    InMemoryStore,
    InMemoryWalletRepository,
    put_open_bet,
)


@pytest.fixture
def service(
    repos: dict[str, object], coordinator: SettlementCoordinator
) -> WalletApplicationService:
    return WalletApplicationService(
        repo=repos["wallet_repo"], ledger_repo=repos["ledger_repo"], coordinator=coordinator
    )


class TestProvisionWallet:
    async def test_creates_once(
        self, service: WalletApplicationService, store: InMemoryStore, db: FakeSession
    ) -> None:
        first = await service.provision_wallet(db, "alice")
        second = await service.provision_wallet(db, "alice")

        assert first.wallet_id == second.wallet_id
        assert first.available_balance == "0.00"
        assert len(store.wallets) == 1

    async def test_lost_race_returns_existing(
        self, store: InMemoryStore, db: FakeSession
    ) -> None:
        winner = Wallet.create("alice")

        class RacingRepo(InMemoryWalletRepository):
            async def get_wallet_by_user_id(self, db, user_id, for_update=False):
                found = await super().get_wallet_by_user_id(db, user_id, for_update)
                if found is None:
                    # someone else commits between our read and our insert
                    store.wallets[user_id] = winner
                return found

        racing = WalletApplicationService(
            repo=RacingRepo(store), ledger_repo=InMemoryLedgerRepository(store)
        )
        result = await racing.provision_wallet(db, "alice")
        assert result.wallet_id == winner.id


class TestBalanceAndFunds:
    async def test_balance_strings(
        self, service: WalletApplicationService, store: InMemoryStore, db: FakeSession
    ) -> None:
        await service.provision_wallet(db, "alice")
        await service.deposit(db, "alice", "1150", "dep-1")
        balance = await service.get_balance(db, "alice")

        assert balance.available_balance == "1150.00"
        assert balance.available_balance_display == "₦1,150.00"
        assert balance.total_balance == "1150.00"
        assert balance.locked_balance_display == "₦0.00"

    async def test_withdraw(
        self, service: WalletApplicationService, db: FakeSession
    ) -> None:
        await service.provision_wallet(db, "alice")
        await service.deposit(db, "alice", "100", "dep-1")
        balance = await service.withdraw(db, "alice", "0.50", "wd-1")
        assert balance.available_balance == "99.50"

    async def test_missing_wallet(
        self, service: WalletApplicationService, db: FakeSession
    ) -> None:
        with pytest.raises(WalletNotFoundError):
            await service.get_balance(db, "ghost")


class TestListLedger:
    async def _seed(self, service: WalletApplicationService, db: FakeSession, n: int) -> None:
        await service.provision_wallet(db, "alice")
        for i in range(n):
            await service.deposit(db, "alice", 10 + i, f"dep-{i}")

    async def test_newest_first_with_cursor(
        self, service: WalletApplicationService, db: FakeSession
    ) -> None:
        await self._seed(service, db, 5)

        page1 = await service.list_ledger(db, "alice", None, 2, None)
        assert [i.amount for i in page1.items] == ["14.00", "13.00"]
        assert page1.has_more is True
        assert page1.next_cursor

        page2 = await service.list_ledger(db, "alice", page1.next_cursor, 2, None)
        assert [i.amount for i in page2.items] == ["12.00", "11.00"]

        page3 = await service.list_ledger(db, "alice", page2.next_cursor, 2, None)
        assert [i.amount for i in page3.items] == ["10.00"]
        assert page3.has_more is False
        assert page3.next_cursor is None

    async def test_kind_filter(
        self, service: WalletApplicationService, db: FakeSession
    ) -> None:
        await self._seed(service, db, 2)
        await service.withdraw(db, "alice", 5, "wd-1")
        page = await service.list_ledger(db, "alice", None, 10, "WITHDRAWAL")
        assert [i.kind for i in page.items] == ["WITHDRAWAL"]

    async def test_unknown_kind(
        self, service: WalletApplicationService, db: FakeSession
    ) -> None:
        with pytest.raises(ValidationError):
            await service.list_ledger(db, "alice", None, 10, "BONUS")


class TestVerifyWallet:
    async def test_consistent_after_activity(
        self,
        service: WalletApplicationService,
        coordinator: SettlementCoordinator,
        store: InMemoryStore,
        db: FakeSession,
    ) -> None:
        await service.provision_wallet(db, "alice")
        await service.deposit(db, "alice", 500, "dep-1")
        bet = put_open_bet(store)
        await coordinator.place_stake(db, "alice", bet.id, bet.outcomes[0].id, 200, "s-1")

        report = await service.verify_wallet(db, "alice")
        assert report.consistent is True
        assert report.entries == 2
        assert report.violations == []

    async def test_detects_tampered_cache(
        self, service: WalletApplicationService, store: InMemoryStore, db: FakeSession
    ) -> None:
        await service.provision_wallet(db, "alice")
        await service.deposit(db, "alice", 500, "dep-1")
        store.wallets["alice"].locked_balance = store.wallets["alice"].available_balance

        report = await service.verify_wallet(db, "alice")
        assert report.consistent is False
        assert report.violations[0].startswith("INV-W2")
