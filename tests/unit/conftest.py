"""Fixtures wiring the coordinator to in-memory repositories (see fakes.py)."""

import pytest

from src.stk_settlement.application.coordinator import SettlementCoordinator
from src.stk_settlement.infrastructure.locks import LocalLockService
from tests.unit.fakes import (
    FakeClock,
    FakeSession,
    InMemoryBetRepository,
    InMemoryLedgerRepository,
    InMemoryStakeRepository,
    InMemoryStore,
    InMemoryWalletRepository,
)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def db(store: InMemoryStore) -> FakeSession:
    return FakeSession(store)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def locks() -> LocalLockService:
    return LocalLockService(retry_interval_ms=1)


@pytest.fixture
def repos(store: InMemoryStore) -> dict[str, object]:
    return {
        "wallet_repo": InMemoryWalletRepository(store),
        "ledger_repo": InMemoryLedgerRepository(store),
        "bet_repo": InMemoryBetRepository(store),
        "stake_repo": InMemoryStakeRepository(store),
    }


@pytest.fixture
def coordinator(
    repos: dict[str, object], locks: LocalLockService, clock: FakeClock
) -> SettlementCoordinator:
    return SettlementCoordinator(lock_service=locks, clock=clock, **repos)
