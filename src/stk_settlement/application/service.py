from src.stk_settlement.application.coordinator import SettlementCoordinator
from src.stk_settlement.infrastructure.locks import build_lock_service

_coordinator: SettlementCoordinator | None = None


def get_coordinator() -> SettlementCoordinator:
    global _coordinator  # noqa: PLW0603
    if _coordinator is None:
        _coordinator = SettlementCoordinator(lock_service=build_lock_service())
    return _coordinator
