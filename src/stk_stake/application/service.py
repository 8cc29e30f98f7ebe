"""StakeApplicationService: placement entry point and per-user stake history."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_common.enums import StakeStatus
from src.stk_common.errors import StakeNotFoundError, ValidationError
from src.stk_common.pagination import decode_time_cursor, encode_time_cursor
from src.stk_settlement.application.coordinator import SettlementCoordinator
from src.stk_settlement.application.service import get_coordinator
from src.stk_stake.application.schemas import (
    PlaceStakeRequest,
    StakeListResponse,
    StakeResponse,
)
from src.stk_stake.domain.repository import StakeRepositoryProtocol
from src.stk_stake.infrastructure.persistence import StakeRepository


class StakeApplicationService:
    def __init__(
        self,
        repo: StakeRepositoryProtocol | None = None,
        coordinator: SettlementCoordinator | None = None,
    ) -> None:
        self._repo: StakeRepositoryProtocol = repo or StakeRepository()
        self._coordinator = coordinator

    @property
    def coordinator(self) -> SettlementCoordinator:
        return self._coordinator or get_coordinator()

    async def place_stake(
        self, db: AsyncSession, user_id: str, req: PlaceStakeRequest
    ) -> StakeResponse:
        stake = await self.coordinator.place_stake(
            db, user_id, req.bet_id, req.outcome_id, req.amount, req.idempotency_key
        )
        return StakeResponse.from_domain(stake)

    async def get_stake(self, db: AsyncSession, user_id: str, stake_id: str) -> StakeResponse:
        stake = await self._repo.get_stake(db, stake_id)
        # Another user's stake is reported as missing, not forbidden
        if stake is None or stake.user_id != user_id:
            raise StakeNotFoundError(stake_id)
        return StakeResponse.from_domain(stake)

    async def list_stakes(
        self,
        db: AsyncSession,
        user_id: str,
        status: str | None,
        cursor: str | None,
        limit: int,
    ) -> StakeListResponse:
        if status is not None:
            try:
                status = StakeStatus(status).value
            except ValueError as exc:
                raise ValidationError(f"Unknown stake status: {status}") from exc
        cursor_ts, cursor_id = decode_time_cursor(cursor)
        stakes = await self._repo.list_for_user(
            db, user_id, status, cursor_ts, cursor_id, limit + 1
        )
        has_more = len(stakes) > limit
        page = stakes[:limit]
        next_cursor = (
            encode_time_cursor(page[-1].created_at, page[-1].id) if has_more and page else None
        )
        return StakeListResponse(
            items=[StakeResponse.from_domain(s) for s in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )
