"""BetApplicationService: bet creation, lifecycle moves and read projections.

Lifecycle moves that touch a live bet (open, close) run under the bet lock
through the SettlementCoordinator.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_common.database import atomic
from src.stk_common.enums import BetCategory, BetStatus
from src.stk_common.errors import BetNotFoundError, ValidationError
from src.stk_common.pagination import decode_time_cursor, encode_time_cursor
from src.stk_market.application.schemas import (
    BetDetail,
    BetListItem,
    BetListResponse,
    CreateBetRequest,
)
from src.stk_market.domain.models import Bet
from src.stk_market.domain.repository import BetRepositoryProtocol
from src.stk_market.infrastructure.persistence import BetRepository
from src.stk_settlement.application.coordinator import SettlementCoordinator
from src.stk_settlement.application.service import get_coordinator

logger = logging.getLogger(__name__)


class BetApplicationService:
    def __init__(
        self,
        repo: BetRepositoryProtocol | None = None,
        coordinator: SettlementCoordinator | None = None,
    ) -> None:
        self._repo: BetRepositoryProtocol = repo or BetRepository()
        self._coordinator = coordinator

    @property
    def coordinator(self) -> SettlementCoordinator:
        return self._coordinator or get_coordinator()

    async def create_bet(self, db: AsyncSession, req: CreateBetRequest) -> BetDetail:
        bet = Bet.create(
            title=req.title,
            description=req.description,
            category=req.category,
            closing_time=req.closing_time,
            resolution_time=req.resolution_time,
            outcome_titles=req.outcomes,
        )
        async with atomic(db):
            await self._repo.create_bet(db, bet)
        logger.info("Bet created: bet=%s outcomes=%d", bet.id, len(bet.outcomes))
        return BetDetail.from_domain(bet)

    async def open_bet(self, db: AsyncSession, bet_id: str) -> BetDetail:
        return BetDetail.from_domain(await self.coordinator.open_bet(db, bet_id))

    async def close_bet(self, db: AsyncSession, bet_id: str) -> BetDetail:
        return BetDetail.from_domain(await self.coordinator.close_bet(db, bet_id))

    async def get_bet(self, db: AsyncSession, bet_id: str) -> BetDetail:
        bet = await self._repo.get_bet(db, bet_id)
        if bet is None:
            raise BetNotFoundError(bet_id)
        return BetDetail.from_domain(bet)

    async def list_bets(
        self,
        db: AsyncSession,
        status: str | None,
        category: str | None,
        cursor: str | None,
        limit: int,
    ) -> BetListResponse:
        # status=None -> default OPEN; status='ALL' -> no filter
        sql_status = None if status == "ALL" else (status or BetStatus.OPEN.value)
        try:
            if sql_status is not None:
                BetStatus(sql_status)
            if category is not None:
                BetCategory(category)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        cursor_ts, cursor_id = decode_time_cursor(cursor)
        # Fetch limit+1 to detect has_more without COUNT(*)
        bets = await self._repo.list_bets(
            db, sql_status, category, cursor_ts, cursor_id, limit + 1
        )
        has_more = len(bets) > limit
        page = bets[:limit]
        next_cursor = (
            encode_time_cursor(page[-1].created_at, page[-1].id) if has_more and page else None
        )
        return BetListResponse(
            items=[BetListItem.from_domain(b) for b in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )
