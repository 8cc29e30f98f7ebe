"""Repository Protocol: dependency inversion for testability."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_market.domain.models import Bet


class BetRepositoryProtocol(Protocol):
    async def get_bet(
        self, db: AsyncSession, bet_id: str, for_update: bool = False
    ) -> Bet | None: ...

    async def create_bet(self, db: AsyncSession, bet: Bet) -> Bet: ...

    async def save_bet(self, db: AsyncSession, bet: Bet) -> None:
        """Write status, resolution fields and bet/outcome totals."""
        ...

    async def list_bets(
        self,
        db: AsyncSession,
        status: str | None,
        category: str | None,
        cursor_created_at: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Bet]: ...
