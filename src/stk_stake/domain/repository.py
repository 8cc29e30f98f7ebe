"""Repository Protocol: dependency inversion for testability."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_stake.domain.models import Stake


class StakeRepositoryProtocol(Protocol):
    async def get_stake(self, db: AsyncSession, stake_id: str) -> Stake | None: ...

    async def get_by_idempotency_key(
        self, db: AsyncSession, idempotency_key: str
    ) -> Stake | None: ...

    async def add_stake(self, db: AsyncSession, stake: Stake) -> Stake: ...

    async def save_stake(self, db: AsyncSession, stake: Stake) -> None: ...

    async def list_for_bet(self, db: AsyncSession, bet_id: str) -> list[Stake]: ...

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        status: str | None,
        cursor_created_at: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Stake]: ...
