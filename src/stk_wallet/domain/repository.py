"""Repository Protocol: dependency inversion for testability.

Unit tests inject a fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_wallet.domain.models import Wallet


class WalletRepositoryProtocol(Protocol):
    async def get_wallet_by_user_id(
        self, db: AsyncSession, user_id: str, for_update: bool = False
    ) -> Wallet | None: ...

    async def get_wallets_by_user_ids(
        self, db: AsyncSession, user_ids: list[str], for_update: bool = False
    ) -> dict[str, Wallet]: ...

    async def create_wallet(self, db: AsyncSession, wallet: Wallet) -> Wallet: ...

    async def save_wallet(self, db: AsyncSession, wallet: Wallet) -> Wallet:
        """Persist balances if the stored version still equals wallet.version.

        Returns the wallet with its version bumped; raises StaleWriteError
        when another writer got there first.
        """
        ...
