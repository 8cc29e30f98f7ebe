"""WalletApplicationService: wallet provisioning and read projections.

Balance-moving calls (deposit, withdraw) are delegated to the
SettlementCoordinator, which owns locking and the atomic unit.
"""

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_common.database import atomic
from src.stk_common.enums import LedgerEntryKind
from src.stk_common.errors import DuplicateKeyError, ValidationError, WalletNotFoundError
from src.stk_common.pagination import decode_seq_cursor, encode_seq_cursor
from src.stk_ledger.domain.repository import LedgerRepositoryProtocol
from src.stk_ledger.infrastructure.persistence import LedgerRepository
from src.stk_settlement.application.coordinator import SettlementCoordinator
from src.stk_settlement.application.service import get_coordinator
from src.stk_wallet.application.schemas import (
    BalanceResponse,
    LedgerEntryItem,
    LedgerListResponse,
    WalletVerificationResponse,
)
from src.stk_wallet.domain.models import Wallet
from src.stk_wallet.domain.replay import verify_wallet_matches_ledger
from src.stk_wallet.domain.repository import WalletRepositoryProtocol
from src.stk_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)


class WalletApplicationService:
    def __init__(
        self,
        repo: WalletRepositoryProtocol | None = None,
        ledger_repo: LedgerRepositoryProtocol | None = None,
        coordinator: SettlementCoordinator | None = None,
    ) -> None:
        self._repo: WalletRepositoryProtocol = repo or WalletRepository()
        self._ledger: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()
        self._coordinator = coordinator

    @property
    def coordinator(self) -> SettlementCoordinator:
        return self._coordinator or get_coordinator()

    async def _get_wallet(self, db: AsyncSession, user_id: str) -> Wallet:
        wallet = await self._repo.get_wallet_by_user_id(db, user_id)
        if wallet is None:
            raise WalletNotFoundError(user_id)
        return wallet

    async def provision_wallet(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        """Create the user's wallet if it does not exist yet (one per user)."""
        existing = await self._repo.get_wallet_by_user_id(db, user_id)
        if existing is not None:
            return BalanceResponse.from_domain(existing)
        try:
            async with atomic(db):
                wallet = await self._repo.create_wallet(db, Wallet.create(user_id))
        except DuplicateKeyError:
            # lost a race with a concurrent provision for the same user
            wallet = await self._get_wallet(db, user_id)
        else:
            logger.info("Wallet provisioned: user=%s wallet=%s", user_id, wallet.id)
        return BalanceResponse.from_domain(wallet)

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        return BalanceResponse.from_domain(await self._get_wallet(db, user_id))

    async def deposit(
        self, db: AsyncSession, user_id: str, amount: Decimal, idempotency_key: str
    ) -> BalanceResponse:
        wallet = await self.coordinator.deposit(db, user_id, amount, idempotency_key)
        return BalanceResponse.from_domain(wallet)

    async def withdraw(
        self, db: AsyncSession, user_id: str, amount: Decimal, idempotency_key: str
    ) -> BalanceResponse:
        wallet = await self.coordinator.withdraw(db, user_id, amount, idempotency_key)
        return BalanceResponse.from_domain(wallet)

    async def list_ledger(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        kind: str | None,
    ) -> LedgerListResponse:
        if kind is not None:
            try:
                kind = LedgerEntryKind(kind).value
            except ValueError as exc:
                raise ValidationError(f"Unknown ledger entry kind: {kind}") from exc
        # Fetch limit+1 to detect has_more without COUNT(*)
        entries = await self._ledger.list_for_user(
            db, user_id, decode_seq_cursor(cursor), limit + 1, kind
        )
        has_more = len(entries) > limit
        page = entries[:limit]
        next_cursor = (
            encode_seq_cursor(page[-1].seq) if has_more and page and page[-1].seq else None
        )
        return LedgerListResponse(
            items=[LedgerEntryItem.from_domain(e) for e in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def verify_wallet(self, db: AsyncSession, user_id: str) -> WalletVerificationResponse:
        """Replay the wallet's ledger and compare with the cached balances."""
        wallet = await self._get_wallet(db, user_id)
        entries = await self._ledger.list_for_wallet(db, wallet.id)
        violations = verify_wallet_matches_ledger(wallet, entries)
        return WalletVerificationResponse(
            user_id=user_id,
            wallet_id=wallet.id,
            entries=len(entries),
            consistent=not violations,
            violations=violations,
        )
