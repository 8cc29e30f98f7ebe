"""Admin application service: resolution, cancellation and invariant checks."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.stk_common.errors import BetNotFoundError
from src.stk_market.application.schemas import BetDetail, BetVerificationResponse, ResolveBetRequest
from src.stk_market.domain.repository import BetRepositoryProtocol
from src.stk_market.infrastructure.persistence import BetRepository
from src.stk_settlement.application.coordinator import SettlementCoordinator
from src.stk_settlement.application.service import get_coordinator
from src.stk_settlement.domain.invariants import verify_bet_totals
from src.stk_stake.domain.repository import StakeRepositoryProtocol
from src.stk_stake.infrastructure.persistence import StakeRepository
from src.stk_wallet.application.schemas import WalletVerificationResponse
from src.stk_wallet.application.service import WalletApplicationService


class AdminService:
    def __init__(
        self,
        bet_repo: BetRepositoryProtocol | None = None,
        stake_repo: StakeRepositoryProtocol | None = None,
        wallet_service: WalletApplicationService | None = None,
        coordinator: SettlementCoordinator | None = None,
    ) -> None:
        self._bets: BetRepositoryProtocol = bet_repo or BetRepository()
        self._stakes: StakeRepositoryProtocol = stake_repo or StakeRepository()
        self._wallets = wallet_service or WalletApplicationService()
        self._coordinator = coordinator

    @property
    def coordinator(self) -> SettlementCoordinator:
        return self._coordinator or get_coordinator()

    async def resolve_bet(
        self, db: AsyncSession, bet_id: str, req: ResolveBetRequest
    ) -> BetDetail:
        bet = await self.coordinator.resolve_bet(
            db, bet_id, req.winning_outcome_id, req.idempotency_key, notes=req.notes
        )
        return BetDetail.from_domain(bet)

    async def cancel_bet(self, db: AsyncSession, bet_id: str) -> BetDetail:
        return BetDetail.from_domain(await self.coordinator.cancel_bet(db, bet_id))

    async def mark_bet_paid(self, db: AsyncSession, bet_id: str) -> BetDetail:
        return BetDetail.from_domain(await self.coordinator.mark_bet_paid(db, bet_id))

    async def verify_bet(self, db: AsyncSession, bet_id: str) -> BetVerificationResponse:
        bet = await self._bets.get_bet(db, bet_id)
        if bet is None:
            raise BetNotFoundError(bet_id)
        stakes = await self._stakes.list_for_bet(db, bet_id)
        violations = verify_bet_totals(bet, stakes)
        return BetVerificationResponse(
            bet_id=bet_id,
            stakes=len(stakes),
            consistent=not violations,
            violations=violations,
        )

    async def verify_wallet(self, db: AsyncSession, user_id: str) -> WalletVerificationResponse:
        return await self._wallets.verify_wallet(db, user_id)
