"""Pydantic schemas for the wallet API.

Amounts travel as decimal strings ("1150.00") alongside a display form
("₦1,150.00"); cents never leave the service boundary.
"""

from decimal import Decimal

from pydantic import BaseModel, Field

from src.stk_common.money import MAX_AMOUNT, Money
from src.stk_ledger.domain.models import LedgerEntry
from src.stk_wallet.domain.models import Wallet

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class FundsRequest(BaseModel):
    amount: Decimal = Field(
        ..., gt=0, le=MAX_AMOUNT, description="Amount in currency units, 2 decimals"
    )
    idempotency_key: str = Field(..., min_length=1, max_length=128)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    user_id: str
    wallet_id: str
    available_balance: str
    available_balance_display: str
    locked_balance: str
    locked_balance_display: str
    total_balance: str
    total_balance_display: str

    @classmethod
    def from_domain(cls, wallet: Wallet) -> "BalanceResponse":
        total: Money = wallet.total_balance
        return cls(
            user_id=wallet.user_id,
            wallet_id=wallet.id,
            available_balance=str(wallet.available_balance),
            available_balance_display=wallet.available_balance.to_display(),
            locked_balance=str(wallet.locked_balance),
            locked_balance_display=wallet.locked_balance.to_display(),
            total_balance=str(total),
            total_balance_display=total.to_display(),
        )


class LedgerEntryItem(BaseModel):
    id: str
    kind: str
    amount: str
    amount_display: str
    description: str
    bet_id: str | None
    stake_id: str | None
    created_at: str

    @classmethod
    def from_domain(cls, e: LedgerEntry) -> "LedgerEntryItem":
        return cls(
            id=e.id,
            kind=e.kind.value,
            amount=str(e.amount),
            amount_display=e.amount.to_display(),
            description=e.description,
            bet_id=e.bet_id,
            stake_id=e.stake_id,
            created_at=e.created_at.isoformat(),
        )


class LedgerListResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool


class WalletVerificationResponse(BaseModel):
    user_id: str
    wallet_id: str
    entries: int
    consistent: bool
    violations: list[str]
