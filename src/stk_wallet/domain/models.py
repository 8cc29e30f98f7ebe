"""Wallet aggregate: cached available/locked balances for one user.

The ledger is the source of truth; these balances are a cache that must
always equal a replay of the wallet's ledger entries. Every record_* call
below pairs with exactly one ledger entry of the matching kind, appended in
the same transaction by the SettlementCoordinator. Never assign the balance
fields directly.
"""

from dataclasses import dataclass, field
from datetime import datetime

from src.stk_common.datetime_utils import utc_now
from src.stk_common.enums import LedgerEntryKind
from src.stk_common.errors import (
    InsufficientFundsError,
    InvalidAmountError,
    LockedBalanceMismatchError,
    ValidationError,
)
from src.stk_common.id_generator import generate_id
from src.stk_common.money import Money
from src.stk_ledger.domain.models import LedgerEntry


def _require_positive(amount: Money) -> None:
    if not isinstance(amount, Money) or not amount.is_positive():
        raise InvalidAmountError(f"expected a positive amount, got {amount}")


@dataclass
class Wallet:
    id: str
    user_id: str
    available_balance: Money = field(default_factory=Money.zero)
    locked_balance: Money = field(default_factory=Money.zero)
    version: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime | None = None

    @classmethod
    def create(cls, user_id: str, now: datetime | None = None) -> "Wallet":
        if not user_id:
            raise ValidationError("Wallet requires a user id")
        return cls(id=generate_id(), user_id=user_id, created_at=now or utc_now())

    @property
    def total_balance(self) -> Money:
        return self.available_balance + self.locked_balance

    def can_afford(self, amount: Money) -> bool:
        return self.available_balance >= amount

    # --- mutations (one per ledger entry kind) ---

    def record_deposit(self, amount: Money, now: datetime | None = None) -> None:
        _require_positive(amount)
        self.available_balance = self.available_balance + amount
        self._touch(now)

    def record_withdrawal(self, amount: Money, now: datetime | None = None) -> None:
        _require_positive(amount)
        if not self.can_afford(amount):
            raise InsufficientFundsError(required=amount, available=self.available_balance)
        self.available_balance = self.available_balance - amount
        self._touch(now)

    def record_stake_locked(self, amount: Money, now: datetime | None = None) -> None:
        """available -> locked when a stake is placed."""
        _require_positive(amount)
        if not self.can_afford(amount):
            raise InsufficientFundsError(required=amount, available=self.available_balance)
        self.available_balance = self.available_balance - amount
        self.locked_balance = self.locked_balance + amount
        self._touch(now)

    def record_stake_refund(self, amount: Money, now: datetime | None = None) -> None:
        """locked -> available when a stake is cancelled or voided."""
        _require_positive(amount)
        if self.locked_balance < amount:
            raise LockedBalanceMismatchError(required=amount, locked=self.locked_balance)
        self.locked_balance = self.locked_balance - amount
        self.available_balance = self.available_balance + amount
        self._touch(now)

    def record_stake_forfeit(self, amount: Money, now: datetime | None = None) -> None:
        """A losing stake's principal leaves the wallet for the winners' pool."""
        _require_positive(amount)
        if self.locked_balance < amount:
            raise LockedBalanceMismatchError(required=amount, locked=self.locked_balance)
        self.locked_balance = self.locked_balance - amount
        self._touch(now)

    def record_win_payout(
        self,
        payout: Money,
        principal: Money | None = None,
        now: datetime | None = None,
    ) -> None:
        """Credit a winning payout (principal + winnings) to available.

        With ``principal`` the wallet releases exactly that stake's locked
        principal. Without it, min(locked, payout) is released: any payout
        beyond the locked balance is pure winnings, and locked drops to zero.
        """
        _require_positive(payout)
        if principal is None:
            released = min(self.locked_balance, payout)
        else:
            _require_positive(principal)
            if principal > payout:
                raise InvalidAmountError(
                    f"payout {payout} is smaller than its principal {principal}"
                )
            if self.locked_balance < principal:
                raise LockedBalanceMismatchError(
                    required=principal, locked=self.locked_balance
                )
            released = principal
        self.locked_balance = self.locked_balance - released
        self.available_balance = self.available_balance + payout
        self._touch(now)

    def record_platform_fee(self, fee: Money, now: datetime | None = None) -> None:
        _require_positive(fee)
        if not self.can_afford(fee):
            raise InsufficientFundsError(required=fee, available=self.available_balance)
        self.available_balance = self.available_balance - fee
        self._touch(now)

    def apply_entry(self, entry: LedgerEntry) -> None:
        """Apply one ledger entry: the single fold step used by replay."""
        if entry.wallet_id != self.id:
            raise ValidationError(
                f"Ledger entry {entry.id} belongs to wallet {entry.wallet_id}, not {self.id}"
            )
        kind = entry.kind
        if kind is LedgerEntryKind.DEPOSIT:
            self.record_deposit(entry.amount, entry.created_at)
        elif kind is LedgerEntryKind.WITHDRAWAL:
            self.record_withdrawal(entry.amount, entry.created_at)
        elif kind is LedgerEntryKind.STAKE_LOCKED:
            self.record_stake_locked(entry.amount, entry.created_at)
        elif kind is LedgerEntryKind.STAKE_REFUND:
            self.record_stake_refund(entry.amount, entry.created_at)
        elif kind is LedgerEntryKind.STAKE_FORFEIT:
            self.record_stake_forfeit(entry.amount, entry.created_at)
        elif kind is LedgerEntryKind.WIN_PAYOUT:
            self.record_win_payout(entry.amount, entry.released_principal, entry.created_at)
        elif kind is LedgerEntryKind.PLATFORM_FEE:
            self.record_platform_fee(entry.amount, entry.created_at)
        else:
            raise ValidationError(f"Unknown ledger entry kind: {kind}")

    def _touch(self, now: datetime | None) -> None:
        self.updated_at = now or utc_now()
