"""Ledger entry: the append-only record of one monetary movement.

Entries are frozen once created. Persistence and key uniqueness are enforced
at the storage boundary (see infrastructure/persistence.py), never here.
"""

from dataclasses import dataclass, field
from datetime import datetime

from src.stk_common.datetime_utils import utc_now
from src.stk_common.enums import LedgerEntryKind
from src.stk_common.errors import ValidationError
from src.stk_common.id_generator import generate_id
from src.stk_common.money import Money

# metadata key carrying the principal a WIN_PAYOUT releases from locked funds
PRINCIPAL_KEY = "principal_cents"


@dataclass(frozen=True)
class LedgerEntry:
    id: str
    wallet_id: str
    user_id: str
    kind: LedgerEntryKind
    amount: Money
    description: str
    created_at: datetime
    bet_id: str | None = None
    stake_id: str | None = None
    idempotency_key: str | None = None
    metadata: dict[str, str] | None = field(default=None, compare=False)
    seq: int | None = None  # storage-assigned position in the global order

    @classmethod
    def create(
        cls,
        wallet_id: str,
        user_id: str,
        kind: LedgerEntryKind,
        amount: Money,
        description: str,
        bet_id: str | None = None,
        stake_id: str | None = None,
        idempotency_key: str | None = None,
        metadata: dict[str, str] | None = None,
        now: datetime | None = None,
    ) -> "LedgerEntry":
        if not wallet_id:
            raise ValidationError("Ledger entry requires a wallet id")
        if not user_id:
            raise ValidationError("Ledger entry requires a user id")
        if not isinstance(kind, LedgerEntryKind):
            raise ValidationError(f"Unknown ledger entry kind: {kind!r}")
        if not isinstance(amount, Money) or not amount.is_positive():
            raise ValidationError(f"Ledger entry amount must be positive, got {amount}")
        if not description or not description.strip():
            raise ValidationError("Ledger entry requires a description")
        if idempotency_key is not None and not idempotency_key.strip():
            raise ValidationError("Idempotency key must not be blank")
        return cls(
            id=generate_id(),
            wallet_id=wallet_id,
            user_id=user_id,
            kind=kind,
            amount=amount,
            description=description.strip(),
            created_at=now or utc_now(),
            bet_id=bet_id,
            stake_id=stake_id,
            idempotency_key=idempotency_key,
            metadata=dict(metadata) if metadata else None,
        )

    @property
    def released_principal(self) -> Money | None:
        """Principal a WIN_PAYOUT releases from locked funds, when recorded."""
        if self.metadata and PRINCIPAL_KEY in self.metadata:
            return Money.from_cents(int(self.metadata[PRINCIPAL_KEY]))
        return None
