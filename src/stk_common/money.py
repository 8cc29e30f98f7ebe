"""Fixed-point money for the single-currency ledger.

All balances and amounts are held as integer cents, bounded by BIGINT storage.
No float arithmetic anywhere; decimal input is rounded half-up to 2 places.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from src.stk_common.errors import InsufficientFundsError, InvalidAmountError

# Amounts are stored as BIGINT cents
MAX_CENTS = 2**63 - 1
MAX_AMOUNT = Decimal(MAX_CENTS).scaleb(-2)


@dataclass(frozen=True, order=True, slots=True)
class Money:
    """Immutable non-negative amount. Equality and ordering are by value."""

    cents: int

    def __post_init__(self) -> None:
        if isinstance(self.cents, bool) or not isinstance(self.cents, int):
            raise InvalidAmountError(
                f"cents must be an int, got {type(self.cents).__name__}"
            )
        if self.cents < 0:
            raise InvalidAmountError(f"money cannot be negative ({self.cents} cents)")
        if self.cents > MAX_CENTS:
            raise InvalidAmountError(f"{self.cents} cents exceeds the storable maximum")

    # --- construction ---

    @classmethod
    def of(cls, value: "Decimal | int | str | Money") -> "Money":
        """Build from a decimal quantity, e.g. Money.of("12.50") or Money.of(10)."""
        if isinstance(value, Money):
            return value
        if isinstance(value, bool):
            raise InvalidAmountError(f"{value!r} is not a decimal number")
        try:
            dec = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise InvalidAmountError(f"{value!r} is not a decimal number") from exc
        if not dec.is_finite():
            raise InvalidAmountError(f"{value!r} is not finite")
        if dec < 0:
            raise InvalidAmountError(f"{value} is negative")
        if dec > MAX_AMOUNT:
            raise InvalidAmountError(f"{value} exceeds the maximum amount {MAX_AMOUNT}")
        try:
            with localcontext() as ctx:
                ctx.prec = max(ctx.prec, len(dec.as_tuple().digits) + 4)
                cents = int((dec * 100).to_integral_value(rounding=ROUND_HALF_UP))
        except ArithmeticError as exc:
            raise InvalidAmountError(f"{value!r} cannot be represented") from exc
        return cls(cents)

    @classmethod
    def from_cents(cls, cents: int) -> "Money":
        return cls(cents)

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @classmethod
    def total(cls, amounts: Iterable["Money"]) -> "Money":
        return cls(sum(m.cents for m in amounts))

    # --- arithmetic (always returns a new instance) ---

    def add(self, other: "Money") -> "Money":
        return Money(self.cents + other.cents)

    def subtract(self, other: "Money") -> "Money":
        if other.cents > self.cents:
            raise InsufficientFundsError(required=other, available=self)
        return Money(self.cents - other.cents)

    def prorate(self, part: "Money", whole: "Money") -> "Money":
        """floor(self * part / whole): the share of self owed to part of whole."""
        if whole.cents == 0:
            raise InvalidAmountError("cannot prorate over a zero total")
        return Money(self.cents * part.cents // whole.cents)

    def __add__(self, other: object) -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: object) -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return self.subtract(other)

    # --- queries ---

    @property
    def amount(self) -> Decimal:
        return Decimal(self.cents).scaleb(-2)

    def is_zero(self) -> bool:
        return self.cents == 0

    def is_positive(self) -> bool:
        return self.cents > 0

    def __str__(self) -> str:
        return f"{self.cents // 100}.{self.cents % 100:02d}"

    def to_display(self) -> str:
        """Display string: 115000 cents -> '₦1,150.00'."""
        return f"₦{self.cents // 100:,}.{self.cents % 100:02d}"


def calculate_fee(amount: Money, fee_rate_bps: int) -> Money:
    """Calculate fee with ceiling division (platform never loses).

    fee = ceil(amount * fee_rate_bps / 10000)
    Using integer ceiling: (a + b - 1) // b
    """
    if not (0 <= fee_rate_bps <= 10000):
        raise InvalidAmountError(f"fee rate must be 0-10000 bps, got {fee_rate_bps}")
    if amount.is_zero() or fee_rate_bps == 0:
        return Money.zero()
    return Money((amount.cents * fee_rate_bps + 9999) // 10000)
