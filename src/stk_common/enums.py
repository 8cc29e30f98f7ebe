"""Global enums: must match DB CHECK constraints exactly.

See alembic/versions/003..005 for the corresponding constraints.
"""

from enum import Enum


class BetStatus(str, Enum):
    DRAFT = "DRAFT"
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    RESOLVED = "RESOLVED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class BetCategory(str, Enum):
    SPORTS = "SPORTS"
    POLITICS = "POLITICS"
    ENTERTAINMENT = "ENTERTAINMENT"
    MARKET = "MARKET"
    TECHNOLOGY = "TECHNOLOGY"


class StakeStatus(str, Enum):
    ACTIVE = "ACTIVE"
    WON = "WON"
    LOST = "LOST"
    CANCELLED = "CANCELLED"


class LedgerEntryKind(str, Enum):
    # Money entering / leaving the platform
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    # available -> locked and back
    STAKE_LOCKED = "STAKE_LOCKED"
    STAKE_REFUND = "STAKE_REFUND"
    # Settlement
    WIN_PAYOUT = "WIN_PAYOUT"
    STAKE_FORFEIT = "STAKE_FORFEIT"
    PLATFORM_FEE = "PLATFORM_FEE"


class SettlementResult(str, Enum):
    """Per-stake outcome of a bet resolution."""
    WON = "WON"
    LOST = "LOST"
    REFUNDED = "REFUNDED"
