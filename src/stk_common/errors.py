"""Unified error codes and custom exceptions.

Every error raised by the core belongs to exactly one taxonomy kind
(``kind`` attribute). Callers always get a kind plus a human-readable message.

Error code ranges:
  1xxx: Validation
  2xxx: Wallet / Ledger
  3xxx: Bet / Outcome
  4xxx: Stake
  5xxx: Business rules / Idempotency
  9xxx: Concurrency / System
"""


class AppError(Exception):
    """Base application error."""

    kind: str = "INTERNAL_ERROR"

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# ---------------------------------------------------------------------------
# Taxonomy kinds
# ---------------------------------------------------------------------------

class ValidationError(AppError):
    """Malformed input: not retriable without changing the input."""

    kind = "VALIDATION_ERROR"

    def __init__(self, message: str, code: int = 1001) -> None:
        super().__init__(code, message, 422)


class ResourceNotFoundError(AppError):
    kind = "RESOURCE_NOT_FOUND"

    def __init__(self, resource: str, identifier: str, code: int = 9404) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(code, f"{resource} not found: {identifier}", 404)


class InvalidStateTransitionError(AppError):
    kind = "INVALID_STATE_TRANSITION"

    def __init__(self, message: str, code: int = 3002) -> None:
        super().__init__(code, message, 409)


class InsufficientFundsError(AppError):
    kind = "INSUFFICIENT_FUNDS"

    def __init__(self, required: object, available: object) -> None:
        self.required = required
        self.available = available
        super().__init__(
            2001,
            f"Insufficient funds: required {required}, available {available}",
            422,
        )


class ConcurrencyError(AppError):
    """Lock timeout or detected write conflict: the caller may retry."""

    kind = "CONCURRENCY_ERROR"

    def __init__(self, message: str, code: int = 9001) -> None:
        super().__init__(code, message, 409)


class BusinessRuleViolationError(AppError):
    kind = "BUSINESS_RULE_VIOLATION"

    def __init__(self, message: str, code: int = 5001) -> None:
        super().__init__(code, message, 422)


# --- 1xxx: Validation ---

class InvalidAmountError(ValidationError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid amount: {detail}", code=1002)


class StakeAmountOutOfRangeError(ValidationError):
    def __init__(self, amount: object, minimum: object, maximum: object) -> None:
        super().__init__(
            f"Stake amount {amount} outside allowed range [{minimum}, {maximum}]",
            code=1003,
        )


# --- 2xxx: Wallet / Ledger ---

class WalletNotFoundError(ResourceNotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__("Wallet", user_id, code=2002)


class LedgerAppendOnlyError(BusinessRuleViolationError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Ledger entries cannot be changed: {detail}", code=2003)


# --- 3xxx: Bet / Outcome ---

class BetNotFoundError(ResourceNotFoundError):
    def __init__(self, bet_id: str) -> None:
        super().__init__("Bet", bet_id, code=3001)


class BetNotAcceptingStakesError(InvalidStateTransitionError):
    def __init__(self, bet_id: str, status: str) -> None:
        super().__init__(
            f"Bet {bet_id} is not accepting stakes (status={status})", code=3003
        )


class OutcomeNotFoundError(ResourceNotFoundError):
    def __init__(self, outcome_id: str) -> None:
        super().__init__("Outcome", outcome_id, code=3004)


# --- 4xxx: Stake ---

class StakeNotFoundError(ResourceNotFoundError):
    def __init__(self, stake_id: str) -> None:
        super().__init__("Stake", stake_id, code=4001)


class StakeAlreadySettledError(InvalidStateTransitionError):
    def __init__(self, stake_id: str, status: str, target: str) -> None:
        super().__init__(
            f"Stake {stake_id} in status {status} cannot become {target}", code=4002
        )


# --- 5xxx: Business rules / Idempotency ---

class OutcomeNotInBetError(BusinessRuleViolationError):
    def __init__(self, outcome_id: str, bet_id: str) -> None:
        super().__init__(
            f"Outcome {outcome_id} does not belong to bet {bet_id}", code=5002
        )


class IdempotencyConflictError(BusinessRuleViolationError):
    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            f"Idempotency key {idempotency_key!r} was already used with different inputs",
            code=5003,
        )


class BetTimingError(BusinessRuleViolationError):
    def __init__(self, detail: str) -> None:
        super().__init__(detail, code=5004)


class DuplicateKeyError(BusinessRuleViolationError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Unique constraint violated: {detail}", code=5005)


# --- 9xxx: Concurrency / System ---

class LockTimeoutError(ConcurrencyError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Timed out acquiring lock {key}", code=9003)


class StaleWriteError(ConcurrencyError):
    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(
            f"Concurrent modification detected on {resource} {identifier}", code=9004
        )


class LockedBalanceMismatchError(ConcurrencyError):
    def __init__(self, required: object, locked: object) -> None:
        super().__init__(
            f"Locked balance {locked} cannot release {required}", code=9005
        )


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
