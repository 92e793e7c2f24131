"""
Ledger error taxonomy.

Every validation failure of the core raises one of these. The API layer
turns each into a distinct HTTP status and machine-readable error code.
"""


class BrokerageError(Exception):
    """Base class for all expected, recoverable ledger failures"""

    error_code = "brokerage_error"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.error_code)
        self.message = message or self.error_code

    def to_dict(self) -> dict:
        return {"error": self.error_code, "detail": self.message}


class NotFound(BrokerageError):
    """Entity is absent or the caller has no access to it; callers cannot tell which"""
    error_code = "not_found"
    status_code = 404


class Forbidden(BrokerageError):
    error_code = "forbidden"
    status_code = 403


class AlreadyPaid(BrokerageError):
    error_code = "already_paid"
    status_code = 409


class InsufficientFunds(BrokerageError):
    error_code = "insufficient_funds"
    status_code = 402


class InvalidAmount(BrokerageError):
    error_code = "invalid_amount"
    status_code = 400


class DepositLimitExceeded(BrokerageError):
    error_code = "deposit_limit_exceeded"
    status_code = 422


class InvalidDateRange(BrokerageError):
    error_code = "invalid_date_range"
    status_code = 400


class InvalidArgument(BrokerageError):
    error_code = "invalid_argument"
    status_code = 400


class InvalidStateTransition(BrokerageError):
    error_code = "invalid_state_transition"
    status_code = 409
