# ==========================================================
#                  LEDGER EXCEPTIONS
# ==========================================================


class LedgerError(Exception):
    """Base ledger exception. `code` is stable and safe to branch on."""
    code = "ledger_error"
    status_code = 400

    def __init__(self, message=None, **details):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__
        self.details = details

    def to_dict(self):
        payload = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InsufficientFunds(LedgerError):
    """Insufficient balance"""
    code = "insufficient_funds"


class MonthlyLimitExceeded(LedgerError):
    """Only one plan purchase is allowed per calendar month"""
    code = "monthly_limit_exceeded"


class RateLimited(LedgerError):
    """Only one withdrawal is allowed every 24 hours"""
    code = "rate_limited"
    status_code = 429


class NotFound(LedgerError):
    """Record not found"""
    code = "not_found"
    status_code = 404


class InvalidState(LedgerError):
    """Record is not pending"""
    code = "invalid_state"
    status_code = 409


class ValidationError(LedgerError):
    """Invalid request"""
    code = "validation_error"


class PersistenceFailure(LedgerError):
    """Store write failed; nothing was changed"""
    code = "persistence_failure"
    status_code = 500
