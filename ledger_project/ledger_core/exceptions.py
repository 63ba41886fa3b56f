from django.core.exceptions import ValidationError

# Missing or malformed input is reported with Django's ValidationError
# (the same class full_clean() raises), so callers catch one type for both.
__all__ = [
    "ValidationError",
    "LedgerError",
    "NotFoundError",
    "ConflictError",
    "InsufficientBalanceError",
    "InvariantViolationError",
]


class LedgerError(Exception):
    """Base class for expected business outcomes of ledger operations."""
    pass

class NotFoundError(LedgerError):
    """Raised when a referenced Account / LedgerHead / Booklet / Transaction is absent."""
    pass

class ConflictError(LedgerError):
    """Raised on used receipt numbers, overlapping booklets, out-of-sequence or closed periods."""
    pass

class InsufficientBalanceError(LedgerError):
    """Raised when a debit or cheque clearance exceeds the cash/bank bucket of a source head."""
    pass

class InvariantViolationError(LedgerError):
    """Raised when split amounts don't add up to the declared total."""
    pass
