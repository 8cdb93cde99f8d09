class LedgerError(Exception):
    """Base class for rent ledger failures surfaced to callers."""

    code = "ledger_error"
    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self):
        return {"error": self.code, "message": self.message}


class InvalidLeaseError(LedgerError):
    """Lease has an unrecognized cadence or inconsistent dates."""

    code = "invalid_lease"


class UnsupportedCadenceError(InvalidLeaseError):
    """Rent cadence is not weekly, bi-weekly or monthly."""

    code = "unsupported_cadence"


class TenantNotFoundError(LedgerError, LookupError):
    """Tenant does not exist or has no lease."""

    code = "tenant_not_found"
    status_code = 404


class LeaseNotFoundError(LedgerError, LookupError):
    """Lease does not exist."""

    code = "lease_not_found"
    status_code = 404


class PeriodNotFoundError(LedgerError, LookupError):
    """Rent period does not exist."""

    code = "period_not_found"
    status_code = 404


class PaymentNotFoundError(LedgerError, LookupError):
    """Payment does not exist."""

    code = "payment_not_found"
    status_code = 404


class NonPositiveAmountError(LedgerError, ValueError):
    """Payment amount must be greater than zero."""

    code = "non_positive_amount"


class AllocationConflictError(LedgerError):
    """Ledger was modified concurrently; retry the whole operation."""

    code = "allocation_conflict"
    status_code = 409


class PaymentMismatchError(LedgerError):
    """Payment belongs to another tenant or the amount differs from the recorded payment."""

    code = "payment_mismatch"
    status_code = 409
