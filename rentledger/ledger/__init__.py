from .allocation import (
    DEFAULT_STRATEGY,
    AllocationResult,
    AppliedAllocation,
    FifoFeeFirst,
    ResyncReport,
    allocate,
    allocate_payment,
    release_allocations,
    resync_ledger,
    waive_late_fee,
)
from .cadence import (
    DEFAULT_GRACE_DAYS,
    Cadence,
    add_cadence_days,
    calculate_days_late,
    generate_future_due_dates,
    get_next_due_date,
    is_period_late,
    iter_due_dates,
    normalize_cadence,
)
from .collections import (
    CollectionsReport,
    TenantArrears,
    calculate_tenant_owed_amount,
    get_collected_total,
    get_collections_summary,
)
from .errors import (
    AllocationConflictError,
    InvalidLeaseError,
    LeaseNotFoundError,
    LedgerError,
    NonPositiveAmountError,
    PaymentMismatchError,
    PaymentNotFoundError,
    PeriodNotFoundError,
    TenantNotFoundError,
    UnsupportedCadenceError,
)
from .late_fees import LATE_FEE_SCHEDULE, apply_late_fee_if_due, assess_late_fees, get_late_fee_amount, late_fee_due
from .periods import derive_status, generate_periods, generate_periods_for_all_leases, plan_due_dates, validate_lease
