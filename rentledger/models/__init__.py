from ..extensions import db

# Reference data
from .property import Property
from .tenant import Tenant

# Ledger
from .lease import Lease
from .rent_period import RentPeriod, PeriodStatus
from .payment import Payment, PaymentAllocation
