"""
Cadence calculator: pure date arithmetic for rent schedules.

Nothing here reads the system clock; callers pass ``today`` explicitly.
"""
from datetime import date, timedelta
from enum import Enum
from typing import Iterator, List, Union

from dateutil.relativedelta import relativedelta

from .errors import UnsupportedCadenceError

DEFAULT_GRACE_DAYS = 5


class Cadence(str, Enum):
    WEEKLY = "weekly"
    BI_WEEKLY = "bi_weekly"
    MONTHLY = "monthly"


_ALIASES = {
    "weekly": Cadence.WEEKLY,
    "bi_weekly": Cadence.BI_WEEKLY,
    "bi-weekly": Cadence.BI_WEEKLY,
    "biweekly": Cadence.BI_WEEKLY,
    "bi weekly": Cadence.BI_WEEKLY,
    "monthly": Cadence.MONTHLY,
}


def normalize_cadence(cadence: Union[str, Cadence]) -> Cadence:
    """Map stored cadence spellings ("bi-weekly", "Biweekly", ...) to a Cadence"""
    if isinstance(cadence, Cadence):
        return cadence
    key = str(cadence or "").strip().lower()
    try:
        return _ALIASES[key]
    except KeyError:
        raise UnsupportedCadenceError(f"Unsupported cadence: {cadence!r}") from None


def _step(cadence: Cadence, ticks: int):
    if cadence is Cadence.WEEKLY:
        return timedelta(days=7 * ticks)
    if cadence is Cadence.BI_WEEKLY:
        return timedelta(days=14 * ticks)
    # relativedelta clamps Jan 31 + 1 month to the last day of February
    return relativedelta(months=ticks)


def add_cadence_days(day: date, cadence: Union[str, Cadence]) -> date:
    """Advance a date by one cadence tick"""
    return day + _step(normalize_cadence(cadence), 1)


def get_next_due_date(due_date: date, cadence: Union[str, Cadence]) -> date:
    return add_cadence_days(due_date, cadence)


def nth_due_date(start_date: date, cadence: Union[str, Cadence], tick: int) -> date:
    """Due date ``tick`` cadence steps after ``start_date``"""
    return start_date + _step(normalize_cadence(cadence), tick)


def iter_due_dates(start_date: date, cadence: Union[str, Cadence], count: int) -> Iterator[date]:
    """
    Yield ``count`` consecutive due dates beginning at ``start_date``.

    Each date is offset from the anchor rather than from the previous date, so
    a lease due on the 31st comes back to the 31st after a short month.
    """
    for tick in range(max(0, count)):
        yield nth_due_date(start_date, cadence, tick)


def generate_future_due_dates(start_date: date, cadence: Union[str, Cadence], count: int) -> List[date]:
    """
    ``count`` due dates beginning at ``start_date``.

    Every date is offset from ``start_date`` rather than from the date before
    it, so a clamped month-end does not drift: Jan 31 yields Feb 29, Mar 31,
    not Feb 29, Mar 29 as chaining ``get_next_due_date`` would.
    """
    return list(iter_due_dates(start_date, cadence, count))


def grace_end(due_date: date, grace_days: int = DEFAULT_GRACE_DAYS) -> date:
    return due_date + timedelta(days=grace_days)


def is_period_late(due_date: date, today: date, grace_days: int = DEFAULT_GRACE_DAYS) -> bool:
    """True once ``today`` is past the due date plus the grace window"""
    return today > grace_end(due_date, grace_days)


def calculate_days_late(due_date: date, today: date, grace_days: int = DEFAULT_GRACE_DAYS) -> int:
    return max(0, (today - grace_end(due_date, grace_days)).days)
