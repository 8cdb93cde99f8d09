from datetime import date, datetime
from typing import Optional

ISO_DATE_FORMAT = "%Y-%m-%d"


def parse_iso_date(value) -> Optional[date]:
    """Parse a YYYY-MM-DD string; dates pass through, blanks become None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value).strip(), ISO_DATE_FORMAT).date()


def format_iso_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None
