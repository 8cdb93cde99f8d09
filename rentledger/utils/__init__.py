from .dates import parse_iso_date, format_iso_date
from .money import ZERO, to_money, format_money
