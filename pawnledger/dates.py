"""Date coercion shared by the calculator, the ledger and the storage layer."""
import math
from datetime import date, datetime, timezone

from dateutil import parser as date_parser

from pawnledger.config import DATETIME_FORMAT_STORAGE, MONEY_EPSILON
from pawnledger.exceptions import InvalidInputError


def parse_datetime(value, field="date"):
    """Coerce a datetime, date or ISO 8601 string into a naive datetime.
    
    Aware datetimes are converted to UTC before the tzinfo is dropped so
    that every stored timestamp compares on the same clock.
    
    Raises:
        InvalidInputError: If the value is missing or cannot be parsed.
    """
    if value is None:
        raise InvalidInputError(f"{field} is required", field, value)
    
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        if not value.strip():
            raise InvalidInputError(f"{field} is required", field, value)
        try:
            dt = date_parser.isoparse(value.strip())
        except (ValueError, OverflowError) as e:
            raise InvalidInputError(f"Invalid {field}: {value!r} ({e})", field, value)
    else:
        raise InvalidInputError(f"Invalid {field}: {value!r}", field, value)
    
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def format_datetime(value):
    """Render a datetime in the storage format; None stays None."""
    if value is None:
        return None
    return value.strftime(DATETIME_FORMAT_STORAGE)


def parse_amount(value, field="amount", allow_zero=True):
    """Validate a money amount: numeric, finite and non-negative."""
    if value is None or isinstance(value, bool):
        raise InvalidInputError(f"{field} must be a number", field, value)
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{field} must be a number", field, value)
    if not math.isfinite(amount):
        raise InvalidInputError(f"{field} must be finite", field, value)
    if amount < 0:
        raise InvalidInputError(f"{field} cannot be negative", field, value)
    if not allow_zero and amount == 0:
        raise InvalidInputError(f"{field} must be greater than zero", field, value)
    return amount


def round_money(value):
    """Round to two decimals, snapping float dust to zero."""
    value = round(value, 2)
    if abs(value) < MONEY_EPSILON:
        value = 0.0
    return value
