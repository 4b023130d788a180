"""Simple-interest calculator for PawnLedger.

Interest accrues linearly on a principal at a monthly percentage rate,
converted to a daily rate over a fixed 30-day month. Each call computes the
whole window from scratch; nothing compounds.
"""
import math

from pawnledger.config import DAYS_PER_MONTH
from pawnledger.data_structures import InterestQuote
from pawnledger.dates import parse_datetime, parse_amount
from pawnledger.exceptions import InvalidInputError

SECONDS_PER_DAY = 24 * 60 * 60


def round_half_up(value):
    """Round to the nearest whole unit, halves away from zero."""
    if value < 0:
        return -round_half_up(-value)
    return int(math.floor(value + 0.5))


def daily_rate_for(monthly_rate_percent):
    return monthly_rate_percent / DAYS_PER_MONTH


def elapsed_days(from_date, to_date):
    """Whole calendar days between two datetimes, floored; never negative."""
    seconds = (to_date - from_date).total_seconds()
    return max(0, math.floor(seconds / SECONDS_PER_DAY))


def interest_breakdown(principal, monthly_rate_percent, from_date, to_date) -> InterestQuote:
    """Compute interest over ``[from_date, to_date]`` with its derived figures.
    
    Args:
        principal: Principal the interest accrues on.
        monthly_rate_percent: Monthly rate in percent (2 means 2% a month).
        from_date: Start of the accrual window.
        to_date: End of the accrual window.
        
    Returns:
        InterestQuote. Interest is 0 when the window is empty or reversed.
        
    Raises:
        InvalidInputError: If any argument is missing or malformed.
    """
    principal = parse_amount(principal, 'principal')
    monthly_rate = parse_amount(monthly_rate_percent, 'monthly_rate_percent')
    start = parse_datetime(from_date, 'from_date')
    end = parse_datetime(to_date, 'to_date')

    days = elapsed_days(start, end)
    daily_rate = daily_rate_for(monthly_rate)
    interest = 0
    if days > 0:
        raw = principal * daily_rate * days / 100
        if not math.isfinite(raw):
            raise InvalidInputError("Interest is out of range", 'principal', principal)
        interest = round_half_up(raw)

    return InterestQuote(
        principal=principal,
        monthly_rate=monthly_rate,
        daily_rate=daily_rate,
        days=days,
        interest=interest,
        from_date=start,
        to_date=end,
    )


def compute_interest(principal, monthly_rate_percent, from_date, to_date) -> int:
    """Interest owed on ``principal`` for the window, as a whole amount."""
    return interest_breakdown(principal, monthly_rate_percent, from_date, to_date).interest


def quote_interest(amount, from_date, to_date, monthly_rate_percent) -> InterestQuote:
    """Strict quoting variant: the window must run strictly forward and the rate be positive.
    
    Raises:
        InvalidInputError: If ``to_date`` is not after ``from_date`` or the rate is not positive.
    """
    start = parse_datetime(from_date, 'from_date')
    end = parse_datetime(to_date, 'to_date')
    if end <= start:
        raise InvalidInputError("End date must be after start date", 'to_date', to_date)
    rate = parse_amount(monthly_rate_percent, 'monthly_rate_percent', allow_zero=False)
    return interest_breakdown(amount, rate, start, end)
