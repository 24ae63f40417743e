"""Calendar-day arithmetic shared by the engine and the conflict detector.

Every helper here is tolerant: unparseable input yields None / 0 instead of an
exception, so callers decide how to surface bad records.
"""
from datetime import date, datetime, timedelta

from .models import Interval, Stay

DATE_FORMATS = ["%Y-%m-%d", "%Y/%m/%d", "%d.%m.%Y"]


def parse_date(value: str | date | None, formats: list[str] | None = None) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value:
        return None
    # ISO timestamps coming from JS stores carry a time part we do not care about
    if 'T' in value:
        value = value.split('T', 1)[0]
    for date_format in formats or DATE_FORMATS:
        try:
            return datetime.strptime(value, date_format).date()
        except ValueError:
            continue
    return None


def days_between_inclusive(start: str | date | None, end: str | date | None) -> int:
    """Number of calendar days in [start, end], both ends counted.

    Returns 0 when a date cannot be parsed or end precedes start; 0 therefore means
    "could not compute", never a legitimate stay length.
    """
    start_day = parse_date(start)
    end_day = parse_date(end)
    if start_day is None or end_day is None or end_day < start_day:
        return 0
    return (end_day - start_day).days + 1


def effective_end(stay: Stay, reference_date: date | None = None) -> date | None:
    exit_day = parse_date(stay.exit_date)
    if exit_day is not None:
        return exit_day
    return reference_date or date.today()


def intersect(a: Interval | None, b: Interval | None) -> Interval | None:
    if a is None or b is None:
        return None
    start = max(a.start, b.start)
    end = min(a.end, b.end)
    if end < start:
        return None
    return Interval(start, end)


def stay_interval(stay: Stay, reference_date: date | None = None) -> Interval | None:
    """[entry, effective end] of a stay, or None when the stay cannot take part in day counting."""
    entry_day = parse_date(stay.entry_date)
    if entry_day is None:
        return None
    end_day = effective_end(stay, reference_date)
    if end_day is None or end_day < entry_day:
        return None
    return Interval(entry_day, end_day)


def has_invalid_dates(stay: Stay) -> bool:
    """True when entry is unparseable, or an exit is given but unparseable or before entry."""
    entry_day = parse_date(stay.entry_date)
    if entry_day is None:
        return True
    if stay.is_ongoing:
        return False
    exit_day = parse_date(stay.exit_date)
    return exit_day is None or exit_day < entry_day


def calendar_period(reference_date: date, period_months: int = 12) -> Interval:
    """Calendar block containing reference_date; blocks start every period_months from January 1st.

    A block length that does not divide the year is cut at December 31st.
    """
    period_months = min(max(period_months, 1), 12)
    block = (reference_date.month - 1) // period_months
    start_month = block * period_months + 1
    start = date(reference_date.year, start_month, 1)
    next_month = start_month + period_months
    if next_month > 12:
        next_start = date(reference_date.year + 1, 1, 1)
    else:
        next_start = date(reference_date.year, next_month, 1)
    return Interval(start, next_start - timedelta(days=1))


def shift(day: date, days: int) -> date:
    return day + timedelta(days=days)
