from datetime import date

from .dates import parse_date
from .models import PassportWarning

SIX_MONTHS_DAYS = 180


def check_passport_expiry(expiry_date: str | date | None, reference_date: date | None = None) -> PassportWarning:
    expiry = parse_date(expiry_date)
    if expiry is None:
        return PassportWarning('ok', 'No passport expiry date set', 'info', None)

    days_until_expiry = (expiry - (reference_date or date.today())).days
    if days_until_expiry < 0:
        return PassportWarning('expired', 'Passport has expired', 'error', days_until_expiry)
    if days_until_expiry <= 90:
        return PassportWarning('critical',
                               f"Passport expires in {days_until_expiry} days - renewal required urgently",
                               'error', days_until_expiry)
    if days_until_expiry <= 180:
        return PassportWarning('expiring', f"Passport expires in {days_until_expiry} days - consider renewal",
                               'warning', days_until_expiry)
    if days_until_expiry <= 365:
        return PassportWarning('expiring', f"Passport expires in {days_until_expiry} days", 'info',
                               days_until_expiry)
    return PassportWarning('ok', f"Passport valid for {days_until_expiry} days", 'success', days_until_expiry)


def check_passport_validity_for_travel(expiry_date: str | date | None, travel_date: str | date | None = None,
                                       reference_date: date | None = None) -> PassportWarning:
    """Most destinations want six months of passport validity left on the day of travel."""
    expiry = parse_date(expiry_date)
    if expiry is None:
        return PassportWarning('ok', 'No passport expiry date set', 'info', None)

    check_date = parse_date(travel_date) or reference_date or date.today()
    days_until_expiry = (expiry - check_date).days
    if days_until_expiry < 0:
        return PassportWarning('expired', 'Passport expired - cannot travel', 'error', days_until_expiry)
    if days_until_expiry < SIX_MONTHS_DAYS:
        return PassportWarning(
            'critical',
            f"Passport expires in {days_until_expiry} days - may not meet 6-month validity requirement for travel",
            'error', days_until_expiry)
    return PassportWarning('ok', f"Passport valid for travel ({days_until_expiry} days remaining)", 'success',
                           days_until_expiry)
