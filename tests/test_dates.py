from datetime import date, datetime

import pytest

from visatrack.dates import calendar_period, days_between_inclusive, effective_end, has_invalid_dates, intersect, \
    parse_date, stay_interval
from visatrack.models import Interval, Stay


def test_same_day_counts_as_one_day():
    assert days_between_inclusive('2024-03-01', '2024-03-01') == 1
    assert days_between_inclusive(date(2023, 2, 28), date(2023, 2, 28)) == 1


def test_days_between_inclusive_counts_both_ends():
    assert days_between_inclusive('2024-03-01', '2024-03-10') == 10
    # leap day included
    assert days_between_inclusive('2024-02-28', '2024-03-01') == 3


@pytest.mark.parametrize("start, end", [
    ('', '2024-03-10'),
    ('2024-03-01', 'not-a-date'),
    (None, None),
    ('2024-03-10', '2024-03-01'),
])
def test_days_between_inclusive_returns_zero_when_not_computable(start, end):
    assert days_between_inclusive(start, end) == 0


def test_parse_date_accepts_common_shapes():
    assert parse_date('2024-03-10') == date(2024, 3, 10)
    assert parse_date('2024-03-10T00:00:00.000Z') == date(2024, 3, 10)
    assert parse_date('10.03.2024') == date(2024, 3, 10)
    assert parse_date('2024/03/10') == date(2024, 3, 10)
    assert parse_date(datetime(2024, 3, 10, 15, 30)) == date(2024, 3, 10)
    assert parse_date('2024-02-30') is None
    assert parse_date(20240310) is None


def test_effective_end_prefers_exit_date():
    stay = Stay(id='1', country_code='KR', entry_date='2024-03-01', exit_date='2024-03-10')
    assert effective_end(stay, date(2024, 4, 1)) == date(2024, 3, 10)


def test_effective_end_falls_back_to_reference_date():
    ongoing = Stay(id='1', country_code='KR', entry_date='2024-03-01')
    broken_exit = Stay(id='2', country_code='KR', entry_date='2024-03-01', exit_date='31/31/2024')
    assert effective_end(ongoing, date(2024, 3, 20)) == date(2024, 3, 20)
    assert effective_end(broken_exit, date(2024, 3, 20)) == date(2024, 3, 20)


def test_intersect():
    a = Interval(date(2024, 5, 1), date(2024, 5, 10))
    b = Interval(date(2024, 5, 5), date(2024, 5, 15))
    c = Interval(date(2024, 5, 11), date(2024, 5, 12))
    assert intersect(a, b) == Interval(date(2024, 5, 5), date(2024, 5, 10))
    assert intersect(a, b).days == 6
    assert intersect(a, c) is None
    assert intersect(a, None) is None
    assert intersect(a, Interval(date(2024, 5, 10), date(2024, 5, 20))).days == 1


def test_stay_interval_rejects_unusable_stays():
    ref = date(2024, 3, 20)
    assert stay_interval(Stay(id='1', country_code='KR', entry_date='2024-03-01'), ref) == \
        Interval(date(2024, 3, 1), ref)
    assert stay_interval(Stay(id='2', country_code='KR', entry_date='bad'), ref) is None
    assert stay_interval(Stay(id='3', country_code='KR', entry_date='2024-03-10', exit_date='2024-03-01'), ref) is None


def test_has_invalid_dates():
    assert not has_invalid_dates(Stay(id='1', country_code='KR', entry_date='2024-03-01'))
    assert not has_invalid_dates(Stay(id='1', country_code='KR', entry_date='2024-03-01', exit_date=''))
    assert has_invalid_dates(Stay(id='1', country_code='KR', entry_date=None))
    assert has_invalid_dates(Stay(id='1', country_code='KR', entry_date='2024-03-01', exit_date='soon'))
    assert has_invalid_dates(Stay(id='1', country_code='KR', entry_date='2024-03-02', exit_date='2024-03-01'))


@pytest.mark.parametrize("reference, months, expected", [
    (date(2024, 6, 15), 12, Interval(date(2024, 1, 1), date(2024, 12, 31))),
    (date(2024, 6, 15), 6, Interval(date(2024, 1, 1), date(2024, 6, 30))),
    (date(2024, 7, 1), 6, Interval(date(2024, 7, 1), date(2024, 12, 31))),
    (date(2024, 2, 10), 1, Interval(date(2024, 2, 1), date(2024, 2, 29))),
    (date(2024, 12, 5), 5, Interval(date(2024, 11, 1), date(2024, 12, 31))),
])
def test_calendar_period(reference, months, expected):
    assert calendar_period(reference, months) == expected
