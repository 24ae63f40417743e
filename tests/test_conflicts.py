from datetime import date

import pytest

from visatrack.conflicts import auto_resolve_conflicts, detect_date_conflicts, generate_conflict_summary, \
    manual_resolution_suggestions, validate_resolution
from visatrack.models import Interval, Stay

REF = date(2024, 6, 1)


def _stay(stay_id, country, entry, exit_date=None):
    return Stay(id=stay_id, country_code=country, entry_date=entry, exit_date=exit_date)


def test_overlap_between_countries_is_critical():
    stays = [_stay('us', 'US', '2024-05-01', '2024-05-10'), _stay('fr', 'FR', '2024-05-05', '2024-05-15')]
    conflicts = detect_date_conflicts(stays, REF)

    assert len(conflicts) == 1
    conflict = conflicts[0]
    assert conflict.kind == 'overlap'
    assert conflict.severity == 'critical'
    assert conflict.overlap == Interval(date(2024, 5, 5), date(2024, 5, 10))
    assert conflict.overlap_days == 6
    assert (conflict.earlier.id, conflict.later.id) == ('us', 'fr')


def test_same_day_transit_is_a_warning():
    stays = [_stay('1', 'KR', '2024-05-01', '2024-05-10'), _stay('2', 'JP', '2024-05-10', '2024-05-20')]
    conflicts = detect_date_conflicts(stays, REF)

    assert len(conflicts) == 1
    assert conflicts[0].severity == 'warning'
    assert conflicts[0].overlap_days == 1


def test_adjacent_stays_do_not_conflict():
    stays = [_stay('1', 'KR', '2024-05-01', '2024-05-09'), _stay('2', 'JP', '2024-05-10', '2024-05-20')]
    assert detect_date_conflicts(stays, REF) == []


def test_same_country_duplicates_are_reported():
    stays = [_stay('1', 'KR', '2024-05-01', '2024-05-10'), _stay('2', 'KR', '2024-05-01', '2024-05-10')]
    conflicts = detect_date_conflicts(stays, REF)
    assert [c.kind for c in conflicts] == ['duplicate']
    assert conflicts[0].severity == 'critical'


def test_two_ongoing_stays_are_critical():
    stays = [_stay('1', 'KR', '2024-05-01'), _stay('2', 'JP', '2024-05-20')]
    conflicts = detect_date_conflicts(stays, REF)
    assert len(conflicts) == 1
    assert conflicts[0].severity == 'critical'
    assert conflicts[0].overlap == Interval(date(2024, 5, 20), REF)


def test_ongoing_stay_overlapping_a_closed_trip_is_a_warning():
    stays = [_stay('1', 'KR', '2024-05-01'), _stay('2', 'JP', '2024-05-05', '2024-05-10')]
    conflicts = detect_date_conflicts(stays, REF)
    assert len(conflicts) == 1
    assert conflicts[0].severity == 'warning'


def test_malformed_records_do_not_take_part():
    stays = [
        _stay('1', 'KR', '2024-05-01', '2024-05-10'),
        _stay('2', '', '2024-05-01', '2024-05-10'),
        _stay('3', 'JP', None),
        _stay('4', 'JP', 'garbage', '2024-05-04'),
        _stay('5', None, '2024-05-02'),
    ]
    assert detect_date_conflicts(stays, REF) == []
    assert auto_resolve_conflicts(stays, REF) == stays


def test_non_list_input_is_a_programmer_error():
    with pytest.raises(TypeError):
        detect_date_conflicts({'id': '1'}, REF)


def test_auto_resolve_trims_earlier_stay():
    stays = [_stay('us', 'US', '2024-05-01', '2024-05-10'), _stay('fr', 'FR', '2024-05-05', '2024-05-15')]
    resolved = auto_resolve_conflicts(stays, REF)

    assert [s.id for s in resolved] == ['us', 'fr']
    assert resolved[0].exit_date == '2024-05-04'
    assert resolved[0].auto_resolved
    assert resolved[0].original_exit_date == '2024-05-10'
    assert 'FR' in resolved[0].resolution_reason
    assert resolved[1] is stays[1]
    # input is not mutated
    assert stays[0].exit_date == '2024-05-10'


def test_auto_resolve_closes_ongoing_stay():
    stays = [_stay('kr', 'KR', '2024-01-01'), _stay('jp', 'JP', '2024-02-01', '2024-02-10')]
    resolved = auto_resolve_conflicts(stays, date(2024, 3, 1))

    assert resolved[0].exit_date == '2024-01-31'
    assert resolved[0].original_exit_date is None
    assert resolved[1] is stays[1]


def test_auto_resolve_drops_stay_with_nothing_left():
    stays = [_stay('a', 'KR', '2024-05-01', '2024-05-10'), _stay('b', 'KR', '2024-05-01', '2024-05-12')]
    resolved = auto_resolve_conflicts(stays, REF)
    assert [s.id for s in resolved] == ['b']


def test_auto_resolve_is_idempotent_and_leaves_no_critical_conflicts():
    stays = [
        _stay('1', 'TH', '2024-04-20', '2024-05-03'),
        _stay('2', 'US', '2024-05-01', '2024-05-10'),
        _stay('3', 'FR', '2024-05-05', '2024-05-15'),
        _stay('4', 'FR', '2024-05-05', '2024-05-06'),
        _stay('5', 'DE', '2024-05-15', '2024-05-20'),
        _stay('6', 'KR', '2024-05-18'),
        _stay('7', 'JP', '2024-03-01', '2024-03-10'),
        _stay('8', '', '2024-05-01'),
    ]
    once = auto_resolve_conflicts(stays, REF)
    twice = auto_resolve_conflicts(once, REF)

    assert twice == once
    assert not [c for c in detect_date_conflicts(once, REF) if c.severity == 'critical']
    assert detect_date_conflicts(once, REF) == []
    # unrelated and malformed records survive untouched
    assert stays[6] in once and stays[7] in once


def test_conflict_summary_and_suggestions():
    stays = [
        _stay('1', 'KR', '2024-05-01', '2024-05-10'),
        _stay('2', 'JP', '2024-05-10', '2024-05-20'),
        _stay('3', 'US', '2024-05-15', '2024-05-25'),
    ]
    conflicts = detect_date_conflicts(stays, REF)

    assert generate_conflict_summary([]) == 'No date conflicts detected'
    assert generate_conflict_summary(conflicts) == 'Found 2 conflict(s): 1 critical, 1 warning'
    suggestions = manual_resolution_suggestions(conflicts)
    assert suggestions[0].startswith('WARNING: KR (2024-05-01 -> 2024-05-10) vs JP (2024-05-10 -> 2024-05-20)')
    assert suggestions[1].startswith('CRITICAL: JP')


def test_validate_resolution():
    stays = [_stay('us', 'US', '2024-05-01', '2024-05-10'), _stay('fr', 'FR', '2024-05-05', '2024-05-15')]
    before = validate_resolution(stays, REF)
    after = validate_resolution(auto_resolve_conflicts(stays, REF), REF)

    assert not before.is_valid
    assert len(before.remaining_conflicts) == 1
    assert after.is_valid
    assert after.summary == 'No date conflicts detected'
