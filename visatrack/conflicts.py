"""Detection and deterministic resolution of physically impossible stay records.

A traveler cannot be in two countries on the same day, and one country should
not be recorded twice for the same days. Records without a country code or a
usable date interval do not take part.
"""
import logging
from dataclasses import replace
from datetime import date
from typing import Sequence

from .dates import has_invalid_dates, intersect, shift, stay_interval
from .models import Conflict, ConflictSeverity, Interval, ResolutionCheck, Stay
from .rules.repository import normalize_code

Participant = tuple[int, Stay, Interval]


def _participants(stays: Sequence[Stay], reference_date: date) -> list[Participant]:
    if not isinstance(stays, (list, tuple)):
        raise TypeError(f"stays must be a list of Stay, got {type(stays).__name__}")
    participants: list[Participant] = []
    for index, stay in enumerate(stays):
        if normalize_code(getattr(stay, 'country_code', None)) is None or has_invalid_dates(stay):
            continue
        interval = stay_interval(stay, reference_date)
        if interval is None:
            continue
        participants.append((index, stay, interval))
    participants.sort(key=lambda p: (p[2].start, p[0]))
    return participants


def _describe(stay: Stay) -> str:
    exit_part = stay.exit_date if not stay.is_ongoing else 'ongoing'
    return f"{stay.country_code} ({stay.entry_date} -> {exit_part})"


def _is_same_day_transit(earlier: Stay, earlier_interval: Interval, later_interval: Interval,
                         overlap: Interval) -> bool:
    return not earlier.is_ongoing and overlap.days == 1 and earlier_interval.end == later_interval.start


def _severity(earlier: Stay, later: Stay, earlier_interval: Interval, later_interval: Interval,
              overlap: Interval, reference_date: date) -> ConflictSeverity:
    if _is_same_day_transit(earlier, earlier_interval, later_interval, overlap):
        return 'warning'
    if not earlier.is_ongoing and not later.is_ongoing:
        return 'critical'
    # an open stay is only certainly wrong when both records claim the present
    return 'critical' if overlap.end >= reference_date else 'warning'


def _build_conflict(earlier: Participant, later: Participant, overlap: Interval, reference_date: date) -> Conflict:
    _, earlier_stay, earlier_interval = earlier
    _, later_stay, later_interval = later
    severity = _severity(earlier_stay, later_stay, earlier_interval, later_interval, overlap, reference_date)
    same_country = normalize_code(earlier_stay.country_code) == normalize_code(later_stay.country_code)
    if same_country:
        description = f"Duplicate stays in {later_stay.country_code} share {overlap.days} day(s)"
        suggestion = 'Merge duplicate entries or remove one'
    elif _is_same_day_transit(earlier_stay, earlier_interval, later_interval, overlap):
        description = (f"Same-day transit from {earlier_stay.country_code} to {later_stay.country_code} "
                       f"on {overlap.start.isoformat()}")
        suggestion = 'Confirm the travel day; it is counted in both countries'
    else:
        description = (f"{earlier_stay.country_code} and {later_stay.country_code} stays overlap "
                       f"for {overlap.days} day(s)")
        suggestion = f"End the {earlier_stay.country_code} stay the day before entering {later_stay.country_code}"
    return Conflict(
        kind='duplicate' if same_country else 'overlap',
        earlier=earlier_stay,
        later=later_stay,
        overlap=overlap,
        severity=severity,
        description=description,
        suggested_resolution=suggestion,
    )


def detect_date_conflicts(stays: Sequence[Stay], reference_date: date | None = None) -> list[Conflict]:
    reference_date = reference_date or date.today()
    participants = _participants(stays, reference_date)
    conflicts: list[Conflict] = []
    for i, earlier in enumerate(participants):
        for later in participants[i + 1:]:
            if later[2].start > earlier[2].end:
                break
            overlap = intersect(earlier[2], later[2])
            if overlap is not None:
                conflicts.append(_build_conflict(earlier, later, overlap, reference_date))
    if conflicts:
        logging.info('Detected %d date conflict(s)', len(conflicts))
    return conflicts


def _as_iso(value: str | date | None) -> str | None:
    if isinstance(value, date):
        return value.isoformat()
    return value or None


def auto_resolve_conflicts(stays: Sequence[Stay], reference_date: date | None = None) -> list[Stay]:
    """Later entry wins: the earlier stay ends the day before, or is dropped if nothing is left of it.

    Returns new Stay objects for changed records; input order is kept and records that
    cannot take part in conflict analysis are passed through. Idempotent.
    """
    reference_date = reference_date or date.today()
    participants = _participants(stays, reference_date)
    changed: dict[int, Stay | None] = {}
    next_entry: date | None = None
    next_country: str | None = None
    for index, stay, interval in reversed(participants):
        if next_entry is not None and interval.end >= next_entry:
            new_exit = shift(next_entry, -1)
            if new_exit < interval.start:
                logging.info('Dropping stay %s: fully covered by a later %s stay', _describe(stay), next_country)
                changed[index] = None
                continue
            logging.info('Trimming stay %s to end on %s', _describe(stay), new_exit.isoformat())
            changed[index] = replace(
                stay,
                exit_date=new_exit.isoformat(),
                auto_resolved=True,
                original_exit_date=_as_iso(stay.exit_date),
                resolution_reason=f"Automatically ended stay to resolve conflict with {next_country} trip",
            )
        next_entry = interval.start
        next_country = stay.country_code

    resolved: list[Stay] = []
    for index, stay in enumerate(stays):
        if index not in changed:
            resolved.append(stay)
        elif changed[index] is not None:
            resolved.append(changed[index])
    return resolved


def generate_conflict_summary(conflicts: Sequence[Conflict]) -> str:
    if not conflicts:
        return 'No date conflicts detected'
    critical = sum(1 for c in conflicts if c.severity == 'critical')
    warning = len(conflicts) - critical
    parts = []
    if critical:
        parts.append(f"{critical} critical")
    if warning:
        parts.append(f"{warning} warning")
    return f"Found {len(conflicts)} conflict(s): " + ', '.join(parts)


def validate_resolution(stays: Sequence[Stay], reference_date: date | None = None) -> ResolutionCheck:
    remaining = detect_date_conflicts(stays, reference_date)
    return ResolutionCheck(
        is_valid=not any(c.severity == 'critical' for c in remaining),
        remaining_conflicts=remaining,
        summary=generate_conflict_summary(remaining),
    )


def manual_resolution_suggestions(conflicts: Sequence[Conflict]) -> list[str]:
    return [
        f"{c.severity.upper()}: {_describe(c.earlier)} vs {_describe(c.later)} - {c.suggested_resolution}"
        for c in conflicts
    ]
