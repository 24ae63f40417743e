"""Visa-day accounting.

One pure function per reset type (exit / rolling / calendar), picked by a
single dispatch table. Nothing here reads the clock except when a caller
omits the reference date; everything else flows in through CalculationContext.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Callable, Iterable, Sequence

from ..dates import calendar_period, days_between_inclusive, has_invalid_dates, intersect, parse_date, shift, \
    stay_interval
from ..models import CalculationContext, Interval, StatusLevel, Stay, StayValidation, VisaRule, VisaStatus
from ..rules.repository import RuleLookup, RuleRepository, as_rule_lookup, normalize_code

Rules = RuleRepository | Sequence[VisaRule] | RuleLookup


@dataclass(slots=True)
class _Usage:
    days_used: int
    relevant_stays: list[Stay] = field(default_factory=list)
    window: Interval | None = None
    next_reset_date: date | None = None


# ---------------- input hygiene -----------------
def _ensure_stay_list(stays) -> None:
    if not isinstance(stays, (list, tuple)):
        raise TypeError(f"stays must be a list of Stay, got {type(stays).__name__}")


def _is_malformed(stay: Stay) -> bool:
    return not getattr(stay, 'id', None) or normalize_code(getattr(stay, 'country_code', None)) is None


def _split_country_stays(country_code: str, stays: Iterable[Stay]) -> tuple[list[Stay], int]:
    """Usable stays of one country plus the number of its records dropped for bad data."""
    usable: list[Stay] = []
    skipped = 0
    for stay in stays:
        if normalize_code(getattr(stay, 'country_code', None)) != country_code:
            continue
        if _is_malformed(stay) or has_invalid_dates(stay):
            logging.debug('Skipping stay %r in %s: missing id or invalid dates', getattr(stay, 'id', None),
                          country_code)
            skipped += 1
            continue
        usable.append(stay)
    return usable, skipped


def _started_intervals(stays: Iterable[Stay], reference_date: date) -> list[tuple[Stay, Interval]]:
    pairs = []
    for stay in stays:
        interval = stay_interval(stay, reference_date)
        if interval is not None and interval.start <= reference_date:
            pairs.append((stay, interval))
    pairs.sort(key=lambda pair: pair[1].start)
    return pairs


def _sum_window_overlaps(stays: Iterable[Stay], window: Interval,
                         reference_date: date) -> tuple[_Usage, date | None]:
    """Usage inside window plus the earliest day that was counted."""
    usage = _Usage(days_used=0, window=window)
    earliest_counted: date | None = None
    for stay in stays:
        overlap = intersect(stay_interval(stay, reference_date), window)
        if overlap is None:
            continue
        usage.days_used += overlap.days
        usage.relevant_stays.append(stay)
        if earliest_counted is None or overlap.start < earliest_counted:
            earliest_counted = overlap.start
    usage.relevant_stays.sort(key=lambda s: parse_date(s.entry_date))
    return usage, earliest_counted


# ---------------- reset type variants -----------------
def _exit_usage(stays: list[Stay], rule: VisaRule, reference_date: date) -> _Usage:
    """Only the current uninterrupted presence counts; leaving the country resets the allowance."""
    started = _started_intervals(stays, reference_date)
    if not started:
        return _Usage(days_used=0)
    current_stay, current = started[-1]
    run_start, run_end = current.start, current.end
    run = [current_stay]
    for stay, interval in reversed(started[:-1]):
        # overlapping records of the same country describe one presence
        if interval.end >= run_start:
            run_start = min(run_start, interval.start)
            run_end = max(run_end, interval.end)
            run.insert(0, stay)
    next_reset = None if any(stay.is_ongoing for stay in run) else shift(run_end, 1)
    return _Usage(days_used=days_between_inclusive(run_start, run_end), relevant_stays=run,
                  next_reset_date=next_reset)


def _rolling_usage(stays: list[Stay], rule: VisaRule, reference_date: date) -> _Usage:
    window = Interval(shift(reference_date, -rule.period_days + 1), reference_date)
    usage, earliest_counted = _sum_window_overlaps(stays, window, reference_date)
    if earliest_counted is not None:
        # the earliest counted day leaves the window period_days later
        usage.next_reset_date = shift(earliest_counted, rule.period_days)
    return usage


def _calendar_usage(stays: list[Stay], rule: VisaRule, reference_date: date) -> _Usage:
    window = calendar_period(reference_date, rule.period_months)
    usage, _ = _sum_window_overlaps(stays, window, reference_date)
    usage.next_reset_date = shift(window.end, 1)
    return usage


_USAGE_BY_RESET_TYPE: dict[str, Callable[[list[Stay], VisaRule, date], _Usage]] = {
    'exit': _exit_usage,
    'rolling': _rolling_usage,
    'calendar': _calendar_usage,
}


# ---------------- status helpers -----------------
def status_level(days_used: int, max_days: int, warning_ratio: float = 0.7,
                 critical_ratio: float = 0.9) -> StatusLevel:
    if days_used > max_days:
        return 'exceeded'
    if max_days <= 0:
        return 'safe'
    ratio = days_used / max_days
    if ratio >= critical_ratio:
        return 'critical'
    if ratio >= warning_ratio:
        return 'warning'
    return 'safe'


def warning_message(days_used: int, days_remaining: int, rule: VisaRule) -> str | None:
    if days_used > rule.max_days:
        return f"Visa limit exceeded by {days_used - rule.max_days} days"
    if days_remaining <= 7:
        return f"Only {days_remaining} days remaining"
    if days_remaining <= 30:
        return f"{days_remaining} days remaining - plan exit soon"
    return None


def _resolve_visa_type(stays: list[Stay], context: CalculationContext) -> str | None:
    if context.visa_type:
        return context.visa_type
    typed = [s for s in stays if s.visa_type]
    if not typed:
        return None
    return max(typed, key=lambda s: parse_date(s.entry_date)).visa_type


def _unknown_status(country_code: str, stays: list[Stay], skipped: int, reference_date: date,
                    context: CalculationContext) -> VisaStatus:
    started = _started_intervals(stays, reference_date)
    logging.warning('No visa rule found for %s (nationality %s)', country_code, context.nationality)
    return VisaStatus(
        country_code=country_code,
        nationality=context.nationality,
        rule=None,
        days_used=sum(interval.days for _, interval in started),
        days_remaining=None,
        total_allowed_days=None,
        level='unknown',
        warning_message=f"No visa rules found for {context.nationality or 'unknown nationality'} -> {country_code}",
        relevant_stays=[stay for stay, _ in started],
        ongoing_stays=[s for s in stays if s.is_ongoing],
        skipped_stays=skipped,
    )


# ---------------- public API -----------------
def count_unattributed_stays(stays: Sequence[Stay]) -> int:
    """Records that belong to no country and so never show up in a VisaStatus."""
    return sum(1 for stay in stays if normalize_code(getattr(stay, 'country_code', None)) is None)


def calculate_visa_status(country_code: str, stays: Sequence[Stay], rules: Rules,
                          context: CalculationContext | None = None) -> VisaStatus:
    """Day usage of one country against its resolved visa rule."""
    _ensure_stay_list(stays)
    lookup = as_rule_lookup(rules)
    context = context or CalculationContext()
    reference_date = context.reference_date or date.today()
    country_code = normalize_code(country_code) or ''

    country_stays, skipped = _split_country_stays(country_code, stays)
    rule = lookup(country_code, _resolve_visa_type(country_stays, context), context.nationality)
    if rule is None:
        return _unknown_status(country_code, country_stays, skipped, reference_date, context)

    calculate_usage = _USAGE_BY_RESET_TYPE.get(rule.reset_type)
    if calculate_usage is None:
        raise ValueError(f"Unsupported reset type {rule.reset_type!r} for {country_code}")
    usage = calculate_usage(country_stays, rule, reference_date)

    days_remaining = rule.max_days - usage.days_used
    return VisaStatus(
        country_code=country_code,
        nationality=context.nationality,
        rule=rule,
        days_used=usage.days_used,
        days_remaining=days_remaining,
        total_allowed_days=rule.max_days,
        level=status_level(usage.days_used, rule.max_days, context.warning_ratio, context.critical_ratio),
        is_overstayed=days_remaining < 0,
        window_start=usage.window.start if usage.window else None,
        window_end=usage.window.end if usage.window else None,
        next_reset_date=usage.next_reset_date,
        warning_message=warning_message(usage.days_used, days_remaining, rule),
        relevant_stays=usage.relevant_stays,
        ongoing_stays=[s for s in country_stays if s.is_ongoing],
        skipped_stays=skipped,
    )


def calculate_all_visa_statuses(stays: Sequence[Stay], rules: Rules,
                                context: CalculationContext | None = None) -> dict[str, VisaStatus]:
    """Statuses for every country present in stays, in order of first appearance."""
    _ensure_stay_list(stays)
    lookup = as_rule_lookup(rules)
    context = context or CalculationContext()
    # pin "today" once so every country is evaluated against the same day
    if context.reference_date is None:
        context = replace(context, reference_date=date.today())

    grouped: dict[str, list[Stay]] = defaultdict(list)
    for stay in stays:
        country_code = normalize_code(getattr(stay, 'country_code', None))
        if country_code is None:
            logging.debug('Skipping stay %r without country code', getattr(stay, 'id', None))
            continue
        grouped[country_code].append(stay)
    unattributed = count_unattributed_stays(stays)
    if unattributed:
        logging.warning('%d stay record(s) without country code left out of the statuses', unattributed)
    return {country: calculate_visa_status(country, country_stays, lookup, context)
            for country, country_stays in grouped.items()}


def validate_new_stay(new_stay: Stay, existing_stays: Sequence[Stay], rules: Rules,
                      context: CalculationContext | None = None) -> StayValidation:
    """Project the status of new_stay's country as if the stay were recorded.

    A candidate with an exit date after the reference date is projected at that exit
    date, so planned trips are checked against the day they end.
    """
    _ensure_stay_list(existing_stays)
    if not normalize_code(new_stay.country_code) or parse_date(new_stay.entry_date) is None:
        return StayValidation(is_valid=False, message='Country and entry date are required')
    if has_invalid_dates(new_stay):
        return StayValidation(is_valid=False, message='Exit date must not be before entry date')

    context = context or CalculationContext()
    reference_date = context.reference_date or date.today()
    exit_day = parse_date(new_stay.exit_date)
    if exit_day is not None and exit_day > reference_date:
        reference_date = exit_day
    candidate = replace(new_stay, id=new_stay.id or 'candidate')
    projected = calculate_visa_status(candidate.country_code, [*existing_stays, candidate], rules,
                                      replace(context, reference_date=reference_date))

    if projected.rule is None:
        return StayValidation(is_valid=True, message=projected.warning_message, projected_status=projected)
    if projected.level == 'exceeded':
        return StayValidation(
            is_valid=False,
            message=f"This stay would exceed visa limit by {abs(projected.days_remaining)} days",
            projected_status=projected,
        )
    if projected.level == 'critical':
        percentage = round(projected.usage_ratio * 100)
        return StayValidation(
            is_valid=True,
            message=f"Warning: This stay would use {projected.days_used}/{projected.total_allowed_days} days "
                    f"({percentage}%)",
            projected_status=projected,
        )
    return StayValidation(is_valid=True, projected_status=projected)
