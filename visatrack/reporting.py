"""Fold per-country statuses into dashboard rows and render them as HTML."""
from collections import Counter
from datetime import date
from pathlib import Path
from typing import Iterable, Mapping, Sequence

from bs4 import BeautifulSoup
from jinja2 import Environment, FileSystemLoader, select_autoescape

from .conflicts import generate_conflict_summary
from .models import Conflict, CountrySummary, DashboardSummary, PassportWarning, VisaStatus

TEMPLATES_DIR = Path(__file__).resolve().parent / 'templates'

_LEVEL_RANK = {'exceeded': 0, 'critical': 1, 'warning': 2, 'unknown': 3, 'safe': 4}


def _country_summary(status: VisaStatus) -> CountrySummary:
    return CountrySummary(
        country_code=status.country_code,
        level=status.level,
        days_used=status.days_used,
        days_remaining=status.days_remaining,
        max_days=status.total_allowed_days,
        reset_type=status.rule.reset_type if status.rule else None,
        window_start=status.window_start,
        window_end=status.window_end,
        next_reset_date=status.next_reset_date,
        warning_message=status.warning_message,
        ongoing=bool(status.ongoing_stays),
    )


def summarize_statuses(statuses: Mapping[str, VisaStatus] | Iterable[VisaStatus],
                       reference_date: date | None = None, unattributed_stays: int = 0) -> DashboardSummary:
    """Most urgent countries first; ties broken by days used, then country code.

    unattributed_stays are records without a country code; they are added to skipped_stays.
    """
    if isinstance(statuses, Mapping):
        statuses = statuses.values()
    statuses = list(statuses)
    rows = sorted(
        (_country_summary(s) for s in statuses),
        key=lambda row: (_LEVEL_RANK[row.level], -row.days_used, row.country_code),
    )
    return DashboardSummary(
        reference_date=reference_date or date.today(),
        countries=rows,
        level_counts=dict(Counter(row.level for row in rows)),
        overstayed=[s.country_code for s in statuses if s.is_overstayed],
        unknown_rules=[s.country_code for s in statuses if s.is_unknown],
        total_days_used=sum(row.days_used for row in rows),
        skipped_stays=sum(s.skipped_stays for s in statuses) + unattributed_stays,
    )


def render_status_report(summary: DashboardSummary, conflicts: Sequence[Conflict] = (),
                         passport: PassportWarning | None = None, generated_for: str | None = None) -> str:
    env = Environment(loader=FileSystemLoader(str(TEMPLATES_DIR)), autoescape=select_autoescape(['html', 'xml', 'j2']))
    tpl = env.get_template('status_report.html.j2')
    rendered = tpl.render(
        summary=summary,
        conflicts=conflicts,
        conflict_summary=generate_conflict_summary(conflicts),
        passport=passport,
        generated_for=generated_for,
    )
    soup = BeautifulSoup(rendered, 'lxml')
    return soup.prettify()
