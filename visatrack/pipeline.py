"""High-level orchestration: load stays, check conflicts, compute visa statuses, write the report.

Usage patterns:

1. One-off report for today:
   run_pipeline("stays.json", nationality="US")

2. Backtest against another day and store an auto-resolved copy of the stays:
   run_pipeline("stays.json", nationality="US", reference_date="2024-06-20",
                resolve=True, resolved_output="stays.resolved.json")
"""
import argparse
import logging
import time
from datetime import date
from pathlib import Path
from typing import Sequence

import schedule

from visatrack.config import settings
from visatrack.conflicts import auto_resolve_conflicts, detect_date_conflicts, generate_conflict_summary
from visatrack.dates import parse_date
from visatrack.emailer import send_email
from visatrack.engine.calculator import calculate_all_visa_statuses, count_unattributed_stays
from visatrack.logging_config import setup_logging
from visatrack.models import CalculationContext
from visatrack.passport import check_passport_expiry
from visatrack.reporting import render_status_report, summarize_statuses
from visatrack.rules.repository import RuleRepository, load_default_rules
from visatrack.storage import load_stays, save_stays


def _resolve_reference_date(reference_date: str | date | None) -> date:
    if reference_date is None:
        return date.today()
    parsed = parse_date(reference_date)
    if parsed is None:
        raise ValueError(f"Invalid reference date {reference_date!r}, expected YYYY-MM-DD")
    return parsed


def run_pipeline(
        stays_file: Path | str,
        nationality: str | None = None,
        reference_date: str | date | None = None,
        rules_file: Path | str | None = None,
        visa_type: str | None = None,
        resolve: bool = False,
        resolved_output: Path | str | None = None,
        passport_expiry: str | None = None,
        output_html: Path | str | None = None,
        email: bool = False,
) -> Path:
    reference_day = _resolve_reference_date(reference_date)
    rules = RuleRepository.from_json(rules_file) if rules_file else load_default_rules()
    stays = load_stays(stays_file)

    conflicts = detect_date_conflicts(stays, reference_day)
    logging.info(generate_conflict_summary(conflicts))
    if resolve and conflicts:
        stays = auto_resolve_conflicts(stays, reference_day)
        conflicts = detect_date_conflicts(stays, reference_day)
        if resolved_output:
            save_stays(resolved_output, stays)

    context = CalculationContext(reference_date=reference_day, nationality=nationality, visa_type=visa_type)
    logging.info(f"Calculating visa statuses for {reference_day.isoformat()} (nationality: {nationality})")
    statuses = calculate_all_visa_statuses(stays, rules, context)
    summary = summarize_statuses(statuses, reference_day, unattributed_stays=count_unattributed_stays(stays))
    if summary.skipped_stays:
        logging.warning(f"{summary.skipped_stays} stay record(s) skipped because of missing country or invalid dates")
    for country in summary.overstayed:
        logging.warning(f"Overstay detected in {country}")

    passport = check_passport_expiry(passport_expiry, reference_day) if passport_expiry else None
    html = render_status_report(summary, conflicts, passport, generated_for=nationality)
    output_path = Path(output_html) if output_html else settings.output_html
    output_path.write_text(html, encoding="utf-8")
    logging.info(f"Output written to {output_path}")

    if email:
        send_email(subject=f"Visa status {reference_day.isoformat()}", html_body=html)

    return output_path


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Visa day usage report")
    p.add_argument("--stays", default=str(settings.stays_file), help="JSON or CSV file with stay records")
    p.add_argument("--rules", default=str(settings.rules_file) if settings.rules_file else None,
                   help="JSON visa rules file (bundled rules when omitted)")
    p.add_argument("--nationality", default=settings.nationality, help="Passport nationality, e.g. US")
    p.add_argument("--visa-type", default=None, help="Visa type applied to every country, e.g. long-term-resident")
    p.add_argument("--reference-date", default=settings.reference_date, help="YYYY-MM-DD, defaults to today")
    p.add_argument("--resolve", action="store_true", help="Auto-resolve overlapping stays before calculating")
    p.add_argument("--resolved-output", help="Where to save the auto-resolved stays (JSON)")
    p.add_argument("--passport-expiry", default=settings.passport_expiry, help="YYYY-MM-DD")
    p.add_argument("--output", default=str(settings.output_html), help="HTML report path")
    p.add_argument("--email", action="store_true", help="Send email if credentials configured")
    p.add_argument("--log-level", default="INFO")
    p.add_argument(
        "--schedule-at",
        metavar="HH:MM",
        default=None,
        help="Run the report every day at the given time (e.g. 08:00). "
             "Without this flag the report runs once and exits.",
    )
    return p


def main_cli(argv: Sequence[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    pipeline_kwargs = dict(
        stays_file=args.stays,
        nationality=args.nationality,
        rules_file=args.rules,
        visa_type=args.visa_type,
        resolve=args.resolve,
        resolved_output=args.resolved_output,
        passport_expiry=args.passport_expiry,
        output_html=args.output,
        email=args.email,
    )

    if args.schedule_at:
        def _run() -> None:
            # scheduled runs always report on the day they run
            try:
                run_pipeline(**pipeline_kwargs)
            except Exception:  # noqa: BLE001
                logging.exception("Pipeline failed")

        logging.info(f"Scheduler started – report will run every day at {args.schedule_at}")
        _run()
        schedule.every().day.at(args.schedule_at).do(_run)
        while True:
            try:
                schedule.run_pending()
            except Exception:  # noqa: BLE001
                logging.exception("Scheduler error:")
                time.sleep(60 * 60)
            time.sleep(1)
    else:
        try:
            run_pipeline(reference_date=args.reference_date, **pipeline_kwargs)
        except Exception:  # noqa: BLE001
            logging.exception("Pipeline failed")
            return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main_cli())
