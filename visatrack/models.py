from dataclasses import dataclass, field
from datetime import date
from typing import Literal, TypeAlias

ResetType: TypeAlias = Literal["exit", "rolling", "calendar"]
StatusLevel: TypeAlias = Literal["safe", "warning", "critical", "exceeded", "unknown"]
ConflictKind: TypeAlias = Literal["overlap", "duplicate"]
ConflictSeverity: TypeAlias = Literal["critical", "warning"]

RESET_TYPES: tuple[str, ...] = ("exit", "rolling", "calendar")


@dataclass(slots=True)
class Stay:
    """Single border-crossing record: time spent in one country.

    entry_date / exit_date keep whatever the store handed over (ISO strings or dates);
    they are parsed lazily so that a bad record never breaks a whole calculation.
    A missing exit_date means the traveler is still in the country.
    auto_resolved / original_exit_date / resolution_reason are filled by the conflict resolver.
    """
    id: str
    country_code: str
    entry_date: str | date | None
    exit_date: str | date | None = None
    from_country: str | None = None
    entry_city: str | None = None
    exit_city: str | None = None
    visa_type: str | None = None
    notes: str | None = None
    auto_resolved: bool = False
    original_exit_date: str | None = None
    resolution_reason: str | None = None

    @property
    def is_ongoing(self) -> bool:
        return self.exit_date is None or self.exit_date == ''


@dataclass(frozen=True, slots=True)
class VisaRule:
    """Stay policy for one destination, optionally narrowed to a visa type or a passport nationality.

    period_days sizes the rolling window; period_months sizes calendar blocks (aligned to January 1st).
    extension_days is informational only and never added to max_days by the engine.
    """
    country_code: str
    max_days: int
    period_days: int
    reset_type: ResetType
    extension_days: int | None = None
    description: str | None = None
    visa_type: str | None = None
    nationality: str | None = None
    period_months: int = 12

    @property
    def allowance_with_extension(self) -> int:
        return self.max_days + (self.extension_days or 0)


@dataclass(frozen=True, slots=True)
class Interval:
    """Closed calendar-day interval [start, end]."""
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


@dataclass(slots=True)
class CalculationContext:
    reference_date: date | None = None
    nationality: str | None = None
    visa_type: str | None = None
    warning_ratio: float = 0.7
    critical_ratio: float = 0.9


@dataclass(slots=True)
class VisaStatus:
    """Computed day usage for one country.

    rule is None when no rule could be resolved; level is then 'unknown' and
    days_remaining / total_allowed_days are None. window_start / window_end are
    only set for rolling and calendar rules. skipped_stays counts records of this
    country excluded because of missing or unparseable dates.
    """
    country_code: str
    nationality: str | None
    rule: VisaRule | None
    days_used: int
    days_remaining: int | None
    total_allowed_days: int | None
    level: StatusLevel
    is_overstayed: bool = False
    window_start: date | None = None
    window_end: date | None = None
    next_reset_date: date | None = None
    warning_message: str | None = None
    relevant_stays: list[Stay] = field(default_factory=list)
    ongoing_stays: list[Stay] = field(default_factory=list)
    skipped_stays: int = 0

    @property
    def is_unknown(self) -> bool:
        return self.rule is None

    @property
    def usage_ratio(self) -> float | None:
        if self.rule is None or self.rule.max_days <= 0:
            return None
        return self.days_used / self.rule.max_days


@dataclass(slots=True)
class StayValidation:
    is_valid: bool
    message: str | None = None
    projected_status: VisaStatus | None = None


@dataclass(frozen=True, slots=True)
class Conflict:
    """Two stays claiming the same calendar days.

    earlier / later are ordered by entry date; overlap is the shared interval.
    """
    kind: ConflictKind
    earlier: Stay
    later: Stay
    overlap: Interval
    severity: ConflictSeverity
    description: str
    suggested_resolution: str

    @property
    def overlap_days(self) -> int:
        return self.overlap.days


@dataclass(slots=True)
class ResolutionCheck:
    is_valid: bool
    remaining_conflicts: list[Conflict]
    summary: str


@dataclass(frozen=True, slots=True)
class PassportWarning:
    kind: Literal["expired", "critical", "expiring", "ok"]
    message: str
    severity: Literal["error", "warning", "info", "success"]
    days_until_expiry: int | None


@dataclass(frozen=True, slots=True)
class CountrySummary:
    country_code: str
    level: StatusLevel
    days_used: int
    days_remaining: int | None
    max_days: int | None
    reset_type: ResetType | None
    window_start: date | None
    window_end: date | None
    next_reset_date: date | None
    warning_message: str | None
    ongoing: bool


@dataclass(slots=True)
class DashboardSummary:
    reference_date: date
    countries: list[CountrySummary] = field(default_factory=list)
    level_counts: dict[str, int] = field(default_factory=dict)
    overstayed: list[str] = field(default_factory=list)
    unknown_rules: list[str] = field(default_factory=list)
    total_days_used: int = 0
    skipped_stays: int = 0

    @property
    def has_overstay(self) -> bool:
        return bool(self.overstayed)
