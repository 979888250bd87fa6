"""Plain data structures shared by the planning engine."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, time
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional

from .utils import month_bounds, round_currency, weekday_code


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    EXCLUDED = "excluded"
    CLOSURE = "closure"
    ADDED = "added"


BILLABLE_STATUSES = frozenset({SessionStatus.SCHEDULED, SessionStatus.ADDED})


@dataclass(frozen=True)
class ScheduleRule:
    day_of_week: int
    start_time: Optional[time] = None
    end_time: Optional[time] = None

    def __post_init__(self) -> None:
        if not 0 <= self.day_of_week <= 6:
            raise ValueError(f"day_of_week must be between 0 and 6, got {self.day_of_week}")


@dataclass(frozen=True)
class ClosureDay:
    date: date
    reason: Optional[str] = None
    class_id: Optional[int] = None
    closure_type: str = "global"


@dataclass(frozen=True, order=True)
class BillingPeriod:
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {self.month}")

    @property
    def first_day(self) -> date:
        return month_bounds(self.year, self.month)[0]

    @property
    def last_day(self) -> date:
        return month_bounds(self.year, self.month)[1]

    def previous(self) -> "BillingPeriod":
        if self.month == 1:
            return BillingPeriod(self.year - 1, 12)
        return BillingPeriod(self.year, self.month - 1)

    def next(self) -> "BillingPeriod":
        if self.month == 12:
            return BillingPeriod(self.year + 1, 1)
        return BillingPeriod(self.year, self.month + 1)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class ClassConfig:
    """Catalog entry of a class as seen by the planner."""

    class_id: int
    name: str
    monthly_fee: int
    sessions_per_month: int
    schedule_rules: tuple[ScheduleRule, ...] = ()
    teacher_id: Optional[int] = None
    color: Optional[str] = None

    @property
    def schedule_days(self) -> list[str]:
        return [weekday_code(day) for day in sorted({r.day_of_week for r in self.schedule_rules})]


@dataclass(frozen=True)
class SessionRecord:
    date: date
    day_of_week: str
    status: SessionStatus
    closure_reason: Optional[str] = None

    @property
    def billable(self) -> bool:
        return self.status in BILLABLE_STATUSES

    def with_status(self, status: SessionStatus) -> "SessionRecord":
        return replace(self, status=status)


@dataclass(frozen=True)
class ClassSessionSegment:
    class_id: int
    class_name: str
    color: str
    start_date: date
    end_date: date
    per_session_fee: Decimal
    closure_days: int
    sessions: tuple[SessionRecord, ...] = ()
    schedule_days: tuple[str, ...] = ()
    monthly_fee: int = 0
    sessions_per_month: int = 0

    def generated_dates(self) -> set[date]:
        """Dates that carry a generated, toggleable session."""

        return {
            session.date
            for session in self.sessions
            if session.status in (SessionStatus.SCHEDULED, SessionStatus.EXCLUDED)
        }

    def closure_dates(self) -> set[date]:
        return {s.date for s in self.sessions if s.status is SessionStatus.CLOSURE}

    def billable_sessions(self) -> list[SessionRecord]:
        return [session for session in self.sessions if session.billable]

    @property
    def billable_count(self) -> int:
        return len(self.billable_sessions())

    def count(self, status: SessionStatus) -> int:
        return sum(1 for session in self.sessions if session.status is status)

    @property
    def raw_amount(self) -> Decimal:
        return self.per_session_fee * self.billable_count

    def with_sessions(self, sessions: Iterable[SessionRecord]) -> "ClassSessionSegment":
        ordered = tuple(sorted(sessions, key=lambda s: s.date))
        return replace(self, sessions=ordered)


@dataclass
class SegmentState:
    start_date: Optional[date] = None
    previous_end_date: Optional[date] = None
    is_manual_start_date: bool = False
    end_date: Optional[date] = None
    is_manual_end_date: bool = False

    def reset_pins(self) -> None:
        self.is_manual_start_date = False
        self.is_manual_end_date = False


@dataclass
class StudentMonthlyPlan:
    student_id: int
    student_name: str
    class_id: int
    class_name: str
    period: BillingPeriod
    segments: List[ClassSessionSegment] = field(default_factory=list)

    @property
    def billable_count(self) -> int:
        return sum(segment.billable_count for segment in self.segments)

    @property
    def total_amount(self) -> int:
        return round_currency(sum((s.raw_amount for s in self.segments), Decimal(0)))
