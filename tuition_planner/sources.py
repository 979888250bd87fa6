"""Data sources consumed by the planner.

The engine only talks to the abstract :class:`PlanningSource` and
:class:`TuitionLedger` interfaces; every call is awaited so that lookups can
suspend. The ``Sql*`` implementations read and write through the
Flask-SQLAlchemy session and must run inside an application context.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .domain import (
    BillingPeriod,
    ClassConfig,
    ClassSessionSegment,
    ClosureDay,
    StudentMonthlyPlan,
)
from .errors import SourceError
from .extensions import db
from .models import (
    AcademyClass,
    AcademyClosure,
    Student,
    TuitionFee,
    TuitionLedgerRecord,
    class_student,
)
from .utils import quantize_cents, round_currency


@dataclass(frozen=True)
class LedgerKey:
    student_id: int
    class_id: int
    date: date


@dataclass(frozen=True)
class LedgerEntry:
    key: LedgerKey
    period: BillingPeriod
    amount: Decimal
    status: str = "scheduled"


class PlanningSource:
    """Read access to the class catalog, closures, roster and billing history."""

    async def class_config(self, class_id: int) -> ClassConfig:  # pragma: no cover - interface
        """Return the catalog entry of ``class_id``."""
        raise NotImplementedError

    async def closures_for_class(
        self, class_id: int, start: date, end: date
    ) -> list[ClosureDay]:  # pragma: no cover - interface
        """Return the closures affecting ``class_id`` between ``start`` and ``end``."""
        raise NotImplementedError

    async def latest_period_end(
        self, class_id: int, period: BillingPeriod
    ) -> Optional[date]:  # pragma: no cover - interface
        """Return the latest recorded segment end of ``class_id`` before ``period``."""
        raise NotImplementedError

    async def enrolled_students(self, class_id: int) -> set[int]:  # pragma: no cover - interface
        """Return the ids of the students enrolled in ``class_id``."""
        raise NotImplementedError

    async def student_names(
        self, student_ids: Iterable[int]
    ) -> dict[int, str]:  # pragma: no cover - interface
        """Return a mapping of student id to display name."""
        raise NotImplementedError


class TuitionLedger:
    """Persisted billing ledger."""

    async def exists(self, key: LedgerKey) -> bool:  # pragma: no cover - interface
        """Return whether a record already exists for ``key``."""
        raise NotImplementedError

    async def insert(self, entry: LedgerEntry) -> bool:  # pragma: no cover - interface
        """Store ``entry``; return ``False`` when the key already exists."""
        raise NotImplementedError

    async def record_period(
        self, plan: StudentMonthlyPlan, segment: ClassSessionSegment
    ) -> None:  # pragma: no cover - interface
        """Store the segment boundaries used by continuity lookups."""
        raise NotImplementedError


class SqlPlanningSource(PlanningSource):
    def __init__(self, session=None, *, default_sessions_per_month: int = 8) -> None:
        self.session = session or db.session
        self.default_sessions_per_month = default_sessions_per_month

    def _get_class(self, class_id: int) -> AcademyClass:
        try:
            academy_class = self.session.get(AcademyClass, class_id)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise SourceError(f"Unable to load class {class_id}: {exc}") from exc
        if academy_class is None:
            raise SourceError(f"Unknown class {class_id}")
        return academy_class

    async def class_config(self, class_id: int) -> ClassConfig:
        return self._get_class(class_id).as_config(self.default_sessions_per_month)

    async def closures_for_class(self, class_id: int, start: date, end: date) -> list[ClosureDay]:
        academy_class = self._get_class(class_id)
        try:
            closures = AcademyClosure.for_class(academy_class, start, end)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise SourceError(f"Unable to load closures for class {class_id}: {exc}") from exc
        return [closure.as_closure_day() for closure in closures]

    async def latest_period_end(self, class_id: int, period: BillingPeriod) -> Optional[date]:
        earlier_fee = or_(
            TuitionFee.year < period.year,
            and_(TuitionFee.year == period.year, TuitionFee.month < period.month),
        )
        earlier_record = or_(
            TuitionLedgerRecord.year < period.year,
            and_(
                TuitionLedgerRecord.year == period.year,
                TuitionLedgerRecord.month < period.month,
            ),
        )
        try:
            latest = self.session.execute(
                db.select(func.max(TuitionFee.period_end_date)).where(
                    TuitionFee.class_id == class_id, earlier_fee
                )
            ).scalar()
            if latest is None:
                latest = self.session.execute(
                    db.select(func.max(TuitionLedgerRecord.session_date)).where(
                        TuitionLedgerRecord.class_id == class_id, earlier_record
                    )
                ).scalar()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise SourceError(f"Unable to read billing history of class {class_id}: {exc}") from exc
        return latest

    async def enrolled_students(self, class_id: int) -> set[int]:
        try:
            rows = self.session.execute(
                db.select(class_student.c.student_id).where(class_student.c.class_id == class_id)
            ).scalars()
            return set(rows)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise SourceError(f"Unable to read roster of class {class_id}: {exc}") from exc

    async def student_names(self, student_ids: Iterable[int]) -> dict[int, str]:
        ids = sorted(set(student_ids))
        if not ids:
            return {}
        try:
            students = self.session.execute(
                db.select(Student).where(Student.id.in_(ids))
            ).scalars()
            return {student.id: student.name for student in students}
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise SourceError(f"Unable to load students: {exc}") from exc


class SqlTuitionLedger(TuitionLedger):
    def __init__(self, session=None) -> None:
        self.session = session or db.session

    async def exists(self, key: LedgerKey) -> bool:
        try:
            found = self.session.execute(
                db.select(TuitionLedgerRecord.id).where(
                    TuitionLedgerRecord.student_id == key.student_id,
                    TuitionLedgerRecord.class_id == key.class_id,
                    TuitionLedgerRecord.session_date == key.date,
                )
            ).first()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise SourceError(f"Unable to read ledger: {exc}") from exc
        return found is not None

    async def insert(self, entry: LedgerEntry) -> bool:
        record = TuitionLedgerRecord(
            student_id=entry.key.student_id,
            class_id=entry.key.class_id,
            session_date=entry.key.date,
            year=entry.period.year,
            month=entry.period.month,
            status=entry.status,
            amount=entry.amount,
        )
        self.session.add(record)
        try:
            self.session.commit()
        except IntegrityError:
            # uq_ledger_student_class_date: another commit got there first.
            self.session.rollback()
            return False
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise SourceError(f"Unable to write ledger record: {exc}") from exc
        return True

    async def record_period(self, plan: StudentMonthlyPlan, segment: ClassSessionSegment) -> None:
        try:
            existing = self.session.execute(
                db.select(TuitionFee.id).where(
                    TuitionFee.student_id == plan.student_id,
                    TuitionFee.class_id == segment.class_id,
                    TuitionFee.year == plan.period.year,
                    TuitionFee.month == plan.period.month,
                )
            ).first()
            if existing is not None:
                return
            billable = segment.billable_sessions()
            period_start = min([segment.start_date, *(s.date for s in billable)])
            period_end = max([segment.end_date, *(s.date for s in billable)])
            self.session.add(
                TuitionFee(
                    student_id=plan.student_id,
                    class_id=segment.class_id,
                    year=plan.period.year,
                    month=plan.period.month,
                    period_start_date=period_start,
                    period_end_date=period_end,
                    sessions_count=len(billable),
                    per_session_fee=quantize_cents(segment.per_session_fee),
                    amount=round_currency(segment.raw_amount),
                    student_name_snapshot=plan.student_name,
                    class_name_snapshot=segment.class_name,
                    note=f"{plan.period}, {segment.class_name}, {len(billable)} sessions",
                )
            )
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise SourceError(f"Unable to record billing period: {exc}") from exc
