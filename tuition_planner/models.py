from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    Time,
    UniqueConstraint,
    or_,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .domain import ClassConfig, ClosureDay, ScheduleRule
from .extensions import db


CLOSURE_TYPES = ("global", "class", "teacher")


class_student = Table(
    "class_student",
    db.Model.metadata,
    Column("class_id", ForeignKey("academy_class.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", ForeignKey("student.id", ondelete="CASCADE"), primary_key=True),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimeStampedModel:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)


class Teacher(db.Model, TimeStampedModel):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)

    classes: Mapped[List["AcademyClass"]] = relationship(back_populates="teacher")

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Teacher {self.name}>"


class Student(db.Model, TimeStampedModel):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)

    classes: Mapped[List["AcademyClass"]] = relationship(
        secondary=class_student, back_populates="students"
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Student {self.name}>"


class AcademyClass(db.Model, TimeStampedModel):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    teacher_id: Mapped[Optional[int]] = mapped_column(ForeignKey("teacher.id"))
    monthly_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sessions_per_month: Mapped[int] = mapped_column(Integer, nullable=False, default=8)
    color: Mapped[Optional[str]] = mapped_column(String(7))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    teacher: Mapped[Optional[Teacher]] = relationship(back_populates="classes")
    schedules: Mapped[List["ClassSchedule"]] = relationship(
        back_populates="academy_class",
        cascade="all, delete-orphan",
        order_by="ClassSchedule.weekday",
    )
    students: Mapped[List[Student]] = relationship(
        secondary=class_student, back_populates="classes", order_by="Student.name"
    )

    __table_args__ = (
        CheckConstraint("monthly_fee >= 0", name="chk_class_monthly_fee"),
        CheckConstraint("sessions_per_month >= 0", name="chk_class_sessions_per_month"),
    )

    @property
    def weekdays(self) -> set[int]:
        return {schedule.weekday for schedule in self.schedules}

    def as_config(self, default_sessions_per_month: int = 8) -> ClassConfig:
        return ClassConfig(
            class_id=self.id,
            name=self.name,
            monthly_fee=self.monthly_fee or 0,
            sessions_per_month=(
                self.sessions_per_month
                if self.sessions_per_month is not None
                else default_sessions_per_month
            ),
            schedule_rules=tuple(schedule.as_rule() for schedule in self.schedules),
            teacher_id=self.teacher_id,
            color=self.color,
        )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<AcademyClass {self.name}>"


class ClassSchedule(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    class_id: Mapped[int] = mapped_column(
        ForeignKey("academy_class.id", ondelete="CASCADE"), nullable=False
    )
    weekday: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    academy_class: Mapped[AcademyClass] = relationship(back_populates="schedules")

    __table_args__ = (
        CheckConstraint("weekday BETWEEN 0 AND 6", name="chk_class_schedule_weekday"),
        CheckConstraint("end_time > start_time", name="chk_class_schedule_time_order"),
    )

    def as_rule(self) -> ScheduleRule:
        return ScheduleRule(
            day_of_week=self.weekday, start_time=self.start_time, end_time=self.end_time
        )


class AcademyClosure(db.Model, TimeStampedModel):
    id: Mapped[int] = mapped_column(primary_key=True)
    closure_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    closure_type: Mapped[str] = mapped_column(String(10), nullable=False, default="global")
    class_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("academy_class.id", ondelete="CASCADE")
    )
    teacher_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("teacher.id", ondelete="CASCADE")
    )
    reason: Mapped[Optional[str]] = mapped_column(String(255))

    __table_args__ = (
        CheckConstraint(
            "closure_type IN (" + ", ".join(f"'{kind}'" for kind in CLOSURE_TYPES) + ")",
            name="chk_closure_type",
        ),
    )

    @classmethod
    def for_class(
        cls, academy_class: AcademyClass, start: date, end: date
    ) -> List["AcademyClosure"]:
        """Closures affecting ``academy_class`` between ``start`` and ``end``.

        Global closures always apply. Teacher closures only apply on the
        weekdays the class actually meets.
        """

        scopes = [
            cls.closure_type == "global",
            (cls.closure_type == "class") & (cls.class_id == academy_class.id),
        ]
        if academy_class.teacher_id is not None:
            scopes.append(
                (cls.closure_type == "teacher") & (cls.teacher_id == academy_class.teacher_id)
            )
        closures = (
            cls.query.filter(cls.closure_date >= start, cls.closure_date <= end)
            .filter(or_(*scopes))
            .order_by(cls.closure_date, cls.id)
            .all()
        )
        weekdays = academy_class.weekdays
        return [
            closure
            for closure in closures
            if closure.closure_type != "teacher" or closure.closure_date.weekday() in weekdays
        ]

    def as_closure_day(self) -> ClosureDay:
        return ClosureDay(
            date=self.closure_date,
            reason=self.reason,
            class_id=self.class_id,
            closure_type=self.closure_type,
        )


class TuitionFee(db.Model, TimeStampedModel):
    """Billed segment of one student in one class for one billing month."""

    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("student.id"), nullable=False)
    class_id: Mapped[int] = mapped_column(ForeignKey("academy_class.id"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    period_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    sessions_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    per_session_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    student_name_snapshot: Mapped[Optional[str]] = mapped_column(String(120))
    class_name_snapshot: Mapped[Optional[str]] = mapped_column(String(120))
    note: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        UniqueConstraint(
            "student_id", "class_id", "year", "month", name="uq_tuition_fee_student_class_month"
        ),
        CheckConstraint("month BETWEEN 1 AND 12", name="chk_tuition_fee_month"),
        CheckConstraint(
            "period_end_date >= period_start_date", name="chk_tuition_fee_period_range"
        ),
    )


class TuitionLedgerRecord(db.Model, TimeStampedModel):
    """One committed, billable session of a student in a class."""

    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("student.id"), nullable=False)
    class_id: Mapped[int] = mapped_column(ForeignKey("academy_class.id"), nullable=False)
    session_date: Mapped[date] = mapped_column(Date, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "student_id", "class_id", "session_date", name="uq_ledger_student_class_date"
        ),
        CheckConstraint("month BETWEEN 1 AND 12", name="chk_ledger_month"),
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<TuitionLedgerRecord {self.student_id}/{self.class_id} {self.session_date}>"
