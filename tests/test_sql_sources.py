import asyncio
import unittest
from datetime import date, time
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from config import TestConfig
from tuition_planner import create_app, db
from tuition_planner.domain import BillingPeriod
from tuition_planner.errors import SourceError
from tuition_planner.models import (
    AcademyClass,
    AcademyClosure,
    ClassSchedule,
    Student,
    Teacher,
    TuitionFee,
    TuitionLedgerRecord,
)
from tuition_planner.orchestrator import PlanOrchestrator
from tuition_planner.sources import (
    LedgerEntry,
    LedgerKey,
    SqlPlanningSource,
    SqlTuitionLedger,
)

MARCH = BillingPeriod(2024, 3)


class DatabaseTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.app = create_app(TestConfig)
        self.app_context = self.app.app_context()
        self.app_context.push()
        db.create_all()

    def tearDown(self) -> None:
        db.session.remove()
        db.drop_all()
        self.app_context.pop()


def make_class(name: str, weekdays, teacher=None, **kwargs) -> AcademyClass:
    academy_class = AcademyClass(name=name, teacher=teacher, **kwargs)
    academy_class.schedules = [
        ClassSchedule(weekday=weekday, start_time=time(17, 0), end_time=time(18, 30))
        for weekday in weekdays
    ]
    return academy_class


class PlanningDataTestCase(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.teacher = Teacher(name="Kim Minji")
        self.other_teacher = Teacher(name="Jung Hoseok")
        self.maths = make_class(
            "Maths", (0, 2, 4), self.teacher, monthly_fee=320000, sessions_per_month=12
        )
        self.english = make_class(
            "English", (1, 3), self.teacher, monthly_fee=240000, sessions_per_month=8
        )
        self.lee = Student(name="Lee Seojun")
        self.park = Student(name="Park Jiwoo")
        self.maths.students = [self.lee, self.park]
        self.english.students = [self.lee]
        db.session.add_all([self.teacher, self.other_teacher, self.maths, self.english])
        db.session.commit()
        self.source = SqlPlanningSource()
        self.ledger = SqlTuitionLedger()


class SqlPlanningSourceTestCase(PlanningDataTestCase):
    def _closure(self, day: int, closure_type: str = "global", **kwargs) -> AcademyClosure:
        return AcademyClosure(
            closure_date=date(2024, 3, day), closure_type=closure_type, reason=f"day {day}", **kwargs
        )

    def test_class_config_reflects_catalog(self) -> None:
        config = asyncio.run(self.source.class_config(self.maths.id))

        self.assertEqual(config.name, "Maths")
        self.assertEqual(config.monthly_fee, 320000)
        self.assertEqual(config.sessions_per_month, 12)
        self.assertEqual([rule.day_of_week for rule in config.schedule_rules], [0, 2, 4])
        self.assertEqual(config.schedule_days, ["MON", "WED", "FRI"])

    def test_unknown_class_raises_source_error(self) -> None:
        with self.assertRaises(SourceError):
            asyncio.run(self.source.class_config(999))

    def test_closure_scopes(self) -> None:
        db.session.add_all(
            [
                self._closure(6),
                self._closure(8, "class", class_id=self.maths.id),
                self._closure(11, "class", class_id=self.english.id),
                self._closure(12, "teacher", teacher_id=self.teacher.id),
                self._closure(13, "teacher", teacher_id=self.teacher.id),
                self._closure(15, "teacher", teacher_id=self.other_teacher.id),
                self._closure(20),
            ]
        )
        db.session.commit()

        maths = asyncio.run(
            self.source.closures_for_class(self.maths.id, date(2024, 3, 1), date(2024, 3, 19))
        )
        english = asyncio.run(
            self.source.closures_for_class(self.english.id, date(2024, 3, 1), date(2024, 3, 19))
        )

        self.assertEqual([c.date.day for c in maths], [6, 8, 13])
        self.assertEqual([c.date.day for c in english], [6, 11, 12])
        self.assertEqual(maths[0].reason, "day 6")
        self.assertEqual(maths[1].closure_type, "class")

    def test_latest_period_end_prefers_recorded_segments(self) -> None:
        db.session.add_all(
            [
                TuitionLedgerRecord(
                    student_id=self.lee.id,
                    class_id=self.maths.id,
                    session_date=date(2024, 2, 26),
                    year=2024,
                    month=2,
                    amount=Decimal("26666.67"),
                ),
                TuitionFee(
                    student_id=self.lee.id,
                    class_id=self.maths.id,
                    year=2024,
                    month=2,
                    period_start_date=date(2024, 2, 1),
                    period_end_date=date(2024, 2, 28),
                    per_session_fee=Decimal("26666.67"),
                ),
                TuitionFee(
                    student_id=self.lee.id,
                    class_id=self.maths.id,
                    year=2024,
                    month=3,
                    period_start_date=date(2024, 2, 29),
                    period_end_date=date(2024, 3, 27),
                    per_session_fee=Decimal("26666.67"),
                ),
            ]
        )
        db.session.commit()

        self.assertEqual(
            asyncio.run(self.source.latest_period_end(self.maths.id, MARCH)), date(2024, 2, 28)
        )
        self.assertIsNone(
            asyncio.run(self.source.latest_period_end(self.english.id, MARCH))
        )

    def test_latest_period_end_falls_back_to_ledger(self) -> None:
        db.session.add(
            TuitionLedgerRecord(
                student_id=self.lee.id,
                class_id=self.maths.id,
                session_date=date(2024, 2, 26),
                year=2024,
                month=2,
                amount=Decimal("26666.67"),
            )
        )
        db.session.commit()

        self.assertEqual(
            asyncio.run(self.source.latest_period_end(self.maths.id, MARCH)), date(2024, 2, 26)
        )

    def test_roster_and_names(self) -> None:
        self.assertEqual(
            asyncio.run(self.source.enrolled_students(self.maths.id)), {self.lee.id, self.park.id}
        )
        self.assertEqual(
            asyncio.run(self.source.student_names([self.lee.id, self.park.id])),
            {self.lee.id: "Lee Seojun", self.park.id: "Park Jiwoo"},
        )
        self.assertEqual(asyncio.run(self.source.student_names([])), {})


class SqlTuitionLedgerTestCase(PlanningDataTestCase):
    def _entry(self, day: date) -> LedgerEntry:
        return LedgerEntry(
            key=LedgerKey(self.lee.id, self.maths.id, day),
            period=MARCH,
            amount=Decimal("26666.67"),
        )

    def test_insert_ignores_duplicate_key(self) -> None:
        entry = self._entry(date(2024, 3, 4))

        self.assertFalse(asyncio.run(self.ledger.exists(entry.key)))
        self.assertTrue(asyncio.run(self.ledger.insert(entry)))
        self.assertTrue(asyncio.run(self.ledger.exists(entry.key)))
        self.assertFalse(asyncio.run(self.ledger.insert(entry)))
        self.assertEqual(TuitionLedgerRecord.query.count(), 1)

    def test_storage_enforces_unique_session(self) -> None:
        for _ in range(2):
            db.session.add(
                TuitionLedgerRecord(
                    student_id=self.lee.id,
                    class_id=self.maths.id,
                    session_date=date(2024, 3, 4),
                    year=2024,
                    month=3,
                    amount=Decimal("1.00"),
                )
            )
        with self.assertRaises(IntegrityError):
            db.session.commit()
        db.session.rollback()

    def test_plan_commit_records_period_and_feeds_continuity(self) -> None:
        orchestrator = PlanOrchestrator(self.source, MARCH)
        selection = [(self.lee.id, self.maths.id), (self.park.id, self.maths.id)]
        asyncio.run(orchestrator.regenerate(selection=selection))

        first = asyncio.run(orchestrator.save(self.ledger))
        second = asyncio.run(orchestrator.save(self.ledger))

        self.assertEqual((first.created, first.skipped), (24, 0))
        self.assertEqual((second.created, second.skipped), (0, 24))
        fee = TuitionFee.query.filter_by(student_id=self.lee.id, class_id=self.maths.id).one()
        self.assertEqual(fee.period_start_date, date(2024, 3, 1))
        self.assertEqual(fee.period_end_date, date(2024, 3, 27))
        self.assertEqual(fee.sessions_count, 12)
        self.assertEqual(fee.amount, 320000)
        self.assertEqual(fee.per_session_fee, Decimal("26666.67"))
        self.assertEqual(fee.note, "2024-03, Maths, 12 sessions")
        self.assertEqual(fee.student_name_snapshot, "Lee Seojun")
        self.assertEqual(TuitionFee.query.count(), 2)

        april = asyncio.run(self.source.latest_period_end(self.maths.id, BillingPeriod(2024, 4)))
        self.assertEqual(april, date(2024, 3, 27))


if __name__ == "__main__":  # pragma: no cover - manual execution
    unittest.main()
