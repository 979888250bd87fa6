import unittest
from datetime import date, time

from config import TestConfig
from tuition_planner import create_app, db
from tuition_planner.models import (
    AcademyClass,
    AcademyClosure,
    ClassSchedule,
    Student,
    TuitionFee,
    TuitionLedgerRecord,
)


class PlannerApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.app = create_app(TestConfig)
        self.app_context = self.app.app_context()
        self.app_context.push()
        db.create_all()
        self.client = self.app.test_client()

        maths = AcademyClass(name="Maths", monthly_fee=320000, sessions_per_month=12)
        maths.schedules = [
            ClassSchedule(weekday=weekday, start_time=time(17, 0), end_time=time(19, 0))
            for weekday in (0, 2, 4)
        ]
        english = AcademyClass(name="English", monthly_fee=240000, sessions_per_month=8)
        english.schedules = [
            ClassSchedule(weekday=weekday, start_time=time(15, 0), end_time=time(16, 0))
            for weekday in (1, 3)
        ]
        lee = Student(name="Lee Seojun")
        maths.students = [lee]
        english.students = [lee]
        db.session.add_all([maths, english])
        db.session.commit()
        self.maths_id = maths.id
        self.english_id = english.id
        self.student_id = lee.id

    def tearDown(self) -> None:
        db.session.remove()
        db.drop_all()
        self.app_context.pop()

    def _payload(self, **extra):
        payload = {
            "year": 2024,
            "month": 3,
            "selection": [
                {"student_id": self.student_id, "class_id": self.maths_id},
                {"student_id": self.student_id, "class_id": self.english_id},
            ],
        }
        payload.update(extra)
        return payload

    def test_health(self) -> None:
        response = self.client.get("/api/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), {"status": "ok", "database": "ok"})

    def test_preview_returns_segments_and_summary(self) -> None:
        response = self.client.post("/api/planner/preview", json=self._payload())

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["phase"], "ready")
        self.assertEqual(body["focus_month"], "2024-03")
        self.assertEqual(body["period_start"], "2024-03-01")
        self.assertEqual(body["period_end"], "2024-03-31")
        self.assertEqual((body["previous_period"], body["next_period"]), ("2024-02", "2024-04"))
        maths, english = body["segments"]
        self.assertEqual(maths["class_name"], "Maths")
        self.assertEqual(maths["end_date"], "2024-03-27")
        self.assertEqual(maths["per_session_fee"], "26666.67")
        self.assertEqual(maths["color"], TestConfig.PLANNER_CLASS_COLORS[0])
        self.assertEqual(english["color"], TestConfig.PLANNER_CLASS_COLORS[1])
        self.assertEqual(len(english["sessions"]), 8)
        self.assertEqual(body["summary"]["total_amount"], 560000)
        self.assertEqual(body["summary"]["record_count"], 2)

    def test_preview_applies_closures_and_overrides(self) -> None:
        db.session.add(AcademyClosure(closure_date=date(2024, 3, 6)))
        db.session.commit()

        response = self.client.post(
            "/api/planner/preview",
            json=self._payload(
                excluded_dates=["2024-03-04"],
                added_dates=[{"date": "2024-03-09", "class_id": self.english_id}],
                end_dates={str(self.maths_id): "2024-03-15"},
            ),
        )

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        maths, english = body["segments"]
        statuses = {s["date"]: s["status"] for s in maths["sessions"]}
        self.assertEqual(statuses["2024-03-04"], "excluded")
        self.assertEqual(statuses["2024-03-06"], "closure")
        self.assertEqual(maths["end_date"], "2024-03-15")
        self.assertIn(
            {"date": "2024-03-09", "day_of_week": "SAT", "status": "added"}, english["sessions"]
        )
        maths_state = next(s for s in body["states"] if s["class_id"] == self.maths_id)
        self.assertTrue(maths_state["is_manual_end_date"])
        self.assertEqual(body["overrides"]["excluded_dates"], ["2024-03-04"])

    def test_toggle_requires_class_for_free_day(self) -> None:
        response = self.client.post(
            "/api/planner/toggle", json=self._payload(date="2024-03-02")
        )

        self.assertEqual(response.status_code, 400)

    def test_toggle_adds_and_excludes(self) -> None:
        response = self.client.post(
            "/api/planner/toggle",
            json=self._payload(date="2024-03-02", class_id=self.maths_id),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.get_json()["overrides"]["added_dates"],
            [{"date": "2024-03-02", "class_id": self.maths_id}],
        )

        response = self.client.post("/api/planner/toggle", json=self._payload(date="2024-03-04"))
        self.assertEqual(response.get_json()["overrides"]["excluded_dates"], ["2024-03-04"])

    def test_commit_is_idempotent(self) -> None:
        first = self.client.post("/api/planner/commit", json=self._payload())
        second = self.client.post("/api/planner/commit", json=self._payload())

        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.get_json(), {"created": 20, "skipped": 0})
        self.assertEqual(second.get_json(), {"created": 0, "skipped": 20})
        self.assertEqual(TuitionLedgerRecord.query.count(), 20)
        self.assertEqual(TuitionFee.query.count(), 2)

    def test_unenrolled_selection_is_rejected(self) -> None:
        payload = self._payload()
        payload["selection"].append({"student_id": 999, "class_id": self.maths_id})

        response = self.client.post("/api/planner/preview", json=payload)

        self.assertEqual(response.status_code, 400)

    def test_invalid_dates_are_rejected(self) -> None:
        response = self.client.post(
            "/api/planner/preview", json=self._payload(excluded_dates=["03/04/2024"])
        )

        self.assertEqual(response.status_code, 400)

    def test_missing_period_fails_validation(self) -> None:
        response = self.client.post("/api/planner/preview", json={"selection": []})

        self.assertEqual(response.status_code, 400)


if __name__ == "__main__":  # pragma: no cover - manual execution
    unittest.main()
