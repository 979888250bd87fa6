import unittest
from datetime import date

from tuition_planner.domain import ClosureDay, ScheduleRule, SessionStatus
from tuition_planner.recurrence import generate_sessions

MON_WED_FRI = tuple(ScheduleRule(day) for day in (0, 2, 4))


class GenerateSessionsTestCase(unittest.TestCase):
    def test_count_mode_stops_at_target(self) -> None:
        sessions = generate_sessions(date(2024, 1, 1), MON_WED_FRI, target_count=12)

        self.assertEqual(len(sessions), 12)
        self.assertEqual(sessions[0].date, date(2024, 1, 1))
        self.assertEqual(sessions[-1].date, date(2024, 1, 26))
        self.assertEqual({s.day_of_week for s in sessions}, {"MON", "WED", "FRI"})
        self.assertTrue(all(s.status is SessionStatus.SCHEDULED for s in sessions))

    def test_closures_are_kept_but_not_counted(self) -> None:
        closures = [ClosureDay(date(2024, 1, 3), reason="Snow day")]

        sessions = generate_sessions(date(2024, 1, 1), MON_WED_FRI, closures, target_count=12)

        self.assertEqual(len(sessions), 13)
        closed = [s for s in sessions if s.status is SessionStatus.CLOSURE]
        self.assertEqual([s.date for s in closed], [date(2024, 1, 3)])
        self.assertEqual(closed[0].closure_reason, "Snow day")
        self.assertEqual(sum(1 for s in sessions if s.billable), 12)
        self.assertEqual(sessions[-1].date, date(2024, 1, 29))

    def test_closure_on_non_class_day_is_ignored(self) -> None:
        closures = [ClosureDay(date(2024, 1, 2))]

        sessions = generate_sessions(date(2024, 1, 1), MON_WED_FRI, closures, target_count=3)

        self.assertEqual(
            [s.date for s in sessions], [date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 5)]
        )

    def test_date_mode_is_inclusive(self) -> None:
        sessions = generate_sessions(
            date(2024, 1, 1), MON_WED_FRI, end_date=date(2024, 1, 12)
        )

        self.assertEqual(len(sessions), 6)
        self.assertEqual(sessions[-1].date, date(2024, 1, 12))

    def test_date_mode_with_end_before_start_is_empty(self) -> None:
        self.assertEqual(
            generate_sessions(date(2024, 1, 10), MON_WED_FRI, end_date=date(2024, 1, 9)), []
        )

    def test_no_schedule_rules_yields_nothing(self) -> None:
        self.assertEqual(generate_sessions(date(2024, 1, 1), (), target_count=8), [])

    def test_non_positive_target_yields_nothing(self) -> None:
        self.assertEqual(generate_sessions(date(2024, 1, 1), MON_WED_FRI, target_count=0), [])

    def test_exactly_one_mode_is_required(self) -> None:
        with self.assertRaises(ValueError):
            generate_sessions(date(2024, 1, 1), MON_WED_FRI)
        with self.assertRaises(ValueError):
            generate_sessions(
                date(2024, 1, 1), MON_WED_FRI, end_date=date(2024, 2, 1), target_count=4
            )

    def test_scan_limit_returns_partial_result(self) -> None:
        closures = [ClosureDay(date(2024, 1, day)) for day in range(1, 32)]

        with self.assertLogs("tuition_planner.recurrence", level="WARNING"):
            sessions = generate_sessions(
                date(2024, 1, 1), MON_WED_FRI, closures, target_count=4, max_scan_days=31
            )

        self.assertTrue(sessions)
        self.assertTrue(all(s.status is SessionStatus.CLOSURE for s in sessions))

    def test_schedule_rule_rejects_invalid_weekday(self) -> None:
        with self.assertRaises(ValueError):
            ScheduleRule(7)


if __name__ == "__main__":  # pragma: no cover - manual execution
    unittest.main()
