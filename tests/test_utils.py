import unittest
from datetime import date
from decimal import Decimal

from tuition_planner.utils import (
    month_bounds,
    parse_date,
    quantize_cents,
    require_date,
    round_currency,
    weekday_code,
)


class DateHelpersTestCase(unittest.TestCase):
    def test_parse_date_ignores_bad_input(self) -> None:
        self.assertEqual(parse_date("2024-03-04"), date(2024, 3, 4))
        self.assertIsNone(parse_date("03/04/2024"))
        self.assertIsNone(parse_date(None))

    def test_require_date_rejects_bad_input(self) -> None:
        self.assertEqual(require_date(date(2024, 3, 4)), date(2024, 3, 4))
        with self.assertRaises(ValueError):
            require_date("2024-13-01")

    def test_month_bounds(self) -> None:
        self.assertEqual(month_bounds(2024, 2), (date(2024, 2, 1), date(2024, 2, 29)))
        self.assertEqual(month_bounds(2024, 12), (date(2024, 12, 1), date(2024, 12, 31)))

    def test_weekday_code_accepts_dates_and_indexes(self) -> None:
        self.assertEqual(weekday_code(date(2024, 3, 4)), "MON")
        self.assertEqual(weekday_code(6), "SUN")


class CurrencyHelpersTestCase(unittest.TestCase):
    def test_halves_round_up(self) -> None:
        self.assertEqual(round_currency(Decimal("26666.5")), 26667)
        self.assertEqual(round_currency(Decimal("26666.49")), 26666)
        self.assertEqual(quantize_cents(Decimal("320000") / 12), Decimal("26666.67"))
        self.assertEqual(quantize_cents(Decimal("0.005")), Decimal("0.01"))


if __name__ == "__main__":  # pragma: no cover - manual execution
    unittest.main()
