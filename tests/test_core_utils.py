# tests/test_core_utils.py

from datetime import date

from django.test import SimpleTestCase

from core.exceptions import RecordNotFoundError, ConflictError
from core.utils import (
    round_half_up, calculate_percentage, safe_divide, next_weekday_on_or_after,
    month_bounds, date_range_error,
)


class RoundingTests(SimpleTestCase):

    def test_halves_round_up(self):
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(3.5), 4)
        self.assertEqual(round_half_up(-2.5), -2)
        self.assertEqual(round_half_up(-12.5), -12)
        self.assertEqual(round_half_up(-12.6), -13)
        self.assertEqual(round_half_up(2.4999), 2)

    def test_none_is_zero(self):
        self.assertEqual(round_half_up(None), 0)

    def test_non_numeric_raises(self):
        with self.assertRaises(ValueError):
            round_half_up('abc')

    def test_percentage(self):
        self.assertEqual(calculate_percentage(120, 120), 100)
        self.assertEqual(calculate_percentage(1, 8), 13)
        self.assertEqual(calculate_percentage(75, 0), 0)
        self.assertEqual(calculate_percentage(None, 10), 0)

    def test_safe_divide(self):
        self.assertEqual(safe_divide(10, 4), 2.5)
        self.assertEqual(safe_divide(10, 0), 0)


class DateHelperTests(SimpleTestCase):

    def test_next_weekday(self):
        # Thursday -> following Monday
        self.assertEqual(next_weekday_on_or_after(date(2024, 9, 5), 1), date(2024, 9, 9))
        # Already a Monday
        self.assertEqual(next_weekday_on_or_after(date(2024, 9, 2), 1), date(2024, 9, 2))

    def test_month_bounds(self):
        self.assertEqual(month_bounds(2, 2024), (date(2024, 2, 1), date(2024, 3, 1)))
        self.assertEqual(month_bounds(12, 2024), (date(2024, 12, 1), date(2025, 1, 1)))

    def test_month_bounds_rejects_bad_month(self):
        with self.assertRaises(ValueError):
            month_bounds(13, 2024)

    def test_date_range_error(self):
        self.assertIsNone(date_range_error(date(2024, 1, 1), date(2024, 1, 1)))
        self.assertIsNone(date_range_error(None, date(2024, 1, 1)))
        self.assertIn('after', date_range_error(date(2024, 1, 1), date(2024, 1, 1), allow_same_day=False))
        self.assertIn('on or after', date_range_error(date(2024, 1, 2), date(2024, 1, 1)))


class ExceptionTests(SimpleTestCase):

    def test_not_found_is_lookup_error(self):
        error = RecordNotFoundError("Week 7 not found", entity='Week', entity_id=7)
        self.assertIsInstance(error, LookupError)
        self.assertEqual(error.entity_id, '7')
        self.assertEqual(str(error), "Week 7 not found")

    def test_conflict_details_default(self):
        self.assertEqual(ConflictError("taken").details, {})
