# tests/test_scorers.py

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase

from academics.config import AcademicCoefficients, ClassificationThresholds
from grading.utils import (
    FLAG_RED, FLAG_GREEN, FLAG_YELLOW, FLAG_NONE,
    calculate_flag, flag_rank, compute_conduct_item_score,
    compute_daily_conduct_score, compute_daily_academic_score,
)


def lessons(*qualities):
    return [{'lesson_number': number, 'quality': quality} for number, quality in enumerate(qualities, start=1)]


class ConductScorerTests(SimpleTestCase):

    def test_item_scores_clamp_at_zero(self):
        result = compute_daily_conduct_score([
            {'item_name': 'Punctuality', 'violation_count': 2},
            {'item_name': 'Wearing badge', 'violation_count': 7},
            {'item_name': 'Class/area cleanliness'},
        ], max_points_per_item=5)

        self.assertEqual([item['score'] for item in result['items']], [3, 0, 5])
        self.assertEqual(result['total_daily_score'], 8)
        self.assertEqual(result['max_daily_score'], 15)
        self.assertEqual(result['total_violations'], 9)

    def test_item_score_always_within_bounds(self):
        for max_points in range(1, 7):
            for violations in range(0, 12):
                score = compute_conduct_item_score(violations, max_points)
                self.assertGreaterEqual(score, 0)
                self.assertLessEqual(score, max_points)

    def test_negative_count_rejected(self):
        with self.assertRaises(ValidationError):
            compute_daily_conduct_score([{'item_name': 'Punctuality', 'violation_count': -1}])

    def test_nameless_item_rejected(self):
        with self.assertRaises(ValidationError):
            compute_daily_conduct_score([{'item_name': '  ', 'violation_count': 0}])

    def test_student_ids_are_strings(self):
        result = compute_daily_conduct_score([
            {'item_name': 'Punctuality', 'violation_count': 1, 'violating_student_ids': [42]},
        ])
        self.assertEqual(result['items'][0]['violating_student_ids'], ['42'])


class AcademicScorerTests(SimpleTestCase):

    def test_mixed_day(self):
        result = compute_daily_academic_score(lessons('excellent', 'excellent', 'good', 'poor'))

        self.assertEqual(result['subtotal'], 40)
        self.assertEqual(result['total_lessons'], 4)
        self.assertEqual(result['daily_average'], 10)
        self.assertFalse(result['is_good_day'])
        self.assertEqual(result['good_day_bonus'], 0)
        self.assertEqual(result['total_daily_score'], 10)
        self.assertEqual(result['poor_points'], -10)

    def test_good_day_earns_bonus(self):
        result = compute_daily_academic_score(lessons('excellent', 'excellent', 'excellent', 'average'))

        self.assertEqual(result['daily_average'], 15)
        self.assertTrue(result['is_good_day'])
        self.assertEqual(result['total_daily_score'], 35)

    def test_average_rounds_half_up(self):
        result = compute_daily_academic_score(lessons('good', 'average', 'average', 'average'))
        self.assertEqual(result['daily_average'], 3)

        result = compute_daily_academic_score(lessons('poor', 'average', 'average', 'average'))
        self.assertEqual(result['daily_average'], -2)

    def test_negative_half_rounds_up(self):
        result = compute_daily_academic_score(lessons('poor', 'poor', 'poor', 'failing'))

        self.assertEqual(result['subtotal'], -50)
        self.assertEqual(result['daily_average'], -12)
        self.assertFalse(result['is_good_day'])
        self.assertEqual(result['total_daily_score'], -12)

    def test_empty_day_divides_by_one(self):
        result = compute_daily_academic_score([])

        self.assertEqual(result['total_lessons'], 1)
        self.assertEqual(result['daily_average'], 0)
        self.assertTrue(result['is_good_day'])

    def test_year_coefficients_and_bonus(self):
        coefficients = AcademicCoefficients(excellent=30, good=15, average=0, poor=-5, failing=-25)
        result = compute_daily_academic_score(
            lessons('excellent', 'failing'), coefficients=coefficients, good_day_bonus=50
        )

        self.assertEqual(result['subtotal'], 5)
        self.assertEqual(result['daily_average'], 3)
        self.assertEqual(result['good_day_bonus'], 0)

    def test_unknown_quality_rejected(self):
        with self.assertRaises(ValidationError):
            compute_daily_academic_score(lessons('excellent', 'superb'))

    def test_repeated_calls_agree(self):
        day = lessons('excellent', 'good', 'poor', 'average', 'failing')
        first = compute_daily_academic_score(day)
        second = compute_daily_academic_score(day)

        for key in ('subtotal', 'is_good_day', 'total_daily_score'):
            self.assertEqual(first[key], second[key])


class FlagTests(SimpleTestCase):

    def test_threshold_boundaries(self):
        thresholds = ClassificationThresholds()
        self.assertEqual(calculate_flag(90, thresholds), FLAG_RED)
        self.assertEqual(calculate_flag(89, thresholds), FLAG_GREEN)
        self.assertEqual(calculate_flag(70, thresholds), FLAG_GREEN)
        self.assertEqual(calculate_flag(50, thresholds), FLAG_YELLOW)
        self.assertEqual(calculate_flag(49, thresholds), FLAG_NONE)
        self.assertEqual(calculate_flag(None, thresholds), FLAG_NONE)

    def test_flag_is_monotonic(self):
        for thresholds in (ClassificationThresholds(), ClassificationThresholds(red=60, green=40, yellow=20)):
            ranks = [flag_rank(calculate_flag(value, thresholds)) for value in range(-10, 130)]
            self.assertEqual(ranks, sorted(ranks))
