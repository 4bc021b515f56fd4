# tests/test_aggregators.py

import copy

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase

from academics.config import ClassificationThresholds, ScoringConfig
from grading.utils import (
    FLAG_RED, FLAG_YELLOW,
    build_default_discipline_items, recompute_discipline_grading,
    build_default_day_gradings, recompute_academic_grading,
)

from tests.factories import excellent_week


def checklist(item_count=6, max_score=5, days=(1, 2, 3, 4), violations=None):
    violations = violations or {}
    return [
        {
            'item_name': f'Item {index}',
            'max_score': max_score,
            'applicable_days': list(days),
            'day_scores': [
                {'day': day, 'violations': violations.get((index, day), 0)}
                for day in days
            ],
        }
        for index in range(1, item_count + 1)
    ]


class DisciplineAggregatorTests(SimpleTestCase):

    def setUp(self):
        self.thresholds = ClassificationThresholds()

    def test_clean_week_is_full_marks(self):
        result = recompute_discipline_grading(checklist(), self.thresholds)

        self.assertEqual(result['max_possible_score'], 120)
        self.assertEqual(result['total_weekly_score'], 120)
        self.assertEqual(result['percentage'], 100)
        self.assertEqual(result['flag'], FLAG_RED)

    def test_violations_lower_scores_and_clamp(self):
        items = checklist(item_count=2, violations={(1, 1): 2, (2, 3): 9})
        result = recompute_discipline_grading(items, self.thresholds)

        first, second = result['items']
        self.assertEqual(first['day_scores'][0]['score'], 3)
        self.assertEqual(first['total_score'], 18)
        self.assertEqual(second['day_scores'][2]['score'], 0)
        self.assertEqual(second['total_score'], 15)
        self.assertEqual(result['total_weekly_score'], 33)
        self.assertEqual(result['max_possible_score'], 40)
        self.assertEqual(result['percentage'], 83)

    def test_unscored_days_count_toward_maximum_only(self):
        items = checklist(item_count=1)
        items[0]['day_scores'] = items[0]['day_scores'][:2]
        result = recompute_discipline_grading(items, self.thresholds)

        self.assertEqual(result['total_weekly_score'], 10)
        self.assertEqual(result['max_possible_score'], 20)
        self.assertEqual(result['flag'], FLAG_YELLOW)

    def test_input_is_not_mutated(self):
        items = checklist(item_count=1)
        original = copy.deepcopy(items)
        recompute_discipline_grading(items, self.thresholds)
        self.assertEqual(items, original)

    def test_recompute_is_stable(self):
        first = recompute_discipline_grading(checklist(violations={(3, 2): 1}), self.thresholds)
        second = recompute_discipline_grading(first['items'], self.thresholds)
        self.assertEqual(first, second)

    def test_day_outside_applicable_days_rejected(self):
        items = checklist(item_count=1, days=(1, 2))
        items[0]['day_scores'].append({'day': 5, 'violations': 0})
        with self.assertRaises(ValidationError):
            recompute_discipline_grading(items, self.thresholds)

    def test_day_scored_twice_rejected(self):
        items = checklist(item_count=1, days=(1, 2))
        items[0]['day_scores'].append({'day': 1, 'violations': 0})
        with self.assertRaises(ValidationError):
            recompute_discipline_grading(items, self.thresholds)

    def test_non_positive_max_rejected(self):
        with self.assertRaises(ValidationError):
            recompute_discipline_grading(checklist(item_count=1, max_score=0), self.thresholds)

    def test_default_items_follow_configuration(self):
        config = ScoringConfig.from_defaults()
        items = build_default_discipline_items(config.conduct)

        self.assertEqual(len(items), 6)
        self.assertEqual(items[0]['item_name'], 'Flag ceremony')
        self.assertEqual(items[0]['applicable_days'], [1])

        result = recompute_discipline_grading(items, config.thresholds)
        self.assertEqual(result['max_possible_score'], 100)
        self.assertEqual(result['percentage'], 100)


class AcademicAggregatorTests(SimpleTestCase):

    def test_all_excellent_week_gets_week_bonus(self):
        result = recompute_academic_grading(excellent_week())

        self.assertTrue(result['is_good_week'])
        self.assertEqual(result['good_day_count'], 5)
        self.assertEqual(result['good_week_bonus'], 80)
        self.assertEqual(result['good_day_bonus'], 0)
        self.assertEqual(result['average_score'], 20)
        self.assertEqual(result['final_weekly_score'], result['average_score'] + 80)

    def test_mixed_week_gets_day_bonus(self):
        result = recompute_academic_grading([
            {'day': 1, 'excellent': 5},
            {'day': 2, 'excellent': 4, 'poor': 1},
            {'day': 3},
        ])

        self.assertEqual(result['total_weekly_score'], 170)
        self.assertEqual(result['total_weekly_periods'], 10)
        self.assertEqual(result['average_score'], 17)
        self.assertEqual(result['good_day_count'], 1)
        self.assertFalse(result['is_good_week'])
        self.assertEqual(result['good_week_bonus'], 0)
        self.assertEqual(result['good_day_bonus'], 20)
        self.assertEqual(result['final_weekly_score'], 37)

    def test_empty_week_is_not_good(self):
        result = recompute_academic_grading(build_default_day_gradings([1, 2, 3, 4, 5]))

        self.assertFalse(result['is_good_week'])
        self.assertEqual(result['average_score'], 0)
        self.assertEqual(result['final_weekly_score'], 0)

    def test_bad_periods_use_failing_weight(self):
        result = recompute_academic_grading([{'day': 1, 'bad': 1}])
        self.assertEqual(result['day_gradings'][0]['daily_score'], -20)

    def test_days_sorted_and_unique(self):
        result = recompute_academic_grading([{'day': 3, 'good': 1}, {'day': 1, 'good': 1}])
        self.assertEqual([day['day'] for day in result['day_gradings']], [1, 3])

        with self.assertRaises(ValidationError):
            recompute_academic_grading([{'day': 1}, {'day': 1}])

    def test_negative_counts_rejected(self):
        with self.assertRaises(ValidationError):
            recompute_academic_grading([{'day': 1, 'excellent': -1}])

    def test_recompute_is_stable(self):
        first = recompute_academic_grading([{'day': 1, 'excellent': 3, 'average': 2}, {'day': 2, 'good': 4}])
        second = recompute_academic_grading(first['day_gradings'])
        self.assertEqual(first, second)
