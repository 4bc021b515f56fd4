# grading/utils.py

"""
Grading Utility Functions

Pure scoring functions. Nothing here touches the database: inputs are
plain dicts/lists (the JSON stored on the grading models) plus a
ScoringConfig piece, outputs are new dicts. Recomputing from the same
input always yields the same output.

Contains:
- Classification flags
- Daily conduct and academic scorers
- Weekly discipline aggregator
- Weekly academic aggregator
"""

from django.core.exceptions import ValidationError
import copy
import logging

from academics.config import (
    AcademicCoefficients, BonusConfiguration, QUALITY_TIERS,
)
from core.utils import round_half_up, calculate_percentage, safe_divide

logger = logging.getLogger(__name__)


# =============================================================================
# CLASSIFICATION FLAGS
# =============================================================================

FLAG_RED = 'red'
FLAG_GREEN = 'green'
FLAG_YELLOW = 'yellow'
FLAG_NONE = 'none'

FLAG_CHOICES = [
    (FLAG_RED, 'Red'),
    (FLAG_GREEN, 'Green'),
    (FLAG_YELLOW, 'Yellow'),
    (FLAG_NONE, 'None'),
]

FLAG_RANK = {
    FLAG_NONE: 0,
    FLAG_YELLOW: 1,
    FLAG_GREEN: 2,
    FLAG_RED: 3,
}

HONOR_FLAGS = (FLAG_RED, FLAG_GREEN)


def calculate_flag(value, thresholds):
    """
    Classify a percentage (weekly) or point total (monthly).

    Thresholds are checked from the highest down.

    Args:
        value: Number to classify
        thresholds (ClassificationThresholds): red/green/yellow limits

    Returns:
        str: One of FLAG_RED, FLAG_GREEN, FLAG_YELLOW, FLAG_NONE
    """
    value = value or 0
    if value >= thresholds.red:
        return FLAG_RED
    if value >= thresholds.green:
        return FLAG_GREEN
    if value >= thresholds.yellow:
        return FLAG_YELLOW
    return FLAG_NONE


def flag_rank(flag):
    """Order of flags: none < yellow < green < red."""
    return FLAG_RANK[flag]


# =============================================================================
# VALIDATION HELPERS
# =============================================================================

def _non_negative_int(value, field, context):
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError({field: f"{context}: '{field}' must be a non-negative integer, got {value!r}."})
    return value


def _weekday(value, field, context):
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 7:
        raise ValidationError({field: f"{context}: day must be an ISO weekday 1-7, got {value!r}."})
    return value


# =============================================================================
# DAILY CONDUCT SCORER
# =============================================================================

def compute_conduct_item_score(violation_count, max_points_per_item):
    """Points left for one checklist item: max minus violations, floored at 0."""
    return max(0, min(max_points_per_item, max_points_per_item - violation_count))


def compute_daily_conduct_score(items, max_points_per_item=5):
    """
    Score one class-day of the conduct checklist.

    Args:
        items (list[dict]): ``{'item_name', 'violation_count',
            'violating_student_ids'?, 'order'?}``
        max_points_per_item (int): Full marks per item

    Returns:
        dict: ``items`` (with ``score``), ``total_daily_score``,
              ``max_daily_score``, ``total_violations``

    Raises:
        ValidationError: Missing name or a negative/non-integer count
    """
    scored = []
    total = 0
    total_violations = 0

    for index, item in enumerate(items or [], start=1):
        name = str(item.get('item_name', '')).strip()
        if not name:
            raise ValidationError({'items': f"Conduct item {index} has no name."})
        violations = _non_negative_int(item.get('violation_count', 0), 'violation_count', name)
        score = compute_conduct_item_score(violations, max_points_per_item)

        scored.append({
            'item_name': name,
            'violation_count': violations,
            'score': score,
            'violating_student_ids': [str(sid) for sid in item.get('violating_student_ids', [])],
            'order': item.get('order', index),
        })
        total += score
        total_violations += violations

    return {
        'items': scored,
        'total_daily_score': total,
        'max_daily_score': max_points_per_item * len(scored),
        'total_violations': total_violations,
    }


# =============================================================================
# DAILY ACADEMIC SCORER
# =============================================================================

def calculate_lesson_statistics(lessons):
    """Count lessons per quality tier."""
    statistics = {tier: 0 for tier in QUALITY_TIERS}
    for lesson in lessons:
        statistics[lesson['quality']] += 1
    statistics['total'] = len(lessons)
    return statistics


def compute_daily_academic_score(lessons, coefficients=None, good_day_bonus=None):
    """
    Score one class-day from its lesson quality ratings.

    subtotal = sum(count[tier] * coefficient[tier]); the daily average
    divides by the lesson count (at least 1) and rounds half up. A day with
    no poor and no failing lesson is a good day and earns the bonus.

    Args:
        lessons (list[dict]): ``{'lesson_number', 'quality', 'notes'?}``
        coefficients (AcademicCoefficients): Points per tier
        good_day_bonus (int): Bonus for a good day

    Returns:
        dict: ``lessons`` (with ``points``), ``lesson_statistics``,
              per-tier ``*_points``, ``subtotal``, ``total_lessons``,
              ``daily_average``, ``is_good_day``, ``good_day_bonus``,
              ``total_daily_score``

    Raises:
        ValidationError: Unknown quality tier
    """
    coefficients = coefficients or AcademicCoefficients()
    if good_day_bonus is None:
        good_day_bonus = BonusConfiguration().good_day_bonus

    normalized = []
    for index, lesson in enumerate(lessons or [], start=1):
        quality = lesson.get('quality')
        if quality not in QUALITY_TIERS:
            raise ValidationError({
                'lessons': f"Lesson {lesson.get('lesson_number', index)} has unknown quality {quality!r}."
            })
        normalized.append({
            'lesson_number': lesson.get('lesson_number', index),
            'quality': quality,
            'points': coefficients.for_tier(quality),
            'notes': lesson.get('notes', ''),
        })

    statistics = calculate_lesson_statistics(normalized)
    tier_points = {
        f'{tier}_points': statistics[tier] * coefficients.for_tier(tier)
        for tier in QUALITY_TIERS
    }
    subtotal = sum(tier_points.values())
    total_lessons = len(normalized) or 1
    daily_average = round_half_up(subtotal / total_lessons)
    is_good_day = statistics['poor'] == 0 and statistics['failing'] == 0
    bonus = good_day_bonus if is_good_day else 0

    return {
        'lessons': normalized,
        'lesson_statistics': statistics,
        **tier_points,
        'subtotal': subtotal,
        'total_lessons': total_lessons,
        'daily_average': daily_average,
        'is_good_day': is_good_day,
        'good_day_bonus': bonus,
        'total_daily_score': daily_average + bonus,
    }


# =============================================================================
# WEEKLY DISCIPLINE AGGREGATOR
# =============================================================================

def build_default_discipline_items(conduct):
    """
    Checklist items for a new discipline grading, every day at full marks.

    Args:
        conduct (ConductConfiguration): The year's conduct configuration

    Returns:
        list[dict]
    """
    max_score = conduct.max_points_per_item
    ordered = sorted(conduct.items, key=lambda item: item.order)
    items = []
    for index, item in enumerate(ordered, start=1):
        days = list(item.applicable_days)
        items.append({
            'item_id': index,
            'item_name': item.name,
            'max_score': max_score,
            'applicable_days': days,
            'day_scores': [
                {'day': day, 'violations': 0, 'score': max_score, 'violating_student_ids': []}
                for day in days
            ],
            'total_score': max_score * len(days),
        })
    return items


def normalize_discipline_items(items):
    """
    Validate checklist items and return a clean deep copy.

    Each item needs ``item_name``, a positive ``max_score`` and at least
    one applicable day; day scores may only reference applicable days, at
    most once each.

    Raises:
        ValidationError
    """
    if not isinstance(items, list):
        raise ValidationError({'items': 'Items must be a list.'})

    normalized = []
    for index, raw in enumerate(items, start=1):
        item = copy.deepcopy(raw)
        name = str(item.get('item_name', '')).strip()
        if not name:
            raise ValidationError({'items': f"Item {index} has no name."})

        max_score = item.get('max_score')
        if isinstance(max_score, bool) or not isinstance(max_score, int) or max_score <= 0:
            raise ValidationError({'max_score': f"{name}: max score must be a positive integer."})

        applicable_days = [_weekday(day, 'applicable_days', name) for day in item.get('applicable_days') or []]
        if not applicable_days:
            raise ValidationError({'applicable_days': f"{name}: at least one applicable day is required."})
        if len(set(applicable_days)) != len(applicable_days):
            raise ValidationError({'applicable_days': f"{name}: applicable days repeat."})

        day_scores = []
        seen_days = set()
        for day_score in item.get('day_scores') or []:
            day = _weekday(day_score.get('day'), 'day_scores', name)
            if day not in applicable_days:
                raise ValidationError({'day_scores': f"{name}: day {day} is not an applicable day."})
            if day in seen_days:
                raise ValidationError({'day_scores': f"{name}: day {day} is scored twice."})
            seen_days.add(day)
            day_scores.append({
                'day': day,
                'violations': _non_negative_int(day_score.get('violations', 0), 'violations', name),
                'violating_student_ids': [str(sid) for sid in day_score.get('violating_student_ids', [])],
            })

        normalized.append({
            'item_id': item.get('item_id', index),
            'item_name': name,
            'max_score': max_score,
            'applicable_days': applicable_days,
            'day_scores': sorted(day_scores, key=lambda entry: entry['day']),
        })
    return normalized


def recompute_discipline_grading(items, thresholds):
    """
    Recompute every derived field of a discipline grading from its items.

    Each day score is max_score minus violations clamped to [0, max_score];
    item totals sum their day scores; the weekly percentage is measured
    against max_score x number of applicable days over all items.

    Args:
        items (list[dict]): Raw or stored items
        thresholds (ClassificationThresholds)

    Returns:
        dict: ``items``, ``total_weekly_score``, ``max_possible_score``,
              ``percentage``, ``flag``
    """
    recomputed = []
    total_weekly_score = 0
    max_possible_score = 0

    for item in normalize_discipline_items(items):
        max_score = item['max_score']
        for day_score in item['day_scores']:
            day_score['score'] = compute_conduct_item_score(day_score['violations'], max_score)

        item['total_score'] = sum(day_score['score'] for day_score in item['day_scores'])
        total_weekly_score += item['total_score']
        max_possible_score += max_score * len(item['applicable_days'])
        recomputed.append(item)

    percentage = calculate_percentage(total_weekly_score, max_possible_score)
    return {
        'items': recomputed,
        'total_weekly_score': total_weekly_score,
        'max_possible_score': max_possible_score,
        'percentage': percentage,
        'flag': calculate_flag(percentage, thresholds),
    }


# =============================================================================
# WEEKLY ACADEMIC AGGREGATOR
# =============================================================================

# Period ratings of a class-day; 'bad' is scored with the failing coefficient
PERIOD_TIERS = ('excellent', 'good', 'average', 'poor', 'bad')
PERIOD_COEFFICIENT_TIER = {
    'excellent': 'excellent',
    'good': 'good',
    'average': 'average',
    'poor': 'poor',
    'bad': 'failing',
}

GOOD_WEEK_BONUS_POINTS = 80
GOOD_DAY_BONUS_POINTS = 20


def build_default_day_gradings(days):
    """Empty day entries for a new academic grading."""
    return [{'day': day, **{tier: 0 for tier in PERIOD_TIERS}} for day in days]


def compute_academic_day(day_grading, coefficients=None):
    """
    Derive ``total_periods``, ``daily_score`` and ``is_good_day`` for one day.

    A good day has at least one period and every period excellent.
    """
    coefficients = coefficients or AcademicCoefficients()
    day = _weekday(day_grading.get('day'), 'day_gradings', 'Academic day')
    counts = {
        tier: _non_negative_int(day_grading.get(tier, 0), tier, f"Day {day}")
        for tier in PERIOD_TIERS
    }
    total_periods = sum(counts.values())
    daily_score = sum(
        counts[tier] * coefficients.for_tier(PERIOD_COEFFICIENT_TIER[tier])
        for tier in PERIOD_TIERS
    )

    result = {'day': day, **counts}
    if day_grading.get('notes'):
        result['notes'] = day_grading['notes']
    result.update({
        'total_periods': total_periods,
        'daily_score': daily_score,
        'is_good_day': total_periods > 0 and counts['excellent'] == total_periods,
    })
    return result


def recompute_academic_grading(day_gradings, coefficients=None):
    """
    Recompute every derived field of a class academic grading.

    The good week bonus and the per-good-day bonus are mutually exclusive:
    a good week (every day with periods is a good day) earns only the week
    bonus.

    Args:
        day_gradings (list[dict]): ``{'day', 'excellent', 'good', 'average',
            'poor', 'bad'}`` per school day
        coefficients (AcademicCoefficients): Point weights per tier

    Returns:
        dict: ``day_gradings``, ``total_weekly_score``,
              ``total_weekly_periods``, ``average_score``, ``good_day_count``,
              ``is_good_week``, ``good_week_bonus``, ``good_day_bonus``,
              ``final_weekly_score``

    Raises:
        ValidationError: Bad day number, negative counts or repeated days
    """
    if not isinstance(day_gradings, list):
        raise ValidationError({'day_gradings': 'Day gradings must be a list.'})

    days = [compute_academic_day(day_grading, coefficients) for day_grading in day_gradings]
    day_numbers = [day['day'] for day in days]
    if len(set(day_numbers)) != len(day_numbers):
        raise ValidationError({'day_gradings': 'Each day may appear only once.'})
    days.sort(key=lambda day: day['day'])

    total_weekly_score = sum(day['daily_score'] for day in days)
    total_weekly_periods = sum(day['total_periods'] for day in days)
    good_day_count = sum(1 for day in days if day['is_good_day'])

    days_with_periods = [day for day in days if day['total_periods'] > 0]
    is_good_week = bool(days_with_periods) and all(day['is_good_day'] for day in days_with_periods)

    average_score = safe_divide(total_weekly_score, total_weekly_periods)
    good_week_bonus = GOOD_WEEK_BONUS_POINTS if is_good_week else 0
    good_day_bonus = 0 if is_good_week else good_day_count * GOOD_DAY_BONUS_POINTS

    return {
        'day_gradings': days,
        'total_weekly_score': total_weekly_score,
        'total_weekly_periods': total_weekly_periods,
        'average_score': average_score,
        'good_day_count': good_day_count,
        'is_good_week': is_good_week,
        'good_week_bonus': good_week_bonus,
        'good_day_bonus': good_day_bonus,
        'final_weekly_score': average_score + good_week_bonus + good_day_bonus,
    }
