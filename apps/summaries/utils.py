# summaries/utils.py

"""
Summary Builders

Pure functions that compose weekly and monthly summary documents from
plain snapshots of gradings and violations. The services module takes
the snapshots and stores the result; the same snapshots always produce
the same document.

Violation snapshots are dicts with ``id``, ``student_id``,
``student_code``, ``student_name``, ``violation_type_id``,
``violation_type_name``, ``severity``, ``penalty``, ``status``, ``date``.
"""

import logging

from core.utils import round_half_up, calculate_percentage
from grading.utils import calculate_flag, HONOR_FLAGS

logger = logging.getLogger(__name__)

APPROVED = 'approved'
PENDING = 'pending'
REJECTED = 'rejected'
MERGED = 'merged'

WEEKLY_TOP_VIOLATORS = 5
MONTHLY_TOP_VIOLATORS = 10


# =============================================================================
# VIOLATION AGGREGATION
# =============================================================================

def rank_top_violators(violations, limit, include_details=False):
    """
    Students ordered by violation count, highest first.

    Ties keep first-seen order: the sort is stable and students are
    registered in the order of ``violations``.

    Returns:
        list[dict]: ``{'student_id', 'student_code', 'student_name', 'count'}``
                    plus ``violations`` details when requested
    """
    by_student = {}
    for violation in violations:
        entry = by_student.get(violation['student_id'])
        if entry is None:
            entry = {
                'student_id': violation['student_id'],
                'student_code': violation.get('student_code', ''),
                'student_name': violation.get('student_name', ''),
                'count': 0,
            }
            if include_details:
                entry['violations'] = []
            by_student[violation['student_id']] = entry

        entry['count'] += 1
        if include_details:
            entry['violations'].append({
                'violation_type': violation['violation_type_name'],
                'date': violation['date'],
                'status': violation['status'],
            })

    ranked = sorted(by_student.values(), key=lambda entry: -entry['count'])
    return ranked[:limit]


def count_violations_by_type(violations):
    """Per-type counts in first-seen order."""
    by_type = {}
    for violation in violations:
        entry = by_type.setdefault(violation['violation_type_id'], {
            'violation_type_id': violation['violation_type_id'],
            'type_name': violation['violation_type_name'],
            'severity': violation.get('severity', ''),
            'count': 0,
        })
        entry['count'] += 1
    return list(by_type.values())


def summarize_violations(violations, top_limit=WEEKLY_TOP_VIOLATORS, include_details=False):
    """
    Counts, penalty and rankings for a set of violation snapshots.

    Merged records are folded into another record and are not counted.
    Rejected records count in the status totals only. The penalty sums
    approved records.
    """
    counted = [v for v in violations if v['status'] != MERGED]
    standing = [v for v in counted if v['status'] in (APPROVED, PENDING)]

    return {
        'total': len(counted),
        'approved': sum(1 for v in counted if v['status'] == APPROVED),
        'pending': sum(1 for v in counted if v['status'] == PENDING),
        'rejected': sum(1 for v in counted if v['status'] == REJECTED),
        'total_penalty': sum(v['penalty'] for v in counted if v['status'] == APPROVED),
        'by_type': count_violations_by_type(standing),
        'top_violators': rank_top_violators(standing, top_limit, include_details=include_details),
    }


# =============================================================================
# WEEKLY SUMMARY
# =============================================================================

def summarize_conduct(discipline):
    """
    Conduct section of a weekly summary.

    Args:
        discipline (dict or None): ``items``, ``total_weekly_score``,
            ``max_possible_score``, ``percentage`` of the DisciplineGrading
    """
    if not discipline:
        return {
            'total': 0,
            'average': 0,
            'max_possible': 0,
            'percentage': 0,
            'by_day': [],
            'by_item': [],
        }

    by_day = {}
    by_item = []
    for item in discipline['items']:
        item_max = item['max_score'] * len(item['applicable_days'])
        by_item.append({
            'item_name': item['item_name'],
            'total_score': item.get('total_score', 0),
            'max_score': item_max,
            'percentage': calculate_percentage(item.get('total_score', 0), item_max),
        })
        for day in item['applicable_days']:
            by_day.setdefault(day, {'day': day, 'score': 0, 'max_score': 0})
            by_day[day]['max_score'] += item['max_score']
        for day_score in item.get('day_scores', []):
            by_day[day_score['day']]['score'] += day_score['score']

    total = discipline['total_weekly_score']
    graded_days = len(by_day)
    return {
        'total': total,
        'average': round_half_up(total / graded_days) if graded_days else 0,
        'max_possible': discipline['max_possible_score'],
        'percentage': discipline['percentage'],
        'by_day': [by_day[day] for day in sorted(by_day)],
        'by_item': by_item,
    }


def summarize_academic(academic):
    """
    Academic section of a weekly summary.

    Args:
        academic (dict or None): ``day_gradings``, ``final_weekly_score``,
            ``average_score``, ``good_day_count``, ``is_good_week`` of the
            ClassAcademicGrading
    """
    statistics = {'excellent': 0, 'good': 0, 'average': 0, 'poor': 0, 'failing': 0}
    if not academic:
        return {
            'total': 0,
            'average': 0,
            'good_days': 0,
            'is_good_week': False,
            'by_day': [],
            'lesson_statistics': statistics,
        }

    by_day = []
    for day in academic['day_gradings']:
        by_day.append({
            'day': day['day'],
            'score': day['daily_score'],
            'is_good_day': day['is_good_day'],
        })
        statistics['excellent'] += day.get('excellent', 0)
        statistics['good'] += day.get('good', 0)
        statistics['average'] += day.get('average', 0)
        statistics['poor'] += day.get('poor', 0)
        statistics['failing'] += day.get('bad', 0)

    return {
        'total': academic['final_weekly_score'],
        'average': academic['average_score'],
        'good_days': academic['good_day_count'],
        'is_good_week': academic['is_good_week'],
        'by_day': by_day,
        'lesson_statistics': statistics,
    }


def calculate_bonuses(good_days, bonuses):
    """
    Weekly summary bonuses from the academic good-day count.

    Args:
        good_days (int): Good days in the week
        bonuses (BonusConfiguration)
    """
    good_day_bonus = good_days * bonuses.good_day_bonus
    good_week_bonus = bonuses.good_week_bonus if good_days >= bonuses.good_week_min_days else 0
    return {
        'good_day_bonus': good_day_bonus,
        'good_week_bonus': good_week_bonus,
        'total': good_day_bonus + good_week_bonus,
    }


def build_weekly_summary(discipline, academic, violations, config):
    """
    Compose the full weekly summary document of one class.

    totalScore = max(0, conduct total + bonus total - approved penalty);
    the percentage is measured against the discipline maximum and
    classifies the week.

    Args:
        discipline (dict or None): DisciplineGrading snapshot
        academic (dict or None): ClassAcademicGrading snapshot
        violations (list[dict]): Violation snapshots for the class and week
        config (ScoringConfig)

    Returns:
        dict: ``conduct_scores``, ``academic_scores``, ``bonuses``,
              ``violations``, ``classification``
    """
    conduct_scores = summarize_conduct(discipline)
    academic_scores = summarize_academic(academic)
    bonuses = calculate_bonuses(academic_scores['good_days'], config.bonuses)
    violation_summary = summarize_violations(violations, top_limit=WEEKLY_TOP_VIOLATORS)

    total_score = max(
        0,
        conduct_scores['total'] + bonuses['total'] - violation_summary['total_penalty'],
    )
    percentage = calculate_percentage(total_score, conduct_scores['max_possible'])

    return {
        'conduct_scores': conduct_scores,
        'academic_scores': academic_scores,
        'bonuses': bonuses,
        'violations': violation_summary,
        'classification': {
            'flag': calculate_flag(percentage, config.thresholds),
            'total_score': total_score,
            'percentage': percentage,
            'ranking': None,
        },
    }


def rank_by_score(entries):
    """
    Competition ranking (1, 1, 3) of ``{'key', 'score'}`` entries, highest first.

    Returns:
        dict: key -> rank
    """
    ordered = sorted(entries, key=lambda entry: -entry['score'])
    ranks = {}
    previous_score = None
    previous_rank = 0
    for position, entry in enumerate(ordered, start=1):
        if entry['score'] != previous_score:
            previous_rank = position
            previous_score = entry['score']
        ranks[entry['key']] = previous_rank
    return ranks


# =============================================================================
# MONTHLY SUMMARY
# =============================================================================

def build_monthly_summary(weekly_entries, violations, thresholds):
    """
    Roll the weekly summaries of one class over a calendar month.

    Classification uses the absolute point total (conduct + academic +
    bonus), not a percentage. Averages divide by the weeks that have a
    weekly summary; weeks without one still appear in the breakdowns.

    Args:
        weekly_entries (list[dict]): One per week in the month, in week
            order: ``{'week_id', 'week_number', 'summary'}`` where
            ``summary`` is the stored weekly document or None
        violations (list[dict]): Violation snapshots over the same weeks
        thresholds (ClassificationThresholds)

    Returns:
        dict: ``conduct_scores``, ``academic_scores``, ``bonuses``,
              ``violations``, ``classification``, ``honor_roll``,
              ``critical_list``
    """
    summarized_weeks = sum(1 for entry in weekly_entries if entry['summary'] is not None)

    conduct_by_week = []
    academic_by_week = []
    bonus_by_week = []
    honor_roll = []
    critical_list = []
    good_days = 0

    for entry in weekly_entries:
        summary = entry['summary'] or {}
        conduct_total = summary.get('conduct_scores', {}).get('total', 0)
        academic_total = summary.get('academic_scores', {}).get('total', 0)
        bonus_total = summary.get('bonuses', {}).get('total', 0)
        good_days += summary.get('academic_scores', {}).get('good_days', 0)

        conduct_by_week.append({'week_number': entry['week_number'], 'score': conduct_total})
        academic_by_week.append({'week_number': entry['week_number'], 'score': academic_total})
        bonus_by_week.append({'week_number': entry['week_number'], 'bonus': bonus_total})

        if entry['summary'] is None:
            continue
        classification = summary.get('classification', {})
        listing = {
            'week_id': entry['week_id'],
            'week_number': entry['week_number'],
            'total_score': classification.get('total_score', 0),
            'flag': classification.get('flag'),
        }
        if listing['flag'] in HONOR_FLAGS:
            honor_roll.append(listing)
        else:
            critical_list.append(listing)

    conduct_total = sum(week['score'] for week in conduct_by_week)
    academic_total = sum(week['score'] for week in academic_by_week)
    bonus_total = sum(week['bonus'] for week in bonus_by_week)
    total_score = conduct_total + academic_total + bonus_total

    return {
        'conduct_scores': {
            'total': conduct_total,
            'average': round_half_up(conduct_total / summarized_weeks) if summarized_weeks else 0,
            'by_week': conduct_by_week,
        },
        'academic_scores': {
            'total': academic_total,
            'average': round_half_up(academic_total / summarized_weeks) if summarized_weeks else 0,
            'good_days': good_days,
            'by_week': academic_by_week,
        },
        'bonuses': {
            'total': bonus_total,
            'by_week': bonus_by_week,
        },
        'violations': summarize_violations(
            violations, top_limit=MONTHLY_TOP_VIOLATORS, include_details=True
        ),
        'classification': {
            'flag': calculate_flag(total_score, thresholds),
            'total_score': total_score,
        },
        'honor_roll': honor_roll,
        'critical_list': critical_list,
    }


def build_violation_pareto(violations):
    """
    Violation types by count, highest first, with their share of the total.

    Returns:
        dict: ``{'total', 'items': [{'name', 'count', 'percentage'}]}``
    """
    counted = [v for v in violations if v['status'] != MERGED]
    by_type = count_violations_by_type(counted)
    total = len(counted)
    items = [
        {
            'name': entry['type_name'],
            'count': entry['count'],
            'percentage': calculate_percentage(entry['count'], total),
        }
        for entry in sorted(by_type, key=lambda entry: -entry['count'])
    ]
    return {'total': total, 'items': items}
