# summaries/services.py

"""
Summary Services Module

Regeneration and lifecycle of weekly and monthly summaries:
- Weekly summary regeneration (full replace, per class and week)
- Grade-level ranking of weekly summaries
- Weekly summary approve / lock / unlock scoped to one class
- Monthly summary regeneration
- Read-only class rankings and violation Pareto reports

Each regeneration reads the gradings and violations, builds the document
with summaries.utils and writes it with one update_or_create on the
unique key. The owning Week row is held with select_for_update() for the
whole call so concurrent regenerations of the same week are serialized.
"""

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone
import logging

from utils.context import ActingIdentity
from core.utils import get_or_not_found, month_bounds
from academics.lifecycle import (
    APPROVED, LOCK, UNLOCK, plan_transition, ensure_writable, validate_record_transition,
)
from academics.models import SchoolYear, Week, Class
from academics.services import apply_transition_plan, get_locked_week
from academics.utils import get_weeks_in_month, get_classes_for_year
from grading.models import DisciplineGrading, ClassAcademicGrading
from discipline.models import ViolationLog

from .models import WeeklySummary, MonthlySummary
from .utils import (
    build_weekly_summary, build_monthly_summary, build_violation_pareto, rank_by_score,
)

logger = logging.getLogger(__name__)


# =============================================================================
# SNAPSHOTS
# =============================================================================

def discipline_snapshot(grading):
    if grading is None:
        return None
    return {
        'items': grading.items,
        'total_weekly_score': grading.total_weekly_score,
        'max_possible_score': grading.max_possible_score,
        'percentage': grading.percentage,
    }


def academic_snapshot(grading):
    if grading is None:
        return None
    return {
        'day_gradings': grading.day_gradings,
        'final_weekly_score': grading.final_weekly_score,
        'average_score': grading.average_score,
        'good_day_count': grading.good_day_count,
        'is_good_week': grading.is_good_week,
    }


def violation_snapshots(queryset):
    """
    Plain dicts for the summary builders, oldest first.

    The (date, created_at, id) order defines first-seen order for ranking ties.
    """
    violations = queryset.select_related('student', 'violation_type').order_by('date', 'created_at', 'id')
    return [
        {
            'id': str(violation.pk),
            'student_id': str(violation.student_id),
            'student_code': violation.student.student_code,
            'student_name': violation.student.full_name,
            'violation_type_id': str(violation.violation_type_id),
            'violation_type_name': violation.violation_type.name,
            'severity': violation.severity or violation.violation_type.severity,
            'penalty': violation.violation_type.default_penalty,
            'status': violation.status,
            'date': violation.date.isoformat(),
        }
        for violation in violations
    ]


def get_class_in_year(class_id, school_year_id):
    """
    Fetch a class and check it belongs to the school year.

    Raises:
        RecordNotFoundError: Unknown class
        ValidationError: Class belongs to another school year
    """
    school_class = get_or_not_found(Class, 'Class', pk=class_id)
    if school_class.school_year_id != school_year_id:
        raise ValidationError({
            'school_class': f"Class {school_class.name} does not belong to school year {school_year_id}."
        })
    return school_class


# =============================================================================
# WEEKLY SUMMARY SERVICE
# =============================================================================

class WeeklySummaryService:
    """Weekly summary regeneration, ranking and lifecycle"""

    @staticmethod
    @transaction.atomic
    def regenerate(week_id, class_id, actor_id=None):
        """
        Rebuild the weekly summary of one class from its current sources.

        The stored document is replaced whole. A Locked summary is left
        untouched and returned as is.

        Args:
            week_id: Week primary key
            class_id: Class primary key
            actor_id: Acting identity for audit fields

        Returns:
            WeeklySummary

        Raises:
            RecordNotFoundError: Unknown week or class
            InvalidStateError: The week is Locked
            ValidationError: Class belongs to another school year
        """
        # =================================================================
        # STEP 1: GATE ON THE WEEK (row lock serializes the key)
        # =================================================================
        week = get_locked_week(week_id)
        ensure_writable(week, entity='WeeklySummary')
        school_class = get_class_in_year(class_id, week.school_year_id)

        existing = WeeklySummary.objects.filter(week=week, school_class=school_class).first()
        if existing is not None and existing.is_locked:
            logger.info(
                f"Weekly summary {existing.pk} ({school_class.name}, week {week.week_number}) "
                f"is locked; skipping regeneration"
            )
            return existing

        # =================================================================
        # STEP 2: READ SOURCES
        # =================================================================
        config = week.school_year.get_scoring_config()
        discipline = DisciplineGrading.objects.filter(week=week, school_class=school_class).first()
        academic = ClassAcademicGrading.objects.filter(week=week, school_class=school_class).first()
        violations = violation_snapshots(
            ViolationLog.objects.filter(week=week, school_class=school_class)
        )

        # =================================================================
        # STEP 3: BUILD AND REPLACE
        # =================================================================
        document = build_weekly_summary(
            discipline_snapshot(discipline),
            academic_snapshot(academic),
            violations,
            config,
        )
        classification = document['classification']

        with ActingIdentity(actor_id, source='regenerate_weekly_summary'):
            summary, created = WeeklySummary.objects.update_or_create(
                week=week,
                school_class=school_class,
                defaults={
                    **document,
                    'flag': classification['flag'],
                    'total_score': classification['total_score'],
                    'percentage': classification['percentage'],
                },
            )

        logger.info(
            f"{'Created' if created else 'Regenerated'} weekly summary for {school_class.name}, "
            f"week {week.week_number}: {classification['total_score']} "
            f"({classification['percentage']}%, {classification['flag']})"
        )

        # =================================================================
        # STEP 4: RANK WITHIN THE GRADE
        # =================================================================
        WeeklySummaryService.rank_grade(week, school_class.grade)
        summary.refresh_from_db()
        return summary

    @staticmethod
    def rank_grade(week, grade):
        """
        Write competition rankings of one grade's summaries for a week.

        Locked summaries take part in the ranking but keep their stored value.
        """
        summaries = list(
            WeeklySummary.objects.filter(week=week, school_class__grade=grade)
        )
        ranks = rank_by_score([
            {'key': summary.pk, 'score': summary.total_score} for summary in summaries
        ])

        for summary in summaries:
            if summary.is_locked:
                continue
            rank = ranks[summary.pk]
            if summary.classification.get('ranking') == rank:
                continue
            classification = dict(summary.classification)
            classification['ranking'] = rank
            summary.classification = classification
            summary.save(update_fields=['classification'])

        return ranks

    @staticmethod
    def regenerate_week(week_id, actor_id=None):
        """
        Regenerate the summaries of every active class of a week.

        Returns:
            list[WeeklySummary]
        """
        week = get_or_not_found(Week, 'Week', pk=week_id)
        summaries = []
        for school_class in get_classes_for_year(week.school_year):
            summaries.append(WeeklySummaryService.regenerate(week.pk, school_class.pk, actor_id))
        logger.info(f"Regenerated {len(summaries)} weekly summaries for week {week.week_number}")
        return summaries

    @staticmethod
    @transaction.atomic
    def approve(summary_id, actor_id):
        """
        Draft -> Approved for one weekly summary.

        Raises:
            InvalidStateError: Week or summary is Locked, or summary not Draft
        """
        summary = get_or_not_found(
            WeeklySummary.objects.select_for_update(), 'WeeklySummary', pk=summary_id
        )
        ensure_writable(summary.week, summary)
        summary.status = validate_record_transition(
            summary.status, APPROVED, 'WeeklySummary', summary.pk
        )
        summary.approved_by_id = str(actor_id) if actor_id else None
        summary.approved_at = timezone.now()
        with ActingIdentity(actor_id, source='approve_weekly_summary'):
            summary.save(update_fields=['status', 'approved_by_id', 'approved_at'])

        logger.info(f"Weekly summary {summary.pk} approved by {actor_id}")
        return summary

    @staticmethod
    @transaction.atomic
    def lock(summary_id, actor_id):
        """
        Approved -> Locked for one class's summary and both of its gradings.

        Raises:
            InvalidStateError: Week is Locked or summary not Approved
        """
        return WeeklySummaryService._scoped_transition(summary_id, LOCK, actor_id)

    @staticmethod
    @transaction.atomic
    def unlock(summary_id, actor_id):
        """
        Locked -> Approved for one class's summary and both of its gradings.

        A summary inside a Locked week stays frozen; unlock the week instead.

        Raises:
            InvalidStateError: Week is Locked or summary not Locked
        """
        return WeeklySummaryService._scoped_transition(summary_id, UNLOCK, actor_id)

    @staticmethod
    def _scoped_transition(summary_id, action, actor_id):
        summary = get_or_not_found(WeeklySummary, 'WeeklySummary', pk=summary_id)
        week = get_locked_week(summary.week_id)
        ensure_writable(week, entity='WeeklySummary')

        plan = plan_transition(action, summary.status, week.pk, class_id=summary.school_class_id)
        apply_transition_plan(plan, actor_id)

        summary.refresh_from_db()
        logger.info(f"Weekly summary {summary.pk}: {action} by {actor_id}")
        return summary


# =============================================================================
# MONTHLY SUMMARY SERVICE
# =============================================================================

class MonthlySummaryService:
    """Monthly roll-up of weekly summaries"""

    @staticmethod
    @transaction.atomic
    def regenerate(school_year_id, month, year, class_id, actor_id=None):
        """
        Rebuild the monthly summary of one class.

        Weeks belong to the month their start date falls in.

        Args:
            school_year_id: SchoolYear primary key
            month (int): 1-12
            year (int): Calendar year
            class_id: Class primary key
            actor_id: Acting identity for audit fields

        Returns:
            MonthlySummary

        Raises:
            RecordNotFoundError: Unknown school year or class
            ValidationError: Bad month, or no week starts in the month
        """
        school_year = get_or_not_found(SchoolYear, 'SchoolYear', pk=school_year_id)
        school_class = get_class_in_year(class_id, school_year.pk)

        try:
            month_bounds(month, year)
        except ValueError as e:
            raise ValidationError({'month': str(e)}) from e

        weeks = list(get_weeks_in_month(school_year, month, year))
        if not weeks:
            raise ValidationError({
                'month': f"No weeks of {school_year} start in {month:02d}/{year}."
            })

        existing = MonthlySummary.objects.filter(
            school_year=school_year, month=month, year=year, school_class=school_class
        ).first()
        if existing is not None and existing.is_locked:
            logger.info(f"Monthly summary {existing.pk} is locked; skipping regeneration")
            return existing

        weekly = {
            summary.week_id: summary
            for summary in WeeklySummary.objects.filter(week__in=weeks, school_class=school_class)
        }
        entries = [
            {
                'week_id': str(week.pk),
                'week_number': week.week_number,
                'summary': weekly[week.pk].document() if week.pk in weekly else None,
            }
            for week in weeks
        ]
        violations = violation_snapshots(
            ViolationLog.objects.filter(week__in=weeks, school_class=school_class)
        )

        document = build_monthly_summary(
            entries, violations, school_year.get_scoring_config().thresholds
        )

        with ActingIdentity(actor_id, source='regenerate_monthly_summary'):
            summary, created = MonthlySummary.objects.update_or_create(
                school_year=school_year,
                month=month,
                year=year,
                school_class=school_class,
                defaults={
                    **document,
                    'flag': document['classification']['flag'],
                    'total_score': document['classification']['total_score'],
                },
            )
            summary.weeks.set(weeks)

        logger.info(
            f"{'Created' if created else 'Regenerated'} monthly summary {month:02d}/{year} "
            f"for {school_class.name}: {summary.total_score} ({summary.flag}) over {len(weeks)} week(s)"
        )
        return summary

    @staticmethod
    def regenerate_month(school_year_id, month, year, actor_id=None):
        """Regenerate the monthly summary of every active class."""
        school_year = get_or_not_found(SchoolYear, 'SchoolYear', pk=school_year_id)
        return [
            MonthlySummaryService.regenerate(school_year.pk, month, year, school_class.pk, actor_id)
            for school_class in get_classes_for_year(school_year)
        ]


# =============================================================================
# REPORT SERVICE
# =============================================================================

class SummaryReportService:
    """Read-only rankings and violation statistics"""

    @staticmethod
    def _ranked_classes(week_id, limit, descending):
        week = get_or_not_found(Week, 'Week', pk=week_id)
        order = '-total_weekly_score' if descending else 'total_weekly_score'
        gradings = (
            DisciplineGrading.objects.filter(week=week)
            .select_related('school_class')
            .order_by(order, 'school_class__name')[:limit]
        )
        return [
            {
                'rank': position,
                'class_id': str(grading.school_class_id),
                'class_name': grading.school_class.name,
                'grade': grading.school_class.grade,
                'score': grading.total_weekly_score,
                'percentage': grading.percentage,
                'flag': grading.flag,
            }
            for position, grading in enumerate(gradings, start=1)
        ]

    @staticmethod
    def top_classes(week_id, limit=10):
        """Classes with the highest discipline totals of a week."""
        return SummaryReportService._ranked_classes(week_id, limit, descending=True)

    @staticmethod
    def bottom_classes(week_id, limit=10):
        """Classes with the lowest discipline totals of a week."""
        return SummaryReportService._ranked_classes(week_id, limit, descending=False)

    @staticmethod
    def violation_pareto(week_id, class_id=None):
        """Violation types of a week by frequency, optionally for one class."""
        violations = ViolationLog.objects.filter(week_id=week_id)
        if class_id is not None:
            violations = violations.filter(school_class_id=class_id)
        return build_violation_pareto(violation_snapshots(violations))
