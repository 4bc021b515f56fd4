# grading/services.py

"""
Grading Services Module

Business logic for daily score records and weekly gradings:
- Daily conduct / academic score upserts
- Discipline grading start, item edits and recomputation
- Academic grading start, day edits and recomputation
- Forward-only status changes and deletion

Weekly gradings are singletons per (class, week): the unique constraint
is the guard, and IntegrityError surfaces as ConflictError. Every write
to a weekly grading regenerates that class's weekly summary in the same
transaction.
"""

from django.core.exceptions import ValidationError
from django.db import transaction, IntegrityError
from django.utils import timezone
import logging

from utils.context import ActingIdentity
from core.exceptions import ConflictError
from core.utils import get_or_not_found
from academics.lifecycle import DRAFT, APPROVED, ensure_writable, validate_record_transition
from academics.services import get_locked_week
from academics.utils import school_days_of_week
from summaries.services import WeeklySummaryService, get_class_in_year

from .models import (
    ConductScore, AcademicScore, DisciplineGrading, ClassAcademicGrading,
)
from .utils import (
    compute_daily_conduct_score, compute_daily_academic_score,
    build_default_discipline_items, build_default_day_gradings,
)

logger = logging.getLogger(__name__)


def _check_date_in_week(week, on_date):
    if not week.contains(on_date):
        raise ValidationError({
            'date': f"Date {on_date} is outside week {week.week_number} "
                    f"({week.start_date} - {week.end_date})."
        })


def _get_grading_for_update(model, grading_id):
    """
    Lock the grading's week, then the grading row.

    Returns:
        tuple: (grading, week)
    """
    entity = model.__name__
    grading = get_or_not_found(model, entity, pk=grading_id)
    week = get_locked_week(grading.week_id)
    grading = model.objects.select_for_update().get(pk=grading.pk)
    return grading, week


def _create_grading(grading, entity):
    try:
        with transaction.atomic():
            grading.save()
    except IntegrityError as e:
        raise ConflictError(
            f"{entity} already exists for class {grading.school_class_id} in week {grading.week_id}",
            entity=entity,
            entity_id=f"{grading.week_id}/{grading.school_class_id}",
        ) from e
    return grading


# =============================================================================
# DAILY SCORE SERVICE
# =============================================================================

class DailyScoreService:
    """Daily conduct checklist and lesson quality records"""

    @staticmethod
    @transaction.atomic
    def record_conduct_score(week_id, class_id, date, items, actor_id=None, notes=''):
        """
        Create or replace the conduct record of one class-day.

        Args:
            week_id: Week the day belongs to
            class_id: Class being scored
            date (date): Calendar day inside the week
            items (list[dict]): ``{'item_name', 'violation_count', ...}``
            actor_id: Acting identity for audit fields
            notes (str): Free text

        Returns:
            ConductScore: Saved record, status reset to Draft

        Raises:
            RecordNotFoundError: Unknown week or class
            InvalidStateError: Week is Locked
            ValidationError: Date outside the week or malformed items
        """
        week = get_locked_week(week_id)
        ensure_writable(week, entity='ConductScore')
        school_class = get_class_in_year(class_id, week.school_year_id)
        _check_date_in_week(week, date)

        config = week.school_year.get_scoring_config()
        result = compute_daily_conduct_score(items, config.conduct.max_points_per_item)

        with ActingIdentity(actor_id, source='record_conduct_score'):
            record, created = ConductScore.objects.update_or_create(
                week=week,
                school_class=school_class,
                date=date,
                defaults={
                    'day_of_week': date.isoweekday(),
                    'items': result['items'],
                    'total_daily_score': result['total_daily_score'],
                    'max_daily_score': result['max_daily_score'],
                    'total_violations': result['total_violations'],
                    'status': DRAFT,
                    'notes': notes or '',
                },
            )

        logger.info(
            f"{'Recorded' if created else 'Updated'} conduct score for {school_class.name} on {date}: "
            f"{record.total_daily_score}/{record.max_daily_score}"
        )
        return record

    @staticmethod
    @transaction.atomic
    def record_academic_score(week_id, class_id, date, lessons, actor_id=None, notes=''):
        """
        Create or replace the lesson quality record of one class-day.

        Returns:
            AcademicScore: Saved record, status reset to Draft

        Raises:
            RecordNotFoundError: Unknown week or class
            InvalidStateError: Week is Locked
            ValidationError: Date outside the week or unknown quality tier
        """
        week = get_locked_week(week_id)
        ensure_writable(week, entity='AcademicScore')
        school_class = get_class_in_year(class_id, week.school_year_id)
        _check_date_in_week(week, date)

        config = week.school_year.get_scoring_config()
        result = compute_daily_academic_score(
            lessons,
            coefficients=config.coefficients,
            good_day_bonus=config.bonuses.good_day_bonus,
        )
        calculation = {
            key: value for key, value in result.items()
            if key not in ('lessons', 'lesson_statistics', 'is_good_day', 'total_daily_score')
        }

        with ActingIdentity(actor_id, source='record_academic_score'):
            record, created = AcademicScore.objects.update_or_create(
                week=week,
                school_class=school_class,
                date=date,
                defaults={
                    'day_of_week': date.isoweekday(),
                    'lessons': result['lessons'],
                    'lesson_statistics': result['lesson_statistics'],
                    'calculation': calculation,
                    'is_good_day': result['is_good_day'],
                    'total_daily_score': result['total_daily_score'],
                    'status': DRAFT,
                    'notes': notes or '',
                },
            )

        logger.info(
            f"{'Recorded' if created else 'Updated'} academic score for {school_class.name} on {date}: "
            f"{record.total_daily_score} (good day: {record.is_good_day})"
        )
        return record


# =============================================================================
# DISCIPLINE GRADING SERVICE
# =============================================================================

class DisciplineGradingService:
    """Weekly conduct checklist of a class"""

    @staticmethod
    @transaction.atomic
    def start_discipline_grading(week_id, class_id, actor_id=None):
        """
        Create the discipline grading of a class for a week, every item at full marks.

        Raises:
            RecordNotFoundError: Unknown week or class
            InvalidStateError: Week is Locked
            ConflictError: The class already has a grading for this week
        """
        week = get_locked_week(week_id)
        ensure_writable(week, entity='DisciplineGrading')
        school_class = get_class_in_year(class_id, week.school_year_id)

        if DisciplineGrading.objects.filter(week=week, school_class=school_class).exists():
            raise ConflictError(
                f"Discipline grading already exists for {school_class.name} in week {week.week_number}",
                entity='DisciplineGrading',
                entity_id=f"{week.pk}/{school_class.pk}",
            )

        school_year = week.school_year
        config = school_year.get_scoring_config()
        grading = DisciplineGrading(
            school_class=school_class,
            week=week,
            school_year=school_year,
            semester=school_year.get_semester(week.start_date),
            week_start_date=week.start_date,
            week_end_date=week.end_date,
            items=build_default_discipline_items(config.conduct),
        )
        grading.recalculate(config.thresholds)

        with ActingIdentity(actor_id, source='start_discipline_grading'):
            _create_grading(grading, 'DisciplineGrading')

        logger.info(
            f"Started discipline grading for {school_class.name}, week {week.week_number}: "
            f"{len(grading.items)} item(s), max {grading.max_possible_score}"
        )
        WeeklySummaryService.regenerate(week.pk, school_class.pk, actor_id)
        return grading

    @staticmethod
    @transaction.atomic
    def update_discipline_items(grading_id, items, actor_id=None, notes=None):
        """
        Replace the checklist items and rebuild every derived total.

        Raises:
            InvalidStateError: Grading or its week is Locked
            ValidationError: Malformed items
        """
        grading, week = _get_grading_for_update(DisciplineGrading, grading_id)
        ensure_writable(week, grading)

        grading.items = items
        grading.recalculate(week.school_year.get_scoring_config().thresholds)
        if notes is not None:
            grading.notes = notes

        with ActingIdentity(actor_id, source='update_discipline_items'):
            grading.save()

        logger.info(
            f"Updated discipline grading {grading.pk}: {grading.total_weekly_score}/"
            f"{grading.max_possible_score} ({grading.percentage}%, {grading.flag})"
        )
        WeeklySummaryService.regenerate(week.pk, grading.school_class_id, actor_id)
        return grading

    @staticmethod
    @transaction.atomic
    def recompute_discipline_grading(grading_id, actor_id=None):
        """
        Rebuild derived totals from the stored items with the year's current thresholds.

        Raises:
            InvalidStateError: Grading or its week is Locked
        """
        grading, week = _get_grading_for_update(DisciplineGrading, grading_id)
        ensure_writable(week, grading)

        grading.recalculate(week.school_year.get_scoring_config().thresholds)
        with ActingIdentity(actor_id, source='recompute_discipline_grading'):
            grading.save()

        WeeklySummaryService.regenerate(week.pk, grading.school_class_id, actor_id)
        return grading

    @staticmethod
    @transaction.atomic
    def set_status(grading_id, status, actor_id=None):
        """
        Move a discipline grading one lifecycle step forward.

        Raises:
            InvalidStateError: Week Locked or transition not allowed
        """
        return _set_grading_status(DisciplineGrading, grading_id, status, actor_id)

    @staticmethod
    @transaction.atomic
    def delete_grading(grading_id, actor_id=None):
        """
        Delete a discipline grading; the weekly summary falls back to zero conduct.

        Raises:
            InvalidStateError: Grading or its week is Locked
        """
        return _delete_grading(DisciplineGrading, grading_id, actor_id)


# =============================================================================
# ACADEMIC GRADING SERVICE
# =============================================================================

class AcademicGradingService:
    """Weekly period-quality tally of a class"""

    @staticmethod
    @transaction.atomic
    def start_academic_grading(week_id, class_id, actor_id=None):
        """
        Create the academic grading of a class for a week with one empty day per school day.

        Raises:
            RecordNotFoundError: Unknown week or class
            InvalidStateError: Week is Locked
            ConflictError: The class already has a grading for this week
        """
        week = get_locked_week(week_id)
        ensure_writable(week, entity='ClassAcademicGrading')
        school_class = get_class_in_year(class_id, week.school_year_id)

        if ClassAcademicGrading.objects.filter(week=week, school_class=school_class).exists():
            raise ConflictError(
                f"Academic grading already exists for {school_class.name} in week {week.week_number}",
                entity='ClassAcademicGrading',
                entity_id=f"{week.pk}/{school_class.pk}",
            )

        school_year = week.school_year
        config = school_year.get_scoring_config()
        days = school_days_of_week(week, config.conduct.days_per_week)
        grading = ClassAcademicGrading(
            school_class=school_class,
            week=week,
            school_year=school_year,
            semester=school_year.get_semester(week.start_date),
            day_gradings=build_default_day_gradings(days),
        )
        grading.recalculate(config.coefficients)

        with ActingIdentity(actor_id, source='start_academic_grading'):
            _create_grading(grading, 'ClassAcademicGrading')

        logger.info(
            f"Started academic grading for {school_class.name}, week {week.week_number}: days {days}"
        )
        WeeklySummaryService.regenerate(week.pk, school_class.pk, actor_id)
        return grading

    @staticmethod
    @transaction.atomic
    def update_academic_days(grading_id, day_gradings, actor_id=None, notes=None):
        """
        Replace the per-day period counts and rebuild every derived total.

        Raises:
            InvalidStateError: Grading or its week is Locked
            ValidationError: Bad day numbers or counts
        """
        grading, week = _get_grading_for_update(ClassAcademicGrading, grading_id)
        ensure_writable(week, grading)

        grading.day_gradings = day_gradings
        grading.recalculate(week.school_year.get_scoring_config().coefficients)
        if notes is not None:
            grading.notes = notes

        with ActingIdentity(actor_id, source='update_academic_days'):
            grading.save()

        logger.info(
            f"Updated academic grading {grading.pk}: final {grading.final_weekly_score} "
            f"({grading.good_day_count} good day(s), good week: {grading.is_good_week})"
        )
        WeeklySummaryService.regenerate(week.pk, grading.school_class_id, actor_id)
        return grading

    @staticmethod
    @transaction.atomic
    def recompute_academic_grading(grading_id, actor_id=None):
        """
        Rebuild derived totals from the stored day gradings.

        Raises:
            InvalidStateError: Grading or its week is Locked
        """
        grading, week = _get_grading_for_update(ClassAcademicGrading, grading_id)
        ensure_writable(week, grading)

        grading.recalculate(week.school_year.get_scoring_config().coefficients)
        with ActingIdentity(actor_id, source='recompute_academic_grading'):
            grading.save()

        WeeklySummaryService.regenerate(week.pk, grading.school_class_id, actor_id)
        return grading

    @staticmethod
    @transaction.atomic
    def set_status(grading_id, status, actor_id=None):
        """
        Move an academic grading one lifecycle step forward.

        Raises:
            InvalidStateError: Week Locked or transition not allowed
        """
        return _set_grading_status(ClassAcademicGrading, grading_id, status, actor_id)

    @staticmethod
    @transaction.atomic
    def delete_grading(grading_id, actor_id=None):
        """
        Delete an academic grading; the weekly summary falls back to zero academic.

        Raises:
            InvalidStateError: Grading or its week is Locked
        """
        return _delete_grading(ClassAcademicGrading, grading_id, actor_id)


# =============================================================================
# SHARED STATUS AND DELETE HANDLING
# =============================================================================

def _set_grading_status(model, grading_id, status, actor_id):
    entity = model.__name__
    grading, week = _get_grading_for_update(model, grading_id)
    ensure_writable(week, entity=entity)

    grading.status = validate_record_transition(grading.status, status, entity, grading.pk)
    update_fields = ['status']
    if status == APPROVED:
        grading.approved_by_id = str(actor_id) if actor_id else None
        grading.approved_at = timezone.now()
        update_fields += ['approved_by_id', 'approved_at']

    with ActingIdentity(actor_id, source=f'set_{entity.lower()}_status'):
        grading.save(update_fields=update_fields)

    logger.info(f"{entity} {grading.pk} moved to {grading.status} by {actor_id}")
    return grading


def _delete_grading(model, grading_id, actor_id):
    entity = model.__name__
    grading, week = _get_grading_for_update(model, grading_id)
    ensure_writable(week, grading)

    class_id = grading.school_class_id
    grading_pk = grading.pk
    grading.delete()

    logger.warning(f"{entity} {grading_pk} deleted by {actor_id}")
    WeeklySummaryService.regenerate(week.pk, class_id, actor_id)
    return grading_pk
