# academics/services.py

"""
Academic Services Module

Business logic for the period registry and the week lifecycle:
- School year creation and configuration edits
- Week calendar generation
- Week approve / lock / unlock with cascading status changes
- Week status, delete preview and deletion

All writes run inside @transaction.atomic. Week rows are taken with
select_for_update() so lifecycle actions and summary regeneration on the
same week are serialized.
"""

from django.apps import apps
from django.core.exceptions import ValidationError
from django.db import transaction, IntegrityError
from django.utils import timezone
import logging

from utils.models import BaseModel
from utils.context import ActingIdentity
from core.exceptions import RecordNotFoundError, InvalidStateError, ConflictError
from core.utils import get_or_not_found, calculate_percentage

from .config import get_grading_defaults
from .lifecycle import APPROVE, LOCK, UNLOCK, LOCKED, plan_transition
from .models import SchoolYear, Week, Class
from .utils import build_week_calendar, get_current_school_year

logger = logging.getLogger(__name__)


# Settings key -> SchoolYear field, per GRADING_DEFAULTS section
DEFAULT_FIELD_MAP = {
    'coefficients': {
        'excellent': 'excellent_coefficient',
        'good': 'good_coefficient',
        'average': 'average_coefficient',
        'poor': 'poor_coefficient',
        'failing': 'failing_coefficient',
    },
    'bonuses': {
        'good_day_bonus': 'good_day_bonus',
        'good_week_bonus': 'good_week_bonus',
        'good_week_min_days': 'good_week_min_days',
    },
    'thresholds': {
        'red': 'red_flag_threshold',
        'green': 'green_flag_threshold',
        'yellow': 'yellow_flag_threshold',
    },
    'conduct': {
        'max_points_per_item': 'max_points_per_item',
        'days_per_week': 'days_per_week',
        'items': 'conduct_items',
    },
    'week': {
        'start_day': 'week_start_day',
        'end_day': 'week_end_day',
    },
}

CONFIGURATION_FIELDS = {
    field_name
    for section in DEFAULT_FIELD_MAP.values()
    for field_name in section.values()
} | {'second_semester_start', 'status', 'description'}


def apply_transition_plan(plan, actor_id=None):
    """
    Write every status update of a TransitionPlan.

    Uses QuerySet.update(), so audit columns are set explicitly.

    Returns:
        dict: model label -> number of rows changed
    """
    changed = {}
    for update in plan.updates:
        model = apps.get_model(update.model_label)
        count = model.objects.filter(**update.lookup).update(
            status=update.status,
            **BaseModel.audit_values(actor_id),
        )
        changed[update.model_label] = changed.get(update.model_label, 0) + count

    logger.info(
        f"Applied {plan.action} ({plan.from_status} -> {plan.to_status}) "
        f"for week {plan.week_id}"
        + (f" class {plan.class_id}" if plan.class_id else "")
        + f": {changed}"
    )
    return changed


def get_locked_week(week_id):
    """Fetch a week row with a row lock held until the transaction ends."""
    return get_or_not_found(Week.objects.select_for_update(), 'Week', pk=week_id)


# =============================================================================
# SCHOOL YEAR SERVICE
# =============================================================================

class SchoolYearService:
    """School year creation, configuration and week generation"""

    @staticmethod
    def default_configuration():
        """SchoolYear field values taken from settings.GRADING_DEFAULTS."""
        defaults = get_grading_defaults()
        values = {}
        for section, mapping in DEFAULT_FIELD_MAP.items():
            section_values = defaults.get(section, {})
            for key, field_name in mapping.items():
                if key in section_values:
                    values[field_name] = section_values[key]
        return values

    @staticmethod
    @transaction.atomic
    def create_school_year(year, start_date, end_date, actor_id=None, generate_weeks=True, **fields):
        """
        Create a school year, filling unspecified configuration from defaults.

        Args:
            year (str): Label in YYYY-YYYY format
            start_date (date): First day
            end_date (date): Last day
            actor_id: Acting identity for audit fields
            generate_weeks (bool): Also lay out the week calendar
            **fields: Any SchoolYear configuration field

        Returns:
            SchoolYear

        Raises:
            ValidationError: Malformed label, dates or configuration
            ConflictError: A year with this label already exists
        """
        unknown = set(fields) - CONFIGURATION_FIELDS
        if unknown:
            raise ValidationError({name: 'Unknown school year field.' for name in sorted(unknown)})

        values = SchoolYearService.default_configuration()
        values.update(fields)

        if SchoolYear.objects.filter(year=year).exists():
            raise ConflictError(f"School year {year} already exists", entity='SchoolYear', entity_id=year)

        with ActingIdentity(actor_id, source='create_school_year'):
            try:
                with transaction.atomic():
                    school_year = SchoolYear(
                        year=year,
                        start_date=start_date,
                        end_date=end_date,
                        **values,
                    )
                    school_year.save()
            except IntegrityError as e:
                raise ConflictError(
                    f"School year {year} already exists", entity='SchoolYear', entity_id=year
                ) from e

            logger.info(f"Created school year {school_year} ({start_date} - {end_date})")

            if generate_weeks:
                SchoolYearService.generate_weeks(school_year.pk, actor_id=actor_id)

        return school_year

    @staticmethod
    @transaction.atomic
    def update_configuration(school_year_id, changes, actor_id=None):
        """
        Edit scoring configuration of a school year.

        Stored gradings and summaries are NOT recomputed; run the
        regenerate_summaries command (or service) to apply new rules.

        Raises:
            RecordNotFoundError: Unknown school year
            ValidationError: Unknown field or invalid configuration
        """
        school_year = get_or_not_found(
            SchoolYear.objects.select_for_update(), 'SchoolYear', pk=school_year_id
        )

        unknown = set(changes) - CONFIGURATION_FIELDS
        if unknown:
            raise ValidationError({name: 'Field cannot be changed here.' for name in sorted(unknown)})

        for field_name, value in changes.items():
            setattr(school_year, field_name, value)

        with ActingIdentity(actor_id, source='update_configuration'):
            school_year.save()

        logger.info(
            f"Updated configuration of school year {school_year}: {sorted(changes)}. "
            f"Existing summaries keep their stored values until regenerated."
        )
        return school_year

    @staticmethod
    @transaction.atomic
    def generate_weeks(school_year_id, actor_id=None):
        """
        Create the week calendar of a school year.

        Returns:
            list[Week]: Created weeks in order

        Raises:
            RecordNotFoundError: Unknown school year
            ConflictError: The year already has weeks
        """
        school_year = get_or_not_found(
            SchoolYear.objects.select_for_update(), 'SchoolYear', pk=school_year_id
        )

        existing = school_year.weeks.count()
        if existing:
            raise ConflictError(
                f"School year {school_year} already has {existing} week(s); delete them first",
                entity='SchoolYear',
                entity_id=school_year.pk,
                details={'existing_weeks': existing},
            )

        calendar = build_week_calendar(
            school_year.start_date,
            school_year.end_date,
            week_start_day=school_year.week_start_day,
            week_end_day=school_year.week_end_day,
        )

        weeks = []
        with ActingIdentity(actor_id, source='generate_weeks'):
            for entry in calendar:
                weeks.append(Week.objects.create(school_year=school_year, **entry))

        logger.info(f"Generated {len(weeks)} week(s) for school year {school_year}")
        return weeks

    @staticmethod
    def get_current_school_year():
        """
        Raises:
            RecordNotFoundError: No school year is Active
        """
        school_year = get_current_school_year()
        if school_year is None:
            raise RecordNotFoundError("No active school year", entity='SchoolYear')
        return school_year


# =============================================================================
# WEEK SERVICE
# =============================================================================

class WeekService:
    """Week lifecycle, status and deletion"""

    @staticmethod
    @transaction.atomic
    def approve_week(week_id, actor_id, notes=''):
        """
        Move a week from Draft to Approved.

        Raises:
            RecordNotFoundError: Unknown week
            InvalidStateError: Week is not Draft
        """
        week = get_locked_week(week_id)
        plan = plan_transition(APPROVE, week.status, week.pk)
        apply_transition_plan(plan, actor_id)

        week.refresh_from_db()
        week.approved_by_id = str(actor_id) if actor_id else None
        week.approved_at = timezone.now()
        if notes:
            week.notes = notes
        with ActingIdentity(actor_id, source='approve_week'):
            week.save(update_fields=['approved_by_id', 'approved_at', 'notes'])

        logger.info(f"Week {week.week_number} of {week.school_year_id} approved by {actor_id}")
        return week

    @staticmethod
    @transaction.atomic
    def lock_week(week_id, actor_id, notes=''):
        """
        Move a week from Approved to Locked and lock all its gradings and summaries.

        Raises:
            RecordNotFoundError: Unknown week
            InvalidStateError: Week is not Approved
        """
        week = get_locked_week(week_id)
        plan = plan_transition(LOCK, week.status, week.pk)
        apply_transition_plan(plan, actor_id)

        week.refresh_from_db()
        week.locked_by_id = str(actor_id) if actor_id else None
        week.locked_at = timezone.now()
        if notes:
            week.notes = notes
        with ActingIdentity(actor_id, source='lock_week'):
            week.save(update_fields=['locked_by_id', 'locked_at', 'notes'])

        logger.info(f"Week {week.week_number} of {week.school_year_id} locked by {actor_id}")
        return week

    @staticmethod
    @transaction.atomic
    def unlock_week(week_id, actor_id, reason=''):
        """
        Administrative unlock: Locked -> Approved for the week and every
        grading and summary of that week.

        Raises:
            RecordNotFoundError: Unknown week
            InvalidStateError: Week is not Locked
        """
        week = get_locked_week(week_id)
        plan = plan_transition(UNLOCK, week.status, week.pk)
        apply_transition_plan(plan, actor_id)

        week.refresh_from_db()
        week.unlocked_by_id = str(actor_id) if actor_id else None
        week.unlocked_at = timezone.now()
        week.change_reason = reason or None
        with ActingIdentity(actor_id, source='unlock_week'):
            week.save(update_fields=['unlocked_by_id', 'unlocked_at', 'change_reason'])

        logger.warning(f"Week {week.week_number} of {week.school_year_id} unlocked by {actor_id}: {reason}")
        return week

    @staticmethod
    def get_week_status(week_id):
        """
        Grading progress of a week.

        Returns:
            dict: week status, classes with daily conduct/academic records,
                  approved violations, class count and completion percentage
        """
        week = get_or_not_found(Week, 'Week', pk=week_id)
        ConductScore = apps.get_model('grading', 'ConductScore')
        AcademicScore = apps.get_model('grading', 'AcademicScore')
        ViolationLog = apps.get_model('discipline', 'ViolationLog')

        conduct_classes = (
            ConductScore.objects.filter(week=week).values('school_class').distinct().count()
        )
        academic_classes = (
            AcademicScore.objects.filter(week=week).values('school_class').distinct().count()
        )
        approved_violations = ViolationLog.objects.filter(
            week=week, status=ViolationLog.STATUS_APPROVED
        ).count()
        total_classes = Class.objects.filter(school_year=week.school_year, is_active=True).count()

        return {
            'week_status': week.status,
            'conduct_scores_completed': conduct_classes,
            'academic_scores_completed': academic_classes,
            'violations_approved': approved_violations,
            'total_classes': total_classes,
            'completion_percentage': calculate_percentage(conduct_classes, total_classes),
        }

    @staticmethod
    def get_delete_preview(week_id):
        """
        Count the records deleting a week would remove.

        Returns:
            dict: per-kind counts plus ``total`` and ``has_related_data``
        """
        week = get_or_not_found(Week, 'Week', pk=week_id)

        related = {
            'weekly_summaries': ('summaries', 'WeeklySummary'),
            'discipline_gradings': ('grading', 'DisciplineGrading'),
            'academic_gradings': ('grading', 'ClassAcademicGrading'),
            'conduct_scores': ('grading', 'ConductScore'),
            'academic_scores': ('grading', 'AcademicScore'),
            'violation_logs': ('discipline', 'ViolationLog'),
        }
        counts = {
            key: apps.get_model(app_label, model_name).objects.filter(week=week).count()
            for key, (app_label, model_name) in related.items()
        }
        counts['total'] = sum(counts.values())
        counts['has_related_data'] = counts['total'] > 0
        return counts

    @staticmethod
    @transaction.atomic
    def delete_week(week_id, actor_id=None, force=False):
        """
        Delete a week and, with ``force``, everything that references it.

        Raises:
            RecordNotFoundError: Unknown week
            InvalidStateError: Week is Locked
            ConflictError: Dependents exist and ``force`` is False
        """
        week = get_locked_week(week_id)

        if week.status == LOCKED:
            raise InvalidStateError(
                f"Week {week.week_number} ({week.pk}) is locked and cannot be deleted",
                entity='Week',
                entity_id=week.pk,
            )

        preview = WeekService.get_delete_preview(week.pk)
        if preview['has_related_data'] and not force:
            raise ConflictError(
                f"Week {week.week_number} has {preview['total']} related record(s); "
                f"pass force=True to delete them too",
                entity='Week',
                entity_id=week.pk,
                details=preview,
            )

        # Foreign keys cascade to gradings, daily scores, violations and summaries
        week.delete()

        logger.warning(
            f"Week {week.week_number} of {week.school_year_id} deleted by {actor_id} "
            f"with {preview['total']} related record(s)"
        )
        return preview
