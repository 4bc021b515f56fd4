# discipline/services.py

"""
Violation Ledger Services

Recording and review of individual violations:
- Logging with duplicate detection
- Editing while still under review
- Approve / reject / merge workflow
- Deletion of unapproved records

Every change refreshes the weekly summary of the violation's class and
week. Writes are refused while the owning week is Locked.
"""

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone
import logging

from utils.context import ActingIdentity
from core.exceptions import InvalidStateError
from core.utils import get_or_not_found
from academics.lifecycle import ensure_writable
from academics.services import get_locked_week
from students.models import Student
from summaries.services import WeeklySummaryService

from .models import ViolationLog, ViolationType

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    'date', 'violation_type', 'description', 'violation_time',
    'location', 'evidence', 'notes', 'supplementary_notes',
)


def get_violation_for_update(violation_id):
    """
    Lock the violation's week, then the violation row.

    Returns:
        tuple: (violation, week)
    """
    violation = get_or_not_found(ViolationLog, 'ViolationLog', pk=violation_id)
    week = get_locked_week(violation.week_id)
    violation = ViolationLog.objects.select_for_update().select_related(
        'violation_type', 'student'
    ).get(pk=violation.pk)
    return violation, week


def _require_pending(violation, action):
    if violation.status != ViolationLog.STATUS_PENDING:
        raise InvalidStateError(
            f"Cannot {action} violation {violation.pk}: status is '{violation.status}', expected 'pending'",
            entity='ViolationLog',
            entity_id=violation.pk,
        )


# =============================================================================
# VIOLATION LEDGER SERVICE
# =============================================================================

class ViolationLedgerService:
    """Violation recording and review workflow"""

    @staticmethod
    def detect_duplicate(student_id, violation_type_id, on_date, exclude_id=None):
        """
        Find an Approved violation with the same student, type and calendar day.

        Returns:
            ViolationLog or None: The earliest approved match
        """
        matches = ViolationLog.objects.filter(
            student_id=student_id,
            violation_type_id=violation_type_id,
            date=on_date,
            status=ViolationLog.STATUS_APPROVED,
        )
        if exclude_id is not None:
            matches = matches.exclude(pk=exclude_id)
        return matches.order_by('approved_at', 'created_at').first()

    @staticmethod
    @transaction.atomic
    def log_violation(week_id, student_id, violation_type_id, date, description,
                      actor_id=None, class_id=None, **extra):
        """
        Record a violation.

        A record matching an already approved violation is still stored,
        flagged ``is_duplicate`` and pointing at the approved record.

        Args:
            week_id: Week the violation belongs to
            student_id: Student who committed it
            violation_type_id: ViolationType
            date (date): Calendar day, must fall inside the week
            description (str): What happened (required)
            actor_id: Reporting identity
            class_id: Defaults to the student's class
            **extra: violation_time, location, evidence, notes

        Returns:
            dict: ``{'record': ViolationLog, 'is_duplicate': bool}``

        Raises:
            RecordNotFoundError: Unknown week, student or type
            InvalidStateError: Week is Locked
            ValidationError: Date outside the week, missing description,
                inactive type or class mismatch
        """
        # =================================================================
        # STEP 1: VALIDATE REFERENCES
        # =================================================================
        week = get_locked_week(week_id)
        ensure_writable(week, entity='ViolationLog')

        student = get_or_not_found(Student, 'Student', pk=student_id)
        violation_type = get_or_not_found(ViolationType, 'ViolationType', pk=violation_type_id)
        if not violation_type.is_active:
            raise ValidationError({'violation_type': f"Violation type '{violation_type.name}' is inactive."})

        unknown = set(extra) - {'violation_time', 'location', 'evidence', 'notes'}
        if unknown:
            raise ValidationError({name: 'Unknown violation field.' for name in sorted(unknown)})

        violation = ViolationLog(
            week=week,
            student=student,
            school_class_id=class_id or student.school_class_id,
            violation_type=violation_type,
            date=date,
            description=description,
            severity=violation_type.severity,
            category=violation_type.category,
            reported_by_id=str(actor_id) if actor_id else None,
            **extra,
        )
        violation.clean()

        # =================================================================
        # STEP 2: DUPLICATE DETECTION
        # =================================================================
        duplicate_of = ViolationLedgerService.detect_duplicate(student.pk, violation_type.pk, date)
        if duplicate_of is not None:
            violation.is_duplicate = True
            violation.duplicate_of = duplicate_of
            logger.warning(
                f"Violation by {student.student_code} ({violation_type.name}, {date}) "
                f"duplicates approved record {duplicate_of.pk}"
            )

        with ActingIdentity(actor_id, source='log_violation'):
            violation.save()

        logger.info(
            f"Logged violation {violation.pk}: {student.student_code} - {violation_type.name} on {date}"
        )

        # =================================================================
        # STEP 3: REFRESH SUMMARY
        # =================================================================
        WeeklySummaryService.regenerate(week.pk, violation.school_class_id, actor_id)
        return {'record': violation, 'is_duplicate': violation.is_duplicate}

    @staticmethod
    @transaction.atomic
    def update_violation(violation_id, changes, actor_id=None):
        """
        Edit a violation that is not yet approved or merged.

        Raises:
            InvalidStateError: Violation Approved/Merged or week Locked
            ValidationError: Unknown field or invalid values
        """
        violation, week = get_violation_for_update(violation_id)
        ensure_writable(week, entity='ViolationLog')

        if violation.is_final:
            raise InvalidStateError(
                f"Violation {violation.pk} is {violation.status} and can no longer be edited",
                entity='ViolationLog',
                entity_id=violation.pk,
            )

        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError({name: 'Field cannot be edited.' for name in sorted(unknown)})

        for field_name, value in changes.items():
            if field_name == 'violation_type':
                value = get_or_not_found(ViolationType, 'ViolationType', pk=getattr(value, 'pk', value))
                violation.severity = value.severity
                violation.category = value.category
            setattr(violation, field_name, value)
        violation.clean()

        with ActingIdentity(actor_id, source='update_violation'):
            violation.save()

        logger.info(f"Updated violation {violation.pk}: {sorted(changes)}")
        WeeklySummaryService.regenerate(week.pk, violation.school_class_id, actor_id)
        return violation

    @staticmethod
    @transaction.atomic
    def approve_violation(violation_id, actor_id, notes=''):
        """
        Pending -> Approved; the penalty starts counting in the weekly summary.

        Raises:
            InvalidStateError: Not Pending, or week Locked
        """
        violation, week = get_violation_for_update(violation_id)
        ensure_writable(week, entity='ViolationLog')
        _require_pending(violation, 'approve')

        violation.status = ViolationLog.STATUS_APPROVED
        violation.approved_by_id = str(actor_id) if actor_id else None
        violation.approved_at = timezone.now()
        violation.approval_notes = notes or ''

        with ActingIdentity(actor_id, source='approve_violation'):
            violation.save()

        logger.info(f"Violation {violation.pk} approved by {actor_id}")
        WeeklySummaryService.regenerate(week.pk, violation.school_class_id, actor_id)
        return violation

    @staticmethod
    @transaction.atomic
    def reject_violation(violation_id, actor_id, reason):
        """
        Pending -> Rejected with a mandatory reason.

        Raises:
            ValidationError: Empty reason
            InvalidStateError: Not Pending, or week Locked
        """
        if not (reason or '').strip():
            raise ValidationError({'rejection_reason': 'A reason is required to reject a violation.'})

        violation, week = get_violation_for_update(violation_id)
        ensure_writable(week, entity='ViolationLog')
        _require_pending(violation, 'reject')

        violation.status = ViolationLog.STATUS_REJECTED
        violation.approved_by_id = str(actor_id) if actor_id else None
        violation.approved_at = timezone.now()
        violation.rejection_reason = reason.strip()

        with ActingIdentity(actor_id, source='reject_violation'):
            violation.save()

        logger.info(f"Violation {violation.pk} rejected by {actor_id}: {violation.rejection_reason}")
        WeeklySummaryService.regenerate(week.pk, violation.school_class_id, actor_id)
        return violation

    @staticmethod
    @transaction.atomic
    def merge_violation(violation_id, into_id, actor_id, notes=''):
        """
        Fold a violation into another record of the same student.

        The merged record stops counting anywhere; ``duplicate_of`` points
        at the record it was folded into.

        Raises:
            ValidationError: Same record, or records of different students
            InvalidStateError: Either record already Merged, or week Locked
        """
        if str(violation_id) == str(into_id):
            raise ValidationError({'duplicate_of': 'A violation cannot be merged into itself.'})

        violation, week = get_violation_for_update(violation_id)
        ensure_writable(week, entity='ViolationLog')
        target = get_or_not_found(ViolationLog, 'ViolationLog', pk=into_id)

        for record in (violation, target):
            if record.status == ViolationLog.STATUS_MERGED:
                raise InvalidStateError(
                    f"Violation {record.pk} is already merged",
                    entity='ViolationLog',
                    entity_id=record.pk,
                )
        if target.student_id != violation.student_id:
            raise ValidationError({'duplicate_of': 'Only violations of the same student can be merged.'})

        violation.status = ViolationLog.STATUS_MERGED
        violation.duplicate_of = target
        if notes:
            violation.supplementary_notes = '\n'.join(
                part for part in (violation.supplementary_notes, notes) if part
            )

        with ActingIdentity(actor_id, source='merge_violation'):
            violation.save()

        logger.info(f"Violation {violation.pk} merged into {target.pk} by {actor_id}")
        WeeklySummaryService.regenerate(week.pk, violation.school_class_id, actor_id)
        return violation

    @staticmethod
    @transaction.atomic
    def delete_violation(violation_id, actor_id=None):
        """
        Delete a Pending or Rejected violation.

        Raises:
            InvalidStateError: Approved/Merged, or week Locked
        """
        violation, week = get_violation_for_update(violation_id)
        ensure_writable(week, entity='ViolationLog')

        if violation.status not in (ViolationLog.STATUS_PENDING, ViolationLog.STATUS_REJECTED):
            raise InvalidStateError(
                f"Violation {violation.pk} is {violation.status}; only pending or rejected "
                f"violations can be deleted",
                entity='ViolationLog',
                entity_id=violation.pk,
            )

        class_id = violation.school_class_id
        violation_pk = violation.pk
        violation.delete()

        logger.warning(f"Violation {violation_pk} deleted by {actor_id}")
        WeeklySummaryService.regenerate(week.pk, class_id, actor_id)
        return violation_pk
