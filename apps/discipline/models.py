# discipline/models.py

from django.db import models
from django.core.exceptions import ValidationError
import logging

from utils.models import BaseModel
from students.models import Student

logger = logging.getLogger(__name__)


# =============================================================================
# VIOLATION TYPE MODEL
# =============================================================================

class ViolationType(BaseModel):
    """Catalogue entry for a kind of rule violation and its penalty"""

    SEVERITY_CHOICES = [
        ('light', 'Light'),
        ('medium', 'Medium'),
        ('severe', 'Severe'),
    ]

    CATEGORY_CHOICES = [
        ('conduct', 'Conduct'),
        ('academic', 'Academic'),
        ('discipline', 'Discipline'),
        ('other', 'Other'),
    ]

    name = models.CharField("Name", max_length=100, unique=True)
    description = models.TextField("Description", blank=True)
    severity = models.CharField(
        "Severity",
        max_length=10,
        choices=SEVERITY_CHOICES,
        default='light',
        db_index=True
    )
    default_penalty = models.PositiveSmallIntegerField(
        "Default Penalty",
        default=1,
        help_text="Points deducted from the weekly summary per approved violation"
    )
    category = models.CharField(
        "Category",
        max_length=15,
        choices=CATEGORY_CHOICES,
        default='conduct',
        db_index=True
    )
    is_active = models.BooleanField("Is Active", default=True)
    order = models.PositiveSmallIntegerField("Display Order", default=0)

    def __str__(self):
        return self.name

    class Meta:
        ordering = ['order', 'name']
        verbose_name = "Violation Type"
        verbose_name_plural = "Violation Types"
        indexes = [
            models.Index(fields=['is_active', 'order']),
        ]


# =============================================================================
# VIOLATION LOG MODEL
# =============================================================================

class ViolationLog(BaseModel):
    """
    One recorded violation by one student.

    Workflow: Pending -> Approved | Rejected. Approved records are final.
    Any record may be Merged into another; duplicates of an already
    approved record are kept with ``is_duplicate`` set.
    """

    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_MERGED = 'merged'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_MERGED, 'Merged'),
    ]

    # -------------------------------------------------------------------------
    # CORE RELATIONSHIPS
    # -------------------------------------------------------------------------

    week = models.ForeignKey(
        'academics.Week',
        verbose_name="Week",
        on_delete=models.CASCADE,
        related_name='violation_logs'
    )
    student = models.ForeignKey(
        Student,
        verbose_name="Student",
        on_delete=models.CASCADE,
        related_name='violation_logs'
    )
    school_class = models.ForeignKey(
        'academics.Class',
        verbose_name="Class",
        on_delete=models.CASCADE,
        related_name='violation_logs'
    )
    violation_type = models.ForeignKey(
        ViolationType,
        verbose_name="Violation Type",
        on_delete=models.PROTECT,
        related_name='violation_logs'
    )

    # -------------------------------------------------------------------------
    # INCIDENT DETAILS
    # -------------------------------------------------------------------------

    date = models.DateField("Date", db_index=True)
    violation_time = models.TimeField("Time", null=True, blank=True)
    description = models.TextField(
        "Description",
        help_text="What happened"
    )
    location = models.CharField("Location", max_length=100, blank=True)
    evidence = models.JSONField(
        "Evidence",
        blank=True,
        default=list,
        help_text="List of evidence references (file keys, URLs)"
    )
    # Copied from the type at insert so later catalogue edits do not rewrite history
    severity = models.CharField(
        "Severity",
        max_length=10,
        choices=ViolationType.SEVERITY_CHOICES,
        blank=True
    )
    category = models.CharField(
        "Category",
        max_length=15,
        choices=ViolationType.CATEGORY_CHOICES,
        blank=True
    )
    reported_by_id = models.CharField(
        "Reported By ID",
        max_length=64,
        null=True,
        blank=True,
        help_text="Identity that reported this violation"
    )

    # -------------------------------------------------------------------------
    # APPROVAL WORKFLOW
    # -------------------------------------------------------------------------

    status = models.CharField(
        "Status",
        max_length=10,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
        db_index=True
    )
    approved_by_id = models.CharField(
        "Reviewed By ID",
        max_length=64,
        null=True,
        blank=True,
        help_text="Identity that approved or rejected this violation"
    )
    approved_at = models.DateTimeField("Reviewed At", null=True, blank=True)
    approval_notes = models.TextField("Approval Notes", blank=True)
    rejection_reason = models.TextField("Rejection Reason", blank=True)

    # -------------------------------------------------------------------------
    # DUPLICATES AND MERGES
    # -------------------------------------------------------------------------

    is_duplicate = models.BooleanField("Is Duplicate", default=False, db_index=True)
    duplicate_of = models.ForeignKey(
        'self',
        verbose_name="Duplicate Of",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='duplicates',
        help_text="Approved record this one repeats, or the record it was merged into"
    )
    supplementary_notes = models.TextField("Supplementary Notes", blank=True)
    notes = models.TextField("Notes", blank=True)

    def clean(self):
        super().clean()
        errors = {}

        if not (self.description or '').strip():
            errors['description'] = 'A description is required.'

        if self.week_id and self.date and not self.week.contains(self.date):
            errors['date'] = (
                f"Date {self.date} is outside week {self.week.week_number} "
                f"({self.week.start_date} - {self.week.end_date})."
            )

        if self.student_id and self.school_class_id and self.student.school_class_id != self.school_class_id:
            errors['school_class'] = 'Student does not belong to this class.'

        if errors:
            raise ValidationError(errors)

    @property
    def penalty(self):
        return self.violation_type.default_penalty

    @property
    def is_final(self):
        return self.status in (self.STATUS_APPROVED, self.STATUS_MERGED)

    def __str__(self):
        return f"{self.student.full_name} - {self.violation_type.name} ({self.date})"

    class Meta:
        ordering = ['-date', '-created_at']
        verbose_name = "Violation Log"
        verbose_name_plural = "Violation Logs"
        indexes = [
            models.Index(fields=['week', 'school_class', 'status']),
            models.Index(fields=['student', 'violation_type', 'date', 'status']),
        ]
