# academics/models.py

"""
Period registry: school years, their weeks, and the classes graded in them.

A SchoolYear carries the scoring configuration (coefficients, bonuses,
classification thresholds and the conduct checklist) that every score in
that year is computed with. Weeks are generated from the year's date range
and carry the Draft -> Approved -> Locked lifecycle that gates all writes
to their grading and summary records.
"""

from django.db import models
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
import re
import logging

from utils.models import BaseModel
from core.utils import date_range_error
from academics.config import (
    ScoringConfig, AcademicCoefficients, BonusConfiguration,
    ClassificationThresholds, ConductConfiguration, ConductItem,
    get_grading_defaults,
)
from academics.lifecycle import LIFECYCLE_STATUS_CHOICES, DRAFT, LOCKED

logger = logging.getLogger(__name__)

YEAR_LABEL_PATTERN = re.compile(r'^(\d{4})-(\d{4})$')

WEEKDAY_CHOICES = [
    (1, 'Monday'),
    (2, 'Tuesday'),
    (3, 'Wednesday'),
    (4, 'Thursday'),
    (5, 'Friday'),
    (6, 'Saturday'),
    (7, 'Sunday'),
]

WEEKDAY_VALUES = {value for value, _ in WEEKDAY_CHOICES}


def default_conduct_items():
    return get_grading_defaults().get('conduct', {}).get('items', [])


# =============================================================================
# SCHOOL YEAR MODEL
# =============================================================================

class SchoolYear(BaseModel):
    """
    An academic year and the scoring rules that apply inside it.

    Editing coefficients or thresholds only affects future recomputation;
    stored summaries are rebuilt by an explicit regenerate action.
    """

    STATUS_ACTIVE = 'active'
    STATUS_ENDED = 'ended'
    STATUS_PAUSED = 'paused'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_ENDED, 'Ended'),
        (STATUS_PAUSED, 'Paused'),
    ]

    # -------------------------------------------------------------------------
    # IDENTIFICATION
    # -------------------------------------------------------------------------

    year = models.CharField(
        "School Year",
        max_length=9,
        unique=True,
        help_text="Format YYYY-YYYY, e.g. 2024-2025"
    )
    start_date = models.DateField("Start Date", db_index=True)
    end_date = models.DateField("End Date", db_index=True)
    second_semester_start = models.DateField(
        "Second Semester Start",
        null=True,
        blank=True,
        help_text="Weeks starting on or after this date belong to semester 2"
    )
    status = models.CharField(
        "Status",
        max_length=10,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
        db_index=True
    )
    description = models.TextField("Description", blank=True)

    # -------------------------------------------------------------------------
    # ACADEMIC SCORING COEFFICIENTS
    # -------------------------------------------------------------------------

    excellent_coefficient = models.IntegerField(
        "Excellent Coefficient", default=20, validators=[MinValueValidator(0)]
    )
    good_coefficient = models.IntegerField(
        "Good Coefficient", default=10, validators=[MinValueValidator(0)]
    )
    average_coefficient = models.IntegerField("Average Coefficient", default=0)
    poor_coefficient = models.IntegerField(
        "Poor Coefficient", default=-10, validators=[MaxValueValidator(0)]
    )
    failing_coefficient = models.IntegerField(
        "Failing Coefficient", default=-20, validators=[MaxValueValidator(0)]
    )

    # -------------------------------------------------------------------------
    # BONUS CONFIGURATION
    # -------------------------------------------------------------------------

    good_day_bonus = models.IntegerField(
        "Good Day Bonus", default=20, validators=[MinValueValidator(0)]
    )
    good_week_bonus = models.IntegerField(
        "Good Week Bonus", default=0, validators=[MinValueValidator(0)]
    )
    good_week_min_days = models.PositiveSmallIntegerField(
        "Good Days For Good Week",
        default=4,
        help_text="Good days needed in a week before the good week bonus applies"
    )

    # -------------------------------------------------------------------------
    # CLASSIFICATION THRESHOLDS
    # -------------------------------------------------------------------------

    red_flag_threshold = models.IntegerField(
        "Red Flag Threshold", default=90, validators=[MinValueValidator(0)]
    )
    green_flag_threshold = models.IntegerField(
        "Green Flag Threshold", default=70, validators=[MinValueValidator(0)]
    )
    yellow_flag_threshold = models.IntegerField(
        "Yellow Flag Threshold", default=50, validators=[MinValueValidator(0)]
    )

    # -------------------------------------------------------------------------
    # CONDUCT CONFIGURATION
    # -------------------------------------------------------------------------

    max_points_per_item = models.PositiveSmallIntegerField(
        "Max Points Per Item", default=5, validators=[MinValueValidator(1)]
    )
    days_per_week = models.PositiveSmallIntegerField(
        "School Days Per Week", default=5, validators=[MinValueValidator(1), MaxValueValidator(7)]
    )
    conduct_items = models.JSONField(
        "Conduct Items",
        default=default_conduct_items,
        blank=True,
        help_text="List of {name, applicable_days, order}; days are ISO weekdays"
    )
    week_start_day = models.PositiveSmallIntegerField(
        "Week Start Day", choices=WEEKDAY_CHOICES, default=1
    )
    week_end_day = models.PositiveSmallIntegerField(
        "Week End Day", choices=WEEKDAY_CHOICES, default=7
    )

    # -------------------------------------------------------------------------
    # VALIDATION AND SAVE METHODS
    # -------------------------------------------------------------------------

    def clean(self):
        super().clean()
        errors = {}

        match = YEAR_LABEL_PATTERN.match(self.year or '')
        if not match:
            errors['year'] = 'School year must use the format YYYY-YYYY.'
        elif int(match.group(2)) != int(match.group(1)) + 1:
            errors['year'] = 'School year must span two consecutive years.'

        range_error = date_range_error(self.start_date, self.end_date, allow_same_day=False)
        if range_error:
            errors['end_date'] = range_error

        if self.second_semester_start and self.start_date and self.end_date:
            if not self.start_date < self.second_semester_start <= self.end_date:
                errors['second_semester_start'] = 'Second semester must start inside the school year.'

        if self.excellent_coefficient < 0 or self.good_coefficient < 0:
            errors['excellent_coefficient'] = 'Excellent and good coefficients cannot be negative.'
        if self.poor_coefficient > 0 or self.failing_coefficient > 0:
            errors['poor_coefficient'] = 'Poor and failing coefficients cannot be positive.'

        if not (0 <= self.yellow_flag_threshold <= self.green_flag_threshold <= self.red_flag_threshold):
            errors['red_flag_threshold'] = (
                'Thresholds must satisfy 0 <= yellow <= green <= red.'
            )

        if self.max_points_per_item is not None and self.max_points_per_item < 1:
            errors['max_points_per_item'] = 'Max points per item must be at least 1.'

        if self.week_start_day not in WEEKDAY_VALUES or self.week_end_day not in WEEKDAY_VALUES:
            errors['week_start_day'] = 'Week start and end days must be ISO weekdays (1-7).'

        item_error = self._validate_conduct_items()
        if item_error:
            errors['conduct_items'] = item_error

        if errors:
            raise ValidationError(errors)

    def _validate_conduct_items(self):
        if not isinstance(self.conduct_items, list):
            return 'Conduct items must be a list.'
        for index, item in enumerate(self.conduct_items, start=1):
            if not isinstance(item, dict) or not str(item.get('name', '')).strip():
                return f'Conduct item {index} must have a name.'
            days = item.get('applicable_days')
            if not days or not isinstance(days, list):
                return f"Conduct item '{item['name']}' needs at least one applicable day."
            if any(day not in WEEKDAY_VALUES for day in days):
                return f"Conduct item '{item['name']}' has days outside 1-7."
        return None

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)

    # -------------------------------------------------------------------------
    # CONFIGURATION ACCESS
    # -------------------------------------------------------------------------

    def get_scoring_config(self):
        """Snapshot this year's configuration as an immutable ScoringConfig."""
        items = tuple(
            ConductItem(
                name=item['name'],
                applicable_days=tuple(item['applicable_days']),
                order=item.get('order', index + 1),
            )
            for index, item in enumerate(self.conduct_items or [])
        )
        return ScoringConfig(
            coefficients=AcademicCoefficients(
                excellent=self.excellent_coefficient,
                good=self.good_coefficient,
                average=self.average_coefficient,
                poor=self.poor_coefficient,
                failing=self.failing_coefficient,
            ),
            bonuses=BonusConfiguration(
                good_day_bonus=self.good_day_bonus,
                good_week_bonus=self.good_week_bonus,
                good_week_min_days=self.good_week_min_days,
            ),
            thresholds=ClassificationThresholds(
                red=self.red_flag_threshold,
                green=self.green_flag_threshold,
                yellow=self.yellow_flag_threshold,
            ),
            conduct=ConductConfiguration(
                max_points_per_item=self.max_points_per_item,
                days_per_week=self.days_per_week,
                items=items,
            ),
        )

    def get_semester(self, on_date):
        """Semester (1 or 2) a date belongs to."""
        if self.second_semester_start and on_date >= self.second_semester_start:
            return 2
        return 1

    @property
    def is_active(self):
        return self.status == self.STATUS_ACTIVE

    def __str__(self):
        return self.year

    class Meta:
        ordering = ['-start_date']
        verbose_name = "School Year"
        verbose_name_plural = "School Years"
        indexes = [
            models.Index(fields=['status', 'start_date']),
        ]


# =============================================================================
# WEEK MODEL
# =============================================================================

class Week(BaseModel):
    """
    One grading week of a school year.

    The week's status gates every write to the gradings, daily records,
    violations and summaries that reference it.
    """

    school_year = models.ForeignKey(
        SchoolYear,
        verbose_name="School Year",
        on_delete=models.CASCADE,
        related_name="weeks"
    )
    week_number = models.PositiveSmallIntegerField(
        "Week Number",
        validators=[MinValueValidator(1)],
        db_index=True
    )
    start_date = models.DateField("Start Date", db_index=True)
    end_date = models.DateField("End Date", db_index=True)

    status = models.CharField(
        "Status",
        max_length=10,
        choices=LIFECYCLE_STATUS_CHOICES,
        default=DRAFT,
        db_index=True
    )

    # -------------------------------------------------------------------------
    # LIFECYCLE AUDIT
    # -------------------------------------------------------------------------

    approved_by_id = models.CharField("Approved By ID", max_length=64, null=True, blank=True)
    approved_at = models.DateTimeField("Approved At", null=True, blank=True)
    locked_by_id = models.CharField("Locked By ID", max_length=64, null=True, blank=True)
    locked_at = models.DateTimeField("Locked At", null=True, blank=True)
    unlocked_by_id = models.CharField("Unlocked By ID", max_length=64, null=True, blank=True)
    unlocked_at = models.DateTimeField("Unlocked At", null=True, blank=True)
    notes = models.TextField("Notes", blank=True)

    def clean(self):
        super().clean()
        range_error = date_range_error(self.start_date, self.end_date)
        if range_error:
            raise ValidationError({'end_date': range_error})

    # -------------------------------------------------------------------------
    # STATUS HELPERS
    # -------------------------------------------------------------------------

    def contains(self, on_date):
        """Whether ``on_date`` falls inside [start_date, end_date]."""
        return self.start_date <= on_date <= self.end_date

    @property
    def is_locked(self):
        return self.status == LOCKED

    def __str__(self):
        return f"Week {self.week_number} ({self.start_date:%d/%m} - {self.end_date:%d/%m/%Y})"

    class Meta:
        ordering = ['school_year', 'week_number']
        verbose_name = "Week"
        verbose_name_plural = "Weeks"
        constraints = [
            models.UniqueConstraint(
                fields=['school_year', 'week_number'],
                name='unique_week_number_per_year'
            ),
            models.CheckConstraint(
                condition=models.Q(end_date__gte=models.F('start_date')),
                name='week_end_after_start'
            ),
        ]
        indexes = [
            models.Index(fields=['school_year', 'start_date']),
            models.Index(fields=['status']),
        ]


# =============================================================================
# CLASS MODEL
# =============================================================================

class Class(BaseModel):
    """A homeroom class graded week by week, e.g. '10A1' in grade 10."""

    name = models.CharField("Class Name", max_length=20)
    grade = models.PositiveSmallIntegerField(
        "Grade",
        validators=[MinValueValidator(1), MaxValueValidator(12)],
        db_index=True
    )
    school_year = models.ForeignKey(
        SchoolYear,
        verbose_name="School Year",
        on_delete=models.CASCADE,
        related_name="classes"
    )
    homeroom_teacher_id = models.CharField(
        "Homeroom Teacher ID", max_length=64, null=True, blank=True
    )
    is_active = models.BooleanField("Is Active", default=True)

    def __str__(self):
        return f"{self.name} ({self.school_year})"

    class Meta:
        ordering = ['grade', 'name']
        verbose_name = "Class"
        verbose_name_plural = "Classes"
        constraints = [
            models.UniqueConstraint(
                fields=['school_year', 'name'],
                name='unique_class_name_per_year'
            ),
        ]
        indexes = [
            models.Index(fields=['school_year', 'grade']),
            models.Index(fields=['is_active']),
        ]
