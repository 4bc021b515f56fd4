# grading/models.py

"""
Daily score records and weekly gradings for one class.

Daily records (ConductScore, AcademicScore) keep the scorer's full
breakdown per (week, class, date). Weekly gradings (DisciplineGrading,
ClassAcademicGrading) are singletons per (class, week) whose derived
totals are always rebuilt from their stored items by ``recalculate()``.
"""

from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
import logging

from utils.models import BaseModel
from academics.lifecycle import LIFECYCLE_STATUS_CHOICES, DRAFT, LOCKED
from grading.utils import (
    FLAG_CHOICES, FLAG_NONE,
    recompute_discipline_grading, recompute_academic_grading,
)

logger = logging.getLogger(__name__)


# =============================================================================
# DAILY CONDUCT SCORE
# =============================================================================

class ConductScore(BaseModel):
    """Conduct checklist result of one class on one day"""

    week = models.ForeignKey(
        'academics.Week',
        verbose_name="Week",
        on_delete=models.CASCADE,
        related_name="conduct_scores"
    )
    school_class = models.ForeignKey(
        'academics.Class',
        verbose_name="Class",
        on_delete=models.CASCADE,
        related_name="conduct_scores"
    )
    date = models.DateField("Date", db_index=True)
    day_of_week = models.PositiveSmallIntegerField(
        "Day of Week",
        validators=[MinValueValidator(1), MaxValueValidator(7)],
        help_text="ISO weekday, 1 = Monday"
    )
    items = models.JSONField(
        "Items",
        default=list,
        help_text="List of {item_name, violation_count, score, violating_student_ids, order}"
    )
    total_daily_score = models.IntegerField("Total Daily Score", default=0)
    max_daily_score = models.IntegerField("Max Daily Score", default=0)
    total_violations = models.PositiveIntegerField("Total Violations", default=0)
    status = models.CharField(
        "Status",
        max_length=10,
        choices=LIFECYCLE_STATUS_CHOICES,
        default=DRAFT,
        db_index=True
    )
    notes = models.TextField("Notes", blank=True)

    def __str__(self):
        return f"Conduct {self.school_class.name} {self.date}: {self.total_daily_score}"

    class Meta:
        ordering = ['week', 'school_class', 'date']
        verbose_name = "Conduct Score"
        verbose_name_plural = "Conduct Scores"
        constraints = [
            models.UniqueConstraint(
                fields=['week', 'school_class', 'date'],
                name='unique_conduct_score_per_class_day'
            ),
        ]
        indexes = [
            models.Index(fields=['week', 'school_class']),
        ]


# =============================================================================
# DAILY ACADEMIC SCORE
# =============================================================================

class AcademicScore(BaseModel):
    """Lesson quality ratings of one class on one day"""

    week = models.ForeignKey(
        'academics.Week',
        verbose_name="Week",
        on_delete=models.CASCADE,
        related_name="academic_scores"
    )
    school_class = models.ForeignKey(
        'academics.Class',
        verbose_name="Class",
        on_delete=models.CASCADE,
        related_name="academic_scores"
    )
    date = models.DateField("Date", db_index=True)
    day_of_week = models.PositiveSmallIntegerField(
        "Day of Week",
        validators=[MinValueValidator(1), MaxValueValidator(7)]
    )
    lessons = models.JSONField(
        "Lessons",
        default=list,
        help_text="List of {lesson_number, quality, points, notes}"
    )
    lesson_statistics = models.JSONField("Lesson Statistics", default=dict)
    calculation = models.JSONField(
        "Calculation",
        default=dict,
        help_text="Per-tier points, subtotal, daily average and bonus"
    )
    is_good_day = models.BooleanField("Is Good Day", default=False)
    total_daily_score = models.IntegerField("Total Daily Score", default=0)
    status = models.CharField(
        "Status",
        max_length=10,
        choices=LIFECYCLE_STATUS_CHOICES,
        default=DRAFT,
        db_index=True
    )
    notes = models.TextField("Notes", blank=True)

    def __str__(self):
        return f"Academic {self.school_class.name} {self.date}: {self.total_daily_score}"

    class Meta:
        ordering = ['week', 'school_class', 'date']
        verbose_name = "Academic Score"
        verbose_name_plural = "Academic Scores"
        constraints = [
            models.UniqueConstraint(
                fields=['week', 'school_class', 'date'],
                name='unique_academic_score_per_class_day'
            ),
        ]
        indexes = [
            models.Index(fields=['week', 'school_class']),
        ]


# =============================================================================
# WEEKLY GRADING BASE
# =============================================================================

class WeeklyGrading(BaseModel):
    """Fields shared by the two per-(class, week) gradings"""

    school_class = models.ForeignKey(
        'academics.Class',
        verbose_name="Class",
        on_delete=models.CASCADE,
        related_name="%(class)s_records"
    )
    week = models.ForeignKey(
        'academics.Week',
        verbose_name="Week",
        on_delete=models.CASCADE,
        related_name="%(class)s_records"
    )
    school_year = models.ForeignKey(
        'academics.SchoolYear',
        verbose_name="School Year",
        on_delete=models.CASCADE,
        related_name="%(class)s_records"
    )
    semester = models.PositiveSmallIntegerField(
        "Semester",
        choices=[(1, 'Semester 1'), (2, 'Semester 2')],
        default=1
    )
    status = models.CharField(
        "Status",
        max_length=10,
        choices=LIFECYCLE_STATUS_CHOICES,
        default=DRAFT,
        db_index=True
    )
    approved_by_id = models.CharField("Approved By ID", max_length=64, null=True, blank=True)
    approved_at = models.DateTimeField("Approved At", null=True, blank=True)
    notes = models.TextField("Notes", blank=True)

    class Meta:
        abstract = True

    @property
    def is_locked(self):
        return self.status == LOCKED


# =============================================================================
# DISCIPLINE GRADING
# =============================================================================

class DisciplineGrading(WeeklyGrading):
    """
    Weekly conduct checklist of one class.

    ``items`` holds ``{item_id, item_name, max_score, applicable_days,
    day_scores: [{day, violations, score, violating_student_ids}],
    total_score}``.
    """

    week_start_date = models.DateField("Week Start Date")
    week_end_date = models.DateField("Week End Date")
    items = models.JSONField("Items", default=list)

    total_weekly_score = models.IntegerField("Total Weekly Score", default=0)
    max_possible_score = models.IntegerField("Max Possible Score", default=0)
    percentage = models.IntegerField("Percentage", default=0)
    flag = models.CharField(
        "Flag",
        max_length=10,
        choices=FLAG_CHOICES,
        default=FLAG_NONE,
        db_index=True
    )

    def recalculate(self, thresholds):
        """Rebuild every derived field from ``items``."""
        result = recompute_discipline_grading(self.items, thresholds)
        self.items = result['items']
        self.total_weekly_score = result['total_weekly_score']
        self.max_possible_score = result['max_possible_score']
        self.percentage = result['percentage']
        self.flag = result['flag']
        logger.debug(
            f"Recalculated discipline grading {self.pk}: "
            f"{self.total_weekly_score}/{self.max_possible_score} ({self.percentage}%) {self.flag}"
        )
        return result

    def __str__(self):
        return f"Discipline {self.school_class.name} week {self.week.week_number}: {self.total_weekly_score}"

    class Meta:
        ordering = ['week', 'school_class']
        verbose_name = "Discipline Grading"
        verbose_name_plural = "Discipline Gradings"
        constraints = [
            models.UniqueConstraint(
                fields=['school_class', 'week'],
                name='unique_discipline_grading_per_class_week'
            ),
        ]
        indexes = [
            models.Index(fields=['week', 'flag']),
            models.Index(fields=['school_year', 'semester']),
        ]


# =============================================================================
# CLASS ACADEMIC GRADING
# =============================================================================

class ClassAcademicGrading(WeeklyGrading):
    """
    Weekly period-quality tally of one class.

    ``day_gradings`` holds ``{day, excellent, good, average, poor, bad,
    total_periods, daily_score, is_good_day}`` per school day.
    """

    day_gradings = models.JSONField("Day Gradings", default=list)

    total_weekly_score = models.IntegerField("Total Weekly Score", default=0)
    total_weekly_periods = models.PositiveIntegerField("Total Weekly Periods", default=0)
    average_score = models.FloatField("Average Score", default=0)
    good_day_count = models.PositiveSmallIntegerField("Good Day Count", default=0)
    is_good_week = models.BooleanField("Is Good Week", default=False)
    good_week_bonus = models.IntegerField("Good Week Bonus", default=0)
    good_day_bonus = models.IntegerField("Good Day Bonus", default=0)
    final_weekly_score = models.FloatField("Final Weekly Score", default=0)

    def recalculate(self, coefficients):
        """Rebuild every derived field from ``day_gradings``."""
        result = recompute_academic_grading(self.day_gradings, coefficients)
        self.day_gradings = result['day_gradings']
        for field_name in (
            'total_weekly_score', 'total_weekly_periods', 'average_score',
            'good_day_count', 'is_good_week', 'good_week_bonus',
            'good_day_bonus', 'final_weekly_score',
        ):
            setattr(self, field_name, result[field_name])
        logger.debug(
            f"Recalculated academic grading {self.pk}: final {self.final_weekly_score} "
            f"(good week: {self.is_good_week})"
        )
        return result

    def __str__(self):
        return f"Academic {self.school_class.name} week {self.week.week_number}: {self.final_weekly_score}"

    class Meta:
        ordering = ['week', 'school_class']
        verbose_name = "Class Academic Grading"
        verbose_name_plural = "Class Academic Gradings"
        constraints = [
            models.UniqueConstraint(
                fields=['school_class', 'week'],
                name='unique_academic_grading_per_class_week'
            ),
        ]
        indexes = [
            models.Index(fields=['school_year', 'semester']),
        ]
