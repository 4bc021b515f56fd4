# summaries/models.py

"""
Canonical weekly and monthly summary documents of a class.

Both are rebuilt whole on every regeneration; no field is patched in
place. The flat ``flag`` / ``total_score`` / ``percentage`` columns mirror
``classification`` so summaries can be filtered and ordered in SQL.
"""

from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
import logging

from utils.models import BaseModel
from academics.lifecycle import LIFECYCLE_STATUS_CHOICES, DRAFT, LOCKED
from grading.utils import FLAG_CHOICES, FLAG_NONE

logger = logging.getLogger(__name__)

# Composed sections written by every regeneration
SUMMARY_SECTIONS = ('conduct_scores', 'academic_scores', 'bonuses', 'violations', 'classification')


class SummaryDocument(BaseModel):
    """Sections shared by weekly and monthly summaries"""

    school_class = models.ForeignKey(
        'academics.Class',
        verbose_name="Class",
        on_delete=models.CASCADE,
        related_name="%(class)s_records"
    )
    conduct_scores = models.JSONField("Conduct Scores", default=dict)
    academic_scores = models.JSONField("Academic Scores", default=dict)
    bonuses = models.JSONField("Bonuses", default=dict)
    violations = models.JSONField("Violations", default=dict)
    classification = models.JSONField("Classification", default=dict)

    flag = models.CharField(
        "Flag",
        max_length=10,
        choices=FLAG_CHOICES,
        default=FLAG_NONE,
        db_index=True
    )
    total_score = models.FloatField("Total Score", default=0, db_index=True)

    status = models.CharField(
        "Status",
        max_length=10,
        choices=LIFECYCLE_STATUS_CHOICES,
        default=DRAFT,
        db_index=True
    )
    notes = models.TextField("Notes", blank=True)

    class Meta:
        abstract = True

    @property
    def is_locked(self):
        return self.status == LOCKED

    def document(self):
        """The composed sections as one dict."""
        return {section: getattr(self, section) for section in SUMMARY_SECTIONS}


# =============================================================================
# WEEKLY SUMMARY
# =============================================================================

class WeeklySummary(SummaryDocument):
    """Discipline, academic, bonus and violation roll-up of one class for one week"""

    week = models.ForeignKey(
        'academics.Week',
        verbose_name="Week",
        on_delete=models.CASCADE,
        related_name="weekly_summaries"
    )
    percentage = models.IntegerField("Percentage", default=0)
    approved_by_id = models.CharField("Approved By ID", max_length=64, null=True, blank=True)
    approved_at = models.DateTimeField("Approved At", null=True, blank=True)

    def __str__(self):
        return f"Week {self.week.week_number} {self.school_class.name}: {self.total_score} ({self.flag})"

    class Meta:
        ordering = ['week', '-total_score']
        verbose_name = "Weekly Summary"
        verbose_name_plural = "Weekly Summaries"
        constraints = [
            models.UniqueConstraint(
                fields=['week', 'school_class'],
                name='unique_weekly_summary_per_class_week'
            ),
        ]
        indexes = [
            models.Index(fields=['week', 'flag']),
            models.Index(fields=['week', 'total_score']),
        ]


# =============================================================================
# MONTHLY SUMMARY
# =============================================================================

class MonthlySummary(SummaryDocument):
    """Calendar-month roll-up of a class's weekly summaries"""

    school_year = models.ForeignKey(
        'academics.SchoolYear',
        verbose_name="School Year",
        on_delete=models.CASCADE,
        related_name="monthly_summaries"
    )
    month = models.PositiveSmallIntegerField(
        "Month",
        validators=[MinValueValidator(1), MaxValueValidator(12)]
    )
    year = models.PositiveSmallIntegerField("Year")
    weeks = models.ManyToManyField(
        'academics.Week',
        verbose_name="Weeks",
        related_name="monthly_summaries",
        blank=True
    )
    honor_roll = models.JSONField(
        "Honor Roll",
        default=list,
        help_text="Weeks flagged red or green: {week_id, week_number, total_score, flag}"
    )
    critical_list = models.JSONField(
        "Critical List",
        default=list,
        help_text="Weeks flagged yellow or none"
    )

    def __str__(self):
        return f"{self.month:02d}/{self.year} {self.school_class.name}: {self.total_score} ({self.flag})"

    class Meta:
        ordering = ['-year', '-month', 'school_class']
        verbose_name = "Monthly Summary"
        verbose_name_plural = "Monthly Summaries"
        constraints = [
            models.UniqueConstraint(
                fields=['school_year', 'month', 'year', 'school_class'],
                name='unique_monthly_summary_per_class_month'
            ),
        ]
        indexes = [
            models.Index(fields=['school_year', 'year', 'month']),
        ]
