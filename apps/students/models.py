# students/models.py

from django.db import models
import logging

from utils.models import BaseModel

logger = logging.getLogger(__name__)


# =============================================================================
# STUDENT MODEL
# =============================================================================

class Student(BaseModel):
    """A student who can appear in the violation ledger"""

    GENDER_CHOICES = (
        ('M', 'Male'),
        ('F', 'Female'),
    )

    STATUS_CHOICES = (
        ('ACTIVE', 'Active'),
        ('TRANSFERRED', 'Transferred'),
        ('GRADUATED', 'Graduated'),
        ('WITHDRAWN', 'Withdrawn'),
    )

    student_code = models.CharField(
        "Student Code",
        max_length=20,
        unique=True,
        help_text="School-issued identifier"
    )
    full_name = models.CharField("Full Name", max_length=150)
    gender = models.CharField("Gender", max_length=1, choices=GENDER_CHOICES, blank=True)
    date_of_birth = models.DateField("Date of Birth", null=True, blank=True)
    school_class = models.ForeignKey(
        'academics.Class',
        verbose_name="Class",
        on_delete=models.CASCADE,
        related_name="students"
    )
    status = models.CharField(
        "Status",
        max_length=15,
        choices=STATUS_CHOICES,
        default='ACTIVE',
        db_index=True
    )

    def __str__(self):
        return f"{self.full_name} ({self.student_code})"

    class Meta:
        ordering = ['school_class', 'full_name']
        verbose_name = "Student"
        verbose_name_plural = "Students"
        indexes = [
            models.Index(fields=['school_class', 'status']),
        ]
