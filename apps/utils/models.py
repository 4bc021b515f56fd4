# utils/models.py

"""
Abstract base model shared by every grading-engine table.

Key Features:
- UUID primary keys
- created/updated timestamps set in save()
- Acting identity tracking (who created/updated) from utils.context
- Optional change reason for manual edits
"""

from django.db import models
from django.utils import timezone
import uuid
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# BASE MODEL
# =============================================================================

class BaseModel(models.Model):
    """
    Base model with audit fields filled from the thread's acting identity.

    ``created_by_id`` / ``updated_by_id`` are plain CharFields: the identity
    is opaque and owned by an external collaborator, so no foreign key.
    """

    # Core identification
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Timestamps
    created_at = models.DateTimeField(
        "Created At",
        db_index=True,
        help_text="When this record was created"
    )
    updated_at = models.DateTimeField(
        "Updated At",
        db_index=True,
        help_text="When this record was last updated"
    )

    # Acting identity tracking
    created_by_id = models.CharField(
        "Created By ID",
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        help_text="Identity that created this record"
    )
    updated_by_id = models.CharField(
        "Updated By ID",
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        help_text="Identity that last updated this record"
    )

    # Change reason tracking
    change_reason = models.CharField(
        "Change Reason",
        max_length=255,
        blank=True,
        null=True,
        help_text="Explanation for why this change was made"
    )

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        """
        Set timestamps and audit ids before saving.

        Explicitly assigned ``created_by_id`` values are kept; the thread's
        acting identity only fills gaps.
        """
        from utils.context import get_actor_id

        is_new = self._state.adding
        now = timezone.now()

        # =========================================================================
        # STEP 1: TIMESTAMPS
        # =========================================================================
        if is_new:
            if not self.created_at:
                self.created_at = now
            self.updated_at = self.updated_at or now
        else:
            self.updated_at = now

        # =========================================================================
        # STEP 2: ACTING IDENTITY
        # =========================================================================
        actor_id = get_actor_id()
        if actor_id:
            if is_new and not self.created_by_id:
                self.created_by_id = actor_id
            self.updated_by_id = actor_id
        elif is_new:
            logger.debug(
                f"No acting identity available when creating {self.__class__.__name__}. "
                f"Audit fields will not be populated."
            )

        # update_fields saves must include the audit columns we just touched
        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | {'updated_at', 'updated_by_id'}

        return super().save(*args, **kwargs)

    @staticmethod
    def audit_values(actor_id=None):
        """
        Column values to pass to ``QuerySet.update()``, which bypasses save().

        Returns:
            dict: ``updated_at`` plus ``updated_by_id`` when an actor is known
        """
        from utils.context import get_actor_id

        values = {'updated_at': timezone.now()}
        actor_id = actor_id or get_actor_id()
        if actor_id:
            values['updated_by_id'] = str(actor_id)
        return values
