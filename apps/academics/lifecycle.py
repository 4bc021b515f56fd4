# academics/lifecycle.py

"""
Draft -> Approved -> Locked state machine shared by weeks and the
grading/summary records hanging off them.

The functions here are pure: they validate a transition and return a
``TransitionPlan`` listing every row set whose status must change.
``academics.services.apply_transition_plan`` performs the writes.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import logging

from core.exceptions import InvalidStateError

logger = logging.getLogger(__name__)

# =============================================================================
# STATUSES AND ACTIONS
# =============================================================================

DRAFT = 'draft'
APPROVED = 'approved'
LOCKED = 'locked'

LIFECYCLE_STATUS_CHOICES = [
    (DRAFT, 'Draft'),
    (APPROVED, 'Approved'),
    (LOCKED, 'Locked'),
]

APPROVE = 'approve'
LOCK = 'lock'
UNLOCK = 'unlock'

# action -> (allowed source statuses, target status)
TRANSITIONS = {
    APPROVE: ((DRAFT,), APPROVED),
    LOCK: ((APPROVED,), LOCKED),
    UNLOCK: ((LOCKED,), APPROVED),
}

# Actions whose status change is copied onto the week's dependents
CASCADING_ACTIONS = (LOCK, UNLOCK)

DEPENDENT_MODELS = (
    'grading.DisciplineGrading',
    'grading.ClassAcademicGrading',
    'summaries.WeeklySummary',
)

WEEK_MODEL = 'academics.Week'


# =============================================================================
# PLAN OBJECTS
# =============================================================================

@dataclass(frozen=True)
class StatusUpdate:
    """Set ``status`` on every row of ``model_label`` matching ``filters``."""

    model_label: str
    filters: Tuple[Tuple[str, object], ...]
    status: str

    @property
    def lookup(self):
        return dict(self.filters)


@dataclass(frozen=True)
class TransitionPlan:
    action: str
    from_status: str
    to_status: str
    week_id: object
    class_id: Optional[object]
    updates: Tuple[StatusUpdate, ...]

    @property
    def cascades(self):
        return any(update.model_label != WEEK_MODEL for update in self.updates)


# =============================================================================
# TRANSITION FUNCTIONS
# =============================================================================

def next_status(current_status, action, entity='Week', entity_id=None):
    """
    Target status for ``action`` from ``current_status``.

    Raises:
        InvalidStateError: If the action is unknown or not allowed from
            the current status.
    """
    if action not in TRANSITIONS:
        raise InvalidStateError(
            f"Unknown lifecycle action '{action}' for {entity} {entity_id}",
            entity=entity,
            entity_id=entity_id,
        )

    allowed_from, target = TRANSITIONS[action]
    if current_status not in allowed_from:
        raise InvalidStateError(
            f"Cannot {action} {entity} {entity_id}: status is '{current_status}', "
            f"expected one of {', '.join(allowed_from)}",
            entity=entity,
            entity_id=entity_id,
        )
    return target


def plan_transition(action, current_status, week_id, class_id=None):
    """
    Build the full set of status updates for a lifecycle action.

    With ``class_id`` None the action targets the Week itself and, for lock
    and unlock, every dependent record of that week. With a ``class_id`` the
    action targets only that class's dependents (the week row is untouched)
    and ``current_status`` is the status of the class's weekly summary.

    Returns:
        TransitionPlan
    """
    entity = 'Week' if class_id is None else 'WeeklySummary'
    entity_id = week_id if class_id is None else f"{week_id}/{class_id}"
    target = next_status(current_status, action, entity=entity, entity_id=entity_id)

    updates = []
    if class_id is None:
        updates.append(StatusUpdate(WEEK_MODEL, (('pk', week_id),), target))

    if action in CASCADING_ACTIONS or class_id is not None:
        filters = [('week_id', week_id)]
        if class_id is not None:
            filters.append(('school_class_id', class_id))
        for model_label in DEPENDENT_MODELS:
            updates.append(StatusUpdate(model_label, tuple(filters), target))

    plan = TransitionPlan(
        action=action,
        from_status=current_status,
        to_status=target,
        week_id=week_id,
        class_id=class_id,
        updates=tuple(updates),
    )
    logger.debug(f"Planned {action} for {entity} {entity_id}: {len(plan.updates)} update(s)")
    return plan


def validate_record_transition(current_status, target_status, entity, entity_id=None):
    """
    Check a single record's own status change (no cascade).

    Records only move forward one step at a time; leaving Locked requires
    the cascading unlock.

    Raises:
        InvalidStateError
    """
    for action, (allowed_from, target) in TRANSITIONS.items():
        if action == UNLOCK:
            continue
        if target == target_status and current_status in allowed_from:
            return target_status

    raise InvalidStateError(
        f"{entity} {entity_id} cannot move from '{current_status}' to '{target_status}'",
        entity=entity,
        entity_id=entity_id,
    )


def ensure_writable(week, record=None, entity=None):
    """
    Refuse writes when the owning week or the record itself is Locked.

    Both gates are checked independently: a Locked week blocks every
    dependent write whatever the record's own status is.

    Raises:
        InvalidStateError
    """
    if week is not None and week.status == LOCKED:
        name = entity or (record.__class__.__name__ if record is not None else 'record')
        logger.warning(f"Refused write to {name} in locked week {week.pk}")
        raise InvalidStateError(
            f"Week {week.week_number} ({week.pk}) is locked; {name} cannot be modified",
            entity='Week',
            entity_id=week.pk,
        )

    if record is not None and getattr(record, 'status', None) == LOCKED:
        name = entity or record.__class__.__name__
        logger.warning(f"Refused write to locked {name} {record.pk}")
        raise InvalidStateError(
            f"{name} {record.pk} is locked and cannot be modified",
            entity=name,
            entity_id=record.pk,
        )
