# utils/context.py

"""
Thread-local acting identity for audit fields.

The identity is an opaque string supplied by the caller (an HTTP layer,
a management command or a test). Models read it in ``save()`` to fill
``created_by_id`` / ``updated_by_id``; nothing here authorizes anything.
"""

from threading import local
import logging

logger = logging.getLogger(__name__)

# Thread-local storage
_thread_locals = local()


def set_acting_identity(actor_id=None, source=None):
    """
    Set the acting identity for this thread.

    Args:
        actor_id: Opaque identifier of whoever is acting (or None)
        source: Free-form origin label, e.g. the request path or command name
    """
    _thread_locals.acting_identity = {
        'actor_id': str(actor_id) if actor_id else None,
        'source': source or '',
    }
    logger.debug(f"Set acting identity: actor={actor_id}, source={source}")


def get_acting_identity():
    """
    Get the acting identity for this thread.

    Returns:
        dict: ``{'actor_id': ..., 'source': ...}`` or None if nothing is set.
    """
    return getattr(_thread_locals, 'acting_identity', None)


def get_actor_id():
    """Shortcut returning just the current actor id, or None."""
    context = get_acting_identity()
    return context.get('actor_id') if context else None


def clear_acting_identity():
    """Clear the acting identity for this thread."""
    if hasattr(_thread_locals, 'acting_identity'):
        delattr(_thread_locals, 'acting_identity')
        logger.debug("Cleared acting identity")


# ============================================================================
# CONTEXT MANAGER
# ============================================================================

class ActingIdentity:
    """
    Context manager for temporarily setting the acting identity.

    Services wrap their writes in it so audit fields are filled even when
    no middleware ran (management commands, tests, background jobs).

    Example:
        with ActingIdentity('teacher-42', source='approve_week'):
            week.save()
    """

    def __init__(self, actor_id=None, source=None):
        self.context = {
            'actor_id': str(actor_id) if actor_id else None,
            'source': source or '',
        }
        self.previous_context = None

    def __enter__(self):
        self.previous_context = get_acting_identity()
        # Keep an outer identity when the caller passes none
        if self.context['actor_id'] is None and self.previous_context:
            self.context['actor_id'] = self.previous_context.get('actor_id')
        _thread_locals.acting_identity = self.context
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.previous_context:
            _thread_locals.acting_identity = self.previous_context
        else:
            clear_acting_identity()
