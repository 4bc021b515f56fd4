# core/exceptions.py

"""
Error types raised by the grading engine services.

Input problems (dates outside a week, malformed configuration, missing
references) are reported with ``django.core.exceptions.ValidationError``
so they carry a field -> message dict. The classes below cover the
lookup, lifecycle and uniqueness failures.
"""


class GradingError(Exception):
    """Base class for grading engine errors."""

    def __init__(self, message, entity=None, entity_id=None):
        super().__init__(message)
        self.message = message
        self.entity = entity
        self.entity_id = str(entity_id) if entity_id is not None else None

    def __str__(self):
        return self.message


class RecordNotFoundError(GradingError, LookupError):
    """A referenced Week, Class, SchoolYear, grading or violation is missing."""


class InvalidStateError(GradingError):
    """
    The lifecycle state forbids the attempted action.

    Raised for writes against Locked weeks or records, transitions out of
    order (lock before approve, unlock when not locked) and violation
    transitions outside Pending.
    """


class ConflictError(GradingError):
    """A unique composite key is already taken, or dependents block an action."""

    def __init__(self, message, entity=None, entity_id=None, details=None):
        super().__init__(message, entity=entity, entity_id=entity_id)
        self.details = details or {}
