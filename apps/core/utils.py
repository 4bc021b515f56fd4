# core/utils.py

"""
Shared numeric and date helpers for the grading engine.

Every rounding in the scoring formulas goes through ``round_half_up``:
halves go up towards positive infinity, so 2.5 becomes 3 and -12.5
becomes -12 regardless of float representation.
"""

from decimal import Decimal, ROUND_FLOOR, InvalidOperation
from datetime import timedelta
import logging

from django.core.exceptions import ObjectDoesNotExist

from core.exceptions import RecordNotFoundError

logger = logging.getLogger(__name__)


# =============================================================================
# NUMERIC UTILITIES
# =============================================================================

def round_half_up(value):
    """
    Round to the nearest integer, halves upward: floor(value + 0.5).

    Args:
        value: int, float or Decimal

    Returns:
        int: Rounded value (0 for None)

    Example:
        >>> round_half_up(2.5)
        3
        >>> round_half_up(-12.5)
        -12
    """
    if value is None:
        return 0
    try:
        return int((Decimal(str(value)) + Decimal('0.5')).to_integral_value(rounding=ROUND_FLOOR))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Cannot round non-numeric value {value!r}") from e


def calculate_percentage(part, whole):
    """
    Whole-number percentage with safe division.

    Returns:
        int: round(part / whole * 100), 0 if whole is 0 or missing

    Example:
        >>> calculate_percentage(120, 120)
        100
        >>> calculate_percentage(75, 0)
        0
    """
    part = Decimal(str(part or 0))
    whole = Decimal(str(whole or 0))

    if whole == 0:
        return 0

    return round_half_up(part / whole * 100)


def safe_divide(numerator, denominator):
    """Plain float division returning 0 when the denominator is 0."""
    if not denominator:
        return 0
    return numerator / denominator


# =============================================================================
# DATE UTILITIES
# =============================================================================

def get_today():
    """Today's date in the configured TIME_ZONE."""
    from django.utils import timezone
    return timezone.localdate()


def next_weekday_on_or_after(start_date, iso_weekday):
    """
    First date on or after ``start_date`` falling on ``iso_weekday``.

    Example:
        >>> from datetime import date
        >>> next_weekday_on_or_after(date(2024, 9, 5), 1)  # Thursday -> Monday
        datetime.date(2024, 9, 9)
    """
    offset = (iso_weekday - start_date.isoweekday()) % 7
    return start_date + timedelta(days=offset)


def month_bounds(month, year):
    """
    First day of the month and first day of the following month.

    Returns:
        tuple: (start, next_start), both ``date`` objects
    """
    from datetime import date

    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")

    start = date(year, month, 1)
    if month == 12:
        next_start = date(year + 1, 1, 1)
    else:
        next_start = date(year, month + 1, 1)
    return start, next_start


def date_range_error(start_date, end_date, allow_same_day=True):
    """
    Message describing why [start_date, end_date] is not a valid range.

    Missing dates are left to the field validators and pass here.

    Returns:
        str or None
    """
    if not start_date or not end_date:
        return None
    if allow_same_day and start_date > end_date:
        return "End date must be on or after start date."
    if not allow_same_day and start_date >= end_date:
        return "End date must be after start date."
    return None


# =============================================================================
# LOOKUP UTILITIES
# =============================================================================

def get_or_not_found(queryset, entity, **lookup):
    """
    Fetch a single row or raise RecordNotFoundError naming the entity.

    Args:
        queryset: Model class or QuerySet to search
        entity: Human-readable entity name for the error message
        **lookup: Field lookups, usually ``pk=...``

    Raises:
        RecordNotFoundError: If no row matches
    """
    manager = getattr(queryset, 'objects', queryset)
    try:
        return manager.get(**lookup)
    except ObjectDoesNotExist as e:
        identifier = lookup.get('pk', lookup)
        raise RecordNotFoundError(
            f"{entity} {identifier} not found",
            entity=entity,
            entity_id=identifier,
        ) from e
