# academics/utils.py
"""
Utility functions for academics app
Helper functions for school years, week calendars and week lookups
"""

from datetime import timedelta
import logging

from core.utils import get_today, next_weekday_on_or_after

logger = logging.getLogger(__name__)


# =============================================================================
# SCHOOL YEAR UTILITIES
# =============================================================================

def get_current_school_year():
    """
    Get the active school year.

    Returns:
        SchoolYear or None: Most recent year with status Active
    """
    from .models import SchoolYear

    years = SchoolYear.objects.filter(status=SchoolYear.STATUS_ACTIVE).order_by('-start_date')
    if years.count() > 1:
        logger.warning("Multiple school years marked as active, using the most recent")
    return years.first()


def get_classes_for_year(school_year, active_only=True):
    """
    Get classes of a school year, ordered by grade then name.
    """
    classes = school_year.classes.all()
    if active_only:
        classes = classes.filter(is_active=True)
    return classes.order_by('grade', 'name')


# =============================================================================
# WEEK CALENDAR UTILITIES
# =============================================================================

def build_week_calendar(start_date, end_date, week_start_day=1, week_end_day=7):
    """
    Lay out the weeks of a school year.

    Weeks start on the first ``week_start_day`` on or after ``start_date`` and
    step by seven days. Each week ends on ``week_end_day``; the last week is
    cut at ``end_date``.

    Args:
        start_date (date): First day of the school year
        end_date (date): Last day of the school year
        week_start_day (int): ISO weekday the week starts on (1 = Monday)
        week_end_day (int): ISO weekday the week ends on (7 = Sunday)

    Returns:
        list[dict]: ``{'week_number', 'start_date', 'end_date'}`` in order
    """
    span = (week_end_day - week_start_day) % 7
    current = next_weekday_on_or_after(start_date, week_start_day)

    weeks = []
    week_number = 1
    while current <= end_date:
        week_end = min(current + timedelta(days=span), end_date)
        weeks.append({
            'week_number': week_number,
            'start_date': current,
            'end_date': week_end,
        })
        week_number += 1
        current += timedelta(days=7)

    logger.debug(f"Built {len(weeks)} week(s) between {start_date} and {end_date}")
    return weeks


def get_week_for_date(school_year, on_date=None):
    """
    Get the week of ``school_year`` containing ``on_date`` (today by default).

    Returns:
        Week or None
    """
    on_date = on_date or get_today()
    return school_year.weeks.filter(
        start_date__lte=on_date,
        end_date__gte=on_date,
    ).first()


def get_weeks_in_month(school_year, month, year):
    """
    Weeks of ``school_year`` whose start date falls inside the calendar month.
    """
    from core.utils import month_bounds

    month_start, next_month_start = month_bounds(month, year)
    return school_year.weeks.filter(
        start_date__gte=month_start,
        start_date__lt=next_month_start,
    ).order_by('week_number')


def school_days_of_week(week, days_per_week=5):
    """
    ISO weekdays graded in ``week``: the first ``days_per_week`` days from its start.

    Example:
        A Monday-start week with days_per_week=5 gives [1, 2, 3, 4, 5].
    """
    days = []
    current = week.start_date
    while current <= week.end_date and len(days) < days_per_week:
        days.append(current.isoweekday())
        current += timedelta(days=1)
    return days
