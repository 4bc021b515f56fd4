# core/management/commands/generate_weeks.py

"""
Lay out the week calendar of a school year.

USAGE EXAMPLES:
===============

# 1. Generate weeks for the active school year
python manage.py generate_weeks

# 2. Generate weeks for a specific year
python manage.py generate_weeks 2024-2025

# 3. Preview the calendar without writing anything
python manage.py generate_weeks 2024-2025 --dry-run
"""

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError
import logging

from core.exceptions import GradingError
from academics.models import SchoolYear
from academics.services import SchoolYearService
from academics.utils import build_week_calendar, get_current_school_year

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Generate the weeks of a school year'

    def add_arguments(self, parser):
        parser.add_argument(
            'year', nargs='?', default=None,
            help='School year label (YYYY-YYYY); defaults to the active year'
        )
        parser.add_argument(
            '--dry-run', action='store_true',
            help='Print the calendar without creating weeks'
        )
        parser.add_argument(
            '--actor', type=str, default=None,
            help='Acting identity recorded on created weeks'
        )

    def handle(self, *args, **options):
        school_year = self.get_school_year(options['year'])

        if options['dry_run']:
            calendar = build_week_calendar(
                school_year.start_date,
                school_year.end_date,
                week_start_day=school_year.week_start_day,
                week_end_day=school_year.week_end_day,
            )
            for entry in calendar:
                self.stdout.write(
                    f"  Week {entry['week_number']:>2}: {entry['start_date']} - {entry['end_date']}"
                )
            self.stdout.write(self.style.WARNING(f"Dry run: {len(calendar)} week(s) not saved"))
            return

        try:
            weeks = SchoolYearService.generate_weeks(school_year.pk, actor_id=options['actor'])
        except (GradingError, ValidationError) as e:
            raise CommandError(str(e)) from e

        self.stdout.write(self.style.SUCCESS(
            f"Generated {len(weeks)} week(s) for {school_year}"
        ))

    def get_school_year(self, label):
        if label:
            school_year = SchoolYear.objects.filter(year=label).first()
            if school_year is None:
                raise CommandError(f"School year {label} not found")
            return school_year

        school_year = get_current_school_year()
        if school_year is None:
            raise CommandError("No active school year; pass a year label")
        return school_year
