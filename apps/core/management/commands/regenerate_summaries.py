# core/management/commands/regenerate_summaries.py

"""
Rebuild weekly (and optionally monthly) summaries from the stored gradings
and violations, e.g. after editing a school year's configuration.

Locked weeks and locked summaries are skipped and reported.

USAGE EXAMPLES:
===============

# 1. Every week of the active school year
python manage.py regenerate_summaries

# 2. One week of a specific year
python manage.py regenerate_summaries --year 2024-2025 --week 7

# 3. The weeks starting in October 2024, then the October monthly summaries
python manage.py regenerate_summaries --month 2024-10

# 4. Recompute the weekly gradings first, then the summaries
python manage.py regenerate_summaries --week 7 --recompute-gradings
"""

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError
import logging

from core.exceptions import GradingError, InvalidStateError
from academics.lifecycle import LOCKED
from academics.models import SchoolYear
from academics.utils import get_current_school_year, get_weeks_in_month
from grading.models import DisciplineGrading, ClassAcademicGrading
from grading.services import DisciplineGradingService, AcademicGradingService
from summaries.services import WeeklySummaryService, MonthlySummaryService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Regenerate weekly and monthly summaries'

    def add_arguments(self, parser):
        parser.add_argument(
            '--year', type=str, default=None,
            help='School year label (YYYY-YYYY); defaults to the active year'
        )
        parser.add_argument(
            '--week', type=int, default=None,
            help='Week number to regenerate'
        )
        parser.add_argument(
            '--month', type=str, default=None,
            help='Calendar month YYYY-MM: regenerate its weeks and its monthly summaries'
        )
        parser.add_argument(
            '--recompute-gradings', action='store_true',
            help='Recompute discipline and academic gradings with the current configuration first'
        )
        parser.add_argument(
            '--actor', type=str, default=None,
            help='Acting identity recorded on rewritten rows'
        )

    def handle(self, *args, **options):
        if options['week'] is not None and options['month']:
            raise CommandError("Use either --week or --month, not both")

        school_year = self.get_school_year(options['year'])
        actor_id = options['actor']
        month = self.parse_month(options['month']) if options['month'] else None

        # =====================================================================
        # SELECT WEEKS
        # =====================================================================
        if options['week'] is not None:
            weeks = list(school_year.weeks.filter(week_number=options['week']))
            if not weeks:
                raise CommandError(f"Week {options['week']} not found in {school_year}")
        elif month:
            weeks = list(get_weeks_in_month(school_year, month[1], month[0]))
            if not weeks:
                raise CommandError(f"No weeks of {school_year} start in {options['month']}")
        else:
            weeks = list(school_year.weeks.order_by('week_number'))

        # =====================================================================
        # WEEKLY SUMMARIES
        # =====================================================================
        regenerated = skipped = 0
        for week in weeks:
            if week.is_locked:
                skipped += 1
                self.stdout.write(self.style.WARNING(f"  Week {week.week_number}: locked, skipped"))
                continue

            try:
                if options['recompute_gradings']:
                    self.recompute_gradings(week, actor_id)
                summaries = WeeklySummaryService.regenerate_week(week.pk, actor_id)
            except InvalidStateError as e:
                skipped += 1
                self.stdout.write(self.style.WARNING(f"  Week {week.week_number}: {e}"))
                continue
            except (GradingError, ValidationError) as e:
                raise CommandError(f"Week {week.week_number}: {e}") from e

            regenerated += len(summaries)
            self.stdout.write(f"  Week {week.week_number}: {len(summaries)} summary(ies)")

        self.stdout.write(self.style.SUCCESS(
            f"Regenerated {regenerated} weekly summary(ies); {skipped} week(s) skipped"
        ))

        # =====================================================================
        # MONTHLY SUMMARIES
        # =====================================================================
        if month:
            year, month_number = month
            try:
                monthly = MonthlySummaryService.regenerate_month(
                    school_year.pk, month_number, year, actor_id
                )
            except (GradingError, ValidationError) as e:
                raise CommandError(f"Monthly summaries {options['month']}: {e}") from e

            self.stdout.write(self.style.SUCCESS(
                f"Regenerated {len(monthly)} monthly summary(ies) for {options['month']}"
            ))

    def recompute_gradings(self, week, actor_id):
        for grading in DisciplineGrading.objects.filter(week=week).exclude(status=LOCKED):
            DisciplineGradingService.recompute_discipline_grading(grading.pk, actor_id)
        for grading in ClassAcademicGrading.objects.filter(week=week).exclude(status=LOCKED):
            AcademicGradingService.recompute_academic_grading(grading.pk, actor_id)

    def get_school_year(self, label):
        if label:
            school_year = SchoolYear.objects.filter(year=label).first()
            if school_year is None:
                raise CommandError(f"School year {label} not found")
            return school_year

        school_year = get_current_school_year()
        if school_year is None:
            raise CommandError("No active school year; pass --year")
        return school_year

    def parse_month(self, value):
        """'2024-10' -> (2024, 10)"""
        try:
            year, month = (int(part) for part in value.split('-'))
        except ValueError as e:
            raise CommandError(f"Month must be YYYY-MM, got {value!r}") from e
        if not 1 <= month <= 12:
            raise CommandError(f"Month must be YYYY-MM, got {value!r}")
        return year, month
