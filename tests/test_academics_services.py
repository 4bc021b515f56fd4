# tests/test_academics_services.py

from datetime import date

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, TestCase

from core.exceptions import RecordNotFoundError, InvalidStateError, ConflictError
from academics.lifecycle import DRAFT, APPROVED, LOCKED
from academics.models import SchoolYear, Week
from academics.services import SchoolYearService, WeekService
from academics.utils import build_week_calendar, get_week_for_date, school_days_of_week
from grading.models import DisciplineGrading, ClassAcademicGrading
from grading.services import DailyScoreService, DisciplineGradingService, AcademicGradingService
from summaries.models import WeeklySummary

from tests.factories import make_school_year, make_class


class WeekCalendarTests(SimpleTestCase):

    def test_first_week_starts_on_configured_weekday(self):
        weeks = build_week_calendar(date(2024, 9, 5), date(2024, 10, 1))

        self.assertEqual(weeks[0]['start_date'], date(2024, 9, 9))
        self.assertEqual(weeks[0]['end_date'], date(2024, 9, 15))
        self.assertEqual([week['week_number'] for week in weeks], [1, 2, 3, 4])

    def test_last_week_is_truncated(self):
        weeks = build_week_calendar(date(2024, 9, 2), date(2024, 9, 18))

        self.assertEqual(weeks[-1]['start_date'], date(2024, 9, 16))
        self.assertEqual(weeks[-1]['end_date'], date(2024, 9, 18))

    def test_custom_week_window(self):
        weeks = build_week_calendar(date(2024, 9, 2), date(2024, 9, 30), week_start_day=1, week_end_day=5)

        self.assertEqual(weeks[0]['end_date'], date(2024, 9, 6))
        self.assertEqual(weeks[1]['start_date'], date(2024, 9, 9))

    def test_weeks_never_overlap(self):
        weeks = build_week_calendar(date(2024, 9, 2), date(2025, 5, 31))
        for previous, current in zip(weeks, weeks[1:]):
            self.assertLess(previous['end_date'], current['start_date'])


class SchoolYearServiceTests(TestCase):

    def test_create_applies_defaults_and_generates_weeks(self):
        school_year = make_school_year()

        self.assertEqual(school_year.excellent_coefficient, 20)
        self.assertEqual(school_year.failing_coefficient, -20)
        self.assertEqual(school_year.red_flag_threshold, 90)
        self.assertEqual(len(school_year.conduct_items), 6)
        self.assertEqual(school_year.created_by_id, 'admin-1')

        weeks = list(school_year.weeks.order_by('week_number'))
        self.assertEqual(len(weeks), 39)
        self.assertEqual((weeks[0].start_date, weeks[0].end_date), (date(2024, 9, 2), date(2024, 9, 8)))
        self.assertEqual((weeks[-1].start_date, weeks[-1].end_date), (date(2025, 5, 26), date(2025, 5, 31)))
        self.assertTrue(all(week.status == DRAFT for week in weeks))

    def test_create_without_weeks(self):
        school_year = SchoolYearService.create_school_year(
            '2025-2026', date(2025, 9, 1), date(2026, 5, 31), generate_weeks=False
        )
        self.assertEqual(school_year.weeks.count(), 0)

    def test_duplicate_label_conflicts(self):
        make_school_year()
        with self.assertRaises(ConflictError):
            make_school_year()

    def test_invalid_configuration_rejected(self):
        with self.assertRaises(ValidationError):
            make_school_year(year='2024-2026')
        with self.assertRaises(ValidationError):
            make_school_year(yellow_flag_threshold=80, green_flag_threshold=70)
        with self.assertRaises(ValidationError):
            make_school_year(poor_coefficient=5)
        with self.assertRaises(ValidationError):
            make_school_year(conduct_items=[{'name': 'Punctuality', 'applicable_days': [8]}])
        with self.assertRaises(ValidationError):
            make_school_year(homeroom='x')
        self.assertFalse(SchoolYear.objects.exists())

    def test_end_date_must_follow_start_date(self):
        with self.assertRaises(ValidationError) as caught:
            make_school_year(end_date=date(2024, 9, 2))
        self.assertIn('end_date', caught.exception.message_dict)
        self.assertFalse(SchoolYear.objects.exists())

    def test_week_range_may_be_a_single_day(self):
        school_year = make_school_year(generate_weeks=False)
        Week(school_year=school_year, week_number=1, start_date=date(2024, 9, 2), end_date=date(2024, 9, 2)).clean()

        week = Week(school_year=school_year, week_number=2, start_date=date(2024, 9, 9), end_date=date(2024, 9, 8))
        with self.assertRaises(ValidationError) as caught:
            week.clean()
        self.assertIn('end_date', caught.exception.message_dict)

    def test_generate_weeks_twice_conflicts(self):
        school_year = make_school_year()
        with self.assertRaises(ConflictError) as caught:
            SchoolYearService.generate_weeks(school_year.pk)
        self.assertEqual(caught.exception.details['existing_weeks'], 39)

    def test_update_configuration_changes_snapshot(self):
        school_year = make_school_year()
        SchoolYearService.update_configuration(school_year.pk, {'red_flag_threshold': 95}, actor_id='admin-2')

        school_year.refresh_from_db()
        self.assertEqual(school_year.get_scoring_config().thresholds.red, 95)
        self.assertEqual(school_year.updated_by_id, 'admin-2')

    def test_update_configuration_validates(self):
        school_year = make_school_year()
        with self.assertRaises(ValidationError):
            SchoolYearService.update_configuration(school_year.pk, {'year': '2030-2031'})
        with self.assertRaises(ValidationError):
            SchoolYearService.update_configuration(school_year.pk, {'green_flag_threshold': 99})

    def test_current_school_year(self):
        school_year = make_school_year()
        self.assertEqual(SchoolYearService.get_current_school_year(), school_year)

        SchoolYearService.update_configuration(school_year.pk, {'status': SchoolYear.STATUS_ENDED})
        with self.assertRaises(RecordNotFoundError):
            SchoolYearService.get_current_school_year()

    def test_semester_and_week_lookup(self):
        school_year = make_school_year(second_semester_start=date(2025, 1, 13))

        self.assertEqual(school_year.get_semester(date(2024, 12, 30)), 1)
        self.assertEqual(school_year.get_semester(date(2025, 1, 13)), 2)
        self.assertEqual(get_week_for_date(school_year, date(2024, 9, 11)).week_number, 2)
        self.assertIsNone(get_week_for_date(school_year, date(2025, 7, 1)))

    def test_school_days_of_week(self):
        school_year = make_school_year()
        self.assertEqual(school_days_of_week(school_year.weeks.get(week_number=1)), [1, 2, 3, 4, 5])
        # Last week ends on a Saturday
        self.assertEqual(school_days_of_week(school_year.weeks.get(week_number=39), 7), [1, 2, 3, 4, 5, 6])


class WeekLifecycleTests(TestCase):

    def setUp(self):
        self.school_year = make_school_year()
        self.week = self.school_year.weeks.get(week_number=1)
        self.school_class = make_class(self.school_year)
        DisciplineGradingService.start_discipline_grading(self.week.pk, self.school_class.pk)
        AcademicGradingService.start_academic_grading(self.week.pk, self.school_class.pk)

    def statuses(self):
        return {
            'week': Week.objects.get(pk=self.week.pk).status,
            'discipline': DisciplineGrading.objects.get(week=self.week).status,
            'academic': ClassAcademicGrading.objects.get(week=self.week).status,
            'summary': WeeklySummary.objects.get(week=self.week).status,
        }

    def test_approve_changes_only_the_week(self):
        week = WeekService.approve_week(self.week.pk, actor_id='head-1')

        self.assertEqual(week.approved_by_id, 'head-1')
        self.assertIsNotNone(week.approved_at)
        self.assertEqual(self.statuses(), {
            'week': APPROVED, 'discipline': DRAFT, 'academic': DRAFT, 'summary': DRAFT,
        })

    def test_lock_requires_approval(self):
        with self.assertRaises(InvalidStateError):
            WeekService.lock_week(self.week.pk, actor_id='head-1')
        self.assertEqual(self.statuses()['week'], DRAFT)

    def test_lock_and_unlock_cascade(self):
        WeekService.approve_week(self.week.pk, actor_id='head-1')
        WeekService.lock_week(self.week.pk, actor_id='head-1')
        self.assertEqual(set(self.statuses().values()), {LOCKED})

        week = WeekService.unlock_week(self.week.pk, actor_id='admin-1', reason='Late correction')
        self.assertEqual(set(self.statuses().values()), {APPROVED})
        self.assertEqual(week.unlocked_by_id, 'admin-1')
        self.assertEqual(week.change_reason, 'Late correction')

    def test_cascade_stays_inside_the_week(self):
        other_week = self.school_year.weeks.get(week_number=2)
        DisciplineGradingService.start_discipline_grading(other_week.pk, self.school_class.pk)

        WeekService.approve_week(self.week.pk, actor_id='head-1')
        WeekService.lock_week(self.week.pk, actor_id='head-1')

        self.assertEqual(DisciplineGrading.objects.get(week=other_week).status, DRAFT)

    def test_unlock_requires_lock(self):
        WeekService.approve_week(self.week.pk, actor_id='head-1')
        with self.assertRaises(InvalidStateError):
            WeekService.unlock_week(self.week.pk, actor_id='admin-1')

    def test_unknown_week(self):
        with self.assertRaises(RecordNotFoundError):
            WeekService.approve_week('00000000-0000-0000-0000-000000000000', actor_id='head-1')


class WeekQueryAndDeleteTests(TestCase):

    def setUp(self):
        self.school_year = make_school_year()
        self.week = self.school_year.weeks.get(week_number=1)
        self.class_a = make_class(self.school_year, '10A1')
        self.class_b = make_class(self.school_year, '10A2')

    def test_week_status(self):
        DailyScoreService.record_conduct_score(
            self.week.pk, self.class_a.pk, date(2024, 9, 2),
            [{'item_name': 'Punctuality', 'violation_count': 0}],
        )
        status = WeekService.get_week_status(self.week.pk)

        self.assertEqual(status['week_status'], DRAFT)
        self.assertEqual(status['conduct_scores_completed'], 1)
        self.assertEqual(status['academic_scores_completed'], 0)
        self.assertEqual(status['total_classes'], 2)
        self.assertEqual(status['completion_percentage'], 50)

    def test_empty_week_deletes_without_force(self):
        preview = WeekService.delete_week(self.week.pk)
        self.assertFalse(preview['has_related_data'])
        self.assertFalse(Week.objects.filter(pk=self.week.pk).exists())

    def test_dependents_require_force(self):
        DisciplineGradingService.start_discipline_grading(self.week.pk, self.class_a.pk)

        preview = WeekService.get_delete_preview(self.week.pk)
        self.assertEqual(preview['discipline_gradings'], 1)
        self.assertEqual(preview['weekly_summaries'], 1)
        self.assertEqual(preview['total'], 2)

        with self.assertRaises(ConflictError):
            WeekService.delete_week(self.week.pk)

        WeekService.delete_week(self.week.pk, actor_id='admin-1', force=True)
        self.assertFalse(DisciplineGrading.objects.exists())
        self.assertFalse(WeeklySummary.objects.exists())

    def test_locked_week_cannot_be_deleted(self):
        WeekService.approve_week(self.week.pk, actor_id='head-1')
        WeekService.lock_week(self.week.pk, actor_id='head-1')
        with self.assertRaises(InvalidStateError):
            WeekService.delete_week(self.week.pk, force=True)
