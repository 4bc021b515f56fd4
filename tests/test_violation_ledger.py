# tests/test_violation_ledger.py

from datetime import date

from django.core.exceptions import ValidationError
from django.test import TestCase

from core.exceptions import InvalidStateError
from academics.services import WeekService
from discipline.models import ViolationLog
from discipline.services import ViolationLedgerService
from grading.services import DisciplineGradingService
from summaries.models import WeeklySummary

from tests.factories import make_school_year, make_class, make_student, make_violation_type

MONDAY = date(2024, 9, 2)
TUESDAY = date(2024, 9, 3)


class LedgerTestCase(TestCase):

    def setUp(self):
        self.school_year = make_school_year()
        self.week = self.school_year.weeks.get(week_number=1)
        self.school_class = make_class(self.school_year)
        self.student = make_student(self.school_class)
        self.late = make_violation_type('Late arrival', default_penalty=2, severity='medium', category='discipline')

    def log(self, on_date=MONDAY, student=None, violation_type=None, **extra):
        return ViolationLedgerService.log_violation(
            self.week.pk,
            (student or self.student).pk,
            (violation_type or self.late).pk,
            on_date,
            extra.pop('description', 'Arrived after the bell'),
            actor_id='monitor-1',
            **extra,
        )

    def summary(self):
        return WeeklySummary.objects.get(week=self.week, school_class=self.school_class)


class LogViolationTests(LedgerTestCase):

    def test_log_copies_type_details(self):
        result = self.log(location='Gate', evidence=['photo-1.jpg'])
        record = result['record']

        self.assertFalse(result['is_duplicate'])
        self.assertEqual(record.status, ViolationLog.STATUS_PENDING)
        self.assertEqual(record.school_class, self.school_class)
        self.assertEqual(record.severity, 'medium')
        self.assertEqual(record.category, 'discipline')
        self.assertEqual(record.reported_by_id, 'monitor-1')
        self.assertEqual(record.penalty, 2)
        self.assertEqual(self.summary().violations['pending'], 1)

    def test_duplicate_of_approved_record_is_flagged(self):
        first = self.log()['record']
        ViolationLedgerService.approve_violation(first.pk, actor_id='head-1')

        result = self.log()
        self.assertTrue(result['is_duplicate'])
        self.assertEqual(result['record'].duplicate_of, first)
        self.assertEqual(ViolationLog.objects.count(), 2)

    def test_pending_match_is_not_a_duplicate(self):
        self.log()
        self.assertFalse(self.log()['is_duplicate'])

    def test_other_day_or_type_is_not_a_duplicate(self):
        first = self.log()['record']
        ViolationLedgerService.approve_violation(first.pk, actor_id='head-1')

        self.assertFalse(self.log(on_date=TUESDAY)['is_duplicate'])
        phone = make_violation_type('Phone use')
        self.assertFalse(self.log(violation_type=phone)['is_duplicate'])

    def test_invalid_input_rejected(self):
        with self.assertRaises(ValidationError):
            self.log(on_date=date(2024, 9, 9))
        with self.assertRaises(ValidationError):
            self.log(description='   ')
        with self.assertRaises(ValidationError):
            self.log(violation_type=make_violation_type('Retired', is_active=False))
        with self.assertRaises(ValidationError):
            self.log(color='red')

        other_class = make_class(self.school_year, '10A2')
        with self.assertRaises(ValidationError):
            ViolationLedgerService.log_violation(
                self.week.pk, self.student.pk, self.late.pk, MONDAY, 'Late', class_id=other_class.pk
            )
        self.assertFalse(ViolationLog.objects.exists())


class ReviewWorkflowTests(LedgerTestCase):

    def test_approve_records_reviewer(self):
        record = self.log()['record']
        record = ViolationLedgerService.approve_violation(record.pk, actor_id='head-1', notes='Confirmed')

        self.assertEqual(record.status, ViolationLog.STATUS_APPROVED)
        self.assertEqual(record.approved_by_id, 'head-1')
        self.assertIsNotNone(record.approved_at)
        self.assertEqual(record.approval_notes, 'Confirmed')

    def test_only_pending_can_be_reviewed(self):
        record = self.log()['record']
        ViolationLedgerService.approve_violation(record.pk, actor_id='head-1')

        with self.assertRaises(InvalidStateError):
            ViolationLedgerService.approve_violation(record.pk, actor_id='head-1')
        with self.assertRaises(InvalidStateError):
            ViolationLedgerService.reject_violation(record.pk, actor_id='head-1', reason='Mistake')

    def test_reject_requires_reason(self):
        record = self.log()['record']
        with self.assertRaises(ValidationError):
            ViolationLedgerService.reject_violation(record.pk, actor_id='head-1', reason='  ')

        record = ViolationLedgerService.reject_violation(record.pk, actor_id='head-1', reason='Wrong student')
        self.assertEqual(record.status, ViolationLog.STATUS_REJECTED)
        self.assertEqual(record.rejection_reason, 'Wrong student')

    def test_update_only_before_approval(self):
        record = self.log()['record']
        phone = make_violation_type('Phone use', severity='severe', category='conduct')

        record = ViolationLedgerService.update_violation(
            record.pk, {'violation_type': phone.pk, 'location': 'Room 12'}, actor_id='monitor-1'
        )
        self.assertEqual(record.violation_type, phone)
        self.assertEqual(record.severity, 'severe')
        self.assertEqual(record.location, 'Room 12')

        with self.assertRaises(ValidationError):
            ViolationLedgerService.update_violation(record.pk, {'status': 'approved'})

        ViolationLedgerService.approve_violation(record.pk, actor_id='head-1')
        with self.assertRaises(InvalidStateError):
            ViolationLedgerService.update_violation(record.pk, {'location': 'Gate'})

    def test_delete_only_pending_or_rejected(self):
        pending = self.log()['record']
        ViolationLedgerService.delete_violation(pending.pk, actor_id='head-1')

        rejected = self.log()['record']
        ViolationLedgerService.reject_violation(rejected.pk, actor_id='head-1', reason='Duplicate report')
        ViolationLedgerService.delete_violation(rejected.pk, actor_id='head-1')

        approved = self.log()['record']
        ViolationLedgerService.approve_violation(approved.pk, actor_id='head-1')
        with self.assertRaises(InvalidStateError):
            ViolationLedgerService.delete_violation(approved.pk, actor_id='head-1')

        self.assertEqual(list(ViolationLog.objects.values_list('pk', flat=True)), [approved.pk])


class MergeTests(LedgerTestCase):

    def test_merge_folds_record_out_of_counts(self):
        kept = self.log()['record']
        folded = self.log(on_date=TUESDAY)['record']

        merged = ViolationLedgerService.merge_violation(folded.pk, kept.pk, actor_id='head-1', notes='Same incident')

        self.assertEqual(merged.status, ViolationLog.STATUS_MERGED)
        self.assertEqual(merged.duplicate_of, kept)
        self.assertIn('Same incident', merged.supplementary_notes)
        self.assertEqual(self.summary().violations['total'], 1)

    def test_merge_rules(self):
        first = self.log()['record']
        other_student = make_student(self.school_class, 'S002', 'Binh Tran')
        foreign = self.log(student=other_student)['record']

        with self.assertRaises(ValidationError):
            ViolationLedgerService.merge_violation(first.pk, first.pk, actor_id='head-1')
        with self.assertRaises(ValidationError):
            ViolationLedgerService.merge_violation(foreign.pk, first.pk, actor_id='head-1')

        second = self.log(on_date=TUESDAY)['record']
        ViolationLedgerService.merge_violation(second.pk, first.pk, actor_id='head-1')
        with self.assertRaises(InvalidStateError):
            ViolationLedgerService.merge_violation(second.pk, first.pk, actor_id='head-1')


class LedgerSummaryTests(LedgerTestCase):

    def test_review_changes_refresh_the_summary(self):
        DisciplineGradingService.start_discipline_grading(self.week.pk, self.school_class.pk)
        record = self.log()['record']
        self.assertEqual(self.summary().total_score, 100)

        ViolationLedgerService.approve_violation(record.pk, actor_id='head-1')
        summary = self.summary()
        self.assertEqual(summary.violations['approved'], 1)
        self.assertEqual(summary.violations['total_penalty'], 2)
        self.assertEqual(summary.total_score, 98)
        self.assertEqual(summary.violations['top_violators'][0]['student_code'], 'S001')

    def test_locked_week_refuses_ledger_writes(self):
        record = self.log()['record']
        WeekService.approve_week(self.week.pk, actor_id='head-1')
        WeekService.lock_week(self.week.pk, actor_id='head-1')

        with self.assertRaises(InvalidStateError):
            self.log()
        with self.assertRaises(InvalidStateError):
            ViolationLedgerService.approve_violation(record.pk, actor_id='head-1')
        with self.assertRaises(InvalidStateError):
            ViolationLedgerService.delete_violation(record.pk, actor_id='head-1')

        record.refresh_from_db()
        self.assertEqual(record.status, ViolationLog.STATUS_PENDING)
