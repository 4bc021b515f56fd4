# tests/test_middleware.py

from types import SimpleNamespace

from django.http import HttpResponse
from django.test import SimpleTestCase, TestCase, RequestFactory

from utils.context import (
    ActingIdentity, get_acting_identity, get_actor_id, set_acting_identity, clear_acting_identity,
)
from utils.middleware import ActingIdentityMiddleware
from discipline.models import ViolationType


class ActingIdentityMiddlewareTests(SimpleTestCase):

    def setUp(self):
        self.factory = RequestFactory()
        self.seen = {}

        def view(request):
            self.seen.update(get_acting_identity() or {})
            return HttpResponse('ok')

        self.middleware = ActingIdentityMiddleware(view)

    def tearDown(self):
        clear_acting_identity()

    def test_header_sets_identity_for_the_request(self):
        request = self.factory.get('/weeks/', HTTP_X_ACTING_IDENTITY='teacher-7')
        self.middleware(request)

        self.assertEqual(self.seen, {'actor_id': 'teacher-7', 'source': '/weeks/'})
        self.assertIsNone(get_acting_identity())

    def test_authenticated_user_wins_over_header(self):
        request = self.factory.get('/', HTTP_X_ACTING_IDENTITY='teacher-7')
        request.user = SimpleNamespace(pk=42, is_authenticated=True)
        self.middleware(request)

        self.assertEqual(self.seen['actor_id'], '42')

    def test_anonymous_request(self):
        request = self.factory.get('/')
        request.user = SimpleNamespace(pk=None, is_authenticated=False)
        self.middleware(request)

        self.assertIsNone(self.seen['actor_id'])

    def test_identity_cleared_when_view_fails(self):
        def broken(request):
            raise RuntimeError('boom')

        request = self.factory.get('/', HTTP_X_ACTING_IDENTITY='teacher-7')
        with self.assertRaises(RuntimeError):
            ActingIdentityMiddleware(broken)(request)
        self.assertIsNone(get_acting_identity())


class ActingIdentityContextTests(SimpleTestCase):

    def tearDown(self):
        clear_acting_identity()

    def test_nested_contexts_restore_outer_identity(self):
        with ActingIdentity('outer', source='command'):
            with ActingIdentity('inner'):
                self.assertEqual(get_actor_id(), 'inner')
            self.assertEqual(get_actor_id(), 'outer')
        self.assertIsNone(get_acting_identity())

    def test_missing_actor_inherits_outer(self):
        set_acting_identity('request-user', source='/weeks/')
        with ActingIdentity(None, source='approve_week'):
            self.assertEqual(get_acting_identity(), {'actor_id': 'request-user', 'source': 'approve_week'})
        self.assertEqual(get_actor_id(), 'request-user')


class AuditFieldTests(TestCase):

    def test_save_fills_audit_fields(self):
        with ActingIdentity('admin-1'):
            violation_type = ViolationType.objects.create(name='Late arrival')

        self.assertEqual(violation_type.created_by_id, 'admin-1')
        self.assertEqual(violation_type.updated_by_id, 'admin-1')
        self.assertIsNotNone(violation_type.created_at)

        with ActingIdentity('head-2'):
            violation_type.default_penalty = 3
            violation_type.save(update_fields=['default_penalty'])

        violation_type.refresh_from_db()
        self.assertEqual(violation_type.created_by_id, 'admin-1')
        self.assertEqual(violation_type.updated_by_id, 'head-2')
        self.assertGreaterEqual(violation_type.updated_at, violation_type.created_at)

    def test_without_identity_audit_ids_stay_empty(self):
        violation_type = ViolationType.objects.create(name='Phone use')
        self.assertIsNone(violation_type.created_by_id)
