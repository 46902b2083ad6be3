"""
Tests for the team audit trail.
"""

import uuid
from unittest.mock import patch

from django.core.exceptions import ImproperlyConfigured
from django.test import TestCase, override_settings
from django.utils import timezone

from ..audit import (
    AuditEvent,
    AuditLogQuery,
    CeleryAuditSink,
    DatabaseAuditSink,
    InMemoryAuditSink,
    LoggingAuditSink,
    get_audit_sink,
    reset_audit_sink,
)
from ..exceptions import InvalidState
from ..interface import TeamSpec
from ..models import TeamAuditLog, TeamOperation
from ..services import TeamOrchestrator
from ..tasks import record_audit_event
from .helpers import TeamFixturesMixin


def make_event(**overrides):
    values = {
        'team_id': str(uuid.uuid4()),
        'operation': TeamOperation.ADD_MEMBERS.value,
        'affected_user_ids': (str(uuid.uuid4()),),
        'actor_id': str(uuid.uuid4()),
        'timestamp': timezone.now(),
        'company_id': str(uuid.uuid4()),
        'correlation_id': 'req-1',
    }
    values.update(overrides)
    return AuditEvent(**values)


class AuditEventTest(TestCase):

    def test_payload_is_json_safe(self):
        event = make_event(metadata={'fields': ['name']})

        payload = event.to_payload()

        self.assertIsInstance(payload['timestamp'], str)
        self.assertIsInstance(payload['affected_user_ids'], list)
        self.assertEqual(AuditEvent.from_payload(payload), event)


class AuditLogModelTest(TestCase):

    def setUp(self):
        self.event = make_event()
        DatabaseAuditSink().record(self.event)
        self.log = TeamAuditLog.objects.get()

    def test_database_sink_writes_row(self):
        self.assertEqual(str(self.log.team_id), self.event.team_id)
        self.assertEqual(self.log.operation, TeamOperation.ADD_MEMBERS)
        self.assertEqual(self.log.affected_user_ids, list(self.event.affected_user_ids))
        self.assertEqual(self.log.correlation_id, 'req-1')

    def test_database_sink_follows_router(self):
        with patch('apps.teams.audit.sinks.router.db_for_write', return_value='default') as db_for_write:
            DatabaseAuditSink().record(make_event(correlation_id='req-2'))

        db_for_write.assert_any_call(TeamAuditLog)
        self.assertTrue(TeamAuditLog.objects.filter(correlation_id='req-2').exists())

    def test_database_sink_explicit_alias(self):
        with patch('apps.teams.audit.sinks.router.db_for_write') as db_for_write:
            DatabaseAuditSink(using='default').record(make_event(correlation_id='req-3'))

        db_for_write.assert_not_called()
        self.assertTrue(TeamAuditLog.objects.filter(correlation_id='req-3').exists())

    def test_audit_log_is_immutable(self):
        self.log.operation = TeamOperation.DELETE
        with self.assertRaises(ValueError):
            self.log.save()

        with self.assertRaises(ValueError):
            self.log.delete()

    def test_query_for_team(self):
        self.assertEqual(list(AuditLogQuery.for_team(self.event.team_id)), [self.log])
        self.assertEqual(list(AuditLogQuery.for_actor(self.event.actor_id)), [self.log])
        self.assertEqual(list(AuditLogQuery.for_correlation('req-1')), [self.log])
        self.assertFalse(AuditLogQuery.for_company(uuid.uuid4()).exists())


class AuditSinkFactoryTest(TestCase):

    def tearDown(self):
        reset_audit_sink()

    @override_settings(TEAMS_AUDIT_SINK='database')
    def test_default_sink_is_database(self):
        self.assertIsInstance(get_audit_sink(), DatabaseAuditSink)

    def test_sink_is_cached(self):
        self.assertIs(get_audit_sink(), get_audit_sink())

    def test_sink_follows_setting(self):
        with override_settings(TEAMS_AUDIT_SINK='memory'):
            self.assertIsInstance(get_audit_sink(), InMemoryAuditSink)
        with override_settings(TEAMS_AUDIT_SINK='logging'):
            self.assertIsInstance(get_audit_sink(), LoggingAuditSink)
        with override_settings(TEAMS_AUDIT_SINK='celery'):
            self.assertIsInstance(get_audit_sink(), CeleryAuditSink)

    @override_settings(TEAMS_AUDIT_SINK='carrier-pigeon')
    def test_unknown_sink(self):
        with self.assertRaises(ImproperlyConfigured):
            get_audit_sink()


class CelerySinkTest(TestCase):

    def test_publishes_payload(self):
        event = make_event()

        with patch.object(record_audit_event, 'apply_async') as apply_async:
            CeleryAuditSink().record(event)

        apply_async.assert_called_once_with(args=[event.to_payload()], retry=False)

    def test_task_persists_event(self):
        event = make_event()

        record_audit_event(event.to_payload())

        log = TeamAuditLog.objects.get()
        self.assertEqual(str(log.actor_id), event.actor_id)
        self.assertEqual(log.timestamp, event.timestamp)

    def test_logging_sink(self):
        with self.assertLogs('apps.teams.audit.sinks', level='INFO') as logs:
            LoggingAuditSink().record(make_event(correlation_id='req-9'))

        self.assertIn('req-9', logs.output[0])


@override_settings(TEAMS_AUDIT_SINK='database')
class CommittedOperationAuditTest(TeamFixturesMixin, TestCase):
    """The configured sink receives one event per committed operation."""

    def setUp(self):
        self.setUpCompanies()
        reset_audit_sink()

    def tearDown(self):
        reset_audit_sink()

    def test_database_sink_records_committed_operation(self):
        orchestrator = TeamOrchestrator()

        with self.captureOnCommitCallbacks(execute=True):
            team = orchestrator.create(
                TeamSpec(name='Platform', owner_id=self.owner.pk, member_ids=[self.alice.pk]),
                self.actor(self.admin)
            )

        log = TeamAuditLog.objects.get(team_id=team.pk)
        self.assertEqual(log.operation, TeamOperation.CREATE)
        self.assertEqual(log.company_id, self.acme.pk)
        self.assertEqual(log.actor_id, self.admin.pk)
        self.assertCountEqual(log.affected_user_ids, [str(self.owner.pk), str(self.alice.pk)])

    def test_rejected_operation_is_not_audited(self):
        orchestrator = TeamOrchestrator()

        with self.captureOnCommitCallbacks(execute=True):
            with self.assertRaises(InvalidState):
                orchestrator.create(
                    TeamSpec(name='Platform', owner_id=self.outsider.pk),
                    self.actor(self.admin)
                )

        self.assertFalse(TeamAuditLog.objects.exists())
