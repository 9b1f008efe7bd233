"""
Tests for task execution validation: single and bulk decisions, the pending
review queue and the reviewer dashboard stats.
"""
import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from backoffice.config import config
from backoffice.models import ExecutionStatus
from backoffice.store import eq
from backoffice.utils import parse_timestamp
from backoffice.validation import UNKNOWN_CAMPAIGN, UNKNOWN_USER, ValidationService


def execution(store, execution_id='ex-1'):
    return store.get(config.TASK_EXECUTIONS_TABLE, {'execution_id': execution_id})


@pytest.fixture
def service(store):
    return ValidationService(store=store)


class TestApproveExecution:

    def test_approve_with_rating_and_bonus(self, store, service, make_execution):
        make_execution('ex-1')

        result = service.approve_execution(
            'ex-1', rating=5, bonus_cents=500, review_notes='Parfait', reviewer_id='admin-1'
        )

        assert result == {'success': True}
        ex = execution(store)
        assert ex['status'] == ExecutionStatus.COMPLETED
        assert ex['rating'] == 5
        assert ex['bonus_cents'] == 500
        assert ex['review_notes'] == 'Parfait'
        assert ex['reviewer_id'] == 'admin-1'
        assert ex['completed_at'] == ex['reviewed_at']

    def test_review_timestamps_follow_submission(self, store, service, make_execution):
        make_execution('ex-1', submitted_at='2026-01-10T08:00:00+00:00')

        service.approve_execution('ex-1')

        ex = execution(store)
        assert parse_timestamp(ex['completed_at']) >= parse_timestamp(ex['submitted_at'])
        assert parse_timestamp(ex['reviewed_at']) >= parse_timestamp(ex['submitted_at'])

    def test_rating_and_bonus_optional(self, store, service, make_execution):
        make_execution('ex-1', bonus_cents=0)

        service.approve_execution('ex-1')

        ex = execution(store)
        assert 'rating' not in ex
        assert ex['bonus_cents'] == 0

    def test_missing_execution(self, service):
        result = service.approve_execution('nope')

        assert result == {'success': False, 'error': 'Task execution not found'}

    def test_store_error_is_returned(self):
        store = MagicMock()
        store.update.side_effect = Exception('Throttled')
        service = ValidationService(store=store, admin_logger=MagicMock())

        result = service.approve_execution('ex-1')

        assert result == {'success': False, 'error': 'Throttled'}

    def test_approval_is_logged(self, store, service, make_execution):
        make_execution('ex-1')

        service.approve_execution('ex-1', rating=4, reviewer_id='admin-1', ip_address='10.0.0.2')

        logs = store.query(config.ADMIN_LOGS_TABLE, [eq('entity_id', 'ex-1')])
        assert len(logs) == 1
        assert logs[0]['action'] == 'task_validated'
        assert logs[0]['entity_type'] == 'task_execution'
        assert logs[0]['details']['rating'] == 4


class TestRejectExecution:

    def test_reject_stores_reason(self, store, service, make_execution):
        make_execution('ex-1')

        result = service.reject_execution('ex-1', 'Capture illisible', reviewer_id='admin-1')

        assert result['success'] is True
        ex = execution(store)
        assert ex['status'] == ExecutionStatus.REJECTED
        assert ex['rejection_reason'] == 'Capture illisible'
        assert ex['reviewed_at']
        assert 'completed_at' not in ex

    def test_reject_twice_keeps_last_reason(self, store, service, make_execution):
        make_execution('ex-1')

        service.reject_execution('ex-1', 'Capture illisible')
        second = service.reject_execution('ex-1', 'Mauvais compte')

        assert second['success'] is True
        ex = execution(store)
        assert ex['status'] == ExecutionStatus.REJECTED
        assert ex['rejection_reason'] == 'Mauvais compte'

    def test_missing_execution(self, service):
        result = service.reject_execution('nope', 'x')

        assert result == {'success': False, 'error': 'Task execution not found'}


class TestBulkValidation:

    def test_bulk_reject_applies_same_reason(self, store, service, make_execution):
        for i in range(1, 4):
            make_execution(f'ex-{i}')

        result = service.bulk_reject(['ex-1', 'ex-2', 'ex-3'], 'Campagne annulée', reviewer_id='admin-1')

        assert result == {'success': True, 'count': 3}
        rows = [execution(store, f'ex-{i}') for i in range(1, 4)]
        assert {r['status'] for r in rows} == {ExecutionStatus.REJECTED}
        assert {r['rejection_reason'] for r in rows} == {'Campagne annulée'}
        assert len({r['reviewed_at'] for r in rows}) == 1

    def test_bulk_approve(self, store, service, make_execution):
        make_execution('ex-1')
        make_execution('ex-2')

        result = service.bulk_approve(['ex-1', 'ex-2'], reviewer_id='admin-1')

        assert result['success'] is True
        assert execution(store, 'ex-1')['status'] == ExecutionStatus.COMPLETED
        assert execution(store, 'ex-2')['reviewer_id'] == 'admin-1'
        assert store.count(config.ADMIN_LOGS_TABLE, [eq('action', 'task_validated')]) == 2

    def test_unknown_id_fails_whole_batch(self, store, service, make_execution):
        make_execution('ex-1')

        result = service.bulk_approve(['ex-1', 'ghost'])

        assert result['success'] is False
        assert execution(store, 'ex-1')['status'] == ExecutionStatus.SUBMITTED
        assert store.count(config.ADMIN_LOGS_TABLE) == 0

    def test_empty_batch_is_noop(self, store, service):
        assert service.bulk_reject([], 'x') == {'success': True, 'count': 0}
        assert store.count(config.ADMIN_LOGS_TABLE) == 0

    def test_repeated_ids_count_once(self, store, service, make_execution):
        make_execution('ex-1')
        make_execution('ex-2')

        result = service.bulk_reject(['ex-1', 'ex-1', 'ex-2'], 'Doublon', reviewer_id='admin-1')

        assert result == {'success': True, 'count': 2}
        assert store.count(config.ADMIN_LOGS_TABLE, [eq('action', 'task_rejected')]) == 2

    def test_oversized_batch_writes_nothing(self, store, service, make_execution):
        for i in range(1, 4):
            make_execution(f'ex-{i}')

        with patch.object(config, 'MAX_TRANSACTION_ITEMS', 2):
            result = service.bulk_approve(['ex-1', 'ex-2', 'ex-3'])

        assert result['success'] is False
        assert 'maximum 2' in result['error']
        assert store.count(config.TASK_EXECUTIONS_TABLE, [eq('status', ExecutionStatus.SUBMITTED)]) == 3
        assert store.count(config.ADMIN_LOGS_TABLE) == 0


class TestPendingTasks:

    @pytest.fixture
    def queue(self, make_execution, make_task, make_profile):
        make_task('task-1', 'Suivre la page', 'social_follow')
        make_task('task-2', 'Noter l\'application', 'review')
        make_profile('exec-1', 'Awa', 'Kone')
        make_profile('exec-2', 'Marc', 'Zinsou')
        make_execution('ex-1', 'task-1', 'exec-1', submitted_at='2026-01-10T08:00:00+00:00', reward_cents=2000)
        make_execution('ex-2', 'task-2', 'exec-2', submitted_at='2026-01-10T09:00:00+00:00', reward_cents=5000)
        make_execution('ex-3', 'task-1', 'exec-2', submitted_at='2026-01-10T07:00:00+00:00', reward_cents=1000)
        make_execution('ex-4', 'task-1', 'exec-1', status='completed')

    def test_only_submitted_newest_first(self, service, queue):
        result = service.get_pending_tasks()

        assert result['total'] == 3
        assert [i['execution_id'] for i in result['items']] == ['ex-2', 'ex-1', 'ex-3']

    def test_item_is_joined(self, service, queue):
        item = next(i for i in service.get_pending_tasks()['items'] if i['execution_id'] == 'ex-1')

        assert item['campaign_title'] == 'Suivre la page'
        assert item['task_type'] == 'social_follow'
        assert item['task_type_label'] == 'Abonnement'
        assert item['executant_name'] == 'Awa Kone'
        assert item['executant_email'] == 'exec-1@example.com'
        assert item['reward_formatted'] == '20 FCFA'

    def test_filter_by_task_type(self, service, queue):
        result = service.get_pending_tasks(task_type='review')

        assert [i['execution_id'] for i in result['items']] == ['ex-2']

    def test_search_campaign_or_executant(self, service, queue):
        by_name = service.get_pending_tasks(search='zinsou')
        by_title = service.get_pending_tasks(search='application')

        assert sorted(i['execution_id'] for i in by_name['items']) == ['ex-2', 'ex-3']
        assert [i['execution_id'] for i in by_title['items']] == ['ex-2']

    def test_filter_by_campaign_and_executant(self, service, queue):
        result = service.get_pending_tasks(campaign_id='task-1', executant_id='exec-2')

        assert [i['execution_id'] for i in result['items']] == ['ex-3']

    def test_sort_by_amount_and_paginate(self, service, queue):
        result = service.get_pending_tasks(sort_by='amount', sort_order='asc', page=2, limit=2)

        assert result['total'] == 3
        assert result['totalPages'] == 2
        assert [i['reward_cents'] for i in result['items']] == [5000]

    def test_missing_task_and_profile(self, service, make_execution):
        make_execution('ex-9', 'gone', 'nobody')

        item = service.get_pending_tasks()['items'][0]

        assert item['campaign_title'] == UNKNOWN_CAMPAIGN
        assert item['executant_name'] == UNKNOWN_USER
        assert item['task_type'] is None


class TestValidationStats:

    NOW = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)

    def test_today_counts_and_average(self, service, make_execution):
        make_execution('ex-1', status='submitted', submitted_at='2026-01-09T10:00:00+00:00')
        make_execution('ex-2', status='submitted', submitted_at='2026-01-10T10:00:00+00:00')
        make_execution(
            'ex-3', status='completed',
            submitted_at='2026-01-10T08:30:00+00:00', reviewed_at='2026-01-10T09:00:00+00:00'
        )
        make_execution(
            'ex-4', status='completed',
            submitted_at='2026-01-10T08:00:00+00:00', reviewed_at='2026-01-10T09:30:00+00:00'
        )
        make_execution(
            'ex-5', status='completed',
            submitted_at='2026-01-08T08:00:00+00:00', reviewed_at='2026-01-09T09:30:00+00:00'
        )
        make_execution('ex-6', status='rejected', reviewed_at='2026-01-10T11:00:00+00:00')

        stats = service.get_stats(now=self.NOW)

        assert stats['pendingCount'] == 2
        assert stats['approvedToday'] == 2
        assert stats['rejectedToday'] == 1
        assert stats['averageProcessingTime'] == pytest.approx(60.0)
        assert stats['oldestPending'] == '2026-01-09T10:00:00+00:00'

    def test_no_activity(self, service):
        stats = service.get_stats(now=self.NOW)

        assert stats == {
            'pendingCount': 0,
            'approvedToday': 0,
            'rejectedToday': 0,
            'averageProcessingTime': None,
            'oldestPending': None,
        }
