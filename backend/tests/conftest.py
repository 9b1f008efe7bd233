"""
Shared fixtures for the back-office tests.
The memory record store is selected before any back-office module is imported.
"""
import os
import sys

os.environ['RECORD_STORE_BACKEND'] = 'memory'
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-east-1')

# Add src to path for import
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import pytest

from backoffice.config import config
from backoffice.memory_store import create_memory_store


@pytest.fixture
def store():
    """Empty memory store with every table registered."""
    return create_memory_store()


@pytest.fixture
def make_wallet(store):
    def _make(executant_id='exec-1', balance_cents=10000, **fields):
        item = {
            'executant_id': executant_id,
            'wallet_id': f'wallet-{executant_id}',
            'balance_cents': balance_cents,
            'pending_cents': 0,
            'total_earned_cents': 0,
            'currency_code': 'XOF',
        }
        item.update(fields)
        store.put(config.EXECUTANT_WALLETS_TABLE, item)
        return item
    return _make


@pytest.fixture
def make_withdrawal(store):
    def _make(withdrawal_id='wd-1', executant_id='exec-1', amount_cents=3500, status='pending', **fields):
        item = {
            'withdrawal_id': withdrawal_id,
            'executant_id': executant_id,
            'amount_cents': amount_cents,
            'status': status,
            'payment_method': 'mobile_money',
            'payment_details': {'provider': 'mtn_momo', 'mobile_money_number': '+22997000000'},
            'requested_at': '2026-01-10T08:00:00+00:00',
        }
        item.update(fields)
        store.put(config.WITHDRAWALS_TABLE, item)
        return item
    return _make


@pytest.fixture
def make_execution(store):
    def _make(execution_id='ex-1', task_id='task-1', executant_id='exec-1', status='submitted', **fields):
        item = {
            'execution_id': execution_id,
            'task_id': task_id,
            'executant_id': executant_id,
            'status': status,
            'reward_cents': 2000,
            'bonus_cents': 0,
            'assigned_at': '2026-01-10T07:00:00+00:00',
            'submitted_at': '2026-01-10T08:00:00+00:00',
        }
        item.update(fields)
        store.put(config.TASK_EXECUTIONS_TABLE, item)
        return item
    return _make


@pytest.fixture
def make_profile(store):
    def _make(user_id='exec-1', first_name='Awa', last_name='Kone', **fields):
        item = {
            'id': user_id,
            'first_name': first_name,
            'last_name': last_name,
            'email': f'{user_id}@example.com',
            'phone': '+22997000000',
            'email_verified': True,
        }
        item.update(fields)
        store.put(config.USER_PROFILES_TABLE, item)
        return item
    return _make


@pytest.fixture
def make_task(store):
    def _make(task_id='task-1', title='Follow our page', task_type='social_follow', **fields):
        item = {'task_id': task_id, 'title': title, 'task_type': task_type, 'client_id': 'client-1'}
        item.update(fields)
        store.put(config.TASKS_TABLE, item)
        return item
    return _make
