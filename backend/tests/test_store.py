"""
Tests for record store conditions and the in-memory backend.
"""
import pytest
from unittest.mock import patch

from backoffice import store as store_module
from backoffice.memory_store import MemoryStore, default_store
from backoffice.store import (
    ConditionFailedError, RecordNotFoundError, Update,
    any_of, apply_query, eq, exists, gte, ilike, is_in, lte, ne, not_exists, sort_items,
)


class TestConditions:

    ITEM = {
        'status': 'pending',
        'amount_cents': 3500,
        'payment_details': {'provider': 'mtn_momo'},
        'rejection_reason': None,
    }

    def test_comparisons(self):
        assert eq('status', 'pending').matches(self.ITEM)
        assert not eq('status', 'approved').matches(self.ITEM)
        assert gte('amount_cents', 3500).matches(self.ITEM)
        assert not gte('amount_cents', 3501).matches(self.ITEM)
        assert lte('amount_cents', 3500).matches(self.ITEM)
        assert is_in('status', ['pending', 'approved']).matches(self.ITEM)

    def test_ne_matches_missing_attribute(self):
        assert ne('status', 'approved').matches(self.ITEM)
        assert not ne('status', 'pending').matches(self.ITEM)
        assert ne('external_transaction_id', 'TX-1').matches(self.ITEM)

    def test_exists_treats_none_as_missing(self):
        assert exists('status').matches(self.ITEM)
        assert not exists('rejection_reason').matches(self.ITEM)
        assert not_exists('rejection_reason').matches(self.ITEM)
        assert not_exists('completed_at').matches(self.ITEM)

    def test_comparison_on_missing_attribute_is_false(self):
        assert not gte('balance_cents', 0).matches(self.ITEM)
        assert not eq('completed_at', None).matches(self.ITEM)

    def test_dotted_path(self):
        assert eq('payment_details.provider', 'mtn_momo').matches(self.ITEM)
        assert not eq('payment_details.bank_name', 'BOA').matches(self.ITEM)

    def test_ilike_and_any(self):
        assert ilike('payment_details.provider', 'MTN').matches(self.ITEM)
        assert any_of(eq('status', 'approved'), ilike('status', 'pend')).matches(self.ITEM)
        assert not any_of(eq('status', 'approved'), ilike('rejection_reason', 'x')).matches(self.ITEM)

    def test_server_side(self):
        assert eq('status', 'pending').server_side
        assert not ilike('status', 'pend').server_side
        assert not any_of(eq('status', 'a'), ilike('status', 'b')).server_side


class TestSorting:

    def test_missing_values_sort_last(self):
        items = [{'id': 1, 'at': 'b'}, {'id': 2}, {'id': 3, 'at': 'a'}, {'id': 4, 'at': None}]

        assert [i['id'] for i in sort_items(items, 'at')] == [3, 1, 2, 4]
        assert [i['id'] for i in sort_items(items, 'at', descending=True)] == [1, 3, 2, 4]

    def test_apply_query_slices_after_sort(self):
        items = [{'n': n, 'even': n % 2 == 0} for n in range(10)]

        result = apply_query(items, [eq('even', True)], 'n', True, offset=1, limit=2)

        assert [i['n'] for i in result] == [6, 4]


class TestMemoryStore:

    @pytest.fixture
    def memory(self):
        memory = MemoryStore()
        memory.register_table('wallets', 'executant_id')
        memory.put('wallets', {'executant_id': 'a', 'balance_cents': 100})
        memory.put('wallets', {'executant_id': 'b', 'balance_cents': 50})
        return memory

    def test_reads_are_copies(self, memory):
        row = memory.get('wallets', {'executant_id': 'a'})
        row['balance_cents'] = 0

        assert memory.get('wallets', {'executant_id': 'a'})['balance_cents'] == 100

    def test_put_requires_registered_table(self, memory):
        with pytest.raises(ValueError):
            memory.put('unknown', {'id': 1})

    def test_update_missing_row(self, memory):
        with pytest.raises(RecordNotFoundError):
            memory.update('wallets', {'executant_id': 'zz'}, {'balance_cents': 1})

    def test_update_condition(self, memory):
        with pytest.raises(ConditionFailedError):
            memory.update('wallets', {'executant_id': 'a'}, {'balance_cents': 1}, [gte('balance_cents', 500)])

        updated = memory.update('wallets', {'executant_id': 'a'}, {'note': 'x', 'balance_cents': None})

        assert updated == {'executant_id': 'a', 'note': 'x'}

    def test_transact_applies_all(self, memory):
        memory.transact([
            Update('wallets', {'executant_id': 'a'}, increments={'balance_cents': -30}),
            Update('wallets', {'executant_id': 'b'}, fields={'frozen': True}, increments={'balance_cents': 30}),
        ])

        assert memory.get('wallets', {'executant_id': 'a'})['balance_cents'] == 70
        assert memory.get('wallets', {'executant_id': 'b'}) == {
            'executant_id': 'b', 'balance_cents': 80, 'frozen': True,
        }

    def test_transact_is_all_or_nothing(self, memory):
        with pytest.raises(ConditionFailedError) as exc_info:
            memory.transact([
                Update('wallets', {'executant_id': 'a'}, increments={'balance_cents': -30}),
                Update(
                    'wallets', {'executant_id': 'b'},
                    increments={'balance_cents': -80},
                    conditions=[gte('balance_cents', 80)],
                ),
            ])

        assert exc_info.value.index == 1
        assert memory.get('wallets', {'executant_id': 'a'})['balance_cents'] == 100
        assert memory.get('wallets', {'executant_id': 'b'})['balance_cents'] == 50

    def test_transact_missing_row(self, memory):
        with pytest.raises(ConditionFailedError) as exc_info:
            memory.transact([Update('wallets', {'executant_id': 'zz'}, fields={'x': 1})])

        assert exc_info.value.index == 0

    def test_update_many_counts_and_query(self, memory):
        assert memory.update_many('wallets', 'executant_id', ['a', 'b'], {'frozen': True}) == 2
        assert memory.count('wallets', [eq('frozen', True)]) == 2
        assert [r['executant_id'] for r in memory.query('wallets', order_by='balance_cents')] == ['b', 'a']

    def test_update_many_refuses_oversized_batch(self, memory):
        with patch.object(store_module.config, 'MAX_TRANSACTION_ITEMS', 1):
            with pytest.raises(ValueError):
                memory.update_many('wallets', 'executant_id', ['a', 'b'], {'frozen': True})

        assert memory.count('wallets', [eq('frozen', True)]) == 0


class TestGetStore:

    def test_memory_backend(self):
        with patch.object(store_module.config, 'RECORD_STORE_BACKEND', 'memory'):
            assert store_module.get_store() is default_store

    def test_dynamodb_backend(self):
        from backoffice.dynamo import DynamoStore

        with patch.object(store_module.config, 'RECORD_STORE_BACKEND', 'dynamodb'):
            assert isinstance(store_module.get_store(), DynamoStore)

    def test_unknown_backend(self):
        with patch.object(store_module.config, 'RECORD_STORE_BACKEND', 'redis'):
            with pytest.raises(ValueError):
                store_module.get_store()
