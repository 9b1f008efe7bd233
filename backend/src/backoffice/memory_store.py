"""
In-process record store.
Keeps every table in a dict keyed by the record's key attributes; used for
local runs (RECORD_STORE_BACKEND=memory) and the test suite.
"""
import copy
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import config
from .logging import logger
from .store import (
    Condition, ConditionFailedError, RecordNotFoundError, Update, apply_query,
)


def _key_of(key: Dict[str, Any]) -> Tuple:
    return tuple(sorted(key.items()))


class MemoryStore:
    """Dict-backed RecordStore; every read returns a copy."""

    def __init__(self):
        self._tables: Dict[str, Dict[Tuple, Dict[str, Any]]] = {}
        self._key_names: Dict[str, Tuple[str, ...]] = {}
        self._lock = threading.Lock()

    def register_table(self, table: str, *key_names: str) -> None:
        """Declare the key attributes of a table so put() can index rows."""
        self._key_names[table] = key_names
        self._tables.setdefault(table, {})

    def _table(self, table: str) -> Dict[Tuple, Dict[str, Any]]:
        return self._tables.setdefault(table, {})

    def get(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        item = self._table(table).get(_key_of(key))
        return copy.deepcopy(item) if item is not None else None

    def put(self, table: str, item: Dict[str, Any]) -> None:
        key_names = self._key_names.get(table)
        if not key_names:
            raise ValueError(f"Table {table} has no registered key")
        key = {name: item[name] for name in key_names}
        with self._lock:
            self._table(table)[_key_of(key)] = copy.deepcopy(item)

    def query(
        self,
        table: str,
        conditions: Sequence[Condition] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        rows = apply_query(
            self._table(table).values(), conditions, order_by, descending, offset, limit
        )
        return copy.deepcopy(rows)

    def count(self, table: str, conditions: Sequence[Condition] = ()) -> int:
        return len(apply_query(self._table(table).values(), conditions))

    def update(
        self,
        table: str,
        key: Dict[str, Any],
        fields: Dict[str, Any],
        conditions: Sequence[Condition] = (),
    ) -> Dict[str, Any]:
        with self._lock:
            item = self._table(table).get(_key_of(key))
            if item is None:
                raise RecordNotFoundError(table, key)
            if not all(c.matches(item) for c in conditions):
                raise ConditionFailedError(f"Conditional update failed on {table}: {key}")
            self._apply(item, fields, {})
            return copy.deepcopy(item)

    def update_many(
        self,
        table: str,
        key_name: str,
        key_values: Sequence[Any],
        fields: Dict[str, Any],
    ) -> int:
        if len(key_values) > config.MAX_TRANSACTION_ITEMS:
            raise ValueError(
                f"Cannot update {len(key_values)} items atomically (maximum {config.MAX_TRANSACTION_ITEMS})"
            )
        updates = [Update(table, {key_name: value}, dict(fields)) for value in key_values]
        self.transact(updates)
        return len(updates)

    def transact(self, updates: Sequence[Update]) -> None:
        with self._lock:
            # Check every operation before touching anything
            for index, op in enumerate(updates):
                item = self._table(op.table).get(_key_of(op.key))
                if item is None:
                    raise ConditionFailedError(
                        f"Transaction cancelled: {op.key} missing from {op.table}", index
                    )
                if not all(c.matches(item) for c in op.conditions):
                    raise ConditionFailedError(
                        f"Transaction cancelled: condition failed on {op.table} {op.key}", index
                    )

            for op in updates:
                item = self._table(op.table)[_key_of(op.key)]
                self._apply(item, op.fields, op.increments)

        logger.debug(f"Applied transaction of {len(updates)} updates")

    @staticmethod
    def _apply(item: Dict[str, Any], fields: Dict[str, Any], increments: Dict[str, int]) -> None:
        for name, value in fields.items():
            if value is None:
                item.pop(name, None)
            else:
                item[name] = copy.deepcopy(value)
        for name, delta in increments.items():
            item[name] = item.get(name, 0) + delta


def create_memory_store() -> MemoryStore:
    """MemoryStore with every back-office table registered."""
    store = MemoryStore()
    store.register_table(config.WITHDRAWALS_TABLE, 'withdrawal_id')
    store.register_table(config.TASK_EXECUTIONS_TABLE, 'execution_id')
    store.register_table(config.EXECUTANT_WALLETS_TABLE, 'executant_id')
    store.register_table(config.TASKS_TABLE, 'task_id')
    store.register_table(config.USER_PROFILES_TABLE, 'id')
    store.register_table(config.ADMIN_LOGS_TABLE, 'id')
    return store


default_store = create_memory_store()
