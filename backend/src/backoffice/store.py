"""
Record store abstraction for the back-office services.

Services only talk to a RecordStore; the concrete backend is chosen by the
RECORD_STORE_BACKEND environment variable:

    RECORD_STORE_BACKEND=dynamodb  # boto3 DynamoDB tables (deployed stages)
    RECORD_STORE_BACKEND=memory    # in-process dicts (local runs, tests)

Filters are expressed as Condition objects so that each backend can translate
them (DynamoDB filter expressions) or evaluate them directly (memory).
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from .config import config


class StoreError(Exception):
    """Base class for record store failures."""


class RecordNotFoundError(StoreError):
    """Raised when updating a key that does not exist."""

    def __init__(self, table: str, key: Dict[str, Any]):
        self.table = table
        self.key = key
        super().__init__(f"Record not found in {table}: {key}")


class ConditionFailedError(StoreError):
    """
    Raised when a conditional write or a transaction check fails.
    `index` is the position of the failing operation inside a transaction.
    """

    def __init__(self, message: str, index: Optional[int] = None):
        self.index = index
        super().__init__(message)


_MISSING = object()


def get_path(item: Dict[str, Any], path: str) -> Any:
    """Resolve a dotted attribute path ('payment_details.provider')."""
    value: Any = item
    for part in path.split('.'):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


@dataclass(frozen=True)
class Condition:
    """A single predicate on a record attribute."""
    field: str
    op: str
    value: Any = None

    @property
    def server_side(self) -> bool:
        """Whether DynamoDB can evaluate this predicate in a filter expression."""
        if self.op == 'any':
            return all(c.server_side for c in self.value)
        return self.op in ('eq', 'ne', 'gte', 'lte', 'in', 'exists', 'not_exists')

    def matches(self, item: Dict[str, Any]) -> bool:
        if self.op == 'any':
            return any(c.matches(item) for c in self.value)

        current = get_path(item, self.field)
        present = current is not _MISSING and current is not None

        if self.op == 'exists':
            return present
        if self.op == 'not_exists':
            return not present
        if self.op == 'ne':
            return not present or current != self.value
        if not present:
            return False
        if self.op == 'eq':
            return current == self.value
        if self.op == 'gte':
            return current >= self.value
        if self.op == 'lte':
            return current <= self.value
        if self.op == 'in':
            return current in self.value
        if self.op == 'ilike':
            return str(self.value).lower() in str(current).lower()
        raise ValueError(f"Unknown condition operator: {self.op}")


def eq(field_name: str, value: Any) -> Condition:
    return Condition(field_name, 'eq', value)


def ne(field_name: str, value: Any) -> Condition:
    return Condition(field_name, 'ne', value)


def gte(field_name: str, value: Any) -> Condition:
    return Condition(field_name, 'gte', value)


def lte(field_name: str, value: Any) -> Condition:
    return Condition(field_name, 'lte', value)


def is_in(field_name: str, values: Iterable[Any]) -> Condition:
    return Condition(field_name, 'in', tuple(values))


def exists(field_name: str) -> Condition:
    return Condition(field_name, 'exists')


def not_exists(field_name: str) -> Condition:
    return Condition(field_name, 'not_exists')


def ilike(field_name: str, needle: str) -> Condition:
    """Case-insensitive substring match."""
    return Condition(field_name, 'ilike', needle)


def any_of(*conditions: Condition) -> Condition:
    """OR-group of conditions."""
    return Condition('', 'any', tuple(conditions))


@dataclass
class Update:
    """
    One write inside a transaction.
    `fields` are assigned (None removes the attribute), `increments` are
    added atomically to numeric attributes.
    """
    table: str
    key: Dict[str, Any]
    fields: Dict[str, Any] = field(default_factory=dict)
    increments: Dict[str, int] = field(default_factory=dict)
    conditions: List[Condition] = field(default_factory=list)


class RecordStore(Protocol):
    """Operations every backend provides."""

    def get(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    def put(self, table: str, item: Dict[str, Any]) -> None:
        ...

    def query(
        self,
        table: str,
        conditions: Sequence[Condition] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        ...

    def count(self, table: str, conditions: Sequence[Condition] = ()) -> int:
        ...

    def update(
        self,
        table: str,
        key: Dict[str, Any],
        fields: Dict[str, Any],
        conditions: Sequence[Condition] = (),
    ) -> Dict[str, Any]:
        """Update an existing row; raises RecordNotFoundError if absent."""
        ...

    def update_many(
        self,
        table: str,
        key_name: str,
        key_values: Sequence[Any],
        fields: Dict[str, Any],
    ) -> int:
        """Apply the same fields to every key in one transaction; ValueError past MAX_TRANSACTION_ITEMS."""
        ...

    def transact(self, updates: Sequence[Update]) -> None:
        """Apply all updates or none."""
        ...


def sort_items(
    items: List[Dict[str, Any]],
    order_by: Optional[str],
    descending: bool = False,
) -> List[Dict[str, Any]]:
    """Sort on an attribute; rows missing it always go last."""
    if not order_by:
        return items
    present = [i for i in items if get_path(i, order_by) not in (_MISSING, None)]
    missing = [i for i in items if get_path(i, order_by) in (_MISSING, None)]
    present.sort(key=lambda i: get_path(i, order_by), reverse=descending)
    return present + missing


def apply_query(
    items: Iterable[Dict[str, Any]],
    conditions: Sequence[Condition] = (),
    order_by: Optional[str] = None,
    descending: bool = False,
    offset: int = 0,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Filter, sort and slice already-fetched rows."""
    matched = [i for i in items if all(c.matches(i) for c in conditions)]
    matched = sort_items(matched, order_by, descending)
    end = offset + limit if limit is not None else None
    return matched[offset:end]


def get_store() -> RecordStore:
    """Get the configured record store based on RECORD_STORE_BACKEND."""
    backend = config.RECORD_STORE_BACKEND

    if backend == 'dynamodb':
        from .dynamo import DynamoStore
        return DynamoStore()
    elif backend == 'memory':
        from .memory_store import default_store
        return default_store
    else:
        raise ValueError(f"Unknown RECORD_STORE_BACKEND: {backend}")
