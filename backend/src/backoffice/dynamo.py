"""
DynamoDB record store.
Reads and single-row writes go through the boto3 resource; multi-row writes
use TransactWriteItems on the low-level client so they apply all-or-nothing.
"""
import boto3
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError
from .config import config
from .logging import logger
from .store import (
    Condition, ConditionFailedError, RecordNotFoundError, Update,
    apply_query, exists,
)
from .utils import from_dynamo

dynamodb = boto3.resource('dynamodb', region_name=config.AWS_REGION)
serializer = TypeSerializer()


def to_dynamo(value: Any) -> Any:
    """Convert floats to Decimal; DynamoDB rejects Python floats."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamo(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [to_dynamo(v) for v in value]
    return value


class ExpressionBuilder:
    """Accumulates placeholder names/values while rendering expressions."""

    def __init__(self):
        self.names: Dict[str, str] = {}
        self.values: Dict[str, Any] = {}

    def name(self, path: str) -> str:
        parts = []
        for part in path.split('.'):
            placeholder = f'#n{len(self.names)}'
            self.names[placeholder] = part
            parts.append(placeholder)
        return '.'.join(parts)

    def value(self, value: Any) -> str:
        placeholder = f':v{len(self.values)}'
        self.values[placeholder] = to_dynamo(value)
        return placeholder

    def condition(self, cond: Condition) -> str:
        if cond.op == 'any':
            return '(' + ' OR '.join(self.condition(c) for c in cond.value) + ')'

        n = self.name(cond.field)
        if cond.op == 'eq':
            return f'{n} = {self.value(cond.value)}'
        if cond.op == 'ne':
            return f'(attribute_not_exists({n}) OR {n} <> {self.value(cond.value)})'
        if cond.op == 'gte':
            return f'{n} >= {self.value(cond.value)}'
        if cond.op == 'lte':
            return f'{n} <= {self.value(cond.value)}'
        if cond.op == 'in':
            placeholders = ', '.join(self.value(v) for v in cond.value)
            return f'{n} IN ({placeholders})'
        if cond.op == 'exists':
            return f'attribute_exists({n})'
        if cond.op == 'not_exists':
            return f'attribute_not_exists({n})'
        raise ValueError(f"Operator {cond.op} cannot be evaluated by DynamoDB")

    def conditions(self, conds: Sequence[Condition]) -> Optional[str]:
        if not conds:
            return None
        return ' AND '.join(self.condition(c) for c in conds)

    def update(self, fields: Dict[str, Any], increments: Dict[str, int]) -> str:
        sets, removes, adds = [], [], []
        for field_name, value in fields.items():
            if value is None:
                removes.append(self.name(field_name))
            else:
                sets.append(f'{self.name(field_name)} = {self.value(value)}')
        for field_name, delta in increments.items():
            adds.append(f'{self.name(field_name)} {self.value(delta)}')

        clauses = []
        if sets:
            clauses.append('SET ' + ', '.join(sets))
        if removes:
            clauses.append('REMOVE ' + ', '.join(removes))
        if adds:
            clauses.append('ADD ' + ', '.join(adds))
        return ' '.join(clauses)

    def params(self) -> Dict[str, Any]:
        params = {}
        if self.names:
            params['ExpressionAttributeNames'] = self.names
        if self.values:
            params['ExpressionAttributeValues'] = self.values
        return params


class DynamoStore:
    """RecordStore backed by DynamoDB tables."""

    def __init__(self, resource=None):
        self.dynamodb = resource or dynamodb

    @property
    def client(self):
        # Transactions go through the resource's own low-level client
        return self.dynamodb.meta.client

    def get(self, table: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        response = self.dynamodb.Table(table).get_item(Key=key)
        item = response.get('Item')
        return from_dynamo(item) if item is not None else None

    def put(self, table: str, item: Dict[str, Any]) -> None:
        self.dynamodb.Table(table).put_item(Item=to_dynamo(item))

    def _scan(self, table: str, conditions: Sequence[Condition], select_count: bool = False):
        builder = ExpressionBuilder()
        params: Dict[str, Any] = {}
        filter_expression = builder.conditions(conditions)
        if filter_expression:
            params['FilterExpression'] = filter_expression
            params.update(builder.params())
        if select_count:
            params['Select'] = 'COUNT'

        dynamo_table = self.dynamodb.Table(table)
        while True:
            response = dynamo_table.scan(**params)
            yield response
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                break
            params['ExclusiveStartKey'] = last_key

    def query(
        self,
        table: str,
        conditions: Sequence[Condition] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        if any(c.op == 'in' and not c.value for c in conditions):
            return []

        server_side = [c for c in conditions if c.server_side]
        client_side = [c for c in conditions if not c.server_side]

        items = []
        for response in self._scan(table, server_side):
            items.extend(from_dynamo(i) for i in response.get('Items', []))

        # Scans have no ordering; sort and page after filtering
        return apply_query(items, client_side, order_by, descending, offset, limit)

    def count(self, table: str, conditions: Sequence[Condition] = ()) -> int:
        if not all(c.server_side for c in conditions):
            return len(self.query(table, conditions))
        if any(c.op == 'in' and not c.value for c in conditions):
            return 0
        return sum(response.get('Count', 0) for response in self._scan(table, conditions, select_count=True))

    def update(
        self,
        table: str,
        key: Dict[str, Any],
        fields: Dict[str, Any],
        conditions: Sequence[Condition] = (),
    ) -> Dict[str, Any]:
        builder = ExpressionBuilder()
        update_expression = builder.update(fields, {})
        # Without attribute_exists UpdateItem would silently create the row
        condition_expression = builder.conditions(
            [exists(name) for name in key] + list(conditions)
        )

        try:
            response = self.dynamodb.Table(table).update_item(
                Key=key,
                UpdateExpression=update_expression,
                ConditionExpression=condition_expression,
                ReturnValues='ALL_NEW',
                **builder.params()
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                if self.get(table, key) is None:
                    raise RecordNotFoundError(table, key)
                raise ConditionFailedError(f"Conditional update failed on {table}: {key}")
            logger.error(f"Error updating item in {table}: {e}")
            raise

        return from_dynamo(response.get('Attributes', {}))

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

        logger.info(f"Updated {len(updates)} items in {table}")
        return len(updates)

    def _transact_item(self, op: Update) -> Dict[str, Any]:
        builder = ExpressionBuilder()
        update_expression = builder.update(op.fields, op.increments)
        condition_expression = builder.conditions(
            [exists(name) for name in op.key] + list(op.conditions)
        )

        item = {
            'TableName': op.table,
            'Key': {k: serializer.serialize(to_dynamo(v)) for k, v in op.key.items()},
            'UpdateExpression': update_expression,
            'ConditionExpression': condition_expression,
        }
        params = builder.params()
        if 'ExpressionAttributeNames' in params:
            item['ExpressionAttributeNames'] = params['ExpressionAttributeNames']
        if 'ExpressionAttributeValues' in params:
            item['ExpressionAttributeValues'] = {
                k: serializer.serialize(v) for k, v in params['ExpressionAttributeValues'].items()
            }
        return {'Update': item}

    def transact(self, updates: Sequence[Update]) -> None:
        if not updates:
            return

        try:
            self.client.transact_write_items(
                TransactItems=[self._transact_item(op) for op in updates]
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'TransactionCanceledException':
                reasons = e.response.get('CancellationReasons', [])
                index = next(
                    (i for i, r in enumerate(reasons) if r.get('Code') not in (None, 'None')),
                    None
                )
                raise ConditionFailedError(f"Transaction cancelled: {reasons}", index)
            logger.error(f"Error executing transaction: {e}")
            raise
