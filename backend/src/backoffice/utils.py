"""
Request/response helpers for the admin API handlers, plus timestamp and
DynamoDB value conversions shared by the services.
"""
import base64
import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Credentials': True,
    'Access-Control-Allow-Headers': 'Content-Type,Authorization',
    'Content-Type': 'application/json; charset=utf-8',
}


class DecimalEncoder(json.JSONEncoder):
    """Serialize DynamoDB Decimals as int when whole, float otherwise."""

    def default(self, o):
        if isinstance(o, Decimal):
            return int(o) if o % 1 == 0 else float(o)
        return super().default(o)


def format_response(status_code: int, body: Any, headers: Dict[str, str] = None) -> Dict[str, Any]:
    """
    Build an API Gateway proxy response.

    Labels in admin payloads are French, so the body keeps non-ASCII
    characters as UTF-8 instead of \\u escapes.
    """
    return {
        'statusCode': status_code,
        'headers': {**CORS_HEADERS, **(headers or {})},
        'body': json.dumps(body, cls=DecimalEncoder, ensure_ascii=False),
    }


def parse_body(event: dict) -> dict:
    """
    JSON body of a proxy event, decoding base64 payloads.
    Anything unparseable yields an empty dict.
    """
    body = event.get('body')
    if not body:
        return {}
    if isinstance(body, dict):
        return body
    try:
        if event.get('isBase64Encoded'):
            body = base64.b64decode(body).decode('utf-8')
        parsed = json.loads(body)
    except (ValueError, TypeError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def get_str_field(body: dict, name: str) -> str:
    """
    Stripped string field of a JSON body, '' when absent or null.
    Raises ValueError when the field holds another JSON type.
    """
    value = body.get(name)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string")
    return value.strip()


def _event_params(event: dict, section: str) -> dict:
    params = event.get(section) if isinstance(event, dict) else None
    return params or {}


def get_path_param(event: dict, param_name: str) -> Optional[str]:
    return _event_params(event, 'pathParameters').get(param_name)


def get_query_param(event: dict, param_name: str, default: str = None) -> Optional[str]:
    return _event_params(event, 'queryStringParameters').get(param_name, default)


def get_int_query_param(event: dict, param_name: str, default: int) -> int:
    """Extract a positive integer query parameter, falling back to default."""
    raw = get_query_param(event, param_name)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return utc_now().isoformat()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp, accepting a trailing 'Z'.
    Naive values are assumed to be UTC.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def from_dynamo(value: Any) -> Any:
    """Recursively convert DynamoDB Decimals to int/float."""
    if isinstance(value, Decimal):
        if value % 1 == 0:
            return int(value)
        return float(value)
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [from_dynamo(v) for v in value]
    if isinstance(value, set):
        return {from_dynamo(v) for v in value}
    return value
