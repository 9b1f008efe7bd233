"""
Caller identity for admin requests.
Identity comes from the Cognito authorizer claims; IP and user agent from the
request headers and are only used for the admin log.
"""
from typing import Optional

ADMIN_GROUP = 'admin'


def get_claims(event: dict) -> dict:
    """Cognito claims of the proxy event, or an empty dict when unauthenticated."""
    try:
        return event['requestContext']['authorizer']['claims'] or {}
    except (KeyError, TypeError):
        return {}


def get_user_sub(event: dict) -> Optional[str]:
    """Cognito sub of the calling administrator."""
    return get_claims(event).get('sub')


def get_user_groups(event: dict) -> list:
    """
    Cognito groups of the caller.
    API Gateway passes 'cognito:groups' either as a comma-separated string
    or as a list depending on the authorizer.
    """
    groups = get_claims(event).get('cognito:groups') or []
    if isinstance(groups, str):
        return [g.strip() for g in groups.split(',') if g.strip()]
    return list(groups)


def is_admin(event: dict) -> bool:
    return ADMIN_GROUP in get_user_groups(event)


def _header(event: dict, name: str) -> Optional[str]:
    headers = event.get('headers') or {}
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def get_source_ip(event: dict) -> Optional[str]:
    """
    Client IP for the admin log.
    Prefers the first X-Forwarded-For hop, then X-Real-IP, then the API Gateway source IP.
    """
    forwarded_for = _header(event, 'x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()

    real_ip = _header(event, 'x-real-ip')
    if real_ip:
        return real_ip

    try:
        return event['requestContext']['identity']['sourceIp']
    except (KeyError, TypeError):
        return None


def get_user_agent(event: dict) -> Optional[str]:
    return _header(event, 'user-agent')
