"""
Display formatting for admin API payloads.
Amounts are stored in cents and rendered in FCFA; labels are French.
"""
from datetime import datetime
from typing import Optional

from .models import TaskType, WithdrawalStatus
from .utils import parse_timestamp, utc_now

# fr-FR digit grouping uses a narrow no-break space
THOUSANDS_SEPARATOR = '\u202f'

TASK_TYPE_LABELS = {
    TaskType.SOCIAL_FOLLOW: 'Abonnement',
    TaskType.SOCIAL_LIKE: 'Like',
    TaskType.SOCIAL_SHARE: 'Partage',
    TaskType.SOCIAL_COMMENT: 'Commentaire',
    TaskType.APP_DOWNLOAD: 'Téléchargement',
    TaskType.WEBSITE_VISIT: 'Visite',
    TaskType.SURVEY: 'Sondage',
    TaskType.REVIEW: 'Avis',
}

WITHDRAWAL_STATUS_LABELS = {
    WithdrawalStatus.PENDING: 'En attente',
    WithdrawalStatus.APPROVED: 'Approuvé',
    WithdrawalStatus.REJECTED: 'Rejeté',
    WithdrawalStatus.COMPLETED: 'Complété',
}


def format_currency(cents: int) -> str:
    """Format an amount in cents as whole FCFA, e.g. 350000 -> '3 500 FCFA'."""
    fcfa = int(cents or 0) // 100
    return f"{fcfa:,}".replace(',', THOUSANDS_SEPARATOR) + ' FCFA'


def _plural(count: int, unit: str) -> str:
    return f"Il y a {count} {unit}{'s' if count > 1 else ''}"


def format_relative_time(value: Optional[str], now: Optional[datetime] = None) -> Optional[str]:
    """
    French relative time ('Il y a 3 heures').

    Args:
        value: ISO-8601 timestamp
        now: Reference time, defaults to the current UTC time

    Returns:
        Relative time string, or None when value is empty
    """
    past = parse_timestamp(value)
    if past is None:
        return None

    now = now or utc_now()
    seconds = int((now - past).total_seconds())

    if seconds < 60:
        return "Il y a moins d'une minute"
    if seconds < 3600:
        return _plural(seconds // 60, 'minute')
    if seconds < 86400:
        return _plural(seconds // 3600, 'heure')
    return _plural(seconds // 86400, 'jour')


def format_task_type(task_type: str) -> str:
    return TASK_TYPE_LABELS.get(task_type, task_type)


def format_withdrawal_status(status: str) -> str:
    return WITHDRAWAL_STATUS_LABELS.get(status, status)
