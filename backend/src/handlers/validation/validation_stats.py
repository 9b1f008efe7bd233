"""
Validation Stats Handler.
GET /admin/executions/stats
"""
from backoffice.auth import is_admin
from backoffice.logging import logger, log_event
from backoffice.utils import format_response
from backoffice.validation import ValidationService

service = ValidationService()


def handler(event, context):
    log_event(event)

    if not is_admin(event):
        return format_response(403, {'error': 'Admin access required'})

    try:
        return format_response(200, service.get_stats())
    except Exception as e:
        logger.error(f"Error getting validation stats: {e}")
        return format_response(500, {'error': str(e)})
