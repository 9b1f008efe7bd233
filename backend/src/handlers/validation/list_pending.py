"""
List Pending Executions Handler.
GET /admin/executions/pending
"""
from backoffice.auth import is_admin
from backoffice.config import config
from backoffice.logging import logger, log_event
from backoffice.utils import format_response, get_int_query_param, get_query_param
from backoffice.validation import ValidationService

service = ValidationService()


def handler(event, context):
    """
    GET /admin/executions/pending?search=...&taskType=social_like&campaignId=...
        &executantId=...&sortBy=submittedDate|amount|executant&sortOrder=asc|desc
        &page=1&limit=20
    """
    log_event(event)

    if not is_admin(event):
        return format_response(403, {'error': 'Admin access required'})

    try:
        result = service.get_pending_tasks(
            search=get_query_param(event, 'search', ''),
            task_type=get_query_param(event, 'taskType', 'all'),
            campaign_id=get_query_param(event, 'campaignId'),
            executant_id=get_query_param(event, 'executantId'),
            sort_by=get_query_param(event, 'sortBy', 'submittedDate'),
            sort_order=get_query_param(event, 'sortOrder', 'desc'),
            page=get_int_query_param(event, 'page', 1),
            limit=get_int_query_param(event, 'limit', config.DEFAULT_PAGE_SIZE),
        )
        return format_response(200, result)

    except Exception as e:
        logger.error(f"Error listing pending executions: {e}")
        return format_response(500, {'error': str(e)})
