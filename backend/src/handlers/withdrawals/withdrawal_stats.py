"""
Withdrawal Stats Handler.
GET /admin/withdrawals/stats
"""
from backoffice.auth import is_admin
from backoffice.logging import logger, log_event
from backoffice.utils import format_response, get_query_param
from backoffice.withdrawals import WithdrawalService

service = WithdrawalService()


def handler(event, context):
    """
    GET /admin/withdrawals/stats?dateFrom=...&dateTo=...&paymentMethod=...
    """
    log_event(event)

    if not is_admin(event):
        return format_response(403, {'error': 'Admin access required'})

    try:
        stats = service.get_stats(
            date_from=get_query_param(event, 'dateFrom'),
            date_to=get_query_param(event, 'dateTo'),
            payment_method=get_query_param(event, 'paymentMethod'),
        )
        return format_response(200, stats)

    except Exception as e:
        logger.error(f"Error getting withdrawal stats: {e}")
        return format_response(500, {'error': str(e)})
