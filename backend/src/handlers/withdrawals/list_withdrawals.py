"""
List Withdrawals Handler.
GET /admin/withdrawals
"""
from backoffice.auth import is_admin
from backoffice.config import config
from backoffice.logging import logger, log_event
from backoffice.utils import format_response, get_int_query_param, get_query_param
from backoffice.withdrawals import WithdrawalService

service = WithdrawalService()


def handler(event, context):
    """
    GET /admin/withdrawals?status=pending&paymentMethod=mobile_money&search=PAWA
        &mobileMoneyProvider=mtn_momo&dateFrom=...&dateTo=...
        &sortBy=date|amount|status&sortOrder=asc|desc&page=1&limit=20
    """
    log_event(event)

    if not is_admin(event):
        return format_response(403, {'error': 'Admin access required'})

    try:
        result = service.list_withdrawals(
            search=get_query_param(event, 'search', ''),
            status=get_query_param(event, 'status', 'all'),
            payment_method=get_query_param(event, 'paymentMethod', 'all'),
            mobile_money_provider=get_query_param(event, 'mobileMoneyProvider', 'all'),
            date_from=get_query_param(event, 'dateFrom'),
            date_to=get_query_param(event, 'dateTo'),
            sort_by=get_query_param(event, 'sortBy', 'date'),
            sort_order=get_query_param(event, 'sortOrder', 'desc'),
            page=get_int_query_param(event, 'page', 1),
            limit=get_int_query_param(event, 'limit', config.DEFAULT_PAGE_SIZE),
        )
        return format_response(200, result)

    except Exception as e:
        logger.error(f"Error listing withdrawals: {e}")
        return format_response(500, {'error': str(e)})
