"""
Get Withdrawal Handler.
GET /admin/withdrawals/{withdrawalId}
"""
from backoffice.auth import is_admin
from backoffice.logging import logger, log_event
from backoffice.utils import format_response, get_path_param
from backoffice.withdrawals import WithdrawalService

service = WithdrawalService()


def handler(event, context):
    log_event(event)

    if not is_admin(event):
        return format_response(403, {'error': 'Admin access required'})

    try:
        withdrawal_id = get_path_param(event, 'withdrawalId')
        if not withdrawal_id:
            return format_response(400, {'error': 'Missing withdrawalId'})

        withdrawal = service.get_withdrawal(withdrawal_id)
        if not withdrawal:
            return format_response(404, {'error': 'Withdrawal not found'})

        return format_response(200, withdrawal)

    except Exception as e:
        logger.error(f"Error getting withdrawal: {e}")
        return format_response(500, {'error': str(e)})
