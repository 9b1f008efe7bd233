"""
Process Withdrawal Handler - approve, reject or hold a payout request.
POST /admin/withdrawals/{withdrawalId}/process
"""
from backoffice.auth import get_source_ip, get_user_agent, get_user_sub, is_admin
from backoffice.logging import logger, log_event
from backoffice.models import WithdrawalAction
from backoffice.utils import format_response, get_path_param, get_str_field, parse_body
from backoffice.withdrawals import WithdrawalService

service = WithdrawalService()


def handler(event, context):
    """
    POST /admin/withdrawals/{withdrawalId}/process
    Body: {
        "action": "approve" | "reject" | "hold",
        "externalTransactionId": "PAWA-123456789",   # required for approve
        "rejectionReason": "...",                    # required for reject
        "notes": "Optional notes"
    }
    """
    log_event(event)

    if not is_admin(event):
        return format_response(403, {'error': 'Admin access required'})

    try:
        withdrawal_id = get_path_param(event, 'withdrawalId')
        if not withdrawal_id:
            return format_response(400, {'error': 'Missing withdrawalId'})

        body = parse_body(event)
        action = body.get('action')
        try:
            external_transaction_id = get_str_field(body, 'externalTransactionId')
            rejection_reason = get_str_field(body, 'rejectionReason')
            notes = get_str_field(body, 'notes')
        except ValueError as e:
            return format_response(400, {'error': str(e)})

        # Validation
        if action not in WithdrawalAction.ALL:
            return format_response(400, {'error': 'Invalid action. Must be approve, reject or hold'})

        if action == WithdrawalAction.APPROVE and not external_transaction_id:
            return format_response(400, {'error': 'Missing externalTransactionId'})

        if action == WithdrawalAction.REJECT and not rejection_reason:
            return format_response(400, {'error': 'Missing rejectionReason'})

        result = service.process_withdrawal(
            withdrawal_id,
            action,
            processor_id=get_user_sub(event),
            external_transaction_id=external_transaction_id or None,
            rejection_reason=rejection_reason or None,
            notes=notes or None,
            ip_address=get_source_ip(event),
            user_agent=get_user_agent(event),
        )

        if not result['success']:
            return format_response(400, {'error': result['error']})

        return format_response(200, {'success': True})

    except Exception as e:
        logger.error(f"Error processing withdrawal: {e}")
        return format_response(500, {'error': str(e)})
