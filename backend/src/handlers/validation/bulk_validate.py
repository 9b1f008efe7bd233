"""
Bulk Validation Handler - approve or reject many executions in one write.
POST /admin/executions/bulk
"""
from backoffice.auth import get_user_sub, is_admin
from backoffice.logging import logger, log_event
from backoffice.config import config
from backoffice.utils import format_response, get_str_field, parse_body
from backoffice.validation import ValidationService

service = ValidationService()


def handler(event, context):
    """
    POST /admin/executions/bulk
    Body: {
        "executionIds": ["...", "..."],
        "action": "approve" | "reject",
        "rejectionReason": "..."   # required for reject, shared by the whole batch
    }
    """
    log_event(event)

    if not is_admin(event):
        return format_response(403, {'error': 'Admin access required'})

    try:
        body = parse_body(event)
        execution_ids = body.get('executionIds')
        action = body.get('action')
        try:
            rejection_reason = get_str_field(body, 'rejectionReason')
        except ValueError as e:
            return format_response(400, {'error': str(e)})

        # Validation
        if not isinstance(execution_ids, list) or not execution_ids:
            return format_response(400, {'error': 'executionIds must be a non-empty list'})

        if not all(isinstance(i, str) and i for i in execution_ids):
            return format_response(400, {'error': 'executionIds must contain non-empty strings'})

        # Repeated ids count once; the whole batch must fit one transaction
        execution_ids = list(dict.fromkeys(execution_ids))
        if len(execution_ids) > config.MAX_TRANSACTION_ITEMS:
            return format_response(400, {
                'error': f"At most {config.MAX_TRANSACTION_ITEMS} executionIds per request"
            })

        if action not in ['approve', 'reject']:
            return format_response(400, {'error': 'Invalid action. Must be approve or reject'})

        if action == 'reject' and not rejection_reason:
            return format_response(400, {'error': 'Missing rejectionReason'})

        reviewer_id = get_user_sub(event)
        if action == 'approve':
            result = service.bulk_approve(execution_ids, reviewer_id=reviewer_id)
        else:
            result = service.bulk_reject(execution_ids, rejection_reason, reviewer_id=reviewer_id)

        if not result['success']:
            return format_response(400, {'error': result['error']})

        return format_response(200, {'success': True, 'count': result['count']})

    except Exception as e:
        logger.error(f"Error in bulk validation: {e}")
        return format_response(500, {'error': str(e)})
