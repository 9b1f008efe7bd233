"""
Reject Execution Handler.
POST /admin/executions/{executionId}/reject
"""
from backoffice.auth import get_source_ip, get_user_agent, get_user_sub, is_admin
from backoffice.logging import logger, log_event
from backoffice.utils import format_response, get_path_param, get_str_field, parse_body
from backoffice.validation import ValidationService

service = ValidationService()


def handler(event, context):
    """
    POST /admin/executions/{executionId}/reject
    Body: { "rejectionReason": "...", "reviewNotes": "Optional notes" }
    """
    log_event(event)

    if not is_admin(event):
        return format_response(403, {'error': 'Admin access required'})

    try:
        execution_id = get_path_param(event, 'executionId')
        if not execution_id:
            return format_response(400, {'error': 'Missing executionId'})

        body = parse_body(event)
        try:
            rejection_reason = get_str_field(body, 'rejectionReason')
            review_notes = get_str_field(body, 'reviewNotes')
        except ValueError as e:
            return format_response(400, {'error': str(e)})

        if not rejection_reason:
            return format_response(400, {'error': 'Missing rejectionReason'})

        result = service.reject_execution(
            execution_id,
            rejection_reason,
            review_notes=review_notes or None,
            reviewer_id=get_user_sub(event),
            ip_address=get_source_ip(event),
            user_agent=get_user_agent(event),
        )

        if not result['success']:
            return format_response(400, {'error': result['error']})

        return format_response(200, {'success': True})

    except Exception as e:
        logger.error(f"Error rejecting execution: {e}")
        return format_response(500, {'error': str(e)})
