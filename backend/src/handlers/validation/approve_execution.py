"""
Approve Execution Handler.
POST /admin/executions/{executionId}/approve
"""
from backoffice.auth import get_source_ip, get_user_agent, get_user_sub, is_admin
from backoffice.logging import logger, log_event
from backoffice.utils import format_response, get_path_param, get_str_field, parse_body
from backoffice.validation import ValidationService

service = ValidationService()


def is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def handler(event, context):
    """
    POST /admin/executions/{executionId}/approve
    Body: { "rating": 1-5, "bonusCents": 500, "reviewNotes": "..." }  (all optional)
    """
    log_event(event)

    if not is_admin(event):
        return format_response(403, {'error': 'Admin access required'})

    try:
        execution_id = get_path_param(event, 'executionId')
        if not execution_id:
            return format_response(400, {'error': 'Missing executionId'})

        body = parse_body(event)
        rating = body.get('rating')
        bonus_cents = body.get('bonusCents')

        # Validation
        if rating is not None and (not is_int(rating) or not 1 <= rating <= 5):
            return format_response(400, {'error': 'Rating must be an integer between 1 and 5'})

        if bonus_cents is not None and (not is_int(bonus_cents) or bonus_cents < 0):
            return format_response(400, {'error': 'bonusCents must be a non-negative integer'})

        try:
            review_notes = get_str_field(body, 'reviewNotes')
        except ValueError as e:
            return format_response(400, {'error': str(e)})

        result = service.approve_execution(
            execution_id,
            rating=rating,
            bonus_cents=bonus_cents,
            review_notes=review_notes or None,
            reviewer_id=get_user_sub(event),
            ip_address=get_source_ip(event),
            user_agent=get_user_agent(event),
        )

        if not result['success']:
            return format_response(400, {'error': result['error']})

        return format_response(200, {'success': True})

    except Exception as e:
        logger.error(f"Error approving execution: {e}")
        return format_response(500, {'error': str(e)})
