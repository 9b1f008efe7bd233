"""
Logging for the back-office handlers and services.
Everything goes through the 'backoffice' logger; the level comes from LOG_LEVEL.
"""
import logging
import json

from .config import config

logger = logging.getLogger('backoffice')
logger.setLevel(config.LOG_LEVEL)

# Lambda reuses the interpreter between invocations
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(handler)

# Fields of a proxy event worth keeping; body and headers carry payment details and tokens
EVENT_FIELDS = ('httpMethod', 'resource', 'path', 'pathParameters', 'queryStringParameters')


def log_event(event: dict) -> None:
    """Log the route of an incoming admin request along with the caller's sub."""
    try:
        summary = {k: event.get(k) for k in EVENT_FIELDS if event.get(k) is not None}
        context = event.get('requestContext') or {}
        summary['requestId'] = context.get('requestId')
        summary['adminSub'] = ((context.get('authorizer') or {}).get('claims') or {}).get('sub')
        logger.info(f"Admin request: {json.dumps(summary, default=str)}")
    except Exception as e:
        logger.warning(f"Could not log event: {e}")
