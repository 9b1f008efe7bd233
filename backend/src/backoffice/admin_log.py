"""
Admin activity log.
Every administrator decision is appended to the admin log table. Writing the
log is non-critical: failures are logged and never surface to the caller.
"""
import uuid
from typing import Any, Dict, Optional

from .config import config
from .logging import logger
from .models import EntityType, LogAction, WithdrawalAction
from .store import RecordStore
from .utils import utc_now_iso

WITHDRAWAL_LOG_ACTIONS = {
    WithdrawalAction.APPROVE: LogAction.WITHDRAWAL_APPROVED,
    WithdrawalAction.REJECT: LogAction.WITHDRAWAL_REJECTED,
    WithdrawalAction.HOLD: LogAction.WITHDRAWAL_HELD,
}


class AdminLogger:
    """Writes admin_logs rows through a record store."""

    def __init__(self, store: RecordStore):
        self.store = store

    def log(
        self,
        admin_id: Optional[str],
        action: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[str]:
        """
        Record an admin action.

        Returns:
            The log id, or None if the write failed
        """
        log_id = str(uuid.uuid4())
        item = {
            'id': log_id,
            'admin_id': admin_id,
            'action': action,
            'entity_type': entity_type,
            'entity_id': entity_id,
            'details': details or {},
            'ip_address': ip_address,
            'user_agent': user_agent,
            'created_at': utc_now_iso(),
        }

        try:
            self.store.put(config.ADMIN_LOGS_TABLE, {k: v for k, v in item.items() if v is not None})
            return log_id
        except Exception as e:
            logger.error(f"Failed to log admin action {action} on {entity_id}: {e}")
            return None

    def log_withdrawal_action(self, admin_id, withdrawal_action, withdrawal_id, details=None, **request_info):
        return self.log(
            admin_id,
            WITHDRAWAL_LOG_ACTIONS[withdrawal_action],
            EntityType.WITHDRAWAL,
            withdrawal_id,
            details,
            **request_info
        )

    def log_task_action(self, admin_id, action, execution_id, details=None, **request_info):
        return self.log(
            admin_id,
            action,
            EntityType.TASK_EXECUTION,
            execution_id,
            details,
            **request_info
        )
