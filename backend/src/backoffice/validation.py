"""
Validation lifecycle service.
Records the administrator's decision on submitted task executions:

    submitted --approve--> completed
    submitted --reject-->  rejected

Wallet credit for the reward is not handled here.
"""
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from .admin_log import AdminLogger
from .config import config
from .formatters import format_currency, format_relative_time, format_task_type
from .logging import logger
from .models import ExecutionStatus, LogAction
from .store import (
    RecordNotFoundError, RecordStore, eq, get_store, gte, sort_items,
)
from .utils import parse_timestamp, utc_now, utc_now_iso

UNKNOWN_CAMPAIGN = 'Campagne inconnue'
UNKNOWN_USER = 'Utilisateur inconnu'

SORT_COLUMNS = {
    'submittedDate': 'submitted_at',
    'amount': 'reward_cents',
    'executant': 'executant_name',
}


def _failure(error: str) -> Dict[str, Any]:
    return {'success': False, 'error': error}


class ValidationService:
    """Approves and rejects task executions, singly or in bulk."""

    def __init__(self, store: Optional[RecordStore] = None, admin_logger: Optional[AdminLogger] = None):
        self.store = store or get_store()
        self.admin_logger = admin_logger or AdminLogger(self.store)

    def approve_execution(
        self,
        execution_id: str,
        rating: Optional[int] = None,
        bonus_cents: Optional[int] = None,
        review_notes: Optional[str] = None,
        reviewer_id: Optional[str] = None,
        **request_info
    ) -> Dict[str, Any]:
        """
        Mark an execution completed.
        Rating and bonus are stored as given; range checks belong to the caller.
        """
        now = utc_now_iso()
        updates: Dict[str, Any] = {
            'status': ExecutionStatus.COMPLETED,
            'completed_at': now,
            'reviewed_at': now,
            'updated_at': now,
        }
        if rating:
            updates['rating'] = rating
        if bonus_cents is not None:
            updates['bonus_cents'] = bonus_cents
        if review_notes:
            updates['review_notes'] = review_notes
        if reviewer_id:
            updates['reviewer_id'] = reviewer_id

        try:
            self.store.update(config.TASK_EXECUTIONS_TABLE, {'execution_id': execution_id}, updates)
        except RecordNotFoundError:
            return _failure('Task execution not found')
        except Exception as e:
            logger.error(f"Error approving execution {execution_id}: {e}")
            return _failure(str(e) or 'Error approving execution')

        self.admin_logger.log_task_action(
            reviewer_id,
            LogAction.TASK_VALIDATED,
            execution_id,
            details={'rating': rating, 'bonus_cents': bonus_cents},
            **request_info
        )
        return {'success': True}

    def reject_execution(
        self,
        execution_id: str,
        rejection_reason: str,
        review_notes: Optional[str] = None,
        reviewer_id: Optional[str] = None,
        **request_info
    ) -> Dict[str, Any]:
        """Mark an execution rejected; repeated calls overwrite the reason."""
        now = utc_now_iso()
        updates: Dict[str, Any] = {
            'status': ExecutionStatus.REJECTED,
            'rejection_reason': rejection_reason,
            'reviewed_at': now,
            'updated_at': now,
        }
        if review_notes:
            updates['review_notes'] = review_notes
        if reviewer_id:
            updates['reviewer_id'] = reviewer_id

        try:
            self.store.update(config.TASK_EXECUTIONS_TABLE, {'execution_id': execution_id}, updates)
        except RecordNotFoundError:
            return _failure('Task execution not found')
        except Exception as e:
            logger.error(f"Error rejecting execution {execution_id}: {e}")
            return _failure(str(e) or 'Error rejecting execution')

        self.admin_logger.log_task_action(
            reviewer_id,
            LogAction.TASK_REJECTED,
            execution_id,
            details={'rejection_reason': rejection_reason},
            **request_info
        )
        return {'success': True}

    def bulk_approve(self, execution_ids: List[str], reviewer_id: Optional[str] = None) -> Dict[str, Any]:
        now = utc_now_iso()
        updates = {
            'status': ExecutionStatus.COMPLETED,
            'completed_at': now,
            'reviewed_at': now,
            'updated_at': now,
        }
        return self._bulk_update(execution_ids, updates, reviewer_id, LogAction.TASK_VALIDATED, {})

    def bulk_reject(
        self,
        execution_ids: List[str],
        rejection_reason: str,
        reviewer_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        now = utc_now_iso()
        updates = {
            'status': ExecutionStatus.REJECTED,
            'rejection_reason': rejection_reason,
            'reviewed_at': now,
            'updated_at': now,
        }
        return self._bulk_update(
            execution_ids, updates, reviewer_id, LogAction.TASK_REJECTED,
            {'rejection_reason': rejection_reason}
        )

    def _bulk_update(self, execution_ids, updates, reviewer_id, log_action, log_details) -> Dict[str, Any]:
        """
        One transaction for the whole id set; any failure fails the batch.
        Repeated ids count once. Batches over MAX_TRANSACTION_ITEMS are refused
        since they could not be written atomically.
        """
        execution_ids = list(dict.fromkeys(execution_ids))
        if not execution_ids:
            return {'success': True, 'count': 0}
        if len(execution_ids) > config.MAX_TRANSACTION_ITEMS:
            return _failure(
                f"Too many executions: {len(execution_ids)} (maximum {config.MAX_TRANSACTION_ITEMS})"
            )
        if reviewer_id:
            updates['reviewer_id'] = reviewer_id

        try:
            self.store.update_many(
                config.TASK_EXECUTIONS_TABLE, 'execution_id', execution_ids, updates
            )
        except Exception as e:
            logger.error(f"Error in bulk {log_action} of {len(execution_ids)} executions: {e}")
            return _failure(str(e) or 'Error in bulk validation')

        for execution_id in execution_ids:
            self.admin_logger.log_task_action(
                reviewer_id, log_action, execution_id, details=dict(log_details, bulk=True)
            )
        logger.info(f"Bulk {log_action}: {len(execution_ids)} executions")
        return {'success': True, 'count': len(execution_ids)}

    def get_pending_tasks(
        self,
        search: str = '',
        task_type: str = 'all',
        campaign_id: Optional[str] = None,
        executant_id: Optional[str] = None,
        sort_by: str = 'submittedDate',
        sort_order: str = 'desc',
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Submitted executions joined with campaign and executant, paginated."""
        page = max(int(page or 1), 1)
        limit = max(int(limit or config.DEFAULT_PAGE_SIZE), 1)

        conditions = [eq('status', ExecutionStatus.SUBMITTED)]
        if campaign_id:
            conditions.append(eq('task_id', campaign_id))
        if executant_id:
            conditions.append(eq('executant_id', executant_id))

        try:
            rows = self.store.query(config.TASK_EXECUTIONS_TABLE, conditions)
            items = [self._to_item(row) for row in rows]
        except Exception as e:
            logger.error(f"Error fetching pending tasks: {e}")
            return {'items': [], 'total': 0, 'page': 1, 'limit': limit, 'totalPages': 0}

        # Filters on joined attributes apply after the join
        if task_type and task_type != 'all':
            items = [i for i in items if i['task_type'] == task_type]
        if search:
            needle = search.lower()
            items = [
                i for i in items
                if needle in (i['campaign_title'] or '').lower()
                or needle in (i['executant_first_name'] or '').lower()
                or needle in (i['executant_last_name'] or '').lower()
            ]

        items = sort_items(
            items, SORT_COLUMNS.get(sort_by, 'submitted_at'), descending=sort_order != 'asc'
        )
        total = len(items)
        start = (page - 1) * limit

        return {
            'items': items[start:start + limit],
            'total': total,
            'page': page,
            'limit': limit,
            'totalPages': math.ceil(total / limit),
        }

    def _to_item(self, execution: Dict[str, Any]) -> Dict[str, Any]:
        task = self.store.get(config.TASKS_TABLE, {'task_id': execution.get('task_id')}) or {}
        profile = self.store.get(config.USER_PROFILES_TABLE, {'id': execution.get('executant_id')})

        if profile:
            executant_name = f"{profile.get('first_name', '')} {profile.get('last_name', '')}".strip()
        else:
            executant_name = UNKNOWN_USER

        task_type = task.get('task_type')
        reward = int(execution.get('reward_cents') or 0)

        return {
            'execution_id': execution.get('execution_id'),
            'task_id': execution.get('task_id'),
            'executant_id': execution.get('executant_id'),
            'executant_name': executant_name,
            'executant_first_name': (profile or {}).get('first_name'),
            'executant_last_name': (profile or {}).get('last_name'),
            'executant_email': (profile or {}).get('email', ''),
            'campaign_id': task.get('task_id', ''),
            'campaign_title': task.get('title', UNKNOWN_CAMPAIGN),
            'task_type': task_type,
            'task_type_label': format_task_type(task_type) if task_type else None,
            'submitted_at': execution.get('submitted_at'),
            'submitted_at_relative': format_relative_time(execution.get('submitted_at')),
            'proof_urls': execution.get('proof_urls'),
            'proof_screenshots': execution.get('proof_screenshots'),
            'executant_notes': execution.get('executant_notes'),
            'reward_cents': reward,
            'reward_formatted': format_currency(reward),
            'status': execution.get('status'),
        }

    def get_stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Pending backlog and today's review throughput."""
        now = now or utc_now()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0).isoformat()
        table = config.TASK_EXECUTIONS_TABLE

        try:
            pending = self.store.query(
                table, [eq('status', ExecutionStatus.SUBMITTED)], order_by='submitted_at'
            )
            approved_today = self.store.query(
                table,
                [eq('status', ExecutionStatus.COMPLETED), gte('reviewed_at', today)],
            )
            rejected_today = self.store.count(
                table,
                [eq('status', ExecutionStatus.REJECTED), gte('reviewed_at', today)],
            )
        except Exception as e:
            logger.error(f"Error fetching validation stats: {e}")
            return {
                'pendingCount': 0,
                'approvedToday': 0,
                'rejectedToday': 0,
                'averageProcessingTime': None,
                'oldestPending': None,
            }

        minutes = [
            (parse_timestamp(e['reviewed_at']) - parse_timestamp(e['submitted_at'])).total_seconds() / 60
            for e in approved_today
            if e.get('submitted_at') and e.get('reviewed_at')
        ]

        oldest = next((e['submitted_at'] for e in pending if e.get('submitted_at')), None)

        return {
            'pendingCount': len(pending),
            'approvedToday': len(approved_today),
            'rejectedToday': rejected_today,
            'averageProcessingTime': sum(minutes) / len(minutes) if minutes else None,
            'oldestPending': oldest,
        }
