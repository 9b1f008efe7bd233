"""
Withdrawal lifecycle service.

An administrator approves, rejects or holds a pending payout request:

    pending|rejected --approve--> approved  (wallet debited in the same transaction)
    pending|rejected --reject-->  rejected
    pending|rejected --hold-->    pending
    approved --(payment provider settlement)--> completed

Approved and completed requests accept no further decision.

Every public method converts failures into a result value; callers check
`success` instead of catching exceptions.
"""
import math
from typing import Any, Dict, List, Optional

from .admin_log import AdminLogger
from .config import config
from .formatters import format_currency, format_relative_time, format_withdrawal_status
from .logging import logger
from .models import ExecutionStatus, WithdrawalAction, WithdrawalStatus
from .store import (
    ConditionFailedError, RecordNotFoundError, RecordStore, Update,
    any_of, eq, exists, get_store, gte, ilike, is_in, lte,
)
from .utils import parse_timestamp, utc_now_iso

UNKNOWN_EXECUTANT = 'Exécutant inconnu'

# Statuses a decision may start from; approved rows are already debited and
# completed rows are settled, so neither is reopened
PROCESSABLE_STATUSES = (WithdrawalStatus.PENDING, WithdrawalStatus.REJECTED)

SORT_COLUMNS = {
    'date': 'requested_at',
    'amount': 'amount_cents',
    'status': 'status',
}


def _failure(error: str) -> Dict[str, Any]:
    return {'success': False, 'error': error}


def empty_stats() -> Dict[str, Any]:
    return {
        'totalPending': 0,
        'totalApproved': 0,
        'totalRejected': 0,
        'totalCompleted': 0,
        'pendingAmountCents': 0,
        'pendingAmountFormatted': format_currency(0),
        'averageProcessingTimeHours': None,
        'oldestPending': None,
    }


def full_name(profile: Optional[Dict[str, Any]]) -> Optional[str]:
    if not profile:
        return None
    return f"{profile.get('first_name', '')} {profile.get('last_name', '')}".strip()


class WithdrawalService:
    """Applies administrator decisions to withdrawal requests."""

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        admin_logger: Optional[AdminLogger] = None,
        allow_negative_balance: Optional[bool] = None,
    ):
        self.store = store or get_store()
        self.admin_logger = admin_logger or AdminLogger(self.store)
        if allow_negative_balance is None:
            allow_negative_balance = config.ALLOW_NEGATIVE_BALANCE
        self.allow_negative_balance = allow_negative_balance

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def process_withdrawal(
        self,
        withdrawal_id: str,
        action: str,
        processor_id: Optional[str] = None,
        external_transaction_id: Optional[str] = None,
        rejection_reason: Optional[str] = None,
        notes: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Approve, reject or hold a withdrawal request.

        Companion fields (transaction id on approve, reason on reject) are
        stored when given but not required here; the API layer enforces them.

        Returns:
            {'success': True} or {'success': False, 'error': message}
        """
        if action not in WithdrawalAction.ALL:
            return _failure(f"Invalid action: {action}")

        key = {'withdrawal_id': withdrawal_id}

        try:
            withdrawal = self.store.get(config.WITHDRAWALS_TABLE, key)
            if not withdrawal:
                return _failure('Withdrawal not found')

            status = withdrawal.get('status')
            if status == WithdrawalStatus.COMPLETED:
                return _failure('Withdrawal already completed')
            if status == WithdrawalStatus.APPROVED:
                return _failure('Withdrawal already approved')
            if status not in PROCESSABLE_STATUSES:
                return _failure(f"Cannot {action} a withdrawal in status {status}")

            now = utc_now_iso()
            updates: Dict[str, Any] = {'processed_at': now, 'updated_at': now}
            if processor_id:
                updates['processed_by'] = processor_id

            if action == WithdrawalAction.APPROVE:
                updates['status'] = WithdrawalStatus.APPROVED
                if external_transaction_id:
                    updates['external_transaction_id'] = external_transaction_id
            elif action == WithdrawalAction.REJECT:
                updates['status'] = WithdrawalStatus.REJECTED
                if rejection_reason:
                    updates['rejection_reason'] = rejection_reason
            else:
                updates['status'] = WithdrawalStatus.PENDING

            if notes:
                metadata = dict(withdrawal.get('metadata') or {})
                metadata['notes'] = notes
                updates['metadata'] = metadata

            if action == WithdrawalAction.APPROVE:
                self._approve_and_debit(withdrawal, updates)
            else:
                self.store.update(
                    config.WITHDRAWALS_TABLE,
                    key,
                    updates,
                    conditions=[is_in('status', PROCESSABLE_STATUSES)],
                )

        except ConditionFailedError as e:
            logger.warning(f"Withdrawal {withdrawal_id} {action} refused: {e}")
            return _failure(self._describe_conflict(withdrawal, e))
        except RecordNotFoundError:
            return _failure('Withdrawal not found')
        except Exception as e:
            logger.error(f"Error processing withdrawal {withdrawal_id}: {e}")
            return _failure(str(e) or 'Error processing withdrawal')

        self.admin_logger.log_withdrawal_action(
            processor_id,
            action,
            withdrawal_id,
            details={
                'amount_cents': withdrawal.get('amount_cents'),
                'executant_id': withdrawal.get('executant_id'),
                'previous_status': status,
                'external_transaction_id': external_transaction_id,
                'rejection_reason': rejection_reason,
                'notes': notes,
            },
            ip_address=ip_address,
            user_agent=user_agent,
        )

        logger.info(f"Withdrawal {withdrawal_id}: {action} by {processor_id}")
        return {'success': True}

    def _approve_and_debit(self, withdrawal: Dict[str, Any], updates: Dict[str, Any]) -> None:
        """Mark approved and decrement the wallet in one transaction."""
        amount = int(withdrawal.get('amount_cents') or 0)

        wallet_conditions = []
        if not self.allow_negative_balance:
            wallet_conditions.append(gte('balance_cents', amount))

        self.store.transact([
            Update(
                config.WITHDRAWALS_TABLE,
                {'withdrawal_id': withdrawal['withdrawal_id']},
                fields=updates,
                # A concurrent approval fails here instead of debiting twice
                conditions=[is_in('status', PROCESSABLE_STATUSES)],
            ),
            Update(
                config.EXECUTANT_WALLETS_TABLE,
                {'executant_id': withdrawal['executant_id']},
                fields={'updated_at': updates['updated_at']},
                increments={'balance_cents': -amount},
                conditions=wallet_conditions,
            ),
        ])

    def _describe_conflict(self, withdrawal: Dict[str, Any], error: ConditionFailedError) -> str:
        if error.index == 1:
            try:
                wallet = self.store.get(
                    config.EXECUTANT_WALLETS_TABLE,
                    {'executant_id': withdrawal.get('executant_id')}
                )
            except Exception as e:
                logger.error(f"Error reading wallet after failed approval: {e}")
                return 'Wallet debit failed'
            if wallet is None:
                return 'Executant wallet not found'
            return 'Insufficient wallet balance'
        return 'Withdrawal was modified by another request'

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def _filter_conditions(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> list:
        conditions = []
        if payment_method and payment_method != 'all':
            conditions.append(eq('payment_method', payment_method))
        if date_from:
            conditions.append(gte('requested_at', date_from))
        if date_to:
            conditions.append(lte('requested_at', date_to))
        return conditions

    def get_stats(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Counts per status, pending total, mean processing time, oldest pending."""
        table = config.WITHDRAWALS_TABLE
        base = self._filter_conditions(date_from, date_to, payment_method)

        try:
            counts = {
                status: self.store.count(table, base + [eq('status', status)])
                for status in (
                    WithdrawalStatus.APPROVED,
                    WithdrawalStatus.REJECTED,
                    WithdrawalStatus.COMPLETED,
                )
            }

            pending = self.store.query(
                table,
                base + [eq('status', WithdrawalStatus.PENDING)],
                order_by='requested_at',
            )
            pending_amount = sum(int(w.get('amount_cents') or 0) for w in pending)
            oldest_pending = pending[0].get('requested_at') if pending else None

            completed = self.store.query(
                table,
                base + [
                    eq('status', WithdrawalStatus.COMPLETED),
                    exists('requested_at'),
                    exists('processed_at'),
                ],
            )
            hours = [
                (parse_timestamp(w['processed_at']) - parse_timestamp(w['requested_at'])).total_seconds() / 3600
                for w in completed
            ]
            average_hours = sum(hours) / len(hours) if hours else None

        except Exception as e:
            logger.error(f"Error fetching withdrawal stats: {e}")
            return empty_stats()

        return {
            'totalPending': len(pending),
            'totalApproved': counts[WithdrawalStatus.APPROVED],
            'totalRejected': counts[WithdrawalStatus.REJECTED],
            'totalCompleted': counts[WithdrawalStatus.COMPLETED],
            'pendingAmountCents': pending_amount,
            'pendingAmountFormatted': format_currency(pending_amount),
            'averageProcessingTimeHours': average_hours,
            'oldestPending': oldest_pending,
        }

    def list_withdrawals(
        self,
        search: str = '',
        status: str = 'all',
        payment_method: str = 'all',
        mobile_money_provider: str = 'all',
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        sort_by: str = 'date',
        sort_order: str = 'desc',
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Filtered, sorted page of withdrawals with per-executant statistics."""
        page = max(int(page or 1), 1)
        limit = max(int(limit or config.DEFAULT_PAGE_SIZE), 1)
        table = config.WITHDRAWALS_TABLE

        conditions = self._filter_conditions(date_from, date_to, payment_method)
        if status and status != 'all':
            conditions.append(eq('status', status))
        if mobile_money_provider and mobile_money_provider != 'all':
            conditions.append(eq('payment_details.provider', mobile_money_provider))
        if search:
            conditions.append(any_of(
                ilike('external_transaction_id', search),
                ilike('rejection_reason', search),
            ))

        try:
            total = self.store.count(table, conditions)
            rows = self.store.query(
                table,
                conditions,
                order_by=SORT_COLUMNS.get(sort_by, 'requested_at'),
                descending=sort_order != 'asc',
                offset=(page - 1) * limit,
                limit=limit,
            )
            items = [self._to_item(row) for row in rows]
        except Exception as e:
            logger.error(f"Error fetching withdrawals: {e}")
            return {
                'items': [],
                'total': 0,
                'page': 1,
                'limit': limit,
                'totalPages': 0,
                'stats': empty_stats(),
            }

        return {
            'items': items,
            'total': total,
            'page': page,
            'limit': limit,
            'totalPages': math.ceil(total / limit),
            'stats': self.get_stats(date_from, date_to, payment_method),
        }

    def get_withdrawal(self, withdrawal_id: str) -> Optional[Dict[str, Any]]:
        """Single withdrawal with the same enrichment as list_withdrawals."""
        try:
            row = self.store.get(config.WITHDRAWALS_TABLE, {'withdrawal_id': withdrawal_id})
            return self._to_item(row) if row else None
        except Exception as e:
            logger.error(f"Error fetching withdrawal {withdrawal_id}: {e}")
            return None

    def _to_item(self, wd: Dict[str, Any]) -> Dict[str, Any]:
        executant_id = wd.get('executant_id')
        profile = self.store.get(config.USER_PROFILES_TABLE, {'id': executant_id})

        processed_by_name = None
        if wd.get('processed_by'):
            processed_by_name = full_name(
                self.store.get(config.USER_PROFILES_TABLE, {'id': wd['processed_by']})
            )

        payment_details = wd.get('payment_details')
        if not isinstance(payment_details, dict):
            payment_details = {}

        amount = int(wd.get('amount_cents') or 0)
        return {
            'withdrawal_id': wd.get('withdrawal_id'),
            'executant_id': executant_id,
            'executant_name': full_name(profile) or UNKNOWN_EXECUTANT,
            'executant_email': (profile or {}).get('email', ''),
            'executant_phone': (profile or {}).get('phone') or '',
            'executant_verified': bool((profile or {}).get('email_verified', False)),
            'amount_cents': amount,
            'amount_formatted': format_currency(amount),
            'status': wd.get('status'),
            'status_label': format_withdrawal_status(wd.get('status')),
            'payment_method': wd.get('payment_method'),
            'mobile_money_provider': payment_details.get('provider'),
            'mobile_money_number': payment_details.get('mobile_money_number'),
            'bank_account_number': payment_details.get('account_number'),
            'bank_name': payment_details.get('bank_name'),
            'external_transaction_id': wd.get('external_transaction_id'),
            'rejection_reason': wd.get('rejection_reason'),
            'processed_by': wd.get('processed_by'),
            'processed_by_name': processed_by_name,
            'requested_at': wd.get('requested_at'),
            'requested_at_relative': format_relative_time(wd.get('requested_at')),
            'processed_at': wd.get('processed_at'),
            'processed_at_relative': format_relative_time(wd.get('processed_at')),
            'completed_at': wd.get('completed_at'),
            'completed_at_relative': format_relative_time(wd.get('completed_at')),
            'executant_stats': self._executant_stats(executant_id),
            'metadata': wd.get('metadata'),
        }

    def _executant_stats(self, executant_id: str) -> Dict[str, Any]:
        wallet = self.store.get(config.EXECUTANT_WALLETS_TABLE, {'executant_id': executant_id}) or {}
        balance = int(wallet.get('balance_cents') or 0)

        executions = self.store.query(
            config.TASK_EXECUTIONS_TABLE, [eq('executant_id', executant_id)]
        )
        completed = [e for e in executions if e.get('status') == ExecutionStatus.COMPLETED]
        total_earned = sum(int(e.get('reward_cents') or 0) for e in completed)
        validation_rate = round(len(completed) / len(executions) * 100) if executions else 0

        withdrawn: List[Dict[str, Any]] = self.store.query(
            config.WITHDRAWALS_TABLE,
            [
                eq('executant_id', executant_id),
                is_in('status', (WithdrawalStatus.APPROVED, WithdrawalStatus.COMPLETED)),
            ],
        )
        total_withdrawn = sum(int(w.get('amount_cents') or 0) for w in withdrawn)

        last = self.store.query(
            config.WITHDRAWALS_TABLE,
            [
                eq('executant_id', executant_id),
                eq('status', WithdrawalStatus.COMPLETED),
                exists('completed_at'),
            ],
            order_by='completed_at',
            descending=True,
            limit=1,
        )
        last_withdrawal_date = last[0]['completed_at'] if last else None

        return {
            'available_balance_cents': balance,
            'available_balance_formatted': format_currency(balance),
            'total_earned_cents': total_earned,
            'total_earned_formatted': format_currency(total_earned),
            'total_withdrawn_cents': total_withdrawn,
            'total_withdrawn_formatted': format_currency(total_withdrawn),
            'tasks_completed': len(completed),
            'validation_rate': validation_rate,
            'last_withdrawal_date': last_withdrawal_date,
            'last_withdrawal_relative': format_relative_time(last_withdrawal_date),
        }
