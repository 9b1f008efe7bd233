"""
Status constants for the back-office lifecycles.
Withdrawal: pending -> approved|rejected|pending(hold), approved -> completed (external settlement)
Execution: assigned -> in_progress -> submitted -> completed|rejected
"""


class WithdrawalStatus:
    """Withdrawal request statuses."""
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    COMPLETED = 'completed'

    ALL = (PENDING, APPROVED, REJECTED, COMPLETED)


class WithdrawalAction:
    """Administrator decisions on a withdrawal request."""
    APPROVE = 'approve'
    REJECT = 'reject'
    HOLD = 'hold'

    ALL = (APPROVE, REJECT, HOLD)


class ExecutionStatus:
    """Task execution statuses."""
    ASSIGNED = 'assigned'
    IN_PROGRESS = 'in_progress'
    SUBMITTED = 'submitted'
    COMPLETED = 'completed'
    REJECTED = 'rejected'


class TaskType:
    """Campaign task types."""
    SOCIAL_FOLLOW = 'social_follow'
    SOCIAL_LIKE = 'social_like'
    SOCIAL_SHARE = 'social_share'
    SOCIAL_COMMENT = 'social_comment'
    APP_DOWNLOAD = 'app_download'
    WEBSITE_VISIT = 'website_visit'
    SURVEY = 'survey'
    REVIEW = 'review'


class LogAction:
    """Admin log actions written by this backend."""
    WITHDRAWAL_APPROVED = 'withdrawal_approved'
    WITHDRAWAL_REJECTED = 'withdrawal_rejected'
    WITHDRAWAL_HELD = 'withdrawal_held'
    TASK_VALIDATED = 'task_validated'
    TASK_REJECTED = 'task_rejected'


class EntityType:
    """Admin log entity types."""
    WITHDRAWAL = 'withdrawal'
    TASK_EXECUTION = 'task_execution'
