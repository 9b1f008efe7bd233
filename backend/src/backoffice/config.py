"""
Configuration module for the back-office handlers.
Loads all environment variables needed by the admin services.
"""
import os


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # Record store backend: 'dynamodb' in deployed stages, 'memory' for local runs
    RECORD_STORE_BACKEND = os.environ.get('RECORD_STORE_BACKEND', 'dynamodb')

    # DynamoDB Tables
    WITHDRAWALS_TABLE = os.environ.get('WITHDRAWALS_TABLE', 'withdrawal_requests')
    TASK_EXECUTIONS_TABLE = os.environ.get('TASK_EXECUTIONS_TABLE', 'task_executions')
    EXECUTANT_WALLETS_TABLE = os.environ.get('EXECUTANT_WALLETS_TABLE', 'executant_wallets')
    TASKS_TABLE = os.environ.get('TASKS_TABLE', 'tasks')
    USER_PROFILES_TABLE = os.environ.get('USER_PROFILES_TABLE', 'user_profiles')
    ADMIN_LOGS_TABLE = os.environ.get('ADMIN_LOGS_TABLE', 'admin_logs')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # Withdrawal policy
    ALLOW_NEGATIVE_BALANCE = os.environ.get('ALLOW_NEGATIVE_BALANCE', 'true').lower() == 'true'

    # Listing
    DEFAULT_PAGE_SIZE = int(os.environ.get('DEFAULT_PAGE_SIZE', '20'))

    # DynamoDB caps TransactWriteItems at 100 operations
    MAX_TRANSACTION_ITEMS = int(os.environ.get('MAX_TRANSACTION_ITEMS', '100'))


config = Config()
