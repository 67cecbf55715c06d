# backend/app/tasks/__init__.py
"""
Celery tasks package for the BookOn settlement backend.

Run a worker with: celery -A app.tasks worker -Q settlement
"""

from app.tasks.celery_app import BaseTask, celery_app
from app.tasks.settlement_tasks import (
    expire_wallet_credits,
    process_pending_refunds,
    process_tfc_deadlines,
    send_credit_expiry_reminders,
)

__all__ = [
    "celery_app",
    "BaseTask",
    "process_tfc_deadlines",
    "expire_wallet_credits",
    "send_credit_expiry_reminders",
    "process_pending_refunds",
]
