"""
Celery tasks for settlement housekeeping.

Each task opens its own session, runs one service operation and returns a
JSON-serialisable summary of what it did.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Callable, ParamSpec, Protocol, TypedDict, TypeVar, cast

from celery.result import AsyncResult
from sqlalchemy.orm import Session

from app.core.config import settings
from app.database import SessionLocal
from app.services.notification_service import NotificationService
from app.services.refund_policy_service import RefundPolicyService
from app.services.tfc_service import TfcService
from app.services.wallet_service import WalletService
from app.tasks.celery_app import celery_app

P = ParamSpec("P")
R = TypeVar("R", covariant=True)

logger = logging.getLogger(__name__)


class TaskWrapper(Protocol[P, R]):
    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> R:
        ...

    delay: Callable[..., AsyncResult]
    apply_async: Callable[..., AsyncResult]


def typed_task(
    *task_args: Any, **task_kwargs: Any
) -> Callable[[Callable[P, R]], TaskWrapper[P, R]]:
    """Return a typed Celery task decorator for mypy."""

    return cast(
        Callable[[Callable[P, R]], TaskWrapper[P, R]],
        celery_app.task(*task_args, **task_kwargs),
    )


class TfcDeadlineResults(TypedDict):
    reminders_sent: int
    cancelled: int
    processed_at: str


class CreditExpiryResults(TypedDict):
    expired: int
    processed_at: str


class CreditReminderResults(TypedDict):
    reminders_sent: int
    processed_at: str


class RefundJobResults(TypedDict):
    processed: int
    failed: int
    skipped: int
    processed_at: str


@typed_task(bind=True, max_retries=3, name="app.tasks.settlement_tasks.process_tfc_deadlines")
def process_tfc_deadlines(self: Any) -> TfcDeadlineResults:
    """
    Send 48-hour TFC payment reminders, then cancel bookings whose deadline
    has passed without payment.
    """
    db: Session = SessionLocal()
    try:
        now = datetime.now(timezone.utc)
        tfc_service = TfcService(db, NotificationService(db))
        reminders = tfc_service.send_deadline_reminders(now=now)
        cancelled = tfc_service.auto_cancel_expired(now=now)

        if cancelled:
            logger.warning(f"TFC deadline job cancelled {cancelled} unpaid bookings")
        logger.info(f"TFC deadline job completed: {reminders} reminders, {cancelled} cancelled")
        return {
            "reminders_sent": reminders,
            "cancelled": cancelled,
            "processed_at": now.isoformat(),
        }
    except Exception as exc:
        logger.error(f"TFC deadline job failed: {exc}")
        raise self.retry(exc=exc, countdown=60)
    finally:
        db.close()


@typed_task(bind=True, max_retries=3, name="app.tasks.settlement_tasks.expire_wallet_credits")
def expire_wallet_credits(self: Any) -> CreditExpiryResults:
    """Mark active credits past their expiry date as expired."""
    db: Session = SessionLocal()
    try:
        now = datetime.now(timezone.utc)
        expired = WalletService(db).expire_credits(now=now)
        logger.info(f"Credit expiry job completed: {expired} credits expired")
        return {"expired": expired, "processed_at": now.isoformat()}
    except Exception as exc:
        logger.error(f"Credit expiry job failed: {exc}")
        raise self.retry(exc=exc, countdown=300)
    finally:
        db.close()


@typed_task(
    bind=True, max_retries=3, name="app.tasks.settlement_tasks.send_credit_expiry_reminders"
)
def send_credit_expiry_reminders(self: Any) -> CreditReminderResults:
    """Remind parents about credit that expires within the reminder window."""
    db: Session = SessionLocal()
    try:
        now = datetime.now(timezone.utc)
        sent = WalletService(db).send_expiry_reminders(
            now=now, days_ahead=settings.credit_expiry_reminder_days
        )
        logger.info(f"Credit expiry reminder job completed: {sent} reminders sent")
        return {"reminders_sent": sent, "processed_at": now.isoformat()}
    except Exception as exc:
        logger.error(f"Credit expiry reminder job failed: {exc}")
        raise self.retry(exc=exc, countdown=600)
    finally:
        db.close()


@typed_task(bind=True, max_retries=3, name="app.tasks.settlement_tasks.process_pending_refunds")
def process_pending_refunds(self: Any, limit: int = 100) -> RefundJobResults:
    """Submit pending card refunds to Stripe."""
    db: Session = SessionLocal()
    try:
        now = datetime.now(timezone.utc)
        results = RefundPolicyService(db).process_pending_refunds(limit=limit)
        if results["failed"]:
            logger.warning(f"Refund job completed with {results['failed']} failures")
        logger.info(
            f"Refund job completed: {results['processed']} processed, "
            f"{results['failed']} failed, {results['skipped']} skipped"
        )
        return {
            "processed": results["processed"],
            "failed": results["failed"],
            "skipped": results["skipped"],
            "processed_at": now.isoformat(),
        }
    except Exception as exc:
        logger.error(f"Refund job failed: {exc}")
        raise self.retry(exc=exc, countdown=300)
    finally:
        db.close()
