# backend/app/tasks/beat_schedule.py
"""
Celery Beat schedule for the settlement jobs.

TFC deadlines are checked every five minutes, wallet credits expire
hourly, expiry reminders go out once a day and approved Stripe refunds
are submitted every fifteen minutes.
"""

from typing import Any, Dict

from celery.schedules import crontab

SETTLEMENT_QUEUE = "settlement"

CELERYBEAT_SCHEDULE: Dict[str, Dict[str, Any]] = {
    "process-tfc-deadlines": {
        "task": "app.tasks.settlement_tasks.process_tfc_deadlines",
        "schedule": crontab(minute="*/5"),
        "options": {"queue": SETTLEMENT_QUEUE, "priority": 8, "expires": 240},
    },
    "expire-wallet-credits": {
        "task": "app.tasks.settlement_tasks.expire_wallet_credits",
        "schedule": crontab(minute=5),
        "options": {"queue": SETTLEMENT_QUEUE, "priority": 5},
    },
    "send-credit-expiry-reminders": {
        "task": "app.tasks.settlement_tasks.send_credit_expiry_reminders",
        "schedule": crontab(hour=9, minute=0),
        "options": {"queue": SETTLEMENT_QUEUE, "priority": 3},
    },
    "process-pending-refunds": {
        "task": "app.tasks.settlement_tasks.process_pending_refunds",
        "schedule": crontab(minute="*/15"),
        "options": {"queue": SETTLEMENT_QUEUE, "priority": 7, "expires": 840},
    },
}


def get_beat_schedule(environment: str = "production") -> Dict[str, Dict[str, Any]]:
    """
    Return the beat schedule for an environment.

    Development drops the queue routing so a single local worker picks
    everything up.
    """
    schedule = {name: dict(entry) for name, entry in CELERYBEAT_SCHEDULE.items()}
    if environment == "development":
        for entry in schedule.values():
            entry["options"] = {
                key: value for key, value in entry["options"].items() if key != "queue"
            }
    return schedule
