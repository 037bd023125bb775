"""
Celery app and periodic jobs.

Run a worker with beat:
    celery -A datawaves.tasks worker --beat --loglevel=info
"""

import logging
import os
from datetime import timedelta

from celery import Celery, Task

from datawaves.config import BaseConfig
from datawaves.logging_config import configure_logging_for_worker

logger = logging.getLogger(__name__)

celery = Celery(
    "datawaves",
    broker=os.getenv("REDIS_URL", BaseConfig.REDIS_URL),
    backend=os.getenv("REDIS_URL", BaseConfig.REDIS_URL),
)

celery.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_time_limit=120,
    beat_schedule={
        "check-aggregator-balance": {
            "task": "datawaves.tasks.check_aggregator_balance",
            "schedule": timedelta(minutes=BaseConfig.BALANCE_CHECK_MINUTES),
        },
    },
)

_flask_app = None


def init_celery(app):
    """Bind tasks to an existing Flask app instead of building one on first use."""
    global _flask_app
    _flask_app = app
    return celery


def get_flask_app():
    global _flask_app
    if _flask_app is None:
        from datawaves import create_app

        configure_logging_for_worker(os.getenv("LOG_LEVEL", "INFO"))
        _flask_app = create_app(os.getenv("FLASK_CONFIG", "production"))
    return _flask_app


class ContextTask(Task):
    abstract = True

    def __call__(self, *args, **kwargs):
        with get_flask_app().app_context():
            try:
                return super().__call__(*args, **kwargs)
            except Exception:
                logger.exception("Task failed", extra={"task": self.name})
                raise


@celery.task(base=ContextTask, name="datawaves.tasks.check_aggregator_balance")
def check_aggregator_balance():
    """Poll the aggregator balance; a low balance raises an admin alert."""
    from datawaves.purchases.services import get_services

    balance = get_services().aggregator.check_balance()
    logger.info(
        "Aggregator balance checked",
        extra={"balance": str(balance.balance), "currency": balance.currency, "low": balance.low},
    )
    return {"balance": str(balance.balance), "currency": balance.currency, "low": balance.low}
