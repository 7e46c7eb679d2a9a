"""
Celery Worker Configuration
Redis-backed worker that keeps the order ledger in step with the store.

Run: celery -A orderflow.celery_worker worker --loglevel=info -Q ledger
"""

from celery import Celery

from orderflow.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    'orderflow_worker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['orderflow.tasks']
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    # Ledger rows go to their own queue so a slow export never blocks other work
    task_routes={'orderflow.tasks.record_order_event': {'queue': 'ledger'}},

    # Writes are serialized by the ledger file lock anyway
    worker_prefetch_multiplier=1,
    worker_concurrency=2,

    result_expires=3600,

    # A lost worker must not drop a lifecycle row
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    broker_connection_retry_on_startup=True,
)


if __name__ == '__main__':
    celery_app.start()
