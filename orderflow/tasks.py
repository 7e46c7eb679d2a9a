"""
Celery Tasks
Background tasks that keep the Excel order ledger in step with the store.
"""

import logging
import time

from orderflow.celery_worker import celery_app
from orderflow.core.config import get_settings
from orderflow.services.ledger import get_ledger

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(OSError,),
    retry_backoff=True
)
def record_order_event(self, event: dict) -> dict:
    """
    Append one lifecycle event to the ledger.
    This task runs asynchronously via Celery worker.

    Args:
        event: OrderEvent.to_dict() payload

    Returns:
        dict: Result of the ledger write
    """
    task_id = self.request.id
    order_id = event.get('order_id', 'unknown')

    logger.info(f"Task {task_id}: recording {event.get('kind')} for order #{order_id}")
    start_time = time.time()

    result = get_ledger().append(event)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if result['success']:
        logger.info(f"Task {task_id}: order #{order_id} recorded in {elapsed}s")
    else:
        # Lock contention; retry with backoff
        logger.warning(f"Task {task_id}: order #{order_id} not recorded - {result['message']}, retrying")
        raise self.retry(countdown=self.default_retry_delay * (2 ** self.request.retries))

    return result


def queue_order_event(event) -> None:
    """
    Lifecycle event hook: queue the ledger write after the order commits.
    Broker failures are logged; the committed order stands.
    """
    if not get_settings().ledger_export_enabled:
        return
    try:
        record_order_event.delay(event.to_dict())
    except Exception:
        logger.exception(f"Could not queue ledger export for order #{event.order_id}")
