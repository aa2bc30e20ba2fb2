"""
Celery helpers for queueing tasks from request handlers.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as QueueTimeout
from typing import Tuple
from celery import Task
from kombu import Connection

from marketplace.core.celery_app import celery_app  # noqa: F401  configures the current app for shared_task
from marketplace.core.config import settings

logger = logging.getLogger(__name__)

# Queueing runs off the event loop; uvicorn's loop interferes with kombu's pool
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="celery_queue")


def _queue_task_sync(task: Task, args: tuple, kwargs: dict) -> Tuple[bool, str, str]:
    """
    Send one task over a fresh broker connection.

    Returns:
        Tuple[bool, str, str]: (success, task_id, error_message)
    """
    try:
        with Connection(settings.REDIS_URL) as conn:
            result = task.apply_async(
                args=args,
                kwargs=kwargs,
                connection=conn,
                retry=True,
                retry_policy={
                    'max_retries': 3,
                    'interval_start': 0,
                    'interval_step': 0.2,
                    'interval_max': 0.2,
                }
            )
            return (True, result.id, "")
    except Exception as e:
        return (False, "", str(e))


def queue_task_safely(task: Task, *args, **kwargs) -> bool:
    """
    Queue a Celery task without letting broker trouble fail the request.

    Email and alert tasks are side effects of the request that triggers them;
    a False return is logged and the caller carries on.

    Example:
        queue_task_safely(
            send_lockout_alert_task,
            to_email='user@example.com',
            locked_minutes=30,
            ip_address='203.0.113.7'
        )
    """
    future = _executor.submit(_queue_task_sync, task, args, kwargs)
    try:
        success, task_id, error = future.result(timeout=5)
    except QueueTimeout:
        success, task_id, error = False, "", "timed out waiting for broker"

    if success:
        logger.info(f"Task {task.name} queued successfully: {task_id}")
        return True

    logger.error(f"Failed to queue task {task.name}: {error}")
    return False
