"""
Celery Application Configuration for ruleloop

Runs the automation loop out of the API process when
AUTOMATION_SCHEDULER=celery.

Architecture:
- Message Broker: Redis
- Result Backend: Redis
- Beat: one `process-automations` entry every AUTOMATION_INTERVAL_SECONDS
- Worker: a single consumer on the `automations` queue

Overlap between passes is avoided by the queue layout: one worker with
concurrency 1 consumes `automations`, and each beat message expires after
one interval, so a backlog never turns into back-to-back passes.
"""

import logging
from celery import Celery
from kombu import Queue, Exchange

from ..config import get_settings
from ..core.exceptions import ConfigurationError
from ..core.logging_config import setup_logging

settings = get_settings()

# Initialize structured logging for Celery workers
setup_logging(
    level=settings.log_level,
    json_logs=settings.json_logs,
    log_file=settings.log_file
)

logger = logging.getLogger(__name__)

REDIS_URL = settings.redis_url
if not REDIS_URL:
    raise ConfigurationError(
        "REDIS_URL environment variable not set. "
        "Required for Celery message broker and result backend.",
        setting="REDIS_URL"
    )

AUTOMATION_INTERVAL_SECONDS = settings.automation_interval_seconds

celery_app = Celery("ruleloop")

celery_app.conf.update(
    # ============================================================================
    # BROKER & BACKEND
    # ============================================================================
    broker_url=REDIS_URL,
    result_backend=REDIS_URL,

    broker_connection_retry_on_startup=True,
    broker_connection_retry=True,
    broker_connection_max_retries=10,

    # ============================================================================
    # SERIALIZATION
    # ============================================================================
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],

    # ============================================================================
    # TIMEZONE
    # ============================================================================
    timezone="UTC",
    enable_utc=True,

    # ============================================================================
    # TASK EXECUTION
    # ============================================================================
    task_track_started=True,

    # A lost pass is picked up by the next tick; never redeliver an old one
    task_acks_late=False,

    worker_prefetch_multiplier=1,

    # A pass makes at most (rules x event limit) model calls
    task_time_limit=300,
    task_soft_time_limit=270,

    # ============================================================================
    # RESULTS
    # ============================================================================
    # Pass summaries are only useful for a short while
    result_expires=3600,

    # ============================================================================
    # TASK ROUTING
    # ============================================================================
    task_default_queue="automations",
    task_default_exchange="automations",
    task_default_routing_key="automation.pass",

    task_queues=(
        Queue(
            "automations",
            Exchange("automations"),
            routing_key="automation.pass",
        ),
    ),

    task_routes={
        "process_automations_task": {
            "queue": "automations",
            "routing_key": "automation.pass",
        },
    },

    # ============================================================================
    # WORKER CONFIGURATION
    # ============================================================================
    worker_pool="prefork",

    # One pass at a time per worker
    worker_concurrency=1,

    worker_max_tasks_per_child=1000,

    # ============================================================================
    # MONITORING & LOGGING
    # ============================================================================
    worker_send_task_events=True,
    task_send_sent_event=True,

    worker_log_format="[%(asctime)s: %(levelname)s/%(processName)s] %(message)s",
    worker_task_log_format="[%(asctime)s: %(levelname)s/%(processName)s][%(task_name)s(%(task_id)s)] %(message)s",
)

# ============================================================================
# BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

celery_app.conf.beat_schedule = {
    "process-automations": {
        "task": "process_automations_task",
        "schedule": AUTOMATION_INTERVAL_SECONDS,
        "options": {
            "queue": "automations",
            "expires": AUTOMATION_INTERVAL_SECONDS,
        },
    },
}

logger.info("Celery app configured successfully")
logger.info(f"Broker: {REDIS_URL.split('@')[1] if '@' in REDIS_URL else 'configured'}")
logger.info(f"Automation pass every {AUTOMATION_INTERVAL_SECONDS}s on queue 'automations'")

# ============================================================================
# IMPORT TASKS (so they get registered when worker starts)
# ============================================================================
# This import MUST come AFTER celery_app is configured
from . import tasks  # noqa: F401, E402

logger.info("Tasks imported and registered")
