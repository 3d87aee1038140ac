from celery import Celery
from celery.signals import setup_logging

from app.core.config import get_settings
from app.core.logging import configure_logging

settings = get_settings()

WORKFLOW_QUEUE = "q_workflows"
# Budget: two full confirmation waits (submit and burn) plus slack for pinning and retries.
WORKFLOW_SOFT_TIME_LIMIT_SECONDS = int(
    2 * settings.confirmation_poll_interval_seconds * settings.confirmation_max_polls + 120
)

celery_app = Celery(
    "trivia_forge",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "app.workers.tasks.eligibility_expiry",
        "app.workers.tasks.sessions_maintenance",
        "app.workers.tasks.seasons",
        "app.workers.tasks.workflows",
    ],
)

celery_app.conf.update(
    task_default_queue="q_normal",
    task_routes={
        "app.workers.tasks.workflows.run_mint_workflow": {"queue": WORKFLOW_QUEUE},
        "app.workers.tasks.workflows.run_forge_workflow": {"queue": WORKFLOW_QUEUE},
    },
    task_annotations={
        "app.workers.tasks.workflows.run_mint_workflow": {
            "soft_time_limit": WORKFLOW_SOFT_TIME_LIMIT_SECONDS,
            "time_limit": WORKFLOW_SOFT_TIME_LIMIT_SECONDS + 60,
        },
        "app.workers.tasks.workflows.run_forge_workflow": {
            "soft_time_limit": WORKFLOW_SOFT_TIME_LIMIT_SECONDS,
            "time_limit": WORKFLOW_SOFT_TIME_LIMIT_SECONDS + 60,
        },
    },
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    result_expires=24 * 60 * 60,
    timezone="UTC",
    enable_utc=True,
    broker_connection_retry_on_startup=True,
)


@setup_logging.connect
def _configure_worker_logging(**_: object) -> None:
    configure_logging(settings.log_level, service="worker", json_logs=settings.log_json)


@celery_app.task(name="app.workers.celery_app.ping")
def ping() -> str:
    return "pong"
