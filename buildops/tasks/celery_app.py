from celery import Celery

from buildops.config import settings

app = Celery(
    "buildops",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "buildops.tasks.change_order_tasks.*": {"queue": "change_orders"},
    },
    beat_schedule={
        "reconcile-change-order-impacts": {
            "task": "buildops.tasks.change_order_tasks.reconcile_change_order_impacts",
            "schedule": settings.RECONCILE_INTERVAL_MINUTES * 60,
        },
    },
)

app.autodiscover_tasks(["buildops.tasks.change_order_tasks"])
