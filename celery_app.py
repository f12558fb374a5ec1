"""Celery application configuration for OKR Guard background tasks."""

from celery import Celery

from okrguard.config import settings

celery = Celery("okrguard")

celery.conf.update(
    broker_url=settings.celery_broker_url,
    result_backend=settings.celery_result_backend,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_routes={
        "okrguard.modules.tenancy.tasks.*": {"queue": "tenancy"},
    },
    # --- Reliability settings ---
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=86400,  # 24 hours
    broker_transport_options={
        "max_retries": 10,
        "interval_start": 0.2,
        "interval_step": 0.5,
        "interval_max": 5.0,
        "retry_on_timeout": True,
        "visibility_timeout": 3600,
    },
    # --- Beat schedule ---
    beat_schedule={
        "verify-isolation-policies": {
            "task": "okrguard.modules.tenancy.tasks.verify_isolation_policies",
            "schedule": settings.policy_verify_poll_seconds,
        },
    },
)

celery.autodiscover_tasks([
    "okrguard.modules.tenancy",
])
