"""Celery application configuration."""

import ssl

from celery import Celery
from celery.schedules import crontab

from app.config import settings

# Handle Heroku Redis SSL connection (rediss://)
redis_url = settings.redis_url
broker_use_ssl = None
backend_use_ssl = None

if redis_url.startswith("rediss://"):
    broker_use_ssl = {"ssl_cert_reqs": ssl.CERT_NONE}
    backend_use_ssl = {"ssl_cert_reqs": ssl.CERT_NONE}

celery_app = Celery(
    "helmetpulse",
    broker=redis_url,
    backend=redis_url,
    include=[
        "app.tasks.import_sources",
        "app.tasks.monthly_price_update",
        "app.tasks.weekly_price_alerts",
        "app.tasks.cleanup",
    ],
)

celery_config = {
    "task_serializer": "json",
    "accept_content": ["json"],
    "result_serializer": "json",
    # crontab entries below are wall-clock times in this zone
    "timezone": settings.notifier_timezone,
    "enable_utc": True,
    "task_track_started": True,
    # browser scrapes of the whole catalog run long
    "task_time_limit": 6 * 60 * 60,
    "worker_prefetch_multiplier": 1,
    "worker_concurrency": 2,
}

if broker_use_ssl:
    celery_config["broker_use_ssl"] = broker_use_ssl
    celery_config["redis_backend_use_ssl"] = backend_use_ssl

celery_app.conf.update(**celery_config)

celery_app.conf.beat_schedule = {}
if settings.scheduler_enabled:
    celery_app.conf.beat_schedule = {
        "weekly-price-alerts-sunday-9am": {
            "task": "app.tasks.weekly_price_alerts.send_weekly_price_alerts",
            "schedule": crontab(day_of_week="sun", hour=9, minute=0),
        },
        "monthly-ebay-reprice": {
            "task": "app.tasks.monthly_price_update.monthly_price_update",
            "schedule": crontab(day_of_month="1", hour=3, minute=0),
        },
        "weekly-catalog-cleanup": {
            "task": "app.tasks.cleanup.run_cleanup",
            "schedule": crontab(day_of_week="sat", hour=4, minute=0),
        },
    }
