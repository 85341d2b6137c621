"""Celery tasks."""

from app.tasks.celery_app import celery_app
from app.tasks.import_sources import import_rsa_helmets, import_radtke_helmets, import_fanatics_helmets
from app.tasks.monthly_price_update import monthly_price_update
from app.tasks.weekly_price_alerts import send_weekly_price_alerts
from app.tasks.cleanup import run_cleanup

__all__ = [
    "celery_app",
    "import_rsa_helmets",
    "import_radtke_helmets",
    "import_fanatics_helmets",
    "monthly_price_update",
    "send_weekly_price_alerts",
    "run_cleanup",
]
