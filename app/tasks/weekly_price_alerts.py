"""Weekly watchlist digest emailed to every subscriber (Sundays, 9am Eastern)."""

import asyncio
import json
import logging
import math
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Optional

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.config import settings
from app.tasks.celery_app import celery_app
from app.tasks.import_sources import run_async

logger = logging.getLogger(__name__)

SUBJECT = "Your Weekly Card Price Update"
PRICE_LOOKUP_TIMEOUT = 15.0
TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)


@dataclass
class PriceUpdate:
    card: dict
    data: Optional[dict]

    @property
    def current_price(self) -> Optional[float]:
        if not self.data:
            return None
        try:
            return float(self.data.get("averagePrice"))
        except (TypeError, ValueError):
            return None

    @property
    def change_percent(self) -> Optional[float]:
        return percent_change(self.current_price, self.card.get("lastPrice"))


def percent_change(current: Any, last: Any) -> Optional[float]:
    """Percent move from ``last`` to ``current``; None when either is missing or not a number."""
    try:
        current, last = float(current), float(last)
    except (TypeError, ValueError):
        return None
    if not current or not last or math.isnan(current) or math.isnan(last):
        return None
    return (current - last) / last * 100


def load_subscribers(path: Optional[str] = None) -> list[dict]:
    """One JSON subscriber object per line; unreadable lines are skipped."""
    file = Path(path or settings.subscribers_file)
    if not file.exists():
        logger.warning(f"Subscribers file {file} not found")
        return []

    subscribers = []
    for lineno, line in enumerate(file.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            subscribers.append(json.loads(line))
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping subscriber line {lineno}: {e}")
    return subscribers


async def fetch_card_price(client: httpx.AsyncClient, card: dict, api_url: Optional[str] = None) -> Optional[dict]:
    url = f"{(api_url or settings.api_url).rstrip('/')}/api/prices"
    payload = {
        "query": card.get("query") or card.get("name"),
        "category": card.get("category"),
        "condition": card.get("condition"),
    }
    try:
        resp = await client.post(url, json=payload, timeout=PRICE_LOOKUP_TIMEOUT)
        resp.raise_for_status()
        return resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Error fetching price for {card.get('name')}: {e}")
        return None


def render_email(subscriber: dict, updates: list[PriceUpdate]) -> str:
    template = _env.get_template("weekly_update.html")
    return template.render(subscriber=subscriber, updates=updates, from_name=settings.from_name)


def build_message(to_email: str, html: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = SUBJECT
    msg["From"] = f'"{settings.from_name}" <{settings.from_email}>'
    msg["To"] = to_email
    msg.set_content("Your weekly price update is best viewed in an HTML-capable mail client.")
    msg.add_alternative(html, subtype="html")
    return msg


class SmtpMailer:
    """STARTTLS SMTP sender; one connection per message."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self.host = host or settings.smtp_host
        self.port = port or settings.smtp_port
        self.user = settings.smtp_user if user is None else user
        self.password = settings.smtp_pass if password is None else password

    def send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password)
            smtp.send_message(message)


async def send_weekly_alerts(
    subscribers: list[dict],
    client: httpx.AsyncClient,
    mailer: Any,
    delay: Optional[float] = None,
    api_url: Optional[str] = None,
) -> dict:
    delay = settings.notifier_request_delay_seconds if delay is None else delay
    counts = {"subscribers": len(subscribers), "sent": 0, "skipped": 0, "failed": 0}
    logger.info(f"Found {len(subscribers)} subscribers")

    for subscriber in subscribers:
        email = subscriber.get("email")
        watchlist = subscriber.get("watchlist") or []
        if not email or not watchlist:
            counts["skipped"] += 1
            continue

        try:
            updates = []
            for card in watchlist:
                data = await fetch_card_price(client, card, api_url=api_url)
                updates.append(PriceUpdate(card=card, data=data))
                await asyncio.sleep(delay)

            mailer.send(build_message(email, render_email(subscriber, updates)))
            counts["sent"] += 1
            logger.info(f"Email sent to {email}")
        except Exception as e:
            counts["failed"] += 1
            logger.error(f"Error processing {email}: {e}")

    return counts


async def run_weekly_alerts() -> dict:
    async with httpx.AsyncClient() as client:
        return await send_weekly_alerts(load_subscribers(), client, SmtpMailer())


@celery_app.task(bind=True, max_retries=3)
def send_weekly_price_alerts(self):
    logger.info("Starting weekly email alerts")
    try:
        counts = run_async(run_weekly_alerts())
        return {"status": "success", **counts}
    except Exception as e:
        logger.error(f"Error in weekly price alerts: {e}")
        self.retry(exc=e, countdown=60)
