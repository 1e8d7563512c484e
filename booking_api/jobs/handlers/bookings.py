"""Booking-related job handlers."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

import httpx

from booking_api.core.config import settings

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("event", "booking_id", "start", "end", "guest_email")


def safe_url(url: str) -> str:
    """Scheme and host only, for logs."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


async def process_booking_notification(db, job) -> None:
    """
    Deliver a booking lifecycle event to the email/calendar bridge.

    Payload: snapshot built by notification_service.build_booking_payload.
    Without NOTIFY_WEBHOOK_URL the event is only logged (dry run).
    """
    payload = job.payload or {}
    missing = [name for name in REQUIRED_FIELDS if not payload.get(name)]
    if missing:
        raise ValueError(f"Missing {', '.join(missing)} in booking_notification payload")

    webhook_url = settings.NOTIFY_WEBHOOK_URL
    if not webhook_url:
        logger.info(
            "Booking notification dry run: event=%s booking=%s",
            payload["event"],
            payload["booking_id"],
        )
        return

    try:
        async with httpx.AsyncClient(timeout=settings.NOTIFY_WEBHOOK_TIMEOUT_SECONDS) as client:
            response = await client.post(
                webhook_url,
                json=payload,
                headers={"Idempotency-Key": f"{job.id}"},
            )
            response.raise_for_status()
    except Exception as e:
        logger.error(
            "Booking notification failed: %s (%s)",
            safe_url(webhook_url),
            type(e).__name__,
        )
        raise

    logger.info(
        "Booking notification delivered: event=%s booking=%s",
        payload["event"],
        payload["booking_id"],
    )
