"""Job handler registry."""

from __future__ import annotations

from typing import Awaitable, Callable, Mapping

from booking_api.db.enums import JobType
from booking_api.jobs.handlers import bookings

JobHandler = Callable[[object, object], Awaitable[None]]

JOB_HANDLERS: Mapping[str, JobHandler] = {
    JobType.BOOKING_NOTIFICATION.value: bookings.process_booking_notification,
}


def resolve_job_handler(job_type: str) -> JobHandler:
    handler = JOB_HANDLERS.get(job_type)
    if not handler:
        raise ValueError(f"Unknown job type: {job_type}")
    return handler
