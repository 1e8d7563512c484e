"""Structured logging helpers (guest-PII safe)."""

from typing import Any


def build_log_context(
    *,
    user_id: str | None = None,
    team_id: str | None = None,
    service_id: str | None = None,
    booking_id: str | None = None,
    job_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict. Never include guest email or name."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if team_id:
        context["team_id"] = str(team_id)
    if service_id:
        context["service_id"] = str(service_id)
    if booking_id:
        context["booking_id"] = str(booking_id)
    if job_id:
        context["job_id"] = str(job_id)
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
