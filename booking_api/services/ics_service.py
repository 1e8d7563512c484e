"""iCalendar (RFC 5545) export of a booking for the guest."""

from datetime import datetime, timezone

from booking_api.core.config import settings
from booking_api.db.enums import BookingStatus
from booking_api.db.models import Booking, Service, Team, User

PRODID = "-//Booking API//Bookings//EN"
REMINDER_MINUTES = 30


def format_utc_timestamp(value: datetime) -> str:
    """Format datetime as UTC timestamp for iCalendar (RFC 5545)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y%m%dT%H%M%SZ")


def escape_ical_text(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def build_filename(booking: Booking, service: Service) -> str:
    stamp = booking.start.astimezone(timezone.utc).strftime("%Y-%m-%d_%H%M")
    name = "_".join(service.name.split()) or "booking"
    return f"{name}_{stamp}.ics"


def build_booking_ics(
    booking: Booking,
    service: Service,
    assignee: User,
    team: Team,
    manage_url: str,
    now: datetime | None = None,
) -> str:
    """Single-event calendar with a reminder and the guest's manage link."""
    dtstamp = format_utc_timestamp(now or datetime.now(timezone.utc))
    description = "\n".join([
        f"Service: {service.name}",
        f"Duration: {service.duration_minutes} minutes",
        f"With: {assignee.display_name}",
        f"Team: {team.name}",
        "",
        f"Manage your booking: {manage_url}",
        "",
        f"Cancellations need at least {service.cancellation_buffer_hours} hours notice.",
        f"Reschedules need at least {service.reschedule_buffer_hours} hours notice.",
    ])
    cancelled = booking.status == BookingStatus.CANCELLED.value
    guest_cn = booking.guest_name or booking.guest_email

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:CANCEL" if cancelled else "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{booking.id}@{settings.CALENDAR_DOMAIN}",
        f"DTSTAMP:{dtstamp}",
        f"DTSTART:{format_utc_timestamp(booking.start)}",
        f"DTEND:{format_utc_timestamp(booking.end)}",
        f"SUMMARY:{escape_ical_text(f'{service.name} with {assignee.display_name}')}",
        f"DESCRIPTION:{escape_ical_text(description)}",
        f"LOCATION:{escape_ical_text(team.name)}",
        f"ORGANIZER;CN={escape_ical_text(assignee.display_name)}:mailto:{assignee.email}",
        f"ATTENDEE;CN={escape_ical_text(guest_cn)};RSVP=TRUE:mailto:{booking.guest_email}",
        f"STATUS:{'CANCELLED' if cancelled else 'CONFIRMED'}",
        f"SEQUENCE:{booking.reschedule_count}",
        "BEGIN:VALARM",
        f"TRIGGER:-PT{REMINDER_MINUTES}M",
        "ACTION:DISPLAY",
        f"DESCRIPTION:Reminder: your appointment starts in {REMINDER_MINUTES} minutes",
        "END:VALARM",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines) + "\r\n"
