"""
Tests for the public booking router.

Guest flow over HTTP: booking page, slots, book, then manage by token.
"""

from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient

from tests.helpers import add_booking, at

BASE = "/book/test-clinic/consultation"


def _iso(value) -> str:
    return value.isoformat()


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


async def _book(client: AsyncClient, start, minutes: int = 30, **extra):
    return await client.post(
        f"{BASE}/bookings",
        json={
            "start": _iso(start),
            "end": _iso(start + timedelta(minutes=minutes)),
            "guest_email": "guest@example.com",
            "guest_name": "Grace Guest",
            **extra,
        },
    )


# =============================================================================
# Booking page and slots
# =============================================================================

class TestBookingPage:
    @pytest.mark.asyncio
    async def test_booking_page(self, client: AsyncClient, service, staff):
        response = await client.get(BASE)

        assert response.status_code == 200
        data = response.json()
        assert data["team_name"] == "Test Clinic"
        assert data["duration_minutes"] == 30
        assert data["cancellation_buffer_hours"] == 24

    @pytest.mark.asyncio
    async def test_unknown_service_404(self, client: AsyncClient, service):
        response = await client.get("/book/test-clinic/nope")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_inactive_service_404(self, client: AsyncClient, db, service):
        service.is_active = False
        db.commit()

        response = await client.get(BASE)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_slots_hide_member_ids(self, client: AsyncClient, service, staff, monday):
        response = await client.get(
            f"{BASE}/slots",
            params={"start": _iso(at(monday, 0)), "end": _iso(at(monday + timedelta(days=1), 0))},
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data["slots"]) == 16
        assert set(data["slots"][0]) == {"start", "end"}

    @pytest.mark.asyncio
    async def test_naive_query_read_as_utc(self, client: AsyncClient, service, staff, monday):
        response = await client.get(
            f"{BASE}/slots",
            params={"start": f"{monday.isoformat()}T09:00:00", "end": f"{monday.isoformat()}T10:00:00"},
        )

        assert response.status_code == 200
        assert len(response.json()["slots"]) == 2

    @pytest.mark.asyncio
    async def test_past_slots_dropped(self, client: AsyncClient, service, staff):
        from datetime import date

        past_monday = date(2020, 1, 6)
        response = await client.get(
            f"{BASE}/slots",
            params={"start": _iso(at(past_monday, 0)), "end": _iso(at(past_monday, 23))},
        )

        assert response.status_code == 200
        assert response.json()["slots"] == []

    @pytest.mark.asyncio
    async def test_end_before_start_400(self, client: AsyncClient, service, staff, monday):
        response = await client.get(
            f"{BASE}/slots",
            params={"start": _iso(at(monday, 10)), "end": _iso(at(monday, 9))},
        )

        assert response.status_code == 400


# =============================================================================
# Create
# =============================================================================

class TestPublicCreate:
    @pytest.mark.asyncio
    async def test_book_returns_manage_token(self, client: AsyncClient, service, staff, monday):
        response = await _book(client, at(monday, 10))

        assert response.status_code == 201
        data = response.json()
        assert data["manage_token"]
        assert data["status"] == "scheduled"
        assert data["staff_name"] == "Alice"

    @pytest.mark.asyncio
    async def test_taken_slot_409(self, client: AsyncClient, service, solo, monday):
        first = await _book(client, at(monday, 10))
        second = await _book(client, at(monday, 10))

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json()["detail"]["code"] == "slot_no_longer_available"

    @pytest.mark.asyncio
    async def test_wrong_duration_400(self, client: AsyncClient, service, staff, monday):
        response = await _book(client, at(monday, 10), minutes=45)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_interval"

    @pytest.mark.asyncio
    async def test_invalid_email_422(self, client: AsyncClient, service, staff, monday):
        response = await _book(client, at(monday, 10), guest_email="not-an-email")

        assert response.status_code == 422


# =============================================================================
# Manage by token
# =============================================================================

class TestManageByToken:
    @pytest.mark.asyncio
    async def test_view_hides_token(self, client: AsyncClient, service, staff, monday):
        token = (await _book(client, at(monday, 10))).json()["manage_token"]

        response = await client.get(f"/book/manage/{token}")

        assert response.status_code == 200
        assert response.json()["manage_token"] is None
        assert response.json()["service_name"] == "Consultation"

    @pytest.mark.asyncio
    async def test_unknown_token_404(self, client: AsyncClient, service):
        response = await client.get("/book/manage/does-not-exist")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_cancel(self, client: AsyncClient, service, staff, monday):
        token = (await _book(client, at(monday, 10))).json()["manage_token"]

        response = await client.post(f"/book/manage/{token}/cancel")

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        again = await client.post(f"/book/manage/{token}/cancel")
        assert again.status_code == 409
        assert again.json()["detail"]["code"] == "invalid_transition"

    @pytest.mark.asyncio
    async def test_cancel_inside_buffer_422(self, client: AsyncClient, db, service, staff, monday):
        service.cancellation_buffer_hours = 24 * 365 * 20
        db.commit()
        token = (await _book(client, at(monday, 10))).json()["manage_token"]

        response = await client.post(f"/book/manage/{token}/cancel")

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["code"] == "buffer_violation"
        assert detail["required_hours"] == 24 * 365 * 20

    @pytest.mark.asyncio
    async def test_reschedule_keeps_staff(self, client: AsyncClient, service, staff, monday):
        booked = (await _book(client, at(monday, 10))).json()
        tuesday = monday + timedelta(days=1)

        response = await client.post(
            f"/book/manage/{booked['manage_token']}/reschedule",
            json={"start": _iso(at(tuesday, 11)), "end": _iso(at(tuesday, 11, 30))},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["staff_name"] == booked["staff_name"]
        assert data["reschedule_count"] == 1

    @pytest.mark.asyncio
    async def test_reschedule_into_busy_time_409(
        self, client: AsyncClient, db, service, solo, monday
    ):
        token = (await _book(client, at(monday, 10))).json()["manage_token"]
        add_booking(db, service, solo, at(monday, 11))

        response = await client.post(
            f"/book/manage/{token}/reschedule",
            json={"start": _iso(at(monday, 11)), "end": _iso(at(monday, 11, 30))},
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_reschedule_slots_only_for_assignee(
        self, client: AsyncClient, db, service, staff, monday
    ):
        token = (await _book(client, at(monday, 10))).json()["manage_token"]
        alice = staff[0]
        add_booking(db, service, alice, at(monday, 11))

        response = await client.get(
            f"/book/manage/{token}/slots",
            params={"start": _iso(at(monday, 0)), "end": _iso(at(monday + timedelta(days=1), 0))},
        )

        starts = [_parse(slot["start"]) for slot in response.json()["slots"]]
        assert response.status_code == 200
        assert len(starts) == 15  # Alice minus her 11:00 booking
        assert at(monday, 10) in starts
        assert at(monday, 11) not in starts

    @pytest.mark.asyncio
    async def test_reschedule_slots_use_booked_length(
        self, client: AsyncClient, db, service, solo, monday
    ):
        token = (await _book(client, at(monday, 10))).json()["manage_token"]
        service.duration_minutes = 60
        db.commit()

        response = await client.get(
            f"/book/manage/{token}/slots",
            params={"start": _iso(at(monday, 9)), "end": _iso(at(monday, 12))},
        )

        data = response.json()
        assert data["duration_minutes"] == 30
        assert len(data["slots"]) == 6

    @pytest.mark.asyncio
    async def test_calendar_download(self, client: AsyncClient, service, staff, monday):
        token = (await _book(client, at(monday, 10))).json()["manage_token"]

        response = await client.get(f"/book/manage/{token}/calendar.ics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/calendar")
        assert "attachment" in response.headers["content-disposition"]
        assert "BEGIN:VEVENT" in response.text
        assert "SUMMARY:Consultation with Alice" in response.text


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
