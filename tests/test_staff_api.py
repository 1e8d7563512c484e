"""
Tests for the staff routers (services, availability, bookings).

Coverage:
- Session cookie and CSRF header enforcement
- Admin-only operations
- Service and roster management
- Availability self-service vs admin
- Staff booking lifecycle over HTTP
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from tests.helpers import add_booking, at


def _iso(value) -> str:
    return value.isoformat()


# =============================================================================
# Auth
# =============================================================================

class TestAuth:
    @pytest.mark.asyncio
    async def test_missing_cookie_401(self, client: AsyncClient):
        response = await client.get("/bookings")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_garbage_cookie_401(self, client: AsyncClient):
        client.cookies.set("booking_session", "not-a-jwt")

        response = await client.get("/services")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_mutation_without_csrf_header_403(self, member_client: AsyncClient):
        response = await member_client.post(
            "/availability/windows",
            json={"day_of_week": 0, "start_time": "09:00", "end_time": "10:00"},
            headers={"X-Requested-With": ""},
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_session_for_other_team_403(self, client: AsyncClient, db, staff):
        from booking_api.core.security import create_session_token
        from booking_api.db.models import Team

        other = Team(name="Elsewhere", slug="elsewhere", timezone="UTC")
        db.add(other)
        db.commit()
        client.cookies.set("booking_session", create_session_token(staff[0].id, other.id))

        response = await client.get("/services")

        assert response.status_code == 403


# =============================================================================
# Services and roster
# =============================================================================

class TestServicesApi:
    @pytest.mark.asyncio
    async def test_admin_creates_service(self, admin_client: AsyncClient):
        response = await admin_client.post(
            "/services",
            json={
                "name": "Follow Up",
                "duration_minutes": 20,
                "working_hours": {"mon": {"start": "09:00", "end": "12:00"}, "sun": None},
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["slug"] == "follow-up"
        assert data["working_hours"] == {"mon": {"start": "09:00", "end": "12:00"}, "sun": None}
        assert data["members"] == []

    @pytest.mark.asyncio
    async def test_member_cannot_create_service(self, member_client: AsyncClient):
        response = await member_client.post("/services", json={"name": "Nope"})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_invalid_working_hours_400(self, admin_client: AsyncClient):
        response = await admin_client.post(
            "/services",
            json={"name": "Odd", "working_hours": {"mon": {"start": "12:00", "end": "09:00"}}},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_set_roster(self, admin_client: AsyncClient, service, staff):
        alice, bob, carol = staff

        response = await admin_client.put(
            f"/services/{service.id}/roster",
            json={"members": [{"user_id": str(carol.id), "order": 0}, {"user_id": str(alice.id), "order": 1}]},
        )

        assert response.status_code == 200
        assert [m["user_id"] for m in response.json()] == [str(carol.id), str(alice.id)]

    @pytest.mark.asyncio
    async def test_update_service_keeps_slug(self, admin_client: AsyncClient, service, staff):
        response = await admin_client.patch(
            f"/services/{service.id}", json={"name": "Renamed", "reschedule_buffer_hours": 6}
        )

        assert response.status_code == 200
        assert response.json()["slug"] == "consultation"
        assert response.json()["reschedule_buffer_hours"] == 6

    @pytest.mark.asyncio
    async def test_staff_slots_include_members(self, member_client: AsyncClient, service, staff, monday):
        response = await member_client.get(
            f"/services/{service.id}/slots",
            params={"start": _iso(at(monday, 9)), "end": _iso(at(monday, 10))},
        )

        assert response.status_code == 200
        slots = response.json()["slots"]
        assert len(slots) == 2
        assert slots[0]["member_ids"] == [str(u.id) for u in staff]

    @pytest.mark.asyncio
    async def test_staff_slots_range_bounded(self, member_client: AsyncClient, service, staff, monday):
        response = await member_client.get(
            f"/services/{service.id}/slots",
            params={"start": _iso(at(monday, 0)), "end": _iso(at(monday + timedelta(days=60), 0))},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_admin_deletes_unused_service(self, admin_client: AsyncClient, service, staff):
        response = await admin_client.delete(f"/services/{service.id}")

        assert response.status_code == 204
        assert (await admin_client.get(f"/services/{service.id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_service_with_bookings_cannot_be_deleted(
        self, admin_client: AsyncClient, db, service, staff, monday
    ):
        add_booking(db, service, staff[0], at(monday, 9))

        response = await admin_client.delete(f"/services/{service.id}")

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "service_has_bookings"

    @pytest.mark.asyncio
    async def test_member_cannot_delete_service(self, member_client: AsyncClient, service):
        response = await member_client.delete(f"/services/{service.id}")

        assert response.status_code == 403


# =============================================================================
# Availability
# =============================================================================

class TestAvailabilityApi:
    @pytest.mark.asyncio
    async def test_member_manages_own_windows(self, member_client: AsyncClient, staff):
        response = await member_client.post(
            "/availability/windows",
            json={"day_of_week": 5, "start_time": "10:00", "end_time": "12:00"},
        )

        assert response.status_code == 201
        assert response.json()["user_id"] == str(staff[0].id)

        listed = await member_client.get("/availability/windows")
        assert len(listed.json()) == 6

    @pytest.mark.asyncio
    async def test_member_cannot_touch_others(self, member_client: AsyncClient, staff):
        response = await member_client.post(
            "/availability/windows",
            json={
                "user_id": str(staff[1].id),
                "day_of_week": 5,
                "start_time": "10:00",
                "end_time": "12:00",
            },
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_replaces_member_week(self, admin_client: AsyncClient, staff):
        response = await admin_client.put(
            "/availability/windows",
            json={
                "user_id": str(staff[1].id),
                "timezone": "Europe/Paris",
                "windows": [{"day_of_week": 0, "start_time": "08:00", "end_time": "12:00"}],
            },
        )

        assert response.status_code == 200
        assert [w["timezone"] for w in response.json()] == ["Europe/Paris"]

    @pytest.mark.asyncio
    async def test_invalid_window_400(self, member_client: AsyncClient, staff):
        response = await member_client.post(
            "/availability/windows",
            json={"day_of_week": 0, "start_time": "12:00", "end_time": "09:00"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_interval"

    @pytest.mark.asyncio
    async def test_holidays_admin_only(self, member_client: AsyncClient, staff):
        response = await member_client.post(
            "/availability/holidays", json={"date": "2031-12-25", "title": "Christmas"}
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_adds_holiday_that_blocks_slots(
        self, admin_client: AsyncClient, service, staff, monday
    ):
        for user in staff:
            response = await admin_client.post(
                "/availability/holidays",
                json={"user_id": str(user.id), "date": monday.isoformat(), "title": "Offsite"},
            )
            assert response.status_code == 201

        slots = await admin_client.get(
            f"/services/{service.id}/slots",
            params={"start": _iso(at(monday, 0)), "end": _iso(at(monday + timedelta(days=1), 0))},
        )
        assert slots.json()["slots"] == []


# =============================================================================
# Bookings
# =============================================================================

class TestBookingsApi:
    async def _create(self, http: AsyncClient, service, start):
        return await http.post(
            "/bookings",
            json={
                "service_id": str(service.id),
                "start": _iso(start),
                "end": _iso(start + timedelta(minutes=30)),
                "guest_email": "guest@example.com",
            },
        )

    @pytest.mark.asyncio
    async def test_staff_books_for_guest(self, member_client: AsyncClient, service, staff, monday):
        response = await self._create(member_client, service, at(monday, 10))

        assert response.status_code == 201
        data = response.json()
        assert data["booked_by_user_id"] == str(staff[0].id)
        assert data["assigned_user_id"] == str(staff[0].id)
        assert "manage_token" not in data

    @pytest.mark.asyncio
    async def test_list_with_filters(self, member_client: AsyncClient, db, service, staff, monday):
        add_booking(db, service, staff[0], at(monday, 9))
        add_booking(db, service, staff[1], at(monday, 9))

        response = await member_client.get(
            "/bookings", params={"assigned_user_id": str(staff[1].id), "per_page": 1}
        )

        data = response.json()
        assert response.status_code == 200
        assert data["total"] == 1
        assert data["pages"] == 1
        assert data["items"][0]["assigned_user_id"] == str(staff[1].id)

    @pytest.mark.asyncio
    async def test_cancel_and_reschedule(self, member_client: AsyncClient, service, staff, monday):
        booking = (await self._create(member_client, service, at(monday, 10))).json()

        moved = await member_client.post(
            f"/bookings/{booking['id']}/reschedule",
            json={"start": _iso(at(monday, 13)), "end": _iso(at(monday, 13, 30))},
        )
        assert moved.status_code == 200
        assert moved.json()["reschedule_count"] == 1

        cancelled = await member_client.post(f"/bookings/{booking['id']}/cancel")
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_member_cannot_complete(self, member_client: AsyncClient, db, service, staff, monday):
        booking = add_booking(db, service, staff[0], at(monday, 9))

        response = await member_client.post(f"/bookings/{booking.id}/complete")

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_completes(self, admin_client: AsyncClient, db, service, staff, monday):
        booking = add_booking(db, service, staff[0], at(monday, 9))

        response = await admin_client.post(f"/bookings/{booking.id}/complete")

        assert response.status_code == 200
        assert response.json()["status"] == "completed"

        again = await admin_client.post(f"/bookings/{booking.id}/complete")
        assert again.status_code == 409

    @pytest.mark.asyncio
    async def test_team_stats(self, member_client: AsyncClient, db, service, staff):
        from booking_api.db.enums import BookingStatus
        from booking_api.db.types import utcnow

        today = utcnow().date()
        add_booking(db, service, staff[0], at(today, 0), minutes=60)
        add_booking(db, service, staff[1], at(today, 1), status=BookingStatus.CANCELLED)

        response = await member_client.get("/bookings/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["today_bookings"] == 1
        assert data["active_services"] == 1
        assert data["team_members"] == 3
        assert data["weekly_hours"] == 1.0

    @pytest.mark.asyncio
    async def test_unknown_booking_404(self, member_client: AsyncClient, staff):
        from uuid import uuid4

        response = await member_client.get(f"/bookings/{uuid4()}")

        assert response.status_code == 404
