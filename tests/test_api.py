from datetime import datetime

import pytest
from freezegun import freeze_time

from carebook.models import Booking, BookingStatus

from .conftest import NOW

pytestmark = pytest.mark.asyncio


@freeze_time(NOW)
async def test_booking_round_trip_over_http(client, world, as_user, notifier, db):
    as_user(world["parent"])
    response = await client.post(
        "/bookings",
        json={
            "providerId": world["provider"].id,
            "dependentId": world["child"].id,
            "scheduledAt": "2026-03-04T10:00:00",
            "notes": "Allergic to peanuts",
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    booking_id = body["data"][0]["id"]

    as_user(world["owner"])
    response = await client.post(f"/provider/bookings/{booking_id}/confirm")
    assert response.status_code == 200
    assert response.json()["data"]["status"] == BookingStatus.CONFIRMED

    response = await client.post(f"/provider/bookings/{booking_id}/confirm")
    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error": "Booking not found or already processed",
        "code": "not_found_or_already_processed",
    }

    events = [call.args[0] for call in notifier.dispatch.call_args_list]
    assert events == ["booking_created", "booking_confirmed"]


@freeze_time(NOW)
async def test_cancel_inside_cutoff_maps_to_422(client, world, as_user, make_booking):
    booking = make_booking(
        world["provider"], world["parent"], datetime(2026, 3, 2, 20, 0), BookingStatus.CONFIRMED
    )
    as_user(world["parent"])

    response = await client.post(f"/bookings/{booking.id}/cancel", json={"reason": "Sick"})

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


@freeze_time(NOW)
async def test_overlap_maps_to_409(client, world, as_user, make_booking):
    make_booking(world["provider"], world["other_parent"], datetime(2026, 3, 4, 10, 0))
    as_user(world["parent"])

    response = await client.post(
        "/bookings",
        json={"providerId": world["provider"].id, "scheduledAt": "2026-03-04T10:00:00"},
    )

    assert response.status_code == 409
    assert response.json()["code"] == "conflict"


async def test_wrong_role_maps_to_403(client, world, as_user):
    as_user(world["parent"])
    response = await client.get("/provider/bookings")
    assert response.status_code == 403
    assert response.json()["code"] == "unauthorized"


async def test_invalid_payload_is_a_validation_error(client, world, as_user):
    as_user(world["parent"])
    response = await client.post(
        "/bookings", json={"providerId": world["provider"].id, "bookingType": "APPOINTMENT"}
    )
    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "validation_error"


async def test_missing_bearer_token_is_401(client, world):
    from carebook.auth import get_current_user
    from carebook.main import app

    app.dependency_overrides.pop(get_current_user, None)
    response = await client.get("/bookings")
    assert response.status_code in (401, 403)


@freeze_time(NOW)
async def test_staff_views_and_meeting_link(client, world, as_user, make_booking, db):
    remote = make_booking(
        world["provider"], world["parent"], datetime(2026, 3, 4, 10, 0), is_remote=True
    )
    as_user(world["owner"])

    response = await client.get("/provider/bookings", params={"view": "pending"})
    assert [b["id"] for b in response.json()["data"]] == [remote.id]

    response = await client.put(
        f"/provider/bookings/{remote.id}/meeting-link", json={"meetingUrl": "http://insecure.test"}
    )
    assert response.status_code == 422

    response = await client.put(
        f"/provider/bookings/{remote.id}/meeting-link",
        json={"meetingUrl": "https://meet.test/room-1"},
    )
    assert response.json()["data"]["meetingUrl"] == "https://meet.test/room-1"

    response = await client.get("/provider/bookings/stats")
    assert response.json()["data"] == {"pending": 1, "confirmed": 0, "today": 0}


@freeze_time(NOW)
async def test_availability_and_schedule_endpoints(client, world, as_user, db):
    response = await client.get(
        f"/providers/{world['provider'].id}/availability", params={"days": 1}
    )
    assert response.status_code == 200
    assert len(response.json()["data"]["slots"]) == 16

    as_user(world["owner"])
    response = await client.put(
        "/provider/schedule",
        json={"days": [{"dayOfWeek": 0, "openTime": "09:00", "closeTime": "10:00"}]},
    )
    assert response.status_code == 200

    response = await client.get(
        f"/providers/{world['provider'].id}/availability", params={"days": 1}
    )
    assert response.json()["data"]["slots"] == ["2026-03-02T09:00:00", "2026-03-02T09:30:00"]

    response = await client.put(
        "/provider/schedule",
        json={"days": [{"dayOfWeek": 0, "openTime": "12:00", "closeTime": "10:00"}]},
    )
    assert response.status_code == 422


@freeze_time(NOW)
async def test_requester_series_flow(client, world, as_user, db):
    as_user(world["parent"])
    response = await client.post(
        "/bookings",
        json={
            "providerId": world["provider"].id,
            "scheduledAt": "2026-03-04T10:00:00",
            "recurrence": "BIWEEKLY",
            "recurrenceEndDate": "2026-04-01T23:00:00",
        },
    )
    assert response.status_code == 201
    series_id = response.json()["data"][0]["seriesId"]

    response = await client.get(f"/bookings/series/{series_id}")
    assert len(response.json()["data"]) == 3

    response = await client.post(f"/bookings/series/{series_id}/cancel", json={})
    assert response.json()["data"]["cancelledCount"] == 3
    assert (
        db.query(Booking)
        .filter(Booking.series_id == series_id, Booking.status == BookingStatus.CANCELLED)
        .count()
        == 3
    )
