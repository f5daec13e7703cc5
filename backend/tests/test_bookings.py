"""
Tests for booking endpoints including concurrency scenarios.
"""

import asyncio
from datetime import timedelta

import pytest
from httpx import AsyncClient

from booking_api.models.booking import MAX_TICKETS_PER_BOOKING


async def _book(client: AsyncClient, headers: dict, event_id: int, tickets: int = 1):
    return await client.post(
        "/api/v1/bookings/",
        json={"event_id": event_id, "number_of_tickets": tickets},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_book_tickets(client: AsyncClient, auth_headers, test_event, load_event):
    """Successful booking decrements available seats and prices the booking."""
    response = await _book(client, auth_headers, test_event.id, 3)
    assert response.status_code == 201

    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Booking created successfully"
    data = body["data"]
    assert data["event_id"] == test_event.id
    assert data["number_of_tickets"] == 3
    assert data["total_amount"] == "60.00"
    assert data["status"] == "confirmed"
    assert data["event"]["title"] == test_event.title

    event_response = await client.get(f"/api/v1/events/{test_event.id}")
    assert event_response.json()["data"]["available_seats"] == 97
    assert (await load_event(test_event.id)).available_seats == 97


@pytest.mark.asyncio
async def test_book_tickets_unauthenticated(client: AsyncClient, test_event):
    response = await client.post(
        "/api/v1/bookings/",
        json={"event_id": test_event.id, "number_of_tickets": 1},
    )
    assert response.status_code == 401
    assert response.json()["success"] is False
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_book_with_invalid_token(client: AsyncClient, test_event):
    response = await _book(client, {"Authorization": "Bearer not-a-jwt"}, test_event.id)
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Invalid token"


@pytest.mark.asyncio
async def test_book_sold_out_event(client: AsyncClient, auth_headers, sold_out_event):
    """Sold out is a capacity failure: 400 with the remaining count."""
    response = await _book(client, auth_headers, sold_out_event.id)
    assert response.status_code == 400

    error = response.json()["error"]
    assert error["message"] == "Not enough seats: requested 1, only 0 available"
    assert error["details"] == {"requested": 1, "available": 0}


@pytest.mark.asyncio
async def test_book_more_than_remaining(
    client: AsyncClient, auth_headers, other_user, headers_for, small_event, load_event
):
    assert (await _book(client, auth_headers, small_event.id, 3)).status_code == 201

    response = await _book(client, headers_for(other_user), small_event.id, 8)
    assert response.status_code == 400
    assert "only 7 available" in response.json()["error"]["message"]
    assert (await load_event(small_event.id)).available_seats == 7


@pytest.mark.asyncio
@pytest.mark.parametrize("tickets", [0, MAX_TICKETS_PER_BOOKING + 1])
async def test_ticket_count_validation(client: AsyncClient, auth_headers, test_event, tickets):
    response = await _book(client, auth_headers, test_event.id, tickets)
    assert response.status_code == 400

    error = response.json()["error"]
    assert error["message"] == "Validation failed"
    assert "number_of_tickets" in error["details"]["field_errors"]


@pytest.mark.asyncio
async def test_book_ticket_limit(client: AsyncClient, auth_headers, test_event, load_event):
    response = await _book(client, auth_headers, test_event.id, MAX_TICKETS_PER_BOOKING)
    assert response.status_code == 201
    assert response.json()["data"]["number_of_tickets"] == MAX_TICKETS_PER_BOOKING
    assert (await load_event(test_event.id)).available_seats == 100 - MAX_TICKETS_PER_BOOKING


@pytest.mark.asyncio
async def test_duplicate_booking(client: AsyncClient, auth_headers, test_event):
    """Same user booking same event twice returns 409."""
    assert (await _book(client, auth_headers, test_event.id)).status_code == 201

    response = await _book(client, auth_headers, test_event.id)
    assert response.status_code == 409
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_book_nonexistent_event(client: AsyncClient, auth_headers):
    response = await _book(client, auth_headers, 99999)
    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Event not found"


@pytest.mark.asyncio
async def test_book_past_event(client: AsyncClient, auth_headers, event_factory):
    event = await event_factory(starts_in=timedelta(hours=-2))

    response = await _book(client, auth_headers, event.id)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Cannot book tickets for past events"


@pytest.mark.asyncio
async def test_cancel_booking(client: AsyncClient, auth_headers, test_event, load_event):
    """Cancellation restores seats to event."""
    booking_id = (await _book(client, auth_headers, test_event.id, 3)).json()["data"]["id"]

    response = await client.put(
        f"/api/v1/bookings/{booking_id}/cancel",
        json={"reason": "Cannot make it"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "cancelled"
    assert data["cancellation_reason"] == "Cannot make it"
    assert data["cancellation_date"] is not None

    assert (await load_event(test_event.id)).available_seats == 100


@pytest.mark.asyncio
async def test_cancel_without_body(client: AsyncClient, auth_headers, test_event):
    booking_id = (await _book(client, auth_headers, test_event.id)).json()["data"]["id"]

    response = await client.put(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["cancellation_reason"] is None


@pytest.mark.asyncio
async def test_cancel_already_cancelled(client: AsyncClient, auth_headers, test_event):
    booking_id = (await _book(client, auth_headers, test_event.id)).json()["data"]["id"]
    await client.put(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers)

    response = await client.put(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["error"]["message"] == "Booking not found or already cancelled"


@pytest.mark.asyncio
async def test_cancel_other_users_booking(
    client: AsyncClient, auth_headers, other_user, headers_for, test_event, load_booking
):
    booking_id = (await _book(client, auth_headers, test_event.id)).json()["data"]["id"]

    response = await client.put(
        f"/api/v1/bookings/{booking_id}/cancel", headers=headers_for(other_user)
    )
    assert response.status_code == 404
    assert (await load_booking(booking_id)).status == "confirmed"


@pytest.mark.asyncio
async def test_cancel_too_close_to_event(client: AsyncClient, auth_headers, event_factory, load_event):
    event = await event_factory(starts_in=timedelta(hours=10), total_seats=10)
    booking_id = (await _book(client, auth_headers, event.id, 2)).json()["data"]["id"]

    response = await client.put(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == (
        "Cannot cancel booking less than 24 hours before the event"
    )
    assert (await load_event(event.id)).available_seats == 8


@pytest.mark.asyncio
async def test_rebook_after_cancel(client: AsyncClient, auth_headers, test_event):
    booking_id = (await _book(client, auth_headers, test_event.id)).json()["data"]["id"]
    await client.put(f"/api/v1/bookings/{booking_id}/cancel", headers=auth_headers)

    response = await _book(client, auth_headers, test_event.id, 2)
    assert response.status_code == 201
    assert response.json()["data"]["id"] != booking_id


@pytest.mark.asyncio
async def test_list_my_bookings(client: AsyncClient, auth_headers, test_event, small_event):
    await _book(client, auth_headers, test_event.id)
    second = (await _book(client, auth_headers, small_event.id, 2)).json()["data"]["id"]
    await client.put(f"/api/v1/bookings/{second}/cancel", headers=auth_headers)

    response = await client.get("/api/v1/bookings/mine", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data["bookings"]) == 2
    assert data["pagination"]["total"] == 2
    assert {b["event"]["id"] for b in data["bookings"]} == {test_event.id, small_event.id}

    response = await client.get(
        "/api/v1/bookings/mine", params={"status": "cancelled"}, headers=auth_headers
    )
    bookings = response.json()["data"]["bookings"]
    assert [b["id"] for b in bookings] == [second]


@pytest.mark.asyncio
async def test_list_my_bookings_pagination(
    client: AsyncClient, auth_headers, event_factory
):
    for i in range(3):
        event = await event_factory(title=f"Paged Event {i}")
        await _book(client, auth_headers, event.id)

    response = await client.get(
        "/api/v1/bookings/mine", params={"page": 2, "limit": 2}, headers=auth_headers
    )
    data = response.json()["data"]
    assert len(data["bookings"]) == 1
    assert data["pagination"] == {
        "page": 2,
        "limit": 2,
        "total": 3,
        "total_pages": 2,
        "has_next_page": False,
        "has_prev_page": True,
    }


@pytest.mark.asyncio
async def test_get_booking_owner_and_admin(
    client: AsyncClient, auth_headers, admin_headers, other_user, headers_for, test_event
):
    booking_id = (await _book(client, auth_headers, test_event.id)).json()["data"]["id"]

    own = await client.get(f"/api/v1/bookings/{booking_id}", headers=auth_headers)
    assert own.status_code == 200
    assert own.json()["data"]["id"] == booking_id

    as_admin = await client.get(f"/api/v1/bookings/{booking_id}", headers=admin_headers)
    assert as_admin.status_code == 200

    as_stranger = await client.get(f"/api/v1/bookings/{booking_id}", headers=headers_for(other_user))
    assert as_stranger.status_code == 404


@pytest.mark.asyncio
async def test_list_all_bookings_admin_only(
    client: AsyncClient, auth_headers, admin_headers, other_user, headers_for, test_event, small_event
):
    await _book(client, auth_headers, test_event.id)
    await _book(client, headers_for(other_user), small_event.id)

    forbidden = await client.get("/api/v1/bookings/", headers=auth_headers)
    assert forbidden.status_code == 403

    response = await client.get("/api/v1/bookings/", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["pagination"]["total"] == 2

    response = await client.get(
        "/api/v1/bookings/", params={"event_id": small_event.id}, headers=admin_headers
    )
    bookings = response.json()["data"]["bookings"]
    assert len(bookings) == 1
    assert bookings[0]["event_id"] == small_event.id


@pytest.mark.asyncio
async def test_concurrent_bookings_last_seats(
    client: AsyncClient, user_factory, headers_for, small_event, load_event
):
    """Twelve users race for ten seats through the API: exactly ten succeed."""
    users = [await user_factory(f"fan{i}@example.com") for i in range(12)]

    responses = await asyncio.gather(
        *(_book(client, headers_for(user), small_event.id) for user in users)
    )

    codes = sorted(r.status_code for r in responses)
    assert codes.count(201) == 10
    assert codes.count(400) == 2
    assert (await load_event(small_event.id)).available_seats == 0
