"""
Tests for admin user management endpoints.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_list_users(client: AsyncClient, admin_headers, test_user, other_user):
    response = await client.get("/api/v1/users/", headers=admin_headers)
    assert response.status_code == 200

    data = response.json()["data"]
    assert data["pagination"]["total"] == 3
    assert {u["email"] for u in data["users"]} == {
        "admin@example.com",
        "test@example.com",
        "other@example.com",
    }


@pytest.mark.asyncio
async def test_list_users_filtered_by_role(client: AsyncClient, admin_headers, test_user):
    response = await client.get("/api/v1/users/", params={"role": "admin"}, headers=admin_headers)
    assert [u["email"] for u in response.json()["data"]["users"]] == ["admin@example.com"]


@pytest.mark.asyncio
async def test_users_endpoints_require_admin(client: AsyncClient, auth_headers, other_user):
    assert (await client.get("/api/v1/users/", headers=auth_headers)).status_code == 403
    assert (await client.get(f"/api/v1/users/{other_user.id}", headers=auth_headers)).status_code == 403
    assert (await client.delete(f"/api/v1/users/{other_user.id}", headers=auth_headers)).status_code == 403


@pytest.mark.asyncio
async def test_get_user(client: AsyncClient, admin_headers, test_user):
    response = await client.get(f"/api/v1/users/{test_user.id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["email"] == "test@example.com"

    missing = await client.get("/api/v1/users/99999", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json()["error"]["message"] == "User not found"


@pytest.mark.asyncio
async def test_promote_user(client: AsyncClient, admin_headers, test_user, auth_headers):
    response = await client.put(
        f"/api/v1/users/{test_user.id}/role", json={"role": "admin"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["role"] == "admin"

    # the promoted user can now reach admin endpoints
    assert (await client.get("/api/v1/users/", headers=auth_headers)).status_code == 200


@pytest.mark.asyncio
async def test_invalid_role(client: AsyncClient, admin_headers, test_user):
    response = await client.put(
        f"/api/v1/users/{test_user.id}/role", json={"role": "superuser"}, headers=admin_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_toggle_status(client: AsyncClient, admin_headers, test_user, auth_headers):
    response = await client.put(f"/api/v1/users/{test_user.id}/toggle-status", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "User deactivated successfully"
    assert response.json()["data"]["is_active"] is False

    blocked = await client.get("/api/v1/auth/profile", headers=auth_headers)
    assert blocked.status_code == 401
    assert blocked.json()["error"]["message"] == "User account is deactivated"

    response = await client.put(f"/api/v1/users/{test_user.id}/toggle-status", headers=admin_headers)
    assert response.json()["message"] == "User activated successfully"
    assert (await client.get("/api/v1/auth/profile", headers=auth_headers)).status_code == 200


@pytest.mark.asyncio
async def test_delete_user(client: AsyncClient, admin_headers, other_user, load_user):
    response = await client.delete(f"/api/v1/users/{other_user.id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "User deleted successfully"

    assert await load_user(other_user.id) is None


@pytest.mark.asyncio
async def test_delete_user_with_active_booking(
    client: AsyncClient, admin_headers, auth_headers, test_user, test_event, load_user
):
    await client.post(
        "/api/v1/bookings/",
        json={"event_id": test_event.id, "number_of_tickets": 1},
        headers=auth_headers,
    )

    response = await client.delete(f"/api/v1/users/{test_user.id}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Cannot delete user with active bookings"
    assert await load_user(test_user.id) is not None


@pytest.mark.asyncio
async def test_delete_user_with_upcoming_events(client: AsyncClient, admin_headers, admin_user, test_event):
    response = await client.delete(f"/api/v1/users/{admin_user.id}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Cannot delete user with upcoming events"
