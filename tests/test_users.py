"""
User Endpoint Tests
"""

import pytest
from httpx import AsyncClient

from app.realtime.connection import Connection

BASE = "/api/v1/users"


@pytest.mark.asyncio
async def test_search_excludes_self_and_inactive(client: AsyncClient, make_user, auth_headers):
    alice = await make_user("alice")
    await make_user("alicia", email="ALICIA@Example.com")
    await make_user("bob", email="bob-ali@example.com")
    gone = await make_user("alina")
    await client.delete(f"{BASE}/account", headers=auth_headers(gone))

    response = await client.get(f"{BASE}/search", params={"q": "ALI"}, headers=auth_headers(alice))
    assert response.status_code == 200
    assert [u["username"] for u in response.json()] == ["alicia", "bob"]


@pytest.mark.asyncio
async def test_online_lists_registry_members(client: AsyncClient, make_user, auth_headers, gateway):
    alice = await make_user("alice")
    bob = await make_user("bob")
    await gateway.registry.register(Connection(None, bob.id, bob.username))

    response = await client.get(f"{BASE}/online", headers=auth_headers(alice))
    assert [u["id"] for u in response.json()] == [bob.id]


@pytest.mark.asyncio
async def test_get_user(client: AsyncClient, make_user, auth_headers):
    alice = await make_user("alice")
    bob = await make_user("bob")

    response = await client.get(f"{BASE}/{bob.id}", headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json()["username"] == "bob"
    assert "email" not in response.json()

    assert (await client.get(f"{BASE}/missing", headers=auth_headers(alice))).status_code == 404


@pytest.mark.asyncio
async def test_update_profile_enforces_uniqueness(client: AsyncClient, make_user, auth_headers):
    alice = await make_user("alice")
    await make_user("bob")

    taken = await client.put(f"{BASE}/profile", json={"username": "bob"}, headers=auth_headers(alice))
    assert taken.status_code == 409

    updated = await client.put(
        f"{BASE}/profile",
        json={"username": "alice2", "avatar": "https://cdn.example.com/a.png"},
        headers=auth_headers(alice),
    )
    assert updated.status_code == 200
    assert updated.json()["username"] == "alice2"
    assert updated.json()["avatar"] == "https://cdn.example.com/a.png"

    # Keeping one's own email is not a conflict
    same = await client.put(f"{BASE}/profile", json={"email": "alice@example.com"}, headers=auth_headers(alice))
    assert same.status_code == 200


@pytest.mark.asyncio
async def test_change_password(client: AsyncClient, make_user, auth_headers):
    alice = await make_user("alice")

    wrong = await client.put(
        f"{BASE}/password",
        json={"currentPassword": "not-it", "newPassword": "brand-new-pass"},
        headers=auth_headers(alice),
    )
    assert wrong.status_code == 401

    ok = await client.put(
        f"{BASE}/password",
        json={"currentPassword": "password123", "newPassword": "brand-new-pass"},
        headers=auth_headers(alice),
    )
    assert ok.status_code == 200

    login = await client.post(
        "/api/v1/auth/login", json={"identifier": "alice", "password": "brand-new-pass"}
    )
    assert login.status_code == 200
