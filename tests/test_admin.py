"""
Admin Endpoint Tests
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from app.models.conversation import Conversation, ConversationParticipant
from app.models.message import Message, MessageReceipt

BASE = "/api/v1/admin"


@pytest.mark.asyncio
async def test_users_cannot_reach_admin_routes(client: AsyncClient, make_user, auth_headers):
    alice = await make_user("alice")
    response = await client.get(f"{BASE}/stats", headers=auth_headers(alice))
    assert response.status_code == 403
    assert response.json()["detail"] == "Admin access required"


@pytest.mark.asyncio
async def test_admins_cannot_use_user_routes(client: AsyncClient, make_admin, auth_headers):
    root = await make_admin("root")
    response = await client.get("/api/v1/conversations", headers=auth_headers(root))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_permissions_follow_role(client: AsyncClient, make_admin, auth_headers):
    moderator = await make_admin("mod", role="moderator")

    assert (await client.get(f"{BASE}/users", headers=auth_headers(moderator))).status_code == 200
    stats = await client.get(f"{BASE}/stats", headers=auth_headers(moderator))
    assert stats.status_code == 403
    assert stats.json()["detail"] == "Permission 'analytics_view' required"
    assert (await client.get(f"{BASE}/admins", headers=auth_headers(moderator))).status_code == 403


@pytest.mark.asyncio
async def test_dashboard_stats(client: AsyncClient, make_user, make_admin, make_conversation, auth_headers):
    root = await make_admin("root")
    alice = await make_user("alice")
    bob = await make_user("bob")
    await make_conversation(alice, bob)

    response = await client.get(f"{BASE}/stats", headers=auth_headers(root))
    assert response.status_code == 200
    stats = response.json()["stats"]
    assert stats["totalUsers"] == 2
    assert stats["activeUsers"] == 2
    assert stats["totalConversations"] == 1
    assert stats["totalMessages"] == 0
    assert stats["newUsersThisWeek"] == 2
    assert {u["username"] for u in response.json()["recentUsers"]} == {"alice", "bob"}


@pytest.mark.asyncio
async def test_user_management(client: AsyncClient, make_user, make_admin, auth_headers):
    root = await make_admin("root")
    alice = await make_user("alice")
    await make_user("bob")

    listed = await client.get(f"{BASE}/users?search=ALI", headers=auth_headers(root))
    assert [u["username"] for u in listed.json()["users"]] == ["alice"]
    assert listed.json()["pagination"]["total"] == 1

    off = await client.patch(f"{BASE}/users/{alice.id}/deactivate", headers=auth_headers(root))
    assert off.status_code == 200
    assert off.json()["isActive"] is False

    inactive = await client.get(f"{BASE}/users?isActive=false", headers=auth_headers(root))
    assert [u["id"] for u in inactive.json()["users"]] == [alice.id]

    on = await client.patch(f"{BASE}/users/{alice.id}/reactivate", headers=auth_headers(root))
    assert on.json()["isActive"] is True

    missing = await client.patch(f"{BASE}/users/nope/deactivate", headers=auth_headers(root))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_hard_delete_conversation(
    client: AsyncClient, make_user, make_admin, make_conversation, auth_headers, session_factory
):
    root = await make_admin("root")
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol")
    doomed = await make_conversation(alice, bob)
    kept = await make_conversation(alice, carol)

    sent = await client.post(
        "/api/v1/messages",
        json={"conversationId": doomed.id, "content": "soon gone"},
        headers=auth_headers(alice),
    )
    await client.post(
        "/api/v1/messages",
        json={"conversationId": doomed.id, "content": "reply", "replyTo": sent.json()["id"]},
        headers=auth_headers(bob),
    )
    await client.post(f"/api/v1/messages/{sent.json()['id']}/read", headers=auth_headers(bob))

    response = await client.delete(f"{BASE}/conversations/{doomed.id}", headers=auth_headers(root))
    assert response.status_code == 200
    assert response.json()["deletedCount"] == 1

    async with session_factory() as session:
        conversations = (await session.execute(select(Conversation.id))).scalars().all()
        assert conversations == [kept.id]
        for model, column in (
            (Message, Message.conversation_id),
            (ConversationParticipant, ConversationParticipant.conversation_id),
        ):
            count = await session.scalar(select(func.count()).select_from(model).where(column == doomed.id))
            assert count == 0
        assert await session.scalar(select(func.count()).select_from(MessageReceipt)) == 0

    again = await client.delete(f"{BASE}/conversations/{doomed.id}", headers=auth_headers(root))
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_bulk_delete_by_type(
    client: AsyncClient, make_user, make_admin, make_conversation, auth_headers
):
    root = await make_admin("root")
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol")
    await make_conversation(alice, bob)
    await make_conversation(alice, carol)
    group = await make_conversation(alice, bob, carol, type="group", name="Team")

    response = await client.delete(f"{BASE}/conversations/bulk/type/direct", headers=auth_headers(root))
    assert response.json()["deletedCount"] == 2

    listed = await client.get(f"{BASE}/conversations", headers=auth_headers(root))
    assert [c["id"] for c in listed.json()["conversations"]] == [group.id]

    invalid = await client.delete(f"{BASE}/conversations/bulk/type/channel", headers=auth_headers(root))
    assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_moderate_message(client: AsyncClient, make_user, make_admin, make_conversation, auth_headers):
    moderator = await make_admin("mod", role="moderator")
    alice = await make_user("alice")
    bob = await make_user("bob")
    conversation = await make_conversation(alice, bob)
    sent = await client.post(
        "/api/v1/messages",
        json={"conversationId": conversation.id, "content": "offensive"},
        headers=auth_headers(alice),
    )

    response = await client.delete(f"{BASE}/messages/{sent.json()['id']}", headers=auth_headers(moderator))
    assert response.status_code == 200

    history = await client.get(f"/api/v1/messages/{conversation.id}", headers=auth_headers(bob))
    assert history.json()["messages"] == []


@pytest.mark.asyncio
async def test_admin_management(client: AsyncClient, make_admin, auth_headers):
    root = await make_admin("root")

    created = await client.post(
        f"{BASE}/admins",
        json={
            "username": "helper",
            "email": "helper@example.com",
            "password": "helperpass1",
            "firstName": "Help",
            "lastName": "Er",
            "role": "moderator",
        },
        headers=auth_headers(root),
    )
    assert created.status_code == 201
    body = created.json()
    assert body["role"] == "moderator"
    assert body["fullName"] == "Help Er"
    assert body["permissions"] == ["message_management", "user_management"]

    admins = await client.get(f"{BASE}/admins", headers=auth_headers(root))
    assert {a["username"] for a in admins.json()} == {"root", "helper"}

    duplicate = await client.post(
        f"{BASE}/admins",
        json={
            "username": "helper",
            "email": "other@example.com",
            "password": "helperpass1",
            "firstName": "Help",
            "lastName": "Er",
        },
        headers=auth_headers(root),
    )
    assert duplicate.status_code == 409


@pytest.mark.asyncio
async def test_user_details_include_activity(
    client: AsyncClient, make_user, make_admin, make_conversation, auth_headers
):
    root = await make_admin("root")
    alice = await make_user("alice")
    bob = await make_user("bob")
    conversation = await make_conversation(alice, bob)
    await client.post(
        "/api/v1/messages",
        json={"conversationId": conversation.id, "content": "hello"},
        headers=auth_headers(alice),
    )

    response = await client.get(f"{BASE}/users/{alice.id}", headers=auth_headers(root))
    assert response.status_code == 200
    body = response.json()
    assert body["user"]["username"] == "alice"
    assert body["stats"] == {"conversationCount": 1, "messageCount": 1}

    missing = await client.get(f"{BASE}/users/{root.id}", headers=auth_headers(root))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_admin_details_and_activation(client: AsyncClient, make_admin, make_user, auth_headers):
    root = await make_admin("root")
    helper = await make_admin("helper", role="moderator")
    alice = await make_user("alice")

    details = await client.get(f"{BASE}/admins/{helper.id}", headers=auth_headers(root))
    assert details.status_code == 200
    assert details.json()["role"] == "moderator"
    assert (await client.get(f"{BASE}/admins/{alice.id}", headers=auth_headers(root))).status_code == 404

    off = await client.patch(f"{BASE}/admins/{helper.id}/deactivate", headers=auth_headers(root))
    assert off.status_code == 200
    assert off.json()["isActive"] is False
    # A deactivated admin's token stops working
    assert (await client.get("/api/v1/auth/me", headers=auth_headers(helper))).status_code == 401

    on = await client.patch(f"{BASE}/admins/{helper.id}/reactivate", headers=auth_headers(root))
    assert on.json()["isActive"] is True

    itself = await client.patch(f"{BASE}/admins/{root.id}/deactivate", headers=auth_headers(root))
    assert itself.status_code == 400
    assert itself.json()["detail"] == "You cannot deactivate your own account"
