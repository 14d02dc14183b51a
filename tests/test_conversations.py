"""
Conversation Endpoint Tests
"""

import json

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.models.conversation import Conversation, ConversationParticipant
from app.models.message import Message

BASE = "/api/v1/conversations"


@pytest.mark.asyncio
async def test_direct_conversation_is_unique_per_pair(client: AsyncClient, make_user, auth_headers):
    alice = await make_user("alice")
    bob = await make_user("bob")

    first = await client.post(BASE, json={"participants": [bob.id]}, headers=auth_headers(alice))
    assert first.status_code == 201
    created = first.json()
    assert created["type"] == "direct"
    assert {p["id"] for p in created["participants"]} == {alice.id, bob.id}

    # Same pair from the other side, in the other order
    second = await client.post(BASE, json={"participants": [alice.id]}, headers=auth_headers(bob))
    assert second.status_code == 200
    assert second.json()["id"] == created["id"]

    # Creator listed twice collapses to the same pair
    third = await client.post(
        BASE, json={"participants": [alice.id, bob.id]}, headers=auth_headers(alice)
    )
    assert third.json()["id"] == created["id"]


@pytest.mark.asyncio
async def test_participant_count_validation(client: AsyncClient, make_user, auth_headers):
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol")

    too_many = await client.post(
        BASE, json={"participants": [bob.id, carol.id], "type": "direct"}, headers=auth_headers(alice)
    )
    assert too_many.status_code == 400
    assert too_many.json()["detail"] == "Direct conversations must have exactly 2 participants"

    alone = await client.post(
        BASE, json={"participants": [alice.id], "type": "group", "name": "Solo"}, headers=auth_headers(alice)
    )
    assert alone.status_code == 400

    unknown = await client.post(BASE, json={"participants": ["missing-id"]}, headers=auth_headers(alice))
    assert unknown.status_code == 400
    assert unknown.json()["detail"] == "One or more participants not found"


@pytest.mark.asyncio
async def test_non_participant_cannot_read(client: AsyncClient, make_user, make_conversation, auth_headers):
    alice = await make_user("alice")
    bob = await make_user("bob")
    eve = await make_user("eve")
    conversation = await make_conversation(alice, bob)

    response = await client.get(f"{BASE}/{conversation.id}", headers=auth_headers(eve))
    assert response.status_code == 404

    response = await client.get(f"/api/v1/messages/{conversation.id}", headers=auth_headers(eve))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_sorted_by_activity_with_unread(
    client: AsyncClient, make_user, make_conversation, auth_headers
):
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol")
    older = await make_conversation(alice, bob)
    newer = await make_conversation(alice, carol)

    # A message in the older conversation moves it to the top
    sent = await client.post(
        "/api/v1/messages",
        json={"conversationId": older.id, "content": "hi alice"},
        headers=auth_headers(bob),
    )
    assert sent.status_code == 201

    response = await client.get(BASE, headers=auth_headers(alice))
    assert response.status_code == 200
    listed = response.json()
    assert [c["id"] for c in listed] == [older.id, newer.id]
    assert listed[0]["unreadCount"] == 1
    assert listed[0]["lastMessage"]["content"] == "hi alice"
    assert listed[1]["unreadCount"] == 0


@pytest.mark.asyncio
async def test_delete_direct_hides_until_new_message(
    client: AsyncClient, make_user, make_conversation, auth_headers
):
    alice = await make_user("alice")
    bob = await make_user("bob")
    conversation = await make_conversation(alice, bob)

    response = await client.delete(f"{BASE}/{conversation.id}", headers=auth_headers(alice))
    assert response.status_code == 200

    assert (await client.get(BASE, headers=auth_headers(alice))).json() == []
    # Still visible for the other participant
    assert len((await client.get(BASE, headers=auth_headers(bob))).json()) == 1

    await client.post(
        "/api/v1/messages",
        json={"conversationId": conversation.id, "content": "are you there?"},
        headers=auth_headers(bob),
    )
    listed = (await client.get(BASE, headers=auth_headers(alice))).json()
    assert [c["id"] for c in listed] == [conversation.id]


@pytest.mark.asyncio
async def test_update_conversation(client: AsyncClient, make_user, make_conversation, auth_headers):
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol")
    group = await make_conversation(alice, bob, carol, type="group", name="Team")

    response = await client.put(
        f"{BASE}/{group.id}",
        json={"name": "  Renamed  ", "description": "weekly sync"},
        headers=auth_headers(bob),
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"
    assert response.json()["description"] == "weekly sync"


@pytest.mark.asyncio
async def test_group_members_add_and_remove(
    client: AsyncClient, make_user, make_conversation, auth_headers, session_factory
):
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol")
    dave = await make_user("dave")
    group = await make_conversation(alice, bob, carol, type="group", name="Team")

    added = await client.post(
        f"{BASE}/{group.id}/members",
        json={"userIds": [dave.id, bob.id]},
        headers=auth_headers(alice),
    )
    assert added.status_code == 200
    body = added.json()
    assert [u["id"] for u in body["addedUsers"]] == [dave.id]
    assert [u["id"] for u in body["alreadyMembers"]] == [bob.id]
    assert body["totalMembers"] == 4

    members = await client.get(f"{BASE}/{group.id}/members", headers=auth_headers(dave))
    assert members.json()["participantCount"] == 4

    # Only the creator removes others
    refused = await client.delete(f"{BASE}/{group.id}/members/{carol.id}", headers=auth_headers(bob))
    assert refused.status_code == 403

    removed = await client.delete(f"{BASE}/{group.id}/members/{carol.id}", headers=auth_headers(alice))
    assert removed.status_code == 200
    assert removed.json()["removedUserId"] == carol.id

    async with session_factory() as session:
        contents = (
            await session.execute(
                select(Message.content)
                .where(Message.conversation_id == group.id, Message.kind == "system")
                .order_by(Message.created_at)
            )
        ).scalars().all()
    assert contents == ["dave was added to the group", "carol was removed from the group"]


@pytest.mark.asyncio
async def test_members_endpoints_reject_direct(
    client: AsyncClient, make_user, make_conversation, auth_headers
):
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol")
    conversation = await make_conversation(alice, bob)

    response = await client.post(
        f"{BASE}/{conversation.id}/members", json={"userIds": [carol.id]}, headers=auth_headers(alice)
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_leaving_group_below_minimum_deactivates(
    client: AsyncClient, make_user, make_conversation, auth_headers, session_factory
):
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol")
    group = await make_conversation(alice, bob, carol, type="group", name="Trio")

    assert (await client.delete(f"{BASE}/{group.id}", headers=auth_headers(carol))).status_code == 200
    async with session_factory() as session:
        conversation = (
            await session.execute(select(Conversation).where(Conversation.id == group.id))
        ).scalars().one()
        assert conversation.is_active is True
        assert len(conversation.participants) == 2

    assert (await client.delete(f"{BASE}/{group.id}", headers=auth_headers(bob))).status_code == 200
    async with session_factory() as session:
        conversation = (
            await session.execute(select(Conversation).where(Conversation.id == group.id))
        ).scalars().one()
        assert conversation.is_active is False
        remaining = (
            await session.execute(
                select(ConversationParticipant.user_id).where(
                    ConversationParticipant.conversation_id == group.id
                )
            )
        ).scalars().all()
        assert remaining == [alice.id]

    # Archived groups drop out of the listing
    assert (await client.get(BASE, headers=auth_headers(alice))).json() == []


@pytest.mark.asyncio
async def test_archived_group_rejects_new_messages(
    client: AsyncClient, make_user, make_conversation, auth_headers
):
    alice = await make_user("alice")
    bob = await make_user("bob")
    group = await make_conversation(alice, bob, type="group", name="Pair")

    assert (await client.delete(f"{BASE}/{group.id}", headers=auth_headers(bob))).status_code == 200

    response = await client.post(
        "/api/v1/messages",
        json={"conversationId": group.id, "content": "still here?"},
        headers=auth_headers(alice),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "This conversation is no longer active"


@pytest.mark.asyncio
async def test_removing_member_evicts_live_connections(
    client: AsyncClient, make_user, make_conversation, auth_headers, connect, events_of, gateway
):
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol")
    group = await make_conversation(alice, bob, carol, type="group", name="Team")
    alice_conn = await connect(alice)
    bob_conn = await connect(bob)
    carol_conn = await connect(carol)
    for conn in (alice_conn, bob_conn, carol_conn):
        await gateway.handle(conn, json.dumps({"event": "join_conversation", "data": {"conversationId": group.id}}))

    removed = await client.delete(f"{BASE}/{group.id}/members/{carol.id}", headers=auth_headers(alice))
    assert removed.status_code == 200
    left = await client.delete(f"{BASE}/{group.id}", headers=auth_headers(bob))
    assert left.status_code == 200

    for conn in (bob_conn, carol_conn):
        assert events_of(conn, "removed_from_conversation") == [{"conversationId": group.id}]
    assert gateway.rooms.members(f"conversation:{group.id}") == {alice_conn}


@pytest.mark.asyncio
async def test_available_users_excludes_members_and_inactive(
    client: AsyncClient, make_user, make_conversation, auth_headers, connect, events_of
):
    alice = await make_user("alice")
    bob = await make_user("bob")
    carol = await make_user("carol")
    dave = await make_user("dave")
    erin = await make_user("erin")
    group = await make_conversation(alice, bob, type="group", name="Team")
    await client.delete("/api/v1/users/account", headers=auth_headers(erin))

    response = await client.get(f"{BASE}/{group.id}/available-users", headers=auth_headers(alice))
    assert response.status_code == 200
    assert [u["username"] for u in response.json()] == ["carol", "dave"]

    # Adding a member tells their live connections
    dave_conn = await connect(dave)
    await client.post(f"{BASE}/{group.id}/members", json={"userIds": [dave.id]}, headers=auth_headers(alice))
    assert events_of(dave_conn, "added_to_conversation") == [{"conversationId": group.id}]
    after = await client.get(f"{BASE}/{group.id}/available-users", headers=auth_headers(alice))
    assert [u["id"] for u in after.json()] == [carol.id]

    outsider = await client.get(f"{BASE}/{group.id}/available-users", headers=auth_headers(carol))
    assert outsider.status_code == 404

    direct = await make_conversation(alice, carol)
    refused = await client.get(f"{BASE}/{direct.id}/available-users", headers=auth_headers(alice))
    assert refused.status_code == 400
