"""
Tests for direct message persistence.
"""
import pytest

from draftio.services.messages import MessageService, generate_conversation_id

pytestmark = [pytest.mark.anyio, pytest.mark.integration]


def test_conversation_id_is_order_independent():
    assert generate_conversation_id("b", "a") == "a_b"
    assert generate_conversation_id("a", "b") == "a_b"


async def test_send_message_sets_conversation(test_session):
    message = await MessageService(test_session).send_message("u2", "u1", "hello")

    assert message.id is not None
    assert message.conversation_id == "u1_u2"
    assert message.is_read is False
    assert message.is_deleted is False
    assert message.created_at is not None


async def test_history_pages_newest_first_oldest_first_within_page(test_session):
    service = MessageService(test_session)
    for i in range(5):
        await service.send_message("u1" if i % 2 == 0 else "u2", "u2" if i % 2 == 0 else "u1", f"m{i}")

    page1 = await service.get_messages("u1", "u2", page=1, limit=2)
    assert [m.content for m in page1["messages"]] == ["m3", "m4"]
    assert page1["total"] == 5
    assert page1["has_more"] is True

    page3 = await service.get_messages("u2", "u1", page=3, limit=2)
    assert [m.content for m in page3["messages"]] == ["m0"]
    assert page3["has_more"] is False


async def test_history_excludes_other_conversations(test_session):
    service = MessageService(test_session)
    await service.send_message("u1", "u2", "for bob")
    await service.send_message("u1", "u3", "for carol")

    result = await service.get_messages("u1", "u2")
    assert [m.content for m in result["messages"]] == ["for bob"]


async def test_mark_as_read_only_touches_incoming(test_session):
    service = MessageService(test_session)
    await service.send_message("u2", "u1", "incoming 1")
    await service.send_message("u2", "u1", "incoming 2")
    await service.send_message("u1", "u2", "outgoing")

    assert await service.get_unread_count("u1") == 2
    assert await service.mark_as_read("u1", "u2") == 2
    assert await service.get_unread_count("u1") == 0
    assert await service.get_unread_count("u2") == 1


async def test_delete_is_sender_only_and_soft(test_session):
    service = MessageService(test_session)
    message = await service.send_message("u1", "u2", "oops")

    assert await service.delete_message(message.id, "u2") is False
    assert await service.delete_message(message.id, "u1") is True
    assert await service.delete_message(message.id, "u1") is False

    result = await service.get_messages("u1", "u2")
    assert result["messages"] == []
    assert result["total"] == 0


async def test_conversations_derived_from_messages(test_session):
    service = MessageService(test_session)
    await service.send_message("u2", "u1", "from bob")
    await service.send_message("u1", "u3", "to carol")
    await service.send_message("u1", "u2", "reply to bob")

    conversations = await service.get_conversations("u1")

    assert [c["participants"] for c in conversations] == [["u1", "u2"], ["u1", "u3"]]
    assert conversations[0]["last_message"] == "reply to bob"
    assert conversations[1]["last_message"] == "to carol"


async def test_unread_by_conversation(test_session):
    service = MessageService(test_session)
    await service.send_message("u2", "u1", "a")
    await service.send_message("u3", "u1", "b")
    await service.send_message("u3", "u1", "c")

    assert await service.get_unread_by_conversation("u1", "u2") == 1
    assert await service.get_unread_by_conversation("u1", "u3") == 2
