"""
Tests for inbound relay payload normalization.
"""
from datetime import datetime, timezone

from draftio.client.normalizer import (
    normalize_message,
    normalize_online_status,
    normalize_presence,
    normalize_typing,
)


class ObjectId:
    def __init__(self, value):
        self.value = value

    def __str__(self):
        return self.value


class TestNormalizeMessage:
    """Messages arrive in camelCase from the relay and snake_case from elsewhere."""

    def test_camel_case_payload(self):
        msg = normalize_message({
            "_id": "m1",
            "senderId": "u2",
            "receiverId": "u1",
            "conversationId": "u1_u2",
            "content": "hello",
            "createdAt": "2024-05-01T10:00:00+00:00",
        })

        assert msg.id == "m1"
        assert msg.sender_id == "u2"
        assert msg.receiver_id == "u1"
        assert msg.conversation_id == "u1_u2"
        assert msg.message == "hello"
        assert msg.created_at == "2024-05-01T10:00:00+00:00"

    def test_snake_case_payload(self):
        msg = normalize_message({
            "id": "m2",
            "sender_id": "u3",
            "receiver_id": "u1",
            "conversation_id": "u1_u3",
            "message": "hi",
            "created_at": "2024-05-01T11:00:00Z",
        })

        assert msg.id == "m2"
        assert msg.sender_id == "u3"
        assert msg.message == "hi"
        assert msg.created_at == "2024-05-01T11:00:00Z"

    def test_underscore_id_wins_over_id(self):
        msg = normalize_message({"_id": "mongo", "id": "plain"})
        assert msg.id == "mongo"

    def test_none_values_fall_through_to_next_key(self):
        msg = normalize_message({"senderId": None, "sender_id": "u5"})
        assert msg.sender_id == "u5"

    def test_missing_fields_become_empty(self):
        msg = normalize_message({})

        assert msg.id == ""
        assert msg.sender_id == ""
        assert msg.receiver_id == ""
        assert msg.conversation_id == ""
        assert msg.message == ""
        # created_at always gets a timestamp
        assert msg.created_at != ""

    def test_non_mapping_input_is_total(self):
        for raw in (None, "garbage", 42, ["list"]):
            msg = normalize_message(raw)
            assert msg.id == ""
            assert msg.message == ""

    def test_object_ids_and_datetimes_are_stringified(self):
        created = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        msg = normalize_message({"_id": ObjectId("abc123"), "createdAt": created, "senderId": 7})

        assert msg.id == "abc123"
        assert msg.created_at == created.isoformat()
        assert msg.sender_id == "7"

    def test_unrepresentable_values_are_dropped(self):
        msg = normalize_message({"content": object()})
        assert msg.message == ""

    def test_failing_str_is_dropped(self):
        class Broken:
            def __str__(self):
                raise RuntimeError("cannot render")

        msg = normalize_message({"_id": Broken(), "senderId": "u2", "content": "hi"})

        assert msg.id == ""
        assert msg.sender_id == "u2"
        assert msg.message == "hi"


class TestNormalizeEvents:
    def test_presence(self):
        assert normalize_presence({"userId": "u1"}) == "u1"
        assert normalize_presence({"user_id": "u2"}) == "u2"
        assert normalize_presence({}) == ""
        assert normalize_presence(None) == ""

    def test_typing(self):
        assert normalize_typing({"senderId": "u1", "isTyping": True}) == ("u1", True)
        assert normalize_typing({"senderId": "u1", "isTyping": False}) == ("u1", False)

    def test_typing_flag_must_be_true(self):
        # Truthy non-bool values do not count as typing
        assert normalize_typing({"senderId": "u1", "isTyping": "yes"}) == ("u1", False)
        assert normalize_typing(None) == ("", False)

    def test_online_status(self):
        assert normalize_online_status({"userId": "u1", "isOnline": True}) == ("u1", True)
        assert normalize_online_status({"userId": "u1"}) == ("u1", False)
