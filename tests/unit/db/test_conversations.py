"""Tests for ConversationRepository."""

from __future__ import annotations

import pytest

from ragchat.db.models import DocumentSource
from ragchat.errors import NotFoundError, ValidationError


def test_round_trip_preserves_order_and_roles(conversations):
    conv = conversations.create_conversation()
    conversations.add_message(conv.id, "user", "What are your hours?")
    conversations.add_message(conv.id, "assistant", "9 to 5.")

    history = conversations.get_conversation_with_messages(conv.id)
    assert history is not None
    assert [(m.role, m.content) for m in history.messages] == [
        ("user", "What are your hours?"),
        ("assistant", "9 to 5."),
    ]
    assert history.conversation.updated_at >= history.conversation.created_at


def test_add_message_touches_conversation(conversations):
    conv = conversations.create_conversation()
    conversations.add_message(conv.id, "user", "hi")
    reloaded = conversations.find_conversation_by_id(conv.id)
    assert reloaded.updated_at >= conv.updated_at


def test_sources_are_snapshotted(conversations):
    conv = conversations.create_conversation()
    source = DocumentSource(id="d1", content="Open 9-5", metadata={"source": "faq.md"}, similarity=0.91)
    conversations.add_message(conv.id, "assistant", "9 to 5.", sources=[source])

    [message] = conversations.get_messages(conv.id)
    assert message.sources == [source]
    assert message.conversation_id == conv.id


def test_messages_default_to_no_sources(conversations):
    conv = conversations.create_conversation()
    message = conversations.add_message(conv.id, "user", "hi")
    assert message.sources == []


def test_add_message_unknown_conversation(conversations):
    with pytest.raises(NotFoundError):
        conversations.add_message("nope", "user", "hi")


def test_add_message_rejects_unknown_role(conversations):
    conv = conversations.create_conversation()
    with pytest.raises(ValidationError):
        conversations.add_message(conv.id, "system", "hi")


def test_get_conversation_with_messages_missing(conversations):
    assert conversations.get_conversation_with_messages("nope") is None


def test_get_messages_unknown_conversation_is_empty(conversations):
    assert conversations.get_messages("nope") == []


def test_delete_conversation_removes_messages(conversations):
    conv = conversations.create_conversation()
    conversations.add_message(conv.id, "user", "hi")
    assert conversations.delete_conversation(conv.id) is True
    assert conversations.find_conversation_by_id(conv.id) is None
    assert conversations.get_messages(conv.id) == []
    assert conversations.delete_conversation(conv.id) is False


def test_recent_conversations_newest_first(conversations):
    first = conversations.create_conversation()
    second = conversations.create_conversation()
    recent = conversations.get_recent_conversations()
    assert [c.id for c in recent] == [second.id, first.id]
    assert [c.id for c in conversations.get_recent_conversations(limit=1, offset=1)] == [first.id]


def test_message_to_dict_uses_wire_names(conversations):
    conv = conversations.create_conversation()
    data = conversations.add_message(conv.id, "user", "hi").to_dict()
    assert data["conversationId"] == conv.id
    assert set(data) == {"id", "conversationId", "role", "content", "sources", "createdAt"}
