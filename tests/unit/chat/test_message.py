"""Tests for the Message model."""

from __future__ import annotations

import dataclasses
from datetime import datetime

import pytest

from ember.chat.models import Message


def test_empty_content_rejected():
    with pytest.raises(ValueError):
        Message(content="", is_user=True)


def test_error_message_cannot_carry_reasoning():
    with pytest.raises(ValueError):
        Message(content="Error: boom", is_user=False, is_error=True, reasoning="why")


def test_sources_stored_as_tuple():
    msg = Message(content="Answer", is_user=False, source_documents=["a.md", "b.md"])
    assert msg.source_documents == ("a.md", "b.md")
    assert msg.has_sources


def test_flags():
    msg = Message(content="Answer", is_user=False, reasoning="thought")
    assert msg.has_reasoning
    assert not msg.has_sources
    assert not Message(content="Hi", is_user=True).has_reasoning


def test_messages_are_immutable():
    msg = Message(content="Hi", is_user=True)
    with pytest.raises(dataclasses.FrozenInstanceError):
        msg.content = "changed"


def test_with_changes_returns_copy():
    msg = Message(content="Hi", is_user=True)
    changed = msg.with_changes(content="Hello")
    assert changed.content == "Hello"
    assert msg.content == "Hi"
    assert changed.timestamp == msg.timestamp


def test_to_dict_uses_camel_case():
    ts = datetime(2024, 5, 1, 12, 30)
    data = Message(content="Answer", is_user=False, timestamp=ts, source_documents=("a.md",)).to_dict()
    assert data == {
        "content": "Answer",
        "isUser": False,
        "timestamp": "2024-05-01T12:30:00",
        "isError": False,
        "sourceDocuments": ["a.md"],
    }


def test_from_dict_defaults():
    msg = Message.from_dict({"content": "Hi", "isUser": True})
    assert msg.is_user
    assert not msg.is_error
    assert msg.reasoning is None
    assert msg.source_documents is None


def test_from_dict_missing_field():
    with pytest.raises(KeyError):
        Message.from_dict({"content": "Hi"})
