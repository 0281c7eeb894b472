"""Conversation message model."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Message:
    """One turn of the conversation transcript.

    Messages are immutable; derive a changed copy with ``with_changes()``.
    Error messages (``is_error=True``) never carry reasoning and are never
    replayed into a prompt.
    """

    content: str
    is_user: bool
    timestamp: datetime = field(default_factory=datetime.now)
    is_error: bool = False
    reasoning: str | None = None
    source_documents: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if not self.content:
            raise ValueError("Message content must not be empty")
        if self.is_error and self.reasoning:
            raise ValueError("Error messages cannot carry reasoning")
        if self.source_documents is not None:
            object.__setattr__(self, "source_documents", tuple(self.source_documents))

    @property
    def has_reasoning(self) -> bool:
        return bool(self.reasoning)

    @property
    def has_sources(self) -> bool:
        return bool(self.source_documents)

    def with_changes(self, **changes: Any) -> Message:
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the transcript JSON shape (camelCase keys)."""
        data: dict[str, Any] = {
            "content": self.content,
            "isUser": self.is_user,
            "timestamp": self.timestamp.isoformat(),
            "isError": self.is_error,
        }
        if self.reasoning is not None:
            data["reasoning"] = self.reasoning
        if self.source_documents is not None:
            data["sourceDocuments"] = list(self.source_documents)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        """Build a Message from transcript JSON.

        Raises:
            KeyError: If ``content`` or ``isUser`` is missing.
            ValueError: If a field has an invalid value.
        """
        raw_ts = data.get("timestamp")
        sources = data.get("sourceDocuments")
        return cls(
            content=str(data["content"]),
            is_user=bool(data["isUser"]),
            timestamp=datetime.fromisoformat(raw_ts) if raw_ts else datetime.now(),
            is_error=bool(data.get("isError", False)),
            reasoning=data.get("reasoning"),
            source_documents=tuple(str(s) for s in sources) if sources is not None else None,
        )
