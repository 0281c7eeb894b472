"""Chat transcript export and import (JSON snapshot)."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from ember.chat.models import Message
from ember.prompt.formats import PromptFormat, parse_prompt_format

SNAPSHOT_VERSION = "1.0"
APP_NAME = "Ember"


class TranscriptError(ValueError):
    """Raised when a transcript file is not a valid chat snapshot."""


def export_snapshot(
    messages: list[Message] | tuple[Message, ...],
    model_name: str | None,
    prompt_format: PromptFormat,
) -> dict[str, Any]:
    """Return the JSON-serialisable snapshot of a conversation."""
    return {
        "version": SNAPSHOT_VERSION,
        "appName": APP_NAME,
        "exportedAt": datetime.now().isoformat(),
        "modelName": model_name,
        "promptFormat": prompt_format.value,
        "messageCount": len(messages),
        "messages": [m.to_dict() for m in messages],
    }


def import_snapshot(data: Any) -> tuple[list[Message], PromptFormat | None]:
    """Parse a snapshot produced by export_snapshot().

    Returns:
        (messages, prompt_format). The format is None when absent or unknown.

    Raises:
        TranscriptError: Missing ``version``/``messages`` or malformed messages.
    """
    if not isinstance(data, dict) or "version" not in data or "messages" not in data:
        raise TranscriptError("Invalid chat export file format")
    raw_messages = data["messages"]
    if not isinstance(raw_messages, list):
        raise TranscriptError("Invalid chat export file format: 'messages' must be a list")

    messages: list[Message] = []
    for i, item in enumerate(raw_messages):
        if not isinstance(item, dict):
            raise TranscriptError(f"Message {i} is not an object")
        try:
            messages.append(Message.from_dict(item))
        except (KeyError, TypeError, ValueError) as exc:
            raise TranscriptError(f"Message {i} is invalid: {exc}") from exc

    prompt_format: PromptFormat | None = None
    if name := data.get("promptFormat"):
        try:
            prompt_format = parse_prompt_format(str(name))
        except ValueError:
            prompt_format = None
    return messages, prompt_format


def save_transcript(
    path: Path | str,
    messages: list[Message] | tuple[Message, ...],
    model_name: str | None,
    prompt_format: PromptFormat,
) -> Path:
    """Write the snapshot to *path* as indented JSON and return the path."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    snapshot = export_snapshot(messages, model_name, prompt_format)
    target.write_text(json.dumps(snapshot, indent=2, ensure_ascii=False), encoding="utf-8")
    return target


def load_transcript(path: Path | str) -> tuple[list[Message], PromptFormat | None]:
    """Read a snapshot file.

    Raises:
        FileNotFoundError: If *path* does not exist.
        TranscriptError: If the file is not valid snapshot JSON.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise TranscriptError(f"Not valid JSON: {exc}") from exc
    return import_snapshot(data)
