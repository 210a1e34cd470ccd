"""Conversation records and the local JSON loader."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional

from transcript_viewer.segment_codec import segments_from_list, segments_to_list
from transcript_viewer.segmenter import Segment, segment

logger = logging.getLogger(__name__)

ROLES = ("user", "assistant", "system")


class ConversationLoadError(RuntimeError):
    """Raised when a conversation record cannot be read."""


@dataclass
class Message:
    role: str
    content: str
    precomputed: Optional[list[Segment]] = field(default=None, repr=False)

    @property
    def is_user(self) -> bool:
        return self.role == "user"

    def segments(self) -> list[Segment]:
        """Segments for rendering; user messages are never segmented."""
        if self.is_user:
            return []
        if self.precomputed is not None:
            return self.precomputed
        return segment(self.content)


@dataclass
class Conversation:
    id: str = ""
    title: str = ""
    model: str = ""
    created_at: Optional[str] = None
    messages: list[Message] = field(default_factory=list)

    @property
    def display_title(self) -> str:
        return self.title or "Untitled conversation"


def _coerce_messages(raw: Any) -> list[Any]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            logger.exception("Failed to parse messages string")
            return []
    if isinstance(raw, list):
        return raw
    if isinstance(raw, Mapping):
        return [raw]
    if raw is not None:
        logger.warning("Ignoring messages of type %s", type(raw).__name__)
    return []


def _message_from_mapping(raw: Any, position: int) -> Optional[Message]:
    if not isinstance(raw, Mapping):
        logger.warning("Skipping message %s: not an object", position)
        return None
    role = raw.get("role")
    content = raw.get("content")
    if role not in ROLES:
        logger.warning("Skipping message %s with role %r", position, role)
        return None
    if not isinstance(content, str):
        logger.warning("Skipping message %s: content is not text", position)
        return None
    precomputed = None
    stored = raw.get("segments")
    if role != "user" and isinstance(stored, list):
        precomputed = segments_from_list(stored)
    return Message(role=role, content=content, precomputed=precomputed)


def _text_field(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    return str(value)


def conversation_from_mapping(raw: Mapping[str, Any]) -> Conversation:
    messages = []
    for position, item in enumerate(_coerce_messages(raw.get("messages"))):
        message = _message_from_mapping(item, position)
        if message is not None:
            messages.append(message)
    created_at = raw.get("created_at")
    return Conversation(
        id=_text_field(raw, "id"),
        title=_text_field(raw, "title"),
        model=_text_field(raw, "model"),
        created_at=str(created_at) if created_at is not None else None,
        messages=messages,
    )


def load_conversation(path: Path) -> Conversation:
    """Read a conversation record from ``path``."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConversationLoadError(f"Cannot read {path}: {exc}") from exc
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConversationLoadError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ConversationLoadError(f"{path} does not contain a conversation object")
    conversation = conversation_from_mapping(raw)
    logger.info(
        "Loaded conversation id=%s messages=%s from %s",
        conversation.id,
        len(conversation.messages),
        path,
    )
    return conversation


def conversation_to_mapping(
    conversation: Conversation, *, include_segments: bool = False
) -> dict[str, Any]:
    messages = []
    for message in conversation.messages:
        item: dict[str, Any] = {"role": message.role, "content": message.content}
        if include_segments and not message.is_user:
            item["segments"] = segments_to_list(message.segments())
        messages.append(item)
    data: dict[str, Any] = {
        "id": conversation.id,
        "title": conversation.title,
        "model": conversation.model,
    }
    if conversation.created_at is not None:
        data["created_at"] = conversation.created_at
    data["messages"] = messages
    return data
