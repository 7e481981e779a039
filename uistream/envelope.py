"""Request body shape of the chat endpoint and message-id resolution."""

from __future__ import annotations

import base64
import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class EnvelopePartType(StrEnum):
    """Kinds of content carried by an envelope part."""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    TOOL_INVOCATION = "tool-invocation"


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise TypeError(f"{what} must be a JSON object, not {type(data).__name__}")
    return data


def _get_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError(f"{key!r} must be a string, not {type(value).__name__}")
    return value


def _get_map(data: Mapping[str, Any], key: str) -> dict[str, Any] | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise TypeError(f"{key!r} must be an object, not {type(value).__name__}")
    return dict(value)


def _get_list(data: Mapping[str, Any], key: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"{key!r} must be an array, not {type(value).__name__}")
    return value


def _part_type(raw: str) -> EnvelopePartType | str:
    try:
        return EnvelopePartType(raw)
    except ValueError:
        return raw


@dataclass
class EnvelopePart:
    """One content part of a message; only fields matching ``type`` are set."""

    type: EnvelopePartType | str
    text: str = ""
    url: str = ""
    media_type: str = ""
    name: str = ""
    file_id: str = ""
    data: bytes = b""
    tool_call_id: str = ""
    tool_name: str = ""
    tool_input: Any = None
    output: str = ""
    state: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EnvelopePart:
        data = _require_mapping(data, "part")
        encoded = _get_str(data, "data")
        return cls(
            type=_part_type(_get_str(data, "type")),
            text=_get_str(data, "text"),
            url=_get_str(data, "url"),
            media_type=_get_str(data, "mediaType"),
            name=_get_str(data, "name"),
            file_id=_get_str(data, "fileId"),
            data=base64.b64decode(encoded, validate=True) if encoded else b"",
            tool_call_id=_get_str(data, "toolCallId"),
            tool_name=_get_str(data, "toolName"),
            tool_input=data.get("input"),
            output=_get_str(data, "output"),
            state=_get_str(data, "state"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": str(self.type)}
        optional = [
            ("text", self.text),
            ("url", self.url),
            ("mediaType", self.media_type),
            ("name", self.name),
            ("fileId", self.file_id),
            ("data", base64.b64encode(self.data).decode("ascii") if self.data else ""),
            ("toolCallId", self.tool_call_id),
            ("toolName", self.tool_name),
        ]
        out.update((key, value) for key, value in optional if value)
        if self.tool_input is not None:
            out["input"] = self.tool_input
        if self.output:
            out["output"] = self.output
        if self.state:
            out["state"] = self.state
        return out


@dataclass
class EnvelopeMessage:
    """A message in the conversation history of a chat request."""

    role: str
    id: str = ""
    parts: list[EnvelopePart] = field(default_factory=list)
    content: str = ""
    metadata: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EnvelopeMessage:
        data = _require_mapping(data, "message")
        return cls(
            role=_get_str(data, "role"),
            id=_get_str(data, "id"),
            parts=[EnvelopePart.from_dict(p) for p in _get_list(data, "parts")],
            content=_get_str(data, "content"),
            metadata=_get_map(data, "metadata"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.id:
            out["id"] = self.id
        out["role"] = self.role
        if self.parts:
            out["parts"] = [p.to_dict() for p in self.parts]
        if self.content:
            out["content"] = self.content
        if self.metadata:
            out["metadata"] = self.metadata
        return out


@dataclass
class ChatRequestEnvelope:
    """The request body of the chat endpoint."""

    id: str = ""
    messages: list[EnvelopeMessage] = field(default_factory=list)
    body: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    trigger: str = ""
    message_id: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ChatRequestEnvelope:
        data = _require_mapping(data, "envelope")
        return cls(
            id=_get_str(data, "id"),
            messages=[EnvelopeMessage.from_dict(m) for m in _get_list(data, "messages")],
            body=_get_map(data, "body"),
            metadata=_get_map(data, "metadata"),
            trigger=_get_str(data, "trigger"),
            message_id=_get_str(data, "messageId"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "messages": [m.to_dict() for m in self.messages],
        }
        if self.body:
            out["body"] = self.body
        if self.metadata:
            out["metadata"] = self.metadata
        if self.trigger:
            out["trigger"] = self.trigger
        if self.message_id:
            out["messageId"] = self.message_id
        return out

    @classmethod
    def from_json(cls, text: str | bytes) -> ChatRequestEnvelope:
        """Decode an envelope from JSON text; raises ValueError or TypeError on bad input."""
        return cls.from_dict(json.loads(text))

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)


def resolve_message_id(messages: Sequence[EnvelopeMessage], fallback: str) -> str:
    """Return the id of a trailing assistant message, else ``fallback``."""
    if not messages:
        return fallback
    last = messages[-1]
    if last.role == "assistant" and last.id:
        return last.id
    return fallback


def resolve_message_id_from_envelope(envelope: ChatRequestEnvelope, fallback: str) -> str:
    """Prefer the envelope's explicit message id, then a trailing assistant id, then ``fallback``."""
    if envelope.message_id:
        return envelope.message_id
    return resolve_message_id(envelope.messages, fallback)