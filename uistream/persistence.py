"""Accumulation of stream chunks into typed message parts for storage."""

from __future__ import annotations

import base64
import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from uistream.chunks import Chunk, ChunkType


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"object of type {type(value).__name__} is not JSON serializable")


def _dumps(value: Any) -> str:
    return json.dumps(
        value,
        default=_json_default,
        separators=(",", ":"),
        sort_keys=True,
        ensure_ascii=False,
    )


def _str(fields: dict[str, Any], key: str) -> str:
    value = fields.get(key)
    return value if isinstance(value, str) else ""


def _apply_tool_flags(part: dict[str, Any], fields: dict[str, Any]) -> None:
    for key in ("providerExecuted", "dynamic", "preliminary"):
        value = fields.get(key)
        if isinstance(value, bool):
            part[key] = value
    title = _str(fields, "title")
    if title:
        part["title"] = title


@dataclass(slots=True)
class _PendingTool:
    tool_call_id: str
    tool_name: str = ""
    state: str = ""
    input: Any = None
    output: Any = None


class PersistedMessageBuilder:
    """Collects stream chunks into the typed parts of an assistant message."""

    def __init__(self) -> None:
        self._text: list[str] = []
        self._reasoning: list[str] = []
        self._signature = ""
        self._pending: dict[str, _PendingTool] = {}
        self._parts: list[dict[str, Any]] = []
        self._metadata: str | None = None
        self._handlers: dict[str, Callable[[dict[str, Any]], None]] = {
            ChunkType.TEXT_START: self._text_start,
            ChunkType.TEXT_DELTA: self._text_delta,
            ChunkType.TEXT_END: self._text_end,
            ChunkType.REASONING_START: self._reasoning_start,
            ChunkType.REASONING_DELTA: self._reasoning_delta,
            ChunkType.REASONING_END: self._reasoning_end,
            ChunkType.TOOL_INPUT_AVAILABLE: self._tool_input,
            ChunkType.TOOL_OUTPUT_AVAILABLE: self._tool_output,
            ChunkType.TOOL_INPUT_ERROR: self._tool_input_error,
            ChunkType.TOOL_OUTPUT_ERROR: self._tool_output_error,
            ChunkType.TOOL_OUTPUT_DENIED: self._tool_output_denied,
            ChunkType.SOURCE_URL: self._source_url,
            ChunkType.SOURCE_DOCUMENT: self._source_document,
            ChunkType.FILE: self._file,
            ChunkType.MESSAGE_METADATA: self._message_metadata,
        }

    def observe_chunk(self, chunk: Chunk) -> None:
        """Update the accumulated state with one chunk."""
        fields = chunk.fields or {}
        handler = self._handlers.get(str(chunk.type))
        if handler is None:
            self._data_chunk(str(chunk.type), fields)
        else:
            handler(fields)

    def content(self) -> str:
        """Return all text parts joined together."""
        return "".join(
            p["text"]
            for p in self._parts
            if p.get("type") == "text" and isinstance(p.get("text"), str)
        )

    def parts(self) -> str | None:
        """Return the parts as a JSON array, or None when there are none."""
        if not self._parts:
            return None
        try:
            return _dumps(self._parts)
        except (TypeError, ValueError):
            return None

    def metadata(self) -> str | None:
        """Return the message metadata as JSON, or None when none was seen."""
        return self._metadata

    def _text_start(self, fields: dict[str, Any]) -> None:
        self._text.clear()

    def _text_delta(self, fields: dict[str, Any]) -> None:
        delta = fields.get("delta")
        if isinstance(delta, str):
            self._text.append(delta)

    def _text_end(self, fields: dict[str, Any]) -> None:
        text = "".join(self._text)
        if text:
            self._parts.append({"type": "text", "text": text})
            self._text.clear()

    def _reasoning_start(self, fields: dict[str, Any]) -> None:
        self._reasoning.clear()
        self._signature = ""

    def _reasoning_delta(self, fields: dict[str, Any]) -> None:
        delta = fields.get("delta")
        if isinstance(delta, str):
            self._reasoning.append(delta)
        signature = _str(fields, "signature")
        if signature:
            self._signature = signature

    def _reasoning_end(self, fields: dict[str, Any]) -> None:
        signature = _str(fields, "signature")
        if signature:
            self._signature = signature
        reasoning = "".join(self._reasoning)
        if reasoning:
            part: dict[str, Any] = {"type": "reasoning", "reasoning": reasoning}
            if self._signature:
                part["signature"] = self._signature
            self._parts.append(part)
            self._reasoning.clear()
            self._signature = ""

    def _message_metadata(self, fields: dict[str, Any]) -> None:
        meta = fields.get("messageMetadata")
        if meta is None:
            return
        try:
            self._metadata = _dumps(meta)
        except (TypeError, ValueError):
            pass

    def _tool(self, call_id: str, state: str = "") -> _PendingTool:
        tool = self._pending.get(call_id)
        if tool is None:
            tool = _PendingTool(call_id, state=state)
            self._pending[call_id] = tool
        return tool

    def _tool_input(self, fields: dict[str, Any]) -> None:
        call_id = _str(fields, "toolCallId")
        if not call_id:
            return
        tool = self._tool(call_id, "input-available")
        tool.input = fields.get("input")
        tool.tool_name = _str(fields, "toolName")

    def _finalize(self, call_id: str, part: dict[str, Any], fields: dict[str, Any]) -> None:
        _apply_tool_flags(part, fields)
        self._parts.append(part)
        self._pending.pop(call_id, None)

    def _tool_output(self, fields: dict[str, Any]) -> None:
        call_id = _str(fields, "toolCallId")
        if not call_id:
            return
        tool = self._tool(call_id, "output-available")
        tool.output = fields.get("output")
        tool.state = "output-available"
        part = {
            "type": "tool-invocation",
            "toolCallId": tool.tool_call_id,
            "toolName": tool.tool_name,
            "state": tool.state,
            "input": tool.input,
            "output": tool.output,
        }
        self._finalize(call_id, part, fields)

    def _tool_input_error(self, fields: dict[str, Any]) -> None:
        call_id = _str(fields, "toolCallId")
        if not call_id:
            return
        part = {
            "type": "tool-invocation",
            "toolCallId": call_id,
            "toolName": _str(fields, "toolName"),
            "state": "error",
            "input": fields.get("input"),
            "errorText": _str(fields, "errorText"),
        }
        self._finalize(call_id, part, fields)

    def _tool_output_error(self, fields: dict[str, Any]) -> None:
        call_id = _str(fields, "toolCallId")
        if not call_id:
            return
        tool = self._tool(call_id)
        part = {
            "type": "tool-invocation",
            "toolCallId": tool.tool_call_id,
            "toolName": tool.tool_name,
            "state": "error",
            "input": tool.input,
            "errorText": _str(fields, "errorText"),
        }
        self._finalize(call_id, part, fields)

    def _tool_output_denied(self, fields: dict[str, Any]) -> None:
        call_id = _str(fields, "toolCallId")
        if not call_id:
            return
        tool = self._tool(call_id)
        part = {
            "type": "tool-invocation",
            "toolCallId": tool.tool_call_id,
            "toolName": tool.tool_name,
            "state": "denied",
            "input": tool.input,
        }
        self._finalize(call_id, part, fields)

    def _source_url(self, fields: dict[str, Any]) -> None:
        self._parts.append(
            {
                "type": "source-url",
                "id": _str(fields, "sourceId"),
                "url": _str(fields, "url"),
                "title": _str(fields, "title"),
            }
        )

    def _source_document(self, fields: dict[str, Any]) -> None:
        part: dict[str, Any] = {
            "type": "source-document",
            "id": _str(fields, "sourceId"),
            "title": _str(fields, "title"),
            "mediaType": _str(fields, "mediaType"),
        }
        filename = _str(fields, "filename")
        if filename:
            part["filename"] = filename
        for key in ("data", "providerMetadata"):
            if fields.get(key) is not None:
                part[key] = fields[key]
        self._parts.append(part)

    def _file(self, fields: dict[str, Any]) -> None:
        part: dict[str, Any] = {"type": "file"}
        for key in ("url", "mediaType", "name", "id", "fileId"):
            value = _str(fields, key)
            if value:
                part[key] = value
        for key in ("data", "providerMetadata"):
            if fields.get(key) is not None:
                part[key] = fields[key]
        self._parts.append(part)

    def _data_chunk(self, chunk_type: str, fields: dict[str, Any]) -> None:
        if not chunk_type.startswith("data-"):
            return
        if fields.get("transient") is True:
            return
        self._parts.append(
            {
                "type": "data",
                "name": chunk_type.removeprefix("data-"),
                "data": fields.get("data"),
                "isTransient": False,
            }
        )