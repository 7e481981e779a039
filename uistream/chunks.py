"""Chunk types of the UI message stream and their server-sent-event encoding."""

from __future__ import annotations

import base64
import json
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TextIO

DONE_FRAME = "data: [DONE]\n\n"


class ChunkType(StrEnum):
    """Wire names of the chunk types in the UI message stream protocol."""

    START = "start"
    START_STEP = "start-step"
    TEXT_START = "text-start"
    TEXT_DELTA = "text-delta"
    TEXT_END = "text-end"
    REASONING_START = "reasoning-start"
    REASONING_DELTA = "reasoning-delta"
    REASONING_END = "reasoning-end"
    TOOL_INPUT_START = "tool-input-start"
    TOOL_INPUT_DELTA = "tool-input-delta"
    TOOL_INPUT_AVAILABLE = "tool-input-available"
    TOOL_OUTPUT_AVAILABLE = "tool-output-available"
    FINISH_STEP = "finish-step"
    FINISH = "finish"
    ERROR = "error"
    SOURCE = "source"
    SOURCES = "sources"
    MESSAGE_METADATA = "message-metadata"
    ABORT = "abort"
    TOOL_INPUT_ERROR = "tool-input-error"
    TOOL_OUTPUT_ERROR = "tool-output-error"
    TOOL_OUTPUT_DENIED = "tool-output-denied"
    TOOL_APPROVAL_REQUEST = "tool-approval-request"
    SOURCE_URL = "source-url"
    SOURCE_DOCUMENT = "source-document"
    FILE = "file"


@dataclass(slots=True)
class Chunk:
    """A typed stream chunk: its type name and its payload fields."""

    type: str
    fields: dict[str, Any] | None = None


def with_provider_metadata(
    fields: dict[str, Any] | None, provider_metadata: dict[str, Any] | None
) -> dict[str, Any] | None:
    """Attach ``providerMetadata`` to ``fields`` when it is given.

    ``fields`` is updated in place; a new dict is made when it is None.
    """
    if provider_metadata is None:
        return fields
    if fields is None:
        fields = {}
    fields["providerMetadata"] = provider_metadata
    return fields


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"object of type {type(value).__name__} is not JSON serializable")


def encode_sse(chunk: Chunk) -> str:
    """Return the SSE frame for ``chunk``; a finish chunk is followed by ``[DONE]``."""
    payload = dict(chunk.fields or {})
    payload["type"] = str(chunk.type)
    body = json.dumps(
        payload,
        default=_json_default,
        separators=(",", ":"),
        sort_keys=True,
        ensure_ascii=False,
    )
    frame = f"data: {body}\n\n"
    if chunk.type == ChunkType.FINISH:
        frame += DONE_FRAME
    return frame


def write_sse(stream: TextIO, chunk: Chunk) -> None:
    """Write one chunk to ``stream`` as an SSE frame."""
    stream.write(encode_sse(chunk))


def write_sse_stream(stream: TextIO, chunks: Iterable[Chunk]) -> None:
    """Write every chunk of ``chunks`` to ``stream`` as SSE frames."""
    for chunk in chunks:
        write_sse(stream, chunk)