"""Direct writer of UI message stream chunks onto a text stream."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, TextIO

from uistream.chunks import Chunk, ChunkType, with_provider_metadata, write_sse


@dataclass(slots=True)
class Source:
    """A URL reference carried in source and sources chunks."""

    url: str
    id: str = ""
    title: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.id:
            out["id"] = self.id
        out["url"] = self.url
        if self.title:
            out["title"] = self.title
        return out


@dataclass(slots=True)
class SourceDocumentOptions:
    """Optional fields of a source-document chunk."""

    filename: str = ""
    data: bytes | None = None
    provider_metadata: dict[str, Any] | None = None


@dataclass(slots=True)
class FileChunkOptions:
    """Optional fields of a file chunk."""

    id: str = ""
    file_id: str = ""
    data: bytes | None = None
    name: str = ""
    provider_metadata: dict[str, Any] | None = None


@dataclass(slots=True)
class ToolChunkOptions:
    """Optional fields of tool-related chunks."""

    provider_executed: bool | None = None
    dynamic: bool | None = None
    title: str = ""
    preliminary: bool | None = None

    def apply(self, fields: dict[str, Any]) -> dict[str, Any]:
        if self.provider_executed is not None:
            fields["providerExecuted"] = self.provider_executed
        if self.dynamic is not None:
            fields["dynamic"] = self.dynamic
        if self.title:
            fields["title"] = self.title
        if self.preliminary is not None:
            fields["preliminary"] = self.preliminary
        return fields


def _apply_tool_options(
    fields: dict[str, Any], options: ToolChunkOptions | None
) -> dict[str, Any]:
    return fields if options is None else options.apply(fields)


class Writer:
    """Writes SSE-encoded UI stream chunks to a text stream."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def _emit(self, chunk_type: str, fields: dict[str, Any] | None) -> None:
        write_sse(self._stream, Chunk(chunk_type, fields))

    def write_chunk(self, chunk_type: str, fields: dict[str, Any] | None = None) -> None:
        """Emit a chunk of any type with the given fields."""
        self._emit(chunk_type, fields)

    def write_start(self, message_id: str) -> None:
        self._emit(ChunkType.START, {"messageId": message_id})

    def write_finish(self) -> None:
        """Emit a finish chunk followed by the ``[DONE]`` terminator."""
        self._emit(ChunkType.FINISH, None)

    def write_error(self, message: str) -> None:
        self._emit(ChunkType.ERROR, {"errorText": message})

    def write_data(self, name: str, payload: Any) -> None:
        """Emit a ``data-<name>`` chunk carrying ``payload``."""
        self._emit(f"data-{name}", {"data": payload})

    def write_source(self, source: Source) -> None:
        self._emit(
            ChunkType.SOURCE,
            {"id": source.id, "url": source.url, "title": source.title},
        )

    def write_sources(self, sources: Iterable[Source]) -> None:
        self._emit(ChunkType.SOURCES, {"sources": list(sources)})

    def write_message_metadata(self, metadata: Any) -> None:
        self._emit(ChunkType.MESSAGE_METADATA, {"messageMetadata": metadata})

    def write_start_with_metadata(self, message_id: str, metadata: Any = None) -> None:
        fields: dict[str, Any] = {"messageId": message_id}
        if metadata is not None:
            fields["messageMetadata"] = metadata
        self._emit(ChunkType.START, fields)

    def write_finish_with_reason(self, finish_reason: str, metadata: Any = None) -> None:
        """Emit a finish chunk with a reason and optional metadata, then ``[DONE]``."""
        fields: dict[str, Any] = {}
        if finish_reason:
            fields["finishReason"] = finish_reason
        if metadata is not None:
            fields["messageMetadata"] = metadata
        self._emit(ChunkType.FINISH, fields)

    def write_transient_data(self, name: str, payload: Any) -> None:
        """Emit a ``data-<name>`` chunk marked as transient."""
        self._emit(f"data-{name}", {"data": payload, "transient": True})

    def write_data_with_id(self, name: str, data_id: str, payload: Any) -> None:
        self._emit(f"data-{name}", {"id": data_id, "data": payload})

    def write_abort(self, reason: str = "") -> None:
        fields: dict[str, Any] = {}
        if reason:
            fields["reason"] = reason
        self._emit(ChunkType.ABORT, fields)

    def write_source_url(self, source_id: str, url: str, title: str) -> None:
        self._emit(
            ChunkType.SOURCE_URL, {"sourceId": source_id, "url": url, "title": title}
        )

    def write_source_document(
        self,
        source_id: str,
        media_type: str,
        title: str,
        options: SourceDocumentOptions | None = None,
    ) -> None:
        fields: dict[str, Any] | None = {
            "sourceId": source_id,
            "mediaType": media_type,
            "title": title,
        }
        if options is not None:
            if options.filename:
                fields["filename"] = options.filename
            if options.data is not None:
                fields["data"] = options.data
            fields = with_provider_metadata(fields, options.provider_metadata)
        self._emit(ChunkType.SOURCE_DOCUMENT, fields)

    def write_file(
        self, url: str, media_type: str, options: FileChunkOptions | None = None
    ) -> None:
        fields: dict[str, Any] | None = {"url": url, "mediaType": media_type}
        if options is not None:
            if options.id:
                fields["id"] = options.id
            if options.file_id:
                fields["fileId"] = options.file_id
            if options.data is not None:
                fields["data"] = options.data
            if options.name:
                fields["name"] = options.name
            fields = with_provider_metadata(fields, options.provider_metadata)
        self._emit(ChunkType.FILE, fields)

    def write_tool_input_error(
        self,
        tool_call_id: str,
        tool_name: str,
        tool_input: Any,
        error_text: str,
        options: ToolChunkOptions | None = None,
    ) -> None:
        fields = {
            "toolCallId": tool_call_id,
            "toolName": tool_name,
            "input": tool_input,
            "errorText": error_text,
        }
        self._emit(ChunkType.TOOL_INPUT_ERROR, _apply_tool_options(fields, options))

    def write_tool_output_error(
        self, tool_call_id: str, error_text: str, options: ToolChunkOptions | None = None
    ) -> None:
        fields = {"toolCallId": tool_call_id, "errorText": error_text}
        self._emit(ChunkType.TOOL_OUTPUT_ERROR, _apply_tool_options(fields, options))

    def write_tool_output_denied(
        self, tool_call_id: str, options: ToolChunkOptions | None = None
    ) -> None:
        fields = {"toolCallId": tool_call_id}
        self._emit(ChunkType.TOOL_OUTPUT_DENIED, _apply_tool_options(fields, options))

    def write_tool_approval_request(
        self, approval_id: str, tool_call_id: str, tool_name: str, args: Any
    ) -> None:
        self._emit(
            ChunkType.TOOL_APPROVAL_REQUEST,
            {
                "approvalId": approval_id,
                "toolCallId": tool_call_id,
                "toolName": tool_name,
                "args": args,
            },
        )

    def write_chunk_with_provider_metadata(
        self,
        chunk_type: str,
        fields: dict[str, Any] | None,
        provider_metadata: dict[str, Any] | None,
    ) -> None:
        """Emit a chunk, adding ``providerMetadata`` only when it is given."""
        copied = dict(fields) if fields is not None else None
        self._emit(chunk_type, with_provider_metadata(copied, provider_metadata))