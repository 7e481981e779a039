"""Managed UI message streams: start, caller-written content, finish."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, TextIO

from uistream.chunks import Chunk, ChunkType
from uistream.to_ui_stream import StreamEventer, ToUIStreamOptions, to_ui_message_stream
from uistream.writer import Source, Writer


@dataclass(slots=True)
class UIStreamFinishResult:
    """What a managed stream produced."""

    text: str
    finish_reason: str


class UIStreamWriter:
    """Writes custom chunks and merges model streams inside a managed stream."""

    def __init__(self, writer: Writer) -> None:
        self._writer = writer
        self._text = ""
        self._last_finish = ""

    @property
    def text(self) -> str:
        """Assistant text merged so far."""
        return self._text

    @property
    def last_finish_reason(self) -> str:
        """Finish reason of the last merged stream, or an empty string."""
        return self._last_finish

    def write_data(self, name: str, payload: Any) -> None:
        self._writer.write_data(name, payload)

    def write_transient_data(self, name: str, payload: Any) -> None:
        self._writer.write_transient_data(name, payload)

    def write_source(self, source: Source) -> None:
        self._writer.write_source(source)

    def merge(self, chunks: Iterable[Chunk]) -> None:
        """Write ``chunks``, leaving out their start and finish.

        A finish chunk's reason is kept and its message metadata, if any,
        is written as a message-metadata chunk.
        """
        for chunk in chunks:
            fields = chunk.fields or {}
            if chunk.type == ChunkType.START:
                continue
            if chunk.type == ChunkType.FINISH:
                reason = fields.get("finishReason")
                if isinstance(reason, str):
                    self._last_finish = reason
                metadata = fields.get("messageMetadata")
                if metadata is not None:
                    self._writer.write_message_metadata(metadata)
                continue
            self._writer.write_chunk(chunk.type, chunk.fields)
            if chunk.type == ChunkType.TEXT_DELTA:
                delta = fields.get("delta")
                if isinstance(delta, str):
                    self._text += delta

    def merge_stream_result(
        self,
        source: StreamEventer,
        message_id: str,
        options: ToUIStreamOptions | None = None,
    ) -> None:
        """Merge the UI stream made from ``source``."""
        self.merge(to_ui_message_stream(source, message_id, options))


def create_ui_message_stream(
    stream: TextIO,
    execute: Callable[[UIStreamWriter], None],
    *,
    message_id: str = "",
    metadata: Any = None,
    on_finish: Callable[[UIStreamFinishResult], None] | None = None,
    on_error: Callable[[Exception], str] | None = None,
) -> None:
    """Write start, run ``execute``, then write finish and ``[DONE]``.

    An exception from ``execute`` becomes an error chunk before a finish with
    reason ``error``; ``on_error`` may supply its text.
    """
    writer = Writer(stream)
    writer.write_start_with_metadata(message_id, metadata)
    sw = UIStreamWriter(writer)
    finish_reason = "stop"
    try:
        execute(sw)
    except Exception as exc:  # noqa: BLE001 - reported in the stream
        message = str(exc)
        if on_error is not None:
            custom = on_error(exc)
            if custom:
                message = custom
        writer.write_error(message)
        finish_reason = "error"
    else:
        if sw.last_finish_reason:
            finish_reason = sw.last_finish_reason
    writer.write_finish_with_reason(finish_reason, None)
    if on_finish is not None:
        on_finish(UIStreamFinishResult(text=sw.text, finish_reason=finish_reason))


def execute_stream(
    stream: TextIO,
    fn: Callable[[Writer], None],
    *,
    message_id: str = "",
    metadata: Any = None,
    on_finish: Callable[[str], None] | None = None,
) -> None:
    """Write start, run ``fn``, then write finish, or an error chunk if ``fn`` raised."""
    writer = Writer(stream)
    writer.write_start_with_metadata(message_id, metadata)
    try:
        fn(writer)
    except Exception as exc:  # noqa: BLE001 - reported in the stream
        writer.write_error(str(exc))
        finish_reason = "error"
    else:
        writer.write_finish()
        finish_reason = "stop"
    if on_finish is not None:
        on_finish(finish_reason)