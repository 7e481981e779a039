"""Streaming of model events as SSE chunks, standalone or merged into a writer."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import TextIO

from uistream.chunks import ChunkType
from uistream.persistence import PersistedMessageBuilder
from uistream.producer import ChunkProducer, StepEvent, StepEventType
from uistream.to_ui_stream import StreamEventer
from uistream.writer import Writer


@dataclass(slots=True)
class ToolResult:
    """Raw data of a tool result, handed to a tool-result hook."""

    tool_call_id: str
    tool_name: str
    args_json: str
    output: str


ToolResultHook = Callable[[Writer, ToolResult], None]
SourceHook = Callable[[Writer, str, str, str], None]


def _record_tool_results(
    events: Iterable[StepEvent], cache: dict[str, ToolResult]
) -> Iterator[StepEvent]:
    for event in events:
        result = event.tool_result
        if event.type == StepEventType.TOOL_RESULT and result is not None:
            cache[result.id] = ToolResult(
                tool_call_id=result.id,
                tool_name=result.name,
                args_json=result.args,
                output=result.output,
            )
        yield event


def _text_field(fields: dict, key: str) -> str:
    value = fields.get(key)
    return value if isinstance(value, str) else ""


def _pipe(
    writer: Writer,
    events: Iterable[StepEvent],
    message_id: str,
    *,
    tool_result_hook: ToolResultHook | None,
    source_hook: SourceHook | None,
    persistence: PersistedMessageBuilder | None,
    own_lifecycle: bool,
) -> tuple[str, str]:
    """Write the chunks for ``events``; return the text and the last finish reason."""
    cache: dict[str, ToolResult] = {}
    if tool_result_hook is not None:
        events = _record_tool_results(events, cache)
    stream = ChunkProducer(message_id).produce(events)
    finish_reason = ""
    for chunk in stream:
        if persistence is not None:
            persistence.observe_chunk(chunk)
        fields = chunk.fields or {}
        if chunk.type == ChunkType.FINISH:
            if own_lifecycle:
                reason = fields.get("finishReason")
                if isinstance(reason, str):
                    finish_reason = reason
                writer.write_finish()
        elif chunk.type == ChunkType.START and not own_lifecycle:
            continue
        elif chunk.type == ChunkType.ERROR:
            message = fields.get("errorText")
            writer.write_error(message if isinstance(message, str) else "stream error")
        else:
            writer.write_chunk(chunk.type, chunk.fields)
            if chunk.type == ChunkType.SOURCE_URL and source_hook is not None:
                source_hook(
                    writer,
                    _text_field(fields, "sourceId"),
                    _text_field(fields, "url"),
                    _text_field(fields, "title"),
                )
            if chunk.type == ChunkType.TOOL_OUTPUT_AVAILABLE and tool_result_hook is not None:
                call_id = fields.get("toolCallId")
                if isinstance(call_id, str) and call_id in cache:
                    tool_result_hook(writer, cache[call_id])
    return stream.full_text(), finish_reason


class Adapter:
    """Writes the UI stream for a sequence of step events, start to finish."""

    def __init__(
        self,
        message_id: str,
        *,
        tool_result_hook: ToolResultHook | None = None,
        source_hook: SourceHook | None = None,
        on_finish: Callable[[str, str], None] | None = None,
        persistence: PersistedMessageBuilder | None = None,
    ) -> None:
        self.message_id = message_id
        self.tool_result_hook = tool_result_hook
        self.source_hook = source_hook
        self.on_finish = on_finish
        self.persistence = persistence

    def writer(self, stream: TextIO) -> Writer:
        """Return a writer bound to ``stream`` for custom chunks."""
        return Writer(stream)

    def stream(self, events: Iterable[StepEvent], stream: TextIO) -> str:
        """Write SSE frames for ``events`` to ``stream``; return the assistant text."""
        text, finish_reason = _pipe(
            Writer(stream),
            events,
            self.message_id,
            tool_result_hook=self.tool_result_hook,
            source_hook=self.source_hook,
            persistence=self.persistence,
            own_lifecycle=True,
        )
        if self.on_finish is not None:
            self.on_finish(text, finish_reason)
        return text


def merge_stream_result(
    writer: Writer,
    source: StreamEventer,
    *,
    tool_result_hook: ToolResultHook | None = None,
    source_hook: SourceHook | None = None,
    on_finish: Callable[[str], None] | None = None,
    persistence: PersistedMessageBuilder | None = None,
) -> str:
    """Write the events of ``source`` through ``writer`` without start or finish.

    Returns the assistant text; start and finish stay with the caller.
    """
    source.drain_unused()
    text, _ = _pipe(
        writer,
        source.events(),
        "",
        tool_result_hook=tool_result_hook,
        source_hook=source_hook,
        persistence=persistence,
        own_lifecycle=False,
    )
    if on_finish is not None:
        on_finish(text)
    return text