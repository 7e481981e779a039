"""Conversion of a model event stream into a configurable UI chunk stream."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, Protocol

from uistream.chunks import Chunk, ChunkType
from uistream.producer import ChunkProducer, StepEvent, StepEventType


class StreamEventer(Protocol):
    """A source of model step events, such as a streaming generation result."""

    def events(self) -> Iterable[StepEvent]:
        """Return the step events of the stream."""
        ...

    def drain_unused(self) -> None:
        """Release any outputs of the stream other than its events."""
        ...


@dataclass(slots=True)
class UsageInfo:
    """Token counts summed over a stream."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    reasoning_tokens: int = 0


@dataclass(slots=True)
class MessageMetadataInfo:
    """What the message-metadata callback is told about a finished stream."""

    finish_reason: str
    usage: UsageInfo


MessageMetadataCallback = Callable[[MessageMetadataInfo], "dict[str, Any] | None"]


@dataclass(slots=True)
class ToUIStreamOptions:
    """Options of :func:`to_ui_message_stream`."""

    send_reasoning: bool = False
    send_sources: bool = False
    message_metadata: MessageMetadataCallback | None = None
    send_start: bool = True
    send_finish: bool = True
    _unused: None = field(default=None, repr=False, compare=False)


def _intercept(
    events: Iterable[StepEvent], options: ToUIStreamOptions, usage: UsageInfo
) -> Iterator[StepEvent]:
    for event in events:
        if event.type == StepEventType.USAGE and event.usage is not None:
            usage.prompt_tokens += event.usage.prompt_tokens
            usage.completion_tokens += event.usage.completion_tokens
            usage.total_tokens += event.usage.total_tokens
            usage.reasoning_tokens += event.usage.reasoning_tokens
        if not options.send_reasoning and event.type == StepEventType.REASONING_DELTA:
            continue
        if not options.send_sources and event.type == StepEventType.SOURCE:
            continue
        yield event


def _attach_metadata(
    chunk: Chunk, callback: MessageMetadataCallback, usage: UsageInfo
) -> Chunk:
    fields = dict(chunk.fields or {})
    reason = fields.get("finishReason")
    finish_reason = reason if isinstance(reason, str) else ""
    metadata = callback(MessageMetadataInfo(finish_reason=finish_reason, usage=usage))
    if metadata is None:
        return chunk
    fields["messageMetadata"] = metadata
    return Chunk(chunk.type, fields)


def _wrap(
    chunks: Iterable[Chunk], options: ToUIStreamOptions, usage: UsageInfo
) -> Iterator[Chunk]:
    for chunk in chunks:
        if chunk.type == ChunkType.START and not options.send_start:
            continue
        if chunk.type == ChunkType.FINISH:
            if not options.send_finish:
                continue
            if options.message_metadata is not None:
                chunk = _attach_metadata(chunk, options.message_metadata, usage)
        yield chunk


def to_ui_message_stream(
    source: StreamEventer,
    message_id: str,
    options: ToUIStreamOptions | None = None,
) -> Iterator[Chunk]:
    """Turn the events of ``source`` into UI stream chunks, as ``options`` asks."""
    options = options if options is not None else ToUIStreamOptions()
    source.drain_unused()
    usage = UsageInfo()
    events = _intercept(source.events(), options, usage)
    chunks = ChunkProducer(message_id).produce(events)
    return _wrap(chunks, options, usage)