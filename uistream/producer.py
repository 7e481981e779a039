"""Translation of model step events into UI stream chunks."""

from __future__ import annotations

import json
import queue
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from uistream.chunks import Chunk, ChunkType, with_provider_metadata


class StepEventType(StrEnum):
    """Kinds of events a model step stream produces."""

    STEP_START = "step-start"
    TEXT_DELTA = "text-delta"
    REASONING_DELTA = "reasoning-delta"
    TOOL_CALL_START = "tool-call-start"
    TOOL_CALL_DELTA = "tool-call-delta"
    TOOL_CALL_INVALID = "tool-call-invalid"
    TOOL_RESULT = "tool-result"
    SOURCE = "source"
    USAGE = "usage"
    STEP_END = "step-end"
    DONE = "done"
    ERROR = "error"


@dataclass(slots=True)
class ToolCallResult:
    """The raw arguments and output of an executed tool call."""

    id: str
    name: str
    args: str = ""
    output: str = ""


@dataclass(slots=True)
class SourceRef:
    """A source reference reported by the model."""

    id: str = ""
    url: str = ""
    title: str = ""


@dataclass(slots=True)
class Usage:
    """Token counts reported for a step."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    reasoning_tokens: int = 0


@dataclass(slots=True)
class StepEvent:
    """One event of a model step stream; only fields matching ``type`` are set."""

    type: StepEventType
    step_number: int = 0
    text_delta: str = ""
    reasoning_delta: str = ""
    thought_signature: str = ""
    tool_call_id: str = ""
    tool_call_name: str = ""
    tool_call_args_delta: str = ""
    tool_result: ToolCallResult | None = None
    source: SourceRef | None = None
    finish_reason: str = ""
    usage: Usage | None = None
    error: BaseException | None = None
    provider_metadata: dict[str, Any] | None = None


_Step = tuple[list[Chunk], str]


class ChunkStream:
    """Chunks produced from a step stream, with the assistant text they carry.

    Iterating yields the chunks once; ``full_text`` drains whatever is left
    and returns the accumulated text.
    """

    def __init__(self, steps: Iterable[_Step]) -> None:
        self._steps = iter(steps)
        self._text = ""

    def __iter__(self) -> Iterator[Chunk]:
        for chunks, delta in self._steps:
            yield from chunks
            self._text += delta

    def full_text(self) -> str:
        for _ in self:
            pass
        return self._text


def _parse_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def _loads(text: str) -> Any:
    return json.loads(text, parse_constant=_parse_constant)


def _is_valid_json(text: str) -> bool:
    try:
        _loads(text)
    except ValueError:
        return False
    return True


class ChunkProducer:
    """Turns step events into UI stream chunks; meant for a single stream."""

    def __init__(self, message_id: str = "") -> None:
        self._message_id = message_id
        self._block_count = 0
        self._block_id = ""
        self._text_started = False
        self._reasoning_started = False
        self._tool_args: dict[str, str] = {}
        self._last_finish_reason = ""
        self._last_signature = ""

    def produce(self, events: Iterable[StepEvent]) -> ChunkStream:
        """Return the chunk stream for ``events``; it stops at the first error event."""
        return ChunkStream(self._steps(events))

    def _steps(self, events: Iterable[StepEvent]) -> Iterator[_Step]:
        yield [Chunk(ChunkType.START, {"messageId": self._message_id})], ""
        for event in events:
            if event.type == StepEventType.ERROR:
                message = "stream error"
                if event.error is not None:
                    message = f"stream error: {event.error}"
                yield [Chunk(ChunkType.ERROR, {"errorText": message})], ""
                return
            yield self._translate(event)

    def _translate(self, event: StepEvent) -> _Step:
        match event.type:
            case StepEventType.STEP_START:
                return self._step_start(), ""
            case StepEventType.TEXT_DELTA:
                return self._text_delta(event), event.text_delta
            case StepEventType.REASONING_DELTA:
                return self._reasoning_delta(event), ""
            case StepEventType.TOOL_CALL_START:
                return self._tool_call_start(event), ""
            case StepEventType.TOOL_CALL_DELTA:
                return self._tool_call_delta(event), ""
            case StepEventType.TOOL_RESULT:
                return self._tool_result(event), ""
            case StepEventType.TOOL_CALL_INVALID:
                return self._tool_call_invalid(event), ""
            case StepEventType.SOURCE:
                return self._source(event), ""
            case StepEventType.STEP_END:
                self._last_finish_reason = str(event.finish_reason)
                return self._step_end(), ""
            case StepEventType.DONE:
                fields: dict[str, Any] = {}
                if self._last_finish_reason:
                    fields["finishReason"] = self._last_finish_reason
                return [Chunk(ChunkType.FINISH, fields)], ""
        return [], ""

    def _step_start(self) -> list[Chunk]:
        self._block_count += 1
        self._block_id = f"text_{self._block_count}"
        self._text_started = False
        self._reasoning_started = False
        self._last_signature = ""
        self._tool_args = {}
        return [Chunk(ChunkType.START_STEP, None)]

    def _text_delta(self, event: StepEvent) -> list[Chunk]:
        out: list[Chunk] = []
        if not self._text_started:
            out.append(Chunk(ChunkType.TEXT_START, {"id": self._block_id}))
            self._text_started = True
        fields = {"id": self._block_id, "delta": event.text_delta}
        out.append(
            Chunk(ChunkType.TEXT_DELTA, with_provider_metadata(fields, event.provider_metadata))
        )
        return out

    def _reasoning_delta(self, event: StepEvent) -> list[Chunk]:
        out: list[Chunk] = []
        if not self._reasoning_started:
            out.append(Chunk(ChunkType.REASONING_START, {"id": self._block_id}))
            self._reasoning_started = True
        if event.thought_signature:
            self._last_signature = event.thought_signature
        fields = {"id": self._block_id, "delta": event.reasoning_delta}
        out.append(
            Chunk(
                ChunkType.REASONING_DELTA,
                with_provider_metadata(fields, event.provider_metadata),
            )
        )
        return out

    def _tool_call_start(self, event: StepEvent) -> list[Chunk]:
        call_id = event.tool_call_id
        if not call_id:
            return []
        self._tool_args[call_id] = event.tool_call_args_delta
        out = [
            Chunk(
                ChunkType.TOOL_INPUT_START,
                {"toolCallId": call_id, "toolName": event.tool_call_name},
            )
        ]
        if event.tool_call_args_delta:
            out.append(
                Chunk(
                    ChunkType.TOOL_INPUT_DELTA,
                    {"toolCallId": call_id, "inputTextDelta": event.tool_call_args_delta},
                )
            )
        return out

    def _tool_call_delta(self, event: StepEvent) -> list[Chunk]:
        call_id = event.tool_call_id
        if call_id not in self._tool_args or not event.tool_call_args_delta:
            return []
        if _is_valid_json(self._tool_args[call_id]):
            return []
        self._tool_args[call_id] += event.tool_call_args_delta
        return [
            Chunk(
                ChunkType.TOOL_INPUT_DELTA,
                {"toolCallId": call_id, "inputTextDelta": event.tool_call_args_delta},
            )
        ]

    def _tool_result(self, event: StepEvent) -> list[Chunk]:
        result = event.tool_result
        if result is None:
            return []
        try:
            parsed_args: Any = _loads(result.args)
        except ValueError:
            parsed_args = {"raw": result.args}
        try:
            parsed_output: Any = _loads(result.output)
        except ValueError:
            parsed_output = {"result": result.output}
        input_fields = with_provider_metadata(
            {"toolCallId": result.id, "toolName": result.name, "input": parsed_args},
            event.provider_metadata,
        )
        output_fields = with_provider_metadata(
            {"toolCallId": result.id, "output": parsed_output},
            event.provider_metadata,
        )
        return [
            Chunk(ChunkType.TOOL_INPUT_AVAILABLE, input_fields),
            Chunk(ChunkType.TOOL_OUTPUT_AVAILABLE, output_fields),
        ]

    def _tool_call_invalid(self, event: StepEvent) -> list[Chunk]:
        name = event.tool_call_name
        return [
            Chunk(
                ChunkType.TOOL_INPUT_ERROR,
                {
                    "toolCallId": event.tool_call_id,
                    "toolName": name,
                    "errorText": f"invalid JSON arguments for tool {json.dumps(name)}",
                },
            )
        ]

    def _source(self, event: StepEvent) -> list[Chunk]:
        source = event.source
        if source is None or not source.url:
            return []
        return [
            Chunk(
                ChunkType.SOURCE_URL,
                {"sourceId": source.id, "url": source.url, "title": source.title},
            )
        ]

    def _step_end(self) -> list[Chunk]:
        out: list[Chunk] = []
        if self._text_started:
            out.append(Chunk(ChunkType.TEXT_END, {"id": self._block_id}))
        if self._reasoning_started:
            fields: dict[str, Any] = {"id": self._block_id}
            if self._last_signature:
                fields["signature"] = self._last_signature
            out.append(Chunk(ChunkType.REASONING_END, fields))
        out.append(Chunk(ChunkType.FINISH_STEP, None))
        return out


_SOURCE_DONE = object()


@dataclass(slots=True)
class _SourceFailure:
    error: BaseException


def merge_chunks(*sources: Iterable[Chunk]) -> Iterator[Chunk]:
    """Drain every source concurrently into one iterator.

    Order within a source is kept; interleaving between sources is not fixed.
    An exception raised by a source is raised again by the merged iterator.
    """
    out: queue.Queue[Any] = queue.Queue()

    def drain(source: Iterable[Chunk]) -> None:
        try:
            for chunk in source:
                out.put(chunk)
        except BaseException as exc:  # noqa: BLE001 - handed to the consumer
            out.put(_SourceFailure(exc))
        finally:
            out.put(_SOURCE_DONE)

    for source in sources:
        threading.Thread(target=drain, args=(source,), daemon=True).start()
    return _collect(out, len(sources))


def _collect(out: queue.Queue[Any], remaining: int) -> Iterator[Chunk]:
    while remaining:
        item = out.get()
        if item is _SOURCE_DONE:
            remaining -= 1
        elif isinstance(item, _SourceFailure):
            raise item.error
        else:
            yield item