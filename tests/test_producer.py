import pytest

from uistream.chunks import Chunk, ChunkType
from uistream.producer import (
    ChunkProducer,
    SourceRef,
    StepEvent,
    StepEventType,
    ToolCallResult,
    Usage,
    merge_chunks,
)

E = StepEventType


def run(*events, message_id="msg-test"):
    stream = ChunkProducer(message_id).produce(events)
    chunks = list(stream)
    return chunks, stream.full_text()


def types(chunks):
    return [str(c.type) for c in chunks]


def find(chunks, chunk_type):
    return next(c for c in chunks if c.type == chunk_type)


def _failing_chunks():
    yield Chunk("data-x")
    raise ValueError("boom")


def test_text_only_sequence():
    chunks, text = run(
        StepEvent(E.STEP_START),
        StepEvent(E.TEXT_DELTA, text_delta="Hello "),
        StepEvent(E.TEXT_DELTA, text_delta="world"),
        StepEvent(E.STEP_END, finish_reason="stop"),
        StepEvent(E.DONE),
    )
    assert types(chunks) == [
        "start",
        "start-step",
        "text-start",
        "text-delta",
        "text-delta",
        "text-end",
        "finish-step",
        "finish",
    ]
    assert chunks[0].fields == {"messageId": "msg-test"}
    assert chunks[3].fields == {"id": "text_1", "delta": "Hello "}
    assert chunks[4].fields == {"id": "text_1", "delta": "world"}
    assert chunks[-1].fields == {"finishReason": "stop"}
    assert text == "Hello world"


def test_reasoning_sequence():
    chunks, text = run(
        StepEvent(E.STEP_START),
        StepEvent(E.REASONING_DELTA, reasoning_delta="thinking..."),
        StepEvent(E.TEXT_DELTA, text_delta="answer"),
        StepEvent(E.STEP_END, finish_reason="stop"),
        StepEvent(E.DONE),
    )
    assert types(chunks) == [
        "start",
        "start-step",
        "reasoning-start",
        "reasoning-delta",
        "text-start",
        "text-delta",
        "text-end",
        "reasoning-end",
        "finish-step",
        "finish",
    ]
    assert find(chunks, ChunkType.REASONING_DELTA).fields["delta"] == "thinking..."
    assert text == "answer"


def test_reasoning_end_carries_last_signature():
    chunks, _ = run(
        StepEvent(E.STEP_START),
        StepEvent(E.REASONING_DELTA, reasoning_delta="a", thought_signature="sig-1"),
        StepEvent(E.REASONING_DELTA, reasoning_delta="b", thought_signature="sig-2"),
        StepEvent(E.REASONING_DELTA, reasoning_delta="c"),
        StepEvent(E.STEP_END),
    )
    assert find(chunks, ChunkType.REASONING_END).fields == {"id": "text_1", "signature": "sig-2"}


def test_tool_call_golden():
    chunks, text = run(
        StepEvent(E.STEP_START),
        StepEvent(
            E.TOOL_CALL_START,
            tool_call_id="tc1",
            tool_call_name="search",
            tool_call_args_delta='{"q":"go"}',
        ),
        StepEvent(
            E.TOOL_RESULT,
            tool_result=ToolCallResult("tc1", "search", '{"q":"go"}', '{"results":[]}'),
        ),
        StepEvent(E.STEP_END, finish_reason="tool-calls"),
        StepEvent(E.STEP_START),
        StepEvent(E.TEXT_DELTA, text_delta="Found nothing."),
        StepEvent(E.STEP_END, finish_reason="stop"),
        StepEvent(E.DONE),
    )
    assert find(chunks, ChunkType.TOOL_INPUT_START).fields == {
        "toolCallId": "tc1",
        "toolName": "search",
    }
    assert find(chunks, ChunkType.TOOL_INPUT_DELTA).fields == {
        "toolCallId": "tc1",
        "inputTextDelta": '{"q":"go"}',
    }
    assert find(chunks, ChunkType.TOOL_INPUT_AVAILABLE).fields == {
        "toolCallId": "tc1",
        "toolName": "search",
        "input": {"q": "go"},
    }
    assert find(chunks, ChunkType.TOOL_OUTPUT_AVAILABLE).fields == {
        "toolCallId": "tc1",
        "output": {"results": []},
    }
    assert types(chunks).count("finish-step") == 2
    assert find(chunks, ChunkType.TEXT_DELTA).fields["id"] == "text_2"
    assert chunks[-1].fields == {"finishReason": "stop"}
    assert text == "Found nothing."


def test_tool_result_falls_back_on_invalid_json():
    chunks, _ = run(
        StepEvent(E.STEP_START),
        StepEvent(E.TOOL_RESULT, tool_result=ToolCallResult("t", "fn", "not json", "plain")),
    )
    assert find(chunks, ChunkType.TOOL_INPUT_AVAILABLE).fields["input"] == {"raw": "not json"}
    assert find(chunks, ChunkType.TOOL_OUTPUT_AVAILABLE).fields["output"] == {"result": "plain"}


def test_tool_result_without_payload_is_skipped():
    chunks, _ = run(StepEvent(E.STEP_START), StepEvent(E.TOOL_RESULT))
    assert types(chunks) == ["start", "start-step"]


def test_tool_call_delta_accumulates_until_valid_json():
    chunks, _ = run(
        StepEvent(E.STEP_START),
        StepEvent(E.TOOL_CALL_START, tool_call_id="t1", tool_call_name="calc", tool_call_args_delta='{"a":'),
        StepEvent(E.TOOL_CALL_DELTA, tool_call_id="t1", tool_call_args_delta="1}"),
        StepEvent(E.TOOL_CALL_DELTA, tool_call_id="t1", tool_call_args_delta="extra"),
        StepEvent(E.TOOL_CALL_DELTA, tool_call_id="unknown", tool_call_args_delta="x"),
        StepEvent(E.TOOL_CALL_DELTA, tool_call_id="t1", tool_call_args_delta=""),
    )
    deltas = [c.fields["inputTextDelta"] for c in chunks if c.type == ChunkType.TOOL_INPUT_DELTA]
    assert deltas == ['{"a":', "1}"]


def test_tool_call_start_without_args_or_id():
    chunks, _ = run(
        StepEvent(E.STEP_START),
        StepEvent(E.TOOL_CALL_START, tool_call_id="", tool_call_name="ignored"),
        StepEvent(E.TOOL_CALL_START, tool_call_id="t2", tool_call_name="lookup"),
    )
    assert types(chunks) == ["start", "start-step", "tool-input-start"]


def test_tool_call_invalid_emits_input_error():
    chunks, _ = run(StepEvent(E.TOOL_CALL_INVALID, tool_call_id="t3", tool_call_name="calc"))
    assert chunks[1] == Chunk(
        ChunkType.TOOL_INPUT_ERROR,
        {
            "toolCallId": "t3",
            "toolName": "calc",
            "errorText": 'invalid JSON arguments for tool "calc"',
        },
    )


def test_source_url_and_empty_source():
    chunks, _ = run(
        StepEvent(E.SOURCE, source=SourceRef(id="src-1", url="https://example.com", title="Example")),
        StepEvent(E.SOURCE, source=SourceRef(id="src-2")),
        StepEvent(E.SOURCE),
    )
    assert types(chunks) == ["start", "source-url"]
    assert chunks[1].fields == {
        "sourceId": "src-1",
        "url": "https://example.com",
        "title": "Example",
    }


def test_error_stops_stream():
    chunks, text = run(
        StepEvent(E.STEP_START),
        StepEvent(E.TEXT_DELTA, text_delta="partial"),
        StepEvent(E.ERROR, error=RuntimeError("connection reset")),
        StepEvent(E.TEXT_DELTA, text_delta="never"),
        StepEvent(E.DONE),
    )
    assert chunks[-1] == Chunk(ChunkType.ERROR, {"errorText": "stream error: connection reset"})
    assert "finish" not in types(chunks)
    assert text == "partial"


def test_error_without_detail():
    chunks, _ = run(StepEvent(E.ERROR))
    assert chunks[-1].fields == {"errorText": "stream error"}


def test_full_text_drains_unread_stream():
    stream = ChunkProducer("m").produce(
        [StepEvent(E.STEP_START), StepEvent(E.TEXT_DELTA, text_delta="abc"), StepEvent(E.DONE)]
    )
    assert stream.full_text() == "abc"
    assert list(stream) == []


def test_done_without_finish_reason():
    chunks, _ = run(StepEvent(E.STEP_START), StepEvent(E.STEP_END), StepEvent(E.DONE))
    assert chunks[-1] == Chunk(ChunkType.FINISH, {})


def test_usage_events_produce_no_chunks():
    chunks, _ = run(StepEvent(E.USAGE, usage=Usage(prompt_tokens=1, total_tokens=1)))
    assert types(chunks) == ["start"]


def test_provider_metadata_on_text_delta():
    pm = {"gemini": {"safetyRating": "safe"}}
    chunks, _ = run(
        StepEvent(E.STEP_START),
        StepEvent(E.TEXT_DELTA, text_delta="hi", provider_metadata=pm),
    )
    assert find(chunks, ChunkType.TEXT_DELTA).fields["providerMetadata"] == pm


def test_provider_metadata_absent_when_not_given():
    chunks, _ = run(StepEvent(E.STEP_START), StepEvent(E.TEXT_DELTA, text_delta="hi"))
    assert "providerMetadata" not in find(chunks, ChunkType.TEXT_DELTA).fields


def test_merge_chunks_keeps_per_source_order():
    first = [Chunk(f"data-a{i}") for i in range(20)]
    second = [Chunk(f"data-b{i}") for i in range(20)]
    merged = list(merge_chunks(first, second))
    assert len(merged) == 40
    assert [c for c in merged if c.type.startswith("data-a")] == first
    assert [c for c in merged if c.type.startswith("data-b")] == second


def test_merge_chunks_empty():
    assert list(merge_chunks()) == []


def test_merge_chunks_propagates_source_error():
    with pytest.raises(ValueError, match="boom"):
        list(merge_chunks(_failing_chunks()))