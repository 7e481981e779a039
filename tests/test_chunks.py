import io
import json

import pytest

from uistream.chunks import (
    DONE_FRAME,
    Chunk,
    ChunkType,
    encode_sse,
    with_provider_metadata,
    write_sse,
    write_sse_stream,
)


def _payload(frame: str) -> dict:
    first = frame.split("\n\n")[0]
    assert first.startswith("data: ")
    return json.loads(first[len("data: "):])


@pytest.mark.parametrize(
    ("member", "wire"),
    [
        (ChunkType.START, "start"),
        (ChunkType.START_STEP, "start-step"),
        (ChunkType.TEXT_START, "text-start"),
        (ChunkType.TEXT_DELTA, "text-delta"),
        (ChunkType.TEXT_END, "text-end"),
        (ChunkType.REASONING_START, "reasoning-start"),
        (ChunkType.REASONING_DELTA, "reasoning-delta"),
        (ChunkType.REASONING_END, "reasoning-end"),
        (ChunkType.TOOL_INPUT_START, "tool-input-start"),
        (ChunkType.TOOL_INPUT_DELTA, "tool-input-delta"),
        (ChunkType.TOOL_INPUT_AVAILABLE, "tool-input-available"),
        (ChunkType.TOOL_OUTPUT_AVAILABLE, "tool-output-available"),
        (ChunkType.TOOL_INPUT_ERROR, "tool-input-error"),
        (ChunkType.TOOL_OUTPUT_ERROR, "tool-output-error"),
        (ChunkType.TOOL_OUTPUT_DENIED, "tool-output-denied"),
        (ChunkType.TOOL_APPROVAL_REQUEST, "tool-approval-request"),
        (ChunkType.FINISH_STEP, "finish-step"),
        (ChunkType.FINISH, "finish"),
        (ChunkType.ERROR, "error"),
        (ChunkType.SOURCE, "source"),
        (ChunkType.SOURCES, "sources"),
        (ChunkType.SOURCE_URL, "source-url"),
        (ChunkType.SOURCE_DOCUMENT, "source-document"),
        (ChunkType.FILE, "file"),
        (ChunkType.ABORT, "abort"),
        (ChunkType.MESSAGE_METADATA, "message-metadata"),
    ],
)
def test_chunk_type_wire_value_in_sse(member, wire):
    frame = encode_sse(Chunk(member))
    assert frame.startswith("data: ")
    assert f'"type":"{wire}"' in frame


def test_with_provider_metadata_none_returns_unchanged():
    fields = {"id": "x"}
    got = with_provider_metadata(fields, None)
    assert got is fields
    assert "providerMetadata" not in got


def test_with_provider_metadata_none_fields_allocates():
    pm = {"openai": {"logprobs": 0.5}}
    got = with_provider_metadata(None, pm)
    assert got == {"providerMetadata": pm}


def test_with_provider_metadata_adds_key():
    got = with_provider_metadata({"id": "x"}, {"a": 1})
    assert got == {"id": "x", "providerMetadata": {"a": 1}}


def test_encode_sse_finish_appends_done():
    frame = encode_sse(Chunk(ChunkType.FINISH))
    assert frame == 'data: {"type":"finish"}\n\n' + DONE_FRAME


def test_encode_sse_error_has_no_done():
    frame = encode_sse(Chunk(ChunkType.ERROR, {"errorText": "boom"}))
    assert frame == 'data: {"errorText":"boom","type":"error"}\n\n'
    assert "[DONE]" not in frame


def test_encode_sse_type_overrides_field():
    frame = encode_sse(Chunk("data-plan", {"type": "other", "data": 1}))
    assert _payload(frame) == {"type": "data-plan", "data": 1}


def test_encode_sse_does_not_mutate_fields():
    fields = {"delta": "hi"}
    encode_sse(Chunk(ChunkType.TEXT_DELTA, fields))
    assert fields == {"delta": "hi"}


def test_encode_sse_bytes_are_base64():
    frame = encode_sse(Chunk("file", {"data": b"imgdata"}))
    assert _payload(frame)["data"] == "aW1nZGF0YQ=="


def test_encode_sse_unserializable_raises():
    with pytest.raises(TypeError):
        encode_sse(Chunk("x", {"value": object()}))


def test_write_sse_writes_frame():
    out = io.StringIO()
    write_sse(out, Chunk(ChunkType.TEXT_DELTA, {"id": "text_1", "delta": "hello"}))
    assert out.getvalue() == 'data: {"delta":"hello","id":"text_1","type":"text-delta"}\n\n'


def test_write_sse_stream_preserves_order():
    out = io.StringIO()
    write_sse_stream(
        out,
        iter(
            [
                Chunk(ChunkType.START, {"messageId": "m"}),
                Chunk(ChunkType.TEXT_DELTA, {"delta": "a"}),
                Chunk(ChunkType.FINISH),
            ]
        ),
    )
    frames = [f for f in out.getvalue().split("\n\n") if f]
    assert [json.loads(f[6:])["type"] for f in frames[:3]] == ["start", "text-delta", "finish"]
    assert frames[3] == "data: [DONE]"