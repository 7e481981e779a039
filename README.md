# uistream

`uistream` turns a model's step events into a UI message stream sent as
server-sent events (SSE). It also handles the chat request body that comes
the other way. It uses only the standard library.

## What it provides

- **Chunks and SSE.** `ChunkType` lists every chunk type on the wire. `Chunk`
  is a single typed chunk.
  - `encode_sse` and `write_sse` frame a chunk as `data: <json>\n\n`.
  - A finish chunk is followed by `data: [DONE]\n\n`.
- **`Writer`.** Writes chunks straight to any text stream. It has methods for:
  - start and finish, with or without a reason or metadata
  - errors and aborts
  - custom `data-*` chunks, including transient ones and ones with an ID
  - sources, source URLs and source documents
  - files
  - tool errors, tool denials and tool approval requests
- **`ChunkProducer`.** Converts `StepEvent` values into chunks. It manages
  text, reasoning and tool-input blocks for each step and collects the full
  assistant text.
- **`to_ui_message_stream`.** Bridges a `StreamEventer` to chunks. It can:
  - filter reasoning and source chunks
  - add usage-aware message metadata to the finish chunk
  - leave out the start or finish chunk
- **`Adapter` and `merge_stream_result`.**
  - `Adapter` streams events as SSE with a full lifecycle.
  - `merge_stream_result` merges model output into a stream you already
    manage.
  - Both take hooks for tool results, sources and finish.
- **`create_ui_message_stream` and `execute_stream`.** Manage the stream
  lifecycle around your own callback.
  - They emit start, then finish and `[DONE]`.
  - If the callback raises, the stream ends with an error chunk instead.
- **`PersistedMessageBuilder`.** Watches chunks and builds typed message
  parts ready to store. These include:
  - text and reasoning
  - tool invocations
  - sources and files
  - `data-*` parts
  - message metadata
- **Envelope types.** `ChatRequestEnvelope`, `EnvelopeMessage` and
  `EnvelopePart` parse the chat request body and write it back out.
  `resolve_message_id_from_envelope` chooses the message ID for the reply.

## Example

```python
import io

from uistream.adapter import Adapter
from uistream.producer import StepEvent, StepEventType

events = [
    StepEvent(StepEventType.STEP_START),
    StepEvent(StepEventType.TEXT_DELTA, text_delta="Hello "),
    StepEvent(StepEventType.TEXT_DELTA, text_delta="world"),
    StepEvent(StepEventType.STEP_END, finish_reason="stop"),
    StepEvent(StepEventType.DONE),
]

out = io.StringIO()
text = Adapter("msg-1").stream(events, out)
assert text == "Hello world"
print(out.getvalue())
```

Custom data around a model stream:

```python
import io

from uistream.executor import create_ui_message_stream

out = io.StringIO()

def run(sw):
    sw.write_data("plan", {"step": "1"})

create_ui_message_stream(out, run, message_id="msg-2")
```

## Tests

Install the test extra, then run pytest:

```
pip install -e ".[test]"
pytest
```