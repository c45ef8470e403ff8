"""
Unit tests for ToolCallStreamProcessor.

Covers the event sequence for each fence encoding, degraded fences and the
one-call-per-fence policy.
"""

import asyncio
import re
import time

import toolfence.stream as stream_module
from toolfence.parsing.detector import ToolCallFenceDetector
from toolfence.parsing.patterns import FencePattern
from toolfence.parsing.tool_calls import ParseOptions, parse_tool_calls
from toolfence.stream import StreamEvent, ToolCallStreamProcessor

ID_PATTERN = re.compile(r"^call_\d+_[a-z0-9]{7}$")

TWO_CALL_FENCE = (
    "```tool_call\n"
    '{"name": "a", "arguments": {}}\n'
    '{"name": "b", "arguments": {"x": 1}}\n'
    "```"
)


def _run(chunks, **kwargs):
    processor = ToolCallStreamProcessor(**kwargs)
    events = list(processor.process(chunks))
    return processor, events


def _types(events):
    return [e.type for e in events]


def _text(events):
    return "".join(e.data for e in events if e.type == "text-delta")


def _deltas(events, call_id):
    return "".join(e.data for e in events if e.type == "tool-input-delta" and e.id == call_id)


def test_plain_text_passes_through():
    processor, events = _run(["Hello ", "world", "!"])
    assert _types(events) == ["text-delta"] * 3
    assert _text(events) == "Hello world!"
    assert processor.tool_calls == []
    assert processor.finish_reason == "stop"


def test_withheld_backticks_released_on_flush():
    processor, events = _run(["Use ``"])
    assert _text(events) == "Use ``"


def test_markdown_call_char_by_char(weather_call):
    processor, events = _run(list("Checking. " + weather_call))

    types = [t for t in _types(events) if t != "tool-input-delta"]
    assert types[0] == "text-delta"
    assert types[-3:] == ["tool-input-start", "tool-input-end", "tool-call"]
    assert _text(events) == "Checking. "

    start = next(e for e in events if e.type == "tool-input-start")
    call = events[-1]
    assert start.tool_name == "get_weather"
    assert ID_PATTERN.match(start.id)
    assert call.id == start.id
    assert call.tool_call.tool_call_id == start.id
    assert call.tool_call.args == {"city": "SF"}
    assert _deltas(events, start.id) == '{"city": "SF"}'
    assert processor.finish_reason == "tool-calls"


def test_tool_name_announced_before_arguments_complete(weather_call):
    processor = ToolCallStreamProcessor()
    head = weather_call[:weather_call.index('"SF"')]
    events = processor.push(head)
    assert _types(events) == ["tool-input-start", "tool-input-delta"]
    assert events[1].data == '{"city": '


def test_bracket_call():
    processor, events = _run(['Do [search(query="x")] now'])
    assert _types(events) == [
        "text-delta",
        "tool-input-start",
        "tool-input-delta",
        "tool-input-end",
        "tool-call",
        "text-delta",
    ]
    assert events[1].tool_name == "search"
    assert events[2].data == '{"query": "x"}'
    assert events[4].tool_call.args == {"query": "x"}
    assert _text(events) == "Do  now"


def test_xml_call():
    processor, events = _run(['<tool_call>{"name": "ping", "arguments": {"h": "a"}}</tool_call>'])
    assert processor.tool_calls[0].tool_name == "ping"
    assert _text(events) == ""


def test_invalid_fence_is_emitted_as_text():
    fence = "```tool_call\nnot json at all\n```"
    processor, events = _run(["A ", fence, " B"])
    assert _types(events) == ["text-delta"] * 3
    assert _text(events) == "A " + fence + " B"
    assert processor.finish_reason == "stop"


def test_invalid_fence_after_started_input_is_closed():
    fence = '```tool_call\n{"name": "x", "arguments": {"a": 1}} trailing junk\n```'
    processor, events = _run([fence])
    start = events[0]
    assert start.type == "tool-input-start"
    assert _types(events)[-2:] == ["tool-input-end", "text-delta"]
    assert events[-1].data == fence
    assert processor.tool_calls == []


def test_only_first_call_kept_by_default():
    processor, events = _run([TWO_CALL_FENCE])
    assert [c.tool_name for c in processor.tool_calls] == ["a"]
    assert _types(events).count("tool-call") == 1


def test_parallel_tool_calls():
    processor, events = _run([TWO_CALL_FENCE], parallel_tool_calls=True)
    assert [c.tool_name for c in processor.tool_calls] == ["a", "b"]

    calls = [e for e in events if e.type == "tool-call"]
    assert len(calls) == 2
    assert calls[0].id != calls[1].id
    assert calls[1].tool_call.args == {"x": 1}
    assert _deltas(events, calls[1].id) == '{"x": 1}'


def test_first_call_uses_id_allocated_at_fence_entry():
    processor = ToolCallStreamProcessor()
    events = processor.push("```tool_call\n")
    events += processor.push('{"name": "f", "id": "model_id", "arguments": {}}\n```')
    start = next(e for e in events if e.type == "tool-input-start")
    assert processor.tool_calls[0].tool_call_id == start.id
    assert start.id != "model_id"


def test_parameters_alias_emits_single_delta():
    processor, events = _run(['```tool_call\n{"name": "f", "parameters": {"q": 1}}\n```'])
    deltas = [e for e in events if e.type == "tool-input-delta"]
    assert len(deltas) == 1
    assert deltas[0].data == '{"q": 1}'
    assert processor.tool_calls[0].args == {"q": 1}


def test_parameters_alias_disabled():
    processor, _ = _run(
        ['```tool_call\n{"name": "f", "parameters": {"q": 1}}\n```'],
        parse_options=ParseOptions(parameters_alias=False),
    )
    assert processor.tool_calls[0].args == {}


def test_unterminated_fence_degrades_on_flush():
    processor = ToolCallStreamProcessor()
    events = processor.push('Hi ```tool_call\n{"name": "x", "arguments": {"a"')
    assert _types(events) == ["text-delta", "tool-input-start", "tool-input-delta"]

    tail = processor.flush()
    assert _types(tail) == ["tool-input-end", "text-delta"]
    assert tail[0].id == events[1].id
    assert tail[1].data == '```tool_call\n{"name": "x", "arguments": {"a"'
    assert processor.tool_calls == []
    assert processor.finish_reason == "stop"


def test_unterminated_fence_without_name_degrades_to_text_only():
    processor = ToolCallStreamProcessor()
    processor.push("<tool_call>{")
    assert _types(processor.flush()) == ["text-delta"]


def test_custom_detector():
    detector = ToolCallFenceDetector(bracket_calls=False)
    processor, events = _run(["[search(q=1)]"], detector=detector)
    assert _types(events) == ["text-delta"]
    assert processor.tool_calls == []


def test_aprocess(weather_call):
    async def source():
        for ch in weather_call:
            yield ch

    async def collect():
        processor = ToolCallStreamProcessor()
        return processor, [event async for event in processor.aprocess(source())]

    processor, events = asyncio.run(collect())
    assert events[-1].type == "tool-call"
    assert processor.finish_reason == "tool-calls"


class TestStreamedMatchesWholeResponse:
    """Streaming a response must agree with parsing it in one piece."""

    @staticmethod
    def _normalize(text):
        return " ".join(text.split())

    def test_char_by_char(self, mixed_response):
        expected = parse_tool_calls(mixed_response)
        processor, events = _run(list(mixed_response), parallel_tool_calls=True)

        assert [c.tool_name for c in processor.tool_calls] == [c.tool_name for c in expected.tool_calls]
        assert [c.args for c in processor.tool_calls] == [c.args for c in expected.tool_calls]
        assert self._normalize(_text(events)) == self._normalize(expected.text_content)

    def test_every_split(self, mixed_response, split_points):
        expected = parse_tool_calls(mixed_response)
        for chunks in split_points(mixed_response):
            processor, events = _run(chunks)
            assert [c.tool_name for c in processor.tool_calls] == ["get_weather", "get_time", "lookup"]
            assert [c.args for c in processor.tool_calls] == [c.args for c in expected.tool_calls]
            assert self._normalize(_text(events)) == self._normalize(expected.text_content)


class TestStreamEvent:
    def test_to_dict_text_delta(self):
        assert StreamEvent("text-delta", "hi").to_dict() == {"type": "text-delta", "data": "hi"}

    def test_to_dict_tool_input_end(self):
        assert StreamEvent("tool-input-end", id="call_1").to_dict() == {"type": "tool-input-end", "id": "call_1"}

    def test_to_dict_tool_input_start(self):
        event = StreamEvent("tool-input-start", id="call_1", tool_name="f")
        assert event.to_dict() == {"type": "tool-input-start", "id": "call_1", "tool_name": "f"}


def test_custom_fence_markers():
    detector = ToolCallFenceDetector(patterns=[FencePattern("<fn>", "</fn>", "<fn>")], bracket_calls=False)
    processor, events = _run(list('ok <fn>{"name": "f", "arguments": {"a": 1}}</fn>'), detector=detector)
    assert processor.tool_calls[0].tool_name == "f"
    assert processor.tool_calls[0].args == {"a": 1}
    assert _text(events) == "ok "


class TestMalformedPayloads:
    """Payloads the JSON decoder rejects must degrade to text, not raise."""

    def test_oversized_integer(self):
        fence = '```tool_call\n{"name": "f", "arguments": {"n": ' + "1" * 5000 + '}}\n```'
        processor, events = _run([fence[i:i + 64] for i in range(0, len(fence), 64)])
        assert processor.tool_calls == []
        assert _types(events)[-2:] == ["tool-input-end", "text-delta"]
        assert events[-1].data == fence

    def test_deep_nesting(self):
        fence = "```tool_call\n" + "[" * 100000 + "\n```"
        processor, events = _run([fence])
        assert processor.tool_calls == []
        assert _text(events) == fence


def test_string_arguments_stream_raw_and_call_carries_decoded():
    fence = '```tool_call\n{"name": "f", "arguments": "{\\"a\\": 1}"}\n```'
    processor, events = _run(list(fence))
    call = events[-1]
    assert _deltas(events, call.id) == '"{\\"a\\": 1}"'
    assert call.data == '{"a": 1}'
    assert call.tool_call.args == {"a": 1}


class TestLongFences:
    """Work per character stays constant however long the fence grows."""

    def test_argument_window_stays_bounded(self, monkeypatch):
        seen = []
        real = stream_module.extract_arguments_delta

        def recording(content, state, offset=0):
            seen.append(len(content))
            return real(content, state, offset)

        monkeypatch.setattr(stream_module, "extract_arguments_delta", recording)
        body = '{"name": "f", "arguments": {"text": "' + "x" * 20000 + '"}}'
        processor, events = _run(list("```tool_call\n" + body + "\n```"))

        assert processor.tool_calls[0].args == {"text": "x" * 20000}
        assert len(seen) > 20000
        assert max(seen) <= 64

    def test_unnamed_fence_window_stays_bounded(self, monkeypatch):
        calls = []
        monkeypatch.setattr(stream_module, "extract_tool_name", lambda text: calls.append(len(text)))
        processor, events = _run(list("<tool_call>" + "x" * 5000))
        assert max(calls) <= 256
        assert len(calls) <= 256
        assert _text(events) == "<tool_call>" + "x" * 5000

    def test_streaming_time_grows_linearly(self):
        def elapsed(size):
            text = "```tool_call\n" + "x" * size
            start = time.perf_counter()
            processor = ToolCallStreamProcessor()
            for ch in text:
                processor.push(ch)
            processor.flush()
            return time.perf_counter() - start

        elapsed(5000)  # warm up
        small = min(elapsed(50000) for _ in range(2))
        large = min(elapsed(200000) for _ in range(2))
        # 4x the input
        assert large < small * 6
