# Copyright (c) 2026 Toolfence Authors.
# This software is released under the GNU General Public License v3.0.
# See the LICENSE file in the project root for full license information.

"""
Drive the fence detector over a generation stream and turn it into events.

Event types, in the order a consumer sees them for one call:
    tool-input-start  (id, tool_name)
    tool-input-delta  (id, data = argument text)
    tool-input-end    (id)
    tool-call         (id, tool_name, data = arguments JSON, tool_call)
Plain text arrives as ``text-delta`` events at any point outside a fence.
"""

import dataclasses
import logging
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator, List, Optional

from .parsing.arguments import ArgumentsStreamState, extract_arguments_delta, extract_tool_name
from .parsing.detector import ToolCallFenceDetector
from .parsing.patterns import FencePattern, PatternKind
from .parsing.tool_calls import (
    ParsedToolCall,
    ParseOptions,
    generate_tool_call_id,
    has_tool_calls,
    parse_fence_body,
    parse_tool_calls,
)

logger = logging.getLogger(__name__)

# "name" must be the first key to be sniffed early, so a short window is enough
TOOL_NAME_SEARCH_LIMIT = 256


@dataclasses.dataclass
class StreamEvent:
    type: str  # "text-delta", "tool-input-start", "tool-input-delta", "tool-input-end", "tool-call"
    data: str = ""
    id: Optional[str] = None
    tool_name: Optional[str] = None
    tool_call: Optional[ParsedToolCall] = None

    def to_dict(self) -> dict:
        out = {"type": self.type}
        if self.id is not None:
            out["id"] = self.id
        if self.tool_name is not None:
            out["tool_name"] = self.tool_name
        if self.data or self.type in ("text-delta", "tool-input-delta", "tool-call"):
            out["data"] = self.data
        return out


class ToolCallStreamProcessor:
    """
    Stateful per-stream processor: one instance per generation, never shared.

    ``push()`` returns the events a chunk made available; ``flush()`` must be
    called once the source is exhausted so withheld text (including an
    unterminated fence) is released.
    """

    def __init__(
        self,
        detector: Optional[ToolCallFenceDetector] = None,
        parse_options: ParseOptions = ParseOptions(),
        parallel_tool_calls: bool = False,
    ):
        self.detector = detector if detector is not None else ToolCallFenceDetector()
        self.parse_options = parse_options
        self.parallel_tool_calls = parallel_tool_calls
        self.tool_calls: List[ParsedToolCall] = []
        self._reset_call()

    def _reset_call(self) -> None:
        self._call_id: Optional[str] = None
        self._pattern: Optional[FencePattern] = None
        self._fence_length = 0
        # Fence text from position _args_offset on; only the unparsed tail is kept
        self._args_window = ""
        self._args_offset = 0
        self._args_state = ArgumentsStreamState()
        self._args_streamed = False
        self._input_started = False

    @property
    def finish_reason(self) -> str:
        return "tool-calls" if self.tool_calls else "stop"

    def push(self, chunk: str) -> List[StreamEvent]:
        self.detector.add_chunk(chunk)
        return self._drain()

    def flush(self) -> List[StreamEvent]:
        events: List[StreamEvent] = []
        if self.detector.in_fence and self._input_started:
            events.append(StreamEvent("tool-input-end", id=self._call_id))
        text = self.detector.flush()
        if text:
            events.append(StreamEvent("text-delta", text))
        self._reset_call()
        return events

    def process(self, chunks: Iterable[str]) -> Iterator[StreamEvent]:
        for chunk in chunks:
            yield from self.push(chunk)
        yield from self.flush()

    async def aprocess(self, chunks: AsyncIterable[str]) -> AsyncIterator[StreamEvent]:
        async for chunk in chunks:
            for event in self.push(chunk):
                yield event
        for event in self.flush():
            yield event

    def _drain(self) -> List[StreamEvent]:
        events: List[StreamEvent] = []
        while self.detector.has_content():
            result = self.detector.detect_step()

            if result.started_fence:
                if result.safe_content:
                    events.append(StreamEvent("text-delta", result.safe_content))
                self._begin_call(result.pattern, events)
                continue

            if result.complete_fence is not None:
                self._feed_fence_text(result.safe_content, events)
                self._complete_call(result.complete_fence, events)
                continue

            if not result.safe_content:
                # Only a possible partial marker is left; wait for more input
                break

            if result.in_fence:
                self._feed_fence_text(result.safe_content, events)
            else:
                events.append(StreamEvent("text-delta", result.safe_content))
        return events

    def _begin_call(self, pattern: FencePattern, events: List[StreamEvent]) -> None:
        self._reset_call()
        self._call_id = generate_tool_call_id()
        self._pattern = pattern
        if pattern.kind is PatternKind.BRACKET_CALL:
            # "[name(" already names the tool
            self._start_input(pattern.start[1:-1], events)

    def _start_input(self, tool_name: str, events: List[StreamEvent]) -> None:
        events.append(StreamEvent("tool-input-start", id=self._call_id, tool_name=tool_name))
        self._input_started = True

    def _feed_fence_text(self, text: str, events: List[StreamEvent]) -> None:
        if not text:
            return
        seen = self._fence_length
        self._fence_length += len(text)
        if self._pattern.kind is PatternKind.BRACKET_CALL:
            return

        if self._input_started:
            if self._args_state.complete:
                return
            self._args_window += text
        else:
            if seen >= TOOL_NAME_SEARCH_LIMIT:
                # The name can no longer be sniffed; input starts when the fence closes
                return
            self._args_window += text
            tool_name = extract_tool_name(self._args_window[:TOOL_NAME_SEARCH_LIMIT])
            if not tool_name:
                return
            self._start_input(tool_name, events)

        state = self._args_state
        delta = extract_arguments_delta(self._args_window, state, self._args_offset)
        resume = state.resume_index
        self._args_window = self._args_window[resume - self._args_offset:]
        self._args_offset = resume
        if delta:
            self._args_streamed = True
            events.append(StreamEvent("tool-input-delta", delta, id=self._call_id))

    def _complete_call(self, complete_fence: str, events: List[StreamEvent]) -> None:
        if has_tool_calls(complete_fence, self.parse_options):
            calls = parse_tool_calls(complete_fence, self.parse_options).tool_calls
        else:
            # Custom markers the parser's regex does not know
            prefix, end = self._pattern.reconstruct_prefix, self._pattern.end
            body = complete_fence[len(prefix):len(complete_fence) - len(end)]
            calls = parse_fence_body(body, self.parse_options)

        if not calls:
            logger.warning(f"Fence {self._pattern.start!r} held no valid tool call; emitting it as text")
            if self._input_started:
                events.append(StreamEvent("tool-input-end", id=self._call_id))
            events.append(StreamEvent("text-delta", complete_fence))
            self._reset_call()
            return

        if len(calls) > 1 and not self.parallel_tool_calls:
            logger.debug(f"Dropping {len(calls) - 1} extra tool call(s) from one fence")
            calls = calls[:1]

        first = dataclasses.replace(calls[0], tool_call_id=self._call_id)
        if not self._input_started:
            self._start_input(first.tool_name, events)
        if not self._args_streamed:
            events.append(StreamEvent("tool-input-delta", first.args_json(), id=first.tool_call_id))
        self._finish_call(first, events)

        for call in calls[1:]:
            events.append(StreamEvent("tool-input-start", id=call.tool_call_id, tool_name=call.tool_name))
            events.append(StreamEvent("tool-input-delta", call.args_json(), id=call.tool_call_id))
            self._finish_call(call, events)

        self._reset_call()

    def _finish_call(self, call: ParsedToolCall, events: List[StreamEvent]) -> None:
        events.append(StreamEvent("tool-input-end", id=call.tool_call_id))
        events.append(StreamEvent(
            "tool-call",
            call.args_json(),
            id=call.tool_call_id,
            tool_name=call.tool_name,
            tool_call=call,
        ))
        self.tool_calls.append(call)
