# Copyright (c) 2026 Toolfence Authors.
# This software is released under the GNU General Public License v3.0.
# See the LICENSE file in the project root for full license information.

import dataclasses
import logging
from typing import List, Optional

from .overlap import bracket_call_overlap, compute_overlap_length
from .patterns import (
    DEFAULT_FENCE_PATTERNS,
    EXTENDED_FENCE_PATTERNS,
    FencePattern,
    PatternMatch,
    find_earliest_match,
)

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class FenceStepResult:
    """
    Outcome of one ``detect_step()``.

    ``safe_content`` is plain text when outside a fence (or on the step that
    enters one), and live fence text while inside one. ``complete_fence`` is
    set on the step that closes a fence.
    """
    in_fence: bool
    safe_content: str = ""
    complete_fence: Optional[str] = None
    text_after_fence: str = ""
    started_fence: bool = False
    pattern: Optional[FencePattern] = None

    @property
    def made_progress(self) -> bool:
        return bool(self.safe_content) or self.started_fence or self.complete_fence is not None


@dataclasses.dataclass
class FenceDetectionResult:
    fence: Optional[str]
    prefix_text: str
    remaining_text: str
    overlap_length: int


class ToolCallFenceDetector:
    """
    Incremental scanner for tool call fences in a text stream.

    Chunks are appended with ``add_chunk()`` and consumed by repeated
    ``detect_step()`` calls. Text that might be the beginning of a marker is
    withheld until the next chunk settles it, so a marker split across chunks
    is still recognized. The buffer only ever holds the unconsumed tail, which
    keeps total work linear in the stream length.
    """

    def __init__(self, patterns: Optional[List[FencePattern]] = None, bracket_calls: bool = True):
        self.patterns = list(patterns if patterns is not None else EXTENDED_FENCE_PATTERNS)
        for pattern in self.patterns:
            pattern.validate()
        self.bracket_calls = bracket_calls
        self._fence_starts = [p.start for p in self.patterns]

        self.buffer = ""
        self._in_fence = False
        self._active_pattern: Optional[FencePattern] = None
        self._fence_parts: List[str] = []
        self._consumed_start = ""

    def add_chunk(self, chunk: str) -> None:
        self.buffer += chunk

    def get_buffer(self) -> str:
        return self.buffer

    def clear_buffer(self) -> None:
        self.buffer = ""

    def has_content(self) -> bool:
        return len(self.buffer) > 0

    @property
    def buffer_size(self) -> int:
        return len(self.buffer)

    @property
    def in_fence(self) -> bool:
        return self._in_fence

    @property
    def active_pattern(self) -> Optional[FencePattern]:
        return self._active_pattern

    def reset_streaming_state(self) -> None:
        self._in_fence = False
        self._active_pattern = None
        self._fence_parts = []
        self._consumed_start = ""

    def _find_start(self, text: str) -> Optional[PatternMatch]:
        return find_earliest_match(text, self.patterns, self.bracket_calls)

    def _start_overlap(self, text: str) -> int:
        overlap = compute_overlap_length(text, self._fence_starts)
        if self.bracket_calls:
            overlap = max(overlap, bracket_call_overlap(text))
        return overlap

    def detect_fence(self) -> FenceDetectionResult:
        """Look for one complete fence in the buffer (non-streaming mode)."""
        match = self._find_start(self.buffer)

        if match is None:
            overlap = self._start_overlap(self.buffer)
            safe_length = len(self.buffer) - overlap
            prefix_text = self.buffer[:safe_length]
            self.buffer = self.buffer[safe_length:]
            return FenceDetectionResult(None, prefix_text, "", overlap)

        prefix_text = self.buffer[:match.offset]
        self.buffer = self.buffer[match.offset:]

        pattern = match.to_pattern()
        closing_idx = self.buffer.find(pattern.end, len(match.marker))
        if closing_idx == -1:
            # Keep the partial fence until more data arrives
            return FenceDetectionResult(None, prefix_text, "", 0)

        end_pos = closing_idx + len(pattern.end)
        fence = self.buffer[:end_pos]
        remaining = self.buffer[end_pos:]
        self.buffer = ""
        return FenceDetectionResult(fence, prefix_text, remaining, 0)

    def detect_step(self) -> FenceStepResult:
        """Advance the state machine by one step over the current buffer."""
        if not self._in_fence:
            return self._step_outside()
        return self._step_inside()

    def _step_outside(self) -> FenceStepResult:
        match = self._find_start(self.buffer)

        if match is None:
            overlap = self._start_overlap(self.buffer)
            safe_length = len(self.buffer) - overlap
            safe_content = self.buffer[:safe_length]
            self.buffer = self.buffer[safe_length:]
            return FenceStepResult(in_fence=False, safe_content=safe_content)

        prefix_text = self.buffer[:match.offset]
        pattern = match.to_pattern()
        consumed = match.marker

        if pattern.is_markdown and match.offset + len(consumed) == len(self.buffer):
            # Wait for the character after the marker to know if a newline follows
            self.buffer = self.buffer[match.offset:]
            return FenceStepResult(in_fence=False, safe_content=prefix_text)

        self.buffer = self.buffer[match.offset + len(consumed):]
        if pattern.is_markdown and self.buffer.startswith("\n"):
            self.buffer = self.buffer[1:]
            consumed += "\n"

        self._in_fence = True
        self._active_pattern = pattern
        self._fence_parts = []
        self._consumed_start = consumed
        logger.debug(f"Entered fence {pattern.start!r} at offset {match.offset}")

        return FenceStepResult(
            in_fence=True,
            safe_content=prefix_text,
            started_fence=True,
            pattern=pattern,
        )

    def _step_inside(self) -> FenceStepResult:
        pattern = self._active_pattern
        fence_end = pattern.end
        closing_idx = self.buffer.find(fence_end)

        if closing_idx == -1:
            overlap = compute_overlap_length(self.buffer, [fence_end])
            safe_length = len(self.buffer) - overlap
            safe_content = self.buffer[:safe_length]
            if safe_content:
                self._fence_parts.append(safe_content)
            self.buffer = self.buffer[safe_length:]
            return FenceStepResult(in_fence=True, safe_content=safe_content, pattern=pattern)

        fence_content = self.buffer[:closing_idx]
        self._fence_parts.append(fence_content)
        accumulated = "".join(self._fence_parts)
        complete_fence = f"{pattern.reconstruct_prefix}{accumulated}{fence_end}"
        text_after = self.buffer[closing_idx + len(fence_end):]

        self.reset_streaming_state()
        self.buffer = text_after
        logger.debug(f"Closed fence {pattern.start!r} ({len(complete_fence)} chars)")

        return FenceStepResult(
            in_fence=False,
            safe_content=fence_content,
            complete_fence=complete_fence,
            text_after_fence=text_after,
            pattern=pattern,
        )

    def flush(self) -> str:
        """
        Final flush at end of stream.

        Returns every withheld character. An unterminated fence comes back as
        literal text, including the start marker it consumed.
        """
        if self._in_fence:
            accumulated = "".join(self._fence_parts)
            text = f"{self._consumed_start}{accumulated}{self.buffer}"
            logger.debug(f"Stream ended inside fence {self._active_pattern.start!r}; degrading to text")
        else:
            text = self.buffer
        self.reset_streaming_state()
        self.buffer = ""
        return text


def create_basic_detector() -> ToolCallFenceDetector:
    """Detector for markdown fences only."""
    return ToolCallFenceDetector(patterns=DEFAULT_FENCE_PATTERNS, bracket_calls=False)


def create_extended_detector() -> ToolCallFenceDetector:
    """Detector for markdown, XML and bracket-call fences."""
    return ToolCallFenceDetector(patterns=EXTENDED_FENCE_PATTERNS, bracket_calls=True)
