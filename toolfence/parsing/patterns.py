# Copyright (c) 2026 Toolfence Authors.
# This software is released under the GNU General Public License v3.0.
# See the LICENSE file in the project root for full license information.

"""
Fence pattern table.

A fence is opened and closed by a marker pair. Literal patterns are known up
front; the bracket-call form ``[name(...)]`` has no fixed start marker and is
recognized by scanning with ``BRACKET_CALL_REGEX``.
"""

import dataclasses
import enum
import re
from typing import List, Optional, Union

from ..exceptions import ConfigurationError


class PatternKind(enum.Enum):
    LITERAL = "literal"
    BRACKET_CALL = "bracket_call"


@dataclasses.dataclass(frozen=True)
class FencePattern:
    start: str
    end: str
    reconstruct_prefix: str
    kind: PatternKind = PatternKind.LITERAL

    @property
    def is_markdown(self) -> bool:
        return self.kind is PatternKind.LITERAL and self.start.startswith("```")

    def validate(self, source: str = "<patterns>") -> "FencePattern":
        if not self.start or not self.end:
            raise ConfigurationError(
                f"Fence pattern needs non-empty start and end markers in {source} "
                f"(got start={self.start!r}, end={self.end!r})",
                source=source,
            )
        return self


# Markdown-style fences, in declaration order (earlier wins ties)
DEFAULT_FENCE_PATTERNS: List[FencePattern] = [
    FencePattern("```tool_call", "```", "```tool_call\n"),
    FencePattern("```tool-call", "```", "```tool-call\n"),
    FencePattern("```toolcall", "```", "```toolcall\n"),
]

EXTENDED_FENCE_PATTERNS: List[FencePattern] = DEFAULT_FENCE_PATTERNS + [
    FencePattern("<tool_call>", "</tool_call>", "<tool_call>"),
]

BRACKET_CALL_REGEX = re.compile(r"\[(\w+)\(")
BRACKET_CALL_END = ")]"


@dataclasses.dataclass(frozen=True)
class LiteralMatch:
    offset: int
    pattern: FencePattern

    @property
    def marker(self) -> str:
        return self.pattern.start

    def to_pattern(self) -> FencePattern:
        return self.pattern


@dataclasses.dataclass(frozen=True)
class BracketCallMatch:
    offset: int
    name: str

    @property
    def marker(self) -> str:
        return f"[{self.name}("

    def to_pattern(self) -> FencePattern:
        marker = self.marker
        return FencePattern(marker, BRACKET_CALL_END, marker, PatternKind.BRACKET_CALL)


PatternMatch = Union[LiteralMatch, BracketCallMatch]


def find_earliest_match(
    text: str,
    patterns: List[FencePattern],
    bracket_calls: bool = True,
    start: int = 0,
) -> Optional[PatternMatch]:
    """
    Return the fence start with the lowest offset in ``text[start:]``.

    Literal patterns are tried in declaration order and only replaced by a
    strictly lower offset, so the earliest-declared literal wins a tie. The
    bracket-call form likewise only wins with a strictly lower offset.
    """
    best: Optional[PatternMatch] = None
    for pattern in patterns:
        idx = text.find(pattern.start, start)
        if idx != -1 and (best is None or idx < best.offset):
            best = LiteralMatch(idx, pattern)

    if bracket_calls:
        m = BRACKET_CALL_REGEX.search(text, start)
        if m and (best is None or m.start() < best.offset):
            best = BracketCallMatch(m.start(), m.group(1))

    return best
