# Copyright (c) 2026 Toolfence Authors.
# This software is released under the GNU General Public License v3.0.
# See the LICENSE file in the project root for full license information.

"""
Incremental extraction of a tool call's ``"arguments"`` value from partial fence text.

The caller owns one ``ArgumentsStreamState`` per open fence and passes either
the whole accumulated fence text or a window of it that starts at
``state.resume_index``, together with the window's offset. Only characters
past ``state.parse_index`` are examined, so each character is scanned once.
"""

import dataclasses
import re
from typing import Optional

ARGUMENTS_FIELD_REGEX = re.compile(r'"arguments"\s*:\s*')
TOOL_NAME_REGEX = re.compile(r'\{\s*"name"\s*:\s*"([^"]+)"')

# Re-scan window so a key split across chunks is still found
ARGUMENTS_SEARCH_OVERLAP = 32


@dataclasses.dataclass
class ArgumentsStreamState:
    search_from: int = 0
    value_start_index: Optional[int] = None
    parse_index: int = 0
    started: bool = False
    depth: int = 0
    in_string: bool = False
    escaped: bool = False
    complete: bool = False

    @property
    def resume_index(self) -> int:
        """Earliest fence position the next call still needs to see."""
        return self.search_from if self.value_start_index is None else self.parse_index


def extract_tool_name(content: str) -> Optional[str]:
    """Tool name from a JSON fragment such as ``{"name": "search"``, if present yet."""
    m = TOOL_NAME_REGEX.search(content)
    return m.group(1) if m else None


def extract_arguments_delta(content: str, state: ArgumentsStreamState, offset: int = 0) -> str:
    """
    Return the part of the arguments value that became available since the last call.

    ``content`` is the fence text from position ``offset`` on; every index kept
    in ``state`` is a position in the whole fence text. Callers that pass a
    window instead of the whole text must start it at or before
    ``state.resume_index``.

    Once the value's closing bracket has been returned the state is complete
    and every further call returns ``""``.
    """
    if state.complete:
        return ""

    end = offset + len(content)
    if state.value_start_index is None:
        m = ARGUMENTS_FIELD_REGEX.search(content, max(state.search_from - offset, 0))
        if m is None:
            state.search_from = max(state.search_from, end - ARGUMENTS_SEARCH_OVERLAP, 0)
            return ""
        state.value_start_index = offset + m.end()
        state.parse_index = offset + m.end()
        state.search_from = offset + m.end()

    if state.parse_index >= end:
        return ""

    start = state.parse_index - offset
    for i in range(start, len(content)):
        char = content[i]

        if not state.started:
            if char.isspace():
                # Whitespace before the value is never part of a delta
                start = i + 1
                continue
            state.started = True
            if char in "{[":
                state.depth = 1
            elif char == '"':
                state.in_string = True
            continue

        if state.escaped:
            state.escaped = False
            continue

        if char == "\\":
            state.escaped = True
            continue

        if char == '"':
            state.in_string = not state.in_string
            if not state.in_string and state.depth == 0:
                # A JSON-encoded string value just closed
                state.parse_index = offset + i + 1
                state.complete = True
                return content[start:i + 1]
            continue

        if state.in_string:
            continue

        if char in "{[":
            state.depth += 1
        elif char in "}]" and state.depth > 0:
            state.depth -= 1
            if state.depth == 0:
                state.parse_index = offset + i + 1
                state.complete = True
                return content[start:i + 1]

    state.parse_index = end
    return content[start:]
