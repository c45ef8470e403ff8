# Copyright (c) 2026 Toolfence Authors.
# This software is released under the GNU General Public License v3.0.
# See the LICENSE file in the project root for full license information.

"""
Parse tool calls out of a complete fence body or a whole non-streamed response.

Recognized encodings:
    ```tool_call / ```tool-call / ```toolcall  (JSON object, array, or one object per line)
    <tool_call>...</tool_call>                  (same JSON payloads)
    [name(key="value", ...)]                    (bracket-call)

Malformed candidates are skipped, never raised.
"""

import dataclasses
import json
import logging
import random
import re
import string
import time
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

MARKDOWN_FENCE_PATTERN = r"```tool[_-]?call\s*(?P<markdown>[\s\S]*?)```"
XML_TAG_PATTERN = r"<tool_call>\s*(?P<xml>[\s\S]*?)\s*</tool_call>"
BRACKET_CALL_PATTERN = r"\[(?P<bracket_name>\w+)\((?P<bracket_args>[^)]*)\)\]"

_ID_ALPHABET = string.ascii_lowercase + string.digits

# json.loads also raises plain ValueError (integer digit limit) and RecursionError (deep nesting)
_DECODE_ERRORS = (ValueError, RecursionError)


@dataclasses.dataclass(frozen=True)
class ParseOptions:
    xml_tags: bool = True
    bracket_calls: bool = True
    # Accept "parameters" (Llama format) when "arguments" is absent
    parameters_alias: bool = True


@dataclasses.dataclass(frozen=True)
class ParsedToolCall:
    tool_call_id: str
    tool_name: str
    args: Any = dataclasses.field(default_factory=dict)
    type: str = "tool-call"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "tool_call_id": self.tool_call_id,
            "tool_name": self.tool_name,
            "args": self.args,
        }

    def args_json(self) -> str:
        return json.dumps(self.args if self.args is not None else {}, ensure_ascii=False)


@dataclasses.dataclass(frozen=True)
class ParsedResponse:
    tool_calls: List[ParsedToolCall]
    text_content: str


def generate_tool_call_id() -> str:
    """``call_<epoch millis>_<7 base36 chars>``"""
    suffix = "".join(random.choices(_ID_ALPHABET, k=7))
    return f"call_{int(time.time() * 1000)}_{suffix}"


def build_regex(options: ParseOptions = ParseOptions()) -> "re.Pattern[str]":
    patterns = [MARKDOWN_FENCE_PATTERN]
    if options.xml_tags:
        patterns.append(XML_TAG_PATTERN)
    if options.bracket_calls:
        patterns.append(BRACKET_CALL_PATTERN)
    return re.compile("|".join(patterns), re.IGNORECASE)


def _split_top_level(args: str) -> Iterator[str]:
    """Split ``a="x, y", b=2`` on commas that are not inside quotes."""
    quote: Optional[str] = None
    current = []
    for ch in args:
        if quote:
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == ",":
            yield "".join(current)
            current = []
            continue
        current.append(ch)
    yield "".join(current)


def _parse_bracket_args(raw_args: str) -> Dict[str, str]:
    args: Dict[str, str] = {}
    if not raw_args.strip():
        return args
    for pair in _split_top_level(raw_args):
        pair = pair.strip()
        equal_index = pair.find("=")
        if equal_index <= 0:
            continue
        key = pair[:equal_index].strip()
        value = pair[equal_index + 1:].strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        args[key] = value
    return args


def _candidates_from_json(inner: str) -> List[Any]:
    """Decode a fence payload as one JSON value, else as one JSON value per line."""
    try:
        parsed = json.loads(inner)
    except _DECODE_ERRORS:
        candidates = []
        for line in inner.split("\n"):
            line = line.strip()
            if not line:
                continue
            try:
                candidates.append(json.loads(line))
            except _DECODE_ERRORS as e:
                logger.debug(f"Skipping unparseable tool call line: {e}")
        return candidates
    return parsed if isinstance(parsed, list) else [parsed]


def _tool_call_from_candidate(candidate: Any, options: ParseOptions) -> Optional[ParsedToolCall]:
    if not isinstance(candidate, dict):
        logger.debug(f"Skipping non-object tool call candidate: {type(candidate).__name__}")
        return None
    name = candidate.get("name")
    if not name or not isinstance(name, str):
        logger.debug("Skipping tool call candidate without a name")
        return None

    args = candidate.get("arguments")
    if args is None and options.parameters_alias:
        args = candidate.get("parameters")
    if args is None:
        args = {}

    if isinstance(args, str):
        try:
            args = json.loads(args)
        except _DECODE_ERRORS:
            pass  # keep the raw string

    call_id = candidate.get("id") or generate_tool_call_id()
    return ParsedToolCall(tool_call_id=str(call_id), tool_name=name, args=args)


def _calls_from_match(match: "re.Match[str]", options: ParseOptions) -> List[ParsedToolCall]:
    bracket_name = match.group("bracket_name") if options.bracket_calls else None
    if bracket_name:
        args = _parse_bracket_args(match.group("bracket_args") or "")
        return [ParsedToolCall(tool_call_id=generate_tool_call_id(), tool_name=bracket_name, args=args)]

    inner = match.group("markdown")
    if inner is None and options.xml_tags:
        inner = match.group("xml")
    return parse_fence_body(inner or "", options)


def parse_fence_body(body: str, options: ParseOptions = ParseOptions()) -> List[ParsedToolCall]:
    """Tool calls from the JSON payload between a fence's markers."""
    body = body.strip()
    if not body:
        return []

    calls = []
    for candidate in _candidates_from_json(body):
        call = _tool_call_from_candidate(candidate, options)
        if call is not None:
            calls.append(call)
    return calls


def parse_tool_calls(response: str, options: ParseOptions = ParseOptions()) -> ParsedResponse:
    """
    Extract every tool call from ``response``.

    Calls come back in source order. ``text_content`` is the response with
    every matched region removed, runs of blank lines collapsed and the result
    trimmed. A response without any match is returned verbatim.
    """
    regex = build_regex(options)
    matches = list(regex.finditer(response))
    if not matches:
        return ParsedResponse(tool_calls=[], text_content=response)

    tool_calls: List[ParsedToolCall] = []
    pieces: List[str] = []
    cursor = 0
    for match in matches:
        pieces.append(response[cursor:match.start()])
        cursor = match.end()
        tool_calls.extend(_calls_from_match(match, options))
    pieces.append(response[cursor:])

    text_content = re.sub(r"\n{2,}", "\n", "".join(pieces)).strip()
    return ParsedResponse(tool_calls=tool_calls, text_content=text_content)


def has_tool_calls(response: str, options: ParseOptions = ParseOptions()) -> bool:
    return build_regex(options).search(response) is not None


def extract_tool_calls_block(response: str, options: ParseOptions = ParseOptions()) -> Optional[str]:
    """First complete tool call region in ``response``, markers included."""
    m = build_regex(options).search(response)
    return m.group(0) if m else None
