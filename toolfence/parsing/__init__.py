# Copyright (c) 2026 Toolfence Authors.
# This software is released under the GNU General Public License v3.0.
# See the LICENSE file in the project root for full license information.

"""
Fence detection and tool call parsing primitives.
"""

from .arguments import ArgumentsStreamState, extract_arguments_delta, extract_tool_name
from .detector import (
    FenceDetectionResult,
    FenceStepResult,
    ToolCallFenceDetector,
    create_basic_detector,
    create_extended_detector,
)
from .overlap import compute_overlap_length
from .patterns import (
    DEFAULT_FENCE_PATTERNS,
    EXTENDED_FENCE_PATTERNS,
    BracketCallMatch,
    FencePattern,
    LiteralMatch,
    PatternKind,
)
from .results import ToolResult, format_single_tool_result, format_tool_results
from .tool_calls import (
    ParsedResponse,
    ParsedToolCall,
    ParseOptions,
    extract_tool_calls_block,
    parse_fence_body,
    generate_tool_call_id,
    has_tool_calls,
    parse_tool_calls,
)

__all__ = [
    "ArgumentsStreamState",
    "extract_arguments_delta",
    "extract_tool_name",
    "FenceDetectionResult",
    "FenceStepResult",
    "ToolCallFenceDetector",
    "create_basic_detector",
    "create_extended_detector",
    "compute_overlap_length",
    "DEFAULT_FENCE_PATTERNS",
    "EXTENDED_FENCE_PATTERNS",
    "BracketCallMatch",
    "FencePattern",
    "LiteralMatch",
    "PatternKind",
    "ToolResult",
    "format_single_tool_result",
    "format_tool_results",
    "ParsedResponse",
    "ParsedToolCall",
    "ParseOptions",
    "extract_tool_calls_block",
    "parse_fence_body",
    "generate_tool_call_id",
    "has_tool_calls",
    "parse_tool_calls",
]
