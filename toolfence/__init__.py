# Copyright (c) 2026 Toolfence Authors.
# This software is released under the GNU General Public License v3.0.
# See the LICENSE file in the project root for full license information.

"""
Toolfence: streaming extraction of tool calls embedded in model output.
"""

from .config import ToolfenceConfig, create_default_config, load_config, parse_config
from .exceptions import ConfigurationError
from .parsing import (
    ArgumentsStreamState,
    ToolCallFenceDetector,
    ParsedResponse,
    ParsedToolCall,
    ParseOptions,
    ToolResult,
    extract_arguments_delta,
    format_tool_results,
    parse_tool_calls,
)
from .stream import StreamEvent, ToolCallStreamProcessor

__version__ = "0.1.0"

__all__ = [
    "ToolfenceConfig",
    "create_default_config",
    "load_config",
    "parse_config",
    "ConfigurationError",
    "ArgumentsStreamState",
    "ToolCallFenceDetector",
    "ParsedResponse",
    "ParsedToolCall",
    "ParseOptions",
    "ToolResult",
    "extract_arguments_delta",
    "format_tool_results",
    "parse_tool_calls",
    "StreamEvent",
    "ToolCallStreamProcessor",
]
