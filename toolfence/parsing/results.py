# Copyright (c) 2026 Toolfence Authors.
# This software is released under the GNU General Public License v3.0.
# See the LICENSE file in the project root for full license information.

import dataclasses
import json
from typing import Any, Dict, List, Optional


@dataclasses.dataclass
class ToolResult:
    tool_name: str
    result: Any = None
    tool_call_id: Optional[str] = None
    is_error: bool = False


def _result_payload(result: ToolResult) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "name": result.tool_name,
        "result": result.result,
        "error": bool(result.is_error),
    }
    if result.tool_call_id:
        payload["id"] = result.tool_call_id
    return payload


def format_tool_results(results: List[ToolResult]) -> str:
    """
    Serialize tool results for the next model turn.

    One compact JSON object per line inside a ```tool_result fence; an empty
    list gives an empty string.
    """
    if not results:
        return ""
    lines = [
        json.dumps(_result_payload(r), ensure_ascii=False, separators=(",", ":"))
        for r in results
    ]
    body = "\n".join(lines)
    return f"```tool_result\n{body}\n```"


def format_single_tool_result(result: ToolResult) -> str:
    return format_tool_results([result])
