# Copyright (c) 2026 Toolfence Authors.
# This software is released under the GNU General Public License v3.0.
# See the LICENSE file in the project root for full license information.

"""
Toolfence: command line entry point.

    toolfence parse response.txt
    toolfence stream response.txt --chunk-size 4
    cat response.txt | toolfence --config toolfence.toml stream
"""
import argparse
import json
import logging
import sys
from typing import Iterator, List, Optional

from .config import ToolfenceConfig, create_default_config, load_config
from .exceptions import ConfigurationError
from .parsing.tool_calls import parse_tool_calls

logger = logging.getLogger(__name__)


def _read_input(path: Optional[str]) -> str:
    if path is None or path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _chunks(text: str, size: int) -> Iterator[str]:
    for i in range(0, len(text), size):
        yield text[i:i + size]


def run_parse(config: ToolfenceConfig, text: str) -> int:
    parsed = parse_tool_calls(text, config.parse_options())
    output = {
        "tool_calls": [call.to_dict() for call in parsed.tool_calls],
        "text_content": parsed.text_content,
    }
    print(json.dumps(output, ensure_ascii=False, indent=2))
    return 0


def run_stream(config: ToolfenceConfig, text: str, chunk_size: int) -> int:
    processor = config.build_processor()
    for event in processor.process(_chunks(text, chunk_size)):
        print(json.dumps(event.to_dict(), ensure_ascii=False))
    logger.info(f"Stream finished: {len(processor.tool_calls)} tool call(s), "
                f"finish_reason={processor.finish_reason}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolfence",
        description="Extract tool calls embedded in model output",
    )
    parser.add_argument("--config", type=str, help="Path to a TOML configuration file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p_parse = sub.add_parser("parse", help="Parse a complete response")
    p_parse.add_argument("file", nargs="?", help="Input file (default: stdin)")

    p_stream = sub.add_parser("stream", help="Replay a response as a chunked stream")
    p_stream.add_argument("file", nargs="?", help="Input file (default: stdin)")
    p_stream.add_argument("--chunk-size", type=int, default=8, help="Characters per chunk (default: 8)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    log_level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    if args.config:
        try:
            config = load_config(args.config)
        except FileNotFoundError as e:
            logger.error(f"Configuration file not found: {e}")
            return 1
        except ConfigurationError as e:
            logger.error(f"Configuration error: {e}")
            return 1
    else:
        config = create_default_config()

    try:
        text = _read_input(args.file)
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Cannot read input: {e}")
        return 1

    if args.command == "parse":
        return run_parse(config, text)

    if args.chunk_size < 1:
        logger.error("--chunk-size must be at least 1")
        return 1
    return run_stream(config, text, args.chunk_size)


if __name__ == "__main__":
    sys.exit(main())
