# Copyright (c) 2026 Toolfence Authors.
# This software is released under the GNU General Public License v3.0.
# See the LICENSE file in the project root for full license information.

"""
Toolfence: configuration for fence detection, parsing and stream policy.

Configuration structure:
    [detector]  which fence patterns are recognized while streaming
    [parser]    which encodings the final-stage parser accepts
    [stream]    caller policy for the stream processor

All settings are fixed when a detector or processor is built from them.
"""

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .exceptions import ConfigurationError
from .parsing.detector import ToolCallFenceDetector
from .parsing.patterns import DEFAULT_FENCE_PATTERNS, EXTENDED_FENCE_PATTERNS, FencePattern
from .parsing.tool_calls import ParseOptions
from .stream import ToolCallStreamProcessor

logger = logging.getLogger(__name__)

PATTERN_SETS: dict[str, list[FencePattern]] = {
    "basic": DEFAULT_FENCE_PATTERNS,
    "extended": EXTENDED_FENCE_PATTERNS,
}


@dataclass
class DetectorConfig:
    """Fence patterns used by the streaming detector."""
    patterns: list[FencePattern] = field(default_factory=lambda: list(EXTENDED_FENCE_PATTERNS))
    bracket_calls: bool = True


@dataclass
class ParserConfig:
    """Encodings accepted by the final-stage parser."""
    xml_tags: bool = True
    bracket_calls: bool = True
    parameters_alias: bool = True


@dataclass
class StreamConfig:
    """Caller policy for the stream processor."""
    parallel_tool_calls: bool = False


@dataclass
class ToolfenceConfig:
    """Complete configuration."""
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)

    def build_detector(self) -> ToolCallFenceDetector:
        return ToolCallFenceDetector(
            patterns=self.detector.patterns,
            bracket_calls=self.detector.bracket_calls,
        )

    def parse_options(self) -> ParseOptions:
        return ParseOptions(
            xml_tags=self.parser.xml_tags,
            bracket_calls=self.parser.bracket_calls,
            parameters_alias=self.parser.parameters_alias,
        )

    def build_processor(self) -> ToolCallStreamProcessor:
        return ToolCallStreamProcessor(
            detector=self.build_detector(),
            parse_options=self.parse_options(),
            parallel_tool_calls=self.stream.parallel_tool_calls,
        )


def load_config(config_path: str | Path) -> ToolfenceConfig:
    """
    Load configuration from a TOML file.

    Args:
        config_path: Path to the TOML configuration file

    Returns:
        ToolfenceConfig object

    Raises:
        ConfigurationError: If configuration is invalid
        FileNotFoundError: If config file doesn't exist
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "rb") as f:
        try:
            raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}", source=str(config_path)) from e

    return parse_config(raw, source=str(config_path))


def _get_bool(table: dict[str, Any], key: str, default: bool, section: str, source: str) -> bool:
    value = table.get(key, default)
    if not isinstance(value, bool):
        raise ConfigurationError(
            f"'{section}.{key}' must be a boolean (got {value!r}) in {source}", source=source
        )
    return value


def _parse_custom_patterns(items: Any, source: str) -> list[FencePattern]:
    if not isinstance(items, list) or not items:
        raise ConfigurationError(f"'detector.custom_patterns' must be a non-empty list in {source}", source=source)

    patterns = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise ConfigurationError(f"Invalid custom pattern at index {i} in {source}", source=source)
        start = item.get("start", "")
        end = item.get("end", "")
        if not isinstance(start, str) or not isinstance(end, str):
            raise ConfigurationError(f"Custom pattern at index {i} needs string markers in {source}", source=source)
        reconstruct_prefix = item.get("reconstruct_prefix", start)
        if not isinstance(reconstruct_prefix, str):
            raise ConfigurationError(
                f"Custom pattern at index {i} has a non-string reconstruct_prefix in {source}", source=source
            )
        pattern = FencePattern(start=start, end=end, reconstruct_prefix=reconstruct_prefix)
        patterns.append(pattern.validate(source=f"{source} (custom pattern {i})"))
    return patterns


def parse_config(raw: dict[str, Any], source: str = "<dict>") -> ToolfenceConfig:
    """
    Parse raw configuration dictionary into ToolfenceConfig.

    Args:
        raw: Raw configuration dictionary (e.g., from TOML)
        source: Source identifier for error messages

    Returns:
        ToolfenceConfig object

    Raises:
        ConfigurationError: If configuration is invalid
    """
    config = ToolfenceConfig()

    for section in ("detector", "parser", "stream"):
        if not isinstance(raw.get(section, {}), dict):
            raise ConfigurationError(f"Section '{section}' must be a table in {source}", source=source)

    # Detector
    detector_raw = raw.get("detector", {})
    set_name = detector_raw.get("patterns", "extended")
    if not isinstance(set_name, str) or set_name not in PATTERN_SETS:
        raise ConfigurationError(
            f"Unknown pattern set '{set_name}' in {source} (expected one of {sorted(PATTERN_SETS)})",
            source=source,
        )
    config.detector.patterns = list(PATTERN_SETS[set_name])
    if "custom_patterns" in detector_raw:
        config.detector.patterns = _parse_custom_patterns(detector_raw["custom_patterns"], source)
    config.detector.bracket_calls = _get_bool(detector_raw, "bracket_calls", True, "detector", source)

    # Parser
    parser_raw = raw.get("parser", {})
    config.parser.xml_tags = _get_bool(parser_raw, "xml_tags", True, "parser", source)
    config.parser.bracket_calls = _get_bool(parser_raw, "bracket_calls", True, "parser", source)
    config.parser.parameters_alias = _get_bool(parser_raw, "parameters_alias", True, "parser", source)

    # Stream policy
    stream_raw = raw.get("stream", {})
    config.stream.parallel_tool_calls = _get_bool(stream_raw, "parallel_tool_calls", False, "stream", source)

    logger.info(f"Loaded configuration from {source}: "
                f"{len(config.detector.patterns)} fence pattern(s), "
                f"bracket calls {'on' if config.detector.bracket_calls else 'off'}")

    return config


def create_default_config() -> ToolfenceConfig:
    """
    Create the configuration used when no config file is provided.

    Extended patterns, bracket calls on, every parser encoding accepted and
    one tool call per fence.
    """
    return ToolfenceConfig()
