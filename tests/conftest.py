"""
Global pytest configuration and test utilities.

Helpers are exposed as fixtures so test modules don't import from conftest:

    def test_something(run_detector, split_points):
        for chunks in split_points(text):
            transcript, fences, tail = run_detector(ToolCallFenceDetector(), chunks)
"""
import pytest


# ============================================================================
# Sample model outputs
# ============================================================================

WEATHER_CALL = '```tool_call\n{"name": "get_weather", "arguments": {"city": "SF"}}\n```'

MIXED_RESPONSE = (
    "Let me check.\n"
    '```tool_call\n{"name": "get_weather", "arguments": {"city": "SF", "units": ["c", "f"]}}\n```\n'
    "Meanwhile <tool_call>{\"name\": \"get_time\", \"arguments\": {\"tz\": \"PST\"}}</tool_call> and "
    '[lookup(id="7", note="a, b")] done.'
)


def _run_detector(detector, chunks):
    """
    Feed chunks through the detector the way a streaming caller would.

    Returns (transcript, complete_fences, flushed_tail) where transcript is the
    plain text interleaved with each completed fence body, in stream order.
    """
    transcript = []
    fences = []
    for chunk in chunks:
        detector.add_chunk(chunk)
        while detector.has_content():
            result = detector.detect_step()
            if result.started_fence:
                transcript.append(result.safe_content)
            elif result.complete_fence is not None:
                transcript.append(result.complete_fence)
                fences.append(result.complete_fence)
            elif not result.in_fence:
                transcript.append(result.safe_content)
            if not result.made_progress:
                break
    tail = detector.flush()
    return "".join(transcript), fences, tail


def _split_points(text):
    """Every two-chunk split of text, plus the one-character-at-a-time split."""
    for i in range(len(text) + 1):
        yield [text[:i], text[i:]]
    yield list(text)


@pytest.fixture
def run_detector():
    return _run_detector


@pytest.fixture
def split_points():
    return _split_points


@pytest.fixture
def weather_call():
    return WEATHER_CALL


@pytest.fixture
def mixed_response():
    return MIXED_RESPONSE
