# Copyright (c) 2026 Toolfence Authors.
# This software is released under the GNU General Public License v3.0.
# See the LICENSE file in the project root for full license information.

"""Decide how much of a buffer tail must be withheld as a possible partial marker."""

from typing import Iterable

# Longest function name we withhold for a bracket-call start like "[search"
MAX_BRACKET_NAME_LENGTH = 64


def compute_overlap_length(text: str, candidates: Iterable[str]) -> int:
    """
    Length of the longest suffix of ``text`` that is a proper prefix of a candidate.

    Never exceeds ``len(candidate) - 1`` for the longest candidate, whatever
    the size of ``text``.
    """
    overlap = 0
    for candidate in candidates:
        max_length = min(len(text), len(candidate) - 1)
        for size in range(max_length, overlap, -1):
            if candidate.startswith(text[-size:]):
                overlap = size
                break
    return overlap


def bracket_call_overlap(text: str) -> int:
    """
    Length of a trailing ``[`` + word characters that may still become ``[name(``.
    """
    window = text[-(MAX_BRACKET_NAME_LENGTH + 1):]
    idx = window.rfind("[")
    if idx == -1:
        return 0
    tail = window[idx + 1:]
    if tail and not all(ch.isalnum() or ch == "_" for ch in tail):
        return 0
    return len(window) - idx
