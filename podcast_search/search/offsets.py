"""Map regex matches in a transcript back to audio time ranges.

WHY: A transcript is one text blob plus an index of character ranges,
each tied to the audio span it came from. To answer "where in the episode
is this said?" every match offset must be located in that index.

HOW: Matches are found on an accent-stripped copy of the text that has
the same length as the original, so offsets are valid in both. Because
match starts ascend and the ranges are sorted and contiguous, a single
forward-only cursor maps all matches in O(segments + matches).

RULES:
- Transliteration is per character and never changes the length: a
  character whose ASCII form is not exactly one character is kept as is
- Zero-length matches (lookaheads, anchors) count; one at the very end of
  the text has no character to point at and is dropped
- A match start equal to a range's end belongs to the next range
- An offset no range covers raises InvariantViolationError
- Hints are clipped at the text bounds, not at segment bounds
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from functools import lru_cache

from unidecode import unidecode

from podcast_search.core.ir import Timestamp
from podcast_search.errors import InvariantViolationError, QueryError


@lru_cache(maxsize=4096)
def _fold_char(char: str) -> str:
    folded = unidecode(char)
    return folded if len(folded) == 1 else char


def transliterate(text: str) -> str:
    """Strip accents from ``text`` without changing its character count."""
    if text.isascii():
        return text
    return "".join(char if char.isascii() else _fold_char(char) for char in text)


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a user pattern case-insensitively.

    Raises:
        QueryError: If the pattern is not a valid regular expression.
    """
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        raise QueryError("Invalid pattern {!r}: {}".format(pattern, exc)) from exc


def find_match_starts(regex: re.Pattern[str], text: str) -> list[int]:
    """Start offsets of all non-overlapping matches, ascending."""
    return [m.start() for m in regex.finditer(text) if m.start() < len(text)]


def map_offsets(starts: Sequence[int], timestamps: Sequence[Timestamp]) -> list[Timestamp]:
    """Find, for each match start, the Timestamp whose range contains it.

    Args:
        starts: Strictly increasing character offsets.
        timestamps: Sorted, contiguous ranges covering the text.

    Returns:
        One Timestamp per start, in the same order.

    Raises:
        InvariantViolationError: If a start is not covered by any range
            reachable by the forward scan.
    """
    mapped: list[Timestamp] = []
    cursor = 0
    count = len(timestamps)

    for start in starts:
        while cursor < count and timestamps[cursor].end <= start:
            cursor += 1
        if cursor == count or not timestamps[cursor].contains(start):
            raise InvariantViolationError(
                "Offset {} is not covered by the timestamp index".format(start)
            )
        mapped.append(timestamps[cursor])

    return mapped


def build_hint(data: str, offset: int, radius: int) -> str:
    """Symmetric window of ``radius`` characters around ``offset``."""
    return data[max(0, offset - radius):min(len(data), offset + radius)]
