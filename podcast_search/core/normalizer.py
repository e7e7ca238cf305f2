"""Turn a raw segment sequence into a searchable EpisodeTranscript.

WHY: The recognizer output is a list of small time-stamped text chunks.
Search runs one regex over the whole episode, so the chunks are joined into
one blob and an index remembers which characters came from which chunk.

HOW: Walk the segments in order, append each text to a buffer and emit a
Timestamp spanning exactly the characters just appended.

RULES:
- No separator is inserted between segments: "Hello" + "World" -> "HelloWorld"
- Lengths are counted in characters, so multi-byte text maps correctly
- Pure function of its input, one Timestamp per segment, same order
"""

from __future__ import annotations

from collections.abc import Iterable

from podcast_search.core.ir import EpisodeTranscript, RawSegment, Timestamp


def normalize(episode_id: int, segments: Iterable[RawSegment]) -> EpisodeTranscript:
    """Concatenate segment texts and index their character ranges.

    Args:
        episode_id: The episode the segments belong to.
        segments: Recognizer output, ascending in time.

    Returns:
        An EpisodeTranscript whose timestamps satisfy the coverage invariants.
    """
    parts: list[str] = []
    timestamps: list[Timestamp] = []
    offset = 0

    for segment in segments:
        length = len(segment.text)
        timestamps.append(Timestamp(time=segment.time, start=offset, end=offset + length))
        parts.append(segment.text)
        offset += length

    return EpisodeTranscript(
        episode_id=episode_id,
        data="".join(parts),
        timestamps=timestamps,
    )
