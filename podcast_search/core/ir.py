"""Transcript dataclasses: raw recognizer segments and the persisted transcript.

WHY: The inference service returns time-stamped text segments, but search
needs one flat text blob it can run a regex over, plus a way back from a
character offset to the audio time. These dataclasses are the stable
contract between the pipeline (which produces them) and the search engine
(which consumes them).

HOW: Four dataclasses:
  TimeRange: audio time span in integer milliseconds
  RawSegment: one recognizer output unit (time span + text)
  Timestamp: a time span paired with a [start, end) character range
  EpisodeTranscript: concatenated text plus the ordered Timestamp index

RULES:
- Offsets are character offsets (len() of str), never byte offsets
- timestamps are sorted, contiguous, start at 0 and end at len(data)
- An empty transcript has data == "" and no timestamps
- All classes are frozen; a transcript is never mutated after creation
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from podcast_search.errors import InvariantViolationError


@dataclass(frozen=True)
class TimeRange:
    """Audio time span, milliseconds from the start of the episode."""

    from_ms: int
    to_ms: int

    def to_dict(self) -> dict[str, int]:
        return {"from_ms": self.from_ms, "to_ms": self.to_ms}

    @classmethod
    def from_dict(cls, data: dict) -> TimeRange:
        return cls(from_ms=int(data["from_ms"]), to_ms=int(data["to_ms"]))


@dataclass(frozen=True)
class RawSegment:
    """One speech-to-text output chunk.

    RULES:
    - Segments of one episode are ascending in time and do not overlap
    - text is kept verbatim, including any leading space from the recognizer
    """

    time: TimeRange
    text: str

    def to_cache_dict(self) -> dict[str, Any]:
        """Shape used in the on-disk raw-segment cache file."""
        return {
            "offsets": {"from": self.time.from_ms, "to": self.time.to_ms},
            "text": self.text,
        }

    @classmethod
    def from_cache_dict(cls, data: dict) -> RawSegment:
        offsets = data["offsets"]
        return cls(
            time=TimeRange(from_ms=int(offsets["from"]), to_ms=int(offsets["to"])),
            text=data["text"],
        )


@dataclass(frozen=True)
class Timestamp:
    """A time span paired with the character range of ``data`` it produced."""

    time: TimeRange
    start: int
    end: int

    def contains(self, offset: int) -> bool:
        """True if ``offset`` falls in the half-open range [start, end)."""
        return self.start <= offset < self.end

    def to_dict(self) -> dict[str, Any]:
        return {"time": self.time.to_dict(), "offsets": [self.start, self.end]}

    @classmethod
    def from_dict(cls, data: dict) -> Timestamp:
        start, end = data["offsets"]
        return cls(time=TimeRange.from_dict(data["time"]), start=int(start), end=int(end))


@dataclass(frozen=True)
class EpisodeTranscript:
    """Concatenated transcript text plus its offset-to-time index.

    WHY: One text blob per episode is what the store's text index and the
    offset regex search run over; the timestamps map matches back to audio.

    RULES:
    - episode_id is unique across the store
    - data has no separator between segment texts
    - timestamps[i] corresponds to the i-th RawSegment of the source
    """

    episode_id: int
    data: str
    timestamps: list[Timestamp] = field(default_factory=list)

    def check_invariants(self) -> None:
        """Verify that timestamps cover ``data`` contiguously from 0 to the end.

        Raises:
            InvariantViolationError: If ordering, contiguity or full
                coverage does not hold.
        """
        if not self.timestamps:
            if self.data:
                raise InvariantViolationError(
                    "Transcript {} has text but no timestamps".format(self.episode_id)
                )
            return

        expected = 0
        for index, ts in enumerate(self.timestamps):
            if ts.start != expected or ts.end < ts.start:
                raise InvariantViolationError(
                    "Transcript {}: timestamp {} covers [{}, {}), expected start {}".format(
                        self.episode_id, index, ts.start, ts.end, expected
                    )
                )
            expected = ts.end

        if expected != len(self.data):
            raise InvariantViolationError(
                "Transcript {}: timestamps end at {} but data has {} characters".format(
                    self.episode_id, expected, len(self.data)
                )
            )

    def segment_texts(self) -> list[str]:
        """Slice ``data`` back into the per-segment texts, in order."""
        return [self.data[ts.start:ts.end] for ts in self.timestamps]

    def to_record(self) -> dict[str, Any]:
        """Persisted record shape."""
        return {
            "episode_id": self.episode_id,
            "data": self.data,
            "timestamps": [ts.to_dict() for ts in self.timestamps],
        }

    @classmethod
    def from_record(cls, record: dict) -> EpisodeTranscript:
        return cls(
            episode_id=int(record["episode_id"]),
            data=record["data"],
            timestamps=[Timestamp.from_dict(t) for t in record["timestamps"]],
        )
