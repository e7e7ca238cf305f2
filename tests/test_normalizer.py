"""Unit tests for normalize() and the EpisodeTranscript invariants.

WHY: Every offset search depends on the timestamp index covering the
transcript text exactly. A one-character drift would map matches to the
wrong audio segment.

HOW: Normalize the shared sample and small hand-built inputs, then check
data, offsets, invariants and the record shape.
"""

from __future__ import annotations

import pytest

from podcast_search.core.ir import EpisodeTranscript, RawSegment, TimeRange, Timestamp
from podcast_search.core.normalizer import normalize
from podcast_search.errors import InvariantViolationError


def _seg(from_ms: int, to_ms: int, text: str) -> RawSegment:
    return RawSegment(time=TimeRange(from_ms=from_ms, to_ms=to_ms), text=text)


class TestNormalize:
    """normalize() joins texts without separators and indexes each range."""

    def test_concatenates_without_separator(self):
        transcript = normalize(1, [_seg(0, 10, "Hello"), _seg(10, 20, "World"), _seg(20, 30, "Foo")])
        assert transcript.data == "HelloWorldFoo"

    def test_offsets_are_contiguous(self):
        transcript = normalize(1, [_seg(0, 10, "Hello"), _seg(10, 20, "World"), _seg(20, 30, "Foo")])
        assert [(t.start, t.end) for t in transcript.timestamps] == [(0, 5), (5, 10), (10, 13)]

    def test_keeps_segment_times(self, sample_segments):
        transcript = normalize(7, sample_segments)
        assert [t.time for t in transcript.timestamps] == [s.time for s in sample_segments]

    def test_sample_data(self, sample_segments):
        transcript = normalize(7, sample_segments)
        assert transcript.data == "Hello World, café. Fin."
        assert transcript.timestamps[-1].end == len(transcript.data) == 23

    def test_counts_characters_not_bytes(self):
        transcript = normalize(1, [_seg(0, 10, "àèì"), _seg(10, 20, "ò")])
        assert [(t.start, t.end) for t in transcript.timestamps] == [(0, 3), (3, 4)]

    def test_empty_input(self):
        transcript = normalize(1, [])
        assert transcript.data == ""
        assert transcript.timestamps == []
        transcript.check_invariants()

    def test_empty_segment_text_gets_empty_range(self):
        transcript = normalize(1, [_seg(0, 10, "a"), _seg(10, 20, ""), _seg(20, 30, "b")])
        assert [(t.start, t.end) for t in transcript.timestamps] == [(0, 1), (1, 1), (1, 2)]
        transcript.check_invariants()

    def test_segment_texts_round_trip(self, sample_segments):
        transcript = normalize(7, sample_segments)
        assert transcript.segment_texts() == [s.text for s in sample_segments]

    def test_satisfies_invariants(self, sample_segments):
        normalize(7, sample_segments).check_invariants()


class TestInvariants:
    """check_invariants() rejects gaps, overlaps and short coverage."""

    def _ts(self, start: int, end: int) -> Timestamp:
        return Timestamp(time=TimeRange(0, 0), start=start, end=end)

    def test_gap_is_rejected(self):
        transcript = EpisodeTranscript(1, "abcdef", [self._ts(0, 2), self._ts(3, 6)])
        with pytest.raises(InvariantViolationError):
            transcript.check_invariants()

    def test_short_coverage_is_rejected(self):
        transcript = EpisodeTranscript(1, "abcdef", [self._ts(0, 2), self._ts(2, 5)])
        with pytest.raises(InvariantViolationError):
            transcript.check_invariants()

    def test_text_without_timestamps_is_rejected(self):
        with pytest.raises(InvariantViolationError):
            EpisodeTranscript(1, "abc", []).check_invariants()


class TestRecordShape:
    """to_record() produces the persisted shape."""

    def test_record(self):
        transcript = normalize(9, [_seg(0, 1500, "Ciao")])
        assert transcript.to_record() == {
            "episode_id": 9,
            "data": "Ciao",
            "timestamps": [{"time": {"from_ms": 0, "to_ms": 1500}, "offsets": [0, 4]}],
        }

    def test_from_record_restores_transcript(self, sample_segments):
        transcript = normalize(7, sample_segments)
        assert EpisodeTranscript.from_record(transcript.to_record()) == transcript

    def test_cache_dict_shape(self):
        seg = _seg(100, 200, " ok")
        assert seg.to_cache_dict() == {"offsets": {"from": 100, "to": 200}, "text": " ok"}
        assert RawSegment.from_cache_dict(seg.to_cache_dict()) == seg
