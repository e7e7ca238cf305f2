"""Tests for work planning, directory scans and the segment cache."""

from __future__ import annotations

import json

from podcast_search.core.ir import RawSegment, TimeRange
from podcast_search.pipeline.planner import (
    WorkPlan,
    cache_path,
    plan_work,
    read_segment_cache,
    scan_ids,
    write_segment_cache,
)


class TestPlanWork:

    def test_classifies_by_priority(self):
        plan = plan_work(
            [1, 2, 3, 4, 5],
            transcribed={1},
            cached={2, 3},
            converted_audio={3, 4},
        )
        assert plan.convert == [2, 3]
        assert plan.transcribe == [4]
        assert plan.download == [5]
        assert len(plan) == 4

    def test_nothing_to_do(self):
        plan = plan_work([1, 2], transcribed={1, 2}, cached=set(), converted_audio=set())
        assert len(plan) == 0
        assert plan == WorkPlan()

    def test_preserves_input_order(self):
        plan = plan_work([9, 3, 7], transcribed=set(), cached=set(), converted_audio=set())
        assert plan.download == [9, 3, 7]


class TestScanIds:

    def test_reads_integer_stems(self, tmp_path):
        for name in ("12.wav", "7.wav", "notes.wav", "3.json"):
            (tmp_path / name).write_bytes(b"")
        (tmp_path / "99.wav").mkdir()
        assert scan_ids(tmp_path, ".wav") == {12, 7}

    def test_missing_directory(self, tmp_path):
        assert scan_ids(tmp_path / "nope", ".wav") == set()


class TestSegmentCache:

    def test_file_shape(self, tmp_path):
        path = cache_path(tmp_path, 42)
        assert path.name == "42.json"
        write_segment_cache(path, [RawSegment(TimeRange(0, 900), " caffè")])
        assert json.loads(path.read_text(encoding="utf-8")) == {
            "transcription": [{"offsets": {"from": 0, "to": 900}, "text": " caffè"}]
        }

    def test_read_back(self, tmp_path, sample_segments):
        path = cache_path(tmp_path, 42)
        write_segment_cache(path, sample_segments)
        assert read_segment_cache(path) == sample_segments
