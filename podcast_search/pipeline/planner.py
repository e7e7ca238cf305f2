"""Decide where each untranscribed episode enters the pipeline.

WHY: Re-running the batch must not redo work: a cached recognizer output
only needs converting, a converted WAV only needs transcribing, anything
else starts with a download.

HOW: Scan the cache and WAV directories for ``<episode_id>.<ext>`` files,
then classify every episode without a stored transcript. Cache files are
also read and written here, in the shape described in RULES.

RULES:
- Priority: cached segments → convert; no WAV → download; else → transcribe
- Episodes that already have a transcript are skipped
- Files whose stem is not an integer are logged and ignored
- Cache file shape: {"transcription": [{"offsets": {"from": ms, "to": ms}, "text": str}]}
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from podcast_search.core.ir import RawSegment

logger = logging.getLogger(__name__)


@dataclass
class WorkPlan:
    """Episode ids grouped by the stage they start at."""

    download: list[int] = field(default_factory=list)
    transcribe: list[int] = field(default_factory=list)
    convert: list[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.download) + len(self.transcribe) + len(self.convert)


def scan_ids(directory: Path, suffix: str) -> set[int]:
    """Episode ids of the ``<id><suffix>`` files in ``directory``."""
    ids: set[int] = set()
    if not directory.is_dir():
        return ids
    for path in directory.iterdir():
        if not path.is_file() or path.suffix != suffix:
            continue
        try:
            ids.add(int(path.stem))
        except ValueError:
            logger.warning("Ignoring file with invalid name: %s", path)
    return ids


def plan_work(
    episode_ids: Iterable[int],
    transcribed: set[int],
    cached: set[int],
    converted_audio: set[int],
) -> WorkPlan:
    """Classify every episode without a transcript into its starting stage."""
    plan = WorkPlan()
    for episode_id in episode_ids:
        if episode_id in transcribed:
            continue
        if episode_id in cached:
            plan.convert.append(episode_id)
        elif episode_id not in converted_audio:
            logger.info("Audio missing for episode %d: queued for download", episode_id)
            plan.download.append(episode_id)
        else:
            logger.info("No cached transcript for episode %d: queued for transcription", episode_id)
            plan.transcribe.append(episode_id)
    return plan


def cache_path(cache_dir: Path, episode_id: int) -> Path:
    return cache_dir / "{}.json".format(episode_id)


def write_segment_cache(path: Path, segments: list[RawSegment]) -> None:
    payload = {"transcription": [s.to_cache_dict() for s in segments]}
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")


def read_segment_cache(path: Path) -> list[RawSegment]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    return [RawSegment.from_cache_dict(item) for item in payload["transcription"]]
