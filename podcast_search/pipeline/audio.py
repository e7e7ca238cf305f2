"""FFmpeg conversion of downloaded episodes to the inference format."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from podcast_search.errors import AudioConversionError

logger = logging.getLogger(__name__)

FFMPEG = "ffmpeg"


def build_convert_command(source: Path, dest: Path, sample_rate: int = 16000) -> list[str]:
    """ffmpeg arguments for mono 16-bit PCM WAV at ``sample_rate``."""
    return [
        FFMPEG, "-y", "-hide_banner", "-loglevel", "error",
        "-i", str(source),
        "-ar", str(sample_rate),
        "-ac", "1",
        "-c:a", "pcm_s16le",
        "-f", "wav",
        str(dest),
    ]


def partial_path(dest: Path) -> Path:
    """Scratch file ffmpeg writes to before the result is moved onto ``dest``."""
    return dest.with_name(dest.name + ".part")


async def convert_to_wav(
    source: Path,
    dest: Path,
    sample_rate: int = 16000,
    episode_id: int | None = None,
) -> Path:
    """Convert ``source`` to WAV at ``dest`` and remove the source on success.

    ffmpeg writes to ``<dest>.part``, which is moved onto ``dest`` only after
    a clean exit. A failed or cancelled run leaves no WAV behind, so the
    next plan still starts the episode at Download.

    Raises:
        AudioConversionError: If ffmpeg is missing or exits non-zero. The
            source file is kept for inspection.
    """
    partial = partial_path(dest)
    cmd = build_convert_command(source, partial, sample_rate)
    logger.debug("Running %s", " ".join(cmd))
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise AudioConversionError(
            "Could not start ffmpeg: {}".format(exc), episode_id=episode_id
        ) from exc

    try:
        _, stderr = await proc.communicate()
        if proc.returncode == 0:
            partial.replace(dest)
    finally:
        if proc.returncode is None:
            proc.kill()
        partial.unlink(missing_ok=True)

    if proc.returncode != 0:
        text = stderr.decode("utf-8", errors="replace")
        raise AudioConversionError(
            "ffmpeg failed (rc={}) for {}: {}".format(proc.returncode, source.name, text[:500]),
            episode_id=episode_id,
            returncode=proc.returncode,
            stderr=text,
        )

    Path(source).unlink(missing_ok=True)
    return dest
