"""Async client for the speech-to-text inference endpoint.

WHY: Transcription runs on a single external inference server (a
whisper-style HTTP endpoint). The transcribe stage only needs one call:
send a converted WAV file, get time-stamped segments back.

HOW: Sends a multipart/form-data POST with fixed decoding parameters and
the audio file, validates the verbose JSON response with jsonschema, and
converts each segment's float seconds into integer milliseconds.

RULES:
- Fields: temperature=0.0, temperature_inc=0.0, response_format=verbose_json
- Response: {"segments": [{"start": s, "end": s, "text": str}, ...]}
  ("start_seconds"/"end_seconds" are accepted as aliases)
- Transport errors and non-2xx statuses raise TranscriptionError
- Undecodable or schema-invalid bodies raise TranscriptionDecodeError
- The server handles one request at a time; callers serialize access
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx
import jsonschema

from podcast_search.config import INFERENCE_URL
from podcast_search.core.ir import RawSegment, TimeRange
from podcast_search.errors import TranscriptionDecodeError, TranscriptionError

logger = logging.getLogger(__name__)

_NUMBER = {"type": "number", "minimum": 0}

VERBOSE_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["segments"],
    "properties": {
        "segments": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["text"],
                "properties": {
                    "text": {"type": "string"},
                    "start": _NUMBER,
                    "end": _NUMBER,
                    "start_seconds": _NUMBER,
                    "end_seconds": _NUMBER,
                },
                "anyOf": [
                    {"required": ["start", "end"]},
                    {"required": ["start_seconds", "end_seconds"]},
                ],
            },
        },
    },
}

INFERENCE_FIELDS = {
    "temperature": "0.0",
    "temperature_inc": "0.0",
    "response_format": "verbose_json",
}


def parse_segments(data: dict) -> list[RawSegment]:
    """Convert a verbose JSON response into RawSegments.

    Raises:
        TranscriptionDecodeError: If the payload does not match the schema.
    """
    try:
        jsonschema.validate(instance=data, schema=VERBOSE_JSON_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise TranscriptionDecodeError(
            "Invalid inference response: {}".format(exc.message), stage="transcribe"
        ) from exc

    segments = []
    for item in data["segments"]:
        start = item["start"] if "start" in item else item["start_seconds"]
        end = item["end"] if "end" in item else item["end_seconds"]
        segments.append(RawSegment(
            time=TimeRange(from_ms=round(start * 1000), to_ms=round(end * 1000)),
            text=item["text"],
        ))
    return segments


class InferenceClient:
    """Async client for the inference endpoint.

    RULES:
    - Use as: async with InferenceClient() as client: ...
    - url defaults to INFERENCE_URL from config
    - No request timeout on reads: long episodes take many minutes
    """

    def __init__(
        self,
        url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url or INFERENCE_URL
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> InferenceClient:
        self._client = httpx.AsyncClient(
            transport=self._transport,
            timeout=httpx.Timeout(None, connect=30.0),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "InferenceClient must be used as an async context manager: "
                "async with InferenceClient() as client: ..."
            )
        return self._client

    async def transcribe(self, audio_path: Path, episode_id: int | None = None) -> list[RawSegment]:
        """Submit an audio file and return its segments in time order.

        Args:
            audio_path: Path to a 16 kHz mono PCM WAV file.
            episode_id: Used for error context only.

        Returns:
            The recognizer's RawSegments.
        """
        client = self._ensure_client()
        audio_path = Path(audio_path)
        logger.info("Transcribing episode %s from %s", episode_id, audio_path.name)

        try:
            with open(audio_path, "rb") as f:
                resp = await client.post(
                    self._url,
                    data=INFERENCE_FIELDS,
                    files={"file": (audio_path.name, f, "audio/wav")},
                )
        except httpx.HTTPError as exc:
            raise TranscriptionError(
                "Inference request failed: {}".format(exc),
                episode_id=episode_id,
                stage="transcribe",
            ) from exc

        if not resp.is_success:
            raise TranscriptionError(
                "Inference error {}: {}".format(resp.status_code, resp.text[:200]),
                episode_id=episode_id,
                stage="transcribe",
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise TranscriptionDecodeError(
                "Inference response is not JSON",
                episode_id=episode_id,
                stage="transcribe",
            ) from exc

        try:
            return parse_segments(data)
        except TranscriptionDecodeError as exc:
            exc.episode_id = episode_id
            raise
