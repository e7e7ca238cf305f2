"""Speech-to-text inference client."""

from podcast_search.transcription.client import InferenceClient, parse_segments

__all__ = ["InferenceClient", "parse_segments"]
