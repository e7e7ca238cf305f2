"""Podcast Search: transcript acquisition pipeline and search engine.

WHY: Listeners want to find which episode of a show talked about
something, and where in the audio it was said. That needs every episode
transcribed, stored with a character-offset → audio-time index, and
searchable by metadata, by full text, and by pattern inside one episode.

HOW: Three layers. Ingest (api, importer, transcription, pipeline) pulls
episode metadata and produces transcripts through a bounded
download → transcribe → convert pipeline. The store persists episodes,
transcripts and a status record. Search answers lookups and maps match
offsets back to audio time.

RULES:
- EpisodeTranscript (core.ir) is the contract between pipeline and search
- Every process builds its handles once via context.open_context()
"""

__version__ = "0.1.0"
