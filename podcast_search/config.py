"""Configuration constants, directory layout, and .env loading.

WHY: Centralizes every tunable value (endpoints, stage capacities, search
limits, on-disk layout) so it is easy to find, update, and override. The
pipeline, the search engine, and the surfaces all read the same Settings
object instead of reaching for globals.

HOW: python-dotenv loads the .env file on import. Module-level defaults are
read from the environment with os.getenv. Settings is a frozen dataclass
built once at startup by Settings.from_env() and passed down explicitly.

RULES:
- All defaults can be overridden via environment variables
- Directory paths are derived from a single data directory
- Stage capacities: download and convert run several jobs, transcribe runs one
- Settings is immutable; tests build their own instance
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Remote services
# ---------------------------------------------------------------------------

PODCAST_API_URL = os.getenv("PODCAST_API_URL", "https://api.spreaker.com/v2")
PODCAST_SHOW_ID = os.getenv("PODCAST_SHOW_ID", "3039391")
INFERENCE_URL = os.getenv("INFERENCE_URL", "http://127.0.0.1:8080/inference")

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

PODCAST_DATA_DIR = os.getenv("PODCAST_DATA_DIR", ".")
PODCAST_DB_URL = os.getenv("PODCAST_DB_URL", "sqlite:///podcast_search.db")
TEXT_INDEX_TOKENIZER = os.getenv("TEXT_INDEX_TOKENIZER", "unicode61 remove_diacritics 2")

# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

MAX_DOWNLOAD_JOBS = int(os.getenv("MAX_DOWNLOAD_JOBS", "4"))
MAX_TRANSCRIBE_JOBS = int(os.getenv("MAX_TRANSCRIBE_JOBS", "1"))
MAX_CONVERT_JOBS = int(os.getenv("MAX_CONVERT_JOBS", "4"))
IMPORT_CONCURRENCY = int(os.getenv("IMPORT_CONCURRENCY", "10"))

AUDIO_SAMPLE_RATE = 16000
"""Sample rate expected by the inference service (mono, 16-bit PCM)."""

# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

MAX_RESULTS = int(os.getenv("MAX_RESULTS", "50"))
HINT_RADIUS = int(os.getenv("HINT_RADIUS", "50"))
EPISODE_ID_THRESHOLD = int(os.getenv("EPISODE_ID_THRESHOLD", "10000"))


@dataclass(frozen=True)
class Settings:
    """Runtime settings shared by every component.

    WHY: Components used to reach for ambient globals (database handle,
    status cache). Passing one immutable settings object keeps them
    testable and makes the dependencies visible.

    RULES:
    - data_dir holds audio/mp3, audio/wav and output/ (raw-segment cache)
    - db_url is any SQLAlchemy URL; SQLite is the supported backend
    - max_* capacities must be >= 1
    """

    api_url: str = PODCAST_API_URL
    show_id: str = PODCAST_SHOW_ID
    inference_url: str = INFERENCE_URL
    db_url: str = PODCAST_DB_URL
    data_dir: Path = Path(PODCAST_DATA_DIR)
    text_index_tokenizer: str = TEXT_INDEX_TOKENIZER
    max_download_jobs: int = MAX_DOWNLOAD_JOBS
    max_transcribe_jobs: int = MAX_TRANSCRIBE_JOBS
    max_convert_jobs: int = MAX_CONVERT_JOBS
    import_concurrency: int = IMPORT_CONCURRENCY
    sample_rate: int = AUDIO_SAMPLE_RATE
    max_results: int = MAX_RESULTS
    hint_radius: int = HINT_RADIUS
    episode_id_threshold: int = EPISODE_ID_THRESHOLD

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from the (dotenv-populated) environment."""
        return cls()

    @property
    def mp3_dir(self) -> Path:
        return self.data_dir / "audio" / "mp3"

    @property
    def wav_dir(self) -> Path:
        return self.data_dir / "audio" / "wav"

    @property
    def cache_dir(self) -> Path:
        """Directory of raw-segment cache files, one ``<episode_id>.json`` each."""
        return self.data_dir / "output"

    @property
    def episodes_url(self) -> str:
        return "{}/shows/{}/episodes".format(self.api_url.rstrip("/"), self.show_id)

    def ensure_dirs(self) -> None:
        """Create the on-disk layout if it does not exist yet."""
        for path in (self.mp3_dir, self.wav_dir, self.cache_dir):
            path.mkdir(parents=True, exist_ok=True)
