"""Application context built once at startup.

WHY: Every component that touches the store needs the same handle and
the same view of the status record. Building them in one explicit
startup step, and passing the result down, replaces ambient globals and
the lazy check-then-fill of the status cache.

HOW: open_context() creates the store, its schema and text index, reads
the status singleton and returns a ready AppContext. touch_status()
records a new last_update after a successful import.

RULES:
- Call open_context() once per process (CLI command, HTTP app, test)
- status is None until the first import completes
- A store with more than one status record fails startup (StoreError)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from podcast_search.config import Settings
from podcast_search.store.base import EpisodeStore, Status
from podcast_search.store.sql import SqlStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Ready-to-use handles shared by the pipeline, importer and search."""

    settings: Settings
    store: EpisodeStore
    status: Status | None = None

    def touch_status(self) -> Status:
        """Persist and remember a fresh last_update timestamp."""
        status = Status.now()
        self.store.save_status(status)
        self.status = status
        logger.info("Status updated: %s", status.last_update.isoformat())
        return status


def open_context(settings: Settings | None = None, store: EpisodeStore | None = None) -> AppContext:
    """Initialize the store and load the status record.

    Args:
        settings: Defaults to Settings.from_env().
        store: Defaults to a SqlStore on settings.db_url.

    Returns:
        An AppContext whose store schema exists and whose status is loaded.
    """
    settings = settings or Settings.from_env()
    if store is None:
        store = SqlStore.from_url(settings.db_url, tokenizer=settings.text_index_tokenizer)
    store.create_schema()
    status = store.load_status()
    if status is None:
        logger.info("No status record found; the store has not been imported yet")
    else:
        logger.info("Last update: %s", status.last_update.isoformat())
    return AppContext(settings=settings, store=store, status=status)
