"""Document store: abstract interface and the SQLAlchemy/SQLite backend."""

from podcast_search.store.base import EpisodeStore, Status
from podcast_search.store.sql import SqlStore, create_store_engine

__all__ = ["EpisodeStore", "SqlStore", "Status", "create_store_engine"]
