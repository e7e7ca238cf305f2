"""Search engine package: store-delegated queries and offset search."""

from podcast_search.search.engine import (
    OffsetMatch,
    OffsetSearchResult,
    SearchEngine,
    SearchResult,
    describe_error,
)

__all__ = ["OffsetMatch", "OffsetSearchResult", "SearchEngine", "SearchResult", "describe_error"]
