"""Remote episode API package: listing, details and audio download.

WHY: Ingestion and the download stage both talk to the remote podcast
host. This package keeps that HTTP traffic behind one async client and
turns the paginated listing into a single lazy sequence.

RULES:
- All episode API calls go through EpisodeClient
- Pagination is exposed only through Paginator
"""

from podcast_search.api.client import EpisodeClient
from podcast_search.api.models import Episode, EpisodePage, EpisodeSummary
from podcast_search.api.paginator import Paginator

__all__ = ["Episode", "EpisodeClient", "EpisodePage", "EpisodeSummary", "Paginator"]
