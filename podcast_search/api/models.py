"""Episode API response dataclasses.

WHY: The remote episode API returns nested JSON envelopes
({"response": {...}}) with string dates and extra fields we do not use.
Typed dataclasses make the shape explicit and isolate the parsing.

HOW: Each dataclass maps one JSON object. from_dict factories parse raw
payloads; to_record/from_record convert Episode to and from the stored
record shape (published_at as UTC seconds).

RULES:
- Episode.id is the remote "episode_id" (records use "id")
- published_at arrives as "%Y-%m-%d %H:%M:%S" in UTC
- A listing page ends pagination when next_url is null or empty
- Listing items are EpisodeSummary; full details need a second request
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

PAGE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["response"],
    "properties": {
        "response": {
            "type": "object",
            "required": ["items"],
            "properties": {
                "items": {"type": "array", "items": {"type": "object"}},
                "next_url": {"type": ["string", "null"]},
            },
        },
    },
}
"""JSON schema of one listing page."""

EPISODE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["response"],
    "properties": {
        "response": {
            "type": "object",
            "required": ["episode"],
            "properties": {
                "episode": {
                    "type": "object",
                    "required": ["episode_id", "title", "download_url", "published_at"],
                },
            },
        },
    },
}
"""JSON schema of the single-episode detail response."""


def parse_published_at(value: str) -> datetime:
    """Parse the API's naive UTC date string into an aware datetime."""
    return datetime.strptime(value, _DATE_FORMAT).replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class Episode:
    """One podcast installment.

    RULES:
    - id is a positive 32-bit integer assigned by the remote API
    - duration is in milliseconds
    - immutable; re-imports insert new records, never update in place
    """

    id: int
    title: str
    duration: int
    show_id: int
    author_id: int
    published_at: datetime
    download_url: str
    description: str = ""
    description_html: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> Episode:
        """Parse the "episode" object of the detail endpoint."""
        return cls(
            id=int(data["episode_id"]),
            title=data["title"],
            duration=int(data.get("duration") or 0),
            show_id=int(data.get("show_id") or 0),
            author_id=int(data.get("author_id") or 0),
            published_at=parse_published_at(data["published_at"]),
            download_url=data["download_url"],
            description=data.get("description") or "",
            description_html=data.get("description_html") or "",
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "duration": self.duration,
            "show_id": self.show_id,
            "author_id": self.author_id,
            "published_at": int(self.published_at.timestamp()),
            "download_url": self.download_url,
            "description": self.description,
            "description_html": self.description_html,
        }

    @classmethod
    def from_record(cls, record: dict) -> Episode:
        return cls(
            id=int(record["id"]),
            title=record["title"],
            duration=int(record["duration"]),
            show_id=int(record["show_id"]),
            author_id=int(record["author_id"]),
            published_at=datetime.fromtimestamp(int(record["published_at"]), tz=timezone.utc),
            download_url=record["download_url"],
            description=record.get("description") or "",
            description_html=record.get("description_html") or "",
        )


@dataclass(frozen=True)
class EpisodeSummary:
    """A listing item: enough to identify an episode and fetch its details."""

    id: int
    title: str
    download_url: str
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: dict) -> EpisodeSummary:
        known = {"episode_id", "title", "download_url"}
        return cls(
            id=int(data["episode_id"]),
            title=data.get("title", ""),
            download_url=data.get("download_url", ""),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass(frozen=True)
class EpisodePage:
    """One page of a paginated listing."""

    items: list[dict[str, Any]]
    next_url: str | None = None

    @property
    def is_last(self) -> bool:
        return not self.next_url

    @classmethod
    def from_dict(cls, data: dict) -> EpisodePage:
        response = data["response"]
        return cls(items=list(response["items"]), next_url=response.get("next_url"))
