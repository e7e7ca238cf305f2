"""SQLAlchemy implementation of the episode store on SQLite.

WHY: Episodes, transcripts and the status record need durable storage
with key lookups, regex matching over titles/descriptions and a ranked
full-text index over transcript text. SQLite gives all three in one file:
REGEXP via the Python function SQLAlchemy registers on pysqlite
connections, and FTS5 for the text index.

HOW: Three ORM tables (episodes, transcripts, status) plus one FTS5
virtual table (transcripts_fts) kept in step by insert_transcripts().
Every public method opens a short Session and wraps SQLAlchemy errors in
StoreError.

RULES:
- episodes.id and transcripts.episode_id are primary keys (no updates)
- transcripts.timestamps is stored as JSON in the record shape
- Full-text queries OR together the word tokens of the query and are
  ordered by FTS5 rank (bm25), best first
- The FTS5 tokenizer is configurable (language-aware tokenization)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Integer, Text, create_engine, func, or_, select
from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from podcast_search.api.models import Episode
from podcast_search.core.ir import EpisodeTranscript
from podcast_search.errors import StoreError
from podcast_search.store.base import EpisodeStore, Status

logger = logging.getLogger(__name__)

_FTS_TABLE = "transcripts_fts"
_WORD_RE = re.compile(r"\w+")


class Base(DeclarativeBase):
    pass


class EpisodeRow(Base):
    __tablename__ = "episodes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    title: Mapped[str] = mapped_column(Text)
    duration: Mapped[int]
    show_id: Mapped[int]
    author_id: Mapped[int]
    published_at: Mapped[int]
    download_url: Mapped[str] = mapped_column(Text)
    description: Mapped[str] = mapped_column(Text, default="")
    description_html: Mapped[str] = mapped_column(Text, default="")

    def to_episode(self) -> Episode:
        return Episode.from_record(
            {column.key: getattr(self, column.key) for column in self.__table__.columns}
        )


class TranscriptRow(Base):
    __tablename__ = "transcripts"

    episode_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    data: Mapped[str] = mapped_column(Text)
    timestamps: Mapped[list[Any]] = mapped_column(JSON)

    def to_transcript(self) -> EpisodeTranscript:
        return EpisodeTranscript.from_record(
            {"episode_id": self.episode_id, "data": self.data, "timestamps": self.timestamps}
        )


class StatusRow(Base):
    __tablename__ = "status"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    last_update: Mapped[int]


def create_store_engine(db_url: str) -> Engine:
    """Create an engine usable from worker threads.

    In-memory SQLite databases share one connection (StaticPool) so every
    session sees the same data.
    """
    kwargs: dict[str, Any] = {}
    if db_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(db_url, **kwargs)


def build_fts_query(text: str) -> str:
    """Turn free text into an FTS5 query matching any of its words.

    Each token is quoted so FTS5 operators in user input are inert.
    """
    return " OR ".join('"{}"'.format(token) for token in _WORD_RE.findall(text))


class SqlStore(EpisodeStore):
    """EpisodeStore backed by SQLAlchemy (SQLite + FTS5)."""

    def __init__(self, engine: Engine, tokenizer: str = "unicode61 remove_diacritics 2") -> None:
        self._engine = engine
        self._tokenizer = tokenizer
        self._sessions = sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, db_url: str, tokenizer: str = "unicode61 remove_diacritics 2") -> SqlStore:
        return cls(create_store_engine(db_url), tokenizer=tokenizer)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._sessions.begin() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreError("Store operation failed: {}".format(exc)) from exc

    def create_schema(self) -> None:
        tokenizer = self._tokenizer.replace("'", "''")
        try:
            Base.metadata.create_all(self._engine)
            with self._engine.begin() as conn:
                conn.execute(sql_text(
                    "CREATE VIRTUAL TABLE IF NOT EXISTS {} USING fts5("
                    "episode_id UNINDEXED, data, tokenize = '{}')".format(_FTS_TABLE, tokenizer)
                ))
        except SQLAlchemyError as exc:
            raise StoreError("Could not create schema: {}".format(exc)) from exc
        logger.debug("Store schema ready (tokenizer: %s)", self._tokenizer)

    # -- episodes ------------------------------------------------------

    def episode_ids(self) -> list[int]:
        with self._session() as session:
            return list(session.scalars(select(EpisodeRow.id).order_by(EpisodeRow.id)))

    def get_episode(self, episode_id: int) -> Episode | None:
        with self._session() as session:
            row = session.get(EpisodeRow, episode_id)
            return row.to_episode() if row is not None else None

    def insert_episodes(self, episodes: Sequence[Episode]) -> None:
        with self._session() as session:
            session.add_all(EpisodeRow(**episode.to_record()) for episode in episodes)
        logger.info("Inserted %d episodes", len(episodes))

    def find_episodes(self, pattern: str, fields: Sequence[str] = ("title", "description")) -> list[Episode]:
        regex = "(?i)" + pattern
        clauses = [getattr(EpisodeRow, name).regexp_match(regex) for name in fields]
        with self._session() as session:
            rows = session.scalars(select(EpisodeRow).where(or_(*clauses)).order_by(EpisodeRow.id))
            return [row.to_episode() for row in rows]

    def find_episode_by_title(self, pattern: str) -> Episode | None:
        stmt = (
            select(EpisodeRow)
            .where(EpisodeRow.title.regexp_match("(?i)" + pattern))
            .order_by(EpisodeRow.id)
            .limit(1)
        )
        with self._session() as session:
            row = session.scalars(stmt).first()
            return row.to_episode() if row is not None else None

    # -- transcripts ---------------------------------------------------

    def transcript_ids(self) -> list[int]:
        with self._session() as session:
            return list(session.scalars(select(TranscriptRow.episode_id).order_by(TranscriptRow.episode_id)))

    def get_transcript(self, episode_id: int) -> EpisodeTranscript | None:
        with self._session() as session:
            row = session.get(TranscriptRow, episode_id)
            return row.to_transcript() if row is not None else None

    def insert_transcripts(self, transcripts: Sequence[EpisodeTranscript]) -> None:
        insert_fts = sql_text(
            "INSERT INTO {} (episode_id, data) VALUES (:episode_id, :data)".format(_FTS_TABLE)
        )
        with self._session() as session:
            for transcript in transcripts:
                record = transcript.to_record()
                session.add(TranscriptRow(**record))
                session.execute(insert_fts, {"episode_id": record["episode_id"], "data": record["data"]})
        logger.info("Inserted %d transcripts", len(transcripts))

    def search_transcripts(self, text: str) -> list[Episode]:
        query = build_fts_query(text)
        if not query:
            return []
        stmt = sql_text(
            "SELECT episode_id FROM {0} WHERE {0} MATCH :query ORDER BY rank".format(_FTS_TABLE)
        )
        with self._session() as session:
            ids = [int(row[0]) for row in session.execute(stmt, {"query": query})]
            if not ids:
                return []
            rows = session.scalars(select(EpisodeRow).where(EpisodeRow.id.in_(ids)))
            by_id = {row.id: row for row in rows}
            return [by_id[i].to_episode() for i in ids if i in by_id]

    # -- status --------------------------------------------------------

    def load_status(self) -> Status | None:
        with self._session() as session:
            count = session.scalar(select(func.count()).select_from(StatusRow))
            if count == 0:
                return None
            if count > 1:
                raise StoreError("Too many status records in the store: {}".format(count))
            row = session.scalars(select(StatusRow)).one()
            return Status(last_update=datetime.fromtimestamp(row.last_update, tz=timezone.utc))

    def save_status(self, status: Status) -> None:
        seconds = int(status.last_update.timestamp())
        with self._session() as session:
            row = session.scalars(select(StatusRow)).first()
            if row is None:
                session.add(StatusRow(last_update=seconds))
            else:
                row.last_update = seconds
