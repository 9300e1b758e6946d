from __future__ import annotations

import json
from copy import deepcopy
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import Boolean, Column, DateTime, Integer, String, create_engine, delete, func, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .errors import FeedNotFoundError, ValidationError
from .models import FeedRecord

Base = declarative_base()


class FeedModel(Base):
    __tablename__ = "feeds"
    id = Column(String, primary_key=True)
    url = Column(String, nullable=False)
    category = Column(String)
    is_sub = Column(Boolean, default=False, nullable=False)
    custom_title = Column(String, default="")
    allowed_media_hosts = Column(String)  # JSON array
    display_order = Column(Integer, default=0, nullable=False, index=True)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)


def _validate_record(record: FeedRecord) -> None:
    if not record.id or not record.url:
        raise ValidationError("Missing ID or URL")


def _validate_reorder(ids: Sequence[str], existing_ids: Sequence[str]) -> None:
    if not ids:
        raise ValidationError("Invalid input: ids must be a non-empty array")
    if len(set(ids)) != len(ids):
        raise ValidationError("Duplicate feed ids are not allowed")
    missing = set(ids) - set(existing_ids)
    if missing:
        raise FeedNotFoundError(f"One or more feeds not found: {', '.join(sorted(missing))}")


def _merged_order(ids: Sequence[str], current_order: Sequence[str]) -> List[str]:
    # Feeds not named in `ids` keep their relative order after the named ones.
    named = set(ids)
    return list(ids) + [feed_id for feed_id in current_order if feed_id not in named]


class FeedRepository:
    """
    Persistence boundary for feed configuration. The position of a feed in
    `list_feeds()` is the canonical display order; `reorder` replaces it
    wholesale.
    """

    def list_feeds(self) -> List[FeedRecord]:
        raise NotImplementedError

    def get_feed(self, feed_id: str) -> Optional[FeedRecord]:
        raise NotImplementedError

    def upsert_feed(self, record: FeedRecord) -> None:
        """Create or update one feed. Updates never move the feed."""
        raise NotImplementedError

    def delete_feed(self, feed_id: str) -> None:
        raise NotImplementedError

    def reorder(self, ids: Sequence[str]) -> None:
        raise NotImplementedError


class InMemoryFeedRepository(FeedRepository):
    """
    Simple in-memory store for local runs and tests. Keeps copies of the
    records to avoid cross-mutation between calls.
    """

    def __init__(self, feeds: Optional[Sequence[FeedRecord]] = None):
        self.feeds: Dict[str, FeedRecord] = {}
        for record in feeds or []:
            self.upsert_feed(record)

    def _clone(self, obj):
        return deepcopy(obj)

    def list_feeds(self) -> List[FeedRecord]:
        ordered = sorted(self.feeds.values(), key=lambda f: f.display_order)
        return [self._clone(f) for f in ordered]

    def get_feed(self, feed_id: str) -> Optional[FeedRecord]:
        feed = self.feeds.get(feed_id)
        return self._clone(feed) if feed else None

    def upsert_feed(self, record: FeedRecord) -> None:
        _validate_record(record)
        existing = self.feeds.get(record.id)
        stored = self._clone(record)
        stored.updated_at = datetime.utcnow()
        if existing:
            stored.display_order = existing.display_order
            stored.created_at = existing.created_at
        else:
            stored.display_order = max((f.display_order for f in self.feeds.values()), default=-1) + 1
        self.feeds[record.id] = stored

    def delete_feed(self, feed_id: str) -> None:
        if feed_id not in self.feeds:
            raise FeedNotFoundError(f"Feed with id '{feed_id}' not found.")
        del self.feeds[feed_id]

    def reorder(self, ids: Sequence[str]) -> None:
        current = [f.id for f in self.list_feeds()]
        _validate_reorder(ids, current)
        for position, feed_id in enumerate(_merged_order(ids, current)):
            self.feeds[feed_id].display_order = position


class SqlAlchemyFeedRepository(FeedRepository):
    """
    SQL-backed repository using SQLAlchemy. Works with SQLite/Postgres URLs.
    """

    def __init__(self, database_url: str):
        self.engine = create_engine(database_url, future=True)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)

    def _session(self) -> Session:
        return self.SessionLocal()

    def _to_record(self, model: FeedModel) -> FeedRecord:
        return FeedRecord(
            id=model.id,
            url=model.url,
            category=model.category,
            custom_title=model.custom_title or None,
            is_sub=bool(model.is_sub),
            allowed_media_hosts=json.loads(model.allowed_media_hosts or "[]"),
            display_order=int(model.display_order or 0),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def list_feeds(self) -> List[FeedRecord]:
        with self._session() as session:
            stmt = select(FeedModel).order_by(FeedModel.display_order, FeedModel.created_at)
            models = session.execute(stmt).scalars().all()
            return [self._to_record(m) for m in models]

    def get_feed(self, feed_id: str) -> Optional[FeedRecord]:
        with self._session() as session:
            model = session.get(FeedModel, feed_id)
            return self._to_record(model) if model else None

    def upsert_feed(self, record: FeedRecord) -> None:
        _validate_record(record)
        now = datetime.utcnow()
        with self._session() as session:
            model = session.get(FeedModel, record.id)
            if model is None:
                last = session.execute(select(func.max(FeedModel.display_order))).scalar()
                model = FeedModel(
                    id=record.id,
                    display_order=(last + 1) if last is not None else 0,
                    created_at=now,
                )
                session.add(model)
            model.url = record.url
            model.category = record.category
            model.is_sub = bool(record.is_sub)
            model.custom_title = record.custom_title or ""
            model.allowed_media_hosts = json.dumps(record.allowed_media_hosts) if record.allowed_media_hosts else None
            model.updated_at = now
            session.commit()

    def delete_feed(self, feed_id: str) -> None:
        with self._session() as session:
            result = session.execute(delete(FeedModel).where(FeedModel.id == feed_id))
            if result.rowcount == 0:
                session.rollback()
                raise FeedNotFoundError(f"Feed with id '{feed_id}' not found.")
            session.commit()

    def reorder(self, ids: Sequence[str]) -> None:
        with self._session() as session:
            stmt = select(FeedModel).order_by(FeedModel.display_order, FeedModel.created_at)
            models = {m.id: m for m in session.execute(stmt).scalars().all()}
            _validate_reorder(ids, list(models))
            now = datetime.utcnow()
            for position, feed_id in enumerate(_merged_order(ids, list(models))):
                models[feed_id].display_order = position
                models[feed_id].updated_at = now
            session.commit()
