"""SQL audit log for resolution events.

Merges, review decisions and batch runs are appended to a single
``resolution_events`` table so that the lineage of a federated party can be
reconstructed after the fact, independently of the party repository.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, Select, String, create_engine, func, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from partyfed.observability.events import EventObserver, EventRecorder, ServiceEvent

LOGGER = logging.getLogger(__name__)

MERGE_EVENT = "merge.complete"
BATCH_EVENT = "batch.complete"


class Base(DeclarativeBase):
    """Declarative base for audit tables."""


class ResolutionEventRow(Base):
    __tablename__ = "resolution_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    service: Mapped[str] = mapped_column(String(128), index=True)
    event_name: Mapped[str] = mapped_column(String(64), index=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    @classmethod
    def from_event(cls, event: ServiceEvent) -> "ResolutionEventRow":
        return cls(
            recorded_at=event.timestamp,
            service=event.service,
            event_name=event.name,
            payload=dict(event.payload),
        )

    def to_event(self) -> ServiceEvent:
        return ServiceEvent(self.recorded_at, self.service, self.event_name, dict(self.payload or {}))


class EventLogStore:
    """Append-only resolution audit log on any SQLAlchemy database URL.

    Note that SQLite drops timezone information, so timestamps read back from
    a SQLite database are naive.
    """

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url
        self._engine = create_engine(database_url, future=True)
        self._sessions = sessionmaker(self._engine, expire_on_commit=False)
        Base.metadata.create_all(self._engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        session = self._sessions()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def persist_events(self, events: Sequence[ServiceEvent]) -> int:
        """Append ``events`` and return how many rows were written."""
        if not events:
            return 0
        with self.session() as session:
            session.add_all([ResolutionEventRow.from_event(event) for event in events])
        LOGGER.debug("Persisted %d resolution events", len(events))
        return len(events)

    def fetch_events(
        self,
        *,
        service: str | None = None,
        name: str | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[ServiceEvent]:
        """Return stored events oldest first, optionally filtered."""
        stmt = self._filtered(select(ResolutionEventRow), service=service, name=name, since=since)
        stmt = stmt.order_by(ResolutionEventRow.recorded_at, ResolutionEventRow.id)
        if limit:
            stmt = stmt.limit(limit)
        with self.session() as session:
            return [row.to_event() for row in session.scalars(stmt)]

    def count_events(self, *, service: str | None = None, name: str | None = None) -> int:
        stmt = self._filtered(select(func.count(ResolutionEventRow.id)), service=service, name=name)
        with self.session() as session:
            return int(session.scalar(stmt) or 0)

    def merge_history(self, party_id: str) -> list[ServiceEvent]:
        """Merges in which ``party_id`` was either the source or the target."""
        return [
            event
            for event in self.fetch_events(name=MERGE_EVENT)
            if party_id in (event.payload.get("source_party_id"), event.payload.get("target_party_id"))
        ]

    def latest_batch_summary(self) -> dict[str, Any] | None:
        stmt = (
            select(ResolutionEventRow)
            .where(ResolutionEventRow.event_name == BATCH_EVENT)
            .order_by(ResolutionEventRow.recorded_at.desc(), ResolutionEventRow.id.desc())
            .limit(1)
        )
        with self.session() as session:
            row = session.scalars(stmt).first()
            return dict(row.payload or {}) if row is not None else None

    def create_persistent_observer(self) -> EventObserver:
        def _observer(event: ServiceEvent) -> None:
            try:
                self.persist_events([event])
            except Exception:
                LOGGER.warning("Failed to persist event %s", event.qualified_name, exc_info=True)

        return _observer

    @staticmethod
    def _filtered(
        stmt: Select,
        *,
        service: str | None = None,
        name: str | None = None,
        since: datetime | None = None,
    ) -> Select:
        if service:
            stmt = stmt.where(ResolutionEventRow.service == service)
        if name:
            stmt = stmt.where(ResolutionEventRow.event_name == name)
        if since:
            stmt = stmt.where(ResolutionEventRow.recorded_at >= since)
        return stmt


def attach_persistent_observer(recorder: EventRecorder, store: EventLogStore) -> Callable[[], None]:
    """Write every event seen by ``recorder`` to ``store``; returns the detach callback."""
    return recorder.register(store.create_persistent_observer())
