"""Structured events emitted by the party federation services.

Every recorder created through :meth:`EventRecorder.scoped` shares one
observer registry with the recorder it came from, so observers attached to the
process-wide recorder see the events of every resolution service.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Dict, Iterator, List, Optional, Tuple

LOGGER = logging.getLogger(__name__)

Payload = Dict[str, Any]
EventObserver = Callable[["ServiceEvent"], None]


@dataclass(slots=True, frozen=True)
class ServiceEvent:
    """A named occurrence inside a service, e.g. ``entity_resolution`` / ``merge.complete``."""

    timestamp: datetime
    service: str
    name: str
    payload: Payload = field(default_factory=dict)

    @property
    def qualified_name(self) -> str:
        return f"{self.service}.{self.name}" if self.service else self.name


class _ObserverRegistry:
    """Observer list guarded by a lock; batch workers dispatch concurrently."""

    __slots__ = ("observers", "lock")

    def __init__(self) -> None:
        self.observers: List[EventObserver] = []
        self.lock = RLock()

    def add(self, observer: EventObserver) -> None:
        with self.lock:
            if observer not in self.observers:
                self.observers.append(observer)

    def discard(self, observer: EventObserver) -> None:
        with self.lock:
            if observer in self.observers:
                self.observers.remove(observer)

    def snapshot(self) -> Tuple[EventObserver, ...]:
        with self.lock:
            return tuple(self.observers)


def _service_parts(service: Sequence[str] | str | None) -> Tuple[str, ...]:
    if not service:
        return ()
    parts = service.split(".") if isinstance(service, str) else service
    return tuple(part for part in parts if part)


class EventRecorder:
    """Records events under a dotted service name and fans them out to observers."""

    __slots__ = ("_parts", "_registry")

    def __init__(
        self,
        service: Sequence[str] | str | None = None,
        *,
        _registry: _ObserverRegistry | None = None,
    ) -> None:
        self._parts = _service_parts(service)
        self._registry = _registry or _ObserverRegistry()

    @property
    def service(self) -> str:
        return ".".join(self._parts)

    @property
    def observer_count(self) -> int:
        return len(self._registry.snapshot())

    def scoped(self, service: Sequence[str] | str) -> "EventRecorder":
        """Child recorder for ``service`` nested under this one, sharing its observers."""

        return EventRecorder(self._parts + _service_parts(service), _registry=self._registry)

    def register(self, observer: EventObserver) -> Callable[[], None]:
        """Subscribe ``observer``; returns a callback that unsubscribes it."""

        self._registry.add(observer)
        return lambda: self.unregister(observer)

    def unregister(self, observer: EventObserver) -> None:
        self._registry.discard(observer)

    @contextmanager
    def temporary_observer(self, observer: EventObserver) -> Iterator[None]:
        detach = self.register(observer)
        try:
            yield
        finally:
            detach()

    def record(
        self,
        name: str,
        payload: Payload | None = None,
        *,
        timestamp: Optional[datetime] = None,
    ) -> ServiceEvent:
        """Build an event for this recorder's service and notify every observer.

        An observer that raises is logged and skipped; the remaining observers
        still receive the event.
        """

        event = ServiceEvent(
            timestamp=timestamp or datetime.now(timezone.utc),
            service=self.service,
            name=name,
            payload=dict(payload or {}),
        )
        for observer in self._registry.snapshot():
            try:
                observer(event)
            except Exception:
                LOGGER.debug("Observer %r failed on %s", observer, event.qualified_name, exc_info=True)
        return event


_GLOBAL_RECORDER = EventRecorder()


def get_event_recorder(service: Sequence[str] | str | None = None) -> EventRecorder:
    """Return the process-wide recorder, optionally scoped to ``service``."""

    return _GLOBAL_RECORDER.scoped(service) if service else _GLOBAL_RECORDER


def set_event_recorder(recorder: EventRecorder) -> None:
    global _GLOBAL_RECORDER
    _GLOBAL_RECORDER = recorder


def reset_event_recorder() -> None:
    set_event_recorder(EventRecorder())
