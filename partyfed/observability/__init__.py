"""Observability primitives for party federation services."""

from partyfed.observability.events import (
    EventObserver,
    EventRecorder,
    ServiceEvent,
    get_event_recorder,
    reset_event_recorder,
    set_event_recorder,
)
from partyfed.observability.logging import configure_observability, logging_observer
from partyfed.observability.storage import (
    EventLogStore,
    attach_persistent_observer,
)

__all__ = [
    "EventObserver",
    "EventRecorder",
    "ServiceEvent",
    "EventLogStore",
    "attach_persistent_observer",
    "configure_observability",
    "get_event_recorder",
    "logging_observer",
    "reset_event_recorder",
    "set_event_recorder",
]
