"""Bridge resolution events onto the standard logging tree."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, List

from partyfed.observability.events import EventRecorder, ServiceEvent, get_event_recorder
from partyfed.observability.storage import EventLogStore, attach_persistent_observer

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from partyfed.configuration import ObservabilitySettings


LOGGER = logging.getLogger("partyfed.events")

_WARNING_EVENTS = {"party.error", "chunk.error"}
_INFO_EVENTS = {"merge.complete", "review.queued", "batch.complete", "placeholder.created"}


def logging_observer(event: ServiceEvent) -> None:
    """Log an event at a level chosen from its name."""

    if event.name in _WARNING_EVENTS:
        LOGGER.warning("%s %s", event.qualified_name, event.payload)
    elif event.name in _INFO_EVENTS:
        LOGGER.info("%s %s", event.qualified_name, event.payload)
    else:
        LOGGER.debug("%s %s", event.qualified_name, event.payload)


def configure_observability(
    settings: "ObservabilitySettings",
    recorder: EventRecorder | None = None,
) -> Callable[[], None]:
    """Apply ``settings`` to the package logger and the event recorder.

    Returns a callback that detaches every observer registered here.
    """

    recorder = recorder or get_event_recorder()
    logging.getLogger("partyfed").setLevel(settings.log_level.upper())

    removers: List[Callable[[], None]] = []
    if settings.log_resolution_events:
        removers.append(recorder.register(logging_observer))
    if settings.event_log_url:
        store = EventLogStore(settings.event_log_url)
        removers.append(attach_persistent_observer(recorder, store))

    def _detach() -> None:
        for remove in removers:
            remove()

    return _detach
