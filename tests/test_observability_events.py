from __future__ import annotations

import logging
from datetime import datetime, timedelta

import pytest

from partyfed.configuration import FederationConfig, ObservabilitySettings
from partyfed.observability import (
    EventRecorder,
    ServiceEvent,
    attach_persistent_observer,
    configure_observability,
    get_event_recorder,
    logging_observer,
    reset_event_recorder,
    set_event_recorder,
)
from partyfed.observability.storage import EventLogStore

NOW = datetime(2024, 1, 15, 10, 30)
SERVICE = "entity_resolution"


def merge_event(source: str, target: str, at: datetime = NOW) -> ServiceEvent:
    return ServiceEvent(
        timestamp=at,
        service=SERVICE,
        name="merge.complete",
        payload={"source_party_id": source, "target_party_id": target, "confidence": 0.97},
    )


@pytest.fixture
def store(tmp_path) -> EventLogStore:
    return EventLogStore(f"sqlite:///{tmp_path / 'events.db'}")


class TestEventRecorder:
    def test_scoped_recorder_shares_observers_with_root(self):
        seen: list[ServiceEvent] = []
        root = EventRecorder()
        root.register(seen.append)

        batch = root.scoped(SERVICE).scoped("batch")
        event = batch.record("chunk.error", {"chunk_index": 2})

        assert event.service == "entity_resolution.batch"
        assert event.qualified_name == "entity_resolution.batch.chunk.error"
        assert seen == [event]

    def test_dotted_scope_is_split(self):
        assert EventRecorder().scoped("entity_resolution.batch").service == "entity_resolution.batch"
        assert ServiceEvent(NOW, "", "merge.complete").qualified_name == "merge.complete"

    def test_register_returns_detach_callback(self):
        seen: list[ServiceEvent] = []
        recorder = EventRecorder()

        detach = recorder.register(seen.append)
        recorder.register(seen.append)
        assert recorder.observer_count == 1

        recorder.record("review.queued")
        detach()
        recorder.record("review.not_duplicate")

        assert [event.name for event in seen] == ["review.queued"]
        assert recorder.observer_count == 0

    def test_failing_observer_does_not_block_others(self):
        seen: list[ServiceEvent] = []
        recorder = EventRecorder()

        def broken(event: ServiceEvent) -> None:
            raise RuntimeError("observer failure")

        recorder.register(broken)
        with recorder.temporary_observer(seen.append):
            recorder.record("merge.complete", {"confidence": 1.0})
        recorder.record("batch.complete")

        assert [event.name for event in seen] == ["merge.complete"]

    def test_payload_is_copied(self):
        payload = {"party_id": "p-1"}
        event = EventRecorder().record("party.error", payload)
        payload["party_id"] = "changed"

        assert event.payload == {"party_id": "p-1"}

    def test_global_recorder_can_be_replaced(self):
        reset_event_recorder()
        assert get_event_recorder() is get_event_recorder()
        assert get_event_recorder(SERVICE).service == SERVICE

        replacement = EventRecorder()
        set_event_recorder(replacement)
        try:
            assert get_event_recorder() is replacement
        finally:
            reset_event_recorder()


class TestEventLogStore:
    def test_persist_and_fetch(self, store):
        written = store.persist_events([merge_event("a", "b")])

        fetched = store.fetch_events()

        assert written == 1
        assert store.persist_events([]) == 0
        assert [event.name for event in fetched] == ["merge.complete"]
        assert fetched[0].payload["confidence"] == 0.97
        assert store.count_events() == 1
        assert store.count_events(name="batch.complete") == 0

    def test_filters(self, store):
        store.persist_events(
            [
                ServiceEvent(NOW - timedelta(hours=1), SERVICE, "review.queued", {}),
                ServiceEvent(NOW, SERVICE, "review.queued", {}),
                ServiceEvent(NOW + timedelta(hours=1), "ingestion", "review.queued", {}),
            ]
        )

        recent = store.fetch_events(service=SERVICE, since=NOW)

        assert len(recent) == 1
        assert recent[0].timestamp >= NOW
        assert len(store.fetch_events(limit=2)) == 2
        assert len(store.fetch_events(name="review.queued")) == 3
        assert store.count_events(service="ingestion") == 1

    def test_merge_history(self, store):
        store.persist_events(
            [
                merge_event("dup-1", "master", NOW),
                merge_event("dup-2", "other", NOW + timedelta(minutes=1)),
                merge_event("master", "parent", NOW + timedelta(minutes=2)),
                ServiceEvent(NOW, SERVICE, "review.queued", {"party_id": "master"}),
            ]
        )

        history = store.merge_history("master")

        assert [(e.payload["source_party_id"], e.payload["target_party_id"]) for e in history] == [
            ("dup-1", "master"),
            ("master", "parent"),
        ]
        assert store.merge_history("unknown") == []

    def test_latest_batch_summary(self, store):
        assert store.latest_batch_summary() is None

        store.persist_events(
            [
                ServiceEvent(NOW, SERVICE, "batch.complete", {"processed": 10}),
                ServiceEvent(NOW + timedelta(days=1), SERVICE, "batch.complete", {"processed": 12}),
            ]
        )

        assert store.latest_batch_summary() == {"processed": 12}

    def test_attach_persistent_observer(self, store):
        recorder = EventRecorder()

        detach = attach_persistent_observer(recorder, store)
        recorder.scoped(SERVICE).record("merge.complete", {"source_party_id": "a", "target_party_id": "b"})
        detach()
        recorder.record("after_detach")

        events = store.fetch_events()
        assert [event.qualified_name for event in events] == ["entity_resolution.merge.complete"]


def test_logging_observer_levels(caplog):
    with caplog.at_level(logging.DEBUG, logger="partyfed.events"):
        logging_observer(ServiceEvent(NOW, SERVICE, "party.error", {"party_id": "a"}))
        logging_observer(ServiceEvent(NOW, SERVICE, "merge.complete", {}))
        logging_observer(ServiceEvent(NOW, SERVICE, "matching.complete", {}))

    assert [record.levelno for record in caplog.records] == [logging.WARNING, logging.INFO, logging.DEBUG]
    assert "entity_resolution.party.error" in caplog.records[0].getMessage()


def test_configure_observability(tmp_path, caplog):
    settings = ObservabilitySettings(
        event_log_url=f"sqlite:///{tmp_path / 'events.db'}",
        log_level="info",
    )
    recorder = EventRecorder()
    package_logger = logging.getLogger("partyfed")
    previous_level = package_logger.level

    detach = configure_observability(settings, recorder)
    try:
        assert package_logger.level == logging.INFO
        assert recorder.observer_count == 2
        with caplog.at_level(logging.INFO, logger="partyfed.events"):
            recorder.scoped(SERVICE).record("batch.complete", {"processed": 3})
    finally:
        detach()
        package_logger.setLevel(previous_level)
    recorder.record("after_detach")

    store = EventLogStore(settings.event_log_url)
    assert [event.name for event in store.fetch_events()] == ["batch.complete"]
    assert store.latest_batch_summary() == {"processed": 3}
    assert any("batch.complete" in record.getMessage() for record in caplog.records)


def test_federation_config_without_event_logging(tmp_path, caplog):
    recorder = EventRecorder()
    config = FederationConfig(
        observability=ObservabilitySettings(
            event_log_url=f"sqlite:///{tmp_path / 'events.db'}",
            log_resolution_events=False,
        )
    )
    package_logger = logging.getLogger("partyfed")
    previous_level = package_logger.level

    detach = config.configure_observability(recorder)
    try:
        assert recorder.observer_count == 1
        with caplog.at_level(logging.DEBUG, logger="partyfed.events"):
            recorder.scoped(SERVICE).record("merge.complete", {"source_party_id": "a", "target_party_id": "b"})
        assert not [record for record in caplog.records if record.name == "partyfed.events"]
    finally:
        detach()
        package_logger.setLevel(previous_level)

    history = EventLogStore(config.observability.event_log_url).merge_history("a")
    assert [event.payload["target_party_id"] for event in history] == ["b"]
