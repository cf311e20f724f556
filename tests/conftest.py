"""Pytest configuration and shared fixtures for partyfed tests."""

import pytest

from partyfed.resolution import EntityResolutionService
from partyfed.resolution.utils import ENTITY_RESOLUTION_RECORDER
from partyfed.store import InMemoryPartyRepository
from tests.fixtures.sample_parties import goldman_pair


# Pytest configuration
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: runs a threaded batch over a generated population"
    )


@pytest.fixture
def repository():
    """Provide an empty in-memory party repository."""
    return InMemoryPartyRepository()


@pytest.fixture
def resolution_service(repository):
    """Provide a resolution service with default configuration."""
    return EntityResolutionService(repository)


@pytest.fixture
def goldman_parties():
    """Provide the incoming/existing Goldman Sachs pair."""
    return goldman_pair()


@pytest.fixture
def recorded_events():
    """Collect entity resolution events emitted during the test."""
    events = []
    with ENTITY_RESOLUTION_RECORDER.temporary_observer(events.append):
        yield events
