"""Shared pytest configuration and fixtures for Watson tests.

Points ``STATE_FILE`` at a throwaway location before any watson module is
imported, so that nothing in the test run writes a snapshot into the working
directory.
"""
from __future__ import annotations

import os
import tempfile

os.environ.setdefault(
    "STATE_FILE", os.path.join(tempfile.mkdtemp(prefix="watson-test-"), "watson_state.bin")
)
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import pytest  # noqa: E402

from watson.services.snapshot import InMemorySnapshotStorage  # noqa: E402
from watson.services.watson import WatsonService  # noqa: E402


@pytest.fixture
def storage() -> InMemorySnapshotStorage:
    """Snapshot storage with no snapshot written yet."""
    return InMemorySnapshotStorage()


@pytest.fixture
def service(storage: InMemorySnapshotStorage) -> WatsonService:
    """A service over an empty state store and in-memory snapshot storage."""
    return WatsonService(storage)
