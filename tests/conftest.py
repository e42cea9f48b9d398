"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from depcat.constants import STORAGE_FILENAME
from depcat.event_log import EventLog
from depcat.models import Dependency, DependencyType
from depcat.service import DependencyService
from depcat.storage import JSONLDependencyStore


@pytest.fixture
def temp_depcat_dir(tmp_path: Path) -> Path:
    """Create a temporary .depcat directory for testing."""
    depcat_path = tmp_path / ".depcat"
    depcat_path.mkdir()
    return depcat_path


@pytest.fixture
def store(temp_depcat_dir: Path) -> JSONLDependencyStore:
    """Create an empty edge store in the temporary directory."""
    return JSONLDependencyStore(str(temp_depcat_dir / STORAGE_FILENAME))


@pytest.fixture
def event_log(temp_depcat_dir: Path) -> EventLog:
    """Provide an event log sharing the store's file."""
    return EventLog(temp_depcat_dir)


@pytest.fixture
def service(store: JSONLDependencyStore, event_log: EventLog) -> DependencyService:
    """Provide a service wired to the store and event log."""
    return DependencyService(store, event_log)


def make_dep(
    source_id: str,
    target_id: str,
    dep_type: DependencyType | str = DependencyType.BLOCKS,
    created_by: str = "tester@example.com",
) -> Dependency:
    """Build a valid active dependency."""
    return Dependency.create(source_id, target_id, dep_type, created_by=created_by)
