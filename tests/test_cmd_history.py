"""Tests for depcat history CLI command."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from cli_test_helpers import BY, _add, _init_repo, _run

if TYPE_CHECKING:
    from pathlib import Path


class TestHistory:
    """Tests for history."""

    def test_no_events(self, tmp_path: Path) -> None:
        """A fresh repository has no history."""
        depcat_dir = _init_repo(tmp_path)
        result = _run(depcat_dir, "history")
        assert result.exit_code == 0
        assert "No history found" in result.stdout

    def test_timeline(self, tmp_path: Path) -> None:
        """Events are shown oldest first with a legend."""
        depcat_dir = _init_repo(tmp_path)
        dep_id = _add(depcat_dir, "A", "B")
        _run(depcat_dir, "resolve", dep_id, "--by", BY)

        result = _run(depcat_dir, "history")
        assert result.exit_code == 0
        added = result.stdout.index("Added dependency: A blocks B")
        resolved = result.stdout.index("Resolved dependency: A blocks B")
        assert added < resolved
        assert "Legend:" in result.stdout

    def test_json_and_filters(self, tmp_path: Path) -> None:
        """The item filter and limit narrow the events."""
        depcat_dir = _init_repo(tmp_path)
        dep_id = _add(depcat_dir, "A", "B")
        _add(depcat_dir, "C", "D")
        _run(depcat_dir, "ignore", dep_id, "--by", BY)

        events = json.loads(_run(depcat_dir, "history", "--json").stdout)
        assert [e["event_type"] for e in events] == ["added", "added", "ignored"]

        events = json.loads(
            _run(depcat_dir, "history", "--item", "A", "--json").stdout,
        )
        assert [e["event_type"] for e in events] == ["added", "ignored"]
        assert all(e["dependency_id"] == dep_id for e in events)

        events = json.loads(_run(depcat_dir, "history", "1", "--json").stdout)
        assert [e["event_type"] for e in events] == ["ignored"]

    def test_zero_limit(self, tmp_path: Path) -> None:
        """A limit of zero shows nothing instead of the default."""
        depcat_dir = _init_repo(tmp_path)
        _add(depcat_dir, "A", "B")
        _add(depcat_dir, "C", "D")

        result = _run(depcat_dir, "history", "--limit", "0", "--json")
        assert result.exit_code == 0
        assert json.loads(result.stdout) == []

        result = _run(depcat_dir, "history", "0")
        assert "No history found" in result.stdout

    def test_negative_limit(self, tmp_path: Path) -> None:
        """Negative limits are rejected."""
        depcat_dir = _init_repo(tmp_path)
        result = _run(depcat_dir, "history", "--limit", "-1")
        assert result.exit_code == 1
        assert "Limit must not be negative" in result.output
