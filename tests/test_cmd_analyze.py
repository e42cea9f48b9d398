"""Tests for blocked, validate, cycles, stats and impact CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from cli_test_helpers import _add, _init_repo, _run
from conftest import make_dep

from depcat.constants import STORAGE_FILENAME
from depcat.storage import JSONLDependencyStore

if TYPE_CHECKING:
    from pathlib import Path


def _add_cycle(depcat_dir: Path) -> None:
    """Write a two-item cycle straight into the store, bypassing the guard."""
    store = JSONLDependencyStore(str(depcat_dir / STORAGE_FILENAME))
    store.create(make_dep("A", "B"))
    store.create(make_dep("B", "A"))


class TestBlocked:
    """Tests for blocked."""

    def test_nothing_blocked(self, tmp_path: Path) -> None:
        """An empty repository has no blocked items."""
        depcat_dir = _init_repo(tmp_path)
        result = _run(depcat_dir, "blocked")
        assert result.exit_code == 0
        assert "No blocked issues" in result.stdout

    def test_all_blocked(self, tmp_path: Path) -> None:
        """Every blocked item is listed with its blockers."""
        depcat_dir = _init_repo(tmp_path)
        _add(depcat_dir, "A", "B")
        _add(depcat_dir, "C", "A", "requires")

        result = _run(depcat_dir, "blocked")
        assert result.exit_code == 0
        assert "Blocked issues (2):" in result.stdout
        assert "B [blocked by: A]" in result.stdout

        result = _run(depcat_dir, "blocked", "--json")
        assert json.loads(result.stdout) == [
            {"issue_id": "B", "blocked_by": ["A"]},
            {"issue_id": "C", "blocked_by": ["A"]},
        ]

    def test_single_item(self, tmp_path: Path) -> None:
        """Blocking info for one item."""
        depcat_dir = _init_repo(tmp_path)
        _add(depcat_dir, "A", "B")
        _add(depcat_dir, "A", "C")
        _add(depcat_dir, "A", "D")

        result = _run(depcat_dir, "blocked", "A", "--json")
        data = json.loads(result.stdout)
        assert data["is_blocked"] is False
        assert data["blocking"] == ["B", "C", "D"]
        assert data["critical_path"] is True

        result = _run(depcat_dir, "blocked", "B")
        assert "B: BLOCKED" in result.stdout
        assert "Blocked by: A" in result.stdout


class TestValidateAndCycles:
    """Tests for validate and cycles."""

    def test_valid(self, tmp_path: Path) -> None:
        """A clean graph validates."""
        depcat_dir = _init_repo(tmp_path)
        _add(depcat_dir, "A", "B")

        result = _run(depcat_dir, "validate")
        assert result.exit_code == 0
        assert "Dependency graph is valid" in result.stdout

        result = _run(depcat_dir, "cycles")
        assert "No circular dependencies" in result.stdout

    def test_invalid(self, tmp_path: Path) -> None:
        """A cycle fails validation with exit code 1."""
        depcat_dir = _init_repo(tmp_path)
        _add_cycle(depcat_dir)

        result = _run(depcat_dir, "validate")
        assert result.exit_code == 1
        assert "A → B → A" in result.stdout
        assert "Found 1 circular dependency paths" in result.stdout

        result = _run(depcat_dir, "validate", "--json")
        data = json.loads(result.stdout)
        assert data["is_valid"] is False
        assert [d["id"] for d in data["conflicting_dependencies"]] == [
            "A-blocks-B",
            "B-blocks-A",
        ]

    def test_cycles(self, tmp_path: Path) -> None:
        """Cycles are listed without the closing repeat in JSON."""
        depcat_dir = _init_repo(tmp_path)
        _add_cycle(depcat_dir)

        result = _run(depcat_dir, "cycles", "--json")
        assert result.exit_code == 0
        assert json.loads(result.stdout) == [["A", "B"]]

        result = _run(depcat_dir, "cycles")
        assert "Circular dependencies (1):" in result.stdout


class TestStats:
    """Tests for stats."""

    def test_empty(self, tmp_path: Path) -> None:
        """Empty repositories report zeros."""
        depcat_dir = _init_repo(tmp_path)
        result = _run(depcat_dir, "stats", "--json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["total_dependencies"] == 0
        assert data["average_dep_per_issue"] == 0
        assert data["dependencies_by_type"] == {}

    def test_counts_and_filters(self, tmp_path: Path) -> None:
        """Stats honour filters and the configured ranking size."""
        depcat_dir = _init_repo(tmp_path)
        _run(depcat_dir, "config", "set", "stats_top_n", "1")
        _add(depcat_dir, "A", "B")
        _add(depcat_dir, "A", "C")
        _add(depcat_dir, "D", "C", "requires")

        data = json.loads(_run(depcat_dir, "stats", "--json").stdout)
        assert data["total_dependencies"] == 3
        assert data["dependencies_by_type"] == {"blocks": 2, "requires": 1}
        assert data["most_blocking_issues"] == ["A"]
        assert data["most_blocked_issues"] == ["B"]

        data = json.loads(
            _run(depcat_dir, "stats", "--type", "requires", "--json").stdout,
        )
        assert data["total_dependencies"] == 1

        result = _run(depcat_dir, "stats")
        assert "Total: 3" in result.stdout
        assert "Most blocking: A" in result.stdout


class TestImpact:
    """Tests for impact."""

    def test_impact(self, tmp_path: Path) -> None:
        """Impact follows chains transitively."""
        depcat_dir = _init_repo(tmp_path)
        _add(depcat_dir, "A", "B")
        _add(depcat_dir, "B", "C")

        data = json.loads(_run(depcat_dir, "impact", "A", "--json").stdout)
        assert data["affected_issues"] == ["B", "C"]
        assert data["risk_level"] == "medium"
        assert data["critical_path"] == ["A", "B", "C"]
        assert data["blocking_chain"]["C"] == ["A", "B", "C"]

        result = _run(depcat_dir, "impact", "A")
        assert "risk MEDIUM" in result.stdout
        assert "Critical path: A → B → C" in result.stdout

    def test_impact_unknown_item(self, tmp_path: Path) -> None:
        """Items without edges have no impact."""
        depcat_dir = _init_repo(tmp_path)
        result = _run(depcat_dir, "impact", "Z")
        assert result.exit_code == 0
        assert "No other issues are affected" in result.stdout
