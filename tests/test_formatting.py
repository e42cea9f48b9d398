"""Tests for display and formatting functions."""

import click

from depcat.analysis import ImpactAnalysis, ValidationResult
from depcat.cli._formatting import (
    format_cycle,
    format_dependency_brief,
    format_dependency_table,
    format_event,
    format_impact,
    format_validation,
    get_event_legend,
)
from depcat.event_log import EventRecord
from depcat.models import Dependency


def _plain(text: str) -> str:
    return click.unstyle(text)


class TestFormatCycle:
    """Test cycle rendering."""

    def test_cycle_repeats_first_item(self) -> None:
        """The closing edge back to the start is shown."""
        assert format_cycle(["A", "B", "C"]) == "A → B → C → A"

    def test_empty_cycle(self) -> None:
        """An empty cycle renders as nothing."""
        assert format_cycle([]) == ""


class TestFormatDependency:
    """Test single-dependency and table output."""

    def test_brief(self) -> None:
        """Brief output names both ends and the description."""
        dep = Dependency.create("A", "B", "requires", "needs the API", "me")
        assert _plain(format_dependency_brief(dep)) == (
            "● A requires B - needs the API"
        )

    def test_table_escapes_markup(self) -> None:
        """Rich markup in descriptions is printed literally."""
        dep = Dependency.create("A", "B", "blocks", "[red]loud[/red]", "me")

        output = _plain(format_dependency_table([dep]))

        assert "[red]loud[/red]" in output
        assert "A-blocks-B" in output

    def test_table_empty(self) -> None:
        """No rows means no table."""
        assert format_dependency_table([]) == ""


class TestFormatAnalysis:
    """Test validation and impact output."""

    def test_invalid_graph(self) -> None:
        """Cycles are listed under their own heading."""
        result = ValidationResult(
            is_valid=False,
            circular_paths=[["A", "B"]],
            warnings=["Found 1 circular dependency paths"],
        )

        lines = _plain(format_validation(result)).splitlines()

        assert lines[0] == "✗ Dependency graph has problems"
        assert "Circular paths:" in lines
        assert "  A → B → A" in lines

    def test_impact_without_affected_items(self) -> None:
        """An isolated item reports no impact."""
        analysis = ImpactAnalysis(
            issue_id="A",
            affected_issues=[],
            critical_path=["A"],
            risk_level="low",
            recommendations=[],
            blocking_chain={},
        )

        output = _plain(format_impact(analysis))

        assert output.splitlines()[0] == "Impact of A: risk LOW"
        assert "No other issues are affected" in output
        assert "Critical path" not in output


class TestFormatEvent:
    """Test history lines."""

    def test_event_line(self) -> None:
        """Events show time, symbol, message and actor."""
        event = EventRecord(
            event_type="resolved",
            dependency_id="A-blocks-B",
            source_id="A",
            target_id="B",
            timestamp="2025-03-01T12:30:45.000000+00:00",
            by="me",
            message="Resolved dependency: A blocks B",
        )

        assert _plain(format_event(event)) == (
            "2025-03-01 12:30 ✓ Resolved dependency: A blocks B (me)"
        )

    def test_event_without_message(self) -> None:
        """A missing message falls back to type and ID."""
        event = EventRecord(
            event_type="removed",
            dependency_id="A-blocks-B",
            source_id="A",
            target_id="B",
            timestamp="2025-03-01T12:30:45+00:00",
        )

        assert _plain(format_event(event)) == "2025-03-01 12:30 ✗ removed A-blocks-B"

    def test_legend_lists_every_event(self) -> None:
        """The legend covers every event type."""
        legend = get_event_legend()
        for name in ("added", "removed", "resolved", "ignored", "reactivated"):
            assert name in legend
