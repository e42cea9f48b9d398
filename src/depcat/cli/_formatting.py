"""Display and formatting functions for depcat CLI."""

from __future__ import annotations

from io import StringIO
from typing import TYPE_CHECKING

import typer

from depcat.constants import (
    EVENT_SYMBOLS,
    RISK_COLORS,
    STATUS_COLORS,
    STATUS_SYMBOLS,
    TYPE_COLORS,
)

if TYPE_CHECKING:
    from depcat.analysis import (
        BlockingInfo,
        DependencyStats,
        ImpactAnalysis,
        ValidationResult,
    )
    from depcat.event_log import EventRecord
    from depcat.models import Dependency


def get_legend() -> str:
    """Get a legend explaining status symbols.

    Returns:
        Multi-line legend string
    """
    legend_lines = [
        "",
        "Legend:",
        "  Status: ● Active  ✓ Resolved  ◇ Ignored",
        "  Types:  blocks = source before target, requires = target before source",
    ]
    return "\n".join(legend_lines)


def format_dependency_brief(dep: Dependency) -> str:
    """Format a dependency on one line with color coding."""
    status = dep.status.value
    symbol = typer.style(
        STATUS_SYMBOLS.get(status, "?"),
        fg=STATUS_COLORS.get(status, "white"),
    )
    type_str = typer.style(
        dep.dep_type.value,
        fg=TYPE_COLORS.get(dep.dep_type.value, "white"),
        bold=True,
    )
    desc_str = (
        typer.style(f" - {dep.description}", fg="bright_black")
        if dep.description
        else ""
    )
    return f"{symbol} {dep.source_id} {type_str} {dep.target_id}{desc_str}"


def format_dependency_details(dep: Dependency) -> str:
    """Format every field of a dependency for ``depcat show``."""
    lines = [
        f"ID: {dep.id}",
        f"Source: {dep.source_id}",
        f"Target: {dep.target_id}",
        f"Type: {dep.dep_type.value}",
        f"Status: {dep.status.value}",
    ]
    if dep.description:
        lines.append(f"Description: {dep.description}")
    lines.append(f"Created: {dep.created_at.isoformat()} by {dep.created_by}")
    lines.append(f"Updated: {dep.updated_at.isoformat()}")
    if dep.resolved_at:
        lines.append(f"Resolved: {dep.resolved_at.isoformat()}")
    if dep.resolved_by:
        lines.append(f"Resolved by: {dep.resolved_by}")
    return "\n".join(lines)


def format_dependency_table(deps: list[Dependency]) -> str:
    """Format dependencies as an aligned table using Rich.

    Returns:
        Formatted table string (rendered by Rich), or "" for no input
    """
    from rich import box
    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    if not deps:
        return ""

    table = Table(
        show_header=True,
        header_style="bold",
        box=box.ROUNDED,
        pad_edge=False,
        show_edge=False,
    )
    table.add_column("", width=2, no_wrap=True)  # Status symbol
    table.add_column("ID", no_wrap=True)
    table.add_column("Source", no_wrap=True)
    table.add_column("Type", no_wrap=True)
    table.add_column("Target", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("By", no_wrap=True)
    table.add_column("Created", no_wrap=True)
    table.add_column("Description", overflow="fold")

    for dep in deps:
        status = dep.status.value
        status_color = STATUS_COLORS.get(status, "white")
        type_color = TYPE_COLORS.get(dep.dep_type.value, "white")
        table.add_row(
            STATUS_SYMBOLS.get(status, "?"),
            escape(dep.id),
            escape(dep.source_id),
            f"[{type_color}]{dep.dep_type.value}[/]",
            escape(dep.target_id),
            f"[{status_color}]{status}[/]",
            escape(dep.created_by),
            dep.created_at.strftime("%Y-%m-%d %H:%M"),
            escape(dep.description or ""),
        )

    string_io = StringIO()
    console = Console(file=string_io, force_terminal=True, width=None)
    console.print(table)
    return string_io.getvalue().rstrip()


def format_cycle(cycle: list[str]) -> str:
    """Render a cycle with its closing item repeated, e.g. ``A → B → A``."""
    return " → ".join([*cycle, cycle[0]]) if cycle else ""


def format_blocking_info(info: BlockingInfo) -> str:
    """Format blocking information for a single item."""
    if info.is_blocked:
        state = typer.style("BLOCKED", fg="red", bold=True)
    else:
        state = typer.style("not blocked", fg="green")
    lines = [f"{info.issue_id}: {state}"]
    if info.blocked_by:
        lines.append(f"  Blocked by: {', '.join(info.blocked_by)}")
    if info.blocking:
        blocking = ", ".join(info.blocking)
        lines.append(f"  Blocking ({info.blocking_count}): {blocking}")
    if info.critical_path:
        lines.append(typer.style("  On the critical path", fg="yellow"))
    if info.unresolved_deps:
        lines.append("  Active dependencies:")
        lines.extend(
            f"    {format_dependency_brief(d)}" for d in info.unresolved_deps
        )
    return "\n".join(lines)


def format_validation(result: ValidationResult) -> str:
    """Format a graph validation result."""
    if result.is_valid:
        return typer.style("✓ Dependency graph is valid", fg="green")

    lines = [typer.style("✗ Dependency graph has problems", fg="red", bold=True)]
    lines.extend(f"  {warning}" for warning in result.warnings)
    if result.circular_paths:
        lines.append("Circular paths:")
        lines.extend(f"  {format_cycle(c)}" for c in result.circular_paths)
    if result.conflicting_dependencies:
        lines.append("Conflicting dependencies:")
        lines.extend(
            f"  {format_dependency_brief(d)}" for d in result.conflicting_dependencies
        )
    return "\n".join(lines)


def format_stats(stats: DependencyStats) -> str:
    """Format dependency statistics."""
    lines = [
        "Dependency statistics:",
        f"  Total: {stats.total_dependencies}",
        f"  Active: {stats.active_dependencies}",
        f"  Resolved: {stats.resolved_dependencies}",
        f"  Circular: {stats.circular_dependencies}",
        f"  Issues with dependencies: {stats.issues_with_deps}",
        f"  Average per issue: {stats.average_dep_per_issue:.2f}",
    ]
    if stats.dependencies_by_type:
        lines.append("By type:")
        lines.extend(
            f"  {k}: {v}" for k, v in sorted(stats.dependencies_by_type.items())
        )
    if stats.dependencies_by_status:
        lines.append("By status:")
        lines.extend(
            f"  {k}: {v}" for k, v in sorted(stats.dependencies_by_status.items())
        )
    if stats.most_blocked_issues:
        lines.append(f"Most blocked: {', '.join(stats.most_blocked_issues)}")
    if stats.most_blocking_issues:
        lines.append(f"Most blocking: {', '.join(stats.most_blocking_issues)}")
    if stats.dependency_creators:
        lines.append("Created by:")
        lines.extend(
            f"  {k}: {v}" for k, v in sorted(stats.dependency_creators.items())
        )
    return "\n".join(lines)


def format_impact(analysis: ImpactAnalysis) -> str:
    """Format an impact analysis."""
    risk = typer.style(
        analysis.risk_level.upper(),
        fg=RISK_COLORS.get(analysis.risk_level, "white"),
        bold=True,
    )
    lines = [f"Impact of {analysis.issue_id}: risk {risk}"]
    if analysis.affected_issues:
        lines.append(
            f"  Affected ({len(analysis.affected_issues)}): "
            f"{', '.join(analysis.affected_issues)}",
        )
    else:
        lines.append("  No other issues are affected")
    if len(analysis.critical_path) > 1:
        lines.append(f"  Critical path: {' → '.join(analysis.critical_path)}")
    if analysis.recommendations:
        lines.append("Recommendations:")
        lines.extend(f"  - {rec}" for rec in analysis.recommendations)
    return "\n".join(lines)


def format_event(event: EventRecord) -> str:
    """Format a history event on one line."""
    symbol = EVENT_SYMBOLS.get(event.event_type, "?")
    ts = event.timestamp[:16].replace("T", " ")
    by_str = typer.style(f" ({event.by})", fg="bright_black") if event.by else ""
    text = event.message or f"{event.event_type} {event.dependency_id}"
    return f"{ts} {symbol} {text}{by_str}"


def get_event_legend() -> str:
    """Get a legend for history symbols."""
    entries = "  ".join(f"{sym} {name}" for name, sym in EVENT_SYMBOLS.items())
    return f"\nLegend: {entries}"
