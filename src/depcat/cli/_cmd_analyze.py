"""Blocking, validation, statistics and impact commands for depcat CLI."""

from __future__ import annotations

import typer

from depcat.constants import DEPCAT_DIRNAME
from depcat.errors import DepcatError

from ._formatting import (
    format_blocking_info,
    format_cycle,
    format_impact,
    format_stats,
    format_validation,
)
from ._helpers import build_filter, get_service
from ._json_state import echo_error, echo_json, is_json_output

_DIR_HELP = "Path to .depcat directory"


def register(app: typer.Typer) -> None:
    """Register analysis commands."""

    @app.command("blocked")
    def blocked(
        item_id: str | None = typer.Argument(
            None,
            help="Show what blocks this item (default: list all blocked items)",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """Show blocked items, or blocking details for one item."""
        is_json_output(json_output)
        try:
            service = get_service(depcat_dir)
            if item_id is not None:
                info = service.get_blocking_info(item_id)
            else:
                blocked_ids = service.get_blocked_issues()
                graph = service.get_dependency_graph()
        except DepcatError as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if item_id is not None:
            if is_json_output(json_output):
                echo_json(info.to_dict())
            else:
                typer.echo(format_blocking_info(info))
            return

        if is_json_output(json_output):
            echo_json(
                [
                    {"issue_id": b, "blocked_by": graph.get_blocking_issues(b)}
                    for b in blocked_ids
                ],
            )
        elif not blocked_ids:
            typer.echo("No blocked issues")
        else:
            typer.echo(f"Blocked issues ({len(blocked_ids)}):")
            for b in blocked_ids:
                blockers = ", ".join(graph.get_blocking_issues(b))
                marker = typer.style(f"[blocked by: {blockers}]", fg="red")
                typer.echo(f"  ■ {b} {marker}")

    @app.command("validate")
    def validate(
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """Validate the dependency graph; exits 1 if cycles exist."""
        is_json_output(json_output)
        try:
            result = get_service(depcat_dir).validate_dependency_graph()
        except DepcatError as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if is_json_output(json_output):
            echo_json(result.to_dict())
        else:
            typer.echo(format_validation(result))
        if not result.is_valid:
            raise typer.Exit(1)

    @app.command("cycles")
    def cycles(
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """List circular dependencies among active edges."""
        is_json_output(json_output)
        try:
            found = get_service(depcat_dir).get_dependency_graph()
            found_cycles = found.find_circular_dependencies()
        except DepcatError as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if is_json_output(json_output):
            echo_json(found_cycles)
        elif not found_cycles:
            typer.echo("No circular dependencies")
        else:
            typer.echo(f"Circular dependencies ({len(found_cycles)}):")
            for cycle in found_cycles:
                typer.echo(f"  {format_cycle(cycle)}")

    @app.command("stats")
    def stats(
        source_id: str | None = typer.Option(None, "--source", help="Source item"),
        target_id: str | None = typer.Option(None, "--target", help="Target item"),
        dep_type: str | None = typer.Option(None, "--type", "-t", help="Type"),
        status: str | None = typer.Option(None, "--status", "-s", help="Status"),
        created_by: str | None = typer.Option(None, "--by", help="Creator"),
        since: str | None = typer.Option(None, "--since", help="Created on/after"),
        until: str | None = typer.Option(None, "--until", help="Created on/before"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """Show dependency statistics."""
        is_json_output(json_output)
        try:
            filters = build_filter(
                source_id=source_id,
                target_id=target_id,
                dep_type=dep_type,
                status=status,
                created_by=created_by,
                since=since,
                until=until,
            )
            result = get_service(depcat_dir).get_dependency_stats(filters)
        except DepcatError as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if is_json_output(json_output):
            echo_json(result.to_dict())
        else:
            typer.echo(format_stats(result))

    @app.command("impact")
    def impact(
        item_id: str = typer.Argument(..., help="Item to analyze"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """Analyze the impact of changes to an item."""
        is_json_output(json_output)
        try:
            analysis = get_service(depcat_dir).analyze_dependency_impact(item_id)
        except DepcatError as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if is_json_output(json_output):
            echo_json(analysis.to_dict())
        else:
            typer.echo(format_impact(analysis))
