"""Dependency management commands for depcat CLI."""

from __future__ import annotations

import typer

from depcat.constants import DEFAULT_TYPE, DEPCAT_DIRNAME
from depcat.errors import DepcatError
from depcat.models import dependency_to_dict

from ._formatting import (
    format_dependency_brief,
    format_dependency_details,
    format_dependency_table,
    get_legend,
)
from ._helpers import build_filter, get_default_operator, get_service
from ._json_state import echo_error, echo_json, is_json_output

_DIR_HELP = "Path to .depcat directory"


def register(app: typer.Typer) -> None:
    """Register dependency add/remove/status/list commands."""

    @app.command("add")
    def add(
        source_id: str = typer.Argument(..., help="Item that has the dependency"),
        target_id: str = typer.Argument(..., help="Item being depended upon"),
        dep_type: str = typer.Option(
            DEFAULT_TYPE,
            "--type",
            "-t",
            help="Dependency type (blocks, requires)",
        ),
        description: str | None = typer.Option(
            None,
            "--description",
            "-d",
            help="Description of the dependency",
        ),
        by: str | None = typer.Option(None, "--by", help="Who is making this change"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """Add a dependency between two items."""
        is_json_output(json_output)  # sync local flag for echo_error
        try:
            service = get_service(depcat_dir)
            operator = by or get_default_operator(str(service.store.depcat_dir))
            dep = service.create_dependency(
                source_id,
                target_id,
                dep_type,
                description=description,
                created_by=operator,
            )
        except DepcatError as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if is_json_output(json_output):
            echo_json(dependency_to_dict(dep))
        else:
            typer.echo(f"✓ Added dependency {dep.id}: {dep}")

    def _change_dependency(
        action: str,
        dep_id: str,
        by: str | None,
        json_output: bool,
        depcat_dir: str,
    ) -> None:
        """Run a remove/resolve/ignore/reactivate action and report it."""
        is_json_output(json_output)
        try:
            service = get_service(depcat_dir)
            operator = by or get_default_operator(str(service.store.depcat_dir))
            if action == "remove":
                dep = service.remove_dependency(dep_id, operator)
            elif action == "resolve":
                dep = service.resolve_dependency(dep_id, operator)
            elif action == "ignore":
                dep = service.ignore_dependency(dep_id, operator)
            else:
                dep = service.reactivate_dependency(dep_id, operator)
        except DepcatError as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if is_json_output(json_output):
            echo_json(dependency_to_dict(dep))
        else:
            past = {
                "remove": "Removed",
                "resolve": "Resolved",
                "ignore": "Ignored",
                "reactivate": "Reactivated",
            }[action]
            typer.echo(f"✓ {past} dependency {dep.id}: {dep}")

    @app.command("remove")
    def remove(
        dep_id: str = typer.Argument(..., help="Dependency ID"),
        by: str | None = typer.Option(None, "--by", help="Who is making this change"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """Remove a dependency."""
        _change_dependency("remove", dep_id, by, json_output, depcat_dir)

    @app.command("resolve")
    def resolve(
        dep_id: str = typer.Argument(..., help="Dependency ID"),
        by: str | None = typer.Option(None, "--by", help="Who is making this change"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """Mark a dependency as resolved."""
        _change_dependency("resolve", dep_id, by, json_output, depcat_dir)

    @app.command("ignore")
    def ignore(
        dep_id: str = typer.Argument(..., help="Dependency ID"),
        by: str | None = typer.Option(None, "--by", help="Who is making this change"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """Mark a dependency as ignored."""
        _change_dependency("ignore", dep_id, by, json_output, depcat_dir)

    @app.command("reactivate")
    def reactivate(
        dep_id: str = typer.Argument(..., help="Dependency ID"),
        by: str | None = typer.Option(None, "--by", help="Who is making this change"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """Make a resolved or ignored dependency active again."""
        _change_dependency("reactivate", dep_id, by, json_output, depcat_dir)

    @app.command("complete")
    def complete(
        item_id: str = typer.Argument(..., help="Item that has been completed"),
        by: str | None = typer.Option(None, "--by", help="Who is making this change"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """Resolve every dependency satisfied by an item being completed."""
        is_json_output(json_output)
        try:
            service = get_service(depcat_dir)
            operator = by or get_default_operator(str(service.store.depcat_dir))
            resolved = service.auto_resolve_dependencies(item_id, operator)
        except DepcatError as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if is_json_output(json_output):
            echo_json([dependency_to_dict(d) for d in resolved])
        elif resolved:
            typer.echo(f"✓ Resolved {len(resolved)} dependencies:")
            for dep in resolved:
                typer.echo(f"  {format_dependency_brief(dep)}")
        else:
            typer.echo(f"No active dependencies waiting on {item_id}")

    @app.command("show")
    def show(
        dep_id: str = typer.Argument(..., help="Dependency ID"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """Show a single dependency."""
        is_json_output(json_output)
        try:
            dep = get_service(depcat_dir).store.get_by_id(dep_id)
        except DepcatError as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if is_json_output(json_output):
            echo_json(dependency_to_dict(dep))
        else:
            typer.echo(format_dependency_details(dep))

    @app.command("list")
    def list_dependencies(
        item_id: str | None = typer.Argument(
            None,
            help="Only dependencies touching this item",
        ),
        source_id: str | None = typer.Option(None, "--source", help="Source item"),
        target_id: str | None = typer.Option(None, "--target", help="Target item"),
        dep_type: str | None = typer.Option(None, "--type", "-t", help="Type"),
        status: str | None = typer.Option(None, "--status", "-s", help="Status"),
        created_by: str | None = typer.Option(None, "--by", help="Creator"),
        since: str | None = typer.Option(None, "--since", help="Created on/after"),
        until: str | None = typer.Option(None, "--until", help="Created on/before"),
        limit: int = typer.Option(0, "--limit", "-n", help="Max results (0 = all)"),
        offset: int = typer.Option(0, "--offset", help="Skip this many results"),
        table: bool = typer.Option(False, "--table", help="Render as a table"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """List dependencies, newest first."""
        is_json_output(json_output)
        try:
            service = get_service(depcat_dir)
            filters = build_filter(
                source_id=source_id,
                target_id=target_id,
                dep_type=dep_type,
                status=status,
                created_by=created_by,
                since=since,
                until=until,
                limit=limit,
                offset=offset,
            )
            deps = service.get_dependencies(filters)
        except DepcatError as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if item_id is not None:
            deps = [d for d in deps if item_id in (d.source_id, d.target_id)]

        if is_json_output(json_output):
            echo_json([dependency_to_dict(d) for d in deps])
        elif not deps:
            typer.echo("No dependencies")
        elif table:
            typer.echo(format_dependency_table(deps))
        else:
            for dep in deps:
                typer.echo(f"{format_dependency_brief(dep)}  [{dep.id}]")
            typer.echo(get_legend())
