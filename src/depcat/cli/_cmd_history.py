"""History command for depcat CLI."""

from __future__ import annotations

import typer

from depcat.constants import DEPCAT_DIRNAME
from depcat.event_log import EventLog, _serialize

from ._formatting import format_event, get_event_legend
from ._helpers import resolve_depcat_dir
from ._json_state import echo_error, echo_json, is_json_output


def register(app: typer.Typer) -> None:
    """Register history commands."""

    @app.command()
    def history(
        limit_arg: int | None = typer.Argument(None, help="Number of events to show"),
        item: str | None = typer.Option(
            None,
            "--item",
            "-i",
            help="Only events touching this item or dependency ID",
        ),
        limit: int | None = typer.Option(
            None,
            "--limit",
            help="Number of events to show",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(
            DEPCAT_DIRNAME,
            help="Path to .depcat directory",
        ),
    ) -> None:
        """Show dependency change history as a chronological timeline."""
        is_json_output(json_output)
        if limit_arg is not None:
            final_limit = limit_arg
        elif limit is not None:
            final_limit = limit
        else:
            final_limit = 20
        if final_limit < 0:
            echo_error("Limit must not be negative")
            raise typer.Exit(1)

        event_log = EventLog(resolve_depcat_dir(depcat_dir))
        try:
            events = event_log.read(item_id=item, limit=final_limit)
        except OSError as e:
            echo_error(f"Failed to read history: {e}")
            raise typer.Exit(1) from e

        events.reverse()  # Display oldest-first (chronological)

        if is_json_output(json_output):
            echo_json([_serialize(e) for e in events])
        elif not events:
            typer.echo("No history found")
        else:
            for event in events:
                typer.echo(format_event(event))
            typer.echo(get_event_legend())
