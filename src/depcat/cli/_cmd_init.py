"""Initialization command for depcat CLI."""

from __future__ import annotations

from pathlib import Path

import typer

from depcat.config import get_config_path, save_config
from depcat.constants import DEFAULT_ON_DUPLICATE, DEFAULT_TOP_N, DEPCAT_DIRNAME
from depcat.errors import DepcatError

from ._helpers import get_store
from ._json_state import echo_error, echo_json, is_json_output


def register(app: typer.Typer) -> None:
    """Register the init command."""

    @app.command()
    def init(
        depcat_dir: str = typer.Option(
            DEPCAT_DIRNAME,
            help="Path to .depcat directory",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    ) -> None:
        """Initialize a new depcat repository."""
        try:
            store = get_store(depcat_dir, create_dir=True)
        except DepcatError as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        config_path = get_config_path(store.depcat_dir)
        created_config = not config_path.exists()
        if created_config:
            save_config(
                store.depcat_dir,
                {"on_duplicate": DEFAULT_ON_DUPLICATE, "stats_top_n": DEFAULT_TOP_N},
            )

        if is_json_output(json_output):
            echo_json(
                {
                    "depcat_dir": str(Path(store.depcat_dir)),
                    "created_config": created_config,
                },
            )
            return

        typer.echo(f"✓ Initialized depcat repository in {store.depcat_dir}")
        if created_config:
            typer.echo(f"✓ Wrote default config to {config_path}")
