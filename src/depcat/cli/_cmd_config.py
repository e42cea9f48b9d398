"""Configuration management commands for depcat CLI."""

from __future__ import annotations

from typing import Any

import typer

from depcat.config import load_config, save_config
from depcat.constants import (
    DEFAULT_ON_DUPLICATE,
    DEFAULT_TOP_N,
    DEPCAT_DIRNAME,
    ON_DUPLICATE_CHOICES,
)

from ._helpers import SortedGroup, resolve_depcat_dir
from ._json_state import echo_error, echo_json, is_json_output

# Sub-app for 'depcat config' subcommands
config_app = typer.Typer(
    help="Manage depcat configuration.",
    no_args_is_help=True,
    cls=SortedGroup,
)

# All known config keys: type, description, default, and allowed values
_KNOWN_KEYS: dict[str, dict[str, Any]] = {
    "on_duplicate": {
        "type": "str",
        "description": "What adding an existing edge does",
        "default": DEFAULT_ON_DUPLICATE,
        "values": ", ".join(sorted(ON_DUPLICATE_CHOICES)),
    },
    "stats_top_n": {
        "type": "int",
        "description": "How many items the most blocked/blocking rankings keep",
        "default": DEFAULT_TOP_N,
        "values": "positive integer",
    },
    "default_operator": {
        "type": "str",
        "description": "Recorded as created_by/resolved_by when --by is omitted",
        "default": "git user.email",
    },
}

_DIR_HELP = "Path to .depcat directory"


def _coerce_value(key: str, value: str) -> Any:
    """Coerce a string value to the appropriate type for a known key."""
    if key == "stats_top_n":
        try:
            number = int(value)
        except ValueError:
            number = 0
        if number < 1:
            msg = f"Invalid value '{value}' for key '{key}'. Use a positive integer."
            raise typer.BadParameter(msg)
        return number
    if key == "on_duplicate" and value not in ON_DUPLICATE_CHOICES:
        allowed = ", ".join(sorted(ON_DUPLICATE_CHOICES))
        msg = f"Invalid value '{value}' for key '{key}'. Use one of: {allowed}."
        raise typer.BadParameter(msg)
    return value


def register(app: typer.Typer) -> None:
    """Register config commands."""
    app.add_typer(config_app, name="config")

    @config_app.command("set")
    def config_set(
        key: str = typer.Argument(..., help="Configuration key to set"),
        value: str = typer.Argument(..., help="Value to set"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """Set a configuration value."""
        if key not in _KNOWN_KEYS:
            echo_error(f"Unknown config key '{key}'. See 'depcat config keys'.")
            raise typer.Exit(1)
        coerced = _coerce_value(key, value)

        resolved_dir = resolve_depcat_dir(depcat_dir)
        config = load_config(resolved_dir)
        config[key] = coerced
        save_config(resolved_dir, config)
        typer.echo(f"Set {key} = {coerced}")

    @config_app.command("get")
    def config_get(
        key: str = typer.Argument(..., help="Configuration key to read"),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """Get a configuration value."""
        is_json_output(json_output)  # sync local flag for echo_error
        config = load_config(resolve_depcat_dir(depcat_dir))
        if key not in config:
            echo_error(f"Key '{key}' not found in config")
            raise typer.Exit(1)
        val = config[key]
        if is_json_output(json_output):
            echo_json({key: val})
        else:
            typer.echo(val)

    @config_app.command("list")
    def config_list(
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(DEPCAT_DIRNAME, help=_DIR_HELP),
    ) -> None:
        """List all configuration values."""
        config = load_config(resolve_depcat_dir(depcat_dir))
        if is_json_output(json_output):
            echo_json(config)
        elif not config:
            typer.echo("No configuration values set.")
        else:
            for k, v in sorted(config.items()):
                typer.echo(f"{k} = {v}")

    @config_app.command("keys")
    def config_keys(
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    ) -> None:
        """List all available configuration keys and their descriptions."""
        if is_json_output(json_output):
            echo_json(_KNOWN_KEYS)
            return

        from rich import box
        from rich.console import Console
        from rich.table import Table

        table = Table(
            show_header=True,
            header_style="bold",
            box=box.ROUNDED,
            pad_edge=False,
            show_edge=False,
        )
        table.add_column("Key", no_wrap=True)
        table.add_column("Type", no_wrap=True)
        table.add_column("Default", no_wrap=True)
        table.add_column("Description", overflow="fold")
        table.add_column("Values", overflow="fold")

        for key, info in _KNOWN_KEYS.items():
            table.add_row(
                key,
                info["type"],
                str(info["default"]),
                info["description"],
                info.get("values", ""),
            )

        Console().print(table)
