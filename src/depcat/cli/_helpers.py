"""Shared infrastructure for depcat CLI commands."""

from __future__ import annotations

import functools
import getpass
import subprocess
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from typer.core import TyperGroup

from depcat.config import (
    get_default_operator_override,
    get_on_duplicate,
    get_stats_top_n,
)
from depcat.constants import DEPCAT_DIRNAME, STORAGE_FILENAME
from depcat.event_log import EventLog
from depcat.models import (
    DependencyFilter,
    parse_dependency_status,
    parse_dependency_type,
)
from depcat.service import DependencyService
from depcat.storage import JSONLDependencyStore

if TYPE_CHECKING:
    import click


class SortedGroup(TyperGroup):
    """Typer group that lists commands in alphabetical order."""

    def list_commands(self, ctx: click.Context) -> list[str]:
        """Return commands sorted alphabetically."""
        return sorted(super().list_commands(ctx))


@functools.lru_cache(maxsize=1)
def _git_operator() -> str:
    """Get git's user.email, falling back to the machine username."""
    try:
        result = subprocess.run(
            ["git", "config", "user.email"],
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
    except OSError:
        # git not installed
        pass

    return getpass.getuser()


def get_default_operator(depcat_dir: str | None = None) -> str:
    """Get the default operator recorded as created_by/resolved_by.

    Precedence:
    1. default_operator from config.toml
    2. git config user.email
    3. Machine username
    """
    if depcat_dir is not None:
        override = get_default_operator_override(depcat_dir)
        if override:
            return override
    return _git_operator()


def find_depcat_dir(start_dir: str | None = None) -> str:
    """Find the .depcat directory by searching upward from start_dir.

    Args:
        start_dir: Directory to start searching from (default: current directory)

    Returns:
        Path to .depcat directory, or ".depcat" if not found
    """
    current = Path.cwd() if start_dir is None else Path(start_dir).resolve()

    while True:
        candidate = current / DEPCAT_DIRNAME
        if candidate.is_dir():
            return str(candidate)

        parent = current.parent
        if parent == current:
            return DEPCAT_DIRNAME
        current = parent


def resolve_depcat_dir(depcat_dir: str = DEPCAT_DIRNAME) -> str:
    """Use *depcat_dir* if it exists, otherwise search upward like git does."""
    if not Path(depcat_dir).is_dir():
        return find_depcat_dir()
    return depcat_dir


def get_store(
    depcat_dir: str = DEPCAT_DIRNAME,
    create_dir: bool = False,
) -> JSONLDependencyStore:
    """Get or create the edge store.

    Args:
        depcat_dir: Path to .depcat directory.
        create_dir: If True, create the directory if it doesn't exist.

    Returns:
        JSONLDependencyStore instance
    """
    if not create_dir:
        depcat_dir = resolve_depcat_dir(depcat_dir)
    return JSONLDependencyStore(
        f"{depcat_dir}/{STORAGE_FILENAME}",
        create_dir=create_dir,
    )


def get_service(depcat_dir: str = DEPCAT_DIRNAME) -> DependencyService:
    """Build a DependencyService wired to the store, history and config."""
    store = get_store(depcat_dir)
    return DependencyService(
        store,
        EventLog(store.depcat_dir),
        on_duplicate=get_on_duplicate(store.depcat_dir),
        top_n=get_stats_top_n(store.depcat_dir),
    )


def parse_date(value: str | None, option: str) -> datetime | None:
    """Parse an ISO date/datetime option; naive values use local time."""
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value).astimezone()
    except ValueError:
        msg = f"Invalid date for {option}: '{value}'. Use YYYY-MM-DD[THH:MM]."
        raise typer.BadParameter(msg) from None


def build_filter(
    *,
    source_id: str | None = None,
    target_id: str | None = None,
    dep_type: str | None = None,
    status: str | None = None,
    created_by: str | None = None,
    since: str | None = None,
    until: str | None = None,
    limit: int = 0,
    offset: int = 0,
) -> DependencyFilter:
    """Build a DependencyFilter from raw CLI option values.

    Raises:
        ValidationError: If the type or status is unknown
    """
    return DependencyFilter(
        source_id=source_id,
        target_id=target_id,
        dep_type=parse_dependency_type(dep_type) if dep_type else None,
        status=parse_dependency_status(status) if status else None,
        created_by=created_by,
        date_from=parse_date(since, "--since"),
        date_to=parse_date(until, "--until"),
        limit=limit,
        offset=offset,
    )
