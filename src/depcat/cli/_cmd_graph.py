"""Blocking graph visualization command for depcat CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer

from depcat.constants import DEPCAT_DIRNAME
from depcat.errors import DepcatError

from ._helpers import get_service
from ._json_state import echo_error, echo_json, is_json_output

if TYPE_CHECKING:
    from depcat.graph import DependencyGraph


def _collect_subgraph(graph: DependencyGraph, start_id: str) -> set[str]:
    """Collect all item IDs connected to *start_id* by active blocking edges."""
    visited: set[str] = set()
    queue = [start_id]
    while queue:
        current = queue.pop()
        if current in visited:
            continue
        visited.add(current)
        queue.extend(graph.get_blocking_issues(current))
        queue.extend(graph.get_blocked_issues(current))
    return visited


def _blocks_map(graph: DependencyGraph, item_ids: set[str]) -> dict[str, list[str]]:
    """Map each blocker to the items it blocks, restricted to *item_ids*."""
    blocks: dict[str, list[str]] = {}
    for item_id in sorted(item_ids):
        blocked = [b for b in graph.get_blocked_issues(item_id) if b in item_ids]
        if blocked:
            blocks[item_id] = blocked
    return blocks


def _render_graph(blocks: dict[str, list[str]], item_ids: set[str]) -> str:
    """Render an ASCII blocking tree.

    Blocking edges use ``├─▶ `` / ``└─▶ ``.  Already-visited items are shown
    as ``(ref: <id>)`` so cycles terminate.
    """
    has_incoming: set[str] = set()
    for blocked_list in blocks.values():
        has_incoming.update(blocked_list)

    # A cycle-only graph has no roots; fall back to every item.
    roots = sorted(item_ids - has_incoming) or sorted(item_ids)

    visited: set[str] = set()
    lines: list[str] = []

    for root in roots:
        if root in visited:
            continue
        # Each entry is (node, prefix of its line, connector)
        stack: list[tuple[str, str, str]] = [(root, "", "")]
        while stack:
            node_id, prefix, connector = stack.pop()
            if node_id in visited:
                ref = typer.style(f"(ref: {node_id})", fg="bright_black")
                lines.append(prefix + connector + ref)
                continue

            visited.add(node_id)
            lines.append(prefix + connector + node_id)

            blocked_ids = blocks.get(node_id, [])
            children: list[tuple[str, str, str]] = []
            for idx, target_id in enumerate(blocked_ids):
                if idx == len(blocked_ids) - 1:
                    conn = typer.style("└─▶ ", fg="red")
                    new_prefix = prefix + "    "
                else:
                    conn = typer.style("├─▶ ", fg="red")
                    new_prefix = prefix + typer.style("│   ", fg="bright_black")
                children.append((target_id, new_prefix, conn))
            stack.extend(reversed(children))

    return "\n".join(lines)


def register(app: typer.Typer) -> None:
    """Register the graph command."""

    @app.command()
    def graph(
        item_id: str | None = typer.Argument(
            None,
            help="Item ID to show subgraph for (omit for full graph)",
        ),
        json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
        depcat_dir: str = typer.Option(
            DEPCAT_DIRNAME,
            help="Path to .depcat directory",
        ),
    ) -> None:
        """Show the active blocking graph as an ASCII tree."""
        is_json_output(json_output)
        try:
            dep_graph = get_service(depcat_dir).get_dependency_graph()
        except DepcatError as e:
            echo_error(str(e))
            raise typer.Exit(1) from e

        if item_id is not None:
            item_ids = _collect_subgraph(dep_graph, item_id)
        else:
            item_ids = set(dep_graph.item_ids(active_only=True))

        blocks = _blocks_map(dep_graph, item_ids)
        # Only keep items that take part in a blocking relationship.
        graph_ids = set(blocks)
        for blocked_list in blocks.values():
            graph_ids.update(blocked_list)

        if is_json_output(json_output):
            echo_json(
                {
                    "nodes": sorted(graph_ids),
                    "edges": [
                        {"from": blocker, "to": blocked, "type": "blocks"}
                        for blocker, blocked_list in blocks.items()
                        for blocked in blocked_list
                    ],
                },
            )
        elif not graph_ids:
            typer.echo("No dependency graph to display")
        else:
            typer.echo(_render_graph(blocks, graph_ids))
