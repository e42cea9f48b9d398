"""In-memory dependency graph and cycle detection."""

from __future__ import annotations

from typing import TYPE_CHECKING

from depcat.models import Dependency, DependencyType

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


class DependencyGraph:
    """Index over a set of dependency edges.

    ``edges`` maps edge ID to Dependency; ``by_source`` and ``by_target`` map
    an item ID to the IDs of edges where it is the source or target.  Every
    edge ID sits in exactly one bucket of each index and emptied buckets are
    dropped.

    Not thread-safe: callers that interleave a check (e.g.
    :meth:`has_circular_dependency`) with a mutation from several threads
    must hold their own lock around the pair.
    """

    def __init__(self) -> None:
        self.edges: dict[str, Dependency] = {}
        self.by_source: dict[str, list[str]] = {}
        self.by_target: dict[str, list[str]] = {}

    @classmethod
    def from_dependencies(cls, deps: Iterable[Dependency]) -> DependencyGraph:
        """Build a graph holding every dependency in *deps*."""
        graph = cls()
        for dep in deps:
            graph.add_dependency(dep)
        return graph

    def __len__(self) -> int:
        return len(self.edges)

    def __contains__(self, dep_id: object) -> bool:
        return dep_id in self.edges

    def __iter__(self) -> Iterator[Dependency]:
        return iter(self.edges.values())

    # -- Mutation ----------------------------------------------------------

    def add_dependency(self, dep: Dependency) -> None:
        """Insert *dep*, replacing any edge with the same ID."""
        if dep.id in self.edges:
            # Drop the stale edge's index entries; its endpoints may differ
            self.remove_dependency(dep.id)

        self.edges[dep.id] = dep
        self.by_source.setdefault(dep.source_id, []).append(dep.id)
        self.by_target.setdefault(dep.target_id, []).append(dep.id)

    def remove_dependency(self, dep_id: str) -> None:
        """Remove an edge by ID. No-op if absent."""
        dep = self.edges.pop(dep_id, None)
        if dep is None:
            return
        _discard_from_bucket(self.by_source, dep.source_id, dep_id)
        _discard_from_bucket(self.by_target, dep.target_id, dep_id)

    # -- Lookup ------------------------------------------------------------

    def get(self, dep_id: str) -> Dependency | None:
        """Get an edge by ID."""
        return self.edges.get(dep_id)

    def get_dependencies_from_source(self, item_id: str) -> list[Dependency]:
        """Get every edge where *item_id* is the source."""
        return [self.edges[dep_id] for dep_id in self.by_source.get(item_id, [])]

    def get_dependencies_from_target(self, item_id: str) -> list[Dependency]:
        """Get every edge where *item_id* is the target."""
        return [self.edges[dep_id] for dep_id in self.by_target.get(item_id, [])]

    def edges_between(self, source_id: str, target_id: str) -> list[Dependency]:
        """Get every edge pointing from *source_id* to *target_id*."""
        return [
            dep
            for dep in self.get_dependencies_from_source(source_id)
            if dep.target_id == target_id
        ]

    def active_edges(self) -> list[Dependency]:
        """Get active edges sorted by ID."""
        return sorted(
            (dep for dep in self.edges.values() if dep.is_active()),
            key=lambda d: d.id,
        )

    def item_ids(self, *, active_only: bool = False) -> list[str]:
        """Get the sorted IDs of every item that appears in an edge."""
        ids: set[str] = set()
        for dep in self.edges.values():
            if active_only and not dep.is_active():
                continue
            ids.add(dep.source_id)
            ids.add(dep.target_id)
        return sorted(ids)

    # -- Blocking queries --------------------------------------------------

    def get_blocking_issues(self, item_id: str) -> list[str]:
        """Get the items that must complete before *item_id* can proceed.

        Active ``requires`` edges out of the item contribute their target;
        active ``blocks`` edges into the item contribute their source.
        """
        blocking: set[str] = set()
        for dep in self.get_dependencies_from_source(item_id):
            if dep.is_active() and dep.dep_type == DependencyType.REQUIRES:
                blocking.add(dep.target_id)
        for dep in self.get_dependencies_from_target(item_id):
            if dep.is_active() and dep.dep_type == DependencyType.BLOCKS:
                blocking.add(dep.source_id)
        return sorted(blocking)

    def get_blocked_issues(self, item_id: str) -> list[str]:
        """Get the items waiting on *item_id*.

        Active ``blocks`` edges out of the item contribute their target;
        active ``requires`` edges into the item contribute their source.
        """
        blocked: set[str] = set()
        for dep in self.get_dependencies_from_source(item_id):
            if dep.is_active() and dep.dep_type == DependencyType.BLOCKS:
                blocked.add(dep.target_id)
        for dep in self.get_dependencies_from_target(item_id):
            if dep.is_active() and dep.dep_type == DependencyType.REQUIRES:
                blocked.add(dep.source_id)
        return sorted(blocked)

    def is_blocked(self, item_id: str) -> bool:
        """Check if any active dependency blocks *item_id*."""
        return len(self.get_blocking_issues(item_id)) > 0

    # -- Cycle detection ---------------------------------------------------

    def _successors(self, item_id: str) -> list[str]:
        """Active out-neighbours of *item_id*, following source -> target."""
        deps = sorted(
            (d for d in self.get_dependencies_from_source(item_id) if d.is_active()),
            key=lambda d: (d.target_id, d.id),
        )
        return [d.target_id for d in deps]

    def has_circular_dependency(self, from_id: str, to_id: str) -> bool:
        """Check if adding an edge ``from_id -> to_id`` would create a cycle.

        True when a path ``to_id -> ... -> from_id`` already exists over
        active edges (or when both IDs are the same).  Does not mutate the
        graph.
        """
        visited: set[str] = set()
        stack = [to_id]
        while stack:
            current = stack.pop()
            if current == from_id:
                return True
            if current in visited:
                continue
            visited.add(current)
            stack.extend(
                nxt for nxt in reversed(self._successors(current)) if nxt not in visited
            )
        return False

    def find_circular_dependencies(self) -> list[list[str]]:
        """Find every cycle among active edges using DFS.

        Each cycle is the slice of the DFS path starting at the node that was
        re-entered; the closing repeat of the first ID is not included.

        Returns:
            List of cycles (each cycle is a list of item IDs)
        """
        cycles: list[list[str]] = []
        visited: set[str] = set()
        on_stack: set[str] = set()

        for start in self.item_ids(active_only=True):
            if start in visited:
                continue

            path: list[str] = [start]
            visited.add(start)
            on_stack.add(start)
            # Each frame is (node, its successors, index of next successor)
            frames: list[tuple[str, list[str], int]] = [
                (start, self._successors(start), 0),
            ]

            while frames:
                node, successors, idx = frames[-1]
                if idx >= len(successors):
                    frames.pop()
                    path.pop()
                    on_stack.discard(node)
                    continue

                frames[-1] = (node, successors, idx + 1)
                nxt = successors[idx]
                if nxt not in visited:
                    visited.add(nxt)
                    on_stack.add(nxt)
                    path.append(nxt)
                    frames.append((nxt, self._successors(nxt), 0))
                elif nxt in on_stack:
                    cycles.append(path[path.index(nxt) :])

        return cycles


def _discard_from_bucket(index: dict[str, list[str]], key: str, dep_id: str) -> None:
    bucket = index.get(key)
    if bucket is None:
        return
    if dep_id in bucket:
        bucket.remove(dep_id)
    if not bucket:
        del index[key]
