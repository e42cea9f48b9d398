"""Blocking, validation, statistics and impact analysis over a dependency graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from depcat.constants import (
    CRITICAL_PATH_THRESHOLD,
    DEFAULT_TOP_N,
    MANY_AFFECTED_THRESHOLD,
    MANY_BLOCKERS_THRESHOLD,
    RISK_LEVEL_MAX,
    RISK_THRESHOLDS,
)
from depcat.graph import DependencyGraph
from depcat.models import Dependency, DependencyStatus, dependency_to_dict

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass
class ValidationResult:
    """Outcome of validating the whole graph."""

    is_valid: bool
    circular_paths: list[list[str]] = field(default_factory=list[list[str]])
    conflicting_dependencies: list[Dependency] = field(
        default_factory=list[Dependency],
    )
    warnings: list[str] = field(default_factory=list[str])

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "is_valid": self.is_valid,
            "circular_paths": self.circular_paths,
            "conflicting_dependencies": [
                dependency_to_dict(d) for d in self.conflicting_dependencies
            ],
            "warnings": self.warnings,
        }


@dataclass
class DependencyStats:
    """Aggregate statistics over a set of dependencies."""

    total_dependencies: int = 0
    active_dependencies: int = 0
    resolved_dependencies: int = 0
    circular_dependencies: int = 0
    dependencies_by_type: dict[str, int] = field(default_factory=dict[str, int])
    dependencies_by_status: dict[str, int] = field(default_factory=dict[str, int])
    issues_with_deps: int = 0
    most_blocked_issues: list[str] = field(default_factory=list[str])
    most_blocking_issues: list[str] = field(default_factory=list[str])
    average_dep_per_issue: float = 0.0
    dependency_creators: dict[str, int] = field(default_factory=dict[str, int])

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "total_dependencies": self.total_dependencies,
            "active_dependencies": self.active_dependencies,
            "resolved_dependencies": self.resolved_dependencies,
            "circular_dependencies": self.circular_dependencies,
            "dependencies_by_type": self.dependencies_by_type,
            "dependencies_by_status": self.dependencies_by_status,
            "issues_with_deps": self.issues_with_deps,
            "most_blocked_issues": self.most_blocked_issues,
            "most_blocking_issues": self.most_blocking_issues,
            "average_dep_per_issue": self.average_dep_per_issue,
            "dependency_creators": self.dependency_creators,
        }


@dataclass
class BlockingInfo:
    """What blocks an item and what it blocks."""

    issue_id: str
    is_blocked: bool
    blocked_by: list[str]  # Items that must complete first
    blocking: list[str]  # Items waiting for this one
    unresolved_deps: list[Dependency]
    blocking_count: int
    critical_path: bool

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "issue_id": self.issue_id,
            "is_blocked": self.is_blocked,
            "blocked_by": self.blocked_by,
            "blocking": self.blocking,
            "unresolved_deps": [dependency_to_dict(d) for d in self.unresolved_deps],
            "blocking_count": self.blocking_count,
            "critical_path": self.critical_path,
        }


@dataclass
class ImpactAnalysis:
    """Advisory analysis of what a change to one item affects."""

    issue_id: str
    affected_issues: list[str]
    critical_path: list[str]
    risk_level: str
    recommendations: list[str]
    blocking_chain: dict[str, list[str]]  # affected item -> chain from issue_id

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "issue_id": self.issue_id,
            "affected_issues": self.affected_issues,
            "critical_path": self.critical_path,
            "risk_level": self.risk_level,
            "recommendations": self.recommendations,
            "blocking_chain": self.blocking_chain,
        }


# -- Validation ---------------------------------------------------------------


def find_conflicts(
    graph: DependencyGraph,
    cycles: list[list[str]] | None = None,
) -> list[Dependency]:
    """Get every active edge that participates in a cycle, sorted by ID."""
    if cycles is None:
        cycles = graph.find_circular_dependencies()

    conflicting: dict[str, Dependency] = {}
    for cycle in cycles:
        for idx, source in enumerate(cycle):
            target = cycle[(idx + 1) % len(cycle)]
            for dep in graph.edges_between(source, target):
                if dep.is_active():
                    conflicting[dep.id] = dep

    return [conflicting[dep_id] for dep_id in sorted(conflicting)]


def validate_graph(graph: DependencyGraph) -> ValidationResult:
    """Check the graph for cycles and the edges that form them."""
    cycles = graph.find_circular_dependencies()
    conflicts = find_conflicts(graph, cycles)

    warnings: list[str] = []
    if cycles:
        warnings.append(f"Found {len(cycles)} circular dependency paths")
    if conflicts:
        warnings.append(f"Found {len(conflicts)} conflicting dependencies")

    return ValidationResult(
        is_valid=not cycles,
        circular_paths=cycles,
        conflicting_dependencies=conflicts,
        warnings=warnings,
    )


# -- Statistics ---------------------------------------------------------------


def top_items(counts: dict[str, int], limit: int = DEFAULT_TOP_N) -> list[str]:
    """Rank items by count descending, breaking ties by ID ascending."""
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [item_id for item_id, _count in ranked[:limit]]


def compute_stats(
    deps: Iterable[Dependency],
    *,
    top_n: int = DEFAULT_TOP_N,
    graph: DependencyGraph | None = None,
) -> DependencyStats:
    """Compute aggregate statistics for a set of dependencies.

    Args:
        deps: The (already filtered) dependencies to summarize
        top_n: How many items to keep in the most-blocked/blocking rankings
        graph: Graph to count cycles in; defaults to a graph of *deps*

    Returns:
        The statistics; all counts are zero and breakdowns empty for no input
    """
    deps = list(deps)
    stats = DependencyStats(total_dependencies=len(deps))
    if not deps:
        return stats

    involved: set[str] = set()
    blocked_count: dict[str, int] = {}
    blocking_count: dict[str, int] = {}

    for dep in deps:
        type_key = dep.dep_type.value
        status_key = dep.status.value
        stats.dependencies_by_type[type_key] = (
            stats.dependencies_by_type.get(type_key, 0) + 1
        )
        stats.dependencies_by_status[status_key] = (
            stats.dependencies_by_status.get(status_key, 0) + 1
        )
        if dep.status == DependencyStatus.ACTIVE:
            stats.active_dependencies += 1
        elif dep.status == DependencyStatus.RESOLVED:
            stats.resolved_dependencies += 1

        stats.dependency_creators[dep.created_by] = (
            stats.dependency_creators.get(dep.created_by, 0) + 1
        )

        involved.add(dep.source_id)
        involved.add(dep.target_id)

        if dep.is_active():
            blocker, blocked = dep.blocker_and_blocked()
            blocking_count[blocker] = blocking_count.get(blocker, 0) + 1
            blocked_count[blocked] = blocked_count.get(blocked, 0) + 1

    stats.issues_with_deps = len(involved)
    if stats.issues_with_deps:
        stats.average_dep_per_issue = (
            stats.total_dependencies / stats.issues_with_deps
        )

    stats.most_blocked_issues = top_items(blocked_count, top_n)
    stats.most_blocking_issues = top_items(blocking_count, top_n)

    if graph is None:
        graph = DependencyGraph.from_dependencies(deps)
    stats.circular_dependencies = len(graph.find_circular_dependencies())

    return stats


# -- Blocking -----------------------------------------------------------------


def get_blocking_info(graph: DependencyGraph, item_id: str) -> BlockingInfo:
    """Collect what blocks *item_id* and what it blocks."""
    blocked_by = graph.get_blocking_issues(item_id)
    blocking = graph.get_blocked_issues(item_id)

    touching = graph.get_dependencies_from_source(item_id)
    touching += graph.get_dependencies_from_target(item_id)
    unresolved = sorted((d for d in touching if d.is_active()), key=lambda d: d.id)

    return BlockingInfo(
        issue_id=item_id,
        is_blocked=bool(blocked_by),
        blocked_by=blocked_by,
        blocking=blocking,
        unresolved_deps=unresolved,
        blocking_count=len(blocking),
        critical_path=len(blocking) > CRITICAL_PATH_THRESHOLD,
    )


def get_all_blocked(graph: DependencyGraph) -> list[str]:
    """Get every item currently blocked by an active dependency, sorted."""
    return [
        item_id
        for item_id in graph.item_ids(active_only=True)
        if graph.is_blocked(item_id)
    ]


# -- Impact -------------------------------------------------------------------


def _blocking_tree(graph: DependencyGraph, item_id: str) -> dict[str, str | None]:
    """Map every item reachable from *item_id* to its parent in a DFS tree.

    Blocked items are walked in sorted order, so the tree path to an item is
    the first blocking chain a depth-first search would discover.
    """
    parents: dict[str, str | None] = {item_id: None}
    # Each frame is (node, its blocked items, index of next blocked item)
    frames: list[tuple[str, list[str], int]] = [
        (item_id, graph.get_blocked_issues(item_id), 0),
    ]
    while frames:
        node, blocked, idx = frames[-1]
        if idx >= len(blocked):
            frames.pop()
            continue
        frames[-1] = (node, blocked, idx + 1)
        nxt = blocked[idx]
        if nxt not in parents:
            parents[nxt] = node
            frames.append((nxt, graph.get_blocked_issues(nxt), 0))
    return parents


def transitively_blocked(graph: DependencyGraph, item_id: str) -> list[str]:
    """Get every item blocked by *item_id* directly or through others, sorted."""
    parents = _blocking_tree(graph, item_id)
    return sorted(other for other in parents if other != item_id)


def _chain_to(parents: dict[str, str | None], to_id: str) -> list[str]:
    chain: list[str] = []
    current: str | None = to_id
    while current is not None:
        chain.append(current)
        current = parents[current]
    chain.reverse()
    return chain


def blocking_chain(graph: DependencyGraph, from_id: str, to_id: str) -> list[str]:
    """Find the first blocking chain from *from_id* to *to_id*.

    Returns:
        The chain including both endpoints, or an empty list if unreachable
    """
    parents = _blocking_tree(graph, from_id)
    if to_id not in parents:
        return []
    return _chain_to(parents, to_id)


def longest_blocking_chain(graph: DependencyGraph, item_id: str) -> list[str]:
    """Find the longest blocking chain that starts at *item_id*.

    Chain lengths are memoised in post-order, so each item is finished once.
    Edges leading back into the current walk are skipped: the result is the
    exact longest chain when the reachable graph is acyclic, and a simple
    chain through the loop otherwise.  Ties keep the first blocked item in
    sorted order.
    """
    length: dict[str, int] = {}
    best_next: dict[str, str | None] = {}
    on_stack: set[str] = {item_id}
    frames: list[tuple[str, list[str], int]] = [
        (item_id, graph.get_blocked_issues(item_id), 0),
    ]

    while frames:
        node, blocked, idx = frames[-1]
        if idx < len(blocked):
            frames[-1] = (node, blocked, idx + 1)
            nxt = blocked[idx]
            if nxt not in length and nxt not in on_stack:
                on_stack.add(nxt)
                frames.append((nxt, graph.get_blocked_issues(nxt), 0))
            continue

        frames.pop()
        on_stack.discard(node)
        best: str | None = None
        best_len = 0
        for nxt in blocked:
            if length.get(nxt, 0) > best_len:
                best, best_len = nxt, length[nxt]
        length[node] = best_len + 1
        best_next[node] = best

    chain: list[str] = []
    current: str | None = item_id
    while current is not None:
        chain.append(current)
        current = best_next[current]
    return chain


def risk_level(affected_count: int) -> str:
    """Classify risk by the number of affected items."""
    for max_count, level in RISK_THRESHOLDS:
        if affected_count <= max_count:
            return level
    return RISK_LEVEL_MAX


def recommendations_for(
    graph: DependencyGraph,
    item_id: str,
    affected_count: int,
) -> list[str]:
    """Suggest follow-ups based on how much work an item holds up."""
    recs: list[str] = []
    if affected_count > MANY_AFFECTED_THRESHOLD:
        recs.append(
            "Consider breaking down this issue into smaller, independent tasks",
        )
        recs.append("Review if all dependencies are truly necessary")
    if affected_count > 0:
        recs.append("Prioritize this issue to unblock dependent work")
        recs.append("Communicate delays early to affected stakeholders")
    if len(graph.get_blocking_issues(item_id)) > MANY_BLOCKERS_THRESHOLD:
        recs.append(
            "This issue has many blockers - consider parallel work where possible",
        )
    return recs


def analyze_impact(graph: DependencyGraph, item_id: str) -> ImpactAnalysis:
    """Analyze which items a change to *item_id* would affect."""
    parents = _blocking_tree(graph, item_id)
    affected = sorted(other for other in parents if other != item_id)
    # One traversal yields both the affected set and every first-found chain
    chains = {other: _chain_to(parents, other) for other in affected}

    return ImpactAnalysis(
        issue_id=item_id,
        affected_issues=affected,
        critical_path=longest_blocking_chain(graph, item_id),
        risk_level=risk_level(len(affected)),
        recommendations=recommendations_for(graph, item_id, len(affected)),
        blocking_chain=chains,
    )
