"""High-level dependency operations: guarded mutations and analysis."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from depcat.analysis import (
    BlockingInfo,
    DependencyStats,
    ImpactAnalysis,
    ValidationResult,
    analyze_impact,
    get_all_blocked,
    get_blocking_info,
    validate_graph,
)
from depcat.constants import DEFAULT_ON_DUPLICATE, DEFAULT_TOP_N
from depcat.errors import (
    CircularDependencyError,
    DuplicateDependencyError,
    InvalidTransitionError,
)
from depcat.event_log import EventLog, EventRecord
from depcat.models import Dependency, DependencyFilter, DependencyType

if TYPE_CHECKING:
    from depcat.graph import DependencyGraph
    from depcat.storage import JSONLDependencyStore


class DependencyService:
    """Dependency management on top of an edge store.

    Mutations that check the graph before writing (cycle and duplicate
    guards, status transitions) run inside ``store.locked()`` so they are
    atomic with respect to other processes using the same store.  Events are
    written after the lock is released.
    """

    def __init__(
        self,
        store: JSONLDependencyStore,
        event_log: EventLog | None = None,
        *,
        on_duplicate: str = DEFAULT_ON_DUPLICATE,
        top_n: int = DEFAULT_TOP_N,
    ) -> None:
        self.store = store
        self.event_log = event_log
        self.on_duplicate = on_duplicate
        self.top_n = top_n

    # -- Mutations ---------------------------------------------------------

    def create_dependency(
        self,
        source_id: str,
        target_id: str,
        dep_type: DependencyType | str,
        description: str | None = None,
        created_by: str = "",
    ) -> Dependency:
        """Create a dependency after checking for duplicates and cycles.

        Raises:
            ValidationError: If the dependency is invalid (e.g. self-loop)
            DuplicateDependencyError: If the edge exists and the duplicate
                policy is ``reject``
            CircularDependencyError: If the edge would close a cycle
        """
        dep = Dependency.create(
            source_id,
            target_id,
            dep_type,
            description=description,
            created_by=created_by,
        )

        with self.store.locked():
            existing = self.store.get(dep.id)
            if existing is not None and self.on_duplicate != "overwrite":
                raise DuplicateDependencyError(dep.id)

            graph = self.store.get_dependency_graph()
            if existing is not None:
                # The edge being replaced must not count toward a cycle
                graph.remove_dependency(existing.id)
            if graph.has_circular_dependency(dep.source_id, dep.target_id):
                raise CircularDependencyError(dep.source_id, dep.target_id)

            self.store.create(dep, overwrite=True)

        self._emit("added", dep, created_by, f"Added dependency: {dep}")
        return dep

    def remove_dependency(
        self,
        dep_id: str,
        removed_by: str | None = None,
    ) -> Dependency:
        """Delete a dependency.

        Raises:
            NotFoundError: If the dependency does not exist
        """
        with self.store.locked():
            dep = self.store.get_by_id(dep_id)
            self.store.delete(dep_id)

        self._emit("removed", dep, removed_by, f"Removed dependency: {dep}")
        return dep

    def resolve_dependency(self, dep_id: str, resolved_by: str) -> Dependency:
        """Mark a dependency as resolved.

        Raises:
            NotFoundError: If the dependency does not exist
            InvalidTransitionError: If it is not active
        """
        with self.store.locked():
            dep = self.store.get_by_id(dep_id)
            dep.resolve(resolved_by)
            self.store.update(dep)

        self._emit("resolved", dep, resolved_by, f"Resolved dependency: {dep}")
        return dep

    def ignore_dependency(self, dep_id: str, ignored_by: str) -> Dependency:
        """Mark a dependency as ignored.

        Raises:
            NotFoundError: If the dependency does not exist
            InvalidTransitionError: If it is not active
        """
        with self.store.locked():
            dep = self.store.get_by_id(dep_id)
            dep.ignore(ignored_by)
            self.store.update(dep)

        self._emit("ignored", dep, ignored_by, f"Ignored dependency: {dep}")
        return dep

    def reactivate_dependency(
        self,
        dep_id: str,
        reactivated_by: str | None = None,
    ) -> Dependency:
        """Make a resolved or ignored dependency active again.

        Reactivation is refused if the edge would now close a cycle.

        Raises:
            NotFoundError: If the dependency does not exist
            InvalidTransitionError: If it is already active
            CircularDependencyError: If reactivating would create a cycle
        """
        with self.store.locked():
            dep = self.store.get_by_id(dep_id)
            if dep.is_active():
                raise InvalidTransitionError(dep.status.value, "active")
            graph = self.store.get_dependency_graph()
            if graph.has_circular_dependency(dep.source_id, dep.target_id):
                raise CircularDependencyError(dep.source_id, dep.target_id)
            dep.reactivate()
            self.store.update(dep)

        self._emit(
            "reactivated",
            dep,
            reactivated_by,
            f"Reactivated dependency: {dep}",
        )
        return dep

    def auto_resolve_dependencies(
        self,
        completed_id: str,
        resolved_by: str,
    ) -> list[Dependency]:
        """Resolve the dependencies satisfied by *completed_id* being done.

        Active edges targeting the item are resolved, as are active
        ``requires`` edges it is the source of.

        Returns:
            The resolved dependencies, sorted by ID
        """
        with self.store.locked():
            to_resolve = {
                d.id: d
                for d in self.store.get_by_target_id(completed_id)
                if d.is_active()
            }
            for dep in self.store.get_by_source_id(completed_id):
                if dep.is_active() and dep.dep_type == DependencyType.REQUIRES:
                    to_resolve[dep.id] = dep

            resolved = [to_resolve[dep_id] for dep_id in sorted(to_resolve)]
            for dep in resolved:
                dep.resolve(resolved_by)
            self.store.bulk_update(resolved)

        for dep in resolved:
            self._emit(
                "resolved",
                dep,
                resolved_by,
                f"Auto-resolved dependency due to issue completion: {dep}",
            )
        return resolved

    # -- Queries -----------------------------------------------------------

    def get_dependencies(
        self,
        filters: DependencyFilter | None = None,
    ) -> list[Dependency]:
        """List dependencies with optional filtering."""
        return self.store.list(filters)

    def get_issue_dependencies(self, item_id: str) -> list[Dependency]:
        """Get every dependency touching *item_id*."""
        return self.store.get_by_issue_id(item_id)

    def get_dependency_graph(self) -> DependencyGraph:
        """Build the full dependency graph."""
        return self.store.get_dependency_graph()

    def get_blocking_info(self, item_id: str) -> BlockingInfo:
        """Get what blocks *item_id* and what it blocks."""
        return get_blocking_info(self.store.get_dependency_graph(), item_id)

    def get_blocked_issues(self) -> list[str]:
        """Get every item currently blocked, sorted."""
        return get_all_blocked(self.store.get_dependency_graph())

    def validate_dependency_graph(self) -> ValidationResult:
        """Check the whole graph for cycles."""
        return validate_graph(self.store.get_dependency_graph())

    def get_dependency_stats(
        self,
        filters: DependencyFilter | None = None,
    ) -> DependencyStats:
        """Compute statistics for dependencies matching *filters*."""
        return self.store.get_stats(filters, top_n=self.top_n)

    def analyze_dependency_impact(self, item_id: str) -> ImpactAnalysis:
        """Analyze which items a change to *item_id* would affect."""
        return analyze_impact(self.store.get_dependency_graph(), item_id)

    # -- Events ------------------------------------------------------------

    def _emit(
        self,
        event_type: str,
        dep: Dependency,
        by: str | None,
        message: str,
    ) -> None:
        """Record an event in the history log (best-effort)."""
        if self.event_log is None:
            return
        event = EventRecord(
            event_type=event_type,
            dependency_id=dep.id,
            source_id=dep.source_id,
            target_id=dep.target_id,
            timestamp=datetime.now().astimezone().isoformat(),
            by=by,
            message=message,
        )
        try:
            self.event_log.append(event)
        except OSError:
            logging.getLogger(__name__).debug(
                "Failed to write event for %s",
                dep.id,
                exc_info=True,
            )
