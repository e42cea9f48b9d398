"""JSONL-based edge store for dependencies with atomic writes."""

from __future__ import annotations

import fcntl
import logging
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import orjson

from depcat.analysis import DependencyStats, compute_stats, find_conflicts
from depcat.constants import DEFAULT_TOP_N, LOCK_FILENAME, STORAGE_FILENAME
from depcat.errors import DuplicateDependencyError, NotFoundError, StorageError
from depcat.graph import DependencyGraph
from depcat.models import (
    Dependency,
    DependencyFilter,
    DependencyStatus,
    classify_record,
    dependency_to_dict,
    dict_to_dependency,
)

if TYPE_CHECKING:
    from collections.abc import Iterator


class JSONLDependencyStore:
    """Manages append-only JSONL storage for dependencies.

    Every write appends a full snapshot of the dependency (or a removal
    marker); replay is last-write-wins by ID.  Writers are serialized with an
    advisory ``fcntl`` lock so separate processes sharing a ``.depcat``
    directory do not interleave partial records.  Use :meth:`locked` to make
    a read-check-write sequence atomic across processes.
    """

    # Compact when appended lines exceed this fraction of the base file size.
    _COMPACTION_RATIO = 0.5
    # Minimum base size before ratio-based compaction kicks in.
    _COMPACTION_MIN_BASE = 20

    def __init__(
        self,
        path: str = f".depcat/{STORAGE_FILENAME}",
        create_dir: bool = False,
    ) -> None:
        """Initialize storage.

        Args:
            path: Path to the JSONL storage file
            create_dir: If True, create the directory if it doesn't exist.
                       If False (default), raise an error if it doesn't exist.
        """
        self.path = Path(path)
        self.depcat_dir = self.path.parent
        self._deps: dict[str, Dependency] = {}
        # Track lines for compaction decisions
        self._base_lines: int = 0
        self._appended_lines: int = 0
        self._lock_depth = 0
        self._lock_fd: Any = None

        if create_dir:
            try:
                self.depcat_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageError("init", "write", str(e)) from e
        elif not self.depcat_dir.exists():
            msg = (
                f"Directory '{self.depcat_dir}' does not exist. "
                f"Run 'depcat init' first to initialize the repository."
            )
            raise StorageError("init", "read", msg)

        self._lock_path = self.depcat_dir / LOCK_FILENAME
        self._needs_compaction = False  # Set when corrupt last line is skipped

        if self.path.exists():
            self._load()

    def _load(self) -> None:
        """Load dependencies from the JSONL file into memory.

        A malformed **last** line is tolerated (logged and skipped) because it
        is the most common result of a crash or disk-full during ``_append()``.
        Any other malformed line raises ``StorageError``.
        """
        self._deps.clear()
        line_count = 0

        try:
            with self.path.open("rb") as f:
                lines = f.readlines()
        except OSError as e:
            raise StorageError("load", "read", str(e)) from e

        # Strip trailing empty lines so we can identify the true last line
        while lines and not lines[-1].strip():
            lines.pop()

        for line_idx, raw_line in enumerate(lines):
            line = raw_line.strip()
            if not line:
                continue

            line_count += 1
            is_last_line = line_idx == len(lines) - 1

            try:
                data = orjson.loads(line)
                if classify_record(data) == "event":
                    continue
                if data.get("op") == "remove":
                    self._deps.pop(data["id"], None)
                else:
                    dep = dict_to_dependency(data)
                    self._deps[dep.id] = dep
            except (orjson.JSONDecodeError, ValueError, KeyError, TypeError) as e:
                if is_last_line:
                    logging.getLogger(__name__).warning(
                        "Skipping malformed last line in %s: %s",
                        self.path,
                        e,
                    )
                    self._needs_compaction = True
                else:
                    msg = f"Invalid JSONL record at line {line_idx + 1}: {e}"
                    raise StorageError("load", "marshal", msg) from e

        self._base_lines = line_count
        self._appended_lines = 0

    @contextmanager
    def _file_lock(self) -> Iterator[None]:
        """Acquire the advisory write lock; re-entrant within this instance."""
        if self._lock_depth == 0:
            try:
                self._lock_fd = self._lock_path.open("w")
                fcntl.flock(self._lock_fd, fcntl.LOCK_EX)
            except OSError as e:
                if self._lock_fd is not None:
                    self._lock_fd.close()
                    self._lock_fd = None
                raise StorageError("lock", "lock", str(e)) from e
        self._lock_depth += 1
        try:
            yield
        finally:
            self._lock_depth -= 1
            if self._lock_depth == 0:
                fcntl.flock(self._lock_fd, fcntl.LOCK_UN)
                self._lock_fd.close()
                self._lock_fd = None

    @contextmanager
    def locked(self) -> Iterator[JSONLDependencyStore]:
        """Hold the write lock and work on freshly reloaded state.

        Writes made inside the block reuse the held lock, so a check followed
        by a write cannot race with another process.
        """
        with self._file_lock():
            self.reload()
            yield self

    def _save(self, *, _reload: bool = True) -> None:
        """Compact: rewrite the entire file with only current state.

        Args:
            _reload: If True (default), reload from disk under the lock
                before writing so that records appended by other processes
                since our last ``_load()`` are not discarded.
        """
        with self._file_lock():
            if _reload and self.path.exists():
                self._load()
            with tempfile.NamedTemporaryFile(
                mode="wb",
                dir=self.depcat_dir,
                delete=False,
                suffix=".jsonl",
            ) as tmp_file:
                tmp_path = Path(tmp_file.name)

                try:
                    line_count = 0
                    for dep in self._deps.values():
                        tmp_file.write(orjson.dumps(dependency_to_dict(dep)))
                        tmp_file.write(b"\n")
                        line_count += 1

                    # Preserve event records from the current file
                    if self.path.exists():
                        with self.path.open("rb") as src:
                            for raw_line in src:
                                raw_line = raw_line.strip()
                                if not raw_line:
                                    continue
                                try:
                                    data = orjson.loads(raw_line)
                                except orjson.JSONDecodeError:
                                    continue  # Dropped by compaction
                                if data.get("record_type") == "event":
                                    tmp_file.write(raw_line)
                                    tmp_file.write(b"\n")
                                    line_count += 1

                    tmp_file.flush()
                    os.fsync(tmp_file.fileno())
                except Exception as e:
                    tmp_path.unlink(missing_ok=True)
                    raise StorageError("compact", "write", str(e)) from e

            try:
                tmp_path.replace(self.path)
            except OSError as e:
                tmp_path.unlink(missing_ok=True)
                raise StorageError("compact", "write", str(e)) from e

            logging.getLogger(__name__).debug(
                "Compacted %s to %d lines",
                self.path,
                line_count,
            )
            self._base_lines = line_count
            self._appended_lines = 0

    def _append(self, operation: str, records: list[dict[str, Any]]) -> None:
        """Append records to the JSONL file without rewriting it.

        Builds the payload in memory first and writes it in a single call
        so that a partial write never leaves a truncated JSON line.

        Args:
            operation: Name of the calling store method, for error reports.
            records: List of dicts to serialize and append as JSONL lines.
        """
        if self._needs_compaction:
            self._save(_reload=False)
            self._needs_compaction = False

        try:
            payload = b"".join(orjson.dumps(r) + b"\n" for r in records)
        except orjson.JSONEncodeError as e:
            raise StorageError(operation, "marshal", str(e)) from e

        with self._file_lock():
            try:
                # A prior truncated write may have left no trailing newline
                if self.path.exists() and self.path.stat().st_size > 0:
                    with self.path.open("rb") as check:
                        check.seek(-1, 2)
                        if check.read(1) != b"\n":
                            payload = b"\n" + payload

                with self.path.open("ab") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as e:
                raise StorageError(operation, "write", str(e)) from e

            self._appended_lines += len(records)

    def _maybe_compact(self) -> None:
        """Compact the file if appended lines exceed the threshold."""
        if (
            self._base_lines >= self._COMPACTION_MIN_BASE
            and self._appended_lines > self._base_lines * self._COMPACTION_RATIO
        ):
            self._save(_reload=False)

    @staticmethod
    def _removal_record(dep_id: str) -> dict[str, Any]:
        return {"record_type": "dependency", "op": "remove", "id": dep_id}

    # -- CRUD --------------------------------------------------------------

    def create(self, dep: Dependency, *, overwrite: bool = False) -> Dependency:
        """Persist a new dependency.

        Args:
            dep: The dependency to save
            overwrite: Replace an existing dependency with the same ID
                instead of raising

        Returns:
            The saved dependency

        Raises:
            ValidationError: If the dependency is invalid
            DuplicateDependencyError: If the ID exists and overwrite is False
            StorageError: If the write fails
        """
        dep.validate()
        with self._file_lock():
            if dep.id in self._deps and not overwrite:
                raise DuplicateDependencyError(dep.id)
            self._append("create", [dependency_to_dict(dep)])
            self._deps[dep.id] = dep
            self._maybe_compact()
        return dep

    def get_by_id(self, dep_id: str) -> Dependency:
        """Get a dependency by ID.

        Raises:
            NotFoundError: If no dependency has this ID
        """
        dep = self._deps.get(dep_id)
        if dep is None:
            raise NotFoundError(dep_id)
        return dep

    def get(self, dep_id: str) -> Dependency | None:
        """Get a dependency by ID, or None."""
        return self._deps.get(dep_id)

    def update(self, dep: Dependency) -> Dependency:
        """Persist changes to an existing dependency.

        Raises:
            ValidationError: If the dependency is invalid
            NotFoundError: If the dependency does not exist
            StorageError: If the write fails
        """
        dep.validate()
        with self._file_lock():
            if dep.id not in self._deps:
                raise NotFoundError(dep.id)
            dep.updated_at = datetime.now().astimezone()
            self._append("update", [dependency_to_dict(dep)])
            self._deps[dep.id] = dep
            self._maybe_compact()
        return dep

    def delete(self, dep_id: str) -> None:
        """Delete a dependency by ID.

        Raises:
            NotFoundError: If the dependency does not exist
            StorageError: If the write fails
        """
        with self._file_lock():
            if dep_id not in self._deps:
                raise NotFoundError(dep_id)
            self._append("delete", [self._removal_record(dep_id)])
            del self._deps[dep_id]
            self._maybe_compact()

    # -- Queries -----------------------------------------------------------

    def list(self, filters: DependencyFilter | None = None) -> list[Dependency]:
        """List dependencies, newest first.

        Args:
            filters: Optional filter; its offset and limit are applied after
                sorting

        Returns:
            Matching dependencies sorted by creation time (newest first),
            ties broken by ID
        """
        filters = filters or DependencyFilter()
        deps = [d for d in self._deps.values() if filters.matches(d)]
        deps.sort(key=lambda d: d.id)
        deps.sort(key=lambda d: d.created_at, reverse=True)

        if filters.offset > 0:
            deps = deps[filters.offset :]
        if filters.limit > 0:
            deps = deps[: filters.limit]
        return deps

    def get_by_issue_id(self, item_id: str) -> list[Dependency]:
        """Get every dependency where *item_id* is the source or target."""
        return [
            d for d in self.list() if item_id in (d.source_id, d.target_id)
        ]

    def get_by_source_id(self, source_id: str) -> list[Dependency]:
        """Get every dependency where *source_id* is the source."""
        return self.list(DependencyFilter(source_id=source_id))

    def get_by_target_id(self, target_id: str) -> list[Dependency]:
        """Get every dependency where *target_id* is the target."""
        return self.list(DependencyFilter(target_id=target_id))

    def get_active_dependencies(self) -> list[Dependency]:
        """Get every active dependency."""
        return self.list(DependencyFilter(status=DependencyStatus.ACTIVE))

    def get_dependency_graph(self) -> DependencyGraph:
        """Build a graph holding every stored dependency."""
        return DependencyGraph.from_dependencies(self.list())

    def get_stats(
        self,
        filters: DependencyFilter | None = None,
        *,
        top_n: int = DEFAULT_TOP_N,
    ) -> DependencyStats:
        """Compute statistics for dependencies matching *filters*.

        Offset and limit are ignored; cycles are counted over the full graph.
        """
        filters = filters or DependencyFilter()
        matching = [d for d in self.list() if filters.matches(d)]
        return compute_stats(
            matching,
            top_n=top_n,
            graph=self.get_dependency_graph(),
        )

    def find_conflicts(self) -> list[Dependency]:
        """Get every active dependency that takes part in a cycle."""
        return find_conflicts(self.get_dependency_graph())

    # -- Bulk operations ---------------------------------------------------

    def bulk_update(self, deps: list[Dependency]) -> None:
        """Persist changes to several dependencies in one write.

        Nothing is written if any dependency is invalid or missing.
        """
        if not deps:
            return
        for dep in deps:
            dep.validate()
        with self._file_lock():
            missing = [d.id for d in deps if d.id not in self._deps]
            if missing:
                raise NotFoundError(missing[0])
            now = datetime.now().astimezone()
            for dep in deps:
                dep.updated_at = now
            self._append("bulk_update", [dependency_to_dict(d) for d in deps])
            for dep in deps:
                self._deps[dep.id] = dep
            self._maybe_compact()

    def delete_by_issue_id(self, item_id: str) -> list[str]:
        """Delete every dependency touching *item_id*.

        Returns:
            IDs of the deleted dependencies, sorted
        """
        with self._file_lock():
            doomed = sorted(d.id for d in self.get_by_issue_id(item_id))
            if doomed:
                self._append(
                    "delete_by_issue_id",
                    [self._removal_record(dep_id) for dep_id in doomed],
                )
                for dep_id in doomed:
                    del self._deps[dep_id]
                self._maybe_compact()
        return doomed

    def reload(self) -> None:
        """Reload state from disk."""
        if self.path.exists():
            self._load()
        else:
            self._deps.clear()

    def compact(self) -> None:
        """Rewrite the storage file with only current state."""
        self._save()

    def total(self) -> int:
        """Count stored dependencies."""
        return len(self._deps)
