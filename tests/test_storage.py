"""Tests for the JSONL edge store."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import orjson
import pytest
from conftest import make_dep

from depcat.constants import STORAGE_FILENAME
from depcat.errors import DuplicateDependencyError, NotFoundError, StorageError
from depcat.event_log import EventLog, EventRecord
from depcat.models import (
    DependencyFilter,
    DependencyStatus,
    DependencyType,
    dependency_to_dict,
)
from depcat.storage import JSONLDependencyStore


def _lines(store: JSONLDependencyStore) -> list[dict]:
    return [orjson.loads(line) for line in store.path.read_bytes().splitlines()]


class TestStorageInitialization:
    """Test store initialization."""

    def test_fails_without_directory(self, tmp_path: Path) -> None:
        """A missing directory is a read error pointing at init."""
        path = tmp_path / ".depcat" / STORAGE_FILENAME
        with pytest.raises(StorageError, match="depcat init") as exc_info:
            JSONLDependencyStore(str(path))
        assert exc_info.value.operation == "init"
        assert exc_info.value.kind == "read"

    def test_creates_directory_with_flag(self, tmp_path: Path) -> None:
        """create_dir=True makes the directory."""
        path = tmp_path / ".depcat" / STORAGE_FILENAME
        JSONLDependencyStore(str(path), create_dir=True)
        assert path.parent.is_dir()

    def test_empty_store(self, store: JSONLDependencyStore) -> None:
        """A fresh store has no file and no dependencies."""
        assert not store.path.exists()
        assert store.list() == []
        assert store.total() == 0


class TestCRUD:
    """Test create/get/update/delete."""

    def test_create_persists(self, store: JSONLDependencyStore) -> None:
        """Created dependencies survive a reload."""
        dep = store.create(make_dep("A", "B"))

        reloaded = JSONLDependencyStore(str(store.path))
        assert reloaded.get_by_id(dep.id) == dep
        assert _lines(store)[0]["record_type"] == "dependency"

    def test_create_duplicate_rejected(self, store: JSONLDependencyStore) -> None:
        """The same triple cannot be stored twice by default."""
        store.create(make_dep("A", "B"))
        with pytest.raises(DuplicateDependencyError):
            store.create(make_dep("A", "B"))
        assert store.total() == 1

    def test_create_overwrite(self, store: JSONLDependencyStore) -> None:
        """overwrite=True replaces the stored edge."""
        store.create(make_dep("A", "B"))
        replacement = make_dep("A", "B", created_by="other@example.com")
        store.create(replacement, overwrite=True)

        reloaded = JSONLDependencyStore(str(store.path))
        assert reloaded.total() == 1
        assert reloaded.get_by_id("A-blocks-B").created_by == "other@example.com"

    def test_get_missing(self, store: JSONLDependencyStore) -> None:
        """Missing IDs raise NotFoundError from get_by_id, None from get."""
        with pytest.raises(NotFoundError) as exc_info:
            store.get_by_id("nope")
        assert exc_info.value.dep_id == "nope"
        assert isinstance(exc_info.value, LookupError)
        assert store.get("nope") is None

    def test_update(self, store: JSONLDependencyStore) -> None:
        """Updates persist and bump updated_at."""
        dep = store.create(make_dep("A", "B"))
        created = dep.updated_at
        dep.resolve("closer")
        store.update(dep)

        reloaded = JSONLDependencyStore(str(store.path)).get_by_id(dep.id)
        assert reloaded.status == DependencyStatus.RESOLVED
        assert reloaded.resolved_by == "closer"
        assert reloaded.updated_at >= created

    def test_update_missing(self, store: JSONLDependencyStore) -> None:
        """Updating an unknown dependency fails without writing."""
        with pytest.raises(NotFoundError):
            store.update(make_dep("A", "B"))
        assert not store.path.exists()

    def test_delete(self, store: JSONLDependencyStore) -> None:
        """Deletes append a removal marker replayed on load."""
        dep = store.create(make_dep("A", "B"))
        store.delete(dep.id)

        assert store.get(dep.id) is None
        assert _lines(store)[-1] == {
            "record_type": "dependency",
            "op": "remove",
            "id": dep.id,
        }
        assert JSONLDependencyStore(str(store.path)).total() == 0

    def test_delete_missing(self, store: JSONLDependencyStore) -> None:
        """Deleting an unknown dependency raises NotFoundError."""
        with pytest.raises(NotFoundError):
            store.delete("nope")


class TestList:
    """Test listing and filtering."""

    @pytest.fixture
    def populated(self, store: JSONLDependencyStore) -> JSONLDependencyStore:
        """Three edges created a day apart, plus one tie."""
        base = datetime(2026, 3, 1, tzinfo=timezone.utc)
        for offset, (source, target) in enumerate(
            [("A", "B"), ("B", "C"), ("C", "D")],
        ):
            dep = make_dep(source, target)
            dep.created_at = base + timedelta(days=offset)
            store.create(dep)
        tie = make_dep("A", "D", "requires", created_by="other@example.com")
        tie.created_at = base + timedelta(days=2)
        store.create(tie)
        return store

    def test_newest_first_ties_by_id(self, populated: JSONLDependencyStore) -> None:
        """Sort by creation time descending, then ID ascending."""
        assert [d.id for d in populated.list()] == [
            "A-requires-D",
            "C-blocks-D",
            "B-blocks-C",
            "A-blocks-B",
        ]

    def test_limit_and_offset(self, populated: JSONLDependencyStore) -> None:
        """Offset is applied before limit."""
        page = populated.list(DependencyFilter(offset=1, limit=2))
        assert [d.id for d in page] == ["C-blocks-D", "B-blocks-C"]
        assert populated.list(DependencyFilter(offset=10)) == []

    def test_filters(self, populated: JSONLDependencyStore) -> None:
        """Field filters and the date range narrow the list."""
        by_type = populated.list(DependencyFilter(dep_type=DependencyType.REQUIRES))
        assert [d.id for d in by_type] == ["A-requires-D"]

        by_creator = populated.list(DependencyFilter(created_by="tester@example.com"))
        assert len(by_creator) == 3

        dated = populated.list(
            DependencyFilter(
                date_from=datetime(2026, 3, 2, tzinfo=timezone.utc),
                date_to=datetime(2026, 3, 2, 12, tzinfo=timezone.utc),
            ),
        )
        assert [d.id for d in dated] == ["B-blocks-C"]

    def test_item_lookups(self, populated: JSONLDependencyStore) -> None:
        """Per-item helpers return edges touching the item."""
        assert {d.id for d in populated.get_by_issue_id("D")} == {
            "A-requires-D",
            "C-blocks-D",
        }
        assert [d.id for d in populated.get_by_source_id("B")] == ["B-blocks-C"]
        assert [d.id for d in populated.get_by_target_id("B")] == ["A-blocks-B"]

    def test_active_only(self, populated: JSONLDependencyStore) -> None:
        """Resolved edges are excluded from the active list."""
        dep = populated.get_by_id("A-blocks-B")
        dep.resolve("closer")
        populated.update(dep)
        active = populated.get_active_dependencies()
        assert "A-blocks-B" not in {d.id for d in active}
        assert len(active) == 3


class TestAggregates:
    """Test graph, stats, conflicts and bulk operations."""

    def test_dependency_graph(self, store: JSONLDependencyStore) -> None:
        """The graph holds every stored edge, active or not."""
        store.create(make_dep("A", "B"))
        resolved = store.create(make_dep("B", "C"))
        resolved.resolve("closer")
        store.update(resolved)

        graph = store.get_dependency_graph()
        assert len(graph) == 2
        assert graph.get_blocked_issues("B") == []

    def test_stats_with_filter(self, store: JSONLDependencyStore) -> None:
        """Stats only count matching edges."""
        store.create(make_dep("A", "B"))
        store.create(make_dep("B", "C", "requires"))
        stats = store.get_stats(DependencyFilter(dep_type=DependencyType.BLOCKS))

        assert stats.total_dependencies == 1
        assert stats.dependencies_by_type == {"blocks": 1}

    def test_find_conflicts(self, store: JSONLDependencyStore) -> None:
        """Edges on a cycle stored directly are reported."""
        store.create(make_dep("A", "B"))
        store.create(make_dep("B", "A"))
        store.create(make_dep("B", "C"))
        assert [d.id for d in store.find_conflicts()] == ["A-blocks-B", "B-blocks-A"]

    def test_bulk_update(self, store: JSONLDependencyStore) -> None:
        """Several edges are written in one append."""
        deps = [store.create(make_dep("A", "B")), store.create(make_dep("A", "C"))]
        for dep in deps:
            dep.resolve("closer")
        store.bulk_update(deps)

        reloaded = JSONLDependencyStore(str(store.path))
        assert all(d.is_resolved() for d in reloaded.list())
        assert len(_lines(store)) == 4

    def test_bulk_update_all_or_nothing(self, store: JSONLDependencyStore) -> None:
        """A missing edge aborts the whole batch."""
        existing = store.create(make_dep("A", "B"))
        existing.resolve("closer")
        with pytest.raises(NotFoundError):
            store.bulk_update([existing, make_dep("X", "Y")])

        reloaded = JSONLDependencyStore(str(store.path))
        assert reloaded.get_by_id("A-blocks-B").is_active()
        assert len(_lines(store)) == 1

    def test_delete_by_issue_id(self, store: JSONLDependencyStore) -> None:
        """Every edge touching the item is removed."""
        store.create(make_dep("B", "C"))
        store.create(make_dep("A", "B"))
        store.create(make_dep("C", "D"))

        assert store.delete_by_issue_id("B") == ["A-blocks-B", "B-blocks-C"]
        assert store.delete_by_issue_id("B") == []
        reloaded = JSONLDependencyStore(str(store.path))
        assert [d.id for d in reloaded.list()] == ["C-blocks-D"]


class TestIntegrity:
    """Test loading damaged files and compaction."""

    def test_malformed_last_line_tolerated(
        self,
        store: JSONLDependencyStore,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A truncated trailing record is skipped and compacted away."""
        record = orjson.dumps(dependency_to_dict(make_dep("A", "B")))
        store.path.write_bytes(record + b"\n" + b'{"source_id": "tru')

        with caplog.at_level("WARNING", logger="depcat.storage"):
            damaged = JSONLDependencyStore(str(store.path))
        assert damaged.total() == 1
        assert "malformed last line" in caplog.text

        damaged.create(make_dep("B", "C"))
        assert [line["id"] for line in _lines(damaged)] == [
            "A-blocks-B",
            "B-blocks-C",
        ]

    def test_malformed_middle_line_fails(self, store: JSONLDependencyStore) -> None:
        """Corruption before the last line is a marshal error."""
        record = orjson.dumps(dependency_to_dict(make_dep("A", "B")))
        store.path.write_bytes(b"not json\n" + record + b"\n")

        with pytest.raises(StorageError) as exc_info:
            JSONLDependencyStore(str(store.path))
        assert exc_info.value.operation == "load"
        assert exc_info.value.kind == "marshal"
        assert "line 1" in str(exc_info.value)

    def test_unknown_type_is_marshal_error(self, store: JSONLDependencyStore) -> None:
        """Records that fail validation cannot be loaded."""
        data = dependency_to_dict(make_dep("A", "B"))
        data["type"] = "relates"
        good = orjson.dumps(dependency_to_dict(make_dep("B", "C")))
        store.path.write_bytes(orjson.dumps(data) + b"\n" + good + b"\n")

        with pytest.raises(StorageError, match="marshal"):
            JSONLDependencyStore(str(store.path))

    def test_last_write_wins(self, store: JSONLDependencyStore) -> None:
        """Later snapshots of the same ID replace earlier ones."""
        dep = make_dep("A", "B")
        first = dependency_to_dict(dep)
        dep.resolve("closer")
        second = dependency_to_dict(dep)
        store.path.write_bytes(orjson.dumps(first) + b"\n" + orjson.dumps(second))

        assert JSONLDependencyStore(str(store.path)).get_by_id(dep.id).is_resolved()

    def test_compact_keeps_events(
        self,
        store: JSONLDependencyStore,
        event_log: EventLog,
    ) -> None:
        """Compaction collapses snapshots but keeps history."""
        dep = store.create(make_dep("A", "B"))
        dep.resolve("closer")
        store.update(dep)
        event_log.append(
            EventRecord(
                event_type="resolved",
                dependency_id=dep.id,
                source_id="A",
                target_id="B",
                timestamp="2026-03-01T10:00:00+00:00",
            ),
        )

        store.compact()

        kinds = [line["record_type"] for line in _lines(store)]
        assert kinds == ["dependency", "event"]
        assert JSONLDependencyStore(str(store.path)).get_by_id(dep.id).is_resolved()
        assert len(event_log.read()) == 1

    def test_auto_compaction(self, store: JSONLDependencyStore) -> None:
        """Appends beyond half the base size trigger a rewrite."""
        for i in range(20):
            store.create(make_dep("hub", f"leaf{i:02d}"))

        reopened = JSONLDependencyStore(str(store.path))
        for dep in reopened.list()[:11]:
            dep.ignore("someone")
            reopened.update(dep)

        assert len(_lines(reopened)) == 20


class TestLocking:
    """Test cross-instance consistency."""

    def test_locked_reloads(self, store: JSONLDependencyStore) -> None:
        """Writes from another instance are visible inside locked()."""
        other = JSONLDependencyStore(str(store.path))
        other.create(make_dep("A", "B"))

        assert store.get("A-blocks-B") is None
        with store.locked() as fresh:
            assert fresh.get("A-blocks-B") is not None

    def test_lock_is_reentrant(self, store: JSONLDependencyStore) -> None:
        """Store writes inside locked() reuse the held lock."""
        with store.locked():
            store.create(make_dep("A", "B"))
            store.delete("A-blocks-B")
        assert store.total() == 0
