"""Data models for depcat dependencies using dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from depcat._version import version as _depcat_version
from depcat.errors import InvalidTransitionError, ValidationError


def _now() -> datetime:
    return datetime.now().astimezone()


class DependencyType(str, Enum):
    """Dependency type enumeration."""

    BLOCKS = "blocks"  # source must complete before target can proceed
    REQUIRES = "requires"  # source cannot complete until target completes


class DependencyStatus(str, Enum):
    """Dependency status enumeration."""

    ACTIVE = "active"
    RESOLVED = "resolved"
    IGNORED = "ignored"


# Allowed status changes; anything else raises InvalidTransitionError
ALLOWED_TRANSITIONS: dict[DependencyStatus, frozenset[DependencyStatus]] = {
    DependencyStatus.ACTIVE: frozenset(
        {DependencyStatus.RESOLVED, DependencyStatus.IGNORED},
    ),
    DependencyStatus.RESOLVED: frozenset({DependencyStatus.ACTIVE}),
    DependencyStatus.IGNORED: frozenset({DependencyStatus.ACTIVE}),
}


def make_dependency_id(
    source_id: str,
    dep_type: DependencyType,
    target_id: str,
) -> str:
    """Build the deterministic ID for a (source, type, target) triple."""
    return f"{source_id}-{dep_type.value}-{target_id}"


def parse_dependency_type(value: Any) -> DependencyType:
    """Coerce a string or enum into a DependencyType.

    Raises:
        ValidationError: If the value is not a known dependency type
    """
    if isinstance(value, DependencyType):
        return value
    try:
        return DependencyType(value)
    except ValueError:
        valid = ", ".join(t.value for t in DependencyType)
        msg = f"Invalid dependency type: {value!r} (expected one of: {valid})"
        raise ValidationError("dep_type", msg) from None


def parse_dependency_status(value: Any) -> DependencyStatus:
    """Coerce a string or enum into a DependencyStatus.

    Raises:
        ValidationError: If the value is not a known status
    """
    if isinstance(value, DependencyStatus):
        return value
    try:
        return DependencyStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in DependencyStatus)
        msg = f"Invalid dependency status: {value!r} (expected one of: {valid})"
        raise ValidationError("status", msg) from None


@dataclass
class Dependency:
    """A directed, typed relationship between two work items."""

    id: str
    source_id: str  # The item that has the dependency
    target_id: str  # The item being depended upon
    dep_type: DependencyType
    created_by: str
    status: DependencyStatus = DependencyStatus.ACTIVE
    description: str | None = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    resolved_at: datetime | None = None
    resolved_by: str | None = None

    @classmethod
    def create(
        cls,
        source_id: str,
        target_id: str,
        dep_type: DependencyType | str,
        description: str | None = None,
        created_by: str = "",
    ) -> Dependency:
        """Create a new, validated, active dependency.

        Args:
            source_id: The item that has the dependency
            target_id: The item being depended upon
            dep_type: ``blocks`` or ``requires``
            description: Optional free-text description
            created_by: Who is creating the dependency

        Returns:
            The new dependency with both timestamps set to now

        Raises:
            ValidationError: If the dependency is a self-loop, has an unknown
                type, or is missing a required field
        """
        parsed_type = parse_dependency_type(dep_type)
        now = _now()
        dep = cls(
            id=make_dependency_id(source_id, parsed_type, target_id),
            source_id=source_id,
            target_id=target_id,
            dep_type=parsed_type,
            created_by=created_by,
            description=description or None,
            created_at=now,
            updated_at=now,
        )
        dep.validate()
        return dep

    def validate(self) -> None:
        """Check every invariant of a dependency.

        Raises:
            ValidationError: Naming the first offending field
        """
        if not self.id:
            raise ValidationError("id", "Dependency ID cannot be empty")
        if not self.source_id:
            raise ValidationError("source_id", "Source issue ID cannot be empty")
        if not self.target_id:
            raise ValidationError("target_id", "Target issue ID cannot be empty")
        if self.source_id == self.target_id:
            raise ValidationError(
                "target_id",
                f"An issue cannot depend on itself: {self.source_id}",
            )
        if not isinstance(self.dep_type, DependencyType):
            msg = f"Invalid dependency type: {self.dep_type!r}"
            raise ValidationError("dep_type", msg)
        if not isinstance(self.status, DependencyStatus):
            msg = f"Invalid dependency status: {self.status!r}"
            raise ValidationError("status", msg)
        if not self.created_by:
            raise ValidationError("created_by", "Created by cannot be empty")

    def _transition(self, new_status: DependencyStatus) -> datetime:
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.status.value, new_status.value)
        now = _now()
        self.status = new_status
        self.updated_at = now
        return now

    def resolve(self, resolved_by: str) -> None:
        """Mark the dependency as resolved."""
        now = self._transition(DependencyStatus.RESOLVED)
        self.resolved_at = now
        self.resolved_by = resolved_by

    def ignore(self, ignored_by: str) -> None:
        """Mark the dependency as ignored."""
        self._transition(DependencyStatus.IGNORED)
        self.resolved_by = ignored_by

    def reactivate(self) -> None:
        """Make a resolved or ignored dependency active again."""
        self._transition(DependencyStatus.ACTIVE)
        self.resolved_at = None
        self.resolved_by = None

    def is_active(self) -> bool:
        """Check if the dependency currently participates in blocking."""
        return self.status == DependencyStatus.ACTIVE

    def is_resolved(self) -> bool:
        """Check if the dependency has been resolved."""
        return self.status == DependencyStatus.RESOLVED

    def is_ignored(self) -> bool:
        """Check if the dependency has been ignored."""
        return self.status == DependencyStatus.IGNORED

    def opposite_type(self) -> DependencyType:
        """Get the dual type (blocks <-> requires)."""
        if self.dep_type == DependencyType.BLOCKS:
            return DependencyType.REQUIRES
        return DependencyType.BLOCKS

    def blocker_and_blocked(self) -> tuple[str, str]:
        """Return ``(blocker, blocked)`` regardless of the edge's type."""
        if self.dep_type == DependencyType.BLOCKS:
            return self.source_id, self.target_id
        return self.target_id, self.source_id

    def __str__(self) -> str:
        return f"{self.source_id} {self.dep_type.value} {self.target_id}"


@dataclass
class DependencyFilter:
    """Filter options for listing dependencies.

    Unset fields do not filter. ``limit`` of 0 means no limit.
    """

    source_id: str | None = None
    target_id: str | None = None
    dep_type: DependencyType | None = None
    status: DependencyStatus | None = None
    created_by: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    limit: int = 0
    offset: int = 0

    def matches(self, dep: Dependency) -> bool:
        """Check whether a dependency passes every set criterion."""
        if self.source_id is not None and dep.source_id != self.source_id:
            return False
        if self.target_id is not None and dep.target_id != self.target_id:
            return False
        if self.dep_type is not None and dep.dep_type != self.dep_type:
            return False
        if self.status is not None and dep.status != self.status:
            return False
        if self.created_by is not None and dep.created_by != self.created_by:
            return False
        if self.date_from is not None and dep.created_at < self.date_from:
            return False
        return not (self.date_to is not None and dep.created_at > self.date_to)


def dependency_to_dict(dep: Dependency) -> dict[str, Any]:
    """Convert a Dependency to a dictionary, serializing datetimes."""
    return {
        "record_type": "dependency",
        "depcat_version": _depcat_version,
        "id": dep.id,
        "source_id": dep.source_id,
        "target_id": dep.target_id,
        "type": dep.dep_type.value,
        "status": dep.status.value,
        "description": dep.description,
        "created_by": dep.created_by,
        "created_at": dep.created_at.isoformat(),
        "updated_at": dep.updated_at.isoformat(),
        "resolved_at": dep.resolved_at.isoformat() if dep.resolved_at else None,
        "resolved_by": dep.resolved_by,
    }


def dict_to_dependency(data: dict[str, Any]) -> Dependency:
    """Convert a dictionary to a Dependency, deserializing datetimes.

    Raises:
        KeyError: If a required key is missing
        ValidationError: If the type or status is unknown
    """
    dep_type = parse_dependency_type(data["type"])
    created_at = datetime.fromisoformat(data["created_at"])
    updated_at = (
        datetime.fromisoformat(data["updated_at"])
        if data.get("updated_at")
        else created_at
    )
    resolved_at = (
        datetime.fromisoformat(data["resolved_at"])
        if data.get("resolved_at")
        else None
    )
    return Dependency(
        id=data.get("id")
        or make_dependency_id(data["source_id"], dep_type, data["target_id"]),
        source_id=data["source_id"],
        target_id=data["target_id"],
        dep_type=dep_type,
        status=parse_dependency_status(
            data.get("status", DependencyStatus.ACTIVE.value),
        ),
        description=data.get("description"),
        created_by=data.get("created_by") or "",
        created_at=created_at,
        updated_at=updated_at,
        resolved_at=resolved_at,
        resolved_by=data.get("resolved_by"),
    )


def classify_record(data: dict[str, Any]) -> str:
    """Classify a JSONL record as 'dependency' or 'event'.

    Checks for an explicit ``record_type`` field first, then falls back to
    field-sniffing.
    """
    explicit = data.get("record_type")
    if explicit in ("dependency", "event"):
        return explicit  # type: ignore[return-value]
    if "event_type" in data:
        return "event"
    return "dependency"
