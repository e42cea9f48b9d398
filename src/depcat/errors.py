"""Exception types raised by depcat."""

from __future__ import annotations


class DepcatError(Exception):
    """Base class for all depcat errors."""


class ValidationError(DepcatError, ValueError):
    """A dependency failed validation.

    ``field`` names the offending attribute (e.g. ``"source_id"``).
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class InvalidTransitionError(ValidationError):
    """A status change is not allowed from the current status."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            "status",
            f"Cannot change dependency status from {current} to {requested}",
        )
        self.current = current
        self.requested = requested


class DuplicateDependencyError(DepcatError, ValueError):
    """A dependency with the same (source, type, target) already exists."""

    def __init__(self, dep_id: str) -> None:
        super().__init__(f"Dependency already exists: {dep_id}")
        self.dep_id = dep_id


class CircularDependencyError(DepcatError, ValueError):
    """Adding a dependency would close a cycle."""

    def __init__(self, source_id: str, target_id: str) -> None:
        super().__init__(
            f"Adding {source_id} -> {target_id} would create a circular dependency",
        )
        self.source_id = source_id
        self.target_id = target_id


class NotFoundError(DepcatError, LookupError):
    """No dependency exists with the requested ID."""

    def __init__(self, dep_id: str) -> None:
        super().__init__(f"Dependency not found: {dep_id}")
        self.dep_id = dep_id


class StorageError(DepcatError, RuntimeError):
    """The edge store failed to read, write or (de)serialize records.

    ``operation`` is the store method that failed and ``kind`` a coarse tag:
    ``"read"``, ``"write"``, ``"marshal"`` or ``"lock"``.
    """

    def __init__(self, operation: str, kind: str, message: str) -> None:
        super().__init__(f"{operation} failed ({kind}): {message}")
        self.operation = operation
        self.kind = kind
