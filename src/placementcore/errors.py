"""Error taxonomy shared by the engine, the service layer and the CLI."""

from __future__ import annotations

from typing import Any


class PlacementError(Exception):
    """Base class for all engine errors."""


class NotFound(PlacementError):
    """A referenced student, drive, assessment, attempt or slot is absent."""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} not found: {key!r}")
        self.kind = kind
        self.key = key


class ValidationError(PlacementError):
    """A required field is missing or a record is malformed."""


class InvalidTransition(ValidationError):
    """An application status change would move backwards."""

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move application from {current!r} to {requested!r}")
        self.current = current
        self.requested = requested


class SlotConflict(ValidationError):
    """Another interview slot already occupies the requested time."""


class PermissionDenied(PlacementError):
    """The calling principal may not perform the operation."""


class AlreadyCompleted(PlacementError):
    """The operation was already applied; callers treat this as a no-op."""

    def __init__(self, message: str, *, record: Any = None):
        super().__init__(message)
        self.record = record


class ProviderUnavailable(PlacementError):
    """Every configured AI completion provider failed."""

    def __init__(self, errors: list[str]):
        super().__init__("All completion providers failed")
        self.errors = errors

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"All completion providers failed: {self.errors}"


__all__ = [
    "PlacementError",
    "NotFound",
    "ValidationError",
    "InvalidTransition",
    "SlotConflict",
    "PermissionDenied",
    "AlreadyCompleted",
    "ProviderUnavailable",
]
