"""
Content Layer Error Taxonomy

This module defines every exception raised by the content layer.

Design Goals
------------
- One base class so callers can catch the whole family
- Entry-level problems (invalid ids, schema mismatches) are distinct from
  pass-level problems (configuration, persistence) so the orchestrator can
  recover from the former and fail the sync on the latter
- Messages name the collection, entry id and file wherever they are known
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..content_layer import SyncResult
    from ..schema.validator import ValidationIssue


class ContentLayerError(Exception):
    """Base class for all content layer errors."""


# ---------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------

class ContentConfigError(ContentLayerError):
    """Raised when the collection configuration is missing or invalid."""


# ---------------------------------------------------------------------
# Loader / Entry Errors
# ---------------------------------------------------------------------

class LoaderError(ContentLayerError):
    """Raised by or on behalf of a loader; isolated to that loader."""

    def __init__(self, message: str, *, collection: Optional[str] = None) -> None:
        super().__init__(message)
        self.collection = collection


class InvalidEntryIdError(ContentLayerError, ValueError):
    """Raised when a loader produces an entry without a usable id."""

    def __init__(self, entry_id: Any, *, collection: Optional[str] = None) -> None:
        shown = repr(entry_id) if not isinstance(entry_id, str) else f'"{entry_id}"'
        message = (
            f"Collection loader returned an entry with an invalid `id`: {shown}. "
            "IDs must be non-empty strings."
        )
        if collection:
            message = f"[{collection}] {message}"
        super().__init__(message)
        self.entry_id = entry_id
        self.collection = collection


class DataValidationError(ContentLayerError):
    """
    Raised when entry data does not satisfy the collection schema.

    All field-level issues are aggregated; ``issues`` keeps them itemized
    so callers can render or inspect them.
    """

    def __init__(
        self,
        issues: List["ValidationIssue"],
        *,
        entry_id: Optional[str] = None,
        collection: Optional[str] = None,
        file_path: Optional[str] = None,
    ) -> None:
        self.issues = list(issues)
        self.entry_id = entry_id
        self.collection = collection
        self.file_path = file_path
        super().__init__(self._format())

    def _format(self) -> str:
        subject = " → ".join(p for p in (self.collection, self.entry_id) if p)
        header = f"**{subject}** data does not match collection schema." if subject else (
            "data does not match collection schema."
        )
        if self.file_path:
            header = f"{header} ({self.file_path})"
        lines = [header]
        lines.extend(f"  {issue}" for issue in self.issues)
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection": self.collection,
            "id": self.entry_id,
            "file_path": self.file_path,
            "issues": [issue.to_dict() for issue in self.issues],
        }


class FrontmatterError(ContentLayerError, ValueError):
    """Raised when a frontmatter block cannot be parsed into a mapping."""


# ---------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------

class DataStoreError(ContentLayerError):
    """Raised when a persisted data store document cannot be read."""


class DataStorePersistenceError(DataStoreError):
    """Raised when the data store document cannot be written."""


# ---------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------

class SyncFailedError(ContentLayerError):
    """Raised by ``SyncResult.raise_for_status()`` for a failed pass."""

    def __init__(self, result: "SyncResult") -> None:
        self.result = result
        failed = ", ".join(sorted(result.errors)) or "unknown"
        super().__init__(f"Content sync failed ({failed})")


class ContentLayerClosedError(ContentLayerError):
    """Raised when ``sync()`` is called after ``shutdown()``."""
