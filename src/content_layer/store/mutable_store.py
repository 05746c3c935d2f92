"""
Mutable Data Store

In-memory content storage keyed by (collection, entry id), plus metadata.

This module provides the store that loaders write into during a sync pass
and that the orchestrator persists once the pass completes.

Design choices
--------------
- Insertion-ordered per-collection dictionaries (last writer wins).
- Copy-on-read for sequences (``values``/``keys``/``entries`` are snapshots).
- Persistence is explicit: nothing is written unless ``write_to_disk`` is
  called.
- No internal locking. The orchestrator runs one loader at a time, which is
  what keeps writes race-free.
- Loaders only ever see a ``ScopedDataStore`` bound to their collection.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from ..core.errors import DataStoreError, InvalidEntryIdError
from .document import (
    DOCUMENT_VERSION,
    check_document,
    decode_value,
    encode_value,
    read_document,
    write_document,
)
from .models import DataEntry

logger = logging.getLogger("content_layer.store")

EntryLike = Union[DataEntry, Mapping[str, Any]]


def _coerce_entry(entry: EntryLike, *, collection: Optional[str] = None) -> DataEntry:
    if isinstance(entry, DataEntry):
        return entry
    entry_id = entry.get("id")
    if not isinstance(entry_id, str) or not entry_id:
        raise InvalidEntryIdError(entry_id, collection=collection)
    return DataEntry.model_validate(dict(entry))


# ---------------------------------------------------------------------
# Meta Store
# ---------------------------------------------------------------------

class MetaStore:
    """Flat string-to-string mapping for sync bookkeeping."""

    def __init__(self, values: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = values if values is not None else {}

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Meta store values must be strings, got {type(value).__name__}")
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def has(self, key: str) -> bool:
        return key in self._values

    def entries(self) -> List[Tuple[str, str]]:
        return list(self._values.items())

    def __len__(self) -> int:
        return len(self._values)


# ---------------------------------------------------------------------
# Mutable Data Store
# ---------------------------------------------------------------------

class MutableDataStore:
    """
    In-memory store mapping collection names to ordered entry maps.

    Instances are cheap; tests create their own, while the orchestrator
    loads one from the persisted document with ``from_file``.
    """

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, DataEntry]] = {}
        self._meta: Dict[str, str] = {}
        self._collection_meta: Dict[str, Dict[str, str]] = {}

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def get(self, collection: str, entry_id: str) -> Optional[DataEntry]:
        return self._collections.get(collection, {}).get(entry_id)

    def set(self, collection: str, entry_id: str, entry: EntryLike) -> bool:
        """
        Insert or overwrite an entry.

        Returns
        -------
        bool
            True if an entry with this id already existed.
        """
        if not isinstance(entry_id, str) or not entry_id:
            raise InvalidEntryIdError(entry_id, collection=collection)
        record = _coerce_entry(entry, collection=collection)
        entries = self._collections.setdefault(collection, {})
        existed = entry_id in entries
        entries[entry_id] = record
        return existed

    def delete(self, collection: str, entry_id: str) -> None:
        entries = self._collections.get(collection)
        if entries is not None:
            entries.pop(entry_id, None)

    def has(self, collection: str, entry_id: str) -> bool:
        return entry_id in self._collections.get(collection, {})

    def values(self, collection: str) -> List[DataEntry]:
        """Return a snapshot of a collection's entries in insertion order."""
        return list(self._collections.get(collection, {}).values())

    def keys(self, collection: str) -> List[str]:
        return list(self._collections.get(collection, {}).keys())

    def entries(self, collection: str) -> List[Tuple[str, DataEntry]]:
        return list(self._collections.get(collection, {}).items())

    def collections(self) -> List[str]:
        return list(self._collections.keys())

    # ------------------------------------------------------------------
    # Clearing
    # ------------------------------------------------------------------

    def clear(self, collection: str) -> None:
        """Remove every entry of one collection, and its collection meta."""
        self._collections.pop(collection, None)
        self._collection_meta.pop(collection, None)

    def clear_all(self) -> None:
        """Remove every collection and all metadata."""
        self._collections.clear()
        self._meta.clear()
        self._collection_meta.clear()

    # ------------------------------------------------------------------
    # Handles
    # ------------------------------------------------------------------

    def scoped_store(self, collection: str) -> "ScopedDataStore":
        return ScopedDataStore(self, collection)

    def meta_store(self, collection: Optional[str] = None) -> MetaStore:
        """
        Return the global meta store, or a collection's private one.

        The returned handle is live: writes go straight into this store.
        """
        if collection is None:
            return MetaStore(self._meta)
        return MetaStore(self._collection_meta.setdefault(collection, {}))

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_document(self) -> Dict[str, Any]:
        return {
            "version": DOCUMENT_VERSION,
            "collections": {
                name: {
                    entry_id: encode_value(entry.model_dump(mode="python", exclude_none=True))
                    for entry_id, entry in entries.items()
                }
                for name, entries in self._collections.items()
            },
            "meta": dict(self._meta),
            "collection_meta": {
                name: dict(values)
                for name, values in self._collection_meta.items()
                if values
            },
        }

    def to_json(self) -> str:
        import json

        return json.dumps(self.to_document(), ensure_ascii=False, indent=1)

    @classmethod
    def from_document(cls, doc: Any) -> "MutableDataStore":
        """Rebuild a store from a document; raises ``DataStoreError`` if invalid."""
        doc = check_document(doc)
        store = cls()
        try:
            for name, entries in doc.get("collections", {}).items():
                for entry_id, raw in entries.items():
                    store.set(name, entry_id, DataEntry.model_validate(decode_value(raw)))
        except (ValidationError, InvalidEntryIdError, ValueError) as exc:
            raise DataStoreError(f"Invalid entry in data store document: {exc}") from exc

        for key, value in doc.get("meta", {}).items():
            store._meta[str(key)] = str(value)
        for name, values in doc.get("collection_meta", {}).items():
            if isinstance(values, dict):
                store._collection_meta[name] = {str(k): str(v) for k, v in values.items()}
        return store

    @classmethod
    def from_json(cls, text: str) -> "MutableDataStore":
        import json

        try:
            doc = json.loads(text)
        except ValueError as exc:
            raise DataStoreError(f"Data store is not valid JSON: {exc}") from exc
        return cls.from_document(doc)

    @classmethod
    def from_file(cls, path: Union[Path, str]) -> "MutableDataStore":
        """
        Load a store from disk.

        A missing file yields an empty store. A file that exists but is
        not a valid document raises ``DataStoreError``.
        """
        path = Path(path)
        doc = read_document(path)
        if doc is None:
            logger.debug("No data store at %s, starting empty", path)
            return cls()
        store = cls.from_document(doc)
        logger.debug(
            "Loaded data store from %s (%d collections)", path, len(store._collections)
        )
        return store

    def write_to_disk(self, path: Union[Path, str]) -> None:
        """Atomically persist the store to ``path``."""
        write_document(Path(path), self.to_document())

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._collections.values())


# ---------------------------------------------------------------------
# Scoped Store
# ---------------------------------------------------------------------

class ScopedDataStore:
    """
    A store handle bound to a single collection.

    This is the only store interface loaders receive, so they cannot
    address other collections.
    """

    def __init__(self, store: MutableDataStore, collection: str) -> None:
        self._store = store
        self._collection = collection

    @property
    def collection(self) -> str:
        return self._collection

    def get(self, entry_id: str) -> Optional[DataEntry]:
        return self._store.get(self._collection, entry_id)

    def set(self, entry: EntryLike) -> bool:
        """
        Insert or overwrite ``entry`` under its own id.

        When the existing entry carries the same digest the write is
        skipped, since both are value-equal.

        Returns
        -------
        bool
            True if an entry with this id already existed.
        """
        record = _coerce_entry(entry, collection=self._collection)
        existing = self.get(record.id)
        if existing is not None and record.digest and existing.digest == record.digest:
            return True
        return self._store.set(self._collection, record.id, record)

    def delete(self, entry_id: str) -> None:
        self._store.delete(self._collection, entry_id)

    def clear(self) -> None:
        self._store.clear(self._collection)

    def has(self, entry_id: str) -> bool:
        return self._store.has(self._collection, entry_id)

    def keys(self) -> List[str]:
        return self._store.keys(self._collection)

    def values(self) -> List[DataEntry]:
        return self._store.values(self._collection)

    def entries(self) -> List[Tuple[str, DataEntry]]:
        return self._store.entries(self._collection)

    def __iter__(self) -> Iterator[DataEntry]:
        return iter(self.values())

    def __len__(self) -> int:
        return len(self._store.keys(self._collection))
