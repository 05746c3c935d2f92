"""
Persisted Data Store Document

This module converts between in-memory store contents and the JSON document
written to disk.

Key Properties
--------------
- Human-inspectable JSON with collections and metadata as separate sections
- Entry and collection order preserved (JSON objects keep insertion order)
- Date values survive the round trip through ``$datetime`` / ``$date`` tags;
  user mappings that look like a tag are wrapped in ``$object``
- Crash-safe persistence: serialize fully, write a sibling temp file, then
  atomically replace the previous document
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict

from ..core.errors import DataStoreError, DataStorePersistenceError

logger = logging.getLogger("content_layer.store")

DOCUMENT_VERSION = 1

_DATETIME_TAG = "$datetime"
_DATE_TAG = "$date"
# Wraps user mappings whose only key is a tag so they are not decoded as one
_OBJECT_TAG = "$object"
_TAGS = (_DATETIME_TAG, _DATE_TAG, _OBJECT_TAG)


# ---------------------------------------------------------------------
# Value Encoding
# ---------------------------------------------------------------------

def encode_value(value: Any) -> Any:
    """Convert entry data into JSON-compatible values."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, datetime):
        return {_DATETIME_TAG: value.isoformat()}
    if isinstance(value, date):
        return {_DATE_TAG: value.isoformat()}
    if isinstance(value, dict):
        encoded = {str(k): encode_value(v) for k, v in value.items()}
        if len(encoded) == 1 and next(iter(encoded)) in _TAGS:
            return {_OBJECT_TAG: encoded}
        return encoded
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    raise DataStorePersistenceError(
        f"Cannot serialize value of type {type(value).__name__} in data store"
    )


def decode_value(value: Any) -> Any:
    """Inverse of ``encode_value``."""
    if isinstance(value, dict):
        if len(value) == 1:
            if _DATETIME_TAG in value and isinstance(value[_DATETIME_TAG], str):
                return datetime.fromisoformat(value[_DATETIME_TAG])
            if _DATE_TAG in value and isinstance(value[_DATE_TAG], str):
                return date.fromisoformat(value[_DATE_TAG])
            if _OBJECT_TAG in value and isinstance(value[_OBJECT_TAG], dict):
                return {k: decode_value(v) for k, v in value[_OBJECT_TAG].items()}
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value


# ---------------------------------------------------------------------
# Document Validation
# ---------------------------------------------------------------------

def check_document(doc: Any) -> Dict[str, Any]:
    """
    Validate the top-level shape of a document.

    Unknown top-level keys are ignored so documents written by newer
    versions can still be read.
    """
    if not isinstance(doc, dict):
        raise DataStoreError("Data store document must be a JSON object")

    version = doc.get("version", DOCUMENT_VERSION)
    if not isinstance(version, int):
        raise DataStoreError(f"Invalid data store document version: {version!r}")
    if version > DOCUMENT_VERSION:
        logger.warning(
            "Data store document version %d is newer than supported version %d",
            version,
            DOCUMENT_VERSION,
        )

    collections = doc.get("collections", {})
    if not isinstance(collections, dict) or not all(
        isinstance(entries, dict) for entries in collections.values()
    ):
        raise DataStoreError("Data store 'collections' must map names to entry objects")

    for section in ("meta", "collection_meta"):
        if not isinstance(doc.get(section, {}), dict):
            raise DataStoreError(f"Data store '{section}' must be a JSON object")

    return doc


# ---------------------------------------------------------------------
# File I/O
# ---------------------------------------------------------------------

def read_document(path: Path) -> Dict[str, Any] | None:
    """
    Read a document from disk.

    Returns None when the file does not exist; raises ``DataStoreError``
    when it exists but is not a valid document.
    """
    if not path.exists():
        return None

    try:
        with path.open("r", encoding="utf-8") as f:
            doc = json.load(f)
    except (OSError, ValueError) as exc:
        raise DataStoreError(
            f"Failed to read data store {path}: {type(exc).__name__}: {exc}"
        ) from exc

    return check_document(doc)


def write_document(path: Path, doc: Dict[str, Any]) -> None:
    """
    Atomically write ``doc`` to ``path``.

    The document is serialized before the filesystem is touched; on any
    failure the previous file at ``path`` is left unchanged.
    """
    try:
        payload = json.dumps(doc, ensure_ascii=False, indent=1)
    except (TypeError, ValueError) as exc:
        raise DataStorePersistenceError(
            f"Failed to serialize data store: {type(exc).__name__}: {exc}"
        ) from exc

    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as exc:
        raise DataStorePersistenceError(
            f"Failed to write data store {path}: {type(exc).__name__}: {exc}"
        ) from exc
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                logger.debug("Could not remove temporary file %s", tmp_name)

    logger.debug("Wrote data store to %s (%d bytes)", path, len(payload))
