"""
Content digests used for cache invalidation.

Digests are opaque: the only operation callers may rely on is equality.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date, datetime
from pathlib import PurePath
from typing import Any

_DIGEST_LENGTH = 16


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, PurePath):
        return value.as_posix()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if callable(value):
        module = getattr(value, "__module__", "")
        name = getattr(value, "__qualname__", type(value).__qualname__)
        return f"{module}.{name}"
    raise TypeError(f"Cannot digest value of type {type(value).__name__}")


def generate_digest(value: Any) -> str:
    """
    Return a stable hex digest for ``value``.

    Strings and bytes are hashed directly; anything else is serialized to
    canonical JSON (sorted keys) first.
    """
    if isinstance(value, bytes):
        payload = value
    elif isinstance(value, str):
        payload = value.encode("utf-8", errors="replace")
    else:
        payload = json.dumps(
            value, sort_keys=True, default=_json_default, separators=(",", ":")
        ).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()[:_DIGEST_LENGTH]
