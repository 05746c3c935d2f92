"""
File-watch registration.

Loaders announce the paths they read so a dev-server (out of scope here)
can trigger a re-sync when they change. The engine never watches files
itself.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Protocol, Union, runtime_checkable

logger = logging.getLogger("content_layer.watcher")


@runtime_checkable
class FileWatcher(Protocol):
    def add(self, path: Union[Path, str]) -> None: ...


class WatchRegistry:
    """FileWatcher that records registered paths, without duplicates."""

    def __init__(self) -> None:
        self._paths: List[Path] = []

    def add(self, path: Union[Path, str]) -> None:
        resolved = Path(path).resolve()
        if resolved not in self._paths:
            self._paths.append(resolved)
            logger.debug("Watching %s", resolved)

    @property
    def paths(self) -> List[Path]:
        return list(self._paths)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        return Path(path).resolve() in self._paths

    def __len__(self) -> int:
        return len(self._paths)
