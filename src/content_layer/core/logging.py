"""
Logging helpers.

The library only creates named loggers; handlers are configured by the
application (or by ``configure_logging`` in scripts).
"""

from __future__ import annotations

import logging
from typing import Any, MutableMapping, Tuple, Union

LOGGER_NAMESPACE = "content_layer"


class LoaderLogger(logging.LoggerAdapter):
    """Logger adapter that prefixes every message with the loader label."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['label']}] {msg}", kwargs

    @property
    def label(self) -> str:
        return self.extra["label"]


def get_loader_logger(label: str) -> LoaderLogger:
    """Return a logger scoped to a single loader."""
    return LoaderLogger(logging.getLogger(f"{LOGGER_NAMESPACE}.loaders"), {"label": label})


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """Install a basic stderr handler for command-line use."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
