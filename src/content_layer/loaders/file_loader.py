"""
File Loader

Loads many entries from one data file: JSON, YAML or TOML by extension,
or any format through a caller-supplied ``parser(text)``.
"""

from __future__ import annotations

import inspect
import json
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Union

import aiofiles
import yaml

from ..core.errors import LoaderError
from .base import iter_records, store_records

if TYPE_CHECKING:
    from .context import LoaderContext

Parser = Callable[[str], Union[Any, Awaitable[Any]]]

_GLOB_CHARS = set("*?[]{}")

_PARSERS: Dict[str, Parser] = {
    ".json": json.loads,
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".toml": tomllib.loads,
}


class FileLoader:
    name = "file-loader"

    def __init__(self, path: Union[str, Path], *, parser: Optional[Parser] = None) -> None:
        path_str = str(path)
        if any(ch in _GLOB_CHARS for ch in path_str):
            raise ValueError(
                f'Glob patterns are not supported in the file loader ("{path_str}"). '
                "Use the glob loader instead."
            )
        self.path = Path(path)
        if parser is None:
            parser = _PARSERS.get(self.path.suffix.lower())
            if parser is None:
                raise ValueError(
                    f'No parser found for file "{path_str}". '
                    "Pass a custom parser for this file type."
                )
        self.parser = parser

    def __repr__(self) -> str:
        return f"FileLoader({self.path.as_posix()!r})"

    def describe(self) -> Dict[str, Any]:
        return {"path": self.path.as_posix(), "parser": self.parser}

    async def _parse(self, text: str) -> Any:
        result = self.parser(text)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def load(self, context: "LoaderContext") -> None:
        path = context.config.resolve(self.path)
        file_path = context.config.relative(path)

        if context.watcher is not None:
            context.watcher.add(path)

        if not path.is_file():
            context.logger.warning(f"File not found: {file_path}. No entries will be loaded.")
            return

        async with aiofiles.open(path, "r", encoding="utf-8") as fh:
            text = await fh.read()

        try:
            parsed = await self._parse(text)
        except (ValueError, yaml.YAMLError) as exc:
            raise LoaderError(
                f"Could not parse {file_path}: {exc}", collection=context.collection
            ) from exc

        if parsed is None:
            context.logger.warning(f"No data found in {file_path}")
            parsed = []

        pairs = iter_records(parsed, collection=context.collection)
        context.store.clear()
        count = store_records(context, pairs, file_path=file_path)
        context.logger.info(f"Loaded {count} entries from {file_path}")


def file(path: Union[str, Path], *, parser: Optional[Parser] = None) -> FileLoader:
    """Create a loader for the records in a single data file."""
    return FileLoader(path, parser=parser)
