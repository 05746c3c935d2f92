"""
Glob Loader

Creates one entry per file matched by a glob pattern under a base
directory.

Ids
---
The path relative to ``base`` with its extension removed, where a trailing
``/index`` collapses onto its directory (``guides/index.md`` -> ``guides``).
A string ``slug`` in the parsed data takes precedence, and a
``generate_id`` callback overrides both.

Incremental sync
----------------
Each entry stores a digest of its source file. On later passes files with
an unchanged digest are kept as they are, and entries whose files are gone
are deleted.
"""

from __future__ import annotations

import inspect
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Set, Union

import aiofiles
import yaml

from ..core.errors import DataValidationError, InvalidEntryIdError
from .entry_types import EntryInfo

if TYPE_CHECKING:
    from .context import LoaderContext
    from .entry_types import EntryType

GenerateId = Callable[..., str]

_BRACES = re.compile(r"\{([^{}]*)\}")


def expand_braces(pattern: str) -> List[str]:
    """Expand ``{a,b}`` alternatives: ``*.{md,txt}`` -> ``*.md``, ``*.txt``."""
    match = _BRACES.search(pattern)
    if match is None:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end() :]
    out: List[str] = []
    for option in match.group(1).split(","):
        out.extend(expand_braces(f"{head}{option}{tail}"))
    return out


def default_entry_id(rel_path: str, entry_type: "EntryType") -> str:
    stem = entry_type.strip_extension(rel_path)
    if stem == "index":
        return stem
    if stem.endswith("/index"):
        return stem[: -len("/index")]
    return stem


class GlobLoader:
    name = "glob-loader"

    def __init__(
        self,
        pattern: Union[str, Sequence[str]],
        base: Union[str, Path] = ".",
        *,
        retain_body: bool = True,
        generate_id: Optional[GenerateId] = None,
    ) -> None:
        patterns = [pattern] if isinstance(pattern, str) else list(pattern)
        self.include = [p for p in patterns if not p.startswith("!")]
        self.exclude = [p[1:] for p in patterns if p.startswith("!")]
        if not self.include:
            raise ValueError("Glob loader needs at least one non-negated pattern")
        self.pattern = patterns
        self.base = Path(base)
        self.retain_body = retain_body
        self.generate_id = generate_id

    def __repr__(self) -> str:
        return f"GlobLoader({self.pattern!r}, base={self.base.as_posix()!r})"

    def describe(self) -> Dict[str, Any]:
        """Loader options; a change to any of them invalidates the store."""
        return {
            "pattern": list(self.pattern),
            "base": self.base.as_posix(),
            "retain_body": self.retain_body,
            "generate_id": self.generate_id,
        }

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def match_files(self, base: Path) -> List[Path]:
        """Return matched files under ``base``, sorted by relative path."""
        def expand(patterns: List[str]) -> Set[Path]:
            found: Set[Path] = set()
            for pattern in patterns:
                for expanded in expand_braces(pattern):
                    found.update(p for p in base.glob(expanded) if p.is_file())
            return found

        files = expand(self.include) - expand(self.exclude)
        return sorted(files, key=lambda p: p.relative_to(base).as_posix())

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _entry_info(
        self, entry_type: "EntryType", contents: str, path: Path
    ) -> EntryInfo:
        info = entry_type.get_entry_info(contents, path)
        if inspect.isawaitable(info):
            info = await info
        return info

    def _entry_id(self, rel_path: str, base: Path, info: EntryInfo, entry_type: "EntryType") -> Any:
        if self.generate_id is not None:
            return self.generate_id(entry=rel_path, base=base, data=info.data)
        slug = info.slug if info.slug is not None else info.data.get("slug")
        if isinstance(slug, str) and slug:
            return slug
        return default_entry_id(rel_path, entry_type)

    async def load(self, context: "LoaderContext") -> None:
        config = context.config
        base = config.resolve(self.base)

        if not base.is_dir():
            context.logger.warning(
                f'The base directory "{base}" does not exist. No entries will be loaded.'
            )
            return

        if context.watcher is not None:
            context.watcher.add(base)

        files = self.match_files(base)
        if not files:
            shown = ", ".join(self.pattern)
            context.logger.warning(
                f'No files found matching "{shown}" in directory "{config.relative(base)}"'
            )
            return

        previous: Dict[str, str] = {
            entry.file_path: entry_id
            for entry_id, entry in context.store.entries()
            if entry.file_path
        }
        produced: Dict[str, str] = {}
        unchanged = 0

        for path in files:
            rel_path = path.relative_to(base).as_posix()
            file_path = config.relative(path)

            entry_type = next((t for t in config.entry_types if t.matches(path)), None)
            if entry_type is None:
                context.logger.warning(f"No entry type found for {file_path}, skipping")
                continue

            try:
                async with aiofiles.open(path, "r", encoding="utf-8") as fh:
                    contents = await fh.read()
            except (OSError, UnicodeDecodeError) as exc:
                context.logger.error(f"Could not read {file_path}: {exc}")
                continue
            digest = context.generate_digest(contents)

            previous_id = previous.get(file_path)
            if previous_id is not None:
                existing = context.store.get(previous_id)
                if existing is not None and existing.digest == digest:
                    produced[previous_id] = file_path
                    unchanged += 1
                    continue

            try:
                info = await self._entry_info(entry_type, contents, path)
            except (ValueError, yaml.YAMLError) as exc:
                context.logger.error(f"Could not parse {file_path}: {exc}")
                continue

            entry_id = self._entry_id(rel_path, base, info, entry_type)
            if not isinstance(entry_id, str) or not entry_id:
                context.logger.error(
                    f"{InvalidEntryIdError(entry_id, collection=context.collection)} ({file_path})"
                )
                continue

            try:
                data = context.parse_data(entry_id, info.data, file_path=file_path)
            except DataValidationError as exc:
                context.logger.error(str(exc))
                continue

            other = produced.get(entry_id)
            if other is not None and other != file_path:
                context.logger.warning(
                    f'Duplicate id "{entry_id}" found in {file_path} (also in {other}). '
                    "Later items with the same id will overwrite earlier ones."
                )
            produced[entry_id] = file_path

            entry: Dict[str, Any] = {
                "id": entry_id,
                "data": data,
                "body": info.body if self.retain_body else None,
                "file_path": file_path,
                "digest": digest,
            }
            if entry_type.render:
                entry["rendered"] = await context.render_markdown(
                    info.body, file_url=path, frontmatter=info.data
                )
            elif entry_type.deferred_render:
                entry["deferred_render"] = True

            context.store.set(entry)

        stale = [entry_id for entry_id in context.store.keys() if entry_id not in produced]
        for entry_id in stale:
            context.store.delete(entry_id)

        context.logger.info(
            f"Loaded {len(produced)} entries ({unchanged} unchanged, {len(stale)} removed)"
        )


def glob(
    pattern: Union[str, Sequence[str]],
    base: Union[str, Path] = ".",
    *,
    retain_body: bool = True,
    generate_id: Optional[GenerateId] = None,
) -> GlobLoader:
    """Create a loader for every file matching ``pattern`` under ``base``."""
    return GlobLoader(pattern, base, retain_body=retain_body, generate_id=generate_id)
