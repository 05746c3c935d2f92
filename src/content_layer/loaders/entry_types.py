"""
Entry Types

An entry type knows how to turn the raw contents of one file into
``EntryInfo`` (data + body). The glob loader picks an entry type by file
extension.

Built-in types
--------------
- markdown: YAML frontmatter as data, the rest as body; rendered at sync time
- json / yaml / toml: whole file as data, empty body
"""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import yaml

from ..core.errors import FrontmatterError

_FRONTMATTER_FENCE = "---"


@dataclass
class EntryInfo:
    """Parsed contents of a single file."""

    data: Dict[str, Any] = field(default_factory=dict)
    body: str = ""
    slug: Optional[str] = None


GetEntryInfo = Callable[[str, Path], Union[EntryInfo, Awaitable[EntryInfo]]]


@dataclass(frozen=True)
class EntryType:
    """
    Mapping from file extensions to a parser.

    ``render`` asks the glob loader to render the body with the markdown
    bridge during sync; ``deferred_render`` only flags the entry so the
    runtime renders it lazily.
    """

    name: str
    extensions: Tuple[str, ...]
    get_entry_info: GetEntryInfo
    render: bool = False
    deferred_render: bool = False

    def matches(self, path: Path) -> bool:
        return any(path.name.endswith(ext) for ext in self.extensions)

    def strip_extension(self, rel_path: str) -> str:
        for ext in sorted(self.extensions, key=len, reverse=True):
            if rel_path.endswith(ext):
                return rel_path[: -len(ext)]
        return rel_path

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "extensions": list(self.extensions),
            "render": self.render,
            "deferred_render": self.deferred_render,
        }


# ---------------------------------------------------------------------
# Frontmatter
# ---------------------------------------------------------------------

def split_frontmatter(contents: str) -> Tuple[Dict[str, Any], str]:
    """
    Split a markdown document into (frontmatter data, body).

    Documents without a leading ``---`` fence have no frontmatter.
    """
    text = contents.lstrip("\ufeff")
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != _FRONTMATTER_FENCE:
        return {}, contents

    for index in range(1, len(lines)):
        if lines[index].strip() == _FRONTMATTER_FENCE:
            raw = "".join(lines[1:index])
            body = "".join(lines[index + 1 :])
            break
    else:
        return {}, contents

    try:
        data = yaml.safe_load(raw) if raw.strip() else {}
    except yaml.YAMLError as exc:
        raise FrontmatterError(f"Invalid frontmatter: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterError(
            f"Frontmatter must be a mapping, got {type(data).__name__}"
        )
    return data, body


# ---------------------------------------------------------------------
# Built-in parsers
# ---------------------------------------------------------------------

def _markdown_entry_info(contents: str, file_path: Path) -> EntryInfo:
    data, body = split_frontmatter(contents)
    slug = data.get("slug") if isinstance(data.get("slug"), str) else None
    return EntryInfo(data=data, body=body, slug=slug)


def _require_mapping(data: Any, file_path: Path) -> Dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"{file_path.name} must contain a mapping at the top level, got {type(data).__name__}"
        )
    return data


def _json_entry_info(contents: str, file_path: Path) -> EntryInfo:
    return EntryInfo(data=_require_mapping(json.loads(contents), file_path))


def _yaml_entry_info(contents: str, file_path: Path) -> EntryInfo:
    return EntryInfo(data=_require_mapping(yaml.safe_load(contents), file_path))


def _toml_entry_info(contents: str, file_path: Path) -> EntryInfo:
    return EntryInfo(data=tomllib.loads(contents))


MARKDOWN_ENTRY_TYPE = EntryType(
    name="markdown",
    extensions=(".md", ".markdown"),
    get_entry_info=_markdown_entry_info,
    render=True,
)

JSON_ENTRY_TYPE = EntryType(name="json", extensions=(".json",), get_entry_info=_json_entry_info)
YAML_ENTRY_TYPE = EntryType(name="yaml", extensions=(".yaml", ".yml"), get_entry_info=_yaml_entry_info)
TOML_ENTRY_TYPE = EntryType(name="toml", extensions=(".toml",), get_entry_info=_toml_entry_info)


def default_content_entry_types() -> List[EntryType]:
    return [MARKDOWN_ENTRY_TYPE]


def default_data_entry_types() -> List[EntryType]:
    return [JSON_ENTRY_TYPE, YAML_ENTRY_TYPE, TOML_ENTRY_TYPE]
