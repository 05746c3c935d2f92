from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, InstanceOf
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.digest import generate_digest
from .loaders.entry_types import EntryType, default_content_entry_types, default_data_entry_types

CONTENT_LAYER_VERSION = "1.0.0"


class Settings(BaseSettings):
    root: Path = Path(".")
    src_dir: Path = Path("src")
    cache_dir: Path = Path(".content-layer")
    data_store_file: str = "data-store.json"

    log_level: str = "INFO"

    # Python-Markdown extension names, comma separated in the environment
    markdown_extensions: str = "fenced_code,tables"

    model_config = SettingsConfigDict(
        env_prefix="CONTENT_LAYER_",
        env_file=".env",
        extra="ignore",
    )

settings = Settings()


class MarkdownConfig(BaseModel):
    """Options forwarded to the markdown renderer."""

    extensions: Tuple[str, ...] = ("fenced_code", "tables")
    extension_configs: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True, extra="forbid")


class ProjectConfig(BaseModel):
    """
    Read-only view of the resolved project configuration.

    Handed to every loader so relative paths (glob bases, data files) can
    be resolved against the project root.
    """

    root: Path
    src_dir: Path
    cache_dir: Path
    data_store_file: str = "data-store.json"
    markdown: MarkdownConfig = Field(default_factory=MarkdownConfig)

    content_entry_types: List[InstanceOf[EntryType]] = Field(
        default_factory=default_content_entry_types, exclude=True
    )
    data_entry_types: List[InstanceOf[EntryType]] = Field(
        default_factory=default_data_entry_types, exclude=True
    )

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @classmethod
    def from_settings(cls, source: Settings | None = None, **overrides: Any) -> "ProjectConfig":
        source = source or settings
        root = Path(overrides.pop("root", source.root)).resolve()
        extensions = tuple(
            name.strip() for name in source.markdown_extensions.split(",") if name.strip()
        )
        values: Dict[str, Any] = {
            "root": root,
            "src_dir": source.src_dir,
            "cache_dir": source.cache_dir,
            "data_store_file": source.data_store_file,
            "markdown": MarkdownConfig(extensions=extensions),
        }
        values.update(overrides)
        return cls(**values)

    @classmethod
    def for_root(cls, root: Path | str, **overrides: Any) -> "ProjectConfig":
        """Build a config for ``root`` with default directory names."""
        root = Path(root).resolve()
        overrides.setdefault("src_dir", Path("src"))
        overrides.setdefault("cache_dir", Path(".content-layer"))
        return cls(root=root, **overrides)

    def resolve(self, path: Path | str) -> Path:
        """Resolve ``path`` against the project root."""
        path = Path(path)
        return path if path.is_absolute() else self.root / path

    def relative(self, path: Path) -> str:
        """Return ``path`` relative to the root (POSIX), or as-is if outside it."""
        try:
            return path.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()

    @property
    def data_store_path(self) -> Path:
        return self.resolve(self.cache_dir) / self.data_store_file

    @property
    def entry_types(self) -> List[EntryType]:
        return [*self.content_entry_types, *self.data_entry_types]

    def digest(self) -> str:
        """Digest of every setting that affects how content is produced."""
        return generate_digest(
            {
                "config": self.model_dump(mode="json", exclude={"root"}),
                "entry_types": [entry_type.describe() for entry_type in self.entry_types],
            }
        )
