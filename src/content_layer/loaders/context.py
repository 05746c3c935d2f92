"""
Loader Execution Context

The bundle of capabilities handed to a loader for one sync pass. Loaders
never see the full store: ``store`` and ``meta`` are scoped to their own
collection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Union

from ..core.digest import generate_digest
from ..core.logging import LoaderLogger, get_loader_logger
from ..schema.validator import parse_data
from ..store.models import RenderedContent
from ..store.mutable_store import MetaStore, MutableDataStore, ScopedDataStore

if TYPE_CHECKING:
    from pathlib import Path

    from ..config import ProjectConfig
    from ..markdown import MarkdownRenderer
    from ..watcher import FileWatcher
    from .base import CollectionDefinition


@dataclass
class LoaderContext:
    collection: str
    store: ScopedDataStore
    meta: MetaStore
    logger: LoaderLogger
    config: "ProjectConfig"
    schema: Any = None
    renderer: Optional["MarkdownRenderer"] = None
    watcher: Optional["FileWatcher"] = None
    refresh_context_data: Optional[Dict[str, Any]] = None
    generate_digest: Callable[[Any], str] = field(default=generate_digest)

    def parse_data(
        self, entry_id: str, data: Any, file_path: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Validate ``data`` against this collection's schema.

        Raises ``DataValidationError`` on failure; the store is untouched.
        """
        return parse_data(
            entry_id,
            data,
            self.schema,
            collection=self.collection,
            file_path=file_path,
        )

    async def render_markdown(
        self,
        text: str,
        file_url: Union["Path", str, None] = None,
        frontmatter: Optional[Dict[str, Any]] = None,
    ) -> RenderedContent:
        if self.renderer is None:
            raise RuntimeError("No markdown renderer is configured")
        return await self.renderer.render(text, file_url=file_url, frontmatter=frontmatter)


def build_context(
    store: MutableDataStore,
    name: str,
    definition: "CollectionDefinition",
    *,
    config: "ProjectConfig",
    renderer: Optional["MarkdownRenderer"] = None,
    watcher: Optional["FileWatcher"] = None,
    refresh_context_data: Optional[Dict[str, Any]] = None,
) -> LoaderContext:
    """Construct the context for one collection's loader."""
    return LoaderContext(
        collection=name,
        store=store.scoped_store(name),
        meta=store.meta_store(name),
        logger=get_loader_logger(definition.loader.name),
        config=config,
        schema=definition.effective_schema,
        renderer=renderer,
        watcher=watcher,
        refresh_context_data=refresh_context_data,
    )
