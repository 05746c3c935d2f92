"""
Markdown Rendering Bridge

Loaders render markdown through a narrow contract:

    await renderer.render(source, file_url=None, frontmatter=None) -> RenderedContent

The engine does not care how HTML is produced. ``PythonMarkdownRenderer``
is the bundled implementation on top of Python-Markdown:

- YAML frontmatter is split off and returned in ``metadata.frontmatter``,
  unless the caller passes ``frontmatter`` for a body it already split
- Headings come from the ``toc`` extension (ids are slugs of the text)
- Image sources are collected by a tree processor and split into local
  and remote paths
- Conversion runs in a worker thread, with a fresh ``Markdown`` instance
  per call (instances are not thread-safe)
"""

from __future__ import annotations

import asyncio
import html
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union
from urllib.parse import urlparse
from xml.etree.ElementTree import Element

import markdown
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor

from .config import MarkdownConfig
from .loaders.entry_types import split_frontmatter
from .store.models import Heading, RenderedContent, RenderedMetadata

logger = logging.getLogger("content_layer.markdown")


class MarkdownRenderer(Protocol):
    async def render(
        self,
        source: str,
        *,
        file_url: Union[Path, str, None] = None,
        frontmatter: Optional[Dict[str, Any]] = None,
    ) -> RenderedContent: ...


# ---------------------------------------------------------------------
# Python-Markdown extension
# ---------------------------------------------------------------------

class _ImageCollector(Treeprocessor):
    def run(self, root: Element) -> None:
        sources = []
        for img in root.iter("img"):
            src = img.get("src")
            if src:
                sources.append(src)
        self.md.image_sources = sources  # type: ignore[attr-defined]


class ImageCollectorExtension(Extension):
    """Collects ``<img src>`` values into ``md.image_sources``."""

    def extendMarkdown(self, md: markdown.Markdown) -> None:
        md.image_sources = []  # type: ignore[attr-defined]
        md.treeprocessors.register(_ImageCollector(md), "content_layer_images", 0)


def _is_remote(src: str) -> bool:
    return src.startswith("//") or urlparse(src).scheme in ("http", "https")


def _flatten_toc(tokens: Sequence[Dict[str, Any]]) -> List[Heading]:
    headings: List[Heading] = []
    for token in tokens:
        headings.append(
            Heading(
                depth=token["level"],
                slug=token.get("id", ""),
                text=html.unescape(token.get("name", "")),
            )
        )
        headings.extend(_flatten_toc(token.get("children", [])))
    return headings


# ---------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------

class PythonMarkdownRenderer:
    def __init__(
        self,
        extensions: Sequence[str] = ("fenced_code", "tables"),
        extension_configs: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> None:
        self.extensions = list(extensions)
        self.extension_configs = dict(extension_configs or {})

    @classmethod
    def from_config(cls, config: MarkdownConfig) -> "PythonMarkdownRenderer":
        return cls(config.extensions, config.extension_configs)

    def _build(self) -> markdown.Markdown:
        extensions: List[Any] = [*self.extensions, "toc", ImageCollectorExtension()]
        return markdown.Markdown(
            extensions=extensions,
            extension_configs=self.extension_configs,
        )

    def render_sync(
        self,
        source: str,
        file_url: Union[Path, str, None] = None,
        frontmatter: Optional[Dict[str, Any]] = None,
    ) -> RenderedContent:
        # A caller that passes frontmatter has already split it off
        if frontmatter is None:
            frontmatter, body = split_frontmatter(source)
        else:
            body = source
        md = self._build()
        rendered_html = md.convert(body)

        local_images: List[str] = []
        remote_images: List[str] = []
        for src in getattr(md, "image_sources", []):
            if src.startswith("data:"):
                continue
            (remote_images if _is_remote(src) else local_images).append(src)

        if local_images and file_url is not None:
            logger.debug("%s references %d local image(s)", file_url, len(local_images))

        return RenderedContent(
            html=rendered_html,
            metadata=RenderedMetadata(
                headings=_flatten_toc(getattr(md, "toc_tokens", [])),
                frontmatter=frontmatter,
                local_image_paths=local_images,
                remote_image_paths=remote_images,
            ),
        )

    async def render(
        self,
        source: str,
        *,
        file_url: Union[Path, str, None] = None,
        frontmatter: Optional[Dict[str, Any]] = None,
    ) -> RenderedContent:
        return await asyncio.to_thread(self.render_sync, source, file_url, frontmatter)
