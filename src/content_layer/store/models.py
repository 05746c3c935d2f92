"""
Data Store Models

This module defines the canonical records kept in the content data store.

Each ``DataEntry`` corresponds to ONE entry in ONE collection. Entry ``data``
is an opaque mapping that has already been validated against the
collection schema by the loader.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, TypedDict

from pydantic import BaseModel, ConfigDict, Field


class Reference(TypedDict):
    """Typed pointer to an entry in another collection."""

    collection: str
    id: str


def make_reference(collection: str, entry_id: str) -> Reference:
    return {"collection": collection, "id": entry_id}


# ---------------------------------------------------------------------
# Rendered Content
# ---------------------------------------------------------------------

class Heading(BaseModel):
    depth: int = Field(..., ge=1, le=6)
    slug: str = ""
    text: str

    model_config = ConfigDict(extra="forbid", frozen=True)


class RenderedMetadata(BaseModel):
    """Metadata produced alongside rendered HTML."""

    headings: List[Heading] = Field(default_factory=list)
    frontmatter: Dict[str, Any] = Field(default_factory=dict)
    local_image_paths: List[str] = Field(default_factory=list)
    remote_image_paths: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class RenderedContent(BaseModel):
    html: str
    metadata: RenderedMetadata = Field(default_factory=RenderedMetadata)

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------

class DataEntry(BaseModel):
    """
    A single entry in a collection.

    This model is the authoritative schema for:
    - in-memory store records
    - the persisted data store document
    - what loaders hand to ``ScopedDataStore.set``
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Entry id, unique within its collection. Never used as a path.",
    )

    data: Dict[str, Any] = Field(
        default_factory=dict,
        description="Schema-validated entry data.",
    )

    body: Optional[str] = Field(
        default=None,
        description="Raw, unrendered body text when the loader retains it.",
    )

    file_path: Optional[str] = Field(
        default=None,
        description="Source file relative to the project root.",
    )

    digest: Optional[str] = Field(
        default=None,
        description="Digest of the source, used to skip unchanged entries.",
    )

    rendered: Optional[RenderedContent] = None

    deferred_render: bool = Field(
        default=False,
        description="Body should be rendered lazily by the runtime.",
    )

    model_config = ConfigDict(extra="forbid")
