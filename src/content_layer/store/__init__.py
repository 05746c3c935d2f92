"""
Store Package

Provides the in-memory content data store, its entry models, and the
persisted JSON document it is saved to between syncs.
"""

from .models import DataEntry, Heading, Reference, RenderedContent, RenderedMetadata, make_reference
from .mutable_store import MetaStore, MutableDataStore, ScopedDataStore

__all__ = [
    "DataEntry",
    "Heading",
    "Reference",
    "RenderedContent",
    "RenderedMetadata",
    "make_reference",
    "MetaStore",
    "MutableDataStore",
    "ScopedDataStore",
]
