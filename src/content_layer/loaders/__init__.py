"""
Loaders Package

The loader protocol, the execution context handed to loaders, and the
built-in glob and file loaders.
"""

from .base import (
    CollectionDefinition,
    Loader,
    SimpleLoader,
    define_collection,
    ensure_loader,
)
from .context import LoaderContext, build_context
from .entry_types import EntryInfo, EntryType, split_frontmatter
from .file_loader import FileLoader, file
from .glob_loader import GlobLoader, glob

__all__ = [
    "CollectionDefinition",
    "Loader",
    "SimpleLoader",
    "define_collection",
    "ensure_loader",
    "LoaderContext",
    "build_context",
    "EntryInfo",
    "EntryType",
    "split_frontmatter",
    "FileLoader",
    "file",
    "GlobLoader",
    "glob",
]
