"""
Loader Protocol and Collection Definitions

A loader is any object with a ``name`` and an ``async load(context)``
method. Plain callables returning records are adapted into a
``SimpleLoader``.

Record policy (shared by ``SimpleLoader`` and the file loader)
--------------------------------------------------------------
- A list of records (each with an ``id``) or a mapping of id -> record
- The collection is cleared first, so removed records disappear
- Invalid ids and schema failures are logged and the record is skipped
- Duplicate ids overwrite, with one warning per duplicate
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    Union,
    runtime_checkable,
)

from ..core.errors import (
    ContentConfigError,
    DataValidationError,
    InvalidEntryIdError,
    LoaderError,
)
from ..schema.fields import describe_schema

if TYPE_CHECKING:
    from .context import LoaderContext


@runtime_checkable
class Loader(Protocol):
    """Object-form loader."""

    name: str

    async def load(self, context: "LoaderContext") -> None: ...


Records = Union[List[Mapping[str, Any]], Mapping[str, Mapping[str, Any]]]
LoaderFunction = Callable[[], Union[Records, Awaitable[Records]]]


# ---------------------------------------------------------------------
# Record Storage
# ---------------------------------------------------------------------

def iter_records(result: Any, *, collection: str) -> List[Tuple[Any, Mapping[str, Any]]]:
    """
    Normalize a loader result into ``(id, data)`` pairs.

    Raises
    ------
    LoaderError
        If the result is neither a list of records nor a mapping of records.
    """
    if isinstance(result, Mapping):
        pairs = []
        for key, record in result.items():
            if not isinstance(record, Mapping):
                raise LoaderError(
                    f"Record {key!r} must be an object, got {type(record).__name__}",
                    collection=collection,
                )
            pairs.append((str(key), record))
        return pairs

    if isinstance(result, (list, tuple)):
        pairs = []
        for index, record in enumerate(result):
            if not isinstance(record, Mapping):
                raise LoaderError(
                    f"Record at index {index} must be an object, got {type(record).__name__}",
                    collection=collection,
                )
            pairs.append((record.get("id"), record))
        return pairs

    raise LoaderError(
        "Loader must return an array of entries or an object mapping ids to entries, "
        f"got {type(result).__name__}",
        collection=collection,
    )


def store_records(
    context: "LoaderContext",
    records: Iterable[Tuple[Any, Mapping[str, Any]]],
    *,
    file_path: Optional[str] = None,
) -> int:
    """
    Validate and write records into the context's scoped store.

    Returns the number of entries written.
    """
    seen = set()
    written = 0
    where = f" in {file_path}" if file_path else ""

    for entry_id, raw in records:
        if not isinstance(entry_id, str) or not entry_id:
            context.logger.error(
                str(InvalidEntryIdError(entry_id, collection=context.collection))
            )
            continue

        try:
            data = context.parse_data(entry_id, raw, file_path=file_path)
        except DataValidationError as exc:
            context.logger.error(str(exc))
            continue

        if entry_id in seen:
            context.logger.warning(
                f'Duplicate id "{entry_id}" found{where}. '
                "Later items with the same id will overwrite earlier ones."
            )
        seen.add(entry_id)

        context.store.set(
            {
                "id": entry_id,
                "data": data,
                "file_path": file_path,
                "digest": context.generate_digest(data),
            }
        )
        written += 1

    return written


# ---------------------------------------------------------------------
# Simple Loader
# ---------------------------------------------------------------------

class SimpleLoader:
    """Adapter turning a plain (sync or async) function into a loader."""

    def __init__(self, fn: LoaderFunction, *, name: Optional[str] = None) -> None:
        self.fn = fn
        self.name = name or getattr(fn, "__name__", "simple-loader")

    async def load(self, context: "LoaderContext") -> None:
        result = self.fn()
        if inspect.isawaitable(result):
            result = await result

        pairs = iter_records(result, collection=context.collection)
        context.store.clear()
        count = store_records(context, pairs)
        context.logger.info(f"Loaded {count} entries")

    def describe(self) -> Dict[str, Any]:
        return {"function": self.fn}

    def __repr__(self) -> str:
        return f"SimpleLoader({self.name!r})"


def ensure_loader(loader: Any) -> Loader:
    """Return ``loader`` as an object-form loader."""
    if isinstance(loader, Loader):
        return loader
    if callable(loader):
        return SimpleLoader(loader)
    raise ContentConfigError(
        f"Collection loader must be a loader object or a function, got {type(loader).__name__}"
    )


# ---------------------------------------------------------------------
# Collection Definitions
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class CollectionDefinition:
    """A configured collection: its loader and optional schema."""

    loader: Loader
    schema: Any = None

    @property
    def effective_schema(self) -> Any:
        """The collection schema, falling back to one the loader declares."""
        if self.schema is not None:
            return self.schema
        return getattr(self.loader, "schema", None)

    def describe(self, name: str) -> dict:
        """Everything about the collection that shapes its entries; feeds the config digest."""
        describe_options = getattr(self.loader, "describe", None)
        return {
            "name": name,
            "loader": self.loader.name,
            "loader_type": f"{type(self.loader).__module__}.{type(self.loader).__qualname__}",
            "options": describe_options() if callable(describe_options) else None,
            "schema": describe_schema(self.effective_schema),
        }


def define_collection(loader: Any = None, schema: Any = None) -> CollectionDefinition:
    """
    Declare a collection.

    Raises
    ------
    ContentConfigError
        If no loader is given.
    """
    if loader is None:
        raise ContentConfigError("Collections must define a loader")
    return CollectionDefinition(loader=ensure_loader(loader), schema=schema)
