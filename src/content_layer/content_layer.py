"""
Content Layer Sync Orchestrator

Runs sync passes: resolve the collection configuration, decide whether the
store must be invalidated, run every loader through a single-worker queue,
and persist the store once every loader has succeeded.

Key Properties
--------------
- Passes never overlap. Requests made during a pass are coalesced into one
  queued pass whose result every coalesced caller receives
- A failing loader is isolated: it is logged and recorded while its
  siblings still run, but the pass is failed and nothing is written
- Configuration and persistence failures fail the pass; the previous
  on-disk document is left untouched
- No global state: a ``ContentLayer`` is created and shut down explicitly
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Dict, Iterable, List, Mapping, Optional, Protocol, Set, Union

from .config import CONTENT_LAYER_VERSION, ProjectConfig
from .core.digest import generate_digest
from .core.errors import (
    ContentConfigError,
    ContentLayerClosedError,
    DataStoreError,
    DataStorePersistenceError,
    SyncFailedError,
)
from .loaders.base import CollectionDefinition, define_collection
from .loaders.context import build_context
from .markdown import MarkdownRenderer, PythonMarkdownRenderer
from .store.mutable_store import MutableDataStore
from .sync_queue import LoaderJob, LoaderQueue
from .watcher import FileWatcher

logger = logging.getLogger("content_layer.sync")

CONTENT_CONFIG_DIGEST_KEY = "content-config-digest"
PROJECT_CONFIG_DIGEST_KEY = "project-config-digest"
CONTENT_LAYER_VERSION_KEY = "content-layer-version"

CONFIG_ERROR_KEY = "<config>"
DATA_STORE_ERROR_KEY = "<data-store>"


# ---------------------------------------------------------------------
# Configuration collaborator
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class ContentConfig:
    """Resolved collection configuration for one pass."""

    collections: Dict[str, CollectionDefinition]
    digest: str


class ContentConfigProvider(Protocol):
    def load(self) -> Union[ContentConfig, Awaitable[ContentConfig]]: ...


def _to_definition(name: str, value: Any) -> CollectionDefinition:
    if isinstance(value, CollectionDefinition):
        return value
    if isinstance(value, Mapping):
        if value.get("loader") is None:
            raise ContentConfigError(f'Collection "{name}" does not define a loader')
        return define_collection(value["loader"], value.get("schema"))
    if value is None:
        raise ContentConfigError(f'Collection "{name}" does not define a loader')
    return define_collection(value)


class StaticContentConfig:
    """ContentConfigProvider over an in-memory mapping of collections."""

    def __init__(self, collections: Mapping[str, Any]) -> None:
        self.collections = dict(collections)

    def load(self) -> ContentConfig:
        definitions = {
            name: _to_definition(name, value) for name, value in self.collections.items()
        }
        digest = generate_digest(
            [definitions[name].describe(name) for name in sorted(definitions)]
        )
        return ContentConfig(collections=definitions, digest=digest)


# ---------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------

class SyncStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class SyncResult:
    status: SyncStatus
    collections: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    cleared: bool = False

    @property
    def ok(self) -> bool:
        return self.status is SyncStatus.SUCCESS

    def raise_for_status(self) -> None:
        if not self.ok:
            raise SyncFailedError(self)


@dataclass
class _SyncRequest:
    force: bool = False
    loaders: Optional[Set[str]] = None
    context: Dict[str, Any] = field(default_factory=dict)
    future: Optional["asyncio.Future[SyncResult]"] = None

    def merge(self, other: "_SyncRequest") -> None:
        self.force = self.force or other.force
        if self.loaders is None or other.loaders is None:
            self.loaders = None
        else:
            self.loaders |= other.loaders
        self.context.update(other.context)


# ---------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------

class ContentLayer:
    def __init__(
        self,
        store: MutableDataStore,
        config_provider: ContentConfigProvider,
        *,
        project: ProjectConfig,
        renderer: Optional[MarkdownRenderer] = None,
        watcher: Optional[FileWatcher] = None,
        data_store_file: Union[Path, str, None] = None,
    ) -> None:
        self.store = store
        self.config_provider = config_provider
        self.project = project
        self.renderer = renderer or PythonMarkdownRenderer.from_config(project.markdown)
        self.watcher = watcher
        self.data_store_file = Path(data_store_file) if data_store_file is not None else None

        self._lock = asyncio.Lock()
        self._pending: Optional[_SyncRequest] = None
        self._closed = False

    @classmethod
    async def create(
        cls,
        config_provider: ContentConfigProvider,
        *,
        project: Optional[ProjectConfig] = None,
        renderer: Optional[MarkdownRenderer] = None,
        watcher: Optional[FileWatcher] = None,
        data_store_file: Union[Path, str, None] = None,
    ) -> "ContentLayer":
        """
        Create a content layer backed by the persisted data store.

        A data store that cannot be read is logged and replaced by an
        empty one; the next successful pass overwrites it.
        """
        project = project or ProjectConfig.from_settings()
        path = Path(data_store_file) if data_store_file is not None else project.data_store_path
        try:
            store = await asyncio.to_thread(MutableDataStore.from_file, path)
        except DataStoreError as exc:
            logger.warning("Ignoring unreadable data store %s: %s", path, exc)
            store = MutableDataStore()
        return cls(
            store,
            config_provider,
            project=project,
            renderer=renderer,
            watcher=watcher,
            data_store_file=path,
        )

    async def __aenter__(self) -> "ContentLayer":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    async def shutdown(self) -> None:
        """Refuse new passes and wait for queued ones to finish."""
        self._closed = True
        async with self._lock:
            logger.debug("Content layer shut down")

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def sync(
        self,
        *,
        force: bool = False,
        loaders: Optional[Iterable[str]] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> SyncResult:
        """
        Run a sync pass.

        Parameters
        ----------
        force : bool
            Clear the whole store before loading.
        loaders : Iterable[str], optional
            Only run collections whose loader has one of these names.
        context : Mapping, optional
            Data handed to loaders as ``refresh_context_data``.

        Returns
        -------
        SyncResult
            The result of the pass this request ran in. Requests made while
            a pass is in flight share one queued pass.
        """
        if self._closed:
            raise ContentLayerClosedError("Content layer has been shut down")

        if isinstance(loaders, str):
            loaders = [loaders]
        request = _SyncRequest(
            force=force,
            loaders=set(loaders) if loaders is not None else None,
            context=dict(context or {}),
        )

        if self._pending is not None:
            self._pending.merge(request)
            logger.debug("Coalesced sync request into queued pass")
            return await asyncio.shield(self._pending.future)

        if not self._lock.locked():
            async with self._lock:
                return await self._run_pass(request)

        request.future = asyncio.get_running_loop().create_future()
        self._pending = request
        try:
            async with self._lock:
                self._pending = None
                result = await self._run_pass(request)
        except BaseException as exc:
            if self._pending is request:
                self._pending = None
            if isinstance(exc, asyncio.CancelledError):
                request.future.cancel()
            else:
                request.future.set_exception(exc)
                request.future.exception()  # re-raised to this caller below
            raise
        request.future.set_result(result)
        return result

    async def _load_config(self) -> ContentConfig:
        try:
            config = self.config_provider.load()
            if inspect.isawaitable(config):
                config = await config
        except ContentConfigError:
            raise
        except Exception as exc:
            raise ContentConfigError(
                f"Could not load content config: {type(exc).__name__}: {exc}"
            ) from exc
        if not isinstance(config, ContentConfig):
            raise ContentConfigError(
                f"Content config provider returned {type(config).__name__}, expected ContentConfig"
            )
        return config

    def _invalidate(self, config: ContentConfig, force: bool) -> bool:
        """Clear the store if forced or a recorded digest changed; record new digests."""
        meta = self.store.meta_store()
        digests = {
            CONTENT_CONFIG_DIGEST_KEY: config.digest,
            PROJECT_CONFIG_DIGEST_KEY: self.project.digest(),
            CONTENT_LAYER_VERSION_KEY: CONTENT_LAYER_VERSION,
        }
        changed = [
            key
            for key, value in digests.items()
            if meta.get(key) is not None and meta.get(key) != value
        ]

        cleared = False
        if force or changed:
            logger.info(
                "Clearing content store (%s)",
                "forced" if force else "changed: " + ", ".join(changed),
            )
            self.store.clear_all()
            cleared = True

        for key, value in digests.items():
            meta.set(key, value)

        for name in self.store.collections():
            if name not in config.collections:
                logger.info("Removing entries of unconfigured collection %r", name)
                self.store.clear(name)

        return cleared

    async def _run_pass(self, request: _SyncRequest) -> SyncResult:
        started = time.perf_counter()

        try:
            config = await self._load_config()
        except ContentConfigError as exc:
            logger.error("Content config error: %s", exc)
            return SyncResult(status=SyncStatus.FAILED, errors={CONFIG_ERROR_KEY: str(exc)})

        cleared = self._invalidate(config, request.force)

        selected = [
            (name, definition)
            for name, definition in config.collections.items()
            if request.loaders is None or definition.loader.name in request.loaders
        ]
        if request.loaders is not None:
            known = {definition.loader.name for definition in config.collections.values()}
            for missing in sorted(request.loaders - known):
                logger.warning("No collection uses a loader named %r", missing)

        refresh = request.context or None
        jobs = [
            LoaderJob(
                collection=name,
                loader=definition.loader,
                context=build_context(
                    self.store,
                    name,
                    definition,
                    config=self.project,
                    renderer=self.renderer,
                    watcher=self.watcher,
                    refresh_context_data=refresh,
                ),
            )
            for name, definition in selected
        ]

        failures = await LoaderQueue().run_all(jobs)
        names = [name for name, _ in selected]

        if failures:
            errors = {name: f"{type(exc).__name__}: {exc}" for name, exc in failures.items()}
            logger.error(
                "Sync failed for %d collection(s): %s. Data store not written.",
                len(errors),
                ", ".join(sorted(errors)),
            )
            return SyncResult(
                status=SyncStatus.FAILED, collections=names, errors=errors, cleared=cleared
            )

        if self.data_store_file is not None:
            try:
                await asyncio.to_thread(self.store.write_to_disk, self.data_store_file)
            except DataStorePersistenceError as exc:
                logger.error("Could not persist data store: %s", exc)
                return SyncResult(
                    status=SyncStatus.FAILED,
                    collections=names,
                    errors={DATA_STORE_ERROR_KEY: str(exc)},
                    cleared=cleared,
                )

        logger.info(
            "Synced %d collection(s) in %.0f ms",
            len(names),
            (time.perf_counter() - started) * 1000,
        )
        return SyncResult(status=SyncStatus.SUCCESS, collections=names, cleared=cleared)
