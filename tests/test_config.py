"""
Configuration, Digest and Queue Tests
"""

import asyncio
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from content_layer.config import ProjectConfig, Settings
from content_layer.core.digest import generate_digest
from content_layer.sync_queue import LoaderJob, LoaderQueue
from content_layer.watcher import WatchRegistry


class TestProjectConfig:

    def test_from_settings_reads_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CONTENT_LAYER_ROOT", str(tmp_path))
        monkeypatch.setenv("CONTENT_LAYER_CACHE_DIR", "cache")
        monkeypatch.setenv("CONTENT_LAYER_MARKDOWN_EXTENSIONS", "tables, fenced_code")

        project = ProjectConfig.from_settings(Settings())

        assert project.root == tmp_path.resolve()
        assert project.data_store_path == tmp_path.resolve() / "cache" / "data-store.json"
        assert project.markdown.extensions == ("tables", "fenced_code")

    def test_resolve_and_relative(self, tmp_path):
        project = ProjectConfig.for_root(tmp_path)

        resolved = project.resolve("src/data/a.json")
        assert resolved == tmp_path.resolve() / "src/data/a.json"
        assert project.relative(resolved) == "src/data/a.json"
        assert project.resolve("/abs/path") == Path("/abs/path")

    def test_digest_ignores_root_but_tracks_options(self, tmp_path):
        first = ProjectConfig.for_root(tmp_path / "a")
        second = ProjectConfig.for_root(tmp_path / "b")
        third = ProjectConfig.for_root(tmp_path / "a", data_store_file="other.json")

        assert first.digest() == second.digest()
        assert first.digest() != third.digest()

    def test_config_is_read_only(self, tmp_path):
        project = ProjectConfig.for_root(tmp_path)

        with pytest.raises(Exception):
            project.cache_dir = Path("elsewhere")


class TestDigest:

    def test_key_order_does_not_matter(self):
        assert generate_digest({"a": 1, "b": 2}) == generate_digest({"b": 2, "a": 1})

    def test_values_change_digest(self):
        assert generate_digest({"a": 1}) != generate_digest({"a": 2})

    def test_dates_and_strings(self):
        assert generate_digest({"d": date(2021, 1, 5)}) == generate_digest({"d": "2021-01-05"})
        assert len(generate_digest("text")) == 16


class TestLoaderQueue:

    @pytest.mark.asyncio
    async def test_failures_are_recorded_and_later_jobs_still_run(self):
        ran = []

        class Ok:
            def __init__(self, name):
                self.name = name

            async def load(self, context):
                ran.append(self.name)

        class Fails:
            name = "fails"

            async def load(self, context):
                raise ValueError("bad source")

        queue = LoaderQueue()
        failures = await queue.run_all(
            [
                LoaderJob("first", Ok("first"), MagicMock()),
                LoaderJob("broken", Fails(), MagicMock()),
                LoaderJob("last", Ok("last"), MagicMock()),
            ]
        )

        assert ran == ["first", "last"]
        assert list(failures) == ["broken"]
        assert isinstance(failures["broken"], ValueError)
        assert queue.completed == ["first", "last"]


def test_watch_registry_deduplicates(tmp_path):
    watcher = WatchRegistry()
    watcher.add(tmp_path / "a.json")
    watcher.add(str(tmp_path / "a.json"))

    assert len(watcher) == 1
    assert tmp_path / "a.json" in watcher
