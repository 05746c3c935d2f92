"""
Data Store Persistence Tests

Round-trips through the persisted JSON document and the atomic writer.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from unittest.mock import patch

import pytest

from content_layer.core.errors import DataStoreError, DataStorePersistenceError
from content_layer.store import DataEntry, MutableDataStore, RenderedContent


def populated_store():
    store = MutableDataStore()
    store.set(
        "posts",
        "hello",
        DataEntry(
            id="hello",
            data={
                "title": "Hello",
                "published": datetime(2021, 1, 5, tzinfo=timezone.utc),
                "day": date(2024, 2, 29),
                "tags": ["a", "b"],
                "author": {"collection": "authors", "id": "ada"},
            },
            body="# Hello",
            file_path="src/content/posts/hello.md",
            digest="abc",
            rendered=RenderedContent(html="<h1>Hello</h1>"),
        ),
    )
    store.set("posts", "100%", DataEntry(id="100%", data={"title": "Percent"}))
    store.set("authors", "ada", DataEntry(id="ada", data={"name": "Ada"}))
    store.meta_store().set("content-config-digest", "d1")
    store.meta_store("posts").set("sync-token", "t1")
    return store


class TestDocumentRoundTrip:

    def test_round_trip_preserves_entries_and_types(self):
        original = populated_store()

        restored = MutableDataStore.from_json(original.to_json())

        entry = restored.get("posts", "hello")
        assert entry.data["published"] == datetime(2021, 1, 5, tzinfo=timezone.utc)
        assert entry.data["day"] == date(2024, 2, 29)
        assert entry.data["tags"] == ["a", "b"]
        assert entry.rendered.html == "<h1>Hello</h1>"
        assert entry.file_path == "src/content/posts/hello.md"
        assert restored.get("posts", "100%").data == {"title": "Percent"}
        assert restored.keys("posts") == ["hello", "100%"]
        assert restored.meta_store().get("content-config-digest") == "d1"
        assert restored.meta_store("posts").get("sync-token") == "t1"

    def test_document_shape(self):
        doc = populated_store().to_document()

        assert doc["version"] == 1
        assert set(doc["collections"]) == {"posts", "authors"}
        assert doc["collections"]["posts"]["hello"]["data"]["published"] == {
            "$datetime": "2021-01-05T00:00:00+00:00"
        }
        assert doc["collections"]["posts"]["hello"]["data"]["day"] == {"$date": "2024-02-29"}
        assert doc["meta"] == {"content-config-digest": "d1"}

    def test_mappings_shaped_like_tags_survive_round_trip(self):
        data = {
            "x": {"$date": "2020-01-01"},
            "y": {"$datetime": "2020-01-01T00:00:00"},
            "z": {"$object": {"$date": "nested"}},
            "when": date(2020, 1, 1),
        }
        store = MutableDataStore()
        store.set("c", "a", {"id": "a", "data": data})

        restored = MutableDataStore.from_json(store.to_json())

        assert restored.get("c", "a").data == data

    def test_unknown_keys_and_missing_version_are_tolerated(self):
        doc = {
            "collections": {"cats": {"a": {"id": "a", "data": {}}}},
            "future": {"anything": True},
        }

        store = MutableDataStore.from_document(doc)

        assert store.has("cats", "a")

    def test_newer_version_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            MutableDataStore.from_document({"version": 99, "collections": {}})

        assert "newer than supported" in caplog.text

    def test_unserializable_value_raises(self):
        store = MutableDataStore()
        store.set("odd", "x", DataEntry(id="x", data={"value": object()}))

        with pytest.raises(DataStorePersistenceError):
            store.to_document()

    @pytest.mark.parametrize(
        "doc",
        [
            [],
            {"version": "one"},
            {"collections": []},
            {"collections": {"cats": []}},
            {"collections": {"cats": {"a": {"id": "", "data": {}}}}},
        ],
    )
    def test_invalid_documents_raise(self, doc):
        with pytest.raises(DataStoreError):
            MutableDataStore.from_document(doc)


class TestFilePersistence:

    def test_from_file_missing_returns_empty_store(self, tmp_path):
        store = MutableDataStore.from_file(tmp_path / "missing.json")

        assert store.collections() == []

    def test_from_file_invalid_json_raises(self, tmp_path):
        path = tmp_path / "data-store.json"
        path.write_text("{ not json", encoding="utf-8")

        with pytest.raises(DataStoreError):
            MutableDataStore.from_file(path)

    def test_write_and_read_back(self, tmp_path):
        path = tmp_path / "cache" / "data-store.json"
        populated_store().write_to_disk(path)

        restored = MutableDataStore.from_file(path)

        assert restored.get("authors", "ada").data == {"name": "Ada"}
        assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1
        assert [p.name for p in path.parent.iterdir()] == ["data-store.json"]

    def test_failed_write_keeps_previous_document(self, tmp_path):
        path = tmp_path / "data-store.json"
        populated_store().write_to_disk(path)
        before = path.read_text(encoding="utf-8")

        changed = MutableDataStore()
        changed.set("cats", "a", DataEntry(id="a"))
        with patch("content_layer.store.document.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(DataStorePersistenceError):
                changed.write_to_disk(path)

        assert path.read_text(encoding="utf-8") == before
        assert os.listdir(tmp_path) == ["data-store.json"]
