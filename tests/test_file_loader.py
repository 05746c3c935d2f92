"""
File Loader Tests

Each test writes a data file into a temporary project and syncs it through
a ContentLayer.
"""

import json
import logging

import pytest

from content_layer.config import ProjectConfig
from content_layer.content_layer import ContentLayer, StaticContentConfig
from content_layer.loaders import define_collection, file
from content_layer.schema import Array, Number, String
from content_layer.store import MutableDataStore
from content_layer.watcher import WatchRegistry

DOG_SCHEMA = {"id": String(), "breed": String(), "size": String()}


def write(root, rel_path, text):
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def make_layer(root, collections, **kwargs):
    return ContentLayer(
        kwargs.pop("store", None) or MutableDataStore(),
        StaticContentConfig(collections),
        project=ProjectConfig.for_root(root),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_loads_json_array(tmp_path):
    write(
        tmp_path,
        "src/data/dogs.json",
        json.dumps(
            [
                {"id": "beagle", "breed": "Beagle", "size": "Small"},
                {"id": "poodle", "breed": "Poodle", "size": "Medium"},
            ]
        ),
    )
    layer = make_layer(
        tmp_path, {"dogs": define_collection(file("src/data/dogs.json"), DOG_SCHEMA)}
    )

    result = await layer.sync()

    assert result.ok
    entries = layer.store.values("dogs")
    assert [e.id for e in entries] == ["beagle", "poodle"]
    beagle = layer.store.get("dogs", "beagle")
    assert beagle.data == {"id": "beagle", "breed": "Beagle", "size": "Small"}
    assert beagle.file_path == "src/data/dogs.json"


@pytest.mark.asyncio
async def test_loads_yaml_mapping(tmp_path):
    write(
        tmp_path,
        "src/data/fish.yaml",
        "nemo:\n  name: Nemo\n  age: 3\ndory:\n  name: Dory\n  age: 5\n",
    )
    schema = {"name": String(), "age": Number()}
    layer = make_layer(tmp_path, {"fish": define_collection(file("src/data/fish.yaml"), schema)})

    await layer.sync()

    assert layer.store.get("fish", "nemo").data == {"name": "Nemo", "age": 3}
    assert len(layer.store.values("fish")) == 2


@pytest.mark.asyncio
async def test_loads_toml_tables(tmp_path):
    write(tmp_path, "src/data/songs.toml", '[crown]\nname = "Crown"\n\n[halo]\nname = "Halo"\n')
    layer = make_layer(tmp_path, {"songs": define_collection(file("src/data/songs.toml"))})

    await layer.sync()

    assert layer.store.get("songs", "crown").data["name"] == "Crown"


@pytest.mark.asyncio
async def test_custom_sync_parser_for_csv(tmp_path):
    write(
        tmp_path,
        "src/data/plants.csv",
        "id,common_name,color\nrose,Rose,Red\ntulip,Tulip,Yellow\n",
    )

    def parse_csv(text):
        headers, *rows = text.strip().split("\n")
        keys = headers.split(",")
        return [dict(zip(keys, row.split(","))) for row in rows]

    schema = {"id": String(), "common_name": String(), "color": String()}
    layer = make_layer(
        tmp_path,
        {"plants": define_collection(file("src/data/plants.csv", parser=parse_csv), schema)},
    )

    await layer.sync()

    assert layer.store.get("plants", "rose").data["color"] == "Red"


@pytest.mark.asyncio
async def test_custom_async_parser(tmp_path):
    write(tmp_path, "src/data/birds.json", json.dumps({"birds": [{"id": "robin", "age": 2}]}))

    async def parse_birds(text):
        return json.loads(text)["birds"]

    layer = make_layer(
        tmp_path, {"birds": define_collection(file("src/data/birds.json", parser=parse_birds))}
    )

    await layer.sync()

    assert layer.store.get("birds", "robin").data == {"id": "robin", "age": 2}


def test_glob_characters_rejected():
    with pytest.raises(ValueError, match="Glob patterns are not supported"):
        file("src/data/*.json")


def test_unsupported_extension_without_parser_rejected():
    with pytest.raises(ValueError, match="No parser found"):
        file("src/data/plants.csv")


@pytest.mark.asyncio
async def test_missing_file_warns_without_writing(tmp_path, caplog):
    layer = make_layer(tmp_path, {"dogs": define_collection(file("src/data/nope.json"))})

    with caplog.at_level(logging.WARNING):
        result = await layer.sync()

    assert result.ok
    assert layer.store.values("dogs") == []
    assert "File not found" in caplog.text


@pytest.mark.asyncio
async def test_duplicate_ids_warn_and_last_wins(tmp_path, caplog):
    write(
        tmp_path,
        "src/data/dogs.json",
        json.dumps(
            [
                {"id": "german-shepherd", "breed": "German Shepherd", "size": "Large"},
                {"id": "beagle", "breed": "Beagle", "size": "Small"},
                {"id": "german-shepherd", "breed": "German Shepherd Mix", "size": "Medium"},
            ]
        ),
    )
    layer = make_layer(
        tmp_path, {"dogs": define_collection(file("src/data/dogs.json"), DOG_SCHEMA)}
    )

    with caplog.at_level(logging.WARNING):
        await layer.sync()

    assert len(layer.store.values("dogs")) == 2
    dog = layer.store.get("dogs", "german-shepherd")
    assert dog.data["breed"] == "German Shepherd Mix"
    assert dog.data["size"] == "Medium"

    warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    duplicate = [m for m in warnings if 'Duplicate id "german-shepherd"' in m]
    assert len(duplicate) == 1
    assert "dogs.json" in duplicate[0]


@pytest.mark.asyncio
async def test_removed_records_disappear_on_resync(tmp_path):
    path = write(
        tmp_path,
        "src/data/dogs.json",
        json.dumps([{"id": "a", "breed": "A", "size": "S"}, {"id": "b", "breed": "B", "size": "S"}]),
    )
    layer = make_layer(
        tmp_path, {"dogs": define_collection(file("src/data/dogs.json"), DOG_SCHEMA)}
    )
    await layer.sync()

    path.write_text(json.dumps([{"id": "b", "breed": "B", "size": "S"}]), encoding="utf-8")
    await layer.sync()

    assert layer.store.keys("dogs") == ["b"]


@pytest.mark.asyncio
async def test_invalid_records_are_logged_and_skipped(tmp_path, caplog):
    write(
        tmp_path,
        "src/data/dogs.json",
        json.dumps(
            [
                {"id": "ok", "breed": "Ok", "size": "S"},
                {"id": "no-breed", "size": "S"},
                {"breed": "Nameless", "size": "S"},
            ]
        ),
    )
    layer = make_layer(
        tmp_path, {"dogs": define_collection(file("src/data/dogs.json"), DOG_SCHEMA)}
    )

    with caplog.at_level(logging.ERROR):
        result = await layer.sync()

    assert result.ok
    assert layer.store.keys("dogs") == ["ok"]
    assert "**breed**: Required" in caplog.text
    assert "invalid `id`" in caplog.text


@pytest.mark.asyncio
async def test_non_record_result_fails_the_loader(tmp_path):
    write(tmp_path, "src/data/count.json", "42")
    layer = make_layer(tmp_path, {"count": define_collection(file("src/data/count.json"))})

    result = await layer.sync()

    assert not result.ok
    assert "count" in result.errors
    assert "LoaderError" in result.errors["count"]


@pytest.mark.asyncio
async def test_registers_file_with_watcher(tmp_path):
    path = write(tmp_path, "src/data/tags.yaml", "- id: a\n  tags: [x]\n")
    watcher = WatchRegistry()
    schema = {"tags": Array(String())}
    layer = make_layer(
        tmp_path,
        {"tags": define_collection(file("src/data/tags.yaml"), schema)},
        watcher=watcher,
    )

    await layer.sync()

    assert path in watcher
    assert layer.store.get("tags", "a").data == {"tags": ["x"]}
