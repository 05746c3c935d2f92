import argparse
import asyncio
import importlib.util
import os
import sys
from pathlib import Path

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from content_layer.config import ProjectConfig, settings
from content_layer.content_layer import ContentLayer, StaticContentConfig
from content_layer.core.logging import configure_logging
from content_layer.watcher import WatchRegistry


def load_collections(config_path: Path):
    """Import a content config module and return its ``collections`` mapping."""
    spec = importlib.util.spec_from_file_location("content_config", config_path)
    if spec is None or spec.loader is None:
        raise SystemExit(f"Cannot import content config {config_path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    collections = getattr(module, "collections", None)
    if not isinstance(collections, dict):
        raise SystemExit(f"{config_path} must define a 'collections' dict")
    return collections


async def main(argv=None):
    parser = argparse.ArgumentParser(description="Sync content collections into the data store.")
    parser.add_argument("--config", help="Content config module (default: <src_dir>/content_config.py)")
    parser.add_argument("--force", action="store_true", help="Clear the data store before loading")
    parser.add_argument("--loader", action="append", dest="loaders", help="Only run loaders with this name")
    args = parser.parse_args(argv)

    configure_logging(settings.log_level)
    project = ProjectConfig.from_settings()
    config_path = Path(args.config) if args.config else project.resolve(project.src_dir) / "content_config.py"

    print(f"Loading collections from {config_path}...")
    provider = StaticContentConfig(load_collections(config_path))

    watcher = WatchRegistry()
    async with await ContentLayer.create(provider, project=project, watcher=watcher) as layer:
        result = await layer.sync(force=args.force, loaders=args.loaders)

    for name in result.collections:
        print(f"  {name}: {len(layer.store.keys(name))} entries")
    if not result.ok:
        for name, error in result.errors.items():
            print(f"  FAILED {name}: {error}")
        return 1

    print(f"Done! Data store written to {layer.data_store_file} ({len(watcher)} watched paths).")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
