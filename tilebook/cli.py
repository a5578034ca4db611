"""Command line interface for turning mission map images into booklet artifacts.

Usage:
    python -m tilebook.cli catalog <maps> -o <output>  [--manifest]
    python -m tilebook.cli export  <maps> -o <output>  [--scale 100] [--workers 4]
    python -m tilebook.cli rules   <maps> -o <output>
    python -m tilebook.cli run     <maps> -o <output>  # all of the above

Subcommands:
  catalog — tile-count.txt: copies of each distinct tile needed
  export  — unique-tiles/ and unique-tilesx100/ PNGs per tile id
  rules   — reveal-tile.txt: what to reveal when leaving each tile
  run     — catalog → export → rules in sequence
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from tilebook.catalog import Catalog, build_catalog, format_count_report, write_manifest
from tilebook.config import TilebookConfig
from tilebook.dataset import Dataset, gather_map_paths, load_dataset
from tilebook.errors import TilebookError
from tilebook.export import export_tiles, write_text
from tilebook.hasher import TileHasher
from tilebook.rules import generate_rule_text

logger = logging.getLogger("tilebook")


def _setup_logging(debug: bool = False):
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def build_config(args) -> TilebookConfig:
    """Defaults < config file < command line flags."""
    config = TilebookConfig.from_json(Path(args.config)) if args.config else TilebookConfig()
    if args.output:
        config.output_dir = Path(args.output)
    if args.secret is not None:
        config.secret_key = args.secret
    if args.start_tile is not None:
        config.start_tile_id = args.start_tile
    if args.empty_tile is not None:
        config.empty_tile_id = args.empty_tile
    if args.workers is not None:
        config.workers = args.workers
    if args.recursive is not None:
        config.recursive = args.recursive
    if getattr(args, "scale", None) is not None:
        config.scale = args.scale
    return config


@dataclass
class Prepared:
    dataset: Dataset
    catalog: Catalog


def prepare(config: TilebookConfig, inputs: Optional[List[str]] = None) -> Prepared:
    """Discover and decode the maps, then catalogue their tiles."""
    sources = [Path(p) for p in inputs] if inputs else [config.maps_dir]
    paths = gather_map_paths(sources, recursive=config.recursive)
    if not paths:
        raise TilebookError(f"No map images found in {', '.join(str(s) for s in sources)}")
    logger.info("Found %d map images", len(paths))

    dataset = load_dataset(paths, layout=config.layout, workers=config.workers)
    hasher = TileHasher(config.secret_key, id_length=config.id_length)
    catalog = build_catalog(
        dataset, hasher,
        empty_tile_id=config.empty_tile_id,
        start_tile_id=config.start_tile_id,
    )
    return Prepared(dataset=dataset, catalog=catalog)


def _write_catalog(config: TilebookConfig, prepared: Prepared, manifest: bool):
    write_text(config.count_report_path, format_count_report(prepared.catalog))
    if manifest:
        write_manifest(prepared.catalog, config.manifest_path)


def _write_tiles(config: TilebookConfig, prepared: Prepared):
    export_tiles(
        prepared.catalog,
        config.tiles_dir,
        config.scaled_tiles_dir,
        scale=config.scale,
        workers=config.workers,
    )


def _write_rules(config: TilebookConfig, prepared: Prepared):
    text = generate_rule_text(prepared.dataset, prepared.catalog,
                              board_origin=config.board_origin)
    write_text(config.rules_report_path, text)


# ---- Subcommands ----

def cmd_catalog(args):
    config = build_config(args)
    prepared = prepare(config, args.inputs)
    _write_catalog(config, prepared, args.manifest)
    return 0


def cmd_export(args):
    config = build_config(args)
    prepared = prepare(config, args.inputs)
    _write_tiles(config, prepared)
    return 0


def cmd_rules(args):
    config = build_config(args)
    prepared = prepare(config, args.inputs)
    _write_rules(config, prepared)
    return 0


def cmd_run(args):
    """Write every artifact from a single decode."""
    config = build_config(args)
    config.ensure_dirs()
    prepared = prepare(config, args.inputs)

    _write_catalog(config, prepared, args.manifest)
    _write_tiles(config, prepared)
    _write_rules(config, prepared)

    logger.info("=" * 60)
    logger.info("Run complete:")
    logger.info("  Maps:        %d", len(prepared.dataset))
    logger.info("  Tiles:       %d distinct, %d copies",
                len(prepared.catalog.counted_entries()), prepared.catalog.total)
    logger.info("  Output:      %s", config.output_dir)
    return 0


# ---- Argument parser ----

def _add_common(p: argparse.ArgumentParser):
    p.add_argument("inputs", nargs="*", help="Map image files or directories (default: maps/)")
    p.add_argument("-o", "--output", default=None, help="Output directory (default: output/)")
    p.add_argument("--config", default=None, help="JSON config file")
    p.add_argument("--secret", default=None,
                   help="Key used to hash tile ids (default: $TILEBOOK_SECRET or built-in)")
    p.add_argument("--start-tile", default=None, help="Tile id of the starting tile")
    p.add_argument("--empty-tile", default=None, help="Tile id of the blank tile")
    p.add_argument("--workers", type=int, default=None,
                   help="Parallel decode/export workers (default: 1)")
    p.add_argument("--recursive", "-r", action="store_true", default=None,
                   help="Search directories recursively (default)")
    p.add_argument("--no-recursive", action="store_false", dest="recursive")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tilebook",
        description="Build the tile catalog and reveal rules for a dungeon booklet.",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_catalog = sub.add_parser("catalog", help="Count the distinct tiles needed")
    _add_common(p_catalog)
    p_catalog.add_argument("--manifest", action="store_true",
                           help="Also write catalog.jsonl")
    p_catalog.set_defaults(func=cmd_catalog)

    p_export = sub.add_parser("export", help="Save a PNG per distinct tile")
    _add_common(p_export)
    p_export.add_argument("--scale", type=int, default=None,
                          help="Block size of the enlarged tile images (default: 100)")
    p_export.set_defaults(func=cmd_export)

    p_rules = sub.add_parser("rules", help="Write the reveal rules text")
    _add_common(p_rules)
    p_rules.set_defaults(func=cmd_rules)

    p_run = sub.add_parser("run", help="Run catalog → export → rules")
    _add_common(p_run)
    p_run.add_argument("--scale", type=int, default=None)
    p_run.add_argument("--manifest", action="store_true",
                       help="Also write catalog.jsonl")
    p_run.set_defaults(func=cmd_run)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.debug)
    try:
        return args.func(args)
    except TilebookError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
