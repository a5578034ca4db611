"""Dungeon map tile catalog and reveal-rule generator.

Decodes mission map images into grids of tiles, deduplicates the tiles by
content, and writes the tile count, tile images and reveal rules used to
print a tabletop companion booklet.
"""

from __future__ import annotations

from .catalog import Catalog, build_catalog, format_count_report
from .config import Direction, MapLayout, State, TilebookConfig
from .connectivity import ConnectivityAnalyzer
from .dataset import Dataset, TileMap, build_dataset, load_dataset
from .hasher import TileHasher
from .rules import build_rules, generate_rule_text

__all__ = [
    "Catalog",
    "ConnectivityAnalyzer",
    "Dataset",
    "Direction",
    "MapLayout",
    "State",
    "TileHasher",
    "TileMap",
    "TilebookConfig",
    "build_catalog",
    "build_dataset",
    "build_rules",
    "format_count_report",
    "generate_rule_text",
    "load_dataset",
]
