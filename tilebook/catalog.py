"""Deduplicated catalog of every distinct tile across all mission maps.

The printed booklet ships one shared pool of cardboard tiles that is reused
across missions, so the number of copies needed for a tile is the largest
number of times it appears in any single map, not the sum over maps.

Catalog report format::

    total: <sum of counts>

    <id>: <count>
    ...
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np

from tilebook.config import State
from tilebook.dataset import Dataset
from tilebook.errors import AmbiguousStartTileError, TileIdCollisionError
from tilebook.hasher import TileHasher

logger = logging.getLogger(__name__)


@dataclass
class CatalogEntry:
    """One distinct tile and where it is used."""
    tile_id: str
    digest: str
    tile: np.ndarray                    # representative (tile_h, tile_w) states
    per_map_counts: List[int] = field(default_factory=list)
    positions: Dict[int, List[Tuple[int, int]]] = field(default_factory=dict)  # map -> [(row, col)]

    @property
    def count(self) -> int:
        """Copies needed: highest number of uses within one map."""
        return max(self.per_map_counts) if self.per_map_counts else 0

    def contains_state(self, state: State) -> bool:
        return bool(np.any(self.tile == int(state)))

    def to_dict(self) -> dict:
        return {
            "tile_id": self.tile_id,
            "digest": self.digest,
            "count": int(self.count),
            "states": self.tile.astype(int).tolist(),
            "positions": {
                str(map_index + 1): [[int(r), int(c)] for r, c in cells]
                for map_index, cells in self.positions.items()
            },
        }


@dataclass(frozen=True)
class Catalog:
    entries: Dict[str, CatalogEntry]          # first-seen order
    id_grids: Tuple[Tuple[Tuple[str, ...], ...], ...]  # per map, [row][col] -> tile id
    empty_tile_id: str
    start_tile_id: Optional[str]

    def __contains__(self, tile_id: str) -> bool:
        return tile_id in self.entries

    def __getitem__(self, tile_id: str) -> CatalogEntry:
        return self.entries[tile_id]

    def tile(self, tile_id: str) -> np.ndarray:
        return self.entries[tile_id].tile

    def tile_id_at(self, map_index: int, row: int, col: int) -> str:
        return self.id_grids[map_index][row][col]

    def contains_state(self, tile_id: str, state: State) -> bool:
        return self.entries[tile_id].contains_state(state)

    def counted_entries(self) -> List[CatalogEntry]:
        """Non-empty entries, most-used first; ties keep first-seen order."""
        entries = [e for e in self.entries.values() if e.tile_id != self.empty_tile_id]
        return sorted(entries, key=lambda e: -e.count)

    @property
    def total(self) -> int:
        return sum(e.count for e in self.counted_entries())


def _resolve_start_tile(entries: Dict[str, CatalogEntry], empty_tile_id: str) -> Optional[str]:
    candidates = [
        tile_id for tile_id, entry in entries.items()
        if tile_id != empty_tile_id and entry.contains_state(State.START)
    ]
    if len(candidates) > 1:
        raise AmbiguousStartTileError(candidates)
    return candidates[0] if candidates else None


def build_catalog(dataset: Dataset, hasher: TileHasher,
                  empty_tile_id: Optional[str] = None,
                  start_tile_id: Optional[str] = None) -> Catalog:
    """Hash every tile of every map in one row-major pass.

    Args:
        dataset: Decoded maps in their fixed order.
        hasher: Keyed hasher producing the tile ids.
        empty_tile_id: Reserved id of the blank tile.  Defaults to the id of
            an all-EMPTY tile under ``hasher``.
        start_tile_id: Reserved id of the starting tile.  Defaults to the one
            distinct tile containing START pixels, if any.
    """
    n_maps = len(dataset.maps)
    entries: Dict[str, CatalogEntry] = {}
    id_grids = []

    for map_index, tile_map in enumerate(dataset.maps):
        rows, cols = tile_map.grid_shape
        grid = [[""] * cols for _ in range(rows)]
        for row, col, tile in tile_map.iter_tiles():
            d = hasher.digest(tile)
            entry = entries.get(d.tile_id)
            if entry is None:
                entry = CatalogEntry(
                    tile_id=d.tile_id,
                    digest=d.digest,
                    tile=tile,
                    per_map_counts=[0] * n_maps,
                )
                entries[d.tile_id] = entry
            elif entry.digest != d.digest:
                raise TileIdCollisionError(d.tile_id, entry.digest, d.digest)

            entry.per_map_counts[map_index] += 1
            entry.positions.setdefault(map_index, []).append((row, col))
            grid[row][col] = d.tile_id
        id_grids.append(tuple(tuple(r) for r in grid))

    if empty_tile_id is None:
        empty_tile_id = hasher.empty_tile_id(dataset.layout.tile_shape)
    if start_tile_id is None:
        start_tile_id = _resolve_start_tile(entries, empty_tile_id)

    catalog = Catalog(
        entries=entries,
        id_grids=tuple(id_grids),
        empty_tile_id=empty_tile_id,
        start_tile_id=start_tile_id,
    )
    logger.info(
        "Catalogued %d distinct tiles (%d physical copies) from %d maps; start tile %s",
        len(catalog.counted_entries()), catalog.total, n_maps, start_tile_id,
    )
    return catalog


def format_count_report(catalog: Catalog) -> str:
    lines = [f"{e.tile_id}: {e.count}" for e in catalog.counted_entries()]
    return f"total: {catalog.total}\n\n" + "\n".join(lines)


def write_manifest(catalog: Catalog, path: Path) -> Path:
    """Write one JSON line per non-empty catalog entry."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        for entry in catalog.counted_entries():
            f.write(json.dumps(entry.to_dict()) + "\n")
    logger.info("Wrote catalog manifest → %s", path)
    return path
