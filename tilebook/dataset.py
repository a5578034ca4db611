"""Discover mission map images and decode them into an immutable dataset.

Decoding is independent per file and may run in a process pool; the maps are
always re-sorted by source path afterwards so that mission numbers, catalog
statistics and rule text never depend on completion order.
"""

import logging
import multiprocessing
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

import numpy as np

from tilebook.config import IMAGE_EXTENSIONS, MapLayout
from tilebook.decoder import read_map_grid
from tilebook.errors import InconsistentMapDimensionsError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TileMap:
    """One decoded mission map."""
    source: str
    tiles: np.ndarray  # (rows, cols, tile_h, tile_w) uint8 states

    @property
    def grid_shape(self) -> Tuple[int, int]:
        return (int(self.tiles.shape[0]), int(self.tiles.shape[1]))

    def tile(self, row: int, col: int) -> np.ndarray:
        return self.tiles[row, col]

    def iter_tiles(self):
        """Yield ``(row, col, tile)`` in row-major order."""
        rows, cols = self.grid_shape
        for row in range(rows):
            for col in range(cols):
                yield row, col, self.tiles[row, col]


@dataclass(frozen=True)
class Dataset:
    maps: Tuple[TileMap, ...]
    layout: MapLayout

    def __len__(self) -> int:
        return len(self.maps)


def make_tile_map(source: str, tiles: np.ndarray) -> TileMap:
    tiles = np.array(tiles, dtype=np.uint8)
    tiles.setflags(write=False)
    return TileMap(source=str(source), tiles=tiles)


def build_dataset(maps: Iterable[TileMap], layout: MapLayout = MapLayout()) -> Dataset:
    """Validate tile-grid shapes and freeze the map order.

    Maps are kept in the order given; ``load_dataset`` sorts them by path.
    """
    maps = tuple(maps)
    for tile_map in maps:
        if tile_map.grid_shape != layout.grid_shape:
            raise InconsistentMapDimensionsError(
                tile_map.source, layout.grid_shape, tile_map.grid_shape,
            )
        if tuple(tile_map.tiles.shape[2:]) != layout.tile_shape:
            raise InconsistentMapDimensionsError(
                tile_map.source, layout.tile_shape, tuple(tile_map.tiles.shape[2:]),
            )
        # arrays coming back from worker processes are writeable again
        tile_map.tiles.setflags(write=False)
    return Dataset(maps=maps, layout=layout)


def gather_map_paths(sources: Sequence[Path], recursive: bool = True) -> List[Path]:
    """Collect map image files from the provided files and directories."""
    seen: set = set()
    images: List[Path] = []

    for source in sources:
        source = Path(source)
        if source.is_dir():
            iterator = source.rglob("*") if recursive else source.iterdir()
            for candidate in iterator:
                if not candidate.is_file():
                    continue
                if candidate.suffix.lower() not in IMAGE_EXTENSIONS:
                    logger.warning("Skipping non-image file: %s", candidate)
                    continue
                resolved = candidate.resolve()
                if resolved not in seen:
                    seen.add(resolved)
                    images.append(resolved)
        elif source.is_file():
            if source.suffix.lower() not in IMAGE_EXTENSIONS:
                logger.warning("Skipping unsupported file: %s", source)
                continue
            resolved = source.resolve()
            if resolved not in seen:
                seen.add(resolved)
                images.append(resolved)
        else:
            logger.warning("Input path not found: %s", source)

    images.sort()
    return images


def read_map(path: Path, layout: MapLayout = MapLayout()) -> TileMap:
    return make_tile_map(str(path), read_map_grid(path, layout))


def load_dataset(paths: Sequence[Path], layout: MapLayout = MapLayout(),
                 workers: int = 1) -> Dataset:
    """Decode every map image and build the dataset in sorted path order."""
    paths = sorted(Path(p) for p in paths)
    if workers > 1 and len(paths) > 1:
        with multiprocessing.Pool(processes=min(workers, len(paths))) as pool:
            maps = pool.starmap(read_map, [(p, layout) for p in paths])
    else:
        maps = [read_map(p, layout) for p in paths]

    maps.sort(key=lambda m: m.source)
    logger.info("Decoded %d maps (%d tiles each)", len(maps), layout.tiles_per_map)
    return build_dataset(maps, layout)
