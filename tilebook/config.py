"""Tilebook configuration: terrain states, colour table, map layout, run knobs."""

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple


# ---------------------------------------------------------------------------
# Terrain states and their exact RGBA colours
# ---------------------------------------------------------------------------

class State(int, Enum):
    EMPTY = 0
    WALL = 1
    PATH = 2
    START = 3


STATE_COLORS: Dict[State, Tuple[int, int, int, int]] = {
    State.EMPTY: (65, 64, 64, 255),
    State.WALL: (0, 0, 0, 255),
    State.PATH: (255, 0, 0, 255),
    State.START: (255, 255, 255, 255),
}


# ---------------------------------------------------------------------------
# Compass directions (row grows southward, column grows eastward)
# ---------------------------------------------------------------------------

class Direction(str, Enum):
    NORTH = "n"
    EAST = "e"
    SOUTH = "s"
    WEST = "w"

    @property
    def offset(self) -> Tuple[int, int]:
        """(row, col) delta to the neighbouring cell."""
        return _DIRECTION_OFFSETS[self]


_DIRECTION_OFFSETS = {
    Direction.NORTH: (-1, 0),
    Direction.EAST: (0, 1),
    Direction.SOUTH: (1, 0),
    Direction.WEST: (0, -1),
}

# Order in which reveal lines are written for one occurrence
REVEAL_ORDER = (Direction.NORTH, Direction.EAST, Direction.SOUTH, Direction.WEST)


# ---------------------------------------------------------------------------
# Map geometry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MapLayout:
    """Tile grid of one mission map and the pixel size of each tile."""
    map_height_tiles: int = 7
    map_width_tiles: int = 5
    tile_height_px: int = 4
    tile_width_px: int = 8

    @property
    def map_width_px(self) -> int:
        return self.map_width_tiles * self.tile_width_px

    @property
    def map_height_px(self) -> int:
        return self.map_height_tiles * self.tile_height_px

    @property
    def tiles_per_map(self) -> int:
        return self.map_height_tiles * self.map_width_tiles

    @property
    def grid_shape(self) -> Tuple[int, int]:
        return (self.map_height_tiles, self.map_width_tiles)

    @property
    def tile_shape(self) -> Tuple[int, int]:
        return (self.tile_height_px, self.tile_width_px)


DEFAULT_SECRET = "abcdefg"
SECRET_ENV_VAR = "TILEBOOK_SECRET"

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".webp", ".tif", ".tiff"}


@dataclass
class TilebookConfig:
    """Top-level run configuration."""
    # Directories
    maps_dir: Path = Path("maps")
    output_dir: Path = Path("output")

    # Artifact names, relative to output_dir
    count_report_name: str = "tile-count.txt"
    rules_report_name: str = "reveal-tile.txt"
    tiles_dir_name: str = "unique-tiles"
    scaled_tiles_dir_name: str = "unique-tilesx100"
    manifest_name: str = "catalog.jsonl"

    # Tile identity
    secret_key: str = field(
        default_factory=lambda: os.environ.get(SECRET_ENV_VAR, DEFAULT_SECRET)
    )
    id_length: int = 8
    empty_tile_id: Optional[str] = None   # derived from the all-EMPTY tile if unset
    start_tile_id: Optional[str] = None   # derived from START pixels if unset

    # Presentation
    board_origin: Tuple[int, int] = (2, 3)  # (col, row) of the board's centre cell
    scale: int = 100

    # Execution
    workers: int = 1
    recursive: bool = True

    layout: MapLayout = field(default_factory=MapLayout)

    @property
    def count_report_path(self) -> Path:
        return self.output_dir / self.count_report_name

    @property
    def rules_report_path(self) -> Path:
        return self.output_dir / self.rules_report_name

    @property
    def tiles_dir(self) -> Path:
        return self.output_dir / self.tiles_dir_name

    @property
    def scaled_tiles_dir(self) -> Path:
        return self.output_dir / self.scaled_tiles_dir_name

    @property
    def manifest_path(self) -> Path:
        return self.output_dir / self.manifest_name

    def ensure_dirs(self):
        for d in [self.output_dir, self.tiles_dir, self.scaled_tiles_dir]:
            d.mkdir(parents=True, exist_ok=True)

    def to_dict(self) -> dict:
        d = {}
        for k, v in self.__dict__.items():
            if isinstance(v, Path):
                d[k] = str(v)
            elif isinstance(v, MapLayout):
                d[k] = dict(v.__dict__)
            elif isinstance(v, tuple):
                d[k] = list(v)
            else:
                d[k] = v
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "TilebookConfig":
        d = {k: v for k, v in d.items() if k in cls.__dataclass_fields__}
        for key in ("maps_dir", "output_dir"):
            if key in d:
                d[key] = Path(d[key])
        if "board_origin" in d:
            d["board_origin"] = tuple(d["board_origin"])
        if isinstance(d.get("layout"), dict):
            d["layout"] = MapLayout(**d["layout"])
        return cls(**d)

    @classmethod
    def from_json(cls, path: Path) -> "TilebookConfig":
        with open(path) as f:
            return cls.from_dict(json.load(f))
