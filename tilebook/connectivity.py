"""Edge and junction analysis for individual tiles.

Both questions are answered by sampling a handful of fixed pixels and testing
them for PATH:

* ``open_directions``: through which edges a neighbouring tile can be reached.
* ``is_decision_point``: whether revealing this tile's neighbours tells the
  player anything new.  The rule order in ``is_decision_point`` comes from
  play-testing the booklet and is not a general graph rule.

Probe positions are given for the 4x8 tile and projected proportionally for
other tile sizes.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

import numpy as np

from tilebook.config import Direction, State

logger = logging.getLogger(__name__)

ALL_DIRECTIONS: FrozenSet[Direction] = frozenset(Direction)


@dataclass(frozen=True)
class ProbeSet:
    """Pixel coordinates, as (row, col), sampled on one tile shape."""
    edges: Tuple[Tuple[int, int, Direction], ...]
    junction: Tuple[Tuple[int, int, str], ...]
    fallback: Tuple[int, int]


def probes_for(tile_shape: Tuple[int, int]) -> ProbeSet:
    h, w = tile_shape
    top, mid, bottom = 0, h // 2, h - 1
    left, right = 0, w - 1
    near, far = w // 8, (5 * w) // 8

    edges = (
        (top, near, Direction.NORTH), (top, far, Direction.NORTH),
        (mid, left, Direction.WEST), (mid, right, Direction.EAST),
        (bottom, near, Direction.SOUTH), (bottom, far, Direction.SOUTH),
    )
    # Labels follow the board artist's compass, mirrored left to right;
    # only the letters they contain matter.
    junction = (
        (top, near, "ne"), (top, far, "nw"),
        (mid, left, "e"), (mid, right, "w"),
        (bottom, near, "se"), (bottom, far, "sw"),
    )
    return ProbeSet(edges=edges, junction=junction, fallback=(h // 4, (3 * w) // 8))


def _is_path(tile: np.ndarray, row: int, col: int) -> bool:
    return int(tile[row, col]) == int(State.PATH)


class ConnectivityAnalyzer:
    """Answers edge and decision-point questions for catalogued tiles.

    ``tiles`` maps tile id to its state matrix (e.g. ``{id: entry.tile}``).
    Results are cached per id since tiles are immutable.
    """

    def __init__(self, tiles, start_tile_id: Optional[str] = None):
        self._tiles = tiles
        self.start_tile_id = start_tile_id
        self._open_cache = {}
        self._decision_cache = {}

    @classmethod
    def from_catalog(cls, catalog) -> "ConnectivityAnalyzer":
        return cls(
            {tile_id: e.tile for tile_id, e in catalog.entries.items()},
            start_tile_id=catalog.start_tile_id,
        )

    def open_directions(self, tile_id: str) -> FrozenSet[Direction]:
        if tile_id == self.start_tile_id:
            return ALL_DIRECTIONS
        if tile_id not in self._open_cache:
            self._open_cache[tile_id] = open_directions(self._tiles[tile_id])
        return self._open_cache[tile_id]

    def is_decision_point(self, tile_id: str) -> bool:
        if tile_id == self.start_tile_id:
            return True
        if tile_id not in self._decision_cache:
            decision = is_decision_point(self._tiles[tile_id])
            logger.debug("Tile %s decision point: %s", tile_id, decision)
            self._decision_cache[tile_id] = decision
        return self._decision_cache[tile_id]


def open_directions(tile: np.ndarray) -> FrozenSet[Direction]:
    """Edges of ``tile`` whose probe pixel is PATH."""
    probes = probes_for(tile.shape)
    return frozenset(d for row, col, d in probes.edges if _is_path(tile, row, col))


def junction_labels(tile: np.ndarray) -> FrozenSet[str]:
    probes = probes_for(tile.shape)
    return frozenset(label for row, col, label in probes.junction if _is_path(tile, row, col))


def is_decision_point(tile: np.ndarray) -> bool:
    labels = junction_labels(tile)

    if len(labels) > 2:
        return True
    if len(labels) == 1:
        return False
    # An empty label set falls through here as a pass-through.
    if all("n" in label for label in labels):
        return False
    if all("s" in label for label in labels):
        return False
    if all("e" in label for label in labels):
        return True
    if all("w" in label for label in labels):
        return True

    row, col = probes_for(tile.shape).fallback
    return _is_path(tile, row, col)
