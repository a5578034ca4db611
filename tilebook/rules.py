"""Build the reveal rules: which neighbour to uncover when leaving a tile.

For every narratable tile (see ``ConnectivityAnalyzer.is_decision_point``) and
every place it is laid on a mission map, each open edge names the tile on the
other side of it.  This module only decides *which* neighbour and *which*
direction; wording lives in ``tilebook.templates``.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from tilebook.catalog import Catalog
from tilebook.config import REVEAL_ORDER, Direction, MapLayout
from tilebook.connectivity import ConnectivityAnalyzer
from tilebook.dataset import Dataset
from tilebook.errors import BoundaryExitError
from tilebook.templates import render_rules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reveal:
    direction: Direction
    tile_id: str


@dataclass(frozen=True)
class Placement:
    """One occurrence of a tile on a map and the reveals it triggers."""
    map_index: int
    row: int
    col: int
    reveals: Tuple[Reveal, ...]


@dataclass(frozen=True)
class TileRules:
    tile_id: str
    is_start: bool
    placements: Tuple[Placement, ...]

    def by_map(self) -> Dict[int, List[Placement]]:
        grouped: Dict[int, List[Placement]] = {}
        for placement in self.placements:
            grouped.setdefault(placement.map_index, []).append(placement)
        return grouped


def rule_order(catalog: Catalog) -> List[str]:
    """Start tile first, then every other id in ascending order."""
    ids = sorted(catalog.entries)
    start = catalog.start_tile_id
    if start in catalog.entries:
        ids.remove(start)
        ids.insert(0, start)
    return ids


def _neighbour(catalog: Catalog, layout: MapLayout, tile_id: str, map_index: int,
               row: int, col: int, direction: Direction) -> str:
    d_row, d_col = direction.offset
    n_row, n_col = row + d_row, col + d_col
    rows, cols = layout.grid_shape
    if not (0 <= n_row < rows and 0 <= n_col < cols):
        raise BoundaryExitError(tile_id, map_index, row, col, direction)
    return catalog.tile_id_at(map_index, n_row, n_col)


def build_rules(dataset: Dataset, catalog: Catalog,
                analyzer: Optional[ConnectivityAnalyzer] = None) -> List[TileRules]:
    """Walk the catalog's position index and collect the reveals per tile."""
    if analyzer is None:
        analyzer = ConnectivityAnalyzer.from_catalog(catalog)

    rules: List[TileRules] = []
    skipped = 0
    for tile_id in rule_order(catalog):
        if tile_id == catalog.empty_tile_id:
            continue
        if not analyzer.is_decision_point(tile_id):
            skipped += 1
            continue

        open_dirs = analyzer.open_directions(tile_id)
        placements = []
        for map_index, cells in sorted(catalog[tile_id].positions.items()):
            for row, col in cells:
                reveals = []
                for direction in REVEAL_ORDER:
                    if direction not in open_dirs:
                        continue
                    neighbour = _neighbour(catalog, dataset.layout, tile_id,
                                           map_index, row, col, direction)
                    if neighbour == catalog.start_tile_id:
                        continue
                    reveals.append(Reveal(direction, neighbour))
                placements.append(Placement(map_index, row, col, tuple(reveals)))

        rules.append(TileRules(
            tile_id=tile_id,
            is_start=tile_id == catalog.start_tile_id,
            placements=tuple(placements),
        ))

    logger.info("Built reveal rules for %d tiles (%d pass-through tiles skipped)",
                len(rules), skipped)
    return rules


def generate_rule_text(dataset: Dataset, catalog: Catalog,
                       board_origin: Tuple[int, int] = (2, 3),
                       analyzer: Optional[ConnectivityAnalyzer] = None) -> str:
    return render_rules(build_rules(dataset, catalog, analyzer), board_origin=board_origin)
