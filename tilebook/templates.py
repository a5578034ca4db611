"""Fixed wording of the printed reveal-rule booklet.

The text is Portuguese because that is the language the booklet is printed
in; output must stay byte-identical so existing page layouts keep working.
"""

from typing import Iterable, List, Tuple

from tilebook.config import Direction

START_HEADING = "Do ponto de partida"
TILE_HEADING = "Peça {tile_id}"
MISSION_HEADING = "Jogando missão {mission}"
POSITION_HEADING = "Na posição {x}, {y}"

REVEAL_LINES = {
    Direction.NORTH: "Ao norte revele a peça {tile_id}",
    Direction.EAST: "Ao leste revele a peça {tile_id}",
    Direction.SOUTH: "Ao sul revele a peça {tile_id}",
    Direction.WEST: "Ao oeste revele a peça {tile_id}",
}

INDENT = "\t"


def board_position(row: int, col: int, board_origin: Tuple[int, int]) -> Tuple[int, int]:
    """Board coordinates (x east, y north) relative to the origin cell."""
    origin_col, origin_row = board_origin
    return col - origin_col, origin_row - row


def _line(depth: int, text: str) -> str:
    return INDENT * depth + text + "\n"


def render_rules(rules: Iterable, board_origin: Tuple[int, int] = (2, 3)) -> str:
    """Render ``TileRules`` as the tab-indented outline printed in the booklet.

    A mission level is added when a tile is used in more than one map, and a
    position level when it is used more than once in the same map.
    """
    out: List[str] = []
    for tile_rules in rules:
        if tile_rules.is_start:
            out.append(_line(0, START_HEADING))
        else:
            out.append(_line(0, TILE_HEADING.format(tile_id=tile_rules.tile_id)))

        by_map = tile_rules.by_map()
        depth = 0
        for map_index, placements in by_map.items():
            if len(by_map) > 1:
                depth += 1
                out.append(_line(depth, MISSION_HEADING.format(mission=map_index + 1)))
            for placement in placements:
                if len(placements) > 1:
                    depth += 1
                    x, y = board_position(placement.row, placement.col, board_origin)
                    out.append(_line(depth, POSITION_HEADING.format(x=x, y=y)))
                for reveal in placement.reveals:
                    out.append(_line(depth + 1, REVEAL_LINES[reveal.direction].format(
                        tile_id=reveal.tile_id)))
                if len(placements) > 1:
                    depth -= 1
            if len(by_map) > 1:
                depth -= 1
    return "".join(out)
