"""Errors raised while turning map images into a tile catalog and reveal rules.

All of them are fatal for a run: terrain is never guessed, so the source
asset has to be fixed and the run repeated.
"""

from typing import Optional, Sequence, Tuple


class TilebookError(Exception):
    """Base class for every tilebook failure.

    Subclasses record their constructor arguments in ``_init_args`` so the
    error survives the trip back from a worker process.
    """

    _init_args: Tuple = ()

    def __reduce__(self):
        if type(self) is TilebookError:
            return (TilebookError, self.args)
        return (type(self), self._init_args)


class UnknownPixelError(TilebookError, ValueError):
    """A pixel colour is not one of the four terrain colours."""

    def __init__(self, color: Tuple[int, ...], source: Optional[str] = None,
                 x: Optional[int] = None, y: Optional[int] = None):
        self._init_args = (color, source, x, y)
        self.color = tuple(int(c) for c in color)
        self.source = source
        self.x = x
        self.y = y
        where = ""
        if source is not None:
            where += f" in {source}"
        if x is not None and y is not None:
            where += f" at ({x}, {y})"
        super().__init__(f"Unknown pixel {':'.join(str(c) for c in self.color)}{where}")


class UnknownStateError(TilebookError, ValueError):
    def __init__(self, state):
        self._init_args = (state,)
        self.state = state
        super().__init__(f"Unknown state {state!r}")


class MalformedImageError(TilebookError):
    """Decoded pixel buffer does not fit the expected map size."""

    def __init__(self, source: Optional[str], expected, actual):
        self._init_args = (source, expected, actual)
        self.source = source
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Malformed map image {source or '<buffer>'}: "
            f"expected {expected}, got {actual}"
        )


class InconsistentMapDimensionsError(TilebookError):
    def __init__(self, source: Optional[str], expected: Tuple[int, int],
                 actual: Tuple[int, int]):
        self._init_args = (source, expected, actual)
        self.source = source
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Map {source or '<unnamed>'} has a {actual[0]}x{actual[1]} tile grid, "
            f"expected {expected[0]}x{expected[1]}"
        )


class BoundaryExitError(TilebookError):
    """An open edge of a placed tile points off the map grid."""

    def __init__(self, tile_id: str, map_index: int, row: int, col: int, direction):
        self._init_args = (tile_id, map_index, row, col, direction)
        self.tile_id = tile_id
        self.map_index = map_index
        self.row = row
        self.col = col
        self.direction = direction
        super().__init__(
            f"Tile {tile_id} at row {row}, col {col} of map {map_index + 1} "
            f"opens {direction.name.lower()} past the edge of the grid"
        )


class TileIdCollisionError(TilebookError):
    """Two different tile contents truncate to the same short id."""

    def __init__(self, tile_id: str, first_digest: str, second_digest: str):
        self._init_args = (tile_id, first_digest, second_digest)
        self.tile_id = tile_id
        self.first_digest = first_digest
        self.second_digest = second_digest
        super().__init__(
            f"Tile id {tile_id} is shared by digests {first_digest} and {second_digest}; "
            f"increase id_length or change the secret key"
        )


class AmbiguousStartTileError(TilebookError):
    def __init__(self, tile_ids: Sequence[str]):
        self._init_args = (list(tile_ids),)
        self.tile_ids = list(tile_ids)
        super().__init__(
            "Several distinct tiles contain start pixels "
            f"({', '.join(self.tile_ids)}); set start_tile_id explicitly"
        )
