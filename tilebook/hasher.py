"""Content-addressed tile identities.

A tile's id is a keyed SHA-256 digest of its row-major state sequence,
truncated to a few hex characters so it can be written on a cardboard piece.
The full digest is kept next to the short id so the catalog can detect two
different tiles that happen to share a short id.
"""

import hashlib
import hmac
from dataclasses import dataclass

import numpy as np

from tilebook.config import DEFAULT_SECRET, State


@dataclass(frozen=True)
class TileDigest:
    tile_id: str   # truncated, human-writable
    digest: str    # full hex digest


def canonical_string(tile: np.ndarray) -> str:
    """Row-major state values concatenated, e.g. ``"0011..."``."""
    return "".join(str(int(v)) for v in np.asarray(tile).ravel())


class TileHasher:
    """Keyed hasher; equal tile content always yields an equal id."""

    def __init__(self, secret_key: str = DEFAULT_SECRET, id_length: int = 8):
        if id_length < 1:
            raise ValueError(f"id_length must be positive, got {id_length}")
        self.secret_key = secret_key
        self.id_length = id_length

    def digest(self, tile: np.ndarray) -> TileDigest:
        full = hmac.new(
            self.secret_key.encode("utf-8"),
            canonical_string(tile).encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return TileDigest(tile_id=full[:self.id_length], digest=full)

    def tile_id(self, tile: np.ndarray) -> str:
        return self.digest(tile).tile_id

    def empty_tile_id(self, tile_shape) -> str:
        """Id of a tile made only of EMPTY pixels."""
        return self.tile_id(np.full(tile_shape, int(State.EMPTY), dtype=np.uint8))
