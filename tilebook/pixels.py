"""Map RGBA colours to terrain states and back.

Only the four exact colours in ``STATE_COLORS`` are accepted.  Anything else
raises instead of falling back to a default state, since a misread wall would
silently open a corridor on the printed board.
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from tilebook.config import STATE_COLORS, State
from tilebook.errors import UnknownPixelError, UnknownStateError

logger = logging.getLogger(__name__)

_COLOR_TO_STATE = {color: state for state, color in STATE_COLORS.items()}


def _pack(rgba: np.ndarray) -> np.ndarray:
    """Pack an (..., 4) uint8 array into one uint32 per pixel."""
    rgba = rgba.astype(np.uint32)
    return (rgba[..., 0] << 24) | (rgba[..., 1] << 16) | (rgba[..., 2] << 8) | rgba[..., 3]


_PACKED_KEYS = np.array(
    [(r << 24) | (g << 16) | (b << 8) | a for r, g, b, a in _COLOR_TO_STATE],
    dtype=np.uint32,
)
_PACKED_STATES = np.array([int(s) for s in _COLOR_TO_STATE.values()], dtype=np.uint8)


def classify(color: Sequence[int]) -> State:
    """Return the terrain state for one RGBA quad."""
    key = tuple(int(c) for c in color)
    state = _COLOR_TO_STATE.get(key)
    if state is None:
        raise UnknownPixelError(key)
    return state


def to_color(state) -> Tuple[int, int, int, int]:
    """Return the RGBA quad used to draw ``state``."""
    try:
        return STATE_COLORS[State(state)]
    except (ValueError, KeyError):
        raise UnknownStateError(state) from None


def classify_pixels(rgba: np.ndarray, source: Optional[str] = None) -> np.ndarray:
    """Classify an (H, W, 4) RGBA image into an (H, W) uint8 state array.

    The first pixel outside the palette (row-major) is reported with its
    coordinate and colour.
    """
    if rgba.ndim != 3 or rgba.shape[2] != 4:
        raise ValueError(f"Expected an (H, W, 4) RGBA array, got shape {rgba.shape}")

    packed = _pack(rgba)
    order = np.argsort(_PACKED_KEYS)
    keys = _PACKED_KEYS[order]
    idx = np.clip(np.searchsorted(keys, packed), 0, len(keys) - 1)
    known = keys[idx] == packed

    if not np.all(known):
        ys, xs = np.nonzero(~known)
        y, x = int(ys[0]), int(xs[0])
        logger.debug("%d unknown pixels in %s", len(ys), source or "<buffer>")
        raise UnknownPixelError(tuple(rgba[y, x]), source=source, x=x, y=y)

    return _PACKED_STATES[order][idx]


def states_to_rgba(states: np.ndarray) -> np.ndarray:
    """Render an (H, W) state array as an (H, W, 4) uint8 RGBA image."""
    palette = np.zeros((len(State), 4), dtype=np.uint8)
    for state in State:
        palette[int(state)] = to_color(state)

    values = np.asarray(states)
    bad = (values < 0) | (values >= len(State))
    if np.any(bad):
        raise UnknownStateError(values[bad].flat[0].item())
    return palette[values.astype(np.intp)]
