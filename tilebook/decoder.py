"""Slice a decoded map image into its grid of tiles.

A map image is ``map_height_tiles x map_width_tiles`` tiles, each
``tile_height_px x tile_width_px`` pixels.  For the tile at (row, col) the
pixel at local offset (a, b) lives at flat index::

    row * image_width * tile_height_px + col * tile_width_px + a * image_width + b
"""

import logging
from pathlib import Path
from typing import Optional

import numpy as np
from PIL import Image

from tilebook.config import MapLayout
from tilebook.errors import MalformedImageError
from tilebook.pixels import classify_pixels

logger = logging.getLogger(__name__)


def load_image_rgba(path) -> np.ndarray:
    """Return uint8 RGBA pixels with shape (H, W, 4)."""
    with Image.open(path) as img:
        return np.array(img.convert("RGBA"), dtype=np.uint8)


def tile_pixel_indices(image_width: int, layout: MapLayout) -> np.ndarray:
    """Flat pixel index of every tile pixel, shaped (rows, cols, a, b)."""
    rows = np.arange(layout.map_height_tiles) * image_width * layout.tile_height_px
    cols = np.arange(layout.map_width_tiles) * layout.tile_width_px
    a = np.arange(layout.tile_height_px) * image_width
    b = np.arange(layout.tile_width_px)
    return (
        rows[:, None, None, None]
        + cols[None, :, None, None]
        + a[None, None, :, None]
        + b[None, None, None, :]
    )


def decode(pixels: np.ndarray, image_width: int, layout: MapLayout = MapLayout(),
           source: Optional[str] = None) -> np.ndarray:
    """Decode a flat RGBA pixel buffer into a tile grid.

    Args:
        pixels: (N, 4) uint8 RGBA values in row-major image order.
        image_width: Width of the source image in pixels.
        layout: Map and tile geometry.
        source: Name used in error messages.

    Returns:
        uint8 state array of shape (map_height_tiles, map_width_tiles,
        tile_height_px, tile_width_px).
    """
    pixels = np.asarray(pixels)
    if pixels.ndim != 2 or pixels.shape[1] != 4:
        raise MalformedImageError(source, "an (N, 4) RGBA buffer", f"shape {pixels.shape}")
    if image_width != layout.map_width_px:
        raise MalformedImageError(
            source, f"width {layout.map_width_px}px", f"{image_width}px",
        )

    expected = layout.map_height_px * image_width
    if pixels.shape[0] != expected:
        raise MalformedImageError(source, f"{expected} pixels", f"{pixels.shape[0]} pixels")

    states = classify_pixels(pixels.reshape(-1, image_width, 4), source=source).ravel()
    grid = states[tile_pixel_indices(image_width, layout)]
    logger.debug("Decoded %s into %dx%d tiles", source or "<buffer>", *layout.grid_shape)
    return grid


def decode_image(rgba: np.ndarray, layout: MapLayout = MapLayout(),
                 source: Optional[str] = None) -> np.ndarray:
    """Decode an (H, W, 4) image array into a tile grid."""
    h, w = rgba.shape[:2]
    return decode(rgba.reshape(h * w, -1), w, layout=layout, source=source)


def read_map_grid(path: Path, layout: MapLayout = MapLayout()) -> np.ndarray:
    """Load and decode one map image from disk."""
    rgba = load_image_rgba(path)
    return decode_image(rgba, layout=layout, source=str(path))
