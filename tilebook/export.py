"""Write the run's artifacts: tile images and plain-text reports.

Each distinct non-empty tile is saved twice, named by its id:
  unique-tiles/<id>.png       native resolution, one pixel per state
  unique-tilesx100/<id>.png   every pixel blown up to a scale x scale block
"""

import logging
from multiprocessing.pool import ThreadPool
from pathlib import Path
from typing import List, Tuple

import cv2
import numpy as np
from PIL import Image

from tilebook.catalog import Catalog
from tilebook.pixels import states_to_rgba

logger = logging.getLogger(__name__)


def render_tile(tile: np.ndarray, scale: int = 1) -> np.ndarray:
    """RGBA image of a tile, nearest-neighbour scaled by ``scale``."""
    rgba = states_to_rgba(tile)
    if scale == 1:
        return rgba
    h, w = rgba.shape[:2]
    return cv2.resize(rgba, (w * scale, h * scale), interpolation=cv2.INTER_NEAREST)


def save_tile_images(tile_id: str, tile: np.ndarray, tiles_dir: Path,
                     scaled_dir: Path, scale: int = 100) -> Tuple[Path, Path]:
    native = tiles_dir / f"{tile_id}.png"
    scaled = scaled_dir / f"{tile_id}.png"
    Image.fromarray(render_tile(tile), "RGBA").save(native)
    Image.fromarray(render_tile(tile, scale), "RGBA").save(scaled)
    return native, scaled


def export_tiles(catalog: Catalog, tiles_dir: Path, scaled_dir: Path,
                 scale: int = 100, workers: int = 1) -> List[Path]:
    """Save every non-empty catalog tile; returns the native-size paths."""
    tiles_dir.mkdir(parents=True, exist_ok=True)
    scaled_dir.mkdir(parents=True, exist_ok=True)

    jobs = [
        (e.tile_id, e.tile, tiles_dir, scaled_dir, scale)
        for e in catalog.entries.values()
        if e.tile_id != catalog.empty_tile_id
    ]
    if workers > 1 and len(jobs) > 1:
        with ThreadPool(processes=workers) as pool:
            saved = pool.starmap(save_tile_images, jobs)
    else:
        saved = [save_tile_images(*job) for job in jobs]

    logger.info("Saved %d tile images → %s (x%d → %s)",
                len(saved), tiles_dir, scale, scaled_dir)
    return [native for native, _ in saved]


def write_text(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)
    logger.info("Wrote %s", path)
    return path
