"""Tests for pixel classification, map decoding, tile hashing and the catalog."""

from __future__ import annotations

import json
import pickle
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from tilebook.catalog import build_catalog, format_count_report, write_manifest
from tilebook.config import Direction, MapLayout, State, TilebookConfig
from tilebook.dataset import build_dataset, gather_map_paths, load_dataset, make_tile_map
from tilebook.decoder import decode, decode_image, tile_pixel_indices
from tilebook.errors import (
    AmbiguousStartTileError,
    BoundaryExitError,
    InconsistentMapDimensionsError,
    MalformedImageError,
    TileIdCollisionError,
    TilebookError,
    UnknownPixelError,
    UnknownStateError,
)
from tilebook.hasher import TileHasher, canonical_string
from tilebook.pixels import classify, classify_pixels, states_to_rgba, to_color

LAYOUT = MapLayout()


# ---------------------------------------------------------------------------
# Synthetic map helpers
# ---------------------------------------------------------------------------


def _tile(paths=(), fill: State = State.WALL) -> np.ndarray:
    """A 4x8 tile of ``fill`` with PATH at the given (row, col) cells."""
    tile = np.full(LAYOUT.tile_shape, int(fill), dtype=np.uint8)
    for r, c in paths:
        tile[r, c] = int(State.PATH)
    return tile


def _empty_tile() -> np.ndarray:
    return _tile(fill=State.EMPTY)


def _grid(placements=None) -> np.ndarray:
    """A 7x5 tile grid of empty tiles with ``{(row, col): tile}`` placed."""
    grid = np.zeros(LAYOUT.grid_shape + LAYOUT.tile_shape, dtype=np.uint8)
    for (r, c), tile in (placements or {}).items():
        grid[r, c] = tile
    return grid


def _grid_to_rgba(grid: np.ndarray) -> np.ndarray:
    rows, cols, th, tw = grid.shape
    states = grid.transpose(0, 2, 1, 3).reshape(rows * th, cols * tw)
    return states_to_rgba(states)


def _save_map(path: Path, grid: np.ndarray) -> Path:
    Image.fromarray(_grid_to_rgba(grid), "RGBA").save(path)
    return path


def _dataset(*grids):
    maps = [make_tile_map(f"map_{i}.png", g) for i, g in enumerate(grids)]
    return build_dataset(maps, LAYOUT)


# ---------------------------------------------------------------------------
# Tests: pixel classification
# ---------------------------------------------------------------------------


class TestPixels:
    def test_classify_known_colors(self):
        assert classify((65, 64, 64, 255)) == State.EMPTY
        assert classify((0, 0, 0, 255)) == State.WALL
        assert classify((255, 0, 0, 255)) == State.PATH
        assert classify((255, 255, 255, 255)) == State.START

    def test_classify_rejects_unknown_color(self):
        with pytest.raises(UnknownPixelError):
            classify((255, 0, 0, 128))

    def test_to_color_inverse(self):
        for state in State:
            assert classify(to_color(state)) == state

    def test_to_color_rejects_unknown_state(self):
        with pytest.raises(UnknownStateError):
            to_color(9)

    def test_classify_pixels_reports_location(self):
        rgba = states_to_rgba(np.ones((6, 10), dtype=np.uint8))
        rgba[4, 7] = (10, 20, 30, 255)
        with pytest.raises(UnknownPixelError) as info:
            classify_pixels(rgba, source="bad.png")
        err = info.value
        assert (err.x, err.y) == (7, 4)
        assert err.color == (10, 20, 30, 255)
        assert "bad.png" in str(err)

    def test_states_to_rgba_rejects_bad_state(self):
        with pytest.raises(UnknownStateError):
            states_to_rgba(np.array([[0, 7]], dtype=np.uint8))


# ---------------------------------------------------------------------------
# Tests: map decoding
# ---------------------------------------------------------------------------


class TestDecoder:
    def test_pixel_index_formula(self):
        idx = tile_pixel_indices(40, LAYOUT)
        assert idx.shape == (7, 5, 4, 8)
        assert idx[1, 2, 3, 4] == 1 * 40 * 4 + 2 * 8 + 3 * 40 + 4
        assert idx[0, 0, 0, 0] == 0
        assert idx[6, 4, 3, 7] == 28 * 40 - 1

    def test_decode_places_tiles(self):
        junction = _tile([(0, 1), (2, 0), (2, 7)])
        grid = _grid({(2, 3): junction, (6, 4): _tile()})
        decoded = decode_image(_grid_to_rgba(grid), LAYOUT)
        assert decoded.shape == (7, 5, 4, 8)
        assert np.array_equal(decoded[2, 3], junction)
        assert np.array_equal(decoded[6, 4], _tile())
        assert np.array_equal(decoded[0, 0], _empty_tile())

    def test_decode_rejects_wrong_length(self):
        pixels = np.tile(np.array([65, 64, 64, 255], dtype=np.uint8), (40 * 27, 1))
        with pytest.raises(MalformedImageError):
            decode(pixels, 40, LAYOUT, source="short.png")

    def test_decode_rejects_narrow_image(self):
        pixels = np.tile(np.array([65, 64, 64, 255], dtype=np.uint8), (32 * 28, 1))
        with pytest.raises(MalformedImageError):
            decode(pixels, 32, LAYOUT)

    def test_decode_rejects_wide_image(self):
        # a stray colour in columns the map never uses must not be read either
        rgba = np.concatenate([_grid_to_rgba(_grid()), np.zeros((28, 8, 4), dtype=np.uint8)], axis=1)
        with pytest.raises(MalformedImageError) as info:
            decode_image(rgba, LAYOUT, source="wide.png")
        assert info.value.actual == "48px"

    def test_decode_unknown_pixel_is_fatal(self):
        rgba = _grid_to_rgba(_grid())
        rgba[0, 0] = (1, 2, 3, 255)
        with pytest.raises(UnknownPixelError):
            decode_image(rgba, LAYOUT)


# ---------------------------------------------------------------------------
# Tests: hashing
# ---------------------------------------------------------------------------


class TestHasher:
    def test_canonical_string_is_row_major(self):
        tile = _empty_tile()
        tile[0, 1] = 2
        tile[1, 0] = 3
        assert canonical_string(tile) == "02000000" + "30000000" + "0" * 16

    def test_known_digest(self):
        hasher = TileHasher("abcdefg")
        assert hasher.tile_id(_empty_tile()) == "a23eb681"
        assert hasher.tile_id(_tile()) == "381dff68"

    def test_deterministic(self):
        hasher = TileHasher("abcdefg")
        tile = _tile([(0, 1), (3, 5)])
        assert hasher.digest(tile) == hasher.digest(tile.copy())

    def test_distinct_content_distinct_ids(self):
        hasher = TileHasher("abcdefg")
        ids = {hasher.tile_id(_tile([(r, c)])) for r in range(4) for c in range(8)}
        assert len(ids) == 32

    def test_full_digest_kept(self):
        d = TileHasher("abcdefg", id_length=8).digest(_tile())
        assert len(d.digest) == 64
        assert d.digest.startswith(d.tile_id)
        assert len(d.tile_id) == 8

    def test_secret_changes_ids(self):
        assert TileHasher("one").tile_id(_tile()) != TileHasher("two").tile_id(_tile())


# ---------------------------------------------------------------------------
# Tests: dataset
# ---------------------------------------------------------------------------


class TestDataset:
    def test_rejects_mismatched_grid(self):
        small = np.zeros((6, 5, 4, 8), dtype=np.uint8)
        with pytest.raises(InconsistentMapDimensionsError):
            build_dataset([make_tile_map("a.png", _grid()), make_tile_map("b.png", small)], LAYOUT)

    def test_maps_are_read_only(self):
        ds = _dataset(_grid())
        with pytest.raises(ValueError):
            ds.maps[0].tiles[0, 0, 0, 0] = 1

    def test_load_sorts_by_path(self, tmp_path):
        maps_dir = tmp_path / "maps"
        (maps_dir / "nested").mkdir(parents=True)
        _save_map(maps_dir / "b.png", _grid({(0, 0): _tile()}))
        _save_map(maps_dir / "nested" / "c.png", _grid())
        _save_map(maps_dir / "a.png", _grid({(1, 1): _tile()}))
        (maps_dir / "notes.txt").write_text("not a map")

        paths = gather_map_paths([maps_dir], recursive=True)
        assert [p.name for p in paths] == ["a.png", "b.png", "c.png"]

        ds = load_dataset(list(reversed(paths)), LAYOUT)
        assert [Path(m.source).name for m in ds.maps] == ["a.png", "b.png", "c.png"]
        assert np.array_equal(ds.maps[0].tile(1, 1), _tile())

    def test_parallel_load_sorts_by_path(self, tmp_path):
        names = ["d.png", "a.png", "c.png", "b.png"]
        for i, name in enumerate(names):
            _save_map(tmp_path / name, _grid({(i, i): _tile([(0, i)])}))
        paths = gather_map_paths([tmp_path])

        ds = load_dataset(list(reversed(paths)), LAYOUT, workers=2)
        assert [Path(m.source).name for m in ds.maps] == ["a.png", "b.png", "c.png", "d.png"]
        for tile_map in ds.maps:
            i = names.index(Path(tile_map.source).name)
            assert np.array_equal(tile_map.tile(i, i), _tile([(0, i)]))
            assert not tile_map.tiles.flags.writeable

    def test_parallel_load_bad_pixel_fails(self, tmp_path):
        _save_map(tmp_path / "a.png", _grid())
        rgba = _grid_to_rgba(_grid())
        rgba[5, 9] = (12, 34, 56, 255)
        Image.fromarray(rgba, "RGBA").save(tmp_path / "b.png")

        with pytest.raises(UnknownPixelError) as info:
            load_dataset(gather_map_paths([tmp_path]), LAYOUT, workers=2)
        assert (info.value.x, info.value.y) == (9, 5)
        assert info.value.source.endswith("b.png")

    def test_parallel_load_wrong_size_fails(self, tmp_path):
        _save_map(tmp_path / "a.png", _grid())
        Image.fromarray(_grid_to_rgba(_grid())[:24], "RGBA").save(tmp_path / "b.png")
        with pytest.raises(MalformedImageError):
            load_dataset(gather_map_paths([tmp_path]), LAYOUT, workers=2)

    def test_non_recursive_skips_subdirectories(self, tmp_path):
        (tmp_path / "sub").mkdir()
        _save_map(tmp_path / "a.png", _grid())
        _save_map(tmp_path / "sub" / "b.png", _grid())
        assert [p.name for p in gather_map_paths([tmp_path], recursive=False)] == ["a.png"]


# ---------------------------------------------------------------------------
# Tests: catalog
# ---------------------------------------------------------------------------


def _grid_with_copies(tile: np.ndarray, n: int) -> np.ndarray:
    cells = [(r, c) for r in range(7) for c in range(5)][:n]
    return _grid({cell: tile for cell in cells})


class TestCatalog:
    def test_count_is_max_per_map_not_sum(self):
        x = _tile([(2, 0), (2, 7)])
        ds = _dataset(_grid_with_copies(x, 3), _grid_with_copies(x, 5), _grid_with_copies(x, 2))
        hasher = TileHasher("abcdefg")
        catalog = build_catalog(ds, hasher)
        entry = catalog[hasher.tile_id(x)]
        assert entry.per_map_counts == [3, 5, 2]
        assert entry.count == 5
        assert catalog.total == 5

    def test_position_invariance(self):
        x = _tile([(0, 1)])
        ds = _dataset(_grid({(0, 0): x, (4, 3): x}), _grid({(6, 2): x}))
        catalog = build_catalog(ds, TileHasher("k"))
        ids = {catalog.tile_id_at(0, 0, 0), catalog.tile_id_at(0, 4, 3), catalog.tile_id_at(1, 6, 2)}
        assert len(ids) == 1
        (tile_id,) = ids
        assert catalog[tile_id].positions == {0: [(0, 0), (4, 3)], 1: [(6, 2)]}

    def test_positions_are_row_major(self):
        x = _tile()
        ds = _dataset(_grid({(3, 1): x, (0, 4): x, (3, 0): x}))
        catalog = build_catalog(ds, TileHasher("k"))
        tile_id = catalog.tile_id_at(0, 3, 1)
        assert catalog[tile_id].positions[0] == [(0, 4), (3, 0), (3, 1)]

    def test_empty_tile_excluded_from_report(self):
        x = _tile()
        y = _tile([(0, 1)])
        ds = _dataset(_grid({(0, 0): x, (0, 1): y, (0, 2): y}))
        hasher = TileHasher("abcdefg")
        catalog = build_catalog(ds, hasher)
        assert catalog.empty_tile_id == "a23eb681"
        report = format_count_report(catalog)
        assert report == (
            f"total: 3\n\n{hasher.tile_id(y)}: 2\n{hasher.tile_id(x)}: 1"
        )
        assert "a23eb681" not in report

    def test_ties_keep_first_seen_order(self):
        a, b, c = _tile([(0, 1)]), _tile([(0, 5)]), _tile([(2, 0)])
        ds = _dataset(_grid({(0, 0): b, (1, 0): c, (2, 0): a}))
        hasher = TileHasher("k")
        catalog = build_catalog(ds, hasher)
        assert [e.tile_id for e in catalog.counted_entries()] == [
            hasher.tile_id(b), hasher.tile_id(c), hasher.tile_id(a),
        ]

    def test_explicit_reserved_ids(self):
        x = _tile()
        hasher = TileHasher("k")
        ds = _dataset(_grid({(0, 0): x}))
        catalog = build_catalog(ds, hasher, empty_tile_id=hasher.tile_id(x),
                                start_tile_id="f420ed87")
        assert catalog.start_tile_id == "f420ed87"
        assert catalog.empty_tile_id == hasher.tile_id(x)
        assert hasher.tile_id(x) not in [e.tile_id for e in catalog.counted_entries()]

    def test_start_tile_resolved_from_pixels(self):
        start = _tile([(2, 0)])
        start[1, 3] = int(State.START)
        ds = _dataset(_grid({(3, 2): start, (0, 0): _tile()}))
        hasher = TileHasher("k")
        catalog = build_catalog(ds, hasher)
        assert catalog.start_tile_id == hasher.tile_id(start)
        assert catalog.contains_state(catalog.start_tile_id, State.START)

    def test_ambiguous_start_tile(self):
        s1 = _tile()
        s1[0, 0] = int(State.START)
        s2 = _tile()
        s2[3, 7] = int(State.START)
        ds = _dataset(_grid({(0, 0): s1, (1, 1): s2}))
        with pytest.raises(AmbiguousStartTileError):
            build_catalog(ds, TileHasher("k"))

    def test_truncated_id_collision_is_fatal(self):
        # 20 distinct tiles cannot fit in 16 one-character ids
        tiles = {(i // 5, i % 5): _tile([(i // 8, i % 8)]) for i in range(20)}
        ds = _dataset(_grid(tiles))
        with pytest.raises(TileIdCollisionError):
            build_catalog(ds, TileHasher("k", id_length=1))

    def test_write_manifest(self, tmp_path):
        x = _tile([(0, 1)])
        ds = _dataset(_grid({(0, 0): x}), _grid({(2, 2): x, (3, 3): x}))
        hasher = TileHasher("k")
        catalog = build_catalog(ds, hasher)
        path = write_manifest(catalog, tmp_path / "out" / "catalog.jsonl")
        records = [json.loads(line) for line in path.read_text().splitlines()]
        assert len(records) == 1
        rec = records[0]
        assert rec["tile_id"] == hasher.tile_id(x)
        assert rec["count"] == 2
        assert rec["positions"] == {"1": [[0, 0]], "2": [[2, 2], [3, 3]]}
        assert rec["states"][0][1] == int(State.PATH)


# ---------------------------------------------------------------------------
# Tests: errors
# ---------------------------------------------------------------------------


class TestErrors:
    @pytest.mark.parametrize("err", [
        UnknownPixelError((1, 2, 3, 255), source="a.png", x=1, y=2),
        UnknownPixelError(tuple(np.array([9, 9, 9, 9], dtype=np.uint8))),
        UnknownStateError(7),
        MalformedImageError("a.png", "1120 pixels", "960 pixels"),
        InconsistentMapDimensionsError("a.png", (7, 5), (6, 5)),
        BoundaryExitError("abcd1234", 0, 0, 2, Direction.NORTH),
        TileIdCollisionError("a", "a1", "a2"),
        AmbiguousStartTileError(["a", "b"]),
        TilebookError("no maps"),
    ])
    def test_pickle_round_trip(self, err):
        restored = pickle.loads(pickle.dumps(err))
        assert type(restored) is type(err)
        assert str(restored) == str(err)
        assert restored.__dict__.keys() >= {k for k in err.__dict__ if k != "_init_args"}

    def test_pixel_error_keeps_context(self):
        restored = pickle.loads(pickle.dumps(UnknownPixelError((1, 2, 3, 255), "a.png", 4, 5)))
        assert (restored.color, restored.source, restored.x, restored.y) == (
            (1, 2, 3, 255), "a.png", 4, 5,
        )


# ---------------------------------------------------------------------------
# Tests: configuration
# ---------------------------------------------------------------------------


class TestConfig:
    def test_round_trip(self, tmp_path):
        cfg = TilebookConfig(output_dir=Path("out"), secret_key="s", start_tile_id="abc",
                             board_origin=(1, 1), layout=MapLayout(map_height_tiles=3))
        path = tmp_path / "config.json"
        path.write_text(json.dumps(cfg.to_dict()))
        loaded = TilebookConfig.from_json(path)
        assert loaded.output_dir == Path("out")
        assert loaded.secret_key == "s"
        assert loaded.start_tile_id == "abc"
        assert loaded.board_origin == (1, 1)
        assert loaded.layout == MapLayout(map_height_tiles=3)
        assert loaded.rules_report_path == Path("out") / "reveal-tile.txt"

    def test_secret_from_environment(self, monkeypatch):
        monkeypatch.setenv("TILEBOOK_SECRET", "from-env")
        assert TilebookConfig().secret_key == "from-env"

    def test_layout_derived_sizes(self):
        assert LAYOUT.map_width_px == 40
        assert LAYOUT.map_height_px == 28
        assert LAYOUT.tiles_per_map == 35
