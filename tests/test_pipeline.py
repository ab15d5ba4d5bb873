"""End-to-end tests: image I/O, candidate pool loading, pipeline and CLI."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image
from typer.testing import CliRunner

from tile_mosaic.cli import app
from tile_mosaic.config import MosaicConfig
from tile_mosaic.errors import EmptyCandidatePool, ImageDecodeFailure, InvalidGridRequest
from tile_mosaic.image_io import (
    CandidatePool,
    decode_bytes,
    load_candidate_pool,
    open_rgba,
    pool_from_bytes,
    save_image,
)
from tile_mosaic.pipeline import build_mosaic, output_path_for, prepare_reference, run_pipeline

runner = CliRunner()

TILE_COLORS = [
    (255, 0, 0, 255),
    (0, 255, 0, 255),
    (0, 0, 255, 255),
    (255, 255, 0, 255),
    (30, 30, 30, 255),
]

# -- Fixtures ----------------------------------------------------------


@pytest.fixture
def solid_pool() -> CandidatePool:
    return CandidatePool.from_images(
        Image.new("RGBA", (50, 50), c) for c in TILE_COLORS
    )


@pytest.fixture
def reference() -> np.ndarray:
    rng = np.random.default_rng(456)
    return rng.integers(0, 256, size=(100, 100, 4), dtype=np.uint8)


@pytest.fixture
def tile_dir(tmp_path: Path) -> Path:
    """Folder with a reference picture, three tiles and some noise files."""
    folder = tmp_path / "tiles"
    folder.mkdir()
    rng = np.random.default_rng(7)
    Image.fromarray(
        rng.integers(0, 256, size=(40, 60, 3), dtype=np.uint8),
    ).save(folder / "ref.png")
    for i, color in enumerate(TILE_COLORS[:3]):
        Image.new("RGB", (20, 30), color[:3]).save(folder / f"tile_{i}.png")
    (folder / "broken.png").write_bytes(b"definitely not a png")
    (folder / "notes.txt").write_text("ignore me")
    return folder


# -- Image I/O ---------------------------------------------------------

class TestImageIO:
    def test_open_converts_to_rgba(self, tile_dir: Path) -> None:
        img = open_rgba(tile_dir / "tile_0.png")
        assert img.mode == "RGBA"
        assert img.size == (20, 30)

    def test_open_corrupt(self, tile_dir: Path) -> None:
        with pytest.raises(ImageDecodeFailure) as info:
            open_rgba(tile_dir / "broken.png")
        assert info.value.path == tile_dir / "broken.png"

    def test_open_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ImageDecodeFailure):
            open_rgba(tmp_path / "nope.png")

    def test_save_image(self, tmp_path: Path, reference: np.ndarray) -> None:
        out = save_image(reference, tmp_path / "nested" / "out.png")
        img = Image.open(out)
        assert img.size == (100, 100)
        assert img.mode == "RGBA"


class TestCandidatePool:
    def test_excludes_reference_and_skips_broken(self, tile_dir: Path) -> None:
        pool = load_candidate_pool(tile_dir, exclude_name="ref.png")
        assert len(pool) == 3
        assert [p.name for p in pool.paths] == ["tile_0.png", "tile_1.png", "tile_2.png"]
        assert all(t.mode == "RGBA" for t in pool)

    def test_order_independent_of_thread_count(self, tile_dir: Path) -> None:
        one = load_candidate_pool(tile_dir, exclude_name="ref.png", threads=1)
        many = load_candidate_pool(tile_dir, exclude_name="ref.png", threads=20)
        assert one.paths == many.paths

    def test_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(NotADirectoryError):
            load_candidate_pool(tmp_path / "missing")

    def test_empty_directory(self, tmp_path: Path) -> None:
        assert len(load_candidate_pool(tmp_path)) == 0

    def test_from_bytes_skips_unreadable(self, tile_dir: Path) -> None:
        blobs = [
            ("ref.png", (tile_dir / "ref.png").read_bytes()),
            ("tile_0.png", (tile_dir / "tile_0.png").read_bytes()),
            ("broken.png", b"definitely not a png"),
            ("tile_1.png", (tile_dir / "tile_1.png").read_bytes()),
        ]
        pool, skipped = pool_from_bytes(blobs, exclude_name="ref.png")
        assert len(pool) == 2
        assert [p.name for p in pool.paths] == ["tile_0.png", "tile_1.png"]
        assert skipped == ["broken.png"]
        assert all(t.mode == "RGBA" for t in pool)

    def test_decode_bytes_failure_names_upload(self) -> None:
        with pytest.raises(ImageDecodeFailure) as info:
            decode_bytes(b"nope", "upload.png")
        assert info.value.path == Path("upload.png")

    def test_pool_is_immutable(self, solid_pool: CandidatePool) -> None:
        with pytest.raises(AttributeError):
            solid_pool.tiles = ()  # type: ignore[misc]


# -- Pre-processing ----------------------------------------------------

class TestPrepareReference:
    def test_noop(self) -> None:
        img = Image.new("RGBA", (40, 20))
        assert prepare_reference(img).size == (40, 20)

    def test_square(self) -> None:
        img = Image.new("RGBA", (40, 20))
        assert prepare_reference(img, square_resize=True).size == (40, 40)

    def test_scale_rounds_up(self) -> None:
        img = Image.new("RGBA", (10, 7))
        assert prepare_reference(img, scale_factor=2.5).size == (25, 18)

    def test_square_then_scale(self) -> None:
        img = Image.new("RGBA", (30, 10))
        assert prepare_reference(img, True, 0.5).size == (15, 15)

    @pytest.mark.parametrize(
        ("size", "factor", "expected"),
        [((100, 100), 1.1, (110, 110)), ((10, 20), 0.7, (7, 14)), ((30, 10), 2.3, (69, 23))],
    )
    def test_exact_products_are_not_bumped(
        self, size: tuple[int, int], factor: float, expected: tuple[int, int],
    ) -> None:
        img = Image.new("RGBA", size)
        assert prepare_reference(img, scale_factor=factor).size == expected


# -- build_mosaic ------------------------------------------------------

class TestBuildMosaic:
    def test_unblended_cells_are_whole_tiles(
        self, reference: np.ndarray, solid_pool: CandidatePool,
    ) -> None:
        result = build_mosaic(reference, solid_pool, columns=10, rows=10, alpha=0.0, seed=7)
        out = result.image
        assert out.shape == (100, 100, 4)
        assert (result.cols, result.rows) == (10, 10)

        for gy in range(10):
            for gx in range(10):
                cell = out[gy * 10 : (gy + 1) * 10, gx * 10 : (gx + 1) * 10].reshape(-1, 4)
                colours = {tuple(int(v) for v in px) for px in cell}
                assert len(colours) == 1
                assert colours.pop() in TILE_COLORS

    def test_grid_is_negotiated(self, solid_pool: CandidatePool) -> None:
        reference = np.full((20, 100, 4), 90, dtype=np.uint8)
        result = build_mosaic(reference, solid_pool, columns=7, rows=4, seed=1)
        assert (result.cols, result.rows) == (10, 4)
        assert (result.cell_width, result.cell_height) == (10, 5)

        result = build_mosaic(reference, solid_pool, columns=10, rows=4, seed=1)
        assert result.cols == 10

    def test_full_alpha_paints_dominant_colours(self, solid_pool: CandidatePool) -> None:
        rng = np.random.default_rng(3)
        blocks = rng.integers(0, 256, size=(4, 5, 3), dtype=np.uint8)
        reference = np.full((40, 50, 4), 255, dtype=np.uint8)
        reference[..., :3] = np.kron(blocks, np.ones((10, 10, 1), dtype=np.uint8))

        out = build_mosaic(reference, solid_pool, columns=5, rows=4, alpha=1.0, seed=2).image
        diff = np.abs(out[..., :3].astype(np.int16) - reference[..., :3].astype(np.int16))
        assert diff.max() <= 1

    def test_single_pixel_cells(self, solid_pool: CandidatePool) -> None:
        rng = np.random.default_rng(4)
        reference = rng.integers(0, 256, size=(6, 12, 4), dtype=np.uint8)
        result = build_mosaic(reference, solid_pool, columns=12, rows=6, alpha=1.0, seed=0)
        assert (result.cell_width, result.cell_height) == (1, 1)
        diff = np.abs(
            result.image[..., :3].astype(np.int16) - reference[..., :3].astype(np.int16),
        )
        assert diff.max() <= 1

    def test_too_many_columns(
        self, reference: np.ndarray, solid_pool: CandidatePool,
    ) -> None:
        with pytest.raises(InvalidGridRequest):
            build_mosaic(reference, solid_pool, columns=101, rows=10)

    def test_empty_pool(self, reference: np.ndarray) -> None:
        with pytest.raises(EmptyCandidatePool):
            build_mosaic(reference, CandidatePool(()), columns=10, rows=10)

    def test_same_seed_same_mosaic(
        self, reference: np.ndarray, solid_pool: CandidatePool,
    ) -> None:
        a = build_mosaic(reference, solid_pool, columns=5, rows=5, seed=11, workers=1)
        b = build_mosaic(reference, solid_pool, columns=5, rows=5, seed=11, workers=4)
        np.testing.assert_array_equal(a.image, b.image)


# -- run_pipeline ------------------------------------------------------

class TestRunPipeline:
    def test_writes_output_beside_reference(self, tile_dir: Path) -> None:
        cfg = MosaicConfig(columns=6, rows=4, seed=5)
        out, result = run_pipeline(cfg, tile_dir / "ref.png", tile_dir)
        assert out == tile_dir / "output.png"
        assert Image.open(out).size == (60, 40)
        assert (result.cols, result.rows) == (6, 4)

    def test_explicit_output_path(self, tile_dir: Path, tmp_path: Path) -> None:
        target = tmp_path / "elsewhere" / "mosaic.png"
        cfg = MosaicConfig(columns=6, rows=4, seed=5, output_path=target)
        assert output_path_for(tile_dir / "ref.png", cfg) == target
        out, _ = run_pipeline(cfg, tile_dir / "ref.png", tile_dir)
        assert out == target
        assert target.exists()

    def test_square_and_scale(self, tile_dir: Path) -> None:
        cfg = MosaicConfig(columns=6, rows=6, square_resize=True, scale_factor=0.5, seed=5)
        out, _ = run_pipeline(cfg, tile_dir / "ref.png", tile_dir)
        assert Image.open(out).size == (30, 30)

    def test_corrupt_reference_writes_nothing(self, tile_dir: Path) -> None:
        with pytest.raises(ImageDecodeFailure):
            run_pipeline(MosaicConfig(), tile_dir / "broken.png", tile_dir)
        assert not (tile_dir / "output.png").exists()

    def test_invalid_grid_writes_nothing(self, tile_dir: Path) -> None:
        with pytest.raises(InvalidGridRequest):
            run_pipeline(MosaicConfig(columns=61, rows=4), tile_dir / "ref.png", tile_dir)
        assert not (tile_dir / "output.png").exists()

    def test_no_tiles_writes_nothing(self, tmp_path: Path) -> None:
        Image.new("RGB", (20, 20), (1, 2, 3)).save(tmp_path / "ref.png")
        with pytest.raises(EmptyCandidatePool):
            run_pipeline(MosaicConfig(columns=4, rows=4), tmp_path / "ref.png", tmp_path)
        assert not (tmp_path / "output.png").exists()


# -- CLI ---------------------------------------------------------------

class TestCLI:
    def test_build(self, tile_dir: Path) -> None:
        result = runner.invoke(app, [
            "build", "--dir", str(tile_dir), "--ref", str(tile_dir / "ref.png"),
            "--cols", "6", "--rows", "4", "--seed", "1", "--workers", "2",
        ])
        assert result.exit_code == 0, result.output
        assert (tile_dir / "output.png").exists()

    def test_build_bad_grid(self, tile_dir: Path) -> None:
        result = runner.invoke(app, [
            "build", "--dir", str(tile_dir), "--ref", str(tile_dir / "ref.png"),
            "--cols", "1000",
        ])
        assert result.exit_code == 1
        assert not (tile_dir / "output.png").exists()

    def test_plan(self, tmp_path: Path) -> None:
        ref = tmp_path / "wide.png"
        Image.new("RGB", (100, 50)).save(ref)
        result = runner.invoke(app, ["plan", str(ref), "--cols", "7", "--rows", "5"])
        assert result.exit_code == 0, result.output
        assert "10x5 cells" in result.output
