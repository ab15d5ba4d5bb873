"""End-to-end orchestration: reference → grid → cells → output file."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image

from tile_mosaic.compositor import OutputBuffer, composite_cells
from tile_mosaic.config import MosaicConfig
from tile_mosaic.grid import cell_rects, plan_grid
from tile_mosaic.image_io import (
    CandidatePool,
    load_candidate_pool,
    open_rgba,
    save_image,
    to_array,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MosaicResult:
    """A finished mosaic plus the grid it was built on."""

    image: np.ndarray
    cols: int
    rows: int
    cell_width: int
    cell_height: int
    elapsed: float

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def height(self) -> int:
        return self.image.shape[0]


def _scaled_side(side: int, factor: float) -> int:
    """*side* times *factor*, rounded up once float noise is stripped."""
    return math.ceil(round(side * factor, 9))


def prepare_reference(
    image: Image.Image,
    square_resize: bool = False,
    scale_factor: float = 0.0,
) -> Image.Image:
    """Optional geometric pre-processing before gridding.

    *square_resize* stretches the image to ``width x width``; a non-zero
    *scale_factor* then multiplies both sides (rounded up).
    """
    w, h = image.size
    if square_resize:
        logger.debug("Resizing reference to %dx%d", w, w)
        image = image.resize((w, w), Image.BICUBIC)
        w, h = image.size

    if scale_factor:
        new_w, new_h = _scaled_side(w, scale_factor), _scaled_side(h, scale_factor)
        if new_w < 1 or new_h < 1:
            msg = f"Scale factor {scale_factor} shrinks the reference to nothing"
            raise ValueError(msg)
        logger.debug("Scaling reference to %dx%d", new_w, new_h)
        image = image.resize((new_w, new_h), Image.BICUBIC)

    return image


def build_mosaic(
    reference: np.ndarray,
    pool: CandidatePool,
    columns: int = 70,
    rows: int = 70,
    alpha: float = 0.7,
    seed: int | None = None,
    workers: int | None = None,
    **cluster_kwargs,
) -> MosaicResult:
    """Compose a mosaic in memory.

    Args:
        reference: (H, W, 4) uint8 reference image.
        pool:      Candidate tiles.
        columns:   Requested grid columns (nudged up to a divisor of W).
        rows:      Requested grid rows (nudged up to a divisor of H).
        alpha:     Blend factor towards each cell's dominant colour.
        seed:      Tile-selection seed (None = non-deterministic).
        workers:   Compositing threads.
        **cluster_kwargs: Forwarded to the dominant-colour extractor.

    Returns:
        :class:`MosaicResult` holding a read-only (H, W, 4) uint8 image.
    """
    t0 = time.perf_counter()
    h, w = reference.shape[:2]
    logger.info("Reference: %dx%d", w, h)

    cols, grid_rows = plan_grid(w, h, columns, rows)
    if (cols, grid_rows) != (columns, rows):
        logger.info(
            "Adjusted grid from %dx%d to %dx%d", columns, rows, cols, grid_rows,
        )
    rects = cell_rects(w, h, cols, grid_rows)
    logger.info(
        "Grid: %dx%d cells of %dx%d px", cols, grid_rows, w // cols, h // grid_rows,
    )

    buffer = OutputBuffer(w, h)
    composite_cells(
        reference, rects, pool, alpha, buffer,
        seed=seed, workers=workers, **cluster_kwargs,
    )

    return MosaicResult(
        image=buffer.freeze(),
        cols=cols,
        rows=grid_rows,
        cell_width=w // cols,
        cell_height=h // grid_rows,
        elapsed=time.perf_counter() - t0,
    )


def output_path_for(reference_path: str | Path, cfg: MosaicConfig) -> Path:
    """Where the mosaic lands: *cfg.output_path*, else next to the reference."""
    if cfg.output_path is not None:
        return Path(cfg.output_path)
    return Path(reference_path).parent / cfg.output_name


def run_pipeline(
    cfg: MosaicConfig,
    reference_path: str | Path,
    tiles_dir: str | Path,
) -> tuple[Path, MosaicResult]:
    """Load, compose and save. Nothing is written unless every step succeeds.

    Returns:
        The saved path and the in-memory result.
    """
    reference_path = Path(reference_path)
    reference = open_rgba(reference_path)

    pool = load_candidate_pool(
        tiles_dir,
        exclude_name=reference_path.name,
        extensions=cfg.SUPPORTED_EXTENSIONS,
        threads=cfg.loader_threads,
    )

    reference = prepare_reference(reference, cfg.square_resize, cfg.scale_factor)
    result = build_mosaic(
        to_array(reference),
        pool,
        columns=cfg.columns,
        rows=cfg.rows,
        alpha=cfg.alpha,
        seed=cfg.seed,
        workers=cfg.workers,
        n_clusters=cfg.n_clusters,
        max_iter=cfg.max_iter,
        tolerance=cfg.tolerance,
        cluster_seeds=cfg.cluster_seeds,
    )

    out = save_image(result.image, output_path_for(reference_path, cfg))
    logger.info("Mosaic saved: %s", out)
    return out, result
