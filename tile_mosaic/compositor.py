"""Per-cell tile selection, blending and parallel assembly.

Every cell worker writes only inside its own :class:`CellRect`. Because the
grid tiles the image exactly, write regions never overlap and the shared
output array needs no locking.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, wait

import numpy as np
from PIL import Image

from tile_mosaic.color_utils import blend_pixels, check_alpha
from tile_mosaic.dominant_color import (
    DEFAULT_CLUSTERS,
    DEFAULT_MAX_ITER,
    DEFAULT_SEEDS,
    DEFAULT_TOLERANCE,
    extract_dominant_color,
)
from tile_mosaic.errors import BufferFrozen, EmptyCandidatePool
from tile_mosaic.grid import CellRect
from tile_mosaic.image_io import CandidatePool

logger = logging.getLogger(__name__)


class OutputBuffer:
    """Mutable RGBA canvas, written cell by cell, then frozen for encoding."""

    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self._pixels = np.zeros((height, width, 4), dtype=np.uint8)
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def write(self, rect: CellRect, pixels: np.ndarray) -> None:
        """Copy *pixels* to *rect*, clipped to the canvas bounds."""
        if self._frozen:
            msg = f"Output buffer is frozen, refusing write to {rect}"
            raise BufferFrozen(msg)
        x0, y0 = max(rect.x, 0), max(rect.y, 0)
        x1 = min(rect.x + rect.width, self.width)
        y1 = min(rect.y + rect.height, self.height)
        if x1 <= x0 or y1 <= y0:
            return
        self._pixels[y0:y1, x0:x1] = pixels[
            y0 - rect.y : y1 - rect.y, x0 - rect.x : x1 - rect.x
        ]

    def freeze(self) -> np.ndarray:
        """Publish the canvas as a read-only (H, W, 4) uint8 array."""
        self._frozen = True
        self._pixels.flags.writeable = False
        return self._pixels


def composite_cell(
    rect: CellRect,
    reference: np.ndarray,
    pool: CandidatePool,
    alpha: float,
    buffer: OutputBuffer,
    rng: np.random.Generator,
    n_clusters: int = DEFAULT_CLUSTERS,
    max_iter: int = DEFAULT_MAX_ITER,
    tolerance: float = DEFAULT_TOLERANCE,
    cluster_seeds: Sequence[int] = DEFAULT_SEEDS,
) -> None:
    """Fill one cell of *buffer*.

    A tile is drawn uniformly (with replacement) from *pool*, stretched to
    the cell size with Lanczos resampling, and tinted towards the dominant
    colour of the matching reference region.
    """
    tile = pool[int(rng.integers(len(pool)))]
    resized = tile.resize((rect.width, rect.height), Image.LANCZOS)

    region = reference[rect.y : rect.y + rect.height, rect.x : rect.x + rect.width]
    dominant = extract_dominant_color(
        region, n_clusters, max_iter, tolerance, cluster_seeds,
    )

    blended = blend_pixels(np.asarray(resized, dtype=np.uint8), dominant, alpha)
    buffer.write(rect, blended)


def composite_cells(
    reference: np.ndarray,
    rects: Sequence[CellRect],
    pool: CandidatePool,
    alpha: float,
    buffer: OutputBuffer,
    seed: int | None = None,
    workers: int | None = None,
    **cluster_kwargs,
) -> None:
    """Composite every cell on a thread pool.

    Each cell gets its own generator spawned from *seed*, so the output is
    identical for any *workers* value. All cells run to completion before
    the first failure (in cell order) is re-raised.

    Raises:
        EmptyCandidatePool: *pool* is empty; no cell is started.
    """
    if len(pool) == 0:
        msg = "No usable tile images found in the candidate pool"
        raise EmptyCandidatePool(msg)
    check_alpha(alpha)

    streams = np.random.SeedSequence(seed).spawn(len(rects))
    logger.info(
        "Compositing %d cells with %s workers ...", len(rects), workers or "default",
    )
    t0 = time.perf_counter()

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [
            executor.submit(
                composite_cell, rect, reference, pool, alpha, buffer,
                np.random.default_rng(stream), **cluster_kwargs,
            )
            for rect, stream in zip(rects, streams, strict=True)
        ]
        wait(futures)

    failures = [
        (idx, fut.exception())
        for idx, fut in enumerate(futures)
        if fut.exception() is not None
    ]
    if failures:
        idx, exc = failures[0]
        logger.error(
            "%d of %d cells failed; first failure at cell %d (%s)",
            len(failures), len(rects), idx, rects[idx],
        )
        raise exc

    logger.info("Compositing done  (%.1f s)", time.perf_counter() - t0)
