"""Centralised configuration via a frozen dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class MosaicConfig:
    """All tuneable parameters for a mosaic run.

    Attributes:
        columns:        Requested grid columns (nudged up to divide the width).
        rows:           Requested grid rows (nudged up to divide the height).
        alpha:          Blend factor towards each cell's dominant colour, 0..1.
        verbose:        Debug logging.
        square_resize:  Resize the reference to width x width before gridding.
        scale_factor:   Multiply both reference sides by this (0 = no scaling).
        seed:           Seed for tile selection (None = non-deterministic).
        workers:        Thread count for compositing (None = executor default).
        output_name:    File name written next to the reference image.
        output_path:    Explicit output path, overrides *output_name*.
        n_clusters:     k for the dominant-colour k-means.
        max_iter:       Iteration cap per k-means run.
        tolerance:      Convergence threshold in CIELAB units.
        cluster_seeds:  One k-means run per seed; the best run wins.
        loader_threads: Threads used to decode the candidate pool.
    """

    # Grid
    columns: int = 70
    rows: int = 70

    # Blending
    alpha: float = 0.7

    # Reference pre-processing
    square_resize: bool = False
    scale_factor: float = 0.0

    # Randomness / parallelism
    seed: int | None = None
    workers: int | None = None

    # Dominant colour
    n_clusters: int = 8
    max_iter: int = 20
    tolerance: float = 5.0
    cluster_seeds: tuple[int, ...] = (30, 31, 32)

    # I/O
    verbose: bool = False
    output_name: str = "output.png"
    output_path: Path | None = None
    loader_threads: int = 20

    SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
        {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp", ".jfif"}
    )

    def __post_init__(self) -> None:
        if self.columns < 1 or self.rows < 1:
            msg = f"columns and rows must be positive, got {self.columns}x{self.rows}"
            raise ValueError(msg)
        if not 0.0 <= self.alpha <= 1.0:
            msg = f"alpha must lie in [0, 1], got {self.alpha}"
            raise ValueError(msg)
        if self.scale_factor < 0:
            msg = f"scale_factor must be >= 0, got {self.scale_factor}"
            raise ValueError(msg)
        if not self.cluster_seeds:
            msg = "cluster_seeds must name at least one seed"
            raise ValueError(msg)
