"""Dominant-colour extraction via seeded k-means in CIELAB.

Distances in device RGB do not track perceived colour difference, so each
cell's pixels are clustered in CIELAB. Several independently seeded runs are
made and the one with the lowest inertia wins; the centroid owning the most
pixels is the cell's dominant colour.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np
from scipy.cluster.vq import vq

from tile_mosaic.color_utils import Color, lab_to_rgb, rgb_to_lab
from tile_mosaic.errors import EmptyClusterResult

DEFAULT_CLUSTERS = 8
DEFAULT_MAX_ITER = 20
DEFAULT_TOLERANCE = 5.0
DEFAULT_SEEDS: tuple[int, ...] = (30, 31, 32)


@dataclass(frozen=True)
class KMeansResult:
    """Outcome of one k-means run.

    Attributes:
        centroids: (k, 3) float64 cluster centres.
        labels:    (N,) index of the centroid each point belongs to.
        score:     Inertia, the sum of squared point-to-centroid distances.
    """

    centroids: np.ndarray
    labels: np.ndarray
    score: float


def _init_plus_plus(
    points: np.ndarray, k: int, rng: np.random.Generator,
) -> np.ndarray:
    """k-means++ seeding: later centres favour points far from earlier ones."""
    n = len(points)
    centroids = np.empty((k, points.shape[1]), dtype=np.float64)
    centroids[0] = points[rng.integers(n)]
    closest = np.sum((points - centroids[0]) ** 2, axis=1)

    for i in range(1, k):
        total = float(closest.sum())
        if total > 0:
            idx = rng.choice(n, p=closest / total)
        else:
            # every point already sits on a centre
            idx = rng.integers(n)
        centroids[i] = points[idx]
        closest = np.minimum(closest, np.sum((points - centroids[i]) ** 2, axis=1))
    return centroids


def kmeans(
    points: np.ndarray,
    k: int = DEFAULT_CLUSTERS,
    max_iter: int = DEFAULT_MAX_ITER,
    tolerance: float = DEFAULT_TOLERANCE,
    seed: int | None = None,
) -> KMeansResult:
    """Lloyd's algorithm with k-means++ initialisation.

    Args:
        points:    (N, D) float coordinates, N >= 1.
        k:         Cluster count, capped at N.
        max_iter:  Upper bound on refinement steps.
        tolerance: Stop once the summed centroid movement is at most this.
        seed:      Seed for the initialisation.

    Returns:
        :class:`KMeansResult` for the final centroids.
    """
    points = np.asarray(points, dtype=np.float64)
    k = min(k, len(points))
    rng = np.random.default_rng(seed)
    centroids = _init_plus_plus(points, k, rng)

    for _ in range(max_iter):
        labels, _ = vq(points, centroids, check_finite=False)
        updated = centroids.copy()
        for j in range(k):
            members = points[labels == j]
            if len(members):
                updated[j] = members.mean(axis=0)
        shift = float(np.sum(np.linalg.norm(updated - centroids, axis=1)))
        centroids = updated
        if shift <= tolerance:
            break

    labels, dists = vq(points, centroids, check_finite=False)
    return KMeansResult(centroids, labels, float(np.sum(dists ** 2)))


def best_of_runs(runs: Iterable[KMeansResult]) -> KMeansResult:
    """Return the run with the lowest score."""
    best: KMeansResult | None = None
    best_score = math.inf
    for run in runs:
        if run.score < best_score:
            best, best_score = run, run.score
    if best is None:
        msg = "No clustering run produced a usable score"
        raise EmptyClusterResult(msg)
    return best


def sort_by_membership(result: KMeansResult) -> tuple[np.ndarray, np.ndarray]:
    """Centroids and their pixel counts, most populated first."""
    counts = np.bincount(result.labels, minlength=len(result.centroids))
    order = np.argsort(-counts, kind="stable")
    return result.centroids[order], counts[order]


def extract_dominant_color(
    pixels: np.ndarray,
    n_clusters: int = DEFAULT_CLUSTERS,
    max_iter: int = DEFAULT_MAX_ITER,
    tolerance: float = DEFAULT_TOLERANCE,
    seeds: Sequence[int] = DEFAULT_SEEDS,
) -> Color:
    """Most representative colour of a block of pixels.

    Args:
        pixels: (..., 3) or (..., 4) uint8; any alpha channel is ignored.

    Returns:
        Opaque :class:`Color` in device RGB.

    Raises:
        EmptyClusterResult: no pixels, or no centroid owns any pixel.
    """
    arr = np.asarray(pixels)
    flat = arr.reshape(-1, arr.shape[-1])[:, :3] if arr.size else arr.reshape(0, 3)
    if len(flat) == 0:
        msg = "Cannot extract a dominant colour from an empty cell"
        raise EmptyClusterResult(msg)

    lab = rgb_to_lab(flat.astype(np.uint8))
    best = best_of_runs(
        kmeans(lab, n_clusters, max_iter, tolerance, seed=s) for s in seeds
    )
    centroids, counts = sort_by_membership(best)
    if len(counts) == 0 or counts[0] == 0:
        msg = "Clustering produced no populated centroid"
        raise EmptyClusterResult(msg)

    r, g, b = lab_to_rgb(centroids[:1])[0]
    return Color(int(r), int(g), int(b), 255)
