"""Image decoding, saving, and candidate-pool loading."""

from __future__ import annotations

import io
import logging
import math
import time
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image

from tile_mosaic.config import MosaicConfig
from tile_mosaic.errors import ImageDecodeFailure

logger = logging.getLogger(__name__)

_DEFAULTS = MosaicConfig()


def open_rgba(path: str | Path) -> Image.Image:
    """Decode *path* into a fully loaded RGBA image.

    Raises:
        ImageDecodeFailure: the file is missing, unreadable, or not an image.
    """
    try:
        with Image.open(path) as img:
            return img.convert("RGBA")
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageDecodeFailure(path, str(exc)) from exc


def decode_bytes(data: bytes, name: str = "<upload>") -> Image.Image:
    """Decode in-memory image bytes into a fully loaded RGBA image.

    Raises:
        ImageDecodeFailure: *data* is not a readable image.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.convert("RGBA")
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageDecodeFailure(name, str(exc)) from exc


def to_array(img: Image.Image) -> np.ndarray:
    """(H, W, 4) uint8 RGBA array."""
    return np.array(img.convert("RGBA"), dtype=np.uint8)


def save_image(array: np.ndarray, path: str | Path) -> Path:
    """Encode an (H, W, 4) uint8 array; the format follows the suffix."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(array.astype(np.uint8)).save(path)
    return path


@dataclass(frozen=True)
class CandidatePool:
    """Read-only tiles shared by every compositing worker."""

    tiles: tuple[Image.Image, ...]
    paths: tuple[Path, ...] = ()

    @classmethod
    def from_images(cls, images: Iterable[Image.Image]) -> CandidatePool:
        tiles = []
        for img in images:
            tiles.append(img if img.mode == "RGBA" else img.convert("RGBA"))
        return cls(tuple(tiles))

    def __len__(self) -> int:
        return len(self.tiles)

    def __getitem__(self, index: int) -> Image.Image:
        return self.tiles[index]

    def __iter__(self) -> Iterator[Image.Image]:
        return iter(self.tiles)


def collect_images(
    folder: Path,
    extensions: frozenset[str] = _DEFAULTS.SUPPORTED_EXTENSIONS,
    exclude_name: str | None = None,
) -> list[Path]:
    """Sorted image files directly inside *folder*, minus *exclude_name*."""
    return sorted(
        f for f in folder.iterdir()
        if f.is_file()
        and f.suffix.lower() in extensions
        and f.name != exclude_name
    )


def _decode_chunk(paths: list[Path]) -> list[tuple[Path, Image.Image]]:
    decoded = []
    for path in paths:
        try:
            decoded.append((path, open_rgba(path)))
        except ImageDecodeFailure as exc:
            logger.warning("Skipping tile: %s", exc)
    return decoded


def load_candidate_pool(
    folder: str | Path,
    exclude_name: str | None = None,
    extensions: frozenset[str] = _DEFAULTS.SUPPORTED_EXTENSIONS,
    threads: int = _DEFAULTS.loader_threads,
) -> CandidatePool:
    """Decode every tile in *folder* on a small thread pool.

    Files that fail to decode are logged and skipped. Chunk results are
    merged in file order, so the pool order does not depend on scheduling.

    Args:
        folder:       Directory holding the candidate images.
        exclude_name: File name to leave out (the reference image).
        extensions:   Accepted file suffixes.
        threads:      Decoder thread count.

    Raises:
        NotADirectoryError: *folder* does not exist or is not a directory.
    """
    folder = Path(folder)
    if not folder.is_dir():
        msg = f"Couldn't read directory {folder}, check the path again"
        raise NotADirectoryError(msg)

    files = collect_images(folder, extensions, exclude_name)
    logger.info("Pulling %d candidate images from %s ...", len(files), folder)
    t0 = time.perf_counter()

    tiles: list[Image.Image] = []
    paths: list[Path] = []
    if files:
        threads = max(1, threads)
        chunk_size = math.ceil(len(files) / threads)
        chunks = [files[i : i + chunk_size] for i in range(0, len(files), chunk_size)]
        with ThreadPoolExecutor(max_workers=len(chunks)) as executor:
            for chunk_result in executor.map(_decode_chunk, chunks):
                for path, img in chunk_result:
                    paths.append(path)
                    tiles.append(img)

    logger.info(
        "Candidate pool ready: %d tiles, %d skipped  (%.1f s)",
        len(tiles), len(files) - len(tiles), time.perf_counter() - t0,
    )
    return CandidatePool(tuple(tiles), tuple(paths))


def pool_from_bytes(
    blobs: Iterable[tuple[str, bytes]],
    exclude_name: str | None = None,
) -> tuple[CandidatePool, list[str]]:
    """Build a pool from ``(name, data)`` pairs, e.g. browser uploads.

    Undecodable entries are logged and skipped, like files in
    :func:`load_candidate_pool`.

    Returns:
        The pool and the names that were skipped.
    """
    tiles: list[Image.Image] = []
    paths: list[Path] = []
    skipped: list[str] = []
    for name, data in blobs:
        if name == exclude_name:
            continue
        try:
            tiles.append(decode_bytes(data, name))
        except ImageDecodeFailure as exc:
            logger.warning("Skipping tile: %s", exc)
            skipped.append(name)
            continue
        paths.append(Path(name))
    return CandidatePool(tuple(tiles), tuple(paths)), skipped
