"""Exceptions raised while building a mosaic."""

from __future__ import annotations

from pathlib import Path


class MosaicError(Exception):
    """Base class for every failure that aborts a mosaic run."""


class InvalidGridRequest(MosaicError, ValueError):
    """Requested column/row count exceeds the image dimension it divides."""


class EmptyCandidatePool(MosaicError):
    """No usable tile images were available."""


class EmptyClusterResult(MosaicError):
    """Clustering produced no populated centroid for a cell."""


class BufferFrozen(MosaicError):
    """A write reached the output buffer after it was published."""


class ImageDecodeFailure(MosaicError):
    """An image file could not be opened or decoded."""

    def __init__(self, path: str | Path, reason: str = "") -> None:
        self.path = Path(path)
        msg = f"Couldn't open image at {self.path}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)
