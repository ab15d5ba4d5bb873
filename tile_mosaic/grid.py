"""Grid negotiation and cell layout.

Cells must have integer pixel sizes with no remainder, so a requested
column/row count is nudged *upward* to the next divisor of the image side.
"""

from __future__ import annotations

from typing import NamedTuple

from tile_mosaic.errors import InvalidGridRequest


class CellRect(NamedTuple):
    """One grid cell in image pixel coordinates."""

    x: int
    y: int
    width: int
    height: int


def next_divisor(dimension: int, requested: int) -> int:
    """Smallest divisor of *dimension* that is >= *requested*.

    Raises:
        InvalidGridRequest: *requested* is below 1 or above *dimension*.
    """
    if requested < 1:
        msg = f"Grid value must be at least 1, got {requested}"
        raise InvalidGridRequest(msg)
    if requested > dimension:
        msg = f"Grid value {requested} must not exceed the image side {dimension}"
        raise InvalidGridRequest(msg)

    for candidate in range(requested, dimension + 1):
        if dimension % candidate == 0:
            return candidate
    return dimension  # unreachable: dimension divides itself


def plan_grid(
    image_width: int,
    image_height: int,
    requested_cols: int,
    requested_rows: int,
) -> tuple[int, int]:
    """Negotiate ``(cols, rows)`` that exactly tile the image."""
    return (
        next_divisor(image_width, requested_cols),
        next_divisor(image_height, requested_rows),
    )


def cell_rects(
    image_width: int, image_height: int, cols: int, rows: int,
) -> list[CellRect]:
    """Cells of a ``cols x rows`` grid in row-major order.

    Index ``i`` sits at grid position ``(i % cols, i // cols)``.
    """
    cell_w = image_width // cols
    cell_h = image_height // rows
    return [
        CellRect(gx * cell_w, gy * cell_h, cell_w, cell_h)
        for gy in range(rows)
        for gx in range(cols)
    ]
