"""
Tile Mosaic
===========

Recreate a reference image as a photomosaic. The reference is cut into a
grid whose cells divide it exactly; each cell receives a random tile from a
candidate pool, stretched to fit and tinted towards the cell's dominant
colour (k-means in CIELAB). Cells are composited in parallel.
"""

__version__ = "1.0.0"

from tile_mosaic.color_utils import Color, blend_color, blend_pixels, lab_to_rgb, rgb_to_lab
from tile_mosaic.compositor import OutputBuffer, composite_cell, composite_cells
from tile_mosaic.config import MosaicConfig
from tile_mosaic.dominant_color import extract_dominant_color, kmeans
from tile_mosaic.errors import (
    BufferFrozen,
    EmptyCandidatePool,
    EmptyClusterResult,
    ImageDecodeFailure,
    InvalidGridRequest,
    MosaicError,
)
from tile_mosaic.grid import CellRect, cell_rects, next_divisor, plan_grid
from tile_mosaic.image_io import (
    CandidatePool,
    decode_bytes,
    load_candidate_pool,
    open_rgba,
    pool_from_bytes,
    save_image,
)
from tile_mosaic.pipeline import MosaicResult, build_mosaic, prepare_reference, run_pipeline

__all__ = [
    "BufferFrozen",
    "CandidatePool",
    "CellRect",
    "Color",
    "EmptyCandidatePool",
    "EmptyClusterResult",
    "ImageDecodeFailure",
    "InvalidGridRequest",
    "MosaicConfig",
    "MosaicError",
    "MosaicResult",
    "OutputBuffer",
    "blend_color",
    "blend_pixels",
    "build_mosaic",
    "cell_rects",
    "composite_cell",
    "composite_cells",
    "decode_bytes",
    "extract_dominant_color",
    "kmeans",
    "lab_to_rgb",
    "load_candidate_pool",
    "next_divisor",
    "open_rgba",
    "plan_grid",
    "pool_from_bytes",
    "prepare_reference",
    "rgb_to_lab",
    "run_pipeline",
    "save_image",
]
