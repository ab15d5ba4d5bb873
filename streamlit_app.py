"""
Tile Mosaic — Gallery Edition

Run with:
    streamlit run streamlit_app.py
"""

from __future__ import annotations

import io

import numpy as np
import streamlit as st
from PIL import Image, ImageDraw

from tile_mosaic.config import MosaicConfig
from tile_mosaic.errors import MosaicError
from tile_mosaic.grid import plan_grid
from tile_mosaic.image_io import decode_bytes, pool_from_bytes
from tile_mosaic.pipeline import build_mosaic, prepare_reference

# -- Page config -------------------------------------------------------
st.set_page_config(
    page_title="Tile Mosaic",
    page_icon=None,
    layout="wide",
    initial_sidebar_state="collapsed",
)

_DEFAULTS = MosaicConfig()
_SEED = 42
_UPLOAD_TYPES = ["jpg", "jpeg", "png", "webp", "bmp", "jfif"]

# -- CSS ---------------------------------------------------------------
st.markdown("""
<style>
    @import url('https://fonts.googleapis.com/css2?family=Cormorant+Garamond:ital,wght@0,300;0,400;1,300&family=Inter:wght@200;300;400&display=swap');

    .stApp {
        background-color: #faf9f6;
        color: #2a2a2a;
        font-family: 'Inter', 'Helvetica Neue', sans-serif;
    }
    .block-container {
        max-width: 1000px;
        padding-top: 3.5rem;
        padding-bottom: 4rem;
    }
    .gallery-title {
        font-family: 'Cormorant Garamond', 'Georgia', serif;
        font-size: 2.8rem;
        font-weight: 300;
        letter-spacing: 0.06em;
        text-align: center;
        color: #1a1a1a;
        border-bottom: 1px solid #1a1a1a;
        padding-bottom: 0.6rem;
        margin-bottom: 0.5rem;
    }
    .gallery-subtitle {
        font-size: 0.75rem;
        font-weight: 300;
        letter-spacing: 0.04em;
        line-height: 1.8;
        margin-bottom: 3.5rem;
    }
    .slider-desc {
        font-family: 'Cormorant Garamond', 'Georgia', serif;
        font-size: 0.95rem;
        font-style: italic;
        color: #6a6a64;
        margin-top: -0.5rem;
        margin-bottom: 1rem;
    }
    .catalogue-line {
        font-family: 'Cormorant Garamond', 'Georgia', serif;
        font-size: 1.1rem;
        font-style: italic;
        text-align: center;
        margin-top: 0.8rem;
    }
    #MainMenu {visibility: hidden;}
    footer {visibility: hidden;}
    header {visibility: hidden;}
</style>
""", unsafe_allow_html=True)


# -- Helpers -----------------------------------------------------------

def _add_passepartout(img: Image.Image, border: int = 20) -> Image.Image:
    w, h = img.size
    bg = (250, 249, 246)
    canvas = Image.new("RGB", (w + border * 2, h + border * 2), bg)
    canvas.paste(img.convert("RGB"), (border, border))
    draw = ImageDraw.Draw(canvas)
    draw.rectangle(
        [border - 1, border - 1, border + w, border + h],
        outline=(224, 222, 216), width=1,
    )
    return canvas


# -- Title -------------------------------------------------------------
st.markdown('<div class="gallery-title">Tile Mosaic</div>', unsafe_allow_html=True)
st.markdown(
    '<div class="gallery-subtitle">'
    "Upload a picture and a handful of tiles. The picture is cut into a grid, "
    "every cell receives a random tile, and each tile is tinted towards the "
    "dominant colour of the cell it replaces, found by clustering the cell's "
    "pixels in a perceptual colour space. Seen from a distance the original "
    "reappears."
    "</div>",
    unsafe_allow_html=True,
)

# -- Controls ----------------------------------------------------------
ctrl1, ctrl2, ctrl3 = st.columns(3)
with ctrl1:
    columns = st.slider("Columns", 1, 200, _DEFAULTS.columns)
with ctrl2:
    rows = st.slider("Rows", 1, 200, _DEFAULTS.rows)
with ctrl3:
    alpha = st.slider("Alpha", 0.0, 1.0, _DEFAULTS.alpha, step=0.05)
st.markdown(
    '<div class="slider-desc">'
    "Columns and rows are raised to the next value that divides the picture "
    "evenly. Alpha 0 keeps the tiles untouched; alpha 1 paints each cell flat."
    "</div>",
    unsafe_allow_html=True,
)
opt1, opt2 = st.columns(2)
with opt1:
    square = st.checkbox("Square the picture first", value=_DEFAULTS.square_resize)
with opt2:
    scale = st.number_input(
        "Scale", min_value=0.0, max_value=10.0,
        value=_DEFAULTS.scale_factor, step=0.5,
        help="Multiply the picture size by this factor (0 = keep)",
    )

st.markdown("---")

# -- Upload ------------------------------------------------------------
ref_upload = st.file_uploader("Select picture", type=_UPLOAD_TYPES)
tile_uploads = st.file_uploader(
    "Select tiles", type=_UPLOAD_TYPES, accept_multiple_files=True,
)

if ref_upload is not None and tile_uploads:
    try:
        reference = prepare_reference(
            decode_bytes(ref_upload.getvalue(), ref_upload.name),
            square_resize=square,
            scale_factor=scale,
        )
    except (MosaicError, ValueError) as exc:
        st.error(str(exc))
        st.stop()
    w, h = reference.size

    pool, skipped = pool_from_bytes(
        ((t.name, t.getvalue()) for t in tile_uploads),
        exclude_name=ref_upload.name,
    )
    for name in skipped:
        st.warning(f"Skipped {name}: not a readable image")

    if st.button("COMPOSE", type="primary", use_container_width=True):
        try:
            cols, grid_rows = plan_grid(w, h, columns, rows)
            with st.spinner(f"Composing {cols * grid_rows} cells ..."):
                result = build_mosaic(
                    np.array(reference, dtype=np.uint8),
                    pool,
                    columns=columns,
                    rows=rows,
                    alpha=alpha,
                    seed=_SEED,
                )
        except MosaicError as exc:
            st.error(str(exc))
            st.stop()

        mosaic = Image.fromarray(result.image.copy())
        left, right = st.columns(2)
        with left:
            st.image(_add_passepartout(reference), use_container_width=True)
            st.markdown('<div class="catalogue-line">Original</div>', unsafe_allow_html=True)
        with right:
            st.image(_add_passepartout(mosaic), use_container_width=True)
            st.markdown('<div class="catalogue-line">Mosaic</div>', unsafe_allow_html=True)

        m1, m2, m3 = st.columns(3)
        m1.metric("Grid", f"{result.cols} x {result.rows}")
        m2.metric("Cell", f"{result.cell_width} x {result.cell_height} px")
        m3.metric("Time", f"{result.elapsed:.1f} s")

        buf = io.BytesIO()
        mosaic.save(buf, format="PNG")
        st.download_button(
            "DOWNLOAD PNG", buf.getvalue(), file_name="output.png",
            mime="image/png", use_container_width=True,
        )
