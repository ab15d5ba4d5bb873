"""Colour-space conversion, the Color value type and tile blending."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from skimage.color import lab2rgb, rgb2lab


def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert flat (N, 3) uint8 RGB → (N, 3) float64 CIELAB."""
    return rgb2lab(rgb.astype(np.float64).reshape(1, -1, 3) / 255.0).reshape(-1, 3)


def lab_to_rgb(lab: np.ndarray) -> np.ndarray:
    """Convert flat (N, 3) CIELAB → (N, 3) uint8 RGB, rounded and clamped."""
    rgb = lab2rgb(np.asarray(lab, dtype=np.float64).reshape(1, -1, 3)).reshape(-1, 3)
    return np.clip(np.rint(rgb * 255.0), 0, 255).astype(np.uint8)


def _clamp_channel(value: float) -> int:
    return int(min(max(value, 0.0), 255.0))


@dataclass(frozen=True)
class Color:
    """A single RGBA colour with 8-bit channels.

    Arithmetic saturates per channel instead of wrapping, so blends never
    overflow into a different hue.
    """

    r: int
    g: int
    b: int
    a: int = 255

    @classmethod
    def from_array(cls, values: np.ndarray | tuple[int, ...]) -> Color:
        channels = [int(v) for v in values]
        if len(channels) == 3:
            channels.append(255)
        return cls(*channels)

    def to_array(self) -> np.ndarray:
        return np.array([self.r, self.g, self.b, self.a], dtype=np.uint8)

    def scale(self, factor: float) -> Color:
        """Multiply RGB by *factor*, clamp to [0, 255] and truncate. Alpha is kept."""
        return Color(
            _clamp_channel(self.r * factor),
            _clamp_channel(self.g * factor),
            _clamp_channel(self.b * factor),
            self.a,
        )

    def saturating_add(self, other: Color) -> Color:
        """Channel-wise sum of all four channels, capped at 255."""
        return Color(
            min(self.r + other.r, 255),
            min(self.g + other.g, 255),
            min(self.b + other.b, 255),
            min(self.a + other.a, 255),
        )


def check_alpha(alpha: float) -> None:
    """Raise ``ValueError`` unless 0 <= *alpha* <= 1."""
    if not 0.0 <= alpha <= 1.0:
        msg = f"Blend factor must lie in [0, 1], got {alpha}"
        raise ValueError(msg)


def blend_color(candidate: Color, dominant: Color, alpha: float) -> Color:
    """Tint one candidate pixel towards *dominant*.

    ``candidate * (1 - alpha) + dominant * alpha`` on RGB; the candidate's
    own alpha channel passes through untouched.
    """
    check_alpha(alpha)
    mixed = candidate.scale(1.0 - alpha).saturating_add(dominant.scale(alpha))
    return Color(mixed.r, mixed.g, mixed.b, candidate.a)


def blend_pixels(tile: np.ndarray, dominant: Color, alpha: float) -> np.ndarray:
    """Vectorised :func:`blend_color` over an (h, w, 4) uint8 tile.

    Returns:
        New (h, w, 4) uint8 array; *tile* is not modified.
    """
    check_alpha(alpha)
    rgb = tile[..., :3].astype(np.float64)
    dom = np.array([dominant.r, dominant.g, dominant.b], dtype=np.float64)

    # Each term is truncated on its own before the saturating sum
    tile_part = np.clip(rgb * (1.0 - alpha), 0, 255).astype(np.uint16)
    dom_part = np.clip(dom * alpha, 0, 255).astype(np.uint16)

    out = tile.copy()
    out[..., :3] = np.minimum(tile_part + dom_part, 255).astype(np.uint8)
    return out
