"""
Colour-science constants and run tunables used across the project.

- sRGB <-> XYZ matrices (D65)
- Forward and inverse Lab white points
- Gamma thresholds and Lab piecewise constants
- Parallelism tunables
"""
from __future__ import annotations

from typing import Tuple

Matrix3 = Tuple[
    Tuple[float, float, float],
    Tuple[float, float, float],
    Tuple[float, float, float],
]
WhitePoint = Tuple[float, float, float]

# ============================
# sRGB <-> XYZ (D65) matrices
# ============================
RGB_TO_XYZ: Matrix3 = (
    (0.4124564, 0.3575761, 0.1804375),
    (0.2126729, 0.7151522, 0.072175),
    (0.0193339, 0.119192, 0.9503041),
)

XYZ_TO_RGB: Matrix3 = (
    (3.2406, -1.5372, -0.4986),
    (-0.9689, 1.8758, 0.0415),
    (0.0557, -0.204, 1.057),
)

# ======================
# White points (D65)
# ======================
# Forward and inverse anchors differ slightly; keep both as published.
WHITE_POINT_FORWARD: WhitePoint = (95.0489, 100.0, 108.884)
WHITE_POINT_INVERSE: WhitePoint = (95.047, 100.0, 108.883)

# ==============
# Gamma (sRGB)
# ==============
SRGB_DECODE_THRESHOLD: float = 0.04045
SRGB_ENCODE_THRESHOLD: float = 0.0031308
SRGB_GAMMA: float = 2.4

# ===========
# CIE Lab
# ===========
LAB_DELTA: float = 6.0 / 29.0
LAB_DELTA_CUBED: float = LAB_DELTA**3
LAB_LINEAR_SLOPE: float = 3.0 * LAB_DELTA**2
LAB_OFFSET: float = 4.0 / 29.0

# =============
# Parallelism
# =============
# Below these sizes a thread pool costs more than it saves.
MIN_PARALLEL_COLOURS: int = 2048
MIN_PARALLEL_ROWS: int = 256

__all__ = [
    "Matrix3",
    "WhitePoint",
    "RGB_TO_XYZ",
    "XYZ_TO_RGB",
    "WHITE_POINT_FORWARD",
    "WHITE_POINT_INVERSE",
    "SRGB_DECODE_THRESHOLD",
    "SRGB_ENCODE_THRESHOLD",
    "SRGB_GAMMA",
    "LAB_DELTA",
    "LAB_DELTA_CUBED",
    "LAB_LINEAR_SLOPE",
    "LAB_OFFSET",
    "MIN_PARALLEL_COLOURS",
    "MIN_PARALLEL_ROWS",
]
