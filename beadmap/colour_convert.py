# beadmap/colour_convert.py
from __future__ import annotations

"""
Colour conversions (sRGB / linear RGB / CIE XYZ / CIE Lab, D65).

Scalar exports:
  srgb_to_linear(channel)
  linear_to_srgb(value)
  linear_to_xyz(r, g, b)
  xyz_to_lab(x, y, z, white_point)
  lab_to_xyz(L, a, b, white_point)
  xyz_to_srgb(x, y, z)
  srgb_to_lab(rgb)
  lab_to_srgb(lab)

Vectorised exports (any shape (..., 3), float64):
  srgb_to_linear_array, linear_to_xyz_array, xyz_to_lab_array,
  lab_to_xyz_array, xyz_to_srgb_array, rgb_to_lab, lab_to_rgb,
  rgb_to_lab_threaded

Notes:
  XYZ is the bare matrix product of linear RGB (white has Y = 1) while the
  white points are on the 0..100 scale; both are used as published. The
  forward Lab transform uses WHITE_POINT_FORWARD and the inverse uses
  WHITE_POINT_INVERSE; the two anchors are not unified. Rounding to 8-bit
  is half-to-even in both the scalar (round) and vectorised (np.rint) paths.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Sequence, Tuple

import numpy as np

from .constants import (
    LAB_DELTA,
    LAB_DELTA_CUBED,
    LAB_LINEAR_SLOPE,
    LAB_OFFSET,
    MIN_PARALLEL_ROWS,
    RGB_TO_XYZ,
    SRGB_DECODE_THRESHOLD,
    SRGB_ENCODE_THRESHOLD,
    SRGB_GAMMA,
    WHITE_POINT_FORWARD,
    WHITE_POINT_INVERSE,
    XYZ_TO_RGB,
    WhitePoint,
)
from .core_types import Lab, LabPoint, RGBTuple, XYZPoint
from .utils import split_rows_into_parts

_RGB_TO_XYZ = np.array(RGB_TO_XYZ, dtype=np.float64)
_XYZ_TO_RGB = np.array(XYZ_TO_RGB, dtype=np.float64)


# Scalar: gamma


def srgb_to_linear(channel: float) -> float:
    """8-bit sRGB channel (0..255) to linear light (0..1)."""
    c = channel / 255.0
    if c <= SRGB_DECODE_THRESHOLD:
        return c / 12.92
    return ((c + 0.055) / 1.055) ** SRGB_GAMMA


def linear_to_srgb(value: float) -> float:
    """Linear light to gamma-encoded sRGB (0..1), unclamped."""
    if value <= SRGB_ENCODE_THRESHOLD:
        return 12.92 * value
    return 1.055 * value ** (1.0 / SRGB_GAMMA) - 0.055


# Scalar: matrices and Lab


def linear_to_xyz(r: float, g: float, b: float) -> XYZPoint:
    """Linear RGB (0..1) to CIE XYZ."""
    m = RGB_TO_XYZ
    return (
        m[0][0] * r + m[0][1] * g + m[0][2] * b,
        m[1][0] * r + m[1][1] * g + m[1][2] * b,
        m[2][0] * r + m[2][1] * g + m[2][2] * b,
    )


def _lab_f(t: float) -> float:
    if t > LAB_DELTA_CUBED:
        return t ** (1.0 / 3.0)
    return t / LAB_LINEAR_SLOPE + LAB_OFFSET


def _lab_f_inverse(t: float) -> float:
    if t > LAB_DELTA:
        return t**3
    return LAB_LINEAR_SLOPE * (t - LAB_OFFSET)


def xyz_to_lab(
    x: float, y: float, z: float, white_point: WhitePoint = WHITE_POINT_FORWARD
) -> LabPoint:
    """CIE XYZ to CIE Lab relative to white_point."""
    xn, yn, zn = white_point
    fx = _lab_f(x / xn)
    fy = _lab_f(y / yn)
    fz = _lab_f(z / zn)
    return (116.0 * fy - 16.0, 500.0 * (fx - fy), 200.0 * (fy - fz))


def lab_to_xyz(
    L: float, a: float, b: float, white_point: WhitePoint = WHITE_POINT_INVERSE
) -> XYZPoint:
    """CIE Lab to CIE XYZ relative to white_point."""
    xn, yn, zn = white_point
    fy = (L + 16.0) / 116.0
    fx = fy + a / 500.0
    fz = fy - b / 200.0
    return (_lab_f_inverse(fx) * xn, _lab_f_inverse(fy) * yn, _lab_f_inverse(fz) * zn)


def xyz_to_srgb(x: float, y: float, z: float) -> RGBTuple:
    """CIE XYZ to 8-bit sRGB, clamped and rounded half-to-even."""
    m = XYZ_TO_RGB
    linear = (
        m[0][0] * x + m[0][1] * y + m[0][2] * z,
        m[1][0] * x + m[1][1] * y + m[1][2] * z,
        m[2][0] * x + m[2][1] * y + m[2][2] * z,
    )
    out = []
    for c in linear:
        encoded = min(max(linear_to_srgb(c), 0.0), 1.0)
        out.append(int(round(encoded * 255.0)))
    return (out[0], out[1], out[2])


def srgb_to_lab(rgb: Sequence[int]) -> LabPoint:
    """8-bit sRGB triple to Lab (forward white point)."""
    r, g, b = (srgb_to_linear(float(c)) for c in rgb[:3])
    return xyz_to_lab(*linear_to_xyz(r, g, b))


def lab_to_srgb(lab: Sequence[float]) -> RGBTuple:
    """Lab triple to 8-bit sRGB (inverse white point)."""
    return xyz_to_srgb(*lab_to_xyz(float(lab[0]), float(lab[1]), float(lab[2])))


# Vectorised


def srgb_to_linear_array(rgb: np.ndarray) -> np.ndarray:
    """8-bit sRGB values (any shape) to linear light float64."""
    c = np.asarray(rgb, dtype=np.float64) / 255.0
    return np.where(
        c <= SRGB_DECODE_THRESHOLD, c / 12.92, ((c + 0.055) / 1.055) ** SRGB_GAMMA
    )


def linear_to_xyz_array(linear: np.ndarray) -> np.ndarray:
    """Linear RGB[...,3] to XYZ[...,3]."""
    return np.asarray(linear, dtype=np.float64) @ _RGB_TO_XYZ.T


def xyz_to_lab_array(
    xyz: np.ndarray, white_point: WhitePoint = WHITE_POINT_FORWARD
) -> Lab:
    """XYZ[...,3] to Lab[...,3]. Shape preserved."""
    t = np.asarray(xyz, dtype=np.float64) / np.asarray(white_point, dtype=np.float64)
    f = np.where(t > LAB_DELTA_CUBED, np.cbrt(t), t / LAB_LINEAR_SLOPE + LAB_OFFSET)
    out = np.empty(f.shape, dtype=np.float64)
    out[..., 0] = 116.0 * f[..., 1] - 16.0
    out[..., 1] = 500.0 * (f[..., 0] - f[..., 1])
    out[..., 2] = 200.0 * (f[..., 1] - f[..., 2])
    return out


def lab_to_xyz_array(
    lab: np.ndarray, white_point: WhitePoint = WHITE_POINT_INVERSE
) -> np.ndarray:
    """Lab[...,3] to XYZ[...,3]. Shape preserved."""
    lab_f = np.asarray(lab, dtype=np.float64)
    fy = (lab_f[..., 0] + 16.0) / 116.0
    f = np.stack([fy + lab_f[..., 1] / 500.0, fy, fy - lab_f[..., 2] / 200.0], axis=-1)
    t = np.where(f > LAB_DELTA, f**3, LAB_LINEAR_SLOPE * (f - LAB_OFFSET))
    return t * np.asarray(white_point, dtype=np.float64)


def xyz_to_srgb_array(xyz: np.ndarray) -> np.ndarray:
    """XYZ[...,3] to uint8 sRGB[...,3]: clamp, then round half-to-even."""
    linear = np.asarray(xyz, dtype=np.float64) @ _XYZ_TO_RGB.T
    with np.errstate(invalid="ignore"):
        encoded = np.where(
            linear <= SRGB_ENCODE_THRESHOLD,
            12.92 * linear,
            1.055 * linear ** (1.0 / SRGB_GAMMA) - 0.055,
        )
    encoded = np.clip(encoded, 0.0, 1.0)
    return np.rint(encoded * 255.0).astype(np.uint8)


def rgb_to_lab(rgb: np.ndarray) -> Lab:
    """
    sRGB to CIE Lab (D65).
    Accepts uint8 or float values on 0..255. Preserves shape (...,3).
    """
    return xyz_to_lab_array(linear_to_xyz_array(srgb_to_linear_array(rgb)))


def lab_to_rgb(lab: Lab) -> np.ndarray:
    """CIE Lab[...,3] to uint8 sRGB[...,3]."""
    return xyz_to_srgb_array(lab_to_xyz_array(lab))


# Threaded helpers


def rgb_to_lab_threaded(rgb: np.ndarray, workers: int) -> Lab:
    """
    Threaded RGB->Lab conversion by splitting the leading axis.

    Args:
      rgb: uint8 array [N,3] or [H,W,3]
      workers: number of threads; if <=1 or fewer than MIN_PARALLEL_ROWS rows,
               runs single-threaded
    Returns:
      Lab float64 array with the same shape
    """
    rows = int(rgb.shape[0])
    if workers <= 1 or rows < MIN_PARALLEL_ROWS:
        return rgb_to_lab(rgb)

    spans = split_rows_into_parts(rows, workers)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(rgb_to_lab, rgb[s:e]) for s, e in spans]
        parts = [f.result() for f in futures]
    return np.concatenate(parts, axis=0)


def palette_rows_to_lab(rows: Sequence[Tuple[int, int, int]]) -> Lab:
    """(P,3) RGB rows to (P,3) Lab; empty input gives an empty (0,3) array."""
    if len(rows) == 0:
        return np.zeros((0, 3), dtype=np.float64)
    return rgb_to_lab(np.asarray(rows, dtype=np.uint8).reshape(-1, 3))


__all__ = [
    "srgb_to_linear",
    "linear_to_srgb",
    "linear_to_xyz",
    "xyz_to_lab",
    "lab_to_xyz",
    "xyz_to_srgb",
    "srgb_to_lab",
    "lab_to_srgb",
    "srgb_to_linear_array",
    "linear_to_xyz_array",
    "xyz_to_lab_array",
    "lab_to_xyz_array",
    "xyz_to_srgb_array",
    "rgb_to_lab",
    "lab_to_rgb",
    "rgb_to_lab_threaded",
    "palette_rows_to_lab",
]
