# beadmap/core_types.py
from __future__ import annotations

"""
Core type aliases, small value objects, and lightweight helpers.
"""

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray

# Basic aliases

RGBTuple = Tuple[int, int, int]
RGBATuple = Tuple[int, int, int, int]
HexStr = str

Point3 = Tuple[float, float, float]
LabPoint = Point3  # (L, a, b)
XYZPoint = Point3  # (X, Y, Z), white Y = 1

U8Image = NDArray[np.uint8]  # (H, W, 4) RGBA or (N, 3) rows
U8Buffer = NDArray[np.uint8]  # flat RGBA, length divisible by 4
Lab = NDArray[np.float64]  # (..., 3) CIE Lab

# Dedup key for a distinct (R, G, B, A).
ColorKey = RGBATuple
LookupCache = Dict[ColorKey, RGBATuple]

PixelSource = Union[bytes, bytearray, memoryview, Sequence[int], NDArray[np.uint8]]

# Value objects


@dataclass(frozen=True)
class PaletteEntry:
    """Named reference colour (e.g. one bead in a catalogue)."""

    name: str
    r: int
    g: int
    b: int

    @property
    def rgb(self) -> RGBTuple:
        return (self.r, self.g, self.b)

    @property
    def hex(self) -> HexStr:
        return rgb_to_hex(self.rgb)


# Small helpers


def color_key(r: int, g: int, b: int, a: int) -> ColorKey:
    """Canonical hashable key for one RGBA pixel."""
    return (int(r), int(g), int(b), int(a))


def pack_rgba_keys(rgba_rows: NDArray[np.uint8]) -> NDArray[np.uint32]:
    """
    Pack (N,4) uint8 RGBA rows into one uint32 per row.
    The packing is a bijection, so equal channels give equal keys.
    """
    rows = rgba_rows.astype(np.uint32, copy=False)
    return (rows[:, 0] << 24) | (rows[:, 1] << 16) | (rows[:, 2] << 8) | rows[:, 3]


def rgb_to_hex(rgb: RGBTuple) -> HexStr:
    """RGB tuple to lowercase hex string '#rrggbb'."""
    return f"#{rgb[0]:02x}{rgb[1]:02x}{rgb[2]:02x}"


def hex_to_rgb(hex_str: str) -> RGBTuple:
    """Parse '#rgb' or '#rrggbb' (case-insensitive) into an RGB tuple."""
    s = hex_str.strip().lower()
    if not s.startswith("#"):
        raise ValueError("hex must start with '#'")
    if len(s) == 4:
        r, g, b = s[1], s[2], s[3]
        s = f"#{r}{r}{g}{g}{b}{b}"
    if len(s) != 7:
        raise ValueError("hex must be '#rrggbb' or '#rgb'")
    return (int(s[1:3], 16), int(s[3:5], 16), int(s[5:7], 16))


def assert_u8_image_rgba(image: np.ndarray) -> U8Image:
    """Validate a uint8 (H,W,4) image and return it typed as U8Image."""
    if image.dtype != np.uint8 or image.ndim != 3 or image.shape[-1] != 4:
        raise TypeError("expected uint8 (H,W,4) image")
    return image  # type: ignore[return-value]


__all__ = [
    # aliases / types
    "RGBTuple",
    "RGBATuple",
    "HexStr",
    "Point3",
    "LabPoint",
    "XYZPoint",
    "U8Image",
    "U8Buffer",
    "Lab",
    "ColorKey",
    "LookupCache",
    "PixelSource",
    # value objects
    "PaletteEntry",
    # helpers
    "color_key",
    "pack_rgba_keys",
    "rgb_to_hex",
    "hex_to_rgb",
    "assert_u8_image_rgba",
]
