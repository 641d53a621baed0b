# beadmap/__init__.py
"""
beadmap package.

Purpose:
  Recolour images to a fixed bead palette by nearest colour in CIE Lab.
  See beadmap.cli for the command line.

Public API:
  quantize        : flat RGBA buffer + palette -> remapped buffer (QuantizeResult).
  quantize_image  : same for a (H,W,4) uint8 array.
  KDTree          : exact 3-D nearest-neighbour index.
  colour_convert  : sRGB / linear / XYZ / Lab transforms, scalar and vectorised.
  palette_data    : sample palette and palette file loaders.
  PaletteEntry    : named reference colour.
  errors          : EmptyPaletteError, CorruptPixelBufferError, ...

Quick start:
  from beadmap import quantize, palette_from_hex_pairs
  result = quantize(rgba_bytes, palette_from_hex_pairs())
"""

__version__ = "0.1.0"

# Re-export namespaces for convenience.
from . import colour_convert
from . import core_types
from . import errors
from . import kd_tree
from . import palette_data

from .core_types import PaletteEntry
from .errors import (
    BeadmapError,
    CorruptPixelBufferError,
    EmptyPaletteError,
    LookupInconsistencyError,
    PaletteFormatError,
)
from .kd_tree import KDTree, Neighbour, build_kd_tree
from .palette_data import load_palette, palette_from_hex_pairs, palette_from_records
from .quantize import QuantizeResult, quantize, quantize_image

__all__ = [
    "__version__",
    "colour_convert",
    "core_types",
    "errors",
    "kd_tree",
    "palette_data",
    "PaletteEntry",
    "BeadmapError",
    "CorruptPixelBufferError",
    "EmptyPaletteError",
    "LookupInconsistencyError",
    "PaletteFormatError",
    "KDTree",
    "Neighbour",
    "build_kd_tree",
    "load_palette",
    "palette_from_hex_pairs",
    "palette_from_records",
    "QuantizeResult",
    "quantize",
    "quantize_image",
]
