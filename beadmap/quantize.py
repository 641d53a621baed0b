# beadmap/quantize.py
from __future__ import annotations

"""
Palette quantization engine.

Maps every pixel of a flat RGBA buffer to the nearest palette colour in
CIE Lab, computing each distinct colour once.

Steps:
  1) validate palette and buffer
  2) deduplicate RGBA colours in first-seen order
  3) unique RGB and palette RGB -> Lab
  4) KD-tree over palette Lab
  5) one nearest-neighbour query per unique colour, Lab -> sRGB,
     paired with the colour's own alpha, stored in the lookup cache
  6) rewrite the buffer through the cache

Alpha never takes part in matching and is copied through unchanged.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, TextIO, Tuple

import numpy as np
from numpy.typing import NDArray

from .colour_convert import lab_to_rgb, palette_rows_to_lab, rgb_to_lab_threaded
from .constants import MIN_PARALLEL_COLOURS
from .core_types import (
    ColorKey,
    Lab,
    LookupCache,
    PaletteEntry,
    PixelSource,
    U8Buffer,
    U8Image,
    assert_u8_image_rgba,
    color_key,
    pack_rgba_keys,
)
from .errors import CorruptPixelBufferError, EmptyPaletteError, LookupInconsistencyError
from .kd_tree import KDTree
from .utils import debug_log, format_seconds_compact, key_value_pairs_to_string


@dataclass(frozen=True)
class QuantizeResult:
    """
    Output of one quantize() call.

      pixels      : uint8 [N*4] remapped buffer, same length as the input
      palette_lab : float64 [P,3] palette Lab coordinates (diagnostic)
      cache       : ColorKey -> matched RGBA
      unique_keys : distinct input colours in first-seen order
      matches     : int64 [U] palette index chosen for each unique colour
    """

    pixels: U8Buffer
    palette_lab: Lab
    cache: LookupCache = field(default_factory=dict)
    unique_keys: List[ColorKey] = field(default_factory=list)
    matches: NDArray[np.int64] = field(
        default_factory=lambda: np.zeros((0,), dtype=np.int64)
    )

    @property
    def pixel_count(self) -> int:
        return int(self.pixels.size // 4)

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()

    def as_image(self, height: int, width: int) -> U8Image:
        """Reshape the flat buffer to (height, width, 4)."""
        return self.pixels.reshape(height, width, 4)


def as_pixel_buffer(pixels: PixelSource) -> U8Buffer:
    """
    Coerce bytes, bytearray, memoryview, an int sequence, or a uint8 array
    into a flat uint8 buffer. Raises CorruptPixelBufferError when the length
    is not a multiple of 4.
    """
    if isinstance(pixels, (bytes, bytearray)):
        buf = np.frombuffer(pixels, dtype=np.uint8)
    elif isinstance(pixels, memoryview):
        buf = np.frombuffer(pixels.cast("B"), dtype=np.uint8)
    elif isinstance(pixels, np.ndarray):
        if pixels.dtype != np.uint8:
            if not np.issubdtype(pixels.dtype, np.integer):
                raise TypeError(f"pixel array must be integer, got {pixels.dtype}")
            if pixels.size and (pixels.min() < 0 or pixels.max() > 255):
                raise ValueError("pixel values must be in 0..255")
        buf = pixels.astype(np.uint8, copy=False).reshape(-1)
    else:
        values = np.asarray(list(pixels), dtype=np.int64)
        if values.size and (values.min() < 0 or values.max() > 255):
            raise ValueError("pixel values must be in 0..255")
        buf = values.astype(np.uint8).reshape(-1)

    if buf.size % 4 != 0:
        raise CorruptPixelBufferError(int(buf.size))
    return buf


def unique_colours(buffer: U8Buffer) -> Tuple[NDArray[np.uint8], NDArray[np.int64]]:
    """
    Distinct RGBA colours of a flat buffer in first-seen order.

    Returns:
      unique_rgba: uint8 [U,4]
      inverse: int64 [N], where unique_rgba[inverse] rebuilds the pixel rows
    """
    rows = buffer.reshape(-1, 4)
    if rows.shape[0] == 0:
        return np.zeros((0, 4), dtype=np.uint8), np.zeros((0,), dtype=np.int64)

    keys = pack_rgba_keys(rows)
    _, first_idx, inverse = np.unique(keys, return_index=True, return_inverse=True)
    # np.unique sorts by key; reorder to first appearance.
    order = np.argsort(first_idx, kind="stable")
    rank = np.empty_like(order)
    rank[order] = np.arange(order.size)
    unique_rgba = rows[first_idx[order]]
    return unique_rgba, rank[inverse.reshape(-1)].astype(np.int64, copy=False)


def _palette_rgb_rows(palette: Sequence[PaletteEntry]) -> List[Tuple[int, int, int]]:
    return [(e.r, e.g, e.b) for e in palette]


def quantize(
    pixels: PixelSource,
    palette: Sequence[PaletteEntry],
    *,
    workers: int = 1,
    debug: bool = False,
    log_file: Optional[TextIO] = None,
) -> QuantizeResult:
    """
    Remap an RGBA buffer to the nearest palette colours in Lab.

    Args:
      pixels: flat RGBA bytes / ints / uint8 array (length divisible by 4)
      palette: non-empty sequence of PaletteEntry
      workers: threads for Lab conversion and tree queries (1 = serial)
      debug: print stage timings and counts
      log_file: stream for debug lines (default sys.stdout)
    Raises:
      EmptyPaletteError, CorruptPixelBufferError
    """
    if len(palette) == 0:
        raise EmptyPaletteError()
    buffer = as_pixel_buffer(pixels)

    if buffer.size == 0:
        return QuantizeResult(
            pixels=np.zeros((0,), dtype=np.uint8),
            palette_lab=np.zeros((0, 3), dtype=np.float64),
        )

    t0 = time.perf_counter()
    unique_rgba, inverse = unique_colours(buffer)
    n_unique = int(unique_rgba.shape[0])
    pool = workers if n_unique >= MIN_PARALLEL_COLOURS else 1

    pal_lab = palette_rows_to_lab(_palette_rgb_rows(palette))
    src_lab = rgb_to_lab_threaded(unique_rgba[:, :3], pool)
    t1 = time.perf_counter()

    tree = KDTree(pal_lab)
    neighbours = tree.nearest_many(src_lab, workers=pool)
    t2 = time.perf_counter()

    unique_keys = [color_key(*row) for row in unique_rgba.tolist()]
    matches = np.empty((n_unique,), dtype=np.int64)
    matched_lab = np.empty((n_unique, 3), dtype=np.float64)
    for i, nb in enumerate(neighbours):
        if nb is None:
            raise LookupInconsistencyError(unique_keys[i])
        matches[i] = nb.index
        matched_lab[i] = nb.point
    matched_rgb = lab_to_rgb(matched_lab).tolist()

    cache: LookupCache = {}
    for key, rgb in zip(unique_keys, matched_rgb):
        cache[key] = (rgb[0], rgb[1], rgb[2], key[3])

    table = np.empty((n_unique, 4), dtype=np.uint8)
    for i, key in enumerate(unique_keys):
        hit = cache.get(key)
        if hit is None:
            raise LookupInconsistencyError(key)
        table[i] = hit
    out = table[inverse].reshape(-1)
    t3 = time.perf_counter()

    if debug:
        debug_log(
            key_value_pairs_to_string(
                [
                    ("Pixels", int(buffer.size // 4)),
                    ("Unique colours", n_unique),
                    ("Palette", len(palette)),
                    ("Tree depth", tree.depth()),
                    ("Workers", pool),
                ]
            ),
            file=log_file,
        )
        debug_log(
            f"lab={format_seconds_compact(t1 - t0)}  "
            f"query={format_seconds_compact(t2 - t1)}  "
            f"rewrite={format_seconds_compact(t3 - t2)}",
            file=log_file,
        )

    return QuantizeResult(
        pixels=out,
        palette_lab=pal_lab,
        cache=cache,
        unique_keys=unique_keys,
        matches=matches,
    )


def quantize_image(
    rgba: U8Image,
    palette: Sequence[PaletteEntry],
    *,
    workers: int = 1,
    debug: bool = False,
    log_file: Optional[TextIO] = None,
) -> Tuple[U8Image, QuantizeResult]:
    """Quantize an (H,W,4) uint8 image; returns (mapped image, result)."""
    image = assert_u8_image_rgba(rgba)
    height, width = image.shape[:2]
    result = quantize(
        np.ascontiguousarray(image).reshape(-1),
        palette,
        workers=workers,
        debug=debug,
        log_file=log_file,
    )
    return result.as_image(height, width), result


__all__ = [
    "QuantizeResult",
    "as_pixel_buffer",
    "unique_colours",
    "quantize",
    "quantize_image",
]
