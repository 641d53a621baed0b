# beadmap/image_io.py
from __future__ import annotations

import io
from pathlib import Path
from typing import Optional

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from .core_types import U8Image, assert_u8_image_rgba

"""
Image I/O helpers: decode to (H,W,4) RGBA in sRGB, encode RGBA to PNG,
and an optional height cap resize. Alpha is kept as decoded.
"""

try:
    from PIL import ImageCms  # ICC conversion if profile present
except ImportError:  # pragma: no cover
    ImageCms = None  # type: ignore[assignment]


def _convert_to_srgb_rgba(im: Image.Image) -> Image.Image:
    im = ImageOps.exif_transpose(im)
    icc_bytes = im.info.get("icc_profile")

    if icc_bytes and ImageCms is not None:
        try:
            src_prof = ImageCms.ImageCmsProfile(io.BytesIO(icc_bytes))
            dst_prof = ImageCms.createProfile("sRGB")
            im2 = ImageCms.profileToProfile(
                im.convert("RGBA") if im.mode not in ("RGB", "RGBA") else im,
                src_prof,
                dst_prof,
                outputMode="RGBA",
            )
            if im2 is None:
                return im.convert("RGBA")
            return im2
        except (ImageCms.PyCMSError, OSError, ValueError):
            return im.convert("RGBA")

    return im.convert("RGBA")


def load_image_rgba(path: Path) -> U8Image:
    """Load any Pillow-readable image as a uint8 (H,W,4) sRGB array."""
    with Image.open(path) as im0:
        im = _convert_to_srgb_rgba(im0)
    return np.array(im, dtype=np.uint8)


def save_image_rgba(path: Path, rgba: U8Image) -> Path:
    """Save a uint8 (H,W,4) array as PNG; non-PNG suffixes are replaced."""
    if path.suffix.lower() != ".png":
        path = path.with_suffix(".png")
    image = assert_u8_image_rgba(np.ascontiguousarray(rgba))
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(image).save(path)
    return path


def resize_rgba_height(
    rgba: U8Image,
    dst_h: Optional[int],
    resample: Image.Resampling,
) -> U8Image:
    """Downscale so height <= dst_h, keeping aspect. Never upscales."""
    H0, W0, _ = rgba.shape
    if dst_h is None or dst_h <= 0 or dst_h >= H0:
        return rgba

    dst_w = max(1, int(round(W0 * (dst_h / float(H0)))))
    im = Image.fromarray(np.ascontiguousarray(rgba))
    im2 = im.resize((dst_w, dst_h), resample=resample)
    return np.array(im2, dtype=np.uint8)


def is_image_file(path: Path) -> bool:
    try:
        with Image.open(path) as im:
            im.seek(0)
            im.load()
        return True
    except (UnidentifiedImageError, OSError):
        return False


__all__ = [
    "load_image_rgba",
    "save_image_rgba",
    "resize_rgba_height",
    "is_image_file",
]
