# beadmap/errors.py
"""
Exceptions raised by beadmap.

User-facing input problems subclass ValueError so callers that already
catch ValueError keep working. LookupInconsistencyError signals a logic
defect and subclasses RuntimeError.
"""


class BeadmapError(Exception):
    """Base class for all beadmap errors."""


class EmptyPaletteError(BeadmapError, ValueError):
    """No reference colours were supplied."""

    def __init__(self, message: str = "palette is empty") -> None:
        super().__init__(message)


class CorruptPixelBufferError(BeadmapError, ValueError):
    """Pixel buffer length is not a multiple of 4 (RGBA)."""

    def __init__(self, length: int) -> None:
        super().__init__(f"pixel buffer length {length} is not a multiple of 4")
        self.length = length


class PaletteFormatError(BeadmapError, ValueError):
    """A palette record or file could not be parsed."""


class LookupInconsistencyError(BeadmapError, RuntimeError):
    """A deduplicated colour has no entry in the lookup cache."""

    def __init__(self, key: tuple) -> None:
        super().__init__(f"colour {key} missing from lookup cache")
        self.key = key


__all__ = [
    "BeadmapError",
    "EmptyPaletteError",
    "CorruptPixelBufferError",
    "PaletteFormatError",
    "LookupInconsistencyError",
]
