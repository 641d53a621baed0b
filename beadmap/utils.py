# beadmap/utils.py
from __future__ import annotations

"""
Shared utilities for beadmap.

Includes duration formatting, work splitting for thread pools, Pillow
resample lookup, the colour usage report, and tidy logging.
"""

import sys
from typing import Any, Iterable, List, Mapping, Optional, TextIO, Tuple

import numpy as np
from PIL import Image


#  Time / size formatting


def format_seconds_compact(seconds: float) -> str:
    """Human-friendly seconds: '<ms>ms', '<s>s', or 'Mm Ss'."""
    if seconds < 1.0:
        return f"{seconds * 1000.0:.1f}ms"
    if seconds < 60.0:
        return f"{seconds:.3f}s"
    minutes = int(seconds // 60)
    return f"{minutes}m {seconds - 60 * minutes:.1f}s"


def format_total_duration_compact(seconds: float) -> str:
    """Compact total duration: 'Mm Ss', 'Ss.s', or 'ms'."""
    if seconds >= 60.0:
        minutes = int(seconds // 60)
        rem = int(round(seconds - 60 * minutes))
        return f"{minutes}m {rem}s"
    if seconds >= 1.0:
        return f"{seconds:.1f}s"
    return f"{seconds * 1000.0:.1f}ms"


# Work splitting


def split_rows_into_parts(height: int, parts: int) -> List[Tuple[int, int]]:
    """Partition range [0, height) into ~parts contiguous [start, end) row spans."""
    parts = max(1, int(parts))
    step = max(1, (height + parts - 1) // parts)
    return [(start, min(start + step, height)) for start in range(0, height, step)]


# I/O / image helpers


def pillow_resample_from_name(name: str) -> int:
    """Map a string to a Pillow resampling filter enum."""
    if name == "nearest":
        return Image.Resampling.NEAREST
    if name == "bilinear":
        return Image.Resampling.BILINEAR
    if name == "bicubic":
        return Image.Resampling.BICUBIC
    if name == "lanczos":
        return Image.Resampling.LANCZOS
    return Image.Resampling.NEAREST  # default keeps bead cells crisp


def colour_usage_report(
    rgba: np.ndarray, name_of: Mapping[str, str]
) -> List[Tuple[str, str, int]]:
    """
    Compute a simple colour usage report for visible pixels.

    Args:
      rgba: uint8 RGBA pixels, flat or (H,W,4)
      name_of: "#rrggbb" -> palette entry name
    Returns:
      list of (hex, name, count) sorted by count descending
    """
    rows = np.asarray(rgba, dtype=np.uint8).reshape(-1, 4)
    visible = rows[rows[:, 3] > 0, :3]
    if visible.shape[0] == 0:
        return []
    uniques, counts = np.unique(visible, axis=0, return_counts=True)
    report: List[Tuple[str, str, int]] = []
    for rgb_row, count in sorted(zip(uniques, counts), key=lambda x: -int(x[1])):
        hex_str = f"#{int(rgb_row[0]):02x}{int(rgb_row[1]):02x}{int(rgb_row[2]):02x}"
        report.append((hex_str, name_of.get(hex_str, "?"), int(count)))
    return report


#  CLI / stdout


def enable_line_buffered_stdout() -> None:
    """
    Enable line-buffered stdout when supported.
    Helps live output in terminals that expose .reconfigure().
    """
    reconfig = getattr(sys.stdout, "reconfigure", None)
    if callable(reconfig):
        try:
            reconfig(line_buffering=True, write_through=True)
        except (OSError, ValueError):
            pass


# Pretty logging


def format_bool_on_off(value: Any) -> str:
    """Pretty boolean: 'on'/'off' for bools; str(value) otherwise."""
    if isinstance(value, bool):
        return "on" if value else "off"
    return str(value)


def format_number_compact(value: Any) -> str:
    """Pretty number: 1,234 style for ints; compact for floats; passthrough otherwise."""
    if isinstance(value, int):
        return f"{value:,}"
    if isinstance(value, float):
        text = f"{value:.3f}".rstrip("0").rstrip(".")
        return text
    return str(value)


def key_value_pairs_to_string(
    pairs: Iterable[Tuple[str, Any]], sep: str = "  ", eq: str = ": "
) -> str:
    """
    Format (name, value) pairs as 'Name: value' blocks separated by sep.
    Uses format_bool_on_off / format_number_compact for readability.
    """
    out: List[str] = []
    for name, value in pairs:
        display = (
            format_bool_on_off(value)
            if isinstance(value, bool)
            else format_number_compact(value)
        )
        out.append(f"{name}{eq}{display}")
    return sep.join(out)


def print_config_line(
    section: str, pairs: Iterable[Tuple[str, Any]], debug: bool
) -> None:
    """
    Emit a single human-readable config line, e.g.:
      [run] CPU cores: 8  Workers: 6  Jobs: 2
    Routes to debug_log() when debug=True, else to log().
    """
    line = f"[{section}] {key_value_pairs_to_string(pairs)}"
    (debug_log if debug else log)(line)


# file=None means the current sys.stdout.


def print_banner(title: str, file: Optional[TextIO] = None) -> None:
    """Section banner."""
    print(f"\n=== {title} ===", file=file, flush=True)


def log(message: str, file: Optional[TextIO] = None) -> None:
    """Plain log line."""
    print(message, file=file, flush=True)


def debug_log(message: str, file: Optional[TextIO] = None) -> None:
    """Debug log line."""
    print(f"[debug] {message}", file=file, flush=True)


def warn(message: str, file: Optional[TextIO] = None) -> None:
    """Warning log line."""
    print(f"[warn] {message}", file=file, flush=True)


def error(message: str) -> None:
    """Error log line to stderr."""
    print(f"[error] {message}", file=sys.stderr, flush=True)


__all__ = [
    "format_seconds_compact",
    "format_total_duration_compact",
    "split_rows_into_parts",
    "pillow_resample_from_name",
    "colour_usage_report",
    "enable_line_buffered_stdout",
    "format_bool_on_off",
    "format_number_compact",
    "key_value_pairs_to_string",
    "print_config_line",
    "print_banner",
    "log",
    "debug_log",
    "warn",
    "error",
]
