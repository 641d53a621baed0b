"""
beadmap command line.

Recolour RGBA images to a bead palette by nearest colour in CIE Lab.

Usage:
  beadmap INPUT [--outdir DIR] [--palette FILE] [--height H]
          [--resample nearest|bilinear|bicubic|lanczos]
          [--jobs N] [--workers N] [--dump-lab FILE] [--debug]

Input:
  Any Pillow-readable image, or a folder of images. Alpha is preserved.

Output:
  PNG. Writes <stem>_beads.png next to INPUT unless --outdir is given.

Palette:
  Built-in sample palette by default. --palette accepts a .json list of
  {name, r, g, b} objects (or a {"R<r>G<g>B<b>": name} map) or a .csv with
  a name,r,g,b header.
"""

from __future__ import annotations

import argparse
import io
import json
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Sequence, TextIO

import numpy as np
from PIL import UnidentifiedImageError

from .core_types import PaletteEntry
from .errors import BeadmapError
from .image_io import (
    is_image_file,
    load_image_rgba,
    resize_rgba_height,
    save_image_rgba,
)
from .palette_data import (
    build_palette,
    load_palette,
    palette_from_hex_pairs,
)
from .quantize import quantize_image
from .utils import (
    colour_usage_report,
    debug_log,
    enable_line_buffered_stdout,
    error,
    format_seconds_compact,
    format_total_duration_compact,
    key_value_pairs_to_string,
    log,
    pillow_resample_from_name,
    print_banner,
    print_config_line,
    warn,
)

OUTPUT_SUFFIX = "_beads"
IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".webp", ".bmp", ".gif"}


# CLI args & small helpers


def _default_workers() -> int:
    """Leave a few cores free for the system; returns a sensible worker count."""
    n = os.cpu_count() or 4
    reserve = 1 if n <= 6 else 2 if n <= 12 else 3 if n <= 18 else 4
    return max(1, n - reserve)


def parse_cli_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse CLI arguments for palette recolouring.

    Returns:
      argparse.Namespace with:
        src: Path to image or folder
        outdir: optional Path for outputs
        palette: optional Path to a palette file
        height: optional int max output height
        resample: resize filter name
        jobs: parallel file workers
        workers: internal threads for the engine
        dump_lab: optional Path for palette Lab JSON
        debug: bool for verbose details
    """
    parser = argparse.ArgumentParser(
        prog="beadmap",
        description="Recolour image(s) to a bead palette by nearest Lab colour.",
    )
    parser.add_argument("src", type=Path, help="Input image or folder")
    parser.add_argument(
        "--outdir", type=Path, default=None, help="Output directory (optional)"
    )
    parser.add_argument(
        "--palette",
        type=Path,
        default=None,
        help="Palette file (.json or .csv). Omit for the built-in sample palette.",
    )
    parser.add_argument(
        "--height",
        type=int,
        default=None,
        help="Resize so height<=H. Omit for no resize.",
    )
    parser.add_argument(
        "--resample",
        choices=["nearest", "bilinear", "bicubic", "lanczos"],
        default="nearest",
        help="Scaling filter used with --height.",
    )
    parser.add_argument(
        "--jobs", type=int, default=1, help="Files processed in parallel"
    )
    parser.add_argument(
        "--workers", type=int, default=_default_workers(), help="Internal workers"
    )
    parser.add_argument(
        "--dump-lab",
        type=Path,
        default=None,
        help="Write the palette's Lab coordinates to this JSON file",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose details")
    return parser.parse_args(argv)


def _load_entries(palette_path: Optional[Path]) -> List[PaletteEntry]:
    if palette_path is None:
        return palette_from_hex_pairs()
    return load_palette(palette_path)


def dump_palette_lab(path: Path, palette: Sequence[PaletteEntry]) -> Path:
    """Write [{name, rgb, lab}, ...] for the palette as JSON."""
    _pal_rgb, pal_lab, _name_of = build_palette(palette)
    rows = [
        {
            "name": entry.name,
            "rgb": [entry.r, entry.g, entry.b],
            "lab": [round(float(v), 6) for v in lab],
        }
        for entry, lab in zip(palette, pal_lab)
    ]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(rows, indent=2), encoding="utf-8")
    return path


# Per-file processing


def _process_single_image(
    src_path: Path,
    out_path: Optional[Path],
    palette: Sequence[PaletteEntry],
    name_of_hex: Dict[str, str],
    height_cap: Optional[int],
    resample_name: str,
    workers: int,
    debug: bool,
    out: Optional[TextIO] = None,
) -> Path:
    """
    Process a single image path end-to-end:
      load -> optional resize -> quantize -> save -> report.
    The report goes to out (default sys.stdout).
    """
    t_start = time.perf_counter()
    if out_path is None:
        out_path = src_path.with_name(f"{src_path.stem}{OUTPUT_SUFFIX}.png")

    print_banner(src_path.name, file=out)

    rgba = load_image_rgba(src_path)
    height0, width0 = rgba.shape[0], rgba.shape[1]
    if debug:
        debug_log(
            key_value_pairs_to_string([("Loaded", f"{width0}x{height0}")]), file=out
        )

    rgba = resize_rgba_height(rgba, height_cap, pillow_resample_from_name(resample_name))
    height, width = rgba.shape[0], rgba.shape[1]
    if debug and (width, height) != (width0, height0):
        debug_log(
            key_value_pairs_to_string([("Resized", f"{width}x{height}")]), file=out
        )
    t_loaded = time.perf_counter()

    mapped, result = quantize_image(
        rgba, palette, workers=workers, debug=debug, log_file=out
    )
    t_mapped = time.perf_counter()

    written = save_image_rgba(out_path, mapped)
    t_saved = time.perf_counter()

    log(
        f"Wrote {written.name} | size={width}x{height} | palette_size={len(palette)}"
        f" | unique_colours={len(result.unique_keys):,}",
        file=out,
    )
    log("Colours used:", file=out)
    for hex_code, name, count in colour_usage_report(mapped, name_of_hex):
        log(f"  {hex_code}  {name}: {count:,}", file=out)

    total_pixels = int(np.count_nonzero(mapped[..., 3] > 0))
    log(f"Total pixels: {total_pixels:,}", file=out)

    if debug:
        debug_log(
            f"Total {format_total_duration_compact(t_saved - t_start)}  "
            f"(load={format_seconds_compact(t_loaded - t_start)}, "
            f"map={format_seconds_compact(t_mapped - t_loaded)}, "
            f"save={format_seconds_compact(t_saved - t_mapped)})",
            file=out,
        )
    else:
        log(
            f"Total time {format_total_duration_compact(t_saved - t_start)}", file=out
        )
    return written


def _process_one(
    path: Path,
    outdir: Optional[Path],
    palette: Sequence[PaletteEntry],
    name_of_hex: Dict[str, str],
    args: argparse.Namespace,
    out: Optional[TextIO] = None,
) -> bool:
    """Process one file, logging failures. Returns True on success."""
    dst = (outdir / f"{path.stem}{OUTPUT_SUFFIX}.png") if outdir else None
    try:
        _process_single_image(
            path,
            dst,
            palette,
            name_of_hex,
            args.height,
            args.resample,
            args.workers,
            args.debug,
            out,
        )
    except (BeadmapError, UnidentifiedImageError, OSError) as exc:
        error(f"{path.name}: {exc}")
        return False
    return True


def _process_one_captured(
    path: Path,
    outdir: Optional[Path],
    palette: Sequence[PaletteEntry],
    name_of_hex: Dict[str, str],
    args: argparse.Namespace,
) -> tuple[str, bool]:
    """
    Process a single file into its own text buffer.

    Used by --jobs so each report can be printed whole and in order.
    """
    buf = io.StringIO()
    ok = _process_one(path, outdir, palette, name_of_hex, args, out=buf)
    return buf.getvalue(), ok


def _collect_files(src: Path) -> List[Path]:
    files = [
        p
        for p in src.iterdir()
        if p.is_file()
        and p.suffix.lower() in IMAGE_EXTS
        and not p.stem.endswith(OUTPUT_SUFFIX)
        and is_image_file(p)
    ]
    files.sort(key=lambda p: p.name.lower())
    return files


# Entry point


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    CLI entry point.

    Handles a single file or a folder. In folder mode supports --jobs
    parallelism while preserving readable output ordering.
    Returns 0 on success, 1 if any file failed, 2 on bad input.
    """
    enable_line_buffered_stdout()
    args = parse_cli_args(argv)

    print_config_line(
        "run",
        [
            ("CPU cores", os.cpu_count() or 1),
            ("Workers", args.workers),
            ("Jobs", args.jobs),
        ],
        debug=False,
    )

    src: Path = args.src
    if not src.exists():
        error(f"not found: {src}")
        return 2

    try:
        palette = _load_entries(args.palette)
    except (BeadmapError, OSError) as exc:
        error(f"palette: {exc}")
        return 2
    _pal_rgb, _pal_lab, name_of_hex = build_palette(palette)
    log(f"Palette: {len(palette)} colours")

    if args.dump_lab is not None:
        written = dump_palette_lab(args.dump_lab, palette)
        log(f"Wrote palette Lab to {written}")

    if not src.is_dir():
        return 0 if _process_one(src, args.outdir, palette, name_of_hex, args) else 1

    files = _collect_files(src)
    if not files:
        warn(f"no images found in {src}")
        return 0
    if args.debug:
        debug_log(
            key_value_pairs_to_string([("Images", len(files)), ("Jobs", args.jobs)])
        )

    if args.jobs <= 1:
        results = [
            _process_one(p, args.outdir, palette, name_of_hex, args) for p in files
        ]
    else:
        with ThreadPoolExecutor(max_workers=args.jobs) as ex:
            futures = [
                ex.submit(_process_one_captured, p, args.outdir, palette, name_of_hex, args)
                for p in files
            ]
            blocks = [f.result() for f in futures]
        print("".join(text for text, _ok in blocks), end="", flush=True)
        results = [ok for _text, ok in blocks]

    return 0 if all(results) else 1


if __name__ == "__main__":
    sys.exit(main())
