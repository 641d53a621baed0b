# beadmap/palette_data.py
from __future__ import annotations

"""
Palette definitions, loaders, and builders.

Exports:
  SAMPLE_PALETTE: list[tuple[str, str]]  # [(hex, name), ...]
  palette_from_hex_pairs(pairs=SAMPLE_PALETTE) -> list[PaletteEntry]
  palette_from_records(records)          -> list[PaletteEntry]
  palette_from_key_map(mapping)          -> list[PaletteEntry]  # {"R255G0B0": "Red"}
  load_palette(path)                     -> list[PaletteEntry]  # .json or .csv
  build_palette(entries)
    -> (pal_rgb: uint8 [P,3], pal_lab: float64 [P,3], name_of: dict "#rrggbb" -> name)
"""

import csv
import json
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

import numpy as np

from .colour_convert import palette_rows_to_lab
from .core_types import Lab, PaletteEntry, U8Image, hex_to_rgb
from .errors import EmptyPaletteError, PaletteFormatError


# A small general-purpose bead set used when no palette file is given.
SAMPLE_PALETTE: List[Tuple[str, str]] = [
    ("#000000", "Black"),
    ("#ffffff", "White"),
    ("#8a8d91", "Grey"),
    ("#d3d3d3", "Light Grey"),
    ("#4d4d4f", "Dark Grey"),
    ("#e6c9a8", "Tan"),
    ("#7b4a2a", "Brown"),
    ("#4a2c1d", "Dark Brown"),
    ("#f2d2bd", "Peach"),
    ("#ed1c24", "Red"),
    ("#8b0a1a", "Cranberry"),
    ("#f7941d", "Orange"),
    ("#fff200", "Yellow"),
    ("#fde68a", "Pastel Yellow"),
    ("#8dc63f", "Light Green"),
    ("#00a651", "Green"),
    ("#1b5e20", "Dark Green"),
    ("#00aeef", "Light Blue"),
    ("#0054a6", "Blue"),
    ("#1b1464", "Dark Blue"),
    ("#92278f", "Purple"),
    ("#c9a0dc", "Lavender"),
    ("#ec008c", "Magenta"),
    ("#f7a8c8", "Pink"),
]

_KEY_RE = re.compile(r"^R(\d{1,3})G(\d{1,3})B(\d{1,3})$")


def _channel(value: Any, field: str, where: str) -> int:
    """Coerce one channel to an int in 0..255 or raise PaletteFormatError."""
    try:
        as_float = float(value)
    except (TypeError, ValueError):
        raise PaletteFormatError(f"{where}: {field}={value!r} is not a number") from None
    if not as_float.is_integer():
        raise PaletteFormatError(f"{where}: {field}={value!r} is not an integer")
    channel = int(as_float)
    if not 0 <= channel <= 255:
        raise PaletteFormatError(f"{where}: {field}={channel} outside 0..255")
    return channel


def palette_from_hex_pairs(
    pairs: Sequence[Tuple[str, str]] = SAMPLE_PALETTE,
) -> List[PaletteEntry]:
    """Convert [(hex, name), ...] into palette entries, keeping order."""
    entries: List[PaletteEntry] = []
    for hx, name in pairs:
        try:
            r, g, b = hex_to_rgb(hx if hx.strip().startswith("#") else f"#{hx.strip()}")
        except ValueError as exc:
            raise PaletteFormatError(f"{name!r}: {exc}") from None
        entries.append(PaletteEntry(name=name, r=r, g=g, b=b))
    return entries


def palette_from_records(records: Iterable[Mapping[str, Any]]) -> List[PaletteEntry]:
    """
    Convert {name, r, g, b} records into palette entries.
    Duplicate RGB triples are kept as separate entries.
    """
    entries: List[PaletteEntry] = []
    for i, rec in enumerate(records):
        where = f"record {i}"
        if not isinstance(rec, Mapping):
            raise PaletteFormatError(f"{where}: expected an object, got {type(rec).__name__}")
        missing = [k for k in ("r", "g", "b") if k not in rec]
        if missing:
            raise PaletteFormatError(f"{where}: missing {', '.join(missing)}")
        name = str(rec.get("name", "")).strip() or f"Colour {i + 1}"
        entries.append(
            PaletteEntry(
                name=name,
                r=_channel(rec["r"], "r", where),
                g=_channel(rec["g"], "g", where),
                b=_channel(rec["b"], "b", where),
            )
        )
    return entries


def palette_from_key_map(mapping: Mapping[str, str]) -> List[PaletteEntry]:
    """Convert a {"R255G0B0": "Red", ...} map (colour service format) into entries."""
    entries: List[PaletteEntry] = []
    for key, name in mapping.items():
        m = _KEY_RE.match(key.strip())
        if m is None:
            raise PaletteFormatError(f"bad colour key {key!r}; expected 'R<r>G<g>B<b>'")
        r, g, b = (_channel(v, ch, key) for v, ch in zip(m.groups(), "rgb"))
        entries.append(PaletteEntry(name=str(name), r=r, g=g, b=b))
    return entries


def _load_json(path: Path) -> List[PaletteEntry]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise PaletteFormatError(f"{path.name}: invalid JSON ({exc})") from None
    if isinstance(data, dict):
        inner = data.get("colors", data.get("colours"))
        if isinstance(inner, list):
            return palette_from_records(inner)
        return palette_from_key_map(data)
    if isinstance(data, list):
        return palette_from_records(data)
    raise PaletteFormatError(f"{path.name}: expected a list or an object")


def _load_csv(path: Path) -> List[PaletteEntry]:
    with path.open(newline="", encoding="utf-8") as fh:
        reader = csv.DictReader(fh)
        if reader.fieldnames is None:
            return []
        fields = {f.strip().lower(): f for f in reader.fieldnames}
        if not {"r", "g", "b"} <= set(fields):
            raise PaletteFormatError(f"{path.name}: CSV header needs r, g, b columns")
        rows: List[Dict[str, Any]] = []
        for row in reader:
            rows.append({k: row[orig] for k, orig in fields.items()})
    return palette_from_records(rows)


def load_palette(path: Path) -> List[PaletteEntry]:
    """
    Load a palette file.

    .json: list of {name, r, g, b}, {"colors": [...]}, or {"R<r>G<g>B<b>": name}
    .csv : header with name, r, g, b
    Raises EmptyPaletteError if the file holds no colours.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".json":
        entries = _load_json(path)
    elif suffix == ".csv":
        entries = _load_csv(path)
    else:
        raise PaletteFormatError(f"unsupported palette file type: {path.suffix or path.name}")
    if not entries:
        raise EmptyPaletteError(f"palette file {path.name} has no colours")
    return entries


def build_palette(
    entries: Sequence[PaletteEntry],
) -> Tuple[U8Image, Lab, Dict[str, str]]:
    """
    Convert palette entries into:
      pal_rgb: uint8 array [P,3]
      pal_lab: float64 array [P,3]
      name_of: dict mapping "#rrggbb" -> name (first entry wins on duplicates)
    """
    pal_rgb: U8Image = np.array([e.rgb for e in entries], dtype=np.uint8).reshape(-1, 3)
    pal_lab: Lab = palette_rows_to_lab([e.rgb for e in entries])
    name_of: Dict[str, str] = {}
    for e in entries:
        name_of.setdefault(e.hex, e.name)
    return pal_rgb, pal_lab, name_of


__all__ = [
    "SAMPLE_PALETTE",
    "palette_from_hex_pairs",
    "palette_from_records",
    "palette_from_key_map",
    "load_palette",
    "build_palette",
]
