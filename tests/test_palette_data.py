import json

import numpy as np
import pytest

from beadmap.core_types import PaletteEntry, hex_to_rgb, rgb_to_hex
from beadmap.errors import EmptyPaletteError, PaletteFormatError
from beadmap.palette_data import (
    SAMPLE_PALETTE,
    build_palette,
    load_palette,
    palette_from_hex_pairs,
    palette_from_key_map,
    palette_from_records,
)


def test_sample_palette_converts_in_order():
    entries = palette_from_hex_pairs()
    assert len(entries) == len(SAMPLE_PALETTE)
    assert entries[0] == PaletteEntry("Black", 0, 0, 0)
    assert [e.hex for e in entries] == [hx for hx, _ in SAMPLE_PALETTE]


def test_records_keep_duplicates_and_order():
    entries = palette_from_records(
        [
            {"name": "Red", "r": 255, "g": 0, "b": 0},
            {"name": "Also Red", "r": "255", "g": "0", "b": "0"},
            {"r": 1, "g": 2, "b": 3},
        ]
    )
    assert [e.name for e in entries] == ["Red", "Also Red", "Colour 3"]
    assert entries[0].rgb == entries[1].rgb == (255, 0, 0)


@pytest.mark.parametrize(
    "record",
    [
        {"name": "x", "r": 256, "g": 0, "b": 0},
        {"name": "x", "r": -1, "g": 0, "b": 0},
        {"name": "x", "r": 1.5, "g": 0, "b": 0},
        {"name": "x", "r": "red", "g": 0, "b": 0},
        {"name": "x", "r": 0, "g": 0},
    ],
)
def test_bad_records_are_rejected(record):
    with pytest.raises(PaletteFormatError):
        palette_from_records([record])


def test_key_map_format():
    entries = palette_from_key_map({"R255G0B0": "Red", "R0G0B255": "Blue"})
    assert entries == [PaletteEntry("Red", 255, 0, 0), PaletteEntry("Blue", 0, 0, 255)]
    with pytest.raises(PaletteFormatError):
        palette_from_key_map({"255,0,0": "Red"})


def test_load_json_variants(tmp_path):
    records = [{"name": "Red", "r": 255, "g": 0, "b": 0}]
    p1 = tmp_path / "list.json"
    p1.write_text(json.dumps(records))
    p2 = tmp_path / "wrapped.json"
    p2.write_text(json.dumps({"colors": records}))
    p3 = tmp_path / "keys.json"
    p3.write_text(json.dumps({"R255G0B0": "Red"}))
    for p in (p1, p2, p3):
        assert load_palette(p) == [PaletteEntry("Red", 255, 0, 0)]


def test_load_csv(tmp_path):
    p = tmp_path / "beads.csv"
    p.write_text("Name,R,G,B\nWhite,255,255,255\nBlack,0,0,0\n")
    assert load_palette(p) == [
        PaletteEntry("White", 255, 255, 255),
        PaletteEntry("Black", 0, 0, 0),
    ]


def test_load_errors(tmp_path):
    empty = tmp_path / "empty.json"
    empty.write_text("[]")
    with pytest.raises(EmptyPaletteError):
        load_palette(empty)

    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    with pytest.raises(PaletteFormatError):
        load_palette(broken)

    no_cols = tmp_path / "bad.csv"
    no_cols.write_text("name,red\nx,1\n")
    with pytest.raises(PaletteFormatError):
        load_palette(no_cols)

    with pytest.raises(PaletteFormatError):
        load_palette(tmp_path / "palette.txt")


def test_build_palette_views():
    entries = [PaletteEntry("Red", 255, 0, 0), PaletteEntry("Dup", 255, 0, 0)]
    pal_rgb, pal_lab, name_of = build_palette(entries)
    assert pal_rgb.dtype == np.uint8 and pal_rgb.shape == (2, 3)
    assert pal_lab.shape == (2, 3)
    assert name_of == {"#ff0000": "Red"}


def test_hex_helpers():
    assert hex_to_rgb("#0F0") == (0, 255, 0)
    assert rgb_to_hex((18, 52, 86)) == "#123456"
    with pytest.raises(ValueError):
        hex_to_rgb("123456")
