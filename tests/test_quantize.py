import io

import numpy as np
import pytest

from beadmap.colour_convert import lab_to_rgb, rgb_to_lab
from beadmap.core_types import PaletteEntry
from beadmap.errors import CorruptPixelBufferError, EmptyPaletteError
from beadmap.kd_tree import nearest_by_linear_scan
from beadmap.palette_data import palette_from_hex_pairs
from beadmap.quantize import as_pixel_buffer, quantize, quantize_image, unique_colours

RED_BLUE = [PaletteEntry("Red", 255, 0, 0), PaletteEntry("Blue", 0, 0, 255)]
GRAY = [PaletteEntry("Gray", 128, 128, 128)]


def _random_pixels(n, seed=0, colours=None):
    rng = np.random.default_rng(seed)
    if colours is None:
        return rng.integers(0, 256, size=n * 4, dtype=np.uint8)
    pool = rng.integers(0, 256, size=(colours, 4), dtype=np.uint8)
    return pool[rng.integers(0, colours, size=n)].reshape(-1)


def test_near_blue_and_near_red():
    result = quantize(bytes([10, 10, 250, 255, 240, 5, 5, 255]), RED_BLUE)
    assert result.pixels.tolist() == [0, 0, 255, 255, 255, 0, 0, 255]
    assert result.matches.tolist() == [1, 0]


def test_match_uses_unscaled_xyz_lab():
    # In this Lab space #809bf8 sits closer to Light Blue than to Lavender;
    # on a 0..100 XYZ scale the choice flips.
    palette = palette_from_hex_pairs()
    result = quantize([128, 155, 248, 255], palette)
    assert palette[int(result.matches[0])].name == "Light Blue"
    assert result.pixels.tolist() == [0, 174, 239, 255]


def test_single_entry_palette_keeps_alpha():
    pixels = [0, 0, 0, 0, 255, 255, 255, 17, 12, 200, 90, 255, 128, 128, 128, 128]
    out = quantize(pixels, GRAY).pixels.reshape(-1, 4)
    assert out[:, :3].tolist() == [[128, 128, 128]] * 4
    assert out[:, 3].tolist() == [0, 17, 255, 128]


def test_empty_buffer_gives_empty_output():
    result = quantize(b"", RED_BLUE)
    assert result.pixels.size == 0
    assert result.tobytes() == b""
    assert result.cache == {}


def test_empty_palette_is_rejected():
    with pytest.raises(EmptyPaletteError):
        quantize([1, 2, 3, 4], [])
    with pytest.raises(EmptyPaletteError):
        quantize(b"", [])


def test_length_not_multiple_of_four_is_rejected():
    with pytest.raises(CorruptPixelBufferError) as exc:
        quantize(bytes(11), RED_BLUE)
    assert exc.value.length == 11
    assert isinstance(exc.value, ValueError)


def test_accepts_common_buffer_types():
    raw = bytes([10, 10, 250, 255])
    expected = [0, 0, 255, 255]
    for src in (raw, bytearray(raw), memoryview(raw), list(raw), np.frombuffer(raw, np.uint8)):
        assert quantize(src, RED_BLUE).pixels.tolist() == expected
    with pytest.raises(ValueError):
        as_pixel_buffer([0, 0, 0, 256])
    with pytest.raises(TypeError):
        as_pixel_buffer(np.zeros(4, dtype=np.float32))


def test_output_is_deterministic():
    pixels = _random_pixels(5000, seed=1, colours=300)
    palette = palette_from_hex_pairs()
    first = quantize(pixels, palette).tobytes()
    second = quantize(pixels.copy(), palette).tobytes()
    assert first == second
    assert len(first) == pixels.size


def test_identical_pixels_get_identical_output():
    pixels = _random_pixels(4000, seed=2, colours=50)
    result = quantize(pixels, palette_from_hex_pairs())
    src = pixels.reshape(-1, 4)
    out = result.pixels.reshape(-1, 4)
    seen = {}
    for s, o in zip(map(tuple, src.tolist()), map(tuple, out.tolist())):
        assert seen.setdefault(s, o) == o
    assert len(result.cache) == len(seen) == len(result.unique_keys)
    for key, rgba in result.cache.items():
        assert rgba[3] == key[3]


def test_alpha_passes_through():
    pixels = _random_pixels(3000, seed=3)
    out = quantize(pixels, palette_from_hex_pairs()).pixels
    np.testing.assert_array_equal(out[3::4], pixels[3::4])


def test_matches_brute_force_lab_search():
    rng = np.random.default_rng(4)
    pal_rgb = rng.integers(0, 256, size=(40, 3))
    palette = [PaletteEntry(f"c{i}", *map(int, row)) for i, row in enumerate(pal_rgb)]
    pixels = _random_pixels(800, seed=5)

    result = quantize(pixels, palette)
    pal_lab = rgb_to_lab(pal_rgb.astype(np.uint8))
    np.testing.assert_allclose(result.palette_lab, pal_lab)

    src = pixels.reshape(-1, 4)
    out = result.pixels.reshape(-1, 4)
    src_lab = rgb_to_lab(src[:, :3])
    for i in range(src.shape[0]):
        best = nearest_by_linear_scan(pal_lab, src_lab[i])
        want = lab_to_rgb(np.array(best.point)).tolist()
        assert out[i, :3].tolist() == want
        # matched colour is the palette colour up to Lab round-trip rounding
        assert np.all(np.abs(out[i, :3].astype(int) - pal_rgb[best.index]) <= 1)


def test_duplicate_palette_entries_are_allowed():
    palette = [PaletteEntry("A", 0, 0, 255), PaletteEntry("B", 0, 0, 255), *RED_BLUE]
    result = quantize([10, 10, 250, 255], palette)
    assert result.pixels.tolist() == [0, 0, 255, 255]
    assert result.matches.tolist()[0] in (0, 1, 3)


def test_unique_colours_first_seen_order():
    a, b, c = [1, 2, 3, 4], [9, 9, 9, 9], [1, 2, 3, 5]
    buf = np.array(a + b + a + c + b, dtype=np.uint8)
    uniques, inverse = unique_colours(buf)
    assert uniques.tolist() == [a, b, c]
    assert inverse.tolist() == [0, 1, 0, 2, 1]


def test_parallel_workers_match_serial():
    pixels = _random_pixels(6000, seed=6)
    palette = palette_from_hex_pairs()
    serial = quantize(pixels, palette, workers=1)
    threaded = quantize(pixels, palette, workers=4)
    np.testing.assert_array_equal(serial.pixels, threaded.pixels)


def test_quantize_image_keeps_shape():
    img = _random_pixels(6 * 5, seed=7).reshape(6, 5, 4)
    mapped, result = quantize_image(img, RED_BLUE)
    assert mapped.shape == (6, 5, 4)
    assert result.pixel_count == 30
    np.testing.assert_array_equal(mapped[..., 3], img[..., 3])
    assert set(map(tuple, mapped[..., :3].reshape(-1, 3).tolist())) <= {
        (255, 0, 0),
        (0, 0, 255),
    }


def test_debug_prints_stage_summary(capsys):
    quantize([10, 10, 250, 255], RED_BLUE, debug=True)
    out = capsys.readouterr().out
    assert "[debug]" in out
    assert "Unique colours: 1" in out


def test_debug_lines_go_to_given_stream(capsys):
    buf = io.StringIO()
    quantize([10, 10, 250, 255], RED_BLUE, debug=True, log_file=buf)
    assert "Unique colours: 1" in buf.getvalue()
    assert capsys.readouterr().out == ""
