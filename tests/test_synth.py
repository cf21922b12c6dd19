import random

import pytest

from watermarker.errors import SynthesisError
from watermarker.pipeline.synth import load_font, synthesize, wrap_text


def char_count(text):
    return len(text)


def wide_cjk(text):
    # CJK glyphs twice as wide as latin ones
    return sum(2 if ord(char) > 0x2E80 else 1 for char in text)


SAMPLES = [
    "",
    "a",
    "© Demo",
    "The quick brown fox jumps over the lazy dog",
    "水印文字没有空格也能正确换行",
    "mixed 混合 text テキスト 123",
    "W" * 50,
]


@pytest.mark.parametrize("measure", [char_count, wide_cjk])
@pytest.mark.parametrize("max_width", [0, 1, 2, 3, 7, 20, 1000])
@pytest.mark.parametrize("text", SAMPLES)
def test_wrap_lines_fit_and_preserve_text(text, max_width, measure):
    lines = wrap_text(text, measure, max_width)

    assert "".join(lines) == text
    for line in lines:
        assert line
        assert measure(line) <= max_width or len(line) == 1


def test_wrap_random_text_property():
    rng = random.Random(1234)
    alphabet = "abc XYZ 水印テ"
    for _ in range(200):
        text = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 60)))
        max_width = rng.randint(1, 30)
        lines = wrap_text(text, wide_cjk, max_width)

        assert "".join(lines) == text
        assert all(wide_cjk(line) <= max_width or len(line) == 1 for line in lines)


def test_wrap_is_greedy():
    assert wrap_text("abcdefg", char_count, 3) == ["abc", "def", "g"]


def test_wrap_splits_mid_word():
    assert wrap_text("hello world", char_count, 4) == ["hell", "o wo", "rld"]


def test_wide_character_gets_own_line():
    assert wrap_text("a水b", wide_cjk, 1) == ["a", "水", "b"]


def test_synthesize_single_line_geometry():
    raster = synthesize("© Demo", 24, "#FF0000", 0.5, 1900, 1080)

    assert raster.image.mode == "RGBA"
    assert raster.lines == ["© Demo"]
    assert raster.line_height == 32
    width, height = raster.size
    assert height == 32 + 4
    assert 4 < width <= 1900


def test_synthesize_applies_color_and_opacity():
    raster = synthesize("Demo", 40, "#FF0000", 0.5, 1900, 1080)
    (r_min, r_max), (g_min, g_max), (b_min, b_max), (a_min, a_max) = raster.image.getextrema()

    assert (r_min, r_max) == (255, 255)
    assert (g_min, g_max) == (0, 0)
    assert (b_min, b_max) == (0, 0)
    assert a_min == 0
    assert 0 < a_max <= 128


def test_synthesize_zero_opacity_is_fully_transparent():
    raster = synthesize("Demo", 30, "#00FF00", 0.0, 1900, 1080)

    assert raster.image.getextrema()[3] == (0, 0)


def test_synthesize_malformed_color_renders_white():
    raster = synthesize("Demo", 30, "red", 1.0, 1900, 1080)
    extrema = raster.image.getextrema()

    assert extrema[0] == (255, 255)
    assert extrema[1] == (255, 255)
    assert extrema[2] == (255, 255)
    assert extrema[3][1] > 0


def test_synthesize_wraps_to_available_width():
    text = "WATERMARK TEXT THAT IS LONG"
    raster = synthesize(text, 20, "#FFFFFF", 1.0, 60, 1080)

    assert len(raster.lines) > 1
    assert "".join(raster.lines) == text
    assert raster.size[0] <= 60
    assert raster.size[1] == len(raster.lines) * (20 + 8) + 4


def test_synthesize_respects_custom_spacing():
    raster = synthesize("Demo", 20, "#FFFFFF", 1.0, 500, 500, line_spacing=2, padding=0)

    assert raster.line_height == 22
    assert raster.size[1] == 22


def test_synthesize_tiny_available_width_still_renders():
    raster = synthesize("Demo", 12, "#FFFFFF", 1.0, -5, 10)

    assert raster.size[0] == 1
    assert raster.lines == ["D", "e", "m", "o"]


def test_synthesize_rejects_empty_text():
    with pytest.raises(SynthesisError):
        synthesize("", 24, "#FFFFFF", 1.0, 100, 100)


def test_synthesize_rejects_non_positive_font_size():
    with pytest.raises(SynthesisError):
        synthesize("Demo", 0, "#FFFFFF", 1.0, 100, 100)


def test_load_font_skips_missing_candidates(tmp_path):
    broken = tmp_path / "broken.ttf"
    broken.write_bytes(b"not a font")

    font = load_font(18, [None, str(tmp_path / "missing.ttf"), str(broken)])

    assert font.getlength("Demo") > 0


@pytest.mark.parametrize("text,expected", [
    ("ab\ncd", ["ab", "cd"]),
    ("ab\r\ncd", ["ab", "cd"]),
    ("a\n\nb", ["a", "", "b"]),
    ("abcde\nf", ["abc", "de", "f"]),
])
def test_wrap_breaks_on_newlines(text, expected):
    assert wrap_text(text, char_count, 3) == expected


def test_synthesize_multiline_text_keeps_every_line():
    raster = synthesize("AB\nCD", 40, "#FFFFFF", 1.0, 1900, 1080)

    assert raster.lines == ["AB", "CD"]
    assert raster.size[1] == 2 * (40 + 8) + 4

    # The second line must be inked, not clipped below the canvas
    left, top, right, bottom = raster.image.getchannel("A").getbbox()
    assert top < raster.line_height
    assert bottom > raster.line_height
    lower_half = raster.image.getchannel("A").crop((0, raster.line_height, raster.size[0], raster.size[1]))
    assert lower_half.getextrema()[1] > 0
