import pytest
from PIL import Image

from conftest import FakeMediaTools
from watermarker.errors import AnalysisError
from watermarker.models import Position
from watermarker.pipeline.color import (
    analyze_image,
    analyze_video,
    average_region_color,
    calculate_brightness,
    get_color_by_brightness,
)


def test_brightness_bounds():
    assert calculate_brightness(0, 0, 0) == 0
    assert calculate_brightness(255, 255, 255) == pytest.approx(1.0)


def test_brightness_weights_follow_bt601():
    assert calculate_brightness(255, 0, 0) == pytest.approx(0.299)
    assert calculate_brightness(0, 255, 0) == pytest.approx(0.587)
    assert calculate_brightness(0, 0, 255) == pytest.approx(0.114)


@pytest.mark.parametrize("channel", [0, 1, 2])
def test_brightness_is_monotonic_per_channel(channel):
    for base in [(0, 0, 0), (40, 200, 90), (255, 10, 128)]:
        previous = None
        for value in range(0, 256, 5):
            rgb = list(base)
            rgb[channel] = value
            brightness = calculate_brightness(*rgb)
            if previous is not None:
                assert brightness >= previous
            previous = brightness


def test_threshold_is_inclusive_on_the_light_side():
    assert get_color_by_brightness(0.5) == ("#FFFFFF", "light")
    assert get_color_by_brightness(0.0) == ("#FFFFFF", "light")
    assert get_color_by_brightness(0.5000001) == ("#000000", "dark")
    assert get_color_by_brightness(1.0) == ("#000000", "dark")


def test_custom_threshold():
    assert get_color_by_brightness(0.6, threshold=0.7) == ("#FFFFFF", "light")


def test_average_region_color_only_reads_the_corner():
    image = Image.new("RGB", (100, 100), (0, 0, 0))
    # paint exactly the bottom-right sampling region (70..99)
    image.paste((200, 100, 50), (70, 70, 100, 100))

    assert average_region_color(image, "bottom-right") == (200, 100, 50)
    assert average_region_color(image, "top-left") == (0, 0, 0)


def test_average_rounds_half_up():
    image = Image.new("RGB", (10, 10), (0, 0, 0))
    # region is the 3x3 block at (7, 7): one row of 1s, two rows of 2s
    image.paste((1, 1, 1), (7, 7, 10, 8))
    image.paste((2, 2, 2), (7, 8, 10, 10))

    # (3*1 + 6*2) / 9 = 1.666 -> 2
    assert average_region_color(image, "bottom-right") == (2, 2, 2)


def test_average_region_color_rejects_tiny_images():
    with pytest.raises(AnalysisError):
        average_region_color(Image.new("RGB", (2, 2)), "top-left")


def test_analyze_image_on_black_frame(tmp_path):
    frame = tmp_path / "black.png"
    Image.new("RGB", (640, 360), (0, 0, 0)).save(frame)

    result = analyze_image(str(frame), "bottom-right")

    assert result.brightness == pytest.approx(0.0)
    assert result.color_class == "light"
    assert result.recommended_color == "#FFFFFF"
    assert result.average_rgb == (0, 0, 0)
    assert result.position is Position.BOTTOM_RIGHT


def test_analyze_image_on_white_corner(tmp_path):
    frame = tmp_path / "corner.png"
    image = Image.new("RGB", (640, 360), (0, 0, 0))
    image.paste((250, 250, 250), (0, 0, 320, 180))
    image.save(frame)

    assert analyze_image(str(frame), "top-left").recommended_color == "#000000"
    assert analyze_image(str(frame), "bottom-right").recommended_color == "#FFFFFF"


def test_analyze_image_handles_rgba_and_grayscale(tmp_path):
    rgba = tmp_path / "rgba.png"
    Image.new("RGBA", (50, 50), (255, 255, 255, 0)).save(rgba)
    gray = tmp_path / "gray.png"
    Image.new("L", (50, 50), 255).save(gray)

    assert analyze_image(str(rgba), "top-left").color_class == "dark"
    assert analyze_image(str(gray), "top-left").color_class == "dark"


def test_analyze_image_unreadable_file(tmp_path):
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"definitely not a png")

    with pytest.raises(AnalysisError):
        analyze_image(str(broken), "bottom-right")


def test_proxy_frame_matches_full_resolution_average():
    # Smooth gradients in every direction; the proxy is a downscale of the full frame
    vertical = Image.linear_gradient("L").resize((1920, 1080))
    horizontal = Image.linear_gradient("L").transpose(Image.Transpose.ROTATE_90).resize((1920, 1080))
    flat = Image.new("L", (1920, 1080), 128)
    full = Image.merge("RGB", (vertical, horizontal, flat))
    proxy = full.resize((640, 360))

    for position in Position:
        full_avg = average_region_color(full, position)
        proxy_avg = average_region_color(proxy, position)
        for full_channel, proxy_channel in zip(full_avg, proxy_avg):
            assert abs(full_channel - proxy_channel) <= 3


def test_proxy_frame_on_portrait_video():
    full = Image.linear_gradient("L").resize((1080, 1920)).convert("RGB")
    proxy = full.resize((640, 360))

    for position in Position:
        full_avg = average_region_color(full, position)
        proxy_avg = average_region_color(proxy, position)
        assert abs(full_avg[0] - proxy_avg[0]) <= 3


def test_analyze_video_releases_scratch(scratch):
    tools = FakeMediaTools(frame_color=(0, 0, 0))

    result = analyze_video("clip.mp4", "bottom-right", tools, scratch)

    assert result.recommended_color == "#FFFFFF"
    assert result.brightness == pytest.approx(0.0)
    assert tools.calls_for("extract") == ["clip.mp4"]
    assert scratch.live == []


def test_analyze_video_extraction_failure(scratch):
    tools = FakeMediaTools(extract_fails=True)

    with pytest.raises(AnalysisError):
        analyze_video("clip.mp4", "top-left", tools, scratch)

    assert scratch.live == []


def test_analyze_video_scratch_failure_is_an_analysis_error(scratch, monkeypatch):
    def no_space():
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(scratch, "allocate", no_space)
    tools = FakeMediaTools()

    with pytest.raises(AnalysisError, match="No space left"):
        analyze_video("clip.mp4", "bottom-left", tools, scratch)

    assert tools.calls_for("extract") == []
