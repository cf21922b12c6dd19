import os
import logging
from typing import Any, Optional, Tuple

from PIL import Image, ImageStat, UnidentifiedImageError

from .geometry import region_for
from .util import round_half_up
from ..adapters.base import FrameExtractor
from ..errors import AnalysisError
from ..models import ColorAnalysisResult, Position
from ..scratch import ScratchManager

logger = logging.getLogger("video_watermarker")

DEFAULT_THRESHOLD = 0.5
DARK_TEXT = "#000000"
LIGHT_TEXT = "#FFFFFF"


def calculate_brightness(r: float, g: float, b: float) -> float:
    """ITU-R BT.601 luma of an RGB color, normalized to 0-1"""
    return (0.299 * r + 0.587 * g + 0.114 * b) / 255


def get_color_by_brightness(brightness: float, threshold: float = DEFAULT_THRESHOLD) -> Tuple[str, str]:
    """
    Pick the text color for a background brightness.

    Returns (color, color_class). The class describes the background:
    a light background (brightness above the threshold) is "dark" and gets
    black text; anything at or below the threshold is "light" and gets white.
    """
    if brightness > threshold:
        return DARK_TEXT, "dark"
    return LIGHT_TEXT, "light"


def average_region_color(image: Image.Image, position: Any) -> Tuple[int, int, int]:
    """Average RGB of the corner region, measured on this image's own dimensions"""
    region = region_for(position, image.width, image.height)
    if region.width <= 0 or region.height <= 0:
        raise AnalysisError(f"Image {image.width}x{image.height} is too small to sample")

    crop = image.convert("RGB").crop(region.to_box())
    stat = ImageStat.Stat(crop)
    count = stat.count[0]
    if count == 0:
        raise AnalysisError("Sampled region contains no pixels")

    r_sum, g_sum, b_sum = stat.sum[:3]
    return (
        round_half_up(r_sum / count),
        round_half_up(g_sum / count),
        round_half_up(b_sum / count),
    )


def analyze_image(image_path: str, position: Any, threshold: float = DEFAULT_THRESHOLD) -> ColorAnalysisResult:
    """Analyze the average color and brightness of one corner of an image"""
    position = Position.parse(position)

    try:
        with Image.open(image_path) as img:
            avg_r, avg_g, avg_b = average_region_color(img, position)
    except (OSError, UnidentifiedImageError) as e:
        raise AnalysisError(f"Could not read frame {image_path}: {e}") from e

    brightness = calculate_brightness(avg_r, avg_g, avg_b)
    color, color_class = get_color_by_brightness(brightness, threshold)

    return ColorAnalysisResult(
        recommended_color=color,
        brightness=brightness,
        color_class=color_class,
        average_rgb=(avg_r, avg_g, avg_b),
        position=position,
    )


def analyze_video(
    video_path: str,
    position: Any,
    extractor: FrameExtractor,
    scratch: ScratchManager,
    thumbnail_size: Optional[str] = "640x360",
    threshold: float = DEFAULT_THRESHOLD,
) -> ColorAnalysisResult:
    """
    Recommend a watermark color from one proxy frame of the video.

    The frame is extracted at thumbnail_size into a scratch directory that
    is released before returning.
    """
    scratch_dir = None
    try:
        scratch_dir = scratch.allocate()
        thumbnail_path = os.path.join(scratch_dir, "thumb.png")
        extractor.extract_frame(video_path, thumbnail_path, size=thumbnail_size)
        result = analyze_image(thumbnail_path, position, threshold)

        logger.info(
            f"Color analysis for {video_path} at {result.position.value}: "
            f"avg={result.average_rgb} brightness={result.brightness:.3f} -> {result.recommended_color}"
        )
        return result

    except AnalysisError:
        raise
    except Exception as e:
        raise AnalysisError(f"Color analysis failed for {video_path}: {e}") from e
    finally:
        if scratch_dir is not None:
            scratch.release(scratch_dir)
