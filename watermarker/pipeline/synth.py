import math
import os
import logging
from typing import Callable, Iterable, List, Optional

from PIL import Image, ImageDraw, ImageFont

from .util import parse_color, round_half_up
from ..errors import SynthesisError
from ..models import WatermarkRaster

logger = logging.getLogger("video_watermarker")

LINE_SPACING = 8
RASTER_PADDING = 4


def wrap_text(text: str, measure: Callable[[str], float], max_width: float) -> List[str]:
    """
    Greedy character-level wrap.

    A character starts a new line only when the current line is non-empty
    and appending it would exceed max_width, so a single character wider
    than max_width still gets its own line. Explicit newlines always break
    and are not kept; an empty paragraph becomes an empty line. Joining the
    lines of each paragraph gives back that paragraph.
    """
    if not text:
        return []

    lines = []
    for paragraph in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        current_line = ""
        for char in paragraph:
            test_line = current_line + char
            if measure(test_line) > max_width and current_line:
                lines.append(current_line)
                current_line = char
            else:
                current_line = test_line
        lines.append(current_line)

    return lines


def load_font(font_size: int, candidates: Iterable[Optional[str]] = ()) -> ImageFont.FreeTypeFont:
    """Load the first usable font file, falling back to Pillow's bundled font"""
    for font_path in candidates:
        if not font_path or not os.path.exists(font_path):
            continue
        try:
            return ImageFont.truetype(font_path, font_size)
        except OSError as e:
            logger.warning(f"Font registration failed for {font_path}: {e}")

    return ImageFont.load_default(size=font_size)


def synthesize(
    text: str,
    font_size: int,
    color_hex: str,
    opacity: float,
    available_width: int,
    available_height: int,
    font_path: Optional[str] = None,
    font_candidates: Iterable[str] = (),
    line_spacing: int = LINE_SPACING,
    padding: int = RASTER_PADDING,
) -> WatermarkRaster:
    """
    Render watermark text to an RGBA raster sized tightly around the text.

    Lines are wrapped to available_width, drawn left-aligned from the top
    every font_size + line_spacing pixels. Glyph coverage times opacity
    becomes the alpha channel; a malformed color renders white.
    """
    if not text:
        raise SynthesisError("Watermark text is empty")
    if font_size <= 0:
        raise SynthesisError(f"Font size must be positive, got {font_size}")

    opacity = max(0.0, min(1.0, float(opacity)))
    max_width = max(1, int(available_width))

    try:
        font = load_font(font_size, [font_path, *font_candidates])

        lines = wrap_text(text, font.getlength, max_width)
        line_height = font_size + line_spacing
        text_height = len(lines) * line_height

        max_line_width = max(math.ceil(font.getlength(line)) for line in lines)
        canvas_width = max(1, min(max_line_width + padding, max_width))
        canvas_height = text_height + padding

        if canvas_height > available_height:
            logger.warning(
                f"Watermark text needs {canvas_height}px but only {available_height}px are available; "
                f"it will extend past the frame"
            )

        # Coverage mask first, then tint, so edges keep their true alpha
        mask = Image.new("L", (canvas_width, canvas_height), 0)
        draw = ImageDraw.Draw(mask)
        for index, line in enumerate(lines):
            draw.text((0, index * line_height), line, font=font, fill=255)

        alpha = mask.point(lambda value: round_half_up(value * opacity))
        r, g, b = parse_color(color_hex)
        image = Image.new("RGBA", mask.size, (r, g, b, 0))
        image.putalpha(alpha)

    except (OSError, ValueError) as e:
        raise SynthesisError(f"Could not render watermark text: {e}") from e

    logger.debug(f"Synthesized watermark {image.size[0]}x{image.size[1]} with {len(lines)} line(s)")
    return WatermarkRaster(image=image, lines=lines, line_height=line_height, font_size=font_size)
