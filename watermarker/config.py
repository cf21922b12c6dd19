"""
Configuration management for the video watermarker.

Centralizes all configuration loading from environment variables
and provides type-safe access to configuration values.
"""

import os
import sys
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass, field


DEFAULT_FONT_PATHS: Dict[str, List[str]] = {
    "darwin": ["/System/Library/Fonts/PingFang.ttc", "/System/Library/Fonts/Helvetica.ttc"],
    "win32": ["C:\\Windows\\Fonts\\msyh.ttc", "C:\\Windows\\Fonts\\simhei.ttf"],
    "linux": [
        "/usr/share/fonts/truetype/noto/NotoSansCJK-Regular.ttc",
        "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    ],
}

DEFAULT_VIDEO_EXTENSIONS = ["mp4", "avi", "mov", "mkv", "flv", "wmv", "webm"]

# (video codec, audio codec) for containers that cannot hold H.264/AAC
DEFAULT_CONTAINER_CODECS: Dict[str, Tuple[str, str]] = {
    "webm": ("libvpx-vp9", "libopus"),
}


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_optional_float(name: str) -> Optional[float]:
    value = os.getenv(name, "").strip()
    if not value:
        return None
    return float(value)


@dataclass
class WatermarkerConfig:
    """Configuration for the watermarking pipeline"""

    # Layout
    PADDING_X: int = 10
    PADDING_Y: int = 10
    REFERENCE_HEIGHT: int = 1080
    LINE_SPACING: int = 8
    RASTER_PADDING: int = 4

    # Fonts
    FONT_PATH: Optional[str] = None
    FONT_PATHS: Dict[str, List[str]] = field(default_factory=lambda: dict(DEFAULT_FONT_PATHS))

    # Color analysis
    BRIGHTNESS_THRESHOLD: float = 0.5
    THUMBNAIL_SIZE: str = "640x360"

    # Input discovery
    VIDEO_EXTENSIONS: List[str] = field(default_factory=lambda: list(DEFAULT_VIDEO_EXTENSIONS))

    # Encoding
    VIDEO_CODEC: str = "libx264"
    VIDEO_PRESET: str = "fast"
    VIDEO_CRF: int = 23
    AUDIO_CODEC: str = "aac"
    AUDIO_BITRATE: str = "128k"
    CONTAINER_CODECS: Dict[str, Tuple[str, str]] = field(default_factory=lambda: dict(DEFAULT_CONTAINER_CODECS))

    # External tools
    FFMPEG_CMD: str = "ffmpeg"
    FFPROBE_CMD: str = "ffprobe"
    FFMPEG_TIMEOUT_SEC: Optional[float] = None  # None waits forever

    # Scratch space
    SCRATCH_ROOT: Optional[str] = None

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    # HTTP server
    ENABLE_HTTP_SERVER: bool = False
    HTTP_PORT: int = 8000

    @classmethod
    def from_env(cls) -> 'WatermarkerConfig':
        """Load configuration from environment variables"""
        config = cls()

        # Layout
        config.PADDING_X = int(os.getenv("WATERMARK_PADDING_X", "10"))
        config.PADDING_Y = int(os.getenv("WATERMARK_PADDING_Y", "10"))
        config.REFERENCE_HEIGHT = int(os.getenv("WATERMARK_REFERENCE_HEIGHT", "1080"))

        # Fonts
        config.FONT_PATH = os.getenv("WATERMARK_FONT_PATH") or None

        # Color analysis
        config.BRIGHTNESS_THRESHOLD = float(os.getenv("BRIGHTNESS_THRESHOLD", "0.5"))
        config.THUMBNAIL_SIZE = os.getenv("THUMBNAIL_SIZE", "640x360")

        # Input discovery
        extensions = os.getenv("VIDEO_EXTENSIONS")
        if extensions:
            config.VIDEO_EXTENSIONS = [ext.strip().lstrip(".").lower() for ext in extensions.split(",") if ext.strip()]

        # Encoding
        config.VIDEO_CODEC = os.getenv("VIDEO_CODEC", "libx264")
        config.VIDEO_PRESET = os.getenv("VIDEO_PRESET", "fast")
        config.VIDEO_CRF = int(os.getenv("VIDEO_CRF", "23"))
        config.AUDIO_CODEC = os.getenv("AUDIO_CODEC", "aac")
        config.AUDIO_BITRATE = os.getenv("AUDIO_BITRATE", "128k")

        # External tools
        config.FFMPEG_CMD = os.getenv("FFMPEG_CMD", "ffmpeg")
        config.FFPROBE_CMD = os.getenv("FFPROBE_CMD", "ffprobe")
        config.FFMPEG_TIMEOUT_SEC = _env_optional_float("FFMPEG_TIMEOUT_SEC")

        # Scratch space
        config.SCRATCH_ROOT = os.getenv("SCRATCH_ROOT") or None

        # Logging
        config.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        config.LOG_DIR = os.getenv("LOG_DIR") or None

        # HTTP server
        config.ENABLE_HTTP_SERVER = _env_bool("WATERMARKER_DEV_HTTP")
        config.HTTP_PORT = int(os.getenv("WATERMARKER_HTTP_PORT", "8000"))

        return config

    def validate(self) -> None:
        """Validate configuration and raise errors for unusable values"""
        problems = []

        if self.PADDING_X < 0 or self.PADDING_Y < 0:
            problems.append("padding must be non-negative")

        if not 0 <= self.BRIGHTNESS_THRESHOLD <= 1:
            problems.append("BRIGHTNESS_THRESHOLD must be within [0, 1]")

        if self.REFERENCE_HEIGHT <= 0:
            problems.append("WATERMARK_REFERENCE_HEIGHT must be positive")

        try:
            self.thumbnail_dimensions()
        except ValueError:
            problems.append(f"THUMBNAIL_SIZE must look like WIDTHxHEIGHT, got {self.THUMBNAIL_SIZE!r}")

        if self.FFMPEG_TIMEOUT_SEC is not None and self.FFMPEG_TIMEOUT_SEC <= 0:
            problems.append("FFMPEG_TIMEOUT_SEC must be positive when set")

        if problems:
            raise ValueError(f"Invalid configuration: {'; '.join(problems)}")

    def thumbnail_dimensions(self) -> Tuple[int, int]:
        """Parse THUMBNAIL_SIZE into (width, height)"""
        width, height = self.THUMBNAIL_SIZE.lower().split("x")
        dims = int(width), int(height)
        if dims[0] <= 0 or dims[1] <= 0:
            raise ValueError(self.THUMBNAIL_SIZE)
        return dims

    def codecs_for(self, output_path: str) -> Tuple[str, str]:
        """(video codec, audio codec) the output container can hold"""
        ext = os.path.splitext(output_path)[1].lstrip(".").lower()
        return self.CONTAINER_CODECS.get(ext, (self.VIDEO_CODEC, self.AUDIO_CODEC))

    def font_candidates(self) -> List[str]:
        """Font files to try for the current platform, explicit override first"""
        platform = "linux" if sys.platform.startswith("linux") else sys.platform
        candidates = list(self.FONT_PATHS.get(platform, []))
        if self.FONT_PATH:
            candidates.insert(0, self.FONT_PATH)
        return candidates
