"""
Domain models for the video watermarker.

Defines the core data structures used throughout the system,
providing type safety and clear interfaces between components.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple

from PIL import Image
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import InvalidBatchError


class Position(str, Enum):
    """Corner of the frame the watermark is anchored to"""
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"

    @classmethod
    def parse(cls, value: Any) -> "Position":
        """Map any value to a position, falling back to bottom-right"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.BOTTOM_RIGHT


class JobStatus(str, Enum):
    """Lifecycle of one file inside a batch"""
    PENDING = "pending"
    ANALYZING = "analyzing"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCESS, JobStatus.FAILED)


@dataclass(frozen=True)
class WatermarkSpec:
    """Watermark settings shared read-only by every job of a run"""
    text: str
    font_size: int
    color: str
    opacity: float
    position: Position
    auto_color: bool = False
    font_path: Optional[str] = None


@dataclass
class VideoJob:
    """Represents one file's progression through the pipeline"""
    source_path: str
    display_name: str
    index: int
    status: JobStatus = JobStatus.PENDING

    @classmethod
    def from_path(cls, source_path: str, index: int) -> "VideoJob":
        return cls(source_path=source_path, display_name=os.path.basename(source_path), index=index)

    def advance(self, status: JobStatus) -> None:
        """Move the job to a new state; terminal states are final"""
        if self.status.is_terminal:
            raise RuntimeError(
                f"Job {self.index} ({self.display_name}) is already {self.status.value}, "
                f"cannot move to {status.value}"
            )
        self.status = status


@dataclass(frozen=True)
class VideoInfo:
    """Represents probed video metadata"""
    width: int
    height: int
    duration_seconds: float
    has_audio: bool = False


@dataclass(frozen=True)
class Region:
    """Pixel rectangle sampled for background color"""
    left: int
    top: int
    width: int
    height: int

    def to_box(self) -> Tuple[int, int, int, int]:
        """Return the (left, upper, right, lower) box Pillow expects"""
        return (self.left, self.top, self.left + self.width, self.top + self.height)


@dataclass(frozen=True)
class OverlayPlacement:
    """Where the watermark raster sits relative to the video edges"""
    horizontal: str
    vertical: str
    offset_x: int
    offset_y: int

    @property
    def x(self) -> str:
        # W/w are the main video and overlay widths in the overlay filter
        if self.horizontal == "right":
            return f"W-w-{self.offset_x}"
        return str(self.offset_x)

    @property
    def y(self) -> str:
        if self.vertical == "bottom":
            return f"H-h-{self.offset_y}"
        return str(self.offset_y)

    def to_filter(self) -> str:
        return f"overlay={self.x}:{self.y}"


@dataclass(frozen=True)
class ColorAnalysisResult:
    """Represents the recommended text color for a sampled region"""
    recommended_color: str
    brightness: float
    color_class: str
    average_rgb: Tuple[int, int, int]
    position: Position = Position.BOTTOM_RIGHT


@dataclass
class WatermarkRaster:
    """Rendered watermark text with per-pixel alpha"""
    image: Image.Image
    lines: List[str]
    line_height: int
    font_size: int

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size

    def save(self, path: str) -> str:
        self.image.save(path, format="PNG")
        return path


@dataclass(frozen=True)
class JobResult:
    """Final outcome of one job"""
    display_name: str
    index: int
    status: str
    output_path: Optional[str] = None
    applied_color: Optional[str] = None
    color_class: Optional[str] = None
    error_message: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == "success"

    def to_payload(self) -> Dict[str, Any]:
        """Return a serialisable payload, omitting unset fields"""
        payload: Dict[str, Any] = {
            "file": self.display_name,
            "index": self.index,
            "status": self.status,
        }
        if self.output_path is not None:
            payload["output"] = self.output_path
        if self.applied_color is not None:
            payload["color"] = self.applied_color
        if self.color_class is not None:
            payload["colorType"] = self.color_class
        if self.error_message is not None:
            payload["error"] = self.error_message
            payload["errorType"] = self.error_type
        return payload


class BatchRequest(BaseModel):
    """Input of a single batch run"""
    files: List[str] = Field(min_length=1, description="Video files to watermark, in processing order")
    watermark_text: str = Field(min_length=1, description="Watermark text")
    font_size: int = Field(default=24, gt=0, description="Font size at 1080p")
    watermark_color: str = Field(default="#FFFFFF", description="Manual text color (#RRGGBB)")
    opacity: float = Field(default=0.8, ge=0, le=1, description="Text opacity 0-1")
    position: Position = Field(default=Position.BOTTOM_RIGHT, description="Watermark corner")
    enable_smart_color: bool = Field(default=False, description="Pick the color from the region brightness")
    font_path: Optional[str] = Field(default=None, description="Font file used to render the text")

    @field_validator("watermark_text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("watermark text must not be blank")
        return value

    @field_validator("position", mode="before")
    @classmethod
    def _default_position(cls, value: Any) -> Position:
        return Position.parse(value)

    @classmethod
    def build(cls, **kwargs: Any) -> "BatchRequest":
        """Validate keyword arguments, raising InvalidBatchError on bad input"""
        try:
            return cls(**kwargs)
        except ValidationError as e:
            raise InvalidBatchError(f"Invalid batch request: {e}") from e

    def to_spec(self) -> WatermarkSpec:
        return WatermarkSpec(
            text=self.watermark_text,
            font_size=self.font_size,
            color=self.watermark_color,
            opacity=self.opacity,
            position=self.position,
            auto_color=self.enable_smart_color,
            font_path=self.font_path,
        )
