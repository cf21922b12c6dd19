"""
Abstract base classes for the external media tool.

Defines the capabilities the pipeline needs from the transcoding tool,
enabling the ffmpeg implementation to be swapped for fakes in tests
or for a different engine.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..models import OverlayPlacement, VideoInfo

ProgressSink = Callable[[int], None]


class VideoProber(ABC):
    """Reads stream metadata from a video file"""

    @abstractmethod
    def probe(self, video_path: str) -> VideoInfo:
        """
        Probe a video for its first video stream.

        Args:
            video_path: Path of the video to inspect

        Returns:
            VideoInfo with width, height and duration

        Raises:
            ProbeError: the tool failed or no video stream exists
        """
        pass


class FrameExtractor(ABC):
    """Decodes a single still frame"""

    @abstractmethod
    def extract_frame(self, video_path: str, output_path: str, size: Optional[str] = None) -> str:
        """
        Write one representative frame of the video as an image.

        Args:
            video_path: Source video
            output_path: Image file to create
            size: Optional WIDTHxHEIGHT to scale the frame to

        Returns:
            The written image path

        Raises:
            AnalysisError: the frame could not be produced
        """
        pass


class Compositor(ABC):
    """Overlays an image on a video and re-encodes it"""

    @abstractmethod
    def composite(
        self,
        video_path: str,
        overlay_path: str,
        output_path: str,
        placement: OverlayPlacement,
        info: VideoInfo,
        progress: Optional[ProgressSink] = None,
    ) -> str:
        """
        Burn the overlay image into the video.

        Args:
            video_path: Source video
            overlay_path: PNG with alpha to draw on every frame
            output_path: Video file to create
            placement: Corner anchoring of the overlay
            info: Probed source metadata (duration drives progress)
            progress: Receives integer percentages 0-100, never decreasing

        Returns:
            The written video path

        Raises:
            CompositingError: encoding failed
        """
        pass


class MediaToolAdapter(VideoProber, FrameExtractor, Compositor):
    """All capabilities the batch runner needs from one tool"""

    def check_available(self) -> bool:
        """Return True when the underlying tool can be invoked"""
        return True
