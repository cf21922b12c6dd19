"""
Adapter pattern implementations for the external media tool.

This module provides the abstract capability contracts the pipeline relies
on (probing, frame extraction, compositing) and the ffmpeg implementation.
"""

from .base import Compositor, FrameExtractor, MediaToolAdapter, VideoProber
from .ffmpeg_adapter import FFmpegAdapter

__all__ = [
    'VideoProber',
    'FrameExtractor',
    'Compositor',
    'MediaToolAdapter',
    'FFmpegAdapter'
]
