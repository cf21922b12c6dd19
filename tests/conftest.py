"""Shared fixtures: import path setup and a fake media tool."""

import os
import pathlib
import sys

import pytest
from PIL import Image

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from watermarker.adapters.base import MediaToolAdapter
from watermarker.config import WatermarkerConfig
from watermarker.errors import AnalysisError, CompositingError, ProbeError
from watermarker.models import VideoInfo
from watermarker.scratch import ScratchManager


class FakeMediaTools(MediaToolAdapter):
    """Stands in for ffmpeg: solid-color frames and instant 'encodes'"""

    def __init__(
        self,
        info=None,
        frame_color=(0, 0, 0),
        probe_failures=(),
        extract_fails=False,
        composite_failures=(),
        progress_steps=(0, 10, 10, 55, 100),
    ):
        self.info = info or VideoInfo(width=1920, height=1080, duration_seconds=12.0, has_audio=True)
        self.frame_color = frame_color
        self.probe_failures = set(probe_failures)
        self.extract_fails = extract_fails
        self.composite_failures = set(composite_failures)
        self.progress_steps = progress_steps
        self.calls = []
        self.overlays = []

    def probe(self, video_path):
        self.calls.append(("probe", os.path.basename(video_path)))
        if os.path.basename(video_path) in self.probe_failures:
            raise ProbeError(f"No video stream found in {video_path}")
        return self.info

    def extract_frame(self, video_path, output_path, size=None):
        self.calls.append(("extract", os.path.basename(video_path)))
        if self.extract_fails:
            raise AnalysisError("decoder could not produce a frame")
        width, height = (int(v) for v in (size or "640x360").split("x"))
        Image.new("RGB", (width, height), self.frame_color).save(output_path)
        return output_path

    def composite(self, video_path, overlay_path, output_path, placement, info, progress=None):
        self.calls.append(("composite", os.path.basename(video_path)))
        with Image.open(overlay_path) as overlay:
            self.overlays.append({"size": overlay.size, "mode": overlay.mode, "placement": placement})
        if os.path.basename(video_path) in self.composite_failures:
            raise CompositingError("ffmpeg exited with code 1: encoder exploded")
        for percent in self.progress_steps:
            if progress:
                progress(percent)
        pathlib.Path(output_path).write_bytes(b"watermarked")
        return output_path

    def calls_for(self, kind):
        return [name for call, name in self.calls if call == kind]


@pytest.fixture
def config():
    return WatermarkerConfig()


@pytest.fixture
def scratch(tmp_path):
    manager = ScratchManager(root=str(tmp_path / "scratch"))
    yield manager
    manager.release_all()


@pytest.fixture
def tools():
    return FakeMediaTools()


@pytest.fixture
def make_video(tmp_path):
    def _make(name):
        path = tmp_path / name
        path.write_bytes(b"not really a video")
        return str(path)
    return _make
