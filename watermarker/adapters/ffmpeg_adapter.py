"""
ffmpeg implementation of the media tool capabilities.

Frame extraction and compositing graphs are built with ffmpeg-python.
ffprobe is launched with the same arguments ffmpeg.probe uses, on a process
the configured timeout can kill.
"""

import os
import json
import shutil
import logging
import subprocess
import threading
from collections import deque
from typing import Optional, Dict, Any

import ffmpeg

from .base import MediaToolAdapter, ProgressSink
from ..config import WatermarkerConfig
from ..errors import AnalysisError, CompositingError, ProbeError, ToolTimeoutError
from ..models import OverlayPlacement, VideoInfo
from ..pipeline.util import round_half_up

logger = logging.getLogger("video_watermarker")


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def _stderr_tail(data: Optional[bytes], lines: int = 10) -> str:
    text = _decode(data).strip()
    if not text:
        return "unknown ffmpeg error"
    return " | ".join(text.splitlines()[-lines:])


def video_info_from_probe(probe: Dict[str, Any]) -> VideoInfo:
    """Build VideoInfo from ffprobe JSON output"""
    streams = probe.get('streams', [])
    video_stream = next((stream for stream in streams if stream.get('codec_type') == 'video'), None)
    if video_stream is None:
        raise ProbeError("No video stream found")

    width = int(video_stream.get('width') or 0)
    height = int(video_stream.get('height') or 0)
    if width <= 0 or height <= 0:
        raise ProbeError(f"Video stream reports invalid dimensions {width}x{height}")

    duration = probe.get('format', {}).get('duration') or video_stream.get('duration') or 0
    has_audio = any(stream.get('codec_type') == 'audio' for stream in streams)

    return VideoInfo(width=width, height=height, duration_seconds=float(duration), has_audio=has_audio)


def parse_progress_line(line: str, duration_seconds: float) -> Optional[int]:
    """
    Convert one `-progress` key=value line to a percentage.

    ffmpeg reports out_time_ms in microseconds despite the name.
    """
    key, _, value = line.strip().partition("=")
    if key == "progress" and value == "end":
        return 100
    if key not in ("out_time_ms", "out_time_us") or duration_seconds <= 0:
        return None
    try:
        micros = int(value)
    except ValueError:
        return None
    percent = round_half_up(micros / 1_000_000.0 / duration_seconds * 100)
    return max(0, min(100, percent))


class FFmpegAdapter(MediaToolAdapter):
    """Media tool capabilities backed by the ffmpeg command line tools"""

    def __init__(self, config: WatermarkerConfig):
        self.config = config
        self.timeout = config.FFMPEG_TIMEOUT_SEC

    def check_available(self) -> bool:
        return bool(shutil.which(self.config.FFMPEG_CMD) and shutil.which(self.config.FFPROBE_CMD))

    def probe(self, video_path: str) -> VideoInfo:
        try:
            probe = self._probe(video_path)
            info = video_info_from_probe(probe)
            logger.debug(
                f"Probed {video_path}: {info.width}x{info.height}, {info.duration_seconds:.2f}s, "
                f"audio={info.has_audio}"
            )
            return info

        except ProbeError:
            raise
        except ffmpeg.Error as e:
            raise ProbeError(f"ffprobe failed for {video_path}: {_stderr_tail(e.stderr)}") from e
        except ToolTimeoutError as e:
            raise ProbeError(str(e)) from e
        except (OSError, ValueError) as e:
            raise ProbeError(f"Could not probe {video_path}: {e}") from e

    def _probe(self, video_path: str) -> Dict[str, Any]:
        """Same invocation as ffmpeg.probe, on a process the timeout can kill"""
        args = [self.config.FFPROBE_CMD, '-show_format', '-show_streams', '-of', 'json', video_path]
        process = subprocess.Popen(args, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        out, err = self._communicate(process, 'ffprobe')
        if process.returncode != 0:
            raise ffmpeg.Error('ffprobe', out, err)
        return json.loads(out.decode('utf-8'))

    def _communicate(self, process, tool: str):
        """Wait for a process, killing it once the timeout expires"""
        try:
            return process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()
            raise ToolTimeoutError(tool, self.timeout)

    def extract_frame(self, video_path: str, output_path: str, size: Optional[str] = None) -> str:
        output_kwargs: Dict[str, Any] = {'vframes': 1, 'q:v': 2}
        if size:
            output_kwargs['s'] = size

        stream = (
            ffmpeg
            .input(video_path)
            .output(output_path, **output_kwargs)
            .overwrite_output()
        )

        try:
            self._run(stream)
        except ffmpeg.Error as e:
            raise AnalysisError(f"Frame extraction failed for {video_path}: {_stderr_tail(e.stderr)}") from e
        except (ToolTimeoutError, OSError) as e:
            raise AnalysisError(f"Frame extraction failed for {video_path}: {e}") from e

        if not os.path.exists(output_path):
            raise AnalysisError(f"Frame extraction produced no image for {video_path}")

        return output_path

    def _run(self, stream) -> None:
        """Run a compiled ffmpeg stream to completion, honouring the timeout"""
        process = stream.run_async(cmd=self.config.FFMPEG_CMD, pipe_stdout=True, pipe_stderr=True)
        out, err = self._communicate(process, "ffmpeg")

        if process.returncode != 0:
            raise ffmpeg.Error('ffmpeg', out, err)

    def build_composite_stream(
        self,
        video_path: str,
        overlay_path: str,
        output_path: str,
        placement: OverlayPlacement,
        info: VideoInfo,
    ):
        """Build the overlay + re-encode graph"""
        main = ffmpeg.input(video_path)
        watermark = ffmpeg.input(overlay_path)

        video = ffmpeg.overlay(main.video, watermark, x=placement.x, y=placement.y)
        streams = [video]

        video_codec, audio_codec = self.config.codecs_for(output_path)
        output_kwargs: Dict[str, Any] = {
            'vcodec': video_codec,
            'crf': self.config.VIDEO_CRF,
        }
        if video_codec.startswith('libvpx'):
            # libvpx only honours crf as a constant quality target with b:v 0
            output_kwargs['b:v'] = 0
        else:
            output_kwargs['preset'] = self.config.VIDEO_PRESET

        if info.has_audio:
            streams.append(main.audio)
            output_kwargs['acodec'] = audio_codec
            output_kwargs['b:a'] = self.config.AUDIO_BITRATE

        return (
            ffmpeg
            .output(*streams, output_path, **output_kwargs)
            .global_args('-nostats', '-progress', 'pipe:1')
            .overwrite_output()
        )

    def composite(
        self,
        video_path: str,
        overlay_path: str,
        output_path: str,
        placement: OverlayPlacement,
        info: VideoInfo,
        progress: Optional[ProgressSink] = None,
    ) -> str:
        stream = self.build_composite_stream(video_path, overlay_path, output_path, placement, info)
        logger.info(f"Compositing {video_path} -> {output_path} ({placement.to_filter()})")

        try:
            process = stream.run_async(cmd=self.config.FFMPEG_CMD, pipe_stdout=True, pipe_stderr=True)
        except OSError as e:
            raise CompositingError(f"Could not start ffmpeg: {e}") from e

        # Drain stderr in the background so a chatty encoder cannot fill the pipe
        stderr_lines = deque(maxlen=20)

        def drain_stderr():
            for raw in process.stderr:
                stderr_lines.append(_decode(raw).rstrip())

        stderr_thread = threading.Thread(target=drain_stderr, daemon=True)
        stderr_thread.start()

        timed_out = threading.Event()
        timer = None
        if self.timeout is not None:
            def kill():
                timed_out.set()
                process.kill()

            timer = threading.Timer(self.timeout, kill)
            timer.daemon = True
            timer.start()

        last_percent = 0
        try:
            for raw in process.stdout:
                percent = parse_progress_line(_decode(raw), info.duration_seconds)
                if percent is None or percent <= last_percent:
                    continue
                last_percent = percent
                if progress:
                    progress(percent)
            process.wait()
        finally:
            if timer:
                timer.cancel()
            process.stdout.close()
            stderr_thread.join(timeout=1.0)

        if timed_out.is_set():
            raise CompositingError(str(ToolTimeoutError("ffmpeg", self.timeout)))

        if process.returncode != 0:
            tail = " | ".join(line for line in stderr_lines if line) or "unknown ffmpeg error"
            raise CompositingError(f"ffmpeg exited with code {process.returncode}: {tail}")

        if not os.path.exists(output_path):
            raise CompositingError("ffmpeg finished but output file missing")

        if progress and last_percent < 100:
            progress(100)

        return output_path
