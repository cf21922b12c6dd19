"""
Per-file watermarking pipeline.

Runs one VideoJob through its states:
pending -> analyzing (smart color only) -> processing -> success | failed.
Any stage error ends the job as failed; color analysis errors are recovered
by keeping the manual color.
"""

import os
import time
import logging
from typing import Optional

from .adapters.base import MediaToolAdapter
from .config import WatermarkerConfig
from .errors import AnalysisError, VideoFileNotFoundError, WatermarkError
from .events import (
    EventDispatcher,
    color_analyzed_event,
    completed_event,
    progress_event,
    status_event,
)
from .logging_setup import log_exception
from .models import JobResult, JobStatus, VideoJob, WatermarkSpec
from .pipeline.color import analyze_video
from .pipeline.geometry import overlay_expression
from .pipeline.synth import synthesize
from .pipeline.util import output_path_for, round_half_up
from .scratch import ScratchManager

logger = logging.getLogger("video_watermarker")


class WatermarkProcessor:
    """Handles the watermark pipeline for a single video"""

    def __init__(
        self,
        config: WatermarkerConfig,
        tools: MediaToolAdapter,
        scratch: ScratchManager,
        events: Optional[EventDispatcher] = None,
    ):
        self.config = config
        self.tools = tools
        self.scratch = scratch
        self.events = events or EventDispatcher()

    def process(self, job: VideoJob, spec: WatermarkSpec, total: int) -> JobResult:
        """
        Process a single video through the complete pipeline.

        Args:
            job: Job to advance; left in a terminal state
            spec: Watermark settings for the whole batch
            total: Number of jobs in the batch, for event payloads

        Returns:
            JobResult describing success or the error that failed the job
        """
        start_time = time.time()

        try:
            result = self._run_stages(job, spec, total)
        except Exception as e:
            job.advance(JobStatus.FAILED)
            error_type = type(e).__name__ if isinstance(e, WatermarkError) else "UnexpectedError"
            log_exception(logger, f"Watermarking failed for {job.display_name}: {e}")

            result = JobResult(
                display_name=job.display_name,
                index=job.index,
                status="error",
                error_message=str(e),
                error_type=error_type,
            )
            self.events.emit(completed_event(job.display_name, "error", job.index, total, error=str(e)))
            return result

        job.advance(JobStatus.SUCCESS)
        logger.info(
            f"READY: {job.display_name} -> {result.output_path} in {time.time() - start_time:.2f}s"
        )
        self.events.emit(completed_event(job.display_name, "success", job.index, total))
        return result

    def _run_stages(self, job: VideoJob, spec: WatermarkSpec, total: int) -> JobResult:
        # Step 1: Existence check
        if not os.path.exists(job.source_path):
            raise VideoFileNotFoundError(f"File does not exist: {job.source_path}")

        # Step 2: Probe
        logger.info(f"PROBE: {job.display_name}")
        info = self.tools.probe(job.source_path)

        # Step 3: Smart color
        color = spec.color
        color_class = "manual"
        if spec.auto_color:
            color, color_class = self._analyze_color(job, spec, total)

        # Step 4: Scale the font against the 1080p reference
        scaled_font_size = max(1, round_half_up(spec.font_size * info.height / self.config.REFERENCE_HEIGHT))

        # Step 5: Synthesize
        logger.info(f"SYNTHESIZE: {job.display_name} at {scaled_font_size}px in {color}")
        raster = synthesize(
            spec.text,
            scaled_font_size,
            color,
            spec.opacity,
            info.width - self.config.PADDING_X * 2,
            info.height,
            font_path=spec.font_path,
            font_candidates=self.config.font_candidates(),
            line_spacing=self.config.LINE_SPACING,
            padding=self.config.RASTER_PADDING,
        )

        # Step 6: Placement
        placement = overlay_expression(spec.position, self.config.PADDING_X, self.config.PADDING_Y)

        # Step 7: Composite
        job.advance(JobStatus.PROCESSING)
        self.events.emit(status_event(job.display_name, JobStatus.PROCESSING.value, job.index, total))

        output_path = output_path_for(job.source_path)
        scratch_dir = self.scratch.allocate()
        try:
            watermark_path = raster.save(os.path.join(scratch_dir, "watermark.png"))

            def on_progress(percent: int) -> None:
                self.events.emit(progress_event(job.display_name, percent, job.index, total))

            logger.info(f"COMPOSITE: {job.display_name}")
            self.tools.composite(job.source_path, watermark_path, output_path, placement, info, on_progress)
        finally:
            self.scratch.release(scratch_dir)

        return JobResult(
            display_name=job.display_name,
            index=job.index,
            status="success",
            output_path=output_path,
            applied_color=color,
            color_class=color_class,
        )

    def _analyze_color(self, job: VideoJob, spec: WatermarkSpec, total: int) -> tuple[str, str]:
        """Pick the color from the overlay region; keep the manual color if that fails"""
        job.advance(JobStatus.ANALYZING)
        self.events.emit(status_event(job.display_name, JobStatus.ANALYZING.value, job.index, total))

        try:
            analysis = analyze_video(
                job.source_path,
                spec.position,
                self.tools,
                self.scratch,
                thumbnail_size=self.config.THUMBNAIL_SIZE,
                threshold=self.config.BRIGHTNESS_THRESHOLD,
            )
        except AnalysisError as e:
            logger.warning(f"Color analysis failed for {job.display_name}, keeping {spec.color}: {e}")
            self.events.emit(color_analyzed_event(
                job.display_name,
                spec.color,
                "original",
                spec.position.value,
                job.index,
                error=str(e),
            ))
            return spec.color, "manual"

        self.events.emit(color_analyzed_event(
            job.display_name,
            analysis.recommended_color,
            analysis.color_class,
            spec.position.value,
            job.index,
            brightness=analysis.brightness,
        ))
        return analysis.recommended_color, analysis.color_class
