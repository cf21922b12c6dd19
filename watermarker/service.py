"""
Watermarker service and command line entry point.

Wires configuration, logging, the scratch manager, the ffmpeg adapter and
the batch runner together, and guarantees scratch cleanup at shutdown.
"""

import os
import sys
import json
import time
import atexit
import signal
import logging
import argparse
from typing import Optional, Dict, Any, List

from .adapters.base import MediaToolAdapter
from .adapters.ffmpeg_adapter import FFmpegAdapter
from .config import WatermarkerConfig
from .errors import AnalysisError, InvalidBatchError, VideoFileNotFoundError
from .events import LoggingObserver
from .http_server import start_health_server
from .logging_setup import setup_logging, log_exception
from .models import BatchRequest, JobResult, Position
from .orchestrator import BatchRunner
from .pipeline.color import analyze_video
from .pipeline.util import find_video_files
from .scratch import ScratchManager

logger = logging.getLogger("video_watermarker")


class WatermarkerService:
    """Owns the long-lived resources of one watermarker process"""

    def __init__(self, config: Optional[WatermarkerConfig] = None, tools: Optional[MediaToolAdapter] = None):
        self.config = config or WatermarkerConfig.from_env()
        self.tools = tools
        self.scratch: Optional[ScratchManager] = None
        self.runner: Optional[BatchRunner] = None
        self.http_server = None
        self.running = False

    def initialize(self):
        """Initialize resources based on configuration"""
        try:
            setup_logging(self.config.LOG_LEVEL, self.config.LOG_DIR)
            self.config.validate()

            self.scratch = ScratchManager(self.config.SCRATCH_ROOT)
            self.tools = self.tools or FFmpegAdapter(self.config)
            if not self.tools.check_available():
                logger.warning(f"{self.config.FFMPEG_CMD}/{self.config.FFPROBE_CMD} not found on PATH")

            self.runner = BatchRunner(self.config, self.tools, self.scratch, LoggingObserver())
            self.http_server = start_health_server(self.runner)

            # Scratch directories must not outlive the process
            atexit.register(self.stop)
            self.running = True

            logger.info("Watermarker service initialized successfully")

        except Exception as e:
            log_exception(logger, f"Failed to initialize watermarker service: {e}")
            raise

    def process(self, paths: List[str], **options: Any) -> List[JobResult]:
        """Watermark the given files and directories"""
        files = find_video_files(paths, self.config.VIDEO_EXTENSIONS)
        request = BatchRequest.build(files=files, **options)
        return self.runner.run(request)

    def analyze(self, video_path: str, position: str) -> Dict[str, Any]:
        """Recommend a watermark color for one video"""
        if not os.path.exists(video_path):
            raise VideoFileNotFoundError(f"File does not exist: {video_path}")

        result = analyze_video(
            video_path,
            position,
            self.tools,
            self.scratch,
            thumbnail_size=self.config.THUMBNAIL_SIZE,
            threshold=self.config.BRIGHTNESS_THRESHOLD,
        )
        return {
            "file": os.path.basename(video_path),
            "color": result.recommended_color,
            "brightness": round(result.brightness, 4),
            "type": result.color_class,
            "position": result.position.value,
            "averageColor": dict(zip("rgb", result.average_rgb)),
        }

    def serve(self):
        """Block while the HTTP server handles requests"""
        if not self.http_server:
            raise ValueError("HTTP server disabled; set WATERMARKER_DEV_HTTP=true")

        logger.info("Serving watermark requests, press Ctrl+C to stop")
        while self.running:
            time.sleep(1.0)

    def stop(self):
        """Stop the service and remove every scratch directory"""
        if not self.running:
            return

        self.running = False

        if self.http_server:
            self.http_server.stop()

        if self.scratch:
            self.scratch.release_all()

        logger.info("Watermarker service stopped")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="video-watermark", description="Batch text watermarks for videos")
    sub = parser.add_subparsers(dest="command", required=True)

    process_p = sub.add_parser("process", help="Watermark videos")
    process_p.add_argument("paths", nargs="+", help="Video files or directories")
    process_p.add_argument("-t", "--text", required=True, help="Watermark text")
    process_p.add_argument("--font-size", type=int, default=24, help="Font size at 1080p")
    process_p.add_argument("--color", default="#FFFFFF", help="Text color #RRGGBB")
    process_p.add_argument("--opacity", type=float, default=0.8)
    process_p.add_argument("--position", default=Position.BOTTOM_RIGHT.value,
                           choices=[p.value for p in Position])
    process_p.add_argument("--smart-color", action="store_true", help="Pick black/white from the region brightness")
    process_p.add_argument("--font", help="Font file path")

    analyze_p = sub.add_parser("analyze", help="Recommend a watermark color")
    analyze_p.add_argument("path", help="Video file")
    analyze_p.add_argument("--position", default=Position.BOTTOM_RIGHT.value,
                           choices=[p.value for p in Position])

    sub.add_parser("serve", help="Run the HTTP API (needs WATERMARKER_DEV_HTTP=true)")
    return parser


def signal_handler(signum, frame):
    """Handle shutdown signals"""
    logger.info(f"Received signal {signum}, shutting down...")
    sys.exit(0)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)

    # Setup signal handlers
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    service = WatermarkerService()

    try:
        service.initialize()

        if args.command == "process":
            results = service.process(
                args.paths,
                watermark_text=args.text,
                font_size=args.font_size,
                watermark_color=args.color,
                opacity=args.opacity,
                position=args.position,
                enable_smart_color=args.smart_color,
                font_path=args.font,
            )
            print(json.dumps([result.to_payload() for result in results], ensure_ascii=False, indent=2))
            return 0 if all(result.success for result in results) else 1

        if args.command == "analyze":
            print(json.dumps(service.analyze(args.path, args.position), indent=2))
            return 0

        service.serve()
        return 0

    except (InvalidBatchError, VideoFileNotFoundError, AnalysisError, ValueError) as e:
        logger.error(str(e))
        return 2
    except Exception as e:
        log_exception(logger, f"Watermarker failed: {str(e)}")
        return 1
    finally:
        service.stop()


if __name__ == "__main__":
    sys.exit(main())
