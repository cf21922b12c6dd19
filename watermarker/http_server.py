import os
import logging
import threading
from typing import Optional
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field
import uvicorn

from .errors import AnalysisError
from .events import RecordingObserver
from .models import BatchRequest, Position
from .orchestrator import BatchRunner
from .pipeline.color import analyze_video

logger = logging.getLogger("video_watermarker")


class AnalyzeColorRequest(BaseModel):
    """Body of POST /analyze-color"""
    video_path: str = Field(min_length=1, description="Video to sample")
    position: Position = Field(default=Position.BOTTOM_RIGHT, description="Corner to sample")


class HealthServer:
    def __init__(self, runner: BatchRunner, port: int = 8000):
        self.runner = runner
        self.port = port
        self.app = FastAPI(title="Video Watermarker API")
        # One transcode at a time, even with concurrent requests
        self.batch_lock = threading.Lock()
        self.setup_routes()
        self.server_thread = None
        self.running = False

    def setup_routes(self):
        """Setup API routes"""

        @self.app.get("/healthz")
        async def health_check():
            """Health check endpoint"""
            if not self.runner.tools.check_available():
                raise HTTPException(status_code=503, detail="ffmpeg/ffprobe not available")
            return {"ok": True, "status": "healthy"}

        @self.app.get("/stats")
        async def get_stats():
            """Get runner statistics"""
            stats = self.runner.get_stats()
            stats["scratch_dirs"] = len(self.runner.scratch.live)
            return stats

        @self.app.post("/analyze-color")
        def analyze_color(body: AnalyzeColorRequest):
            """Recommend a watermark color for one video"""
            if not os.path.exists(body.video_path):
                raise HTTPException(status_code=404, detail=f"File does not exist: {body.video_path}")

            try:
                result = analyze_video(
                    body.video_path,
                    body.position,
                    self.runner.tools,
                    self.runner.scratch,
                    thumbnail_size=self.runner.config.THUMBNAIL_SIZE,
                    threshold=self.runner.config.BRIGHTNESS_THRESHOLD,
                )
            except AnalysisError as e:
                logger.error(f"Color analysis failed: {str(e)}")
                raise HTTPException(status_code=422, detail=str(e))

            return {
                "color": result.recommended_color,
                "brightness": result.brightness,
                "type": result.color_class,
                "position": result.position.value,
                "averageColor": dict(zip("rgb", result.average_rgb)),
            }

        @self.app.post("/batches")
        def run_batch(body: BatchRequest):
            """Run a batch synchronously and return results with the emitted events"""
            recorder = RecordingObserver()
            with self.batch_lock:
                results = self.runner.run(body, observer=recorder)

            return {
                "results": [result.to_payload() for result in results],
                "events": recorder.payloads(),
            }

    def start(self):
        """Start the HTTP server in a background thread"""
        if self.running:
            return

        def run_server():
            try:
                uvicorn.run(
                    self.app,
                    host="127.0.0.1",
                    port=self.port,
                    log_level="warning",  # Reduce uvicorn logging
                    access_log=False
                )
            except Exception as e:
                logger.error(f"HTTP server error: {str(e)}")

        self.server_thread = threading.Thread(target=run_server, daemon=True)
        self.server_thread.start()
        self.running = True

        logger.info(f"HTTP server started on port {self.port}")

    def stop(self):
        """Stop the HTTP server"""
        self.running = False
        logger.info("HTTP server stopped")


def start_health_server(runner: BatchRunner) -> Optional[HealthServer]:
    """Start the HTTP server if enabled"""
    if runner.config.ENABLE_HTTP_SERVER:
        server = HealthServer(runner, runner.config.HTTP_PORT)
        server.start()
        return server
    return None
