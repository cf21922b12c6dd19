"""
Error taxonomy for the watermarking pipeline.

Every stage raises the class matching its failure so the batch runner can
decide at the per-job boundary whether the job fails or recovers.
Cleanup failures are never raised; the scratch manager logs them instead.
"""


class WatermarkError(Exception):
    """Base class for all pipeline errors"""


class InvalidBatchError(WatermarkError, ValueError):
    """The batch request is structurally invalid and was rejected before any job ran"""


class VideoFileNotFoundError(WatermarkError, FileNotFoundError):
    """The source video does not exist"""


class ProbeError(WatermarkError):
    """The source video could not be probed for its video stream"""


class AnalysisError(WatermarkError):
    """Frame extraction or region sampling failed (recoverable)"""


class SynthesisError(WatermarkError):
    """The watermark raster could not be rendered"""


class CompositingError(WatermarkError):
    """Overlaying the watermark and re-encoding the video failed"""


class ToolTimeoutError(WatermarkError):
    """An external tool call exceeded the configured timeout"""

    def __init__(self, tool: str, timeout: float):
        super().__init__(f"{tool} did not finish within {timeout:g}s")
        self.tool = tool
        self.timeout = timeout
