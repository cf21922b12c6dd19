"""
Batch execution management.

Validates a batch request, runs every file through the WatermarkProcessor
strictly one at a time in input order, and collects the results.
A failing file never stops the batch.
"""

import time
import logging
from typing import Any, Dict, List, Optional, Union
from datetime import datetime

from .adapters.base import MediaToolAdapter
from .config import WatermarkerConfig
from .errors import InvalidBatchError
from .events import BatchObserver, EventDispatcher
from .models import BatchRequest, JobResult, VideoJob
from .processor import WatermarkProcessor
from .scratch import ScratchManager

logger = logging.getLogger("video_watermarker")


class BatchRunner:
    """Runs watermark batches and keeps run statistics"""

    def __init__(
        self,
        config: WatermarkerConfig,
        tools: MediaToolAdapter,
        scratch: ScratchManager,
        observer: Optional[BatchObserver] = None,
    ):
        self.config = config
        self.tools = tools
        self.scratch = scratch
        self.observer = observer
        self.stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            'batches_run': 0,
            'jobs_processed': 0,
            'jobs_failed': 0,
            'total_processing_time': 0.0,
            'start_time': datetime.now()
        }

    def run(
        self,
        request: Union[BatchRequest, Dict[str, Any]],
        observer: Optional[BatchObserver] = None,
    ) -> List[JobResult]:
        """
        Watermark every file of the request.

        Args:
            request: BatchRequest or the equivalent keyword dictionary
            observer: Receives this run's events instead of the default observer

        Returns:
            One JobResult per input file, in input order

        Raises:
            InvalidBatchError: the request has no files or no text
        """
        if isinstance(request, dict):
            request = BatchRequest.build(**request)
        elif not isinstance(request, BatchRequest):
            raise InvalidBatchError(f"Unsupported batch request type: {type(request).__name__}")

        spec = request.to_spec()
        jobs = [VideoJob.from_path(path, index) for index, path in enumerate(request.files)]
        total = len(jobs)

        logger.info(
            f"Starting batch of {total} file(s): position={spec.position.value}, "
            f"smart_color={spec.auto_color}"
        )

        dispatcher = EventDispatcher(observer or self.observer)
        processor = WatermarkProcessor(self.config, self.tools, self.scratch, dispatcher)
        results: List[JobResult] = []
        batch_start = time.time()

        try:
            for job in jobs:
                job_start = time.time()
                result = processor.process(job, spec, total)
                results.append(result)

                self.stats['jobs_processed'] += 1
                self.stats['total_processing_time'] += time.time() - job_start
                if not result.success:
                    self.stats['jobs_failed'] += 1
        finally:
            dispatcher.close()

        self.stats['batches_run'] += 1
        succeeded = sum(1 for result in results if result.success)
        logger.info(
            f"Batch finished in {time.time() - batch_start:.2f}s: "
            f"{succeeded} succeeded, {total - succeeded} failed"
        )
        return results

    def get_stats(self) -> Dict[str, Any]:
        """Get runner statistics"""
        uptime = (datetime.now() - self.stats['start_time']).total_seconds()
        processed = self.stats['jobs_processed']
        failed = self.stats['jobs_failed']

        return {
            'batches_run': self.stats['batches_run'],
            'jobs_processed': processed,
            'jobs_failed': failed,
            'total_processing_time': self.stats['total_processing_time'],
            'average_processing_time': self.stats['total_processing_time'] / processed if processed > 0 else 0,
            'uptime_seconds': uptime,
            'success_rate': (processed - failed) / processed if processed > 0 else 0
        }

    def reset_stats(self) -> None:
        """Reset runner statistics"""
        self.stats = self._empty_stats()
        logger.info("Runner statistics reset")
