"""
Batch progress events and their delivery.

The runner never waits on an observer: events are queued and a daemon
thread hands them to the observer in emission order.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger("video_watermarker")


class BatchEventType(str, Enum):
    """Categories of events emitted during a batch run"""
    STATUS = "status"
    COLOR_ANALYZED = "color_analyzed"
    PROGRESS = "progress"
    COMPLETED = "completed"


@dataclass
class BatchEvent:
    """One notification from the batch runner"""
    type: BatchEventType
    file: str
    index: int
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_payload(self) -> Dict[str, Any]:
        """Return a JSON-serialisable representation of the event"""
        payload = {"type": self.type.value, "file": self.file, "index": self.index}
        payload.update(self.data)
        return payload


def status_event(file: str, phase: str, index: int, total: int) -> BatchEvent:
    return BatchEvent(BatchEventType.STATUS, file, index, {"status": phase, "total": total})


def color_analyzed_event(
    file: str,
    color: str,
    color_type: str,
    position: str,
    index: int,
    brightness: Optional[float] = None,
    error: Optional[str] = None,
) -> BatchEvent:
    data: Dict[str, Any] = {"color": color, "colorType": color_type, "position": position}
    if brightness is not None:
        data["brightness"] = brightness
    if error is not None:
        data["error"] = error
    return BatchEvent(BatchEventType.COLOR_ANALYZED, file, index, data)


def progress_event(file: str, percent: int, index: int, total: int) -> BatchEvent:
    return BatchEvent(BatchEventType.PROGRESS, file, index, {"progress": percent, "total": total})


def completed_event(file: str, status: str, index: int, total: int, error: Optional[str] = None) -> BatchEvent:
    data: Dict[str, Any] = {"status": status, "total": total}
    if error is not None:
        data["error"] = error
    return BatchEvent(BatchEventType.COMPLETED, file, index, data)


class BatchObserver(Protocol):
    """Protocol for consumers interested in batch events"""

    def handle_event(self, event: BatchEvent) -> None:
        """Handle an event dispatched by the runner"""
        raise NotImplementedError


class RecordingObserver:
    """Keeps every event in memory"""

    def __init__(self):
        self.events: List[BatchEvent] = []
        self._lock = threading.Lock()

    def handle_event(self, event: BatchEvent) -> None:
        with self._lock:
            self.events.append(event)

    def payloads(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [event.to_payload() for event in self.events]


class LoggingObserver:
    """Writes events to the watermarker log"""

    def handle_event(self, event: BatchEvent) -> None:
        if event.type == BatchEventType.PROGRESS:
            logger.debug(f"[{event.index + 1}/{event.data['total']}] {event.file}: {event.data['progress']}%")
        elif event.type == BatchEventType.COMPLETED and event.data.get("error"):
            logger.warning(f"[{event.index + 1}/{event.data['total']}] {event.file}: error - {event.data['error']}")
        else:
            logger.info(f"{event.type.value} {event.to_payload()}")


_STOP = object()


class EventDispatcher:
    """Delivers events to an observer from a background thread"""

    def __init__(self, observer: Optional[BatchObserver] = None):
        self.observer = observer
        self._queue = queue.Queue()
        self._thread = None
        if observer is not None:
            self._thread = threading.Thread(target=self._drain, name="watermark-events", daemon=True)
            self._thread.start()

    def emit(self, event: BatchEvent) -> None:
        """Queue an event; never blocks"""
        if self._thread is None:
            return
        self._queue.put_nowait(event)

    def _drain(self) -> None:
        while True:
            event = self._queue.get()
            if event is _STOP:
                return
            try:
                self.observer.handle_event(event)
            except Exception as e:
                logger.warning(f"Observer failed on {event.type.value} event for {event.file}: {e}")

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """Flush queued events and stop the delivery thread"""
        if self._thread is None:
            return
        self._queue.put_nowait(_STOP)
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("Event observer is still busy; remaining events will be delivered in the background")
        self._thread = None
