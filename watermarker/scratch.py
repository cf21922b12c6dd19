"""
Scratch directory management.

One ScratchManager is created at startup and handed to every stage that
needs temporary files. It owns every directory it allocates until the
directory is released, either explicitly or by release_all() at shutdown.
"""

import os
import shutil
import logging
import tempfile
import threading
import time
import uuid
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger("video_watermarker")


class ScratchManager:
    """Allocates uniquely named temp directories and removes them on shutdown"""

    def __init__(self, root: Optional[str] = None, prefix: str = "video-wm"):
        self.root = Path(root or tempfile.gettempdir())
        self.prefix = prefix
        self._live = set()
        self._lock = threading.Lock()

    def allocate(self) -> Path:
        """Create and register a new scratch directory"""
        name = f"{self.prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"
        path = self.root / name
        path.mkdir(parents=True, exist_ok=False)

        with self._lock:
            self._live.add(path)

        logger.debug(f"Allocated scratch directory {path}")
        return path

    @property
    def live(self) -> List[Path]:
        """Snapshot of the directories still registered"""
        with self._lock:
            return sorted(self._live)

    def release(self, path: os.PathLike) -> bool:
        """
        Remove one scratch directory.

        Returns True when the directory is gone. Failures are logged and
        the directory stays registered so release_all() can retry it.
        """
        path = Path(path)
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"CleanupWarning: could not remove scratch directory {path}: {e}")
            return False

        with self._lock:
            self._live.discard(path)
        logger.debug(f"Released scratch directory {path}")
        return True

    def release_all(self) -> List[Path]:
        """
        Best-effort removal of every registered directory.

        Returns the directories that could not be removed. Never raises.
        """
        failed = [path for path in self.live if not self.release(path)]

        if failed:
            logger.warning(f"CleanupWarning: {len(failed)} scratch directories could not be removed")
        return failed

    def __enter__(self) -> "ScratchManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release_all()
