import time
import logging
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


class TempFileReaper:
    """
    Age-based sweep of the temp directory.

    Safety net for files whose request never cleaned up (crash, abandoned worker thread).
    max_age_s must stay well above the longest request lifetime or a live
    request's files can be deleted from under it.
    """

    def __init__(self, temp_dir: Path, max_age_s: float = 900):
        self.temp_dir = Path(temp_dir)
        self.max_age_s = max_age_s

    def sweep(self, now: Optional[float] = None) -> List[Path]:
        """Delete files older than max_age_s; returns the paths removed."""
        if not self.temp_dir.exists():
            return []
        now = time.time() if now is None else now
        removed = []

        try:
            entries = list(self.temp_dir.iterdir())
        except OSError as e:
            logger.error(f"Error listing temp dir {self.temp_dir}: {e}")
            return []

        for path in entries:
            try:
                if not path.is_file():
                    continue
                age = now - path.stat().st_mtime
                if age > self.max_age_s:
                    path.unlink()
                    removed.append(path)
                    logger.info(f"Cleaned up old temp file: {path.name}")
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error(f"Error cleaning up file {path.name}: {e}")
        return removed

    def purge(self) -> int:
        """Delete every file in the temp directory (shutdown)."""
        return len(self.sweep(now=float("inf")))
