"""
Per-request temp-file sessions.

Each in-flight request owns one Session: a unique id and the input/output
paths derived from it. The two paths are leased together and released
together; release is idempotent so a late grace-delay cleanup and shutdown
can both call it safely.
"""

import uuid
import logging
from typing import Dict, Iterator, Optional
from datetime import datetime, timezone
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
import threading

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Transient artifacts belonging to one processing request."""
    session_id: str
    input_path: Path
    output_path: Path
    created_at: datetime
    source_id: Optional[str] = None

    @property
    def paths(self):
        return (self.input_path, self.output_path)


class SessionManager:
    """
    Thread-safe registry of live sessions.

    Uniqueness of session ids is the only thing keeping concurrent requests
    from writing to the same files; there is no other locking on the paths.
    """

    def __init__(self, temp_dir: Path):
        self.temp_dir = Path(temp_dir)
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._released_total = 0

    def ensure_temp_dir(self) -> None:
        self.temp_dir.mkdir(parents=True, exist_ok=True)

    def create_session(self, source_id: Optional[str] = None) -> Session:
        """Allocate a fresh id and derive the two temp paths from it."""
        self.ensure_temp_dir()
        session_id = uuid.uuid4().hex
        session = Session(
            session_id=session_id,
            input_path=self.temp_dir / f"{session_id}_input.webm",
            output_path=self.temp_dir / f"{session_id}_output.mp3",
            created_at=datetime.now(timezone.utc),
            source_id=source_id,
        )
        with self._lock:
            self._sessions[session_id] = session
        return session

    def release(self, session: Session) -> None:
        """Delete both temp files (if present) and forget the session."""
        for path in session.paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                # left for the reaper
                logger.error(f"Failed to delete {path.name} for session {session.session_id}: {e}")
        with self._lock:
            if self._sessions.pop(session.session_id, None) is not None:
                self._released_total += 1

    @contextmanager
    def lease(self, source_id: Optional[str] = None) -> Iterator[Session]:
        """Scope a session: its files are released when the block exits, however it exits."""
        session = self.create_session(source_id)
        try:
            yield session
        finally:
            self.release(session)

    def release_all(self) -> int:
        with self._lock:
            live = list(self._sessions.values())
        for session in live:
            self.release(session)
        return len(live)

    def get_session(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def get_stats(self) -> Dict[str, object]:
        with self._lock:
            now = datetime.now(timezone.utc)
            return {
                "active_sessions": len(self._sessions),
                "released_sessions": self._released_total,
                "oldest_session_age": (
                    max((now - s.created_at).total_seconds() for s in self._sessions.values())
                    if self._sessions else 0
                ),
                "temp_dir": str(self.temp_dir),
            }
