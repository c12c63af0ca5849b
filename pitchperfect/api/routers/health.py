"""
Health check endpoint for monitoring and load balancers.
"""

import time
import psutil
from fastapi import APIRouter, Depends

from ..models.common import HealthStatus, MemorySnapshot
from ..dependencies.session import get_settings, get_session_manager
from pitchperfect.settings import Settings
from pitchperfect.pipeline.audio.session import SessionManager

router = APIRouter()

# Track server start time for uptime calculation
_server_start_time = time.time()


def memory_snapshot() -> MemorySnapshot:
    process = psutil.Process()
    info = process.memory_info()
    return MemorySnapshot(rss=info.rss, vms=info.vms, percent=round(process.memory_percent(), 2))


@router.get("", response_model=HealthStatus)
async def health_check(
    settings: Settings = Depends(get_settings),
    session_manager: SessionManager = Depends(get_session_manager)
):
    """Liveness plus a process memory snapshot and the number of in-flight sessions."""
    return HealthStatus(
        status="OK",
        message="Pitch Perfect Practice backend is running",
        uptime=time.time() - _server_start_time,
        memory=memory_snapshot(),
        environment=settings.environment,
        active_sessions=session_manager.get_stats()["active_sessions"],
    )
