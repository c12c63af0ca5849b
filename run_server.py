#!/usr/bin/env python3
"""
Server launcher for the Pitch Perfect Practice API.

APP_ENV=production disables auto-reload and hides error details from clients;
PORT picks the listening port.
"""

import logging
import uvicorn
from pathlib import Path

from pitchperfect.settings import load_settings

project_root = Path(__file__).parent

if __name__ == "__main__":
    settings = load_settings()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger = logging.getLogger("pitchperfect")
    logger.info(f"Starting Pitch Perfect Practice on port {settings.port} ({settings.environment})")
    logger.info(f"Health check: http://localhost:{settings.port}/api/health")

    uvicorn.run(
        "pitchperfect.api.main:app",
        host="0.0.0.0",  # Accept connections from any IP
        port=settings.port,
        reload=not settings.is_production,
        reload_dirs=[str(project_root / "pitchperfect")],
        log_level="info",
        timeout_graceful_shutdown=10,
    )
