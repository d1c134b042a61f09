#!/usr/bin/env python3
# entrypoint_api.py
"""
Entry point for the RideHub API (tracking HTTP + real-time WebSocket).
Port: settings.server.PORT (8000)
"""

import asyncio
import sys
from pathlib import Path

# Add the project root to the import path
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

import uvicorn

from ridehub.config import settings
from ridehub.common.logger import log_info
from ridehub.common.constants import TypeMsg


async def main() -> None:
    """Runs the API server."""
    await log_info(
        f"Starting RideHub API on {settings.server.HOST}:{settings.server.PORT}",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "ridehub.app:app",
        host=settings.server.HOST,
        port=settings.server.PORT,
        reload=settings.system.DEBUG,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
