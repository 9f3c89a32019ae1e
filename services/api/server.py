#!/usr/bin/env python3
"""
CarHub API server entrypoint.

Usage:
    python -m services.api.server
"""
import os

import uvicorn

from core.config import config


def main():
    reload = os.getenv("RELOAD", "").strip().lower() in {"1", "true", "yes", "on"}
    uvicorn.run(
        "services.api.app:create_app",
        factory=True,
        host=config.HOST,
        port=config.PORT,
        reload=reload,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
