"""
CarHub HTTP and WebSocket surface.

Usage:
    from services.api import create_app

    app = create_app()
"""
from services.api.app import create_app

__all__ = ["create_app"]
