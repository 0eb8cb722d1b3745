"""
HTTP API for the cargo real-time pipeline.

This package provides a single FastAPI application that exposes:
- Session lifecycle and preference endpoints
- Event publishing and the recent event log
- Notification feed, live metrics and email queue endpoints
"""

from api.main import app, create_app

__all__ = ["app", "create_app"]
