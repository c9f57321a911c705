"""
API router package.

Aggregates routers exposed by the web service.
"""

from web.api.clip import router as clip_router

__all__ = [
    "clip_router"
]
