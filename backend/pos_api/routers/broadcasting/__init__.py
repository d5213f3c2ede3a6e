"""
Broadcasting routers - /api/broadcasting/*
Channel tokens for the websocket gateway and a diagnostics push.
"""

from .routes import router

__all__ = ["router"]
