"""
Calendar Engine API module.

Provides the tool registry and the FastAPI HTTP surface over it.
"""

from calendar_engine.api.main import app, run_server

__all__ = ["app", "run_server"]
