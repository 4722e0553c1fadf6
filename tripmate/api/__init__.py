"""
FastAPI server module for TripMate.

Provides the streaming chat and conversation history endpoints.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
