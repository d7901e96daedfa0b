"""
InstantSolve API.

FastAPI backend for the InstantSolve chat client.

Run with:
    uvicorn api.main:app --reload --port 8000
"""

from api.main import app

__all__ = ["app"]
