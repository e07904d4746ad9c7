"""
asgi.py -- ASGI entry point for Gatekeeper.

Run with:  uvicorn asgi:app --reload
           uvicorn asgi:app --host 0.0.0.0 --port 8000
"""

from api.main import app

__all__ = ["app"]
