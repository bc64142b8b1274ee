"""
asgi.py -- ASGI entry point for AssetDesk.

Run with:  uvicorn asgi:app --reload

The React front end talks to this process over /api/v1; it is built and
served separately, so nothing else is mounted here.
"""

from api.main import app

__all__ = ["app"]
