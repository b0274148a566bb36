"""
asgi.py -- Application assembly for Keeper.

Run with:  uvicorn asgi:app --reload

Both transports (JSON routes and the JSON-RPC endpoint) are registered by
api/main.py; this module is the stable import path for ASGI servers.
"""

from api.main import app

__all__ = ["app"]
