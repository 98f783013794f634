"""
ASGI entry point.

Run with:
    uvicorn asgi:app

Configuration is read once here; missing required variables stop the
process before the server accepts traffic.
"""

from app import create_app
from config import load_settings

app = create_app(load_settings())
