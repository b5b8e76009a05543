"""API routers."""
from . import conformance, measurements, websocket

__all__ = ["conformance", "measurements", "websocket"]
