"""API endpoints."""

from app.api.error_handlers import register_error_handlers
from app.api.routes import router
from app.api.websocket import manager, websocket_endpoint, ConnectionManager

__all__ = [
    "router",
    "register_error_handlers",
    "manager",
    "websocket_endpoint",
    "ConnectionManager",
]
