# api/__init__.py
"""
API Endpoints Package

Contains all FastAPI routers for the concierge service:
- chat: Cruise-port Q&A
- me: Quota status
- ports: Port listing
- stripe_routes: Checkout and webhook
- system: Health and corpus reload
"""

from typing import TYPE_CHECKING

# Lazy imports to avoid circular dependencies
if TYPE_CHECKING:
    from .chat import router as chat_router
    from .me import router as me_router
    from .ports import router as ports_router
    from .stripe_routes import router as stripe_router
    from .system import router as system_router

__all__ = [
    "chat_router",
    "me_router",
    "ports_router",
    "stripe_router",
    "system_router"
]
