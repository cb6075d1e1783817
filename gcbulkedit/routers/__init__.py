"""Routers package."""

from gcbulkedit.routers.blog import router as blog_router
from gcbulkedit.routers.customers import router as customers_router
from gcbulkedit.routers.health import router as health_router
from gcbulkedit.routers.pages import router as pages_router
from gcbulkedit.routers.preferences import router as preferences_router
from gcbulkedit.routers.webhook import router as webhook_router

__all__ = [
    "blog_router",
    "customers_router",
    "health_router",
    "pages_router",
    "preferences_router",
    "webhook_router",
]
