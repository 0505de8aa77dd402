from magidekt.api.decks import router as decks_router
from magidekt.api.discovery import router as discovery_router
from magidekt.api.health import router as health_router

__all__ = [
    "decks_router",
    "discovery_router",
    "health_router",
]
