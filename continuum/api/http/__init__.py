from continuum.api.http.health import router as health_router
from continuum.api.http.streams import router as streams_router
from continuum.api.http.cards import router as cards_router

__all__ = [
    "health_router",
    "streams_router",
    "cards_router"
]
