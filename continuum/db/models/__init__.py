from continuum.core.db import Base
from continuum.db.models.stream import Stream
from continuum.db.models.card import Card

__all__ = [
    "Base",
    "Stream",
    "Card",
]
