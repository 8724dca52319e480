from continuum.db.repositories.stream_repository import StreamRepository
from continuum.db.repositories.card_repository import CardRepository

__all__ = [
    "StreamRepository",
    "CardRepository"
]
