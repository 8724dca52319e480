from continuum.domains.cards.entities import Card, CardDeletion
from continuum.domains.cards.schemas import (
    CardStatus, CardMetadata, CardBase, CardCreate, CardUpdate,
    CardResponse, CardDeleteResponse
)
from continuum.domains.cards.services import CardService

__all__ = [
    "Card", "CardDeletion",
    "CardStatus", "CardMetadata", "CardBase", "CardCreate", "CardUpdate",
    "CardResponse", "CardDeleteResponse",
    "CardService"
]
