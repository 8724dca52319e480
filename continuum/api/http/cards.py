from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import uuid

from continuum.core.db import get_db
from continuum.domains.cards.schemas import (
    CardCreate, CardUpdate, CardResponse, CardDeleteResponse
)
from continuum.domains.cards.services import CardService

router = APIRouter(prefix="/cards", tags=["cards"])


@router.post("", response_model=CardResponse, status_code=status.HTTP_201_CREATED)
async def create_card(
    card_data: CardCreate,
    db: AsyncSession = Depends(get_db)
):
    """Создание новой карточки, предыдущая редактируемая уходит в историю"""
    card = await CardService(db).create_card(card_data)
    return CardResponse.model_validate(card)


@router.get("/{card_id}", response_model=CardResponse)
async def get_card(
    card_id: uuid.UUID,
    db: AsyncSession = Depends(get_db)
):
    """Получение карточки по id"""
    card = await CardService(db).get_card(card_id)
    return CardResponse.model_validate(card)


# Правка создает новую строку в истории, поэтому 201
@router.patch("/{card_id}", response_model=CardResponse, status_code=status.HTTP_201_CREATED)
async def update_card(
    card_id: uuid.UUID,
    update_data: CardUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Правка редактируемой карточки"""
    card = await CardService(db).update_card(card_id, update_data)
    return CardResponse.model_validate(card)


@router.delete("/{card_id}", response_model=CardDeleteResponse)
async def delete_card(
    card_id: uuid.UUID,
    db: AsyncSession = Depends(get_db)
):
    """Удаление редактируемой карточки"""
    deletion = await CardService(db).delete_card(card_id)
    return CardDeleteResponse(
        id=deletion.card_id,
        stream_id=deletion.stream_id,
        promoted_card_id=deletion.promoted_card_id
    )
