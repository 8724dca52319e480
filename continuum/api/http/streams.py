from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import uuid

from continuum.core.db import get_db
from continuum.domains.cards.schemas import CardResponse
from continuum.domains.cards.services import CardService
from continuum.domains.streams.schemas import (
    StreamCreate, StreamUpdate, StreamResponse, StreamNodeResponse,
    StreamDetailResponse, StreamDeleteResponse
)
from continuum.domains.streams.services import StreamService

router = APIRouter(prefix="/streams", tags=["streams"])


@router.get("", response_model=List[StreamNodeResponse])
async def get_stream_tree(db: AsyncSession = Depends(get_db)):
    """Получение дерева потоков"""
    tree = await StreamService(db).get_stream_tree()
    return [StreamNodeResponse.model_validate(node) for node in tree]


@router.post("", response_model=StreamResponse, status_code=status.HTTP_201_CREATED)
async def create_stream(
    stream_data: StreamCreate,
    db: AsyncSession = Depends(get_db)
):
    """Создание нового потока"""
    stream = await StreamService(db).create_stream(stream_data)
    return StreamResponse.model_validate(stream)


@router.get("/{stream_id}", response_model=StreamDetailResponse)
async def get_stream(
    stream_id: uuid.UUID,
    db: AsyncSession = Depends(get_db)
):
    """Получение потока с карточками и прямыми потомками"""
    stream, cards, substreams = await StreamService(db).get_stream_detail(stream_id)

    return StreamDetailResponse(
        id=stream.id,
        title=stream.title,
        parent_stream_id=stream.parent_stream_id,
        order_index=stream.order_index,
        created_at=stream.created_at,
        cards=[CardResponse.model_validate(card) for card in cards],
        substreams=[StreamResponse.model_validate(child) for child in substreams]
    )


@router.patch("/{stream_id}", response_model=StreamResponse)
async def update_stream(
    stream_id: uuid.UUID,
    update_data: StreamUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Обновление потока"""
    stream = await StreamService(db).update_stream(stream_id, update_data)
    return StreamResponse.model_validate(stream)


@router.delete("/{stream_id}", response_model=StreamDeleteResponse)
async def delete_stream(
    stream_id: uuid.UUID,
    db: AsyncSession = Depends(get_db)
):
    """Удаление потока вместе с поддеревом"""
    await StreamService(db).delete_stream(stream_id)
    return StreamDeleteResponse(id=stream_id)


@router.get("/{stream_id}/substreams", response_model=List[StreamResponse])
async def get_substreams(
    stream_id: uuid.UUID,
    db: AsyncSession = Depends(get_db)
):
    """Получение прямых потомков потока"""
    substreams = await StreamService(db).get_substreams(stream_id)
    return [StreamResponse.model_validate(child) for child in substreams]


# Карточки потока
@router.get("/{stream_id}/cards", response_model=List[CardResponse])
async def get_stream_cards(
    stream_id: uuid.UUID,
    db: AsyncSession = Depends(get_db)
):
    """Получение истории карточек потока от старой к новой"""
    cards = await CardService(db).get_cards(stream_id)
    return [CardResponse.model_validate(card) for card in cards]


@router.get("/{stream_id}/cards/latest", response_model=Optional[CardResponse])
async def get_latest_card(
    stream_id: uuid.UUID,
    db: AsyncSession = Depends(get_db)
):
    """Получение редактируемой карточки потока"""
    card = await CardService(db).get_latest_card(stream_id)
    return CardResponse.model_validate(card) if card else None
