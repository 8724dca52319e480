from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from typing import Optional, List
import uuid
from datetime import datetime

from continuum.domains.cards.schemas import CardResponse

MAX_TITLE_LENGTH = 200


class StreamBase(BaseModel):
    """Базовая схема потока"""
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip()


class StreamCreate(StreamBase):
    """Схема для создания потока"""
    parent_stream_id: Optional[uuid.UUID] = None

    model_config = ConfigDict(extra="forbid")


class StreamUpdate(BaseModel):
    """Схема для частичного обновления потока.

    parent_stream_id переносит поток к другому родителю (null - на верхний уровень),
    поэтому для него важно, передано ли поле вообще.
    """
    title: Optional[str] = Field(None, min_length=1, max_length=MAX_TITLE_LENGTH)
    order_index: Optional[int] = Field(None, ge=0)
    parent_stream_id: Optional[uuid.UUID] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if v is None or not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip()

    @field_validator('order_index')
    @classmethod
    def validate_order_index(cls, v):
        if v is None:
            raise ValueError('Order index cannot be null')
        return v

    @model_validator(mode='after')
    def validate_not_empty(self):
        if not self.model_fields_set:
            raise ValueError('At least one field must be provided')
        return self

    @property
    def moves_stream(self) -> bool:
        return "parent_stream_id" in self.model_fields_set


class StreamResponse(BaseModel):
    """Схема для ответа с данными потока"""
    id: uuid.UUID
    title: str
    parent_stream_id: Optional[uuid.UUID] = None
    order_index: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StreamNodeResponse(StreamResponse):
    """Узел дерева потоков"""
    depth: int
    children: List["StreamNodeResponse"] = []


class StreamDetailResponse(StreamResponse):
    """Поток вместе с карточками и прямыми потомками"""
    cards: List[CardResponse]
    substreams: List[StreamResponse]


class StreamDeleteResponse(BaseModel):
    deleted: bool = True
    id: uuid.UUID


StreamNodeResponse.model_rebuild()
