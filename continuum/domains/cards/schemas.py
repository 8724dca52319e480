from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional, List, Dict, Any
from enum import Enum
import uuid
from datetime import datetime

MAX_TAGS = 20
MAX_TAG_LENGTH = 50


class CardStatus(str, Enum):
    """Статусы рабочего процесса карточки"""
    COMPLETED = "completed"
    WAITING = "waiting"
    IN_PROGRESS = "in-progress"
    ACTION_REQUIRED = "action-required"
    MONITOR = "monitor"
    TO_UPDATE = "to-update"


class CardMetadata(BaseModel):
    """Структурированные метаданные карточки"""
    tags: Optional[List[str]] = Field(None, max_length=MAX_TAGS)
    due_date: Optional[datetime] = None
    status: Optional[CardStatus] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v):
        if v is None:
            return v
        tags = []
        for tag in v:
            tag = tag.strip()
            if not tag:
                raise ValueError('Tag cannot be empty')
            if len(tag) > MAX_TAG_LENGTH:
                raise ValueError(f'Tag must be at most {MAX_TAG_LENGTH} characters')
            # Теги - множество, дубликаты отбрасываются с сохранением порядка
            if tag not in tags:
                tags.append(tag)
        return tags

    def to_storage(self) -> Optional[Dict[str, Any]]:
        """Преобразование в JSON для колонки metadata (пустые метаданные - NULL)"""
        data = self.model_dump(mode="json", exclude_none=True)
        return data or None


class CardBase(BaseModel):
    """Базовая схема карточки"""
    content: str = Field(..., min_length=1)

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        if not v.strip():
            raise ValueError('Content is required')
        return v


class CardCreate(CardBase):
    """Схема для создания карточки"""
    stream_id: uuid.UUID
    metadata: Optional[CardMetadata] = None

    model_config = ConfigDict(extra="forbid")

    def metadata_for_storage(self) -> Optional[Dict[str, Any]]:
        return self.metadata.to_storage() if self.metadata else None


class CardUpdate(CardBase):
    """Схема для правки карточки (создает новую версию)"""
    metadata: Optional[CardMetadata] = None

    model_config = ConfigDict(extra="forbid")

    def resolve_metadata(self, current: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Метаданные новой версии.

        Если поле metadata не передано, новая версия наследует метаданные текущей
        карточки; явный null очищает их.
        """
        if "metadata" not in self.model_fields_set:
            return current
        return self.metadata.to_storage() if self.metadata else None


class CardResponse(BaseModel):
    """Схема для ответа с данными карточки"""
    id: uuid.UUID
    stream_id: uuid.UUID
    content: str
    version: int
    is_editable: bool
    metadata: Optional[CardMetadata] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CardDeleteResponse(BaseModel):
    """Схема для ответа об удалении карточки"""
    deleted: bool = True
    id: uuid.UUID
    stream_id: uuid.UUID
    promoted_card_id: Optional[uuid.UUID] = None
