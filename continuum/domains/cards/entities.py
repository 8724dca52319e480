import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class Card:
    """Сущность карточки - неизменяемого снимка состояния потока.

    В каждом потоке редактируемой может быть только одна карточка - с наибольшей
    версией. Остальные карточки исторические и доступны только для чтения.
    """

    def __init__(
        self,
        id: uuid.UUID,
        stream_id: uuid.UUID,
        content: str,
        version: int = 1,
        is_editable: bool = True,
        metadata: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None
    ):
        self.id = id
        self.stream_id = stream_id
        self.content = content
        self.version = version
        self.is_editable = is_editable
        self.metadata = metadata
        self.created_at = created_at or datetime.now(timezone.utc)

    def next_version(self, content: str, metadata: Optional[Dict[str, Any]]) -> "Card":
        """Создание следующей версии карточки (правка через новую версию)"""
        return Card.create_card(
            stream_id=self.stream_id,
            content=content,
            version=self.version + 1,
            metadata=metadata
        )

    @classmethod
    def create_card(
        cls,
        stream_id: uuid.UUID,
        content: str,
        version: int,
        metadata: Optional[Dict[str, Any]] = None
    ) -> "Card":
        """Создание новой редактируемой карточки"""
        return cls(
            id=uuid.uuid4(),
            stream_id=stream_id,
            content=content,
            version=version,
            is_editable=True,
            metadata=metadata
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Card):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"Card(id={self.id}, stream_id={self.stream_id}, version={self.version}, editable={self.is_editable})"


class CardDeletion:
    """Результат удаления редактируемой карточки"""

    def __init__(
        self,
        card_id: uuid.UUID,
        stream_id: uuid.UUID,
        promoted_card_id: Optional[uuid.UUID] = None
    ):
        self.card_id = card_id
        self.stream_id = stream_id
        self.promoted_card_id = promoted_card_id

    def __repr__(self) -> str:
        return f"CardDeletion(card_id={self.card_id}, stream_id={self.stream_id}, promoted={self.promoted_card_id})"
