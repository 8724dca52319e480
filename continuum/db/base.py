import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, UUID
from sqlalchemy.types import TypeDecorator

from continuum.core.db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Время в UTC на любом бэкенде.

    SQLite хранит datetime без часового пояса, поэтому прочитанные значения
    получают UTC обратно, а записываемые приводятся к UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class BaseModel(Base):
    __abstract__ = True

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
