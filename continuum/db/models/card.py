from sqlalchemy import Column, Text, Integer, Boolean, ForeignKey, UUID, JSON, Index

from continuum.db.base import BaseModel


class Card(BaseModel):
    __tablename__ = "cards"
    __table_args__ = (
        # Последний рубеж защиты от гонки при выдаче номера версии
        Index("stream_version_idx", "stream_id", "version", unique=True),
        Index("ix_cards_stream_editable", "stream_id", "is_editable"),
    )

    stream_id = Column(
        UUID(as_uuid=True),
        ForeignKey("streams.id", ondelete="CASCADE"),
        nullable=False,
    )
    content = Column(Text, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    is_editable = Column(Boolean, nullable=False, default=True)
    # "metadata" зарезервировано в declarative, поэтому атрибут называется иначе
    card_metadata = Column("metadata", JSON, nullable=True)
