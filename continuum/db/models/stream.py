from sqlalchemy import Column, String, Integer, ForeignKey, UUID

from continuum.db.base import BaseModel


class Stream(BaseModel):
    __tablename__ = "streams"

    title = Column(String(200), nullable=False)
    # NULL - поток верхнего уровня; удаление родителя каскадно удаляет потомков
    parent_stream_id = Column(
        UUID(as_uuid=True),
        ForeignKey("streams.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    order_index = Column(Integer, nullable=False, default=0)
