from continuum.domains.streams.entities import Stream, StreamNode, assemble_tree
from continuum.domains.streams.schemas import (
    StreamBase, StreamCreate, StreamUpdate, StreamResponse,
    StreamNodeResponse, StreamDetailResponse, StreamDeleteResponse
)
from continuum.domains.streams.services import StreamService

__all__ = [
    "Stream", "StreamNode", "assemble_tree",
    "StreamBase", "StreamCreate", "StreamUpdate", "StreamResponse",
    "StreamNodeResponse", "StreamDetailResponse", "StreamDeleteResponse",
    "StreamService"
]
