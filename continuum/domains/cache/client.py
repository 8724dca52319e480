import logging
import uuid
from typing import Any, List, Optional

import httpx

from continuum.core.errors import StorageFailure, error_from_payload
from continuum.domains.cards.schemas import CardDeleteResponse, CardMetadata, CardResponse
from continuum.domains.streams.schemas import (
    StreamDeleteResponse, StreamDetailResponse, StreamNodeResponse, StreamResponse
)

logger = logging.getLogger(__name__)


class ContinuumClient:
    """HTTP-клиент API, ошибки сервера превращаются обратно в ContinuumError"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "ContinuumClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # Потоки
    async def get_stream_tree(self) -> List[StreamNodeResponse]:
        data = await self._request("GET", "/streams")
        return [StreamNodeResponse.model_validate(node) for node in data]

    async def get_stream(self, stream_id: uuid.UUID) -> StreamDetailResponse:
        return StreamDetailResponse.model_validate(await self._request("GET", f"/streams/{stream_id}"))

    async def get_substreams(self, stream_id: uuid.UUID) -> List[StreamResponse]:
        data = await self._request("GET", f"/streams/{stream_id}/substreams")
        return [StreamResponse.model_validate(stream) for stream in data]

    async def create_stream(self, title: str, parent_stream_id: Optional[uuid.UUID] = None) -> StreamResponse:
        body = {"title": title, "parent_stream_id": str(parent_stream_id) if parent_stream_id else None}
        return StreamResponse.model_validate(await self._request("POST", "/streams", json=body))

    async def update_stream(
        self,
        stream_id: uuid.UUID,
        title: Optional[str] = None,
        order_index: Optional[int] = None
    ) -> StreamResponse:
        body = {}
        if title is not None:
            body["title"] = title
        if order_index is not None:
            body["order_index"] = order_index
        data = await self._request("PATCH", f"/streams/{stream_id}", json=body)
        return StreamResponse.model_validate(data)

    async def move_stream(self, stream_id: uuid.UUID, parent_stream_id: Optional[uuid.UUID]) -> StreamResponse:
        body = {"parent_stream_id": str(parent_stream_id) if parent_stream_id else None}
        data = await self._request("PATCH", f"/streams/{stream_id}", json=body)
        return StreamResponse.model_validate(data)

    async def delete_stream(self, stream_id: uuid.UUID) -> StreamDeleteResponse:
        return StreamDeleteResponse.model_validate(await self._request("DELETE", f"/streams/{stream_id}"))

    # Карточки
    async def get_cards(self, stream_id: uuid.UUID) -> List[CardResponse]:
        data = await self._request("GET", f"/streams/{stream_id}/cards")
        return [CardResponse.model_validate(card) for card in data]

    async def get_latest_card(self, stream_id: uuid.UUID) -> Optional[CardResponse]:
        data = await self._request("GET", f"/streams/{stream_id}/cards/latest")
        return CardResponse.model_validate(data) if data else None

    async def get_card(self, card_id: uuid.UUID) -> CardResponse:
        return CardResponse.model_validate(await self._request("GET", f"/cards/{card_id}"))

    async def create_card(
        self,
        stream_id: uuid.UUID,
        content: str,
        metadata: Optional[CardMetadata] = None
    ) -> CardResponse:
        body = {"stream_id": str(stream_id), "content": content}
        if metadata is not None:
            body["metadata"] = metadata.model_dump(mode="json", exclude_none=True)
        return CardResponse.model_validate(await self._request("POST", "/cards", json=body))

    async def update_card(
        self,
        card_id: uuid.UUID,
        content: str,
        metadata: Optional[CardMetadata] = None,
        clear_metadata: bool = False
    ) -> CardResponse:
        """Правка карточки.

        Без metadata сервер сохраняет метаданные текущей версии; clear_metadata
        отправляет явный null, и у новой версии метаданных нет.
        """
        if clear_metadata and metadata is not None:
            raise ValueError("metadata and clear_metadata are mutually exclusive")

        body = {"content": content}
        if clear_metadata:
            body["metadata"] = None
        elif metadata is not None:
            body["metadata"] = metadata.model_dump(mode="json", exclude_none=True)
        return CardResponse.model_validate(await self._request("PATCH", f"/cards/{card_id}", json=body))

    async def delete_card(self, card_id: uuid.UUID) -> CardDeleteResponse:
        return CardDeleteResponse.model_validate(await self._request("DELETE", f"/cards/{card_id}"))

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as error:
            logger.error("%s %s failed: %s", method, url, error)
            raise StorageFailure(f"Request to {url} failed") from error

        if response.is_error:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            raise error_from_payload(payload, f"{method} {url} failed with status {response.status_code}")
        return response.json()
