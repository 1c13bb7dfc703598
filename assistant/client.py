from __future__ import annotations

import base64
import logging
from typing import List, Optional, Sequence, Union

import httpx
from pydantic import ValidationError

from assistant.exceptions import UpstreamError
from assistant.models import ChatTurn, CompletionEnvelope, Message, SearchResult, normalize_completion
from assistant.providers.base import vendor_error_message
from config.settings import Settings, get_settings


logger = logging.getLogger("infonex.client")

SEARCH_MIN_CHARS = 3
SEARCH_DISPLAY_COUNT = 5


def encode_image(data: bytes, mime_type: str = "image/png") -> str:
    """Base64 data URL for an image attachment."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


class ChatApiClient:
    """Talks to the proxy's /api endpoints; usable as the controller's completer."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        base_url: Optional[str] = None,
        session_id: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.base_url = (base_url or self.settings.api_base_url).rstrip("/")
        self.session_id = session_id
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.settings.upstream_timeout,
            transport=self._transport,
        )

    def complete(
        self, model_id: str, messages: Sequence[Union[ChatTurn, Message]]
    ) -> CompletionEnvelope:
        body = {
            "model": model_id,
            "messages": [
                {"role": m.role, "content": m.model_dump(mode="json")["content"]} for m in messages
            ],
        }
        if self.session_id:
            body["sessionId"] = self.session_id

        with self._client() as client:
            response = client.post("/api/chat", json=body)
        try:
            data = response.json()
        except ValueError:
            data = None
        if not response.is_success:
            detail = vendor_error_message(data) or response.reason_phrase
            raise UpstreamError(detail, status_code=response.status_code)
        return normalize_completion(data, model_id)

    def upload_image(self, data: bytes, mime_type: str = "image/png") -> str:
        with self._client() as client:
            response = client.post("/api/upload-image", json={"image": encode_image(data, mime_type)})
            response.raise_for_status()
        return response.json()["imageData"]

    def search(self, query: str, limit: int = SEARCH_DISPLAY_COUNT) -> List[SearchResult]:
        """First ``limit`` results; short queries and failures give an empty list."""
        if not query or len(query.strip()) < SEARCH_MIN_CHARS:
            return []
        try:
            with self._client() as client:
                response = client.get("/api/search", params={"query": query})
                response.raise_for_status()
            results = [SearchResult.model_validate(item) for item in response.json().get("results") or []]
        except (httpx.HTTPError, ValueError, ValidationError, AttributeError) as exc:
            logger.error("Search error: %s", exc)
            return []
        return results[:limit]
