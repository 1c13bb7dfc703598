from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from assistant.exceptions import AuthenticationError, EmptyResponseError, UpstreamError
from assistant.models import ChatTurn, CompletionEnvelope, normalize_completion
from assistant.providers.base import status_error, vendor_error_message, wire_content
from config.settings import Settings


logger = logging.getLogger("infonex.providers.openrouter")


def _first_message(data: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    return message if isinstance(message, dict) else None


class OpenRouterProvider:
    """One OpenRouter-hosted model, called over plain HTTP."""

    vendor = "OpenRouter"

    def __init__(
        self,
        settings: Settings,
        *,
        upstream_model: str,
        label: str,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.settings = settings
        self.upstream_model = upstream_model
        self.label = label
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.openrouter_api_key}",
            "HTTP-Referer": self.settings.openrouter_referer,
            "X-Title": self.settings.openrouter_title,
            "Content-Type": "application/json",
        }

    def complete(self, model_id: str, messages: Sequence[ChatTurn]) -> CompletionEnvelope:
        if not self.settings.openrouter_api_key:
            raise AuthenticationError("OpenRouter API key is not configured.")

        payload = {
            "model": self.upstream_model,
            "messages": [
                {"role": turn.role, "content": wire_content(turn.content)} for turn in messages
            ],
            "stream": False,
        }
        try:
            with httpx.Client(
                timeout=self.settings.upstream_timeout, transport=self._transport
            ) as client:
                response = client.post(
                    self.settings.openrouter_api_url, json=payload, headers=self._headers()
                )
        except httpx.HTTPError as exc:
            logger.error("%s request failed: %s", self.label, exc)
            raise UpstreamError(f"OpenRouter API call failed: {exc}") from exc

        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = None
            detail = vendor_error_message(body) or response.reason_phrase
            logger.error("%s API error (%s): %s", self.label, response.status_code, detail)
            raise status_error(self.vendor, response.status_code, detail)

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(f"{self.label} returned a malformed response") from exc

        message = _first_message(data)
        if not message or not message.get("content"):
            raise EmptyResponseError(f"{self.label} returned an empty response")
        return normalize_completion(
            {"role": message.get("role") or "assistant", "content": message["content"]}, model_id
        )
