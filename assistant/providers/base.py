from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

from assistant.exceptions import (
    AuthenticationError,
    CompletionError,
    RateLimitError,
    UpstreamError,
)
from assistant.models import ChatTurn, CompletionEnvelope, ImagePart, MessageContent, TextPart


class CompletionProvider(Protocol):
    def complete(self, model_id: str, messages: Sequence[ChatTurn]) -> CompletionEnvelope: ...


WireContent = Union[str, List[Dict[str, Any]]]


def wire_content(content: MessageContent) -> WireContent:
    """OpenAI-style content: image parts become ``image_url`` entries."""
    if isinstance(content, str):
        return content
    parts: List[Dict[str, Any]] = []
    for part in content:
        if isinstance(part, ImagePart):
            parts.append({"type": "image_url", "image_url": {"url": part.image_data}})
        elif isinstance(part, TextPart):
            parts.append({"type": "text", "text": part.text})
    return parts


def vendor_error_message(body: Any) -> Optional[str]:
    """Best-effort description from a vendor error envelope."""
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    if body.get("message"):
        return str(body["message"])
    return None


def status_error(vendor: str, status: int, detail: Optional[str]) -> CompletionError:
    if status == 401:
        return AuthenticationError("Invalid API key or authentication error", status_code=status)
    if status == 429:
        return RateLimitError("Rate limit exceeded or quota reached", status_code=status)
    return UpstreamError(
        f"{vendor} API error ({status}): {detail or 'Unknown error'}", status_code=status
    )
