"""Exception types shared by the gateway, the conversation core and the API."""

from __future__ import annotations


class CompletionError(RuntimeError):
    """Base class for failures talking to a completion provider."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationError(CompletionError):
    """Missing or rejected provider credentials."""


class RateLimitError(CompletionError):
    """Provider refused the call because of rate limits or quota."""


class EmptyResponseError(CompletionError):
    """Provider answered without any message content."""


class UpstreamError(CompletionError):
    """Any other provider or transport failure."""


class UnsupportedModelError(ValueError):
    def __init__(self, model_id: str) -> None:
        super().__init__(f"Invalid model selection: {model_id}")
        self.model_id = model_id


class ChatNotFoundError(KeyError):
    def __init__(self, chat_id: str) -> None:
        super().__init__(chat_id)
        self.chat_id = chat_id

    def __str__(self) -> str:
        return f"Chat not found: {self.chat_id}"


class RequestInFlightError(RuntimeError):
    """A completion request is already pending for this conversation."""


class InvalidRegenerationError(ValueError):
    """Regeneration target is not a user message in the active conversation."""


class SearchParseError(ValueError):
    """Search provider payload could not be parsed."""
