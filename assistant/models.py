"""Data models for messages, chats, fragments and provider envelopes."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel


Role = Literal["user", "assistant", "system"]
ModelId = Literal["gpt-4o-mini", "deepseek-r1", "llama-4-maverick"]

SUPPORTED_MODELS = ("gpt-4o-mini", "deepseek-r1", "llama-4-maverick")
DEFAULT_MODEL = "gpt-4o-mini"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    type: Literal["image"] = "image"
    image_data: str = Field(..., description="Base64 data URL")


ContentPart = Annotated[Union[TextPart, ImagePart], Field(discriminator="type")]
MessageContent = Union[str, List[ContentPart]]


def flatten_text(content: MessageContent) -> str:
    """Text of a message with image parts dropped; text parts joined by spaces."""
    if isinstance(content, str):
        return content
    return " ".join(part.text for part in content if isinstance(part, TextPart) and part.text)


class Message(WireModel):
    role: Role
    content: MessageContent
    model: str = DEFAULT_MODEL
    timestamp: datetime = Field(default_factory=utc_now)

    def to_turn(self) -> "ChatTurn":
        return ChatTurn(role=self.role, content=self.content)


class Chat(WireModel):
    id: str
    title: str
    messages: List[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ContentFragment(BaseModel):
    text: str
    is_code: bool = False
    is_math: bool = False
    is_inline_math: bool = False
    language: Optional[str] = None

    @property
    def is_plain(self) -> bool:
        return not (self.is_code or self.is_math or self.is_inline_math)


class SearchResult(BaseModel):
    title: str
    url: str
    description: Optional[str] = None
    source: Optional[str] = None


class ChatTurn(BaseModel):
    role: Role = Field(..., description="'user', 'assistant' or 'system'")
    content: MessageContent


class ChatRequest(WireModel):
    model: ModelId
    messages: List[ChatTurn]
    session_id: Optional[Union[int, str]] = None


class AssistantMessage(BaseModel):
    role: Role = "assistant"
    content: str


class BareCompletion(AssistantMessage):
    model: Optional[str] = None


class CompletionEnvelope(BaseModel):
    message: AssistantMessage
    model: str


class _EnvelopeShape(BaseModel):
    message: AssistantMessage
    model: Optional[str] = None


def normalize_completion(payload: Any, requested_model: str) -> CompletionEnvelope:
    """Convert a provider payload into the canonical ``{message, model}`` envelope.

    Accepts the envelope itself or a bare ``{role, content}`` message. Anything
    else becomes an assistant message carrying the JSON text of the payload.
    """
    if isinstance(payload, CompletionEnvelope):
        return payload
    try:
        shaped = _EnvelopeShape.model_validate(payload)
        return CompletionEnvelope(message=shaped.message, model=shaped.model or requested_model)
    except ValidationError:
        pass
    try:
        bare = BareCompletion.model_validate(payload)
        return CompletionEnvelope(
            message=AssistantMessage(role=bare.role, content=bare.content),
            model=bare.model or requested_model,
        )
    except ValidationError:
        pass
    return CompletionEnvelope(
        message=AssistantMessage(role="assistant", content=json.dumps(payload, default=str)),
        model=requested_model,
    )


class SessionCreate(WireModel):
    user_id: Optional[int] = None
    title: str = "New Conversation"


class SessionMessageOut(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    role: str
    content: str
    model: str
    timestamp: datetime
    session_id: int


class SessionOut(WireModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    user_id: Optional[int] = None
    title: str
    created_at: datetime
    updated_at: datetime


class SessionDetail(SessionOut):
    messages: List[SessionMessageOut] = Field(default_factory=list)
