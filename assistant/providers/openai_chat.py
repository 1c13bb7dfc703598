from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import openai
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from assistant.exceptions import AuthenticationError, EmptyResponseError, UpstreamError
from assistant.models import AssistantMessage, ChatTurn, CompletionEnvelope
from assistant.providers.base import status_error, vendor_error_message, wire_content
from config.settings import Settings


logger = logging.getLogger("infonex.providers.openai")


def to_lc_messages(history: Sequence[ChatTurn]) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    for item in history:
        content = wire_content(item.content)
        if item.role == "system":
            messages.append(SystemMessage(content=content))
        elif item.role == "assistant":
            messages.append(AIMessage(content=content))
        else:
            messages.append(HumanMessage(content=content))
    return messages


def _reply_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block) for block in content
        )
    return ""


class OpenAIChatProvider:
    """OpenAI chat completions through the LangChain chat model."""

    vendor = "OpenAI"

    def __init__(self, settings: Settings, *, llm: Optional[BaseChatModel] = None):
        self.settings = settings
        self._llm = llm

    def build_llm(self) -> BaseChatModel:
        if not self.settings.openai_api_key:
            raise AuthenticationError("OpenAI API key is not configured.")
        return ChatOpenAI(
            model=self.settings.openai_model,
            api_key=self.settings.openai_api_key,
            temperature=self.settings.temperature,
            timeout=self.settings.upstream_timeout,
            max_retries=2,
        )

    def complete(self, model_id: str, messages: Sequence[ChatTurn]) -> CompletionEnvelope:
        llm = self._llm or self.build_llm()
        try:
            result = llm.invoke(to_lc_messages(messages))
        except openai.APIStatusError as exc:
            detail = vendor_error_message(exc.body) or exc.message
            logger.error("OpenAI API error (%s): %s", exc.status_code, detail)
            raise status_error(self.vendor, exc.status_code, detail) from exc
        except openai.APIError as exc:
            logger.error("OpenAI API error: %s", exc)
            raise UpstreamError(f"Error generating response: {exc}") from exc

        text = _reply_text(getattr(result, "content", None))
        if not text.strip():
            raise EmptyResponseError("OpenAI returned an empty response")
        return CompletionEnvelope(
            message=AssistantMessage(role="assistant", content=text), model=model_id
        )
