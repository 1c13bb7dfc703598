from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Union

import httpx

from assistant.exceptions import UnsupportedModelError
from assistant.models import ChatTurn, CompletionEnvelope, Message
from assistant.providers import CompletionProvider, OpenAIChatProvider, OpenRouterProvider
from config.settings import Settings


logger = logging.getLogger("infonex.gateway")


def build_providers(
    settings: Settings, *, transport: Optional[httpx.BaseTransport] = None
) -> Dict[str, CompletionProvider]:
    return {
        "gpt-4o-mini": OpenAIChatProvider(settings),
        "deepseek-r1": OpenRouterProvider(
            settings,
            upstream_model=settings.deepseek_model,
            label="DeepSeek",
            transport=transport,
        ),
        "llama-4-maverick": OpenRouterProvider(
            settings,
            upstream_model=settings.maverick_model,
            label="Llama-4-Maverick",
            transport=transport,
        ),
    }


def _as_turns(messages: Sequence[Union[ChatTurn, Message]]) -> List[ChatTurn]:
    return [m.to_turn() if isinstance(m, Message) else m for m in messages]


class CompletionGateway:
    """Routes a model id to its provider; every provider answers with the canonical envelope."""

    def __init__(self, providers: Mapping[str, CompletionProvider]):
        self._providers = dict(providers)

    @classmethod
    def from_settings(
        cls, settings: Settings, *, transport: Optional[httpx.BaseTransport] = None
    ) -> "CompletionGateway":
        return cls(build_providers(settings, transport=transport))

    @property
    def models(self) -> List[str]:
        return list(self._providers)

    def complete(
        self, model_id: str, messages: Sequence[Union[ChatTurn, Message]]
    ) -> CompletionEnvelope:
        provider = self._providers.get(model_id)
        if provider is None:
            raise UnsupportedModelError(model_id)

        logger.info("Sending request to %s (%s turns)", model_id, len(messages))
        envelope = provider.complete(model_id, _as_turns(messages))
        logger.info("Model %s response: %s...", model_id, envelope.message.content[:50])
        return envelope
