"""
Tests for assistant.gateway and the provider adapters.
"""

import json
from unittest.mock import MagicMock

import httpx
import openai
import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from assistant.exceptions import (
    AuthenticationError,
    EmptyResponseError,
    RateLimitError,
    UnsupportedModelError,
    UpstreamError,
)
from assistant.gateway import CompletionGateway
from assistant.models import (
    AssistantMessage,
    ChatTurn,
    CompletionEnvelope,
    ImagePart,
    Message,
    TextPart,
    normalize_completion,
)
from assistant.providers import OpenAIChatProvider, OpenRouterProvider
from assistant.providers.openai_chat import to_lc_messages
from config.settings import Settings

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


def _turns(*contents):
    return [ChatTurn(role="user", content=c) for c in contents]


def _openai_error(cls, status, message="boom"):
    request = httpx.Request("POST", OPENAI_URL)
    response = httpx.Response(status, request=request)
    return cls(message, response=response, body={"error": {"message": message}})


class TestNormalization:
    def test_bare_and_wrapped_shapes_normalize_identically(self):
        bare = normalize_completion({"role": "assistant", "content": "hi"}, "deepseek-r1")
        wrapped = normalize_completion({"message": {"role": "assistant", "content": "hi"}}, "deepseek-r1")
        expected = CompletionEnvelope(
            message=AssistantMessage(role="assistant", content="hi"), model="deepseek-r1"
        )
        assert bare == wrapped == expected

    def test_payload_model_wins_over_requested(self):
        envelope = normalize_completion(
            {"role": "assistant", "content": "hi", "model": "llama-4-maverick"}, "gpt-4o-mini"
        )
        assert envelope.model == "llama-4-maverick"

    def test_unknown_shape_is_stringified(self):
        payload = {"unexpected": [1, 2]}
        envelope = normalize_completion(payload, "gpt-4o-mini")
        assert envelope.message.role == "assistant"
        assert json.loads(envelope.message.content) == payload
        assert envelope.model == "gpt-4o-mini"

    def test_envelope_passes_through(self):
        envelope = CompletionEnvelope(message=AssistantMessage(content="x"), model="deepseek-r1")
        assert normalize_completion(envelope, "gpt-4o-mini") is envelope


class TestRouting:
    def test_routes_by_model_id(self):
        deepseek = MagicMock()
        deepseek.complete.return_value = CompletionEnvelope(
            message=AssistantMessage(content="from deepseek"), model="deepseek-r1"
        )
        openai_provider = MagicMock()
        gateway = CompletionGateway({"deepseek-r1": deepseek, "gpt-4o-mini": openai_provider})

        envelope = gateway.complete("deepseek-r1", _turns("hi"))

        assert envelope.message.content == "from deepseek"
        openai_provider.complete.assert_not_called()

    def test_unknown_model_is_rejected(self):
        with pytest.raises(UnsupportedModelError):
            CompletionGateway({}).complete("gpt-5", _turns("hi"))

    def test_messages_are_converted_to_turns(self):
        provider = MagicMock()
        provider.complete.return_value = CompletionEnvelope(
            message=AssistantMessage(content="ok"), model="gpt-4o-mini"
        )
        gateway = CompletionGateway({"gpt-4o-mini": provider})
        gateway.complete("gpt-4o-mini", [Message(role="user", content="hi")])
        _, turns = provider.complete.call_args.args
        assert turns == [ChatTurn(role="user", content="hi")]

    def test_default_routing_table(self, settings: Settings):
        gateway = CompletionGateway.from_settings(settings)
        assert sorted(gateway.models) == ["deepseek-r1", "gpt-4o-mini", "llama-4-maverick"]


class TestOpenRouterProvider:
    def _provider(self, settings, handler, model="deepseek/deepseek-r1-zero:free"):
        return OpenRouterProvider(
            settings,
            upstream_model=model,
            label="DeepSeek",
            transport=httpx.MockTransport(handler),
        )

    def test_success_returns_canonical_envelope(self, settings: Settings):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(
                200, json={"choices": [{"message": {"role": "assistant", "content": "hello"}}]}
            )

        envelope = self._provider(settings, handler).complete("deepseek-r1", _turns("hi"))

        assert envelope == CompletionEnvelope(
            message=AssistantMessage(role="assistant", content="hello"), model="deepseek-r1"
        )
        assert seen["body"]["model"] == "deepseek/deepseek-r1-zero:free"
        assert seen["body"]["stream"] is False
        assert seen["auth"] == "Bearer or-test"

    def test_images_are_sent_as_image_url(self, settings: Settings):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "a cat"}}]})

        content = [TextPart(text="what is it"), ImagePart(image_data="data:image/png;base64,AAAA")]
        self._provider(settings, handler).complete("llama-4-maverick", _turns(content))

        parts = seen["body"]["messages"][0]["content"]
        assert parts[0] == {"type": "text", "text": "what is it"}
        assert parts[1] == {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}}

    @pytest.mark.parametrize(
        "status, error",
        [(401, AuthenticationError), (429, RateLimitError), (502, UpstreamError)],
    )
    def test_status_codes_map_to_error_types(self, settings: Settings, status, error):
        def handler(request):
            return httpx.Response(status, json={"error": {"message": "vendor says no"}})

        with pytest.raises(error) as info:
            self._provider(settings, handler).complete("deepseek-r1", _turns("hi"))
        assert info.value.status_code == status

    def test_generic_error_carries_vendor_message(self, settings: Settings):
        def handler(request):
            return httpx.Response(500, json={"error": {"message": "model overloaded"}})

        with pytest.raises(UpstreamError, match=r"OpenRouter API error \(500\): model overloaded"):
            self._provider(settings, handler).complete("deepseek-r1", _turns("hi"))

    def test_empty_content_is_an_empty_response_error(self, settings: Settings):
        def handler(request):
            return httpx.Response(200, json={"choices": [{"message": {"content": ""}}]})

        with pytest.raises(EmptyResponseError, match="DeepSeek returned an empty response"):
            self._provider(settings, handler).complete("deepseek-r1", _turns("hi"))

    def test_transport_failure_is_upstream_error(self, settings: Settings):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(UpstreamError):
            self._provider(settings, handler).complete("deepseek-r1", _turns("hi"))

    def test_missing_key_fails_before_any_request(self, settings: Settings):
        settings.openrouter_api_key = None
        handler = MagicMock()
        with pytest.raises(AuthenticationError):
            self._provider(settings, handler).complete("deepseek-r1", _turns("hi"))
        handler.assert_not_called()


class TestOpenAIProvider:
    def test_reply_becomes_envelope(self, settings: Settings):
        llm = MagicMock()
        llm.invoke.return_value = AIMessage(content="hi there")
        provider = OpenAIChatProvider(settings, llm=llm)

        envelope = provider.complete("gpt-4o-mini", _turns("hello"))

        assert envelope.message.content == "hi there"
        assert envelope.model == "gpt-4o-mini"
        sent = llm.invoke.call_args.args[0]
        assert isinstance(sent[0], HumanMessage)

    def test_empty_reply(self, settings: Settings):
        llm = MagicMock()
        llm.invoke.return_value = AIMessage(content="")
        with pytest.raises(EmptyResponseError, match="OpenAI returned an empty response"):
            OpenAIChatProvider(settings, llm=llm).complete("gpt-4o-mini", _turns("hello"))

    @pytest.mark.parametrize(
        "cls, status, error",
        [
            (openai.AuthenticationError, 401, AuthenticationError),
            (openai.RateLimitError, 429, RateLimitError),
            (openai.InternalServerError, 500, UpstreamError),
        ],
    )
    def test_sdk_errors_are_mapped(self, settings: Settings, cls, status, error):
        llm = MagicMock()
        llm.invoke.side_effect = _openai_error(cls, status)
        with pytest.raises(error):
            OpenAIChatProvider(settings, llm=llm).complete("gpt-4o-mini", _turns("hello"))

    def test_connection_error_is_upstream_error(self, settings: Settings):
        llm = MagicMock()
        llm.invoke.side_effect = openai.APIConnectionError(request=httpx.Request("POST", OPENAI_URL))
        with pytest.raises(UpstreamError, match="Error generating response"):
            OpenAIChatProvider(settings, llm=llm).complete("gpt-4o-mini", _turns("hello"))

    def test_missing_key(self, settings: Settings):
        settings.openai_api_key = None
        with pytest.raises(AuthenticationError, match="not configured"):
            OpenAIChatProvider(settings).complete("gpt-4o-mini", _turns("hello"))

    def test_history_conversion(self):
        history = [
            ChatTurn(role="system", content="be nice"),
            ChatTurn(role="assistant", content="welcome"),
            ChatTurn(role="user", content=[TextPart(text="see"), ImagePart(image_data="data:x")]),
        ]
        messages = to_lc_messages(history)
        assert isinstance(messages[0], SystemMessage)
        assert isinstance(messages[1], AIMessage)
        assert messages[2].content[1] == {"type": "image_url", "image_url": {"url": "data:x"}}
