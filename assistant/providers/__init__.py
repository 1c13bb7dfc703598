from .base import CompletionProvider, wire_content
from .openai_chat import OpenAIChatProvider
from .openrouter import OpenRouterProvider

__all__ = ["CompletionProvider", "OpenAIChatProvider", "OpenRouterProvider", "wire_content"]
