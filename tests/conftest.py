"""
Shared fixtures and fakes for the test suite.

No test talks to a real provider: completions come from FakeCompleter and
upstream HTTP goes through httpx.MockTransport.
"""

from pathlib import Path
from typing import List, Optional

import pytest

from assistant.core.memory import ChatHistoryStore
from assistant.models import AssistantMessage, CompletionEnvelope
from config.settings import Settings, get_settings


class FakeCompleter:
    """Returns queued replies (the last one repeats) and records every call."""

    def __init__(self, replies: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.replies = list(replies or ["Hello from the model"])
        self.error = error
        self.calls = []
        self.before_reply = None

    def complete(self, model_id, messages):
        self.calls.append((model_id, list(messages)))
        if self.before_reply is not None:
            self.before_reply()
        if self.error is not None:
            raise self.error
        content = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        return CompletionEnvelope(message=AssistantMessage(content=content), model=model_id)


class FakeSpeech:
    supported = True

    def __init__(self):
        self.spoken = []

    def start_listening(self):
        pass

    def stop_listening(self):
        pass

    def speak(self, text):
        self.spoken.append(text)

    def stop(self):
        pass


@pytest.fixture
def settings(monkeypatch, tmp_path: Path) -> Settings:
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("OPENROUTER_API_KEY", "or-test")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'chat.db'}")
    monkeypatch.setenv("CHAT_DATA_DIR", str(tmp_path / "data"))
    get_settings.cache_clear()
    yield Settings()
    get_settings.cache_clear()


@pytest.fixture
def store(tmp_path: Path) -> ChatHistoryStore:
    return ChatHistoryStore(tmp_path / "history")


@pytest.fixture
def completer() -> FakeCompleter:
    return FakeCompleter()
