"""Send and regenerate flows for the active chat.

The controller keeps a render copy of the current chat's messages. The copy
is refreshed only from store notifications; every change the controller
makes is written to the store first.
"""

from __future__ import annotations

import enum
import logging
from typing import Callable, List, Optional, Protocol, Sequence, Union

from assistant.core.memory import ChatHistoryStore
from assistant.core.prompt import (
    REGENERATE_FAILURE_TEXT,
    SEND_FAILURE_TEXT,
    system_message,
)
from assistant.core.segmenter import segment_message
from assistant.core.speech import SpeechCapability, UnsupportedSpeech, speakable_text
from assistant.exceptions import (
    ChatNotFoundError,
    InvalidRegenerationError,
    RequestInFlightError,
)
from assistant.models import (
    DEFAULT_MODEL,
    ChatTurn,
    CompletionEnvelope,
    ContentFragment,
    ImagePart,
    Message,
    TextPart,
)


logger = logging.getLogger("infonex.controller")


class Completer(Protocol):
    def complete(
        self, model_id: str, messages: Sequence[Union[ChatTurn, Message]]
    ) -> CompletionEnvelope: ...


Notifier = Callable[[str, str, str], None]


def log_notifier(title: str, description: str, variant: str = "default") -> None:
    level = logging.WARNING if variant == "destructive" else logging.INFO
    logger.log(level, "%s: %s", title, description)


class RequestState(enum.Enum):
    IDLE = "idle"
    SENDING = "sending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ConversationController:
    def __init__(
        self,
        store: ChatHistoryStore,
        completer: Completer,
        *,
        model: str = DEFAULT_MODEL,
        notify: Notifier = log_notifier,
        speech: Optional[SpeechCapability] = None,
    ):
        self.store = store
        self.completer = completer
        self.model = model
        self.notify = notify
        self.speech = speech or UnsupportedSpeech()
        self.state = RequestState.IDLE
        # terminal state of the last request
        self.last_outcome: Optional[RequestState] = None
        self._messages: List[Message] = []
        self._sync_from_store(store)
        self._unsubscribe = store.subscribe(self._sync_from_store)

    def _sync_from_store(self, store: ChatHistoryStore) -> None:
        chat = store.current_chat
        if chat is None:
            chat = store.create()
        self._messages = chat.messages

    def close(self) -> None:
        self._unsubscribe()

    @property
    def messages(self) -> List[Message]:
        return [m.model_copy(deep=True) for m in self._messages]

    @property
    def is_loading(self) -> bool:
        return self.state is RequestState.SENDING

    def rendered(self) -> List[List[ContentFragment]]:
        return [segment_message(m) for m in self._messages if m.role != "system"]

    # -- flows ----------------------------------------------------------------

    def send(self, text: str, image: Optional[str] = None) -> Optional[Message]:
        """Append a user turn and its reply. ``image`` is a base64 data URL."""
        if not text.strip() and not image:
            return None
        self._ensure_idle()

        if image:
            content = [TextPart(text=text), ImagePart(image_data=image)]
        else:
            content = text
        user_message = Message(role="user", content=content, model=self.model)
        chat_id = self.store.current_chat_id
        history = self.messages + [user_message]
        self._write(chat_id, history)
        return self._request(chat_id, history, failure_text=SEND_FAILURE_TEXT)

    def regenerate_at(self, user_index: int) -> Message:
        """Drop everything after ``messages[user_index]`` and ask again."""
        messages = self.messages
        if not 0 <= user_index < len(messages) or messages[user_index].role != "user":
            raise InvalidRegenerationError(f"Expected a user message at index {user_index}")
        self._ensure_idle()

        chat_id = self.store.current_chat_id
        history = messages[: user_index + 1]
        self._write(chat_id, history)
        reply = self._request(chat_id, history, failure_text=REGENERATE_FAILURE_TEXT)
        if self.last_outcome is RequestState.SUCCEEDED:
            self.notify("Response regenerated", "A new AI response has been generated", "default")
        return reply

    def regenerate_from(self, assistant_index: int) -> Message:
        """Regenerate the reply at ``assistant_index`` using the user turn before it."""
        messages = self.messages
        if not 0 < assistant_index < len(messages) or messages[assistant_index].role != "assistant":
            raise InvalidRegenerationError("Cannot find this message in the conversation")
        for index in range(assistant_index - 1, -1, -1):
            if messages[index].role == "user":
                return self.regenerate_at(index)
        raise InvalidRegenerationError("Cannot find the user message that prompted this response")

    def regenerate_last(self) -> Optional[Message]:
        messages = self.messages
        for index in range(len(messages) - 1, -1, -1):
            if messages[index].role == "user":
                return self.regenerate_at(index)
        return None

    def clear(self) -> None:
        """Start a fresh chat; the old one stays in history."""
        self.store.create()

    def speak(self, index: int) -> bool:
        if not self.speech.supported:
            return False
        text = speakable_text(segment_message(self._messages[index]))
        if not text:
            return False
        self.speech.speak(text)
        return True

    # -- internals ----------------------------------------------------------

    def _ensure_idle(self) -> None:
        if self.state is RequestState.SENDING:
            raise RequestInFlightError("A response is still being generated for this chat")

    def _write(self, chat_id: Optional[str], messages: List[Message]) -> bool:
        if chat_id is None:
            return False
        try:
            self.store.update(chat_id, messages)
        except ChatNotFoundError:
            logger.warning("Chat %s was deleted while a response was pending", chat_id)
            return False
        return True

    def _request(
        self, chat_id: Optional[str], history: List[Message], *, failure_text: str
    ) -> Message:
        self.state = RequestState.SENDING
        outbound = [system_message(self.model)] + history
        try:
            envelope = self.completer.complete(self.model, outbound)
            reply = Message(
                role=envelope.message.role, content=envelope.message.content, model=self.model
            )
            outcome = RequestState.SUCCEEDED
        except Exception as exc:
            logger.error("Failed to get AI response: %s", exc)
            self.notify("Error", str(exc) or "Failed to get a response from the AI", "destructive")
            reply = Message(role="assistant", content=failure_text, model=self.model)
            outcome = RequestState.FAILED
        finally:
            self.state = RequestState.IDLE

        self.last_outcome = outcome
        self._write(chat_id, history + [reply])
        return reply
