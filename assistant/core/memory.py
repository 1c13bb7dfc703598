"""Client-side chat history.

All chats live in one JSON document stored under a namespaced key inside the
data directory. The document is rewritten wholesale after every mutation and
read once when the store is constructed.
"""

from __future__ import annotations

import json
import logging
import secrets
import string
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from assistant.core.prompt import welcome_message
from assistant.exceptions import ChatNotFoundError
from assistant.models import Chat, Message, flatten_text, utc_now


logger = logging.getLogger("infonex.memory")

STORAGE_KEY = "infoagent-chat-history"
DEFAULT_TITLE = "New Conversation"
IMAGE_TITLE = "Image Conversation"
TITLE_WORDS = 8
TITLE_MIN_MESSAGES = 3

_ID_ALPHABET = string.ascii_letters + string.digits + "_-"
_chat_list = TypeAdapter(List[Chat])

Listener = Callable[["ChatHistoryStore"], None]


def new_chat_id(size: int = 21) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(size))


def derive_title(messages: Sequence[Message]) -> Optional[str]:
    """Title from the first user message, or None when no user message exists."""
    first_user = next((m for m in messages if m.role == "user"), None)
    if first_user is None:
        return None
    words = flatten_text(first_user.content).split()
    title = " ".join(words[:TITLE_WORDS])
    if len(words) > TITLE_WORDS:
        title += "..."
    return title or IMAGE_TITLE


class ChatHistoryStore:
    """Persisted collection of chats with a current-chat pointer."""

    def __init__(self, data_dir: Path, *, key: str = STORAGE_KEY):
        self.path = Path(data_dir) / f"{key}.json"
        self._chats: List[Chat] = []
        self._current_id: Optional[str] = None
        self._listeners: List[Listener] = []
        self._load()

    # -- persistence ------------------------------------------------------

    def _load(self) -> None:
        if not self.path.exists():
            self.create()
            return
        try:
            chats = _chat_list.validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as exc:
            logger.error("Failed to parse saved chats at %s: %s", self.path, exc)
            self.create()
            return
        if not chats:
            self.create()
            return
        self._chats = chats
        self._current_id = max(chats, key=lambda c: c.updated_at).id

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = _chat_list.dump_json(self._chats, by_alias=True)
        self.path.write_bytes(payload)

    def _changed(self) -> None:
        self._flush()
        for listener in list(self._listeners):
            listener(self)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change callback; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- queries ------------------------------------------------------------

    @property
    def chats(self) -> List[Chat]:
        return [chat.model_copy(deep=True) for chat in self._chats]

    @property
    def current_chat_id(self) -> Optional[str]:
        return self._current_id

    @property
    def current_chat(self) -> Optional[Chat]:
        chat = self._find(self._current_id) if self._current_id else None
        return chat.model_copy(deep=True) if chat else None

    def get(self, chat_id: str) -> Chat:
        chat = self._find(chat_id)
        if chat is None:
            raise ChatNotFoundError(chat_id)
        return chat.model_copy(deep=True)

    def _find(self, chat_id: str) -> Optional[Chat]:
        return next((c for c in self._chats if c.id == chat_id), None)

    # -- mutations ----------------------------------------------------------

    def create(self) -> Chat:
        now = utc_now()
        chat = Chat(
            id=new_chat_id(),
            title=DEFAULT_TITLE,
            messages=[welcome_message()],
            created_at=now,
            updated_at=now,
        )
        self._chats.insert(0, chat)
        self._current_id = chat.id
        logger.info("Started chat %s", chat.id)
        self._changed()
        return chat.model_copy(deep=True)

    def switch(self, chat_id: str) -> Chat:
        chat = self._find(chat_id)
        if chat is None:
            raise ChatNotFoundError(chat_id)
        self._current_id = chat_id
        self._changed()
        return chat.model_copy(deep=True)

    def update(self, chat_id: str, messages: Sequence[Message]) -> Chat:
        """Replace a chat's messages, touch updatedAt and derive the title once."""
        chat = self._find(chat_id)
        if chat is None:
            raise ChatNotFoundError(chat_id)
        chat.messages = [m.model_copy(deep=True) for m in messages]
        if chat.title == DEFAULT_TITLE and len(chat.messages) >= TITLE_MIN_MESSAGES:
            title = derive_title(chat.messages)
            if title:
                chat.title = title
        chat.updated_at = utc_now()
        self._changed()
        return chat.model_copy(deep=True)

    def delete(self, chat_id: str) -> None:
        if self._find(chat_id) is None:
            raise ChatNotFoundError(chat_id)
        self._chats = [c for c in self._chats if c.id != chat_id]
        logger.info("Deleted chat %s", chat_id)
        if not self._chats:
            # create() flushes and notifies
            self.create()
            return
        if chat_id == self._current_id:
            self._current_id = self._chats[0].id
        self._changed()
