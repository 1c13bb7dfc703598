from __future__ import annotations

import logging
import re
from typing import Protocol, Sequence

from assistant.models import ContentFragment


logger = logging.getLogger("infonex.speech")

_EMOJI_CODES = re.compile(r":[a-z_]+:")
_MARKUP = re.compile(r"[*_~`#|<>{}\[\]()]")
_WHITESPACE = re.compile(r"\s+")


class SpeechCapability(Protocol):
    """Voice input and text-to-speech provided by the host platform."""

    @property
    def supported(self) -> bool: ...

    def start_listening(self) -> None: ...

    def stop_listening(self) -> None: ...

    def speak(self, text: str) -> None: ...

    def stop(self) -> None: ...


class UnsupportedSpeech:
    """Used when the platform has no speech APIs. Every call is a no-op."""

    supported = False

    def start_listening(self) -> None:
        logger.debug("Speech recognition is not supported on this platform")

    def stop_listening(self) -> None:
        pass

    def speak(self, text: str) -> None:
        logger.debug("Text-to-speech is not supported on this platform")

    def stop(self) -> None:
        pass


def speakable_text(fragments: Sequence[ContentFragment]) -> str:
    """Prose of a message cleaned for speech synthesis; code and math are skipped."""
    text = " ".join(fragment.text for fragment in fragments if fragment.is_plain)
    text = _EMOJI_CODES.sub(" ", text)
    text = _MARKUP.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()
