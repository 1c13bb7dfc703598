"""Split message text into prose, fenced code, block math and inline math.

The scanner makes one pass over the text. A tokenizer finds every delimiter
(```` ``` ````, ``\\[``, ``\\]``, ``\\(``, ``\\)``) and the text runs between
them; a small state machine (plain, code, block math, inline math) consumes
the tokens.

Matching rules:

* a fence opens a code block only when a later fence closes it; the first
  closing fence wins and an unterminated fence stays literal text;
* ``lang\\n`` right after an opening fence is the language tag;
* a math opener needs its closer before the next code block starts, so code
  always claims its region first;
* no nesting: inside code or math every other delimiter is plain content.

Empty input gives an empty list. Plain fragments are never empty; code and
math fragments may be.
"""

from __future__ import annotations

import enum
import re
from bisect import bisect_right
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence

from assistant.models import ContentFragment, ImagePart, Message, TextPart


FENCE = "```"
_DELIMITER_PATTERN = re.compile(r"```|\\\[|\\\]|\\\(|\\\)")
_LANGUAGE_PATTERN = re.compile(r"([A-Za-z0-9_]+)\n")

ATTACHED_IMAGE_LABEL = "[Attached image]"


class TokenKind(enum.Enum):
    TEXT = "text"
    FENCE = "fence"
    BLOCK_OPEN = "block_open"
    BLOCK_CLOSE = "block_close"
    INLINE_OPEN = "inline_open"
    INLINE_CLOSE = "inline_close"


_DELIMITER_KINDS = {
    FENCE: TokenKind.FENCE,
    "\\[": TokenKind.BLOCK_OPEN,
    "\\]": TokenKind.BLOCK_CLOSE,
    "\\(": TokenKind.INLINE_OPEN,
    "\\)": TokenKind.INLINE_CLOSE,
}


class ScanState(enum.Enum):
    PLAIN = "plain"
    IN_CODE = "in_code"
    IN_BLOCK_MATH = "in_block_math"
    IN_INLINE_MATH = "in_inline_math"


_CLOSERS = {
    ScanState.IN_CODE: TokenKind.FENCE,
    ScanState.IN_BLOCK_MATH: TokenKind.BLOCK_CLOSE,
    ScanState.IN_INLINE_MATH: TokenKind.INLINE_CLOSE,
}


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str


def tokenize(text: str) -> Iterator[Token]:
    position = 0
    for match in _DELIMITER_PATTERN.finditer(text):
        if match.start() > position:
            yield Token(TokenKind.TEXT, text[position:match.start()])
        yield Token(_DELIMITER_KINDS[match.group()], match.group())
        position = match.end()
    if position < len(text):
        yield Token(TokenKind.TEXT, text[position:])


class _Scanner:
    def __init__(self, tokens: Sequence[Token]) -> None:
        self.tokens = tokens
        self.fragments: List[ContentFragment] = []
        self.state = ScanState.PLAIN
        self.buffer: List[str] = []
        # sorted token indices per delimiter kind
        self._positions: Dict[TokenKind, List[int]] = {kind: [] for kind in TokenKind}
        for i, token in enumerate(tokens):
            self._positions[token.kind].append(i)

    def _next_after(self, kind: TokenKind, index: int) -> Optional[int]:
        positions = self._positions[kind]
        found = bisect_right(positions, index)
        return positions[found] if found < len(positions) else None

    def _next_fence_after(self, index: int) -> Optional[int]:
        return self._next_after(TokenKind.FENCE, index)

    def _code_start_after(self, index: int) -> int:
        """Index of the next fence that opens a code block, or len(tokens)."""
        opener = self._next_fence_after(index)
        if opener is None or self._next_fence_after(opener) is None:
            return len(self.tokens)
        return opener

    def _has_closer(self, index: int, kind: TokenKind) -> bool:
        closer = self._next_after(kind, index)
        return closer is not None and closer < self._code_start_after(index)

    def _flush_plain(self) -> None:
        text = "".join(self.buffer)
        self.buffer = []
        if text:
            self.fragments.append(ContentFragment(text=text))

    def _close_construct(self) -> None:
        body = "".join(self.buffer)
        self.buffer = []
        if self.state is ScanState.IN_CODE:
            language = ""
            match = _LANGUAGE_PATTERN.match(body)
            if match:
                language = match.group(1)
                body = body[match.end():]
            self.fragments.append(ContentFragment(text=body, is_code=True, language=language))
        elif self.state is ScanState.IN_BLOCK_MATH:
            self.fragments.append(ContentFragment(text=body, is_math=True))
        else:
            self.fragments.append(ContentFragment(text=body, is_inline_math=True))
        self.state = ScanState.PLAIN

    def _open(self, state: ScanState) -> None:
        self._flush_plain()
        self.state = state

    def run(self) -> List[ContentFragment]:
        for index, token in enumerate(self.tokens):
            if self.state is not ScanState.PLAIN:
                if token.kind is _CLOSERS[self.state]:
                    self._close_construct()
                else:
                    self.buffer.append(token.text)
                continue

            if token.kind is TokenKind.FENCE and self._next_fence_after(index) is not None:
                self._open(ScanState.IN_CODE)
            elif token.kind is TokenKind.BLOCK_OPEN and self._has_closer(index, TokenKind.BLOCK_CLOSE):
                self._open(ScanState.IN_BLOCK_MATH)
            elif token.kind is TokenKind.INLINE_OPEN and self._has_closer(index, TokenKind.INLINE_CLOSE):
                self._open(ScanState.IN_INLINE_MATH)
            else:
                self.buffer.append(token.text)

        self._flush_plain()
        return self.fragments


def segment(text: str) -> List[ContentFragment]:
    """Split ``text`` into ordered render fragments."""
    if not text:
        return []
    return _Scanner(list(tokenize(text))).run()


def display_text(message: Message) -> str:
    content = message.content
    if isinstance(content, str):
        return content
    pieces = []
    for part in content:
        if isinstance(part, TextPart) and part.text:
            pieces.append(part.text)
        elif isinstance(part, ImagePart):
            pieces.append(ATTACHED_IMAGE_LABEL)
    return "\n".join(pieces)


def segment_message(message: Message) -> List[ContentFragment]:
    # system prompts are sent upstream but never rendered
    if message.role == "system":
        return []
    return segment(display_text(message))


def plain_text(fragments: Sequence[ContentFragment]) -> str:
    """Clipboard text: everything except code blocks."""
    return "\n".join(fragment.text for fragment in fragments if not fragment.is_code)
