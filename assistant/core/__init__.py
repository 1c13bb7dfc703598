from .controller import ConversationController, RequestState
from .memory import ChatHistoryStore
from .segmenter import segment, segment_message

__all__ = [
    "ChatHistoryStore",
    "ConversationController",
    "RequestState",
    "segment",
    "segment_message",
]
