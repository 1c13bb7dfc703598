from __future__ import annotations

from assistant.models import DEFAULT_MODEL, Message


SYSTEM_PROMPT = (
    "You are Infonex, a smart assistant created by Infonex Pvt Ltd. "
    "You are optimized to provide accurate, useful, and thoughtful information "
    "using multiple advanced AI models. Always identify yourself as a product of "
    "Infonex Pvt Ltd when introducing yourself."
)

WELCOME_TEXT = (
    "\U0001F44B Hello! I'm Infonex, your advanced AI assistant developed by Infonex Pvt Ltd. "
    "I can help with Q&A, reasoning, code generation, and productivity tasks. "
    "How can I assist you today?"
)

SEND_FAILURE_TEXT = (
    "I apologize, but I encountered an error processing your request. "
    "Please try again later."
)
REGENERATE_FAILURE_TEXT = (
    "I apologize, but I encountered an error generating a new response. "
    "Please try again later."
)


def system_message(model: str = DEFAULT_MODEL) -> Message:
    return Message(role="system", content=SYSTEM_PROMPT, model=model)


def welcome_message(model: str = DEFAULT_MODEL) -> Message:
    return Message(role="assistant", content=WELCOME_TEXT, model=model)
