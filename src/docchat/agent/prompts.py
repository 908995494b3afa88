"""Prompt templates and conversation assembly for the chat agent.

Keeping the system instruction in one place makes it easy to audit and
version.  Caller-supplied history is projected to ``role`` + ``content``
before it is replayed to the model.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from docchat.errors import ValidationError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are a document-specific RAG assistant.

Rules:
- ONLY use retrieved chunk_text
- NEVER mix documents
- ALWAYS mention filename
- Always use the search_documents tool to answer questions about the document content.
- If a tool reports that no relevant information was found, say exactly that \
and do not answer from memory.
"""

_MESSAGE_TYPES: dict[str, type[BaseMessage]] = {
    "user": HumanMessage,
    "assistant": AIMessage,
    "system": SystemMessage,
}


def sanitize_history(history: Iterable[Mapping[str, Any]] | None) -> list[dict[str, str]]:
    """Project *history* onto ``{"role", "content"}`` pairs.

    Every other field (tool-call payloads, provider ids, injected keys) is
    dropped.  ``tool`` turns are dropped too: without their call ids they
    cannot be replayed to the model.

    Raises
    ------
    ValidationError
        When *history* is not a list of objects, or on an unknown role or
        non-string content.
    """
    if history is None:
        return []
    if isinstance(history, (str, bytes, Mapping)) or not isinstance(history, Iterable):
        raise ValidationError("history must be a list of {role, content} objects")
    sanitized: list[dict[str, str]] = []
    for position, turn in enumerate(history):
        if not isinstance(turn, Mapping):
            raise ValidationError(f"history[{position}] must be an object with role and content")
        role = turn.get("role")
        content = turn.get("content")
        if role == "tool":
            logger.debug("Dropping tool turn %d from history", position)
            continue
        if role not in _MESSAGE_TYPES:
            raise ValidationError(f"history[{position}].role must be user, assistant, system or tool")
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise ValidationError(f"history[{position}].content must be a string")
        sanitized.append({"role": role, "content": content})
    return sanitized


def build_chat_messages(
    message: str,
    history: Iterable[Mapping[str, Any]] | None = None,
    *,
    system_prompt: str = SYSTEM_PROMPT,
) -> list[BaseMessage]:
    """Assemble system instruction + sanitized history + the new user turn."""
    messages: list[BaseMessage] = [SystemMessage(content=system_prompt)]
    for turn in sanitize_history(history):
        messages.append(_MESSAGE_TYPES[turn["role"]](content=turn["content"]))
    messages.append(HumanMessage(content=message))
    return messages
