"""Chat facade — one call per user turn.

Usage::

    orchestrator = ChatOrchestrator(get_llm(), tools)
    result = orchestrator.chat("What is the refund policy?", history, document_id)
    print(result.answer, result.tools_used)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from langchain_core.language_models import BaseChatModel

from docchat.agent.graph import build_graph, create_initial_state
from docchat.agent.nodes import ChatNodes
from docchat.agent.prompts import build_chat_messages
from docchat.agent.state import ChatResult
from docchat.agent.tools import RetrievalTools
from docchat.config import settings
from docchat.errors import ValidationError

logger = logging.getLogger(__name__)


class ChatOrchestrator:
    """Runs the compiled chat graph for one conversation turn at a time.

    The graph is compiled once; each :meth:`chat` call gets its own state,
    so concurrent turns share nothing mutable.
    """

    def __init__(
        self,
        llm: BaseChatModel,
        tools: RetrievalTools,
        *,
        short_circuit_empty_retrieval: bool = settings.short_circuit_empty_retrieval,
    ) -> None:
        self._nodes = ChatNodes(
            llm,
            tools,
            short_circuit_empty_retrieval=short_circuit_empty_retrieval,
        )
        self._graph = build_graph(self._nodes)

    def chat(
        self,
        message: str,
        history: Iterable[Mapping[str, Any]] | None,
        document_id: str,
    ) -> ChatResult:
        """Answer *message* about *document_id*.

        Raises
        ------
        ValidationError
            Blank message / document id or malformed history.
        LanguageModelError
            The chat model failed or timed out.
        """
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("message & documentId required")
        if not isinstance(document_id, str) or not document_id.strip():
            raise ValidationError("message & documentId required")

        messages = build_chat_messages(message, history)
        final_state = self._graph.invoke(create_initial_state(messages, document_id))

        tools_used = [record.tool_name for record in final_state.get("tool_calls_made", [])]
        logger.info("Chat turn on %s finished; tools used: %s", document_id, tools_used)
        return ChatResult(
            answer=final_state.get("answer", ""),
            tools_used=tools_used,
            phases=list(final_state.get("phases", [])),
        )
