"""
Agent — the two-phase tool-calling chat loop built with LangGraph.

The chat model and the retrieval tools are injected, so the whole loop
can be tested locally with fakes.

Public API
----------
- :class:`ChatOrchestrator` — run one chat turn.
- :func:`build_graph` — compile the chat workflow.
- :class:`RetrievalTools` — the ``list_available_files`` / ``search_documents`` executor.
- :class:`ChatResult`, :class:`ChatPhase` — turn outcome and protocol phases.
"""

from docchat.agent.graph import build_graph, create_initial_state
from docchat.agent.orchestrator import ChatOrchestrator
from docchat.agent.state import ChatPhase, ChatResult, ChatState, ToolCallRecord
from docchat.agent.tools import (
    NO_FILES_MESSAGE,
    NO_RELEVANT_INFO_MESSAGE,
    TOOL_SCHEMAS,
    RetrievalTools,
)

__all__ = [
    "NO_FILES_MESSAGE",
    "NO_RELEVANT_INFO_MESSAGE",
    "TOOL_SCHEMAS",
    "ChatOrchestrator",
    "ChatPhase",
    "ChatResult",
    "ChatState",
    "RetrievalTools",
    "ToolCallRecord",
    "build_graph",
    "create_initial_state",
]
