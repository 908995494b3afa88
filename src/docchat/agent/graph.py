"""LangGraph graph definition — the two-phase tool-calling chat turn.

This module wires the nodes of :class:`~docchat.agent.nodes.ChatNodes`
into a compiled :class:`StateGraph`:

1. **First response** — the model sees the tools (``tool_choice="auto"``)
   and either answers directly or requests tool calls.
2. **Execute tools** — calls run sequentially against the document
   bound to the conversation.
3. **Final response** — the model answers with tools disabled
   (``tool_choice="none"``), so a turn can never recurse into more calls.

When every search came back empty, step 3 is replaced by the fixed
no-information answer.
"""

from __future__ import annotations

from typing import Any

from langchain_core.messages import BaseMessage
from langgraph.graph import END, StateGraph

from docchat.agent.nodes import ChatNodes
from docchat.agent.state import ChatPhase, ChatState


def build_graph(nodes: ChatNodes) -> Any:
    """Construct and return the compiled chat graph.

    Graph topology::

        ┌─────────────────┐
        │  first_response  │   ← tools enabled
        └────────┬────────┘
          calls? │ no ─────────────────────────► [ END ]
                 ▼ yes
        ┌─────────────────┐
        │  execute_tools   │
        └────────┬────────┘
                 │ all searches empty ──► no_information ──► [ END ]
                 ▼
        ┌─────────────────┐
        │  final_response  │   ← tools disabled
        └────────┬────────┘
                 ▼
              [ END ]

    Returns
    -------
    CompiledGraph
        A compiled LangGraph workflow ready for ``.invoke()``.
    """
    workflow = StateGraph(ChatState)

    # -- Nodes ---------------------------------------------------------------
    workflow.add_node("first_response", nodes.first_response)
    workflow.add_node("execute_tools", nodes.execute_tools)
    workflow.add_node("final_response", nodes.final_response)
    workflow.add_node("no_information", nodes.no_information)

    # -- Edges ---------------------------------------------------------------
    workflow.set_entry_point("first_response")
    workflow.add_conditional_edges(
        "first_response",
        nodes.route_after_first_response,
        {
            "execute_tools": "execute_tools",
            "done": END,
        },
    )
    workflow.add_conditional_edges(
        "execute_tools",
        nodes.route_after_tools,
        {
            "final_response": "final_response",
            "no_information": "no_information",
        },
    )
    workflow.add_edge("final_response", END)
    workflow.add_edge("no_information", END)

    return workflow.compile()


def create_initial_state(messages: list[BaseMessage], document_id: str) -> dict[str, Any]:
    """Build the initial state dict for ``graph.invoke()``."""
    return {
        "messages": messages,
        "document_id": document_id,
        "pending_calls": [],
        "recovered": False,
        "tool_calls_made": [],
        "answer": "",
        "phases": [ChatPhase.AWAIT_FIRST_RESPONSE],
    }
