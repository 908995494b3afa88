"""Orchestrator state definition — shared across all graph nodes.

The state is the *single source of truth* that flows through every node
of the chat graph.  One state lives for exactly one user turn.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, TypedDict

from langchain_core.messages import BaseMessage
from langgraph.graph.message import add_messages


class ChatPhase(str, Enum):
    """Protocol phases of one chat turn."""

    AWAIT_FIRST_RESPONSE = "await_first_response"
    TOOLS_REQUESTED = "tools_requested"
    EXECUTING_TOOLS = "executing_tools"
    AWAIT_FINAL_RESPONSE = "await_final_response"
    DONE = "done"


@dataclass
class ToolCallRecord:
    """Record of a single executed tool call.

    Attributes
    ----------
    call_id:
        Identity of the call, echoed on the ``tool`` message.
    tool_name:
        Name the model asked for.
    arguments:
        Arguments as the model sent them (before the session-bound
        document id is substituted).
    result:
        Text fed back to the model.
    recovered:
        ``True`` when the call was parsed out of inline text rather than the
        structured tool-calling channel.
    failed:
        ``True`` when execution raised and ``result`` holds the error text.
    """

    call_id: str
    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    result: str = ""
    recovered: bool = False
    failed: bool = False


@dataclass(frozen=True)
class ChatResult:
    """What one chat turn returns to the caller."""

    answer: str
    tools_used: list[str]
    phases: list[ChatPhase] = field(default_factory=list)


def _append_list(existing: list[Any], new: list[Any]) -> list[Any]:
    """Reducer that appends *new* items to the *existing* list."""
    return existing + new


class ChatState(TypedDict):
    """Typed state that flows through the chat graph.

    Attributes
    ----------
    messages:
        Prompt + conversation, managed by LangGraph's ``add_messages``.
    document_id:
        The document bound to this conversation.  Tools always use this
        value, whatever the model passes.
    pending_calls:
        Tool calls requested by the first model response, as
        ``{"name", "args", "id"}`` dicts.
    recovered:
        Whether ``pending_calls`` came from the inline-text recovery path.
    tool_calls_made:
        Chronological log of executed calls.
    answer:
        Final answer text.
    phases:
        Every phase the turn passed through, in order.
    """

    messages: Annotated[list[BaseMessage], add_messages]
    document_id: str
    pending_calls: list[dict[str, Any]]
    recovered: bool
    tool_calls_made: Annotated[list[ToolCallRecord], _append_list]
    answer: str
    phases: Annotated[list[ChatPhase], _append_list]
