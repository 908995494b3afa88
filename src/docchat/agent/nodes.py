"""Graph nodes — each method is one step of the two-phase chat protocol.

Node contract
-------------
* Accepts the full :class:`ChatState` dict.
* Returns a *partial* dict with **only the keys that changed**.
* The chat model and the retrieval tools are injected through
  :class:`ChatNodes`; nodes hold no other state, so every node is
  independently testable.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, ToolMessage

from docchat.agent.recovery import recover_inline_tool_call
from docchat.agent.state import ChatPhase, ChatState, ToolCallRecord
from docchat.agent.tools import (
    NO_RELEVANT_INFO_MESSAGE,
    TOOL_SCHEMAS,
    RetrievalTools,
    parse_tool_invocation,
)
from docchat.errors import DocChatError, LanguageModelError

logger = logging.getLogger(__name__)


class ChatNodes:
    """The chat graph's nodes and routing functions.

    Parameters
    ----------
    llm:
        Chat model supporting ``bind_tools``.
    tools:
        Retrieval tool executor.
    short_circuit_empty_retrieval:
        When ``True`` and every executed call was a ``search_documents``
        that found nothing, the second model call is skipped and the
        fixed no-information message is returned.
    """

    def __init__(
        self,
        llm: BaseChatModel,
        tools: RetrievalTools,
        *,
        short_circuit_empty_retrieval: bool = True,
    ) -> None:
        self._llm = llm
        self._tools = tools
        self.short_circuit_empty_retrieval = short_circuit_empty_retrieval

    # ── 1. FIRST RESPONSE (tools enabled) ─────────────────────────────

    def first_response(self, state: ChatState) -> dict[str, Any]:
        """Ask the model with ``tool_choice="auto"``.

        Structured tool calls win; otherwise an inline
        ``<function=NAME>{...}`` marker in the text is recovered into a
        synthetic call.  With neither, the text is the final answer.

        Calls whose arguments could not be parsed are kept as failed calls
        so the model hears about them in the second phase.  Every call
        leaves this node with an id, and the returned assistant message
        carries exactly the calls that will be answered.
        """
        response = self._invoke(state["messages"], tool_choice="auto")
        text = _message_text(response)

        tool_calls = [_with_call_id(call) for call in getattr(response, "tool_calls", None) or []]
        invalid = [_invalid_call(call) for call in getattr(response, "invalid_tool_calls", None) or []]
        if invalid:
            logger.warning(
                "Model emitted %d unparsable tool call(s): %s", len(invalid), [c["name"] for c in invalid]
            )

        recovered = False
        if not tool_calls and not invalid:
            inline = recover_inline_tool_call(text)
            if inline is not None:
                tool_calls = [inline.as_tool_call()]
                text = inline.remaining_text
                recovered = True

        pending = tool_calls + invalid
        if not pending:
            return {
                "messages": [response],
                "pending_calls": [],
                "answer": text,
                "phases": [ChatPhase.DONE],
            }

        logger.info(
            "Model requested %d tool call(s): %s%s",
            len(pending),
            [c.get("name") for c in pending],
            " (recovered from text)" if recovered else "",
        )
        message = AIMessage(
            content=text,
            tool_calls=[
                {"name": c["name"], "args": c["args"], "id": c["id"], "type": "tool_call"} for c in pending
            ],
        )
        return {
            "messages": [message],
            "pending_calls": pending,
            "recovered": recovered,
            "phases": [ChatPhase.TOOLS_REQUESTED],
        }

    # ── 2. EXECUTE TOOLS ──────────────────────────────────────────────

    def execute_tools(self, state: ChatState) -> dict[str, Any]:
        """Run every pending call in emission order.

        Each call yields exactly one ``tool`` message keyed by its call id.
        Failures become error text for the model instead of failing the turn.
        """
        document_id = state["document_id"]
        recovered = state.get("recovered", False)
        records: list[ToolCallRecord] = []
        tool_messages: list[BaseMessage] = []

        for call in state.get("pending_calls", []):
            name = call.get("name") or ""
            args = call.get("args") or {}
            call_id = call.get("id") or _new_call_id()
            failed = False

            if call.get("invalid"):
                logger.warning("Tool call %s had unparsable arguments", name)
                result = f"Error executing {name}: invalid arguments"
                failed = True
            else:
                try:
                    invocation = parse_tool_invocation(name, args, call_id)
                    result = self._tools.execute(invocation, document_id)
                except DocChatError as exc:
                    logger.warning("Tool call %s(%s) failed: %s", name, args, exc)
                    result = f"Error executing {name}: {exc}"
                    failed = True
                except Exception as exc:
                    logger.exception("Tool %s failed", name)
                    result = f"Error executing {name}: {exc}"
                    failed = True

            records.append(
                ToolCallRecord(
                    call_id=call_id,
                    tool_name=name,
                    arguments=dict(args),
                    result=result,
                    recovered=recovered,
                    failed=failed,
                )
            )
            tool_messages.append(ToolMessage(content=result, tool_call_id=call_id, name=name))

        return {
            "messages": tool_messages,
            "tool_calls_made": records,
            "pending_calls": [],
            "phases": [ChatPhase.EXECUTING_TOOLS, ChatPhase.AWAIT_FINAL_RESPONSE],
        }

    # ── 3a. FINAL RESPONSE (tools disabled) ───────────────────────────

    def final_response(self, state: ChatState) -> dict[str, Any]:
        """Ask the model again with ``tool_choice="none"`` for the answer."""
        response = self._invoke(state["messages"], tool_choice="none")
        answer = _message_text(response)

        # Tools are disabled here; a stray inline marker is only stripped.
        inline = recover_inline_tool_call(answer)
        if inline is not None:
            logger.warning("Ignoring inline tool call %s in final response", inline.name)
            answer = inline.remaining_text

        return {
            "messages": [AIMessage(content=answer)],
            "answer": answer,
            "phases": [ChatPhase.DONE],
        }

    # ── 3b. NO INFORMATION (short-circuit) ────────────────────────────

    def no_information(self, state: ChatState) -> dict[str, Any]:
        """Answer with the fixed no-information message without a model call."""
        logger.info("All searches came back empty; skipping synthesis")
        return {
            "messages": [AIMessage(content=NO_RELEVANT_INFO_MESSAGE)],
            "answer": NO_RELEVANT_INFO_MESSAGE,
            "phases": [ChatPhase.DONE],
        }

    # ── ROUTING (conditional edges) ───────────────────────────────────

    def route_after_first_response(self, state: ChatState) -> str:
        """``"execute_tools"`` when calls are pending, else ``"done"``."""
        if state.get("pending_calls"):
            return "execute_tools"
        return "done"

    def route_after_tools(self, state: ChatState) -> str:
        """``"no_information"`` when the short-circuit applies, else ``"final_response"``."""
        if self.short_circuit_empty_retrieval and retrieval_was_empty(state.get("tool_calls_made", [])):
            return "no_information"
        return "final_response"

    # ── internals ─────────────────────────────────────────────────────

    def _invoke(self, messages: list[BaseMessage], *, tool_choice: str) -> BaseMessage:
        model = self._llm.bind_tools(TOOL_SCHEMAS, tool_choice=tool_choice)
        try:
            return model.invoke(messages)
        except Exception as exc:
            logger.exception("Chat model call failed (tool_choice=%s)", tool_choice)
            raise LanguageModelError("The language model is unavailable, please try again") from exc


def retrieval_was_empty(records: list[ToolCallRecord]) -> bool:
    """True when every executed call was a search that found nothing."""
    return bool(records) and all(
        r.tool_name == "search_documents" and not r.failed and r.result == NO_RELEVANT_INFO_MESSAGE
        for r in records
    )


def _message_text(message: BaseMessage) -> str:
    """Plain text of *message*, joining text blocks of list-shaped content."""
    content = message.content
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def _new_call_id() -> str:
    return f"call-{uuid4().hex[:12]}"


def _with_call_id(call: dict[str, Any]) -> dict[str, Any]:
    """Copy of a structured tool call, given a fresh id when it has none."""
    return {
        "name": call.get("name") or "",
        "args": dict(call.get("args") or {}),
        "id": call.get("id") or _new_call_id(),
    }


def _invalid_call(call: dict[str, Any]) -> dict[str, Any]:
    """Pending entry for a tool call whose arguments failed to parse."""
    return {
        "name": call.get("name") or "",
        "args": {},
        "id": call.get("id") or _new_call_id(),
        "invalid": True,
    }
