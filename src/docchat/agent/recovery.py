"""Recovery of tool calls that a model wrote as inline text.

Some smaller models emit ``<function=NAME>{...json...}`` in the message
content instead of using the structured tool-calling channel.  This
module turns such text into a synthetic tool call, or reports that no
recovery is possible.  It never raises on malformed input.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

logger = logging.getLogger(__name__)

_MARKER = re.compile(r"<function=(?P<name>\w+)>\s*(?=\{)")
_CLOSING_TAG = re.compile(r"\s*</function>")
_decoder = json.JSONDecoder()


@dataclass(frozen=True)
class RecoveredToolCall:
    """A tool call parsed out of message text.

    Attributes
    ----------
    name:
        Tool name from the marker.
    args:
        Parsed argument object.
    call_id:
        Synthetic call identity (``manual-<hex>``).
    remaining_text:
        The message content with the marker and its arguments removed.
    """

    name: str
    args: dict[str, Any] = field(default_factory=dict)
    call_id: str = field(default_factory=lambda: f"manual-{uuid4().hex[:12]}")
    remaining_text: str = ""

    def as_tool_call(self) -> dict[str, Any]:
        """LangChain ``ToolCall`` dict for this call."""
        return {"name": self.name, "args": self.args, "id": self.call_id, "type": "tool_call"}


def recover_inline_tool_call(content: str | None) -> RecoveredToolCall | None:
    """Parse the first ``<function=NAME>{args}`` marker in *content*.

    Returns ``None`` when there is no marker, or when the argument blob is
    not a JSON object.
    """
    if not content or "<function=" not in content:
        return None

    match = _MARKER.search(content)
    if match is None:
        logger.debug("Inline function marker without an argument object: %.200s", content)
        return None

    try:
        args, end = _decoder.raw_decode(content, match.end())
    except json.JSONDecodeError:
        logger.warning("Could not parse inline tool-call arguments: %.200s", content)
        return None
    if not isinstance(args, dict):
        return None

    closing = _CLOSING_TAG.match(content, end)
    if closing is not None:
        end = closing.end()

    remaining = (content[: match.start()] + content[end:]).strip()
    recovered = RecoveredToolCall(name=match.group("name"), args=args, remaining_text=remaining)
    logger.info("Recovered inline tool call %s(%s)", recovered.name, recovered.args)
    return recovered
