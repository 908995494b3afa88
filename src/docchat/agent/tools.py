"""Retrieval tools exposed to the chat model.

Two tools exist: ``list_available_files`` and ``search_documents``.  The
model only ever sees their argument schemas (:data:`TOOL_SCHEMAS`); what
it sends back is parsed into a closed set of typed invocations
(:func:`parse_tool_invocation`) and executed by :class:`RetrievalTools`.

Trust boundary
--------------
``search_documents`` always runs against the document bound to the
conversation.  A ``documentId`` / ``document_id`` in model-generated
arguments is discarded.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from docchat.config import settings
from docchat.errors import ModelProtocolError, ToolExecutionError
from docchat.retrieval.base import DocumentStoreBase
from docchat.retrieval.retriever import DocumentSearcher

logger = logging.getLogger(__name__)

NO_FILES_MESSAGE = "No files"
NO_RELEVANT_INFO_MESSAGE = "No relevant information was found in the uploaded document."
UNRANKED_NOTE = (
    "Note: similarity ranking was unavailable; these are the first passages "
    "of the document in their original order."
)


# ---------------------------------------------------------------------------
# Argument schemas (what the model sees)
# ---------------------------------------------------------------------------

TOOL_SCHEMAS: list[dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "list_available_files",
            "description": "List all uploaded documents",
            "parameters": {"type": "object", "properties": {}, "required": []},
        },
    },
    {
        "type": "function",
        "function": {
            "name": "search_documents",
            "description": "Search inside the currently active document",
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "What to look for in the document",
                    },
                },
                "required": ["query"],
            },
        },
    },
]
"""OpenAI function schemas bound to the chat model."""


# ---------------------------------------------------------------------------
# Invocations (what the model asked for)
# ---------------------------------------------------------------------------


class ListAvailableFilesCall(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Literal["list_available_files"] = "list_available_files"
    call_id: str


class SearchDocumentsCall(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Literal["search_documents"] = "search_documents"
    call_id: str
    query: str


ToolInvocation = Union[ListAvailableFilesCall, SearchDocumentsCall]

_INVOCATION_TYPES: dict[str, type[BaseModel]] = {
    "list_available_files": ListAvailableFilesCall,
    "search_documents": SearchDocumentsCall,
}


def parse_tool_invocation(name: str, args: dict[str, Any] | None, call_id: str) -> ToolInvocation:
    """Build the typed invocation for a model-issued call.

    Raises
    ------
    ModelProtocolError
        Unknown tool name or arguments that do not fit the tool's schema.
    """
    invocation_type = _INVOCATION_TYPES.get(name)
    if invocation_type is None:
        raise ModelProtocolError(f"Unknown tool {name!r}")

    payload = {
        key: value
        for key, value in (args or {}).items()
        if key not in {"documentId", "document_id", "name", "call_id"}
    }
    if args and len(payload) != len(args):
        logger.warning("Ignoring model-supplied routing fields in %s call: %s", name, sorted(args))

    try:
        return invocation_type(call_id=call_id, **payload)  # type: ignore[return-value]
    except PydanticValidationError as exc:
        raise ModelProtocolError(f"Invalid arguments for {name}: {exc.errors()[0]['msg']}") from exc


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


class RetrievalTools:
    """Executes tool invocations against the document store.

    Parameters
    ----------
    searcher:
        Document-scoped searcher.
    store:
        Document store, used for listing files.
    result_limit:
        Max search hits rendered into a tool result.
    """

    def __init__(
        self,
        searcher: DocumentSearcher,
        store: DocumentStoreBase,
        *,
        result_limit: int = settings.search_result_limit,
    ) -> None:
        self._searcher = searcher
        self._store = store
        self.result_limit = result_limit

    def list_available_files(self) -> str:
        """Comma-joined filenames, or :data:`NO_FILES_MESSAGE`."""
        filenames = [d.filename for d in self._store.list_documents()]
        logger.info("list_available_files returned %d file(s)", len(filenames))
        return ", ".join(filenames) or NO_FILES_MESSAGE

    def search_documents(self, query: str, document_id: str) -> str:
        """Top results for *query* in *document_id*, tagged with their filename.

        Returns :data:`NO_RELEVANT_INFO_MESSAGE` when nothing matches.
        """
        response = self._searcher.search(query, document_id)
        if not response.results:
            logger.info("search_documents found nothing for %r in %s", query, document_id)
            return NO_RELEVANT_INFO_MESSAGE

        blocks = [
            f"File: {hit.filename}\nContent: {hit.chunk_text}"
            for hit in response.results[: self.result_limit]
        ]
        text = "\n\n---\n\n".join(blocks)
        if response.fallback:
            text = f"{UNRANKED_NOTE}\n\n{text}"
        logger.info("search_documents returned %d block(s) for %r", len(blocks), query)
        return text

    def execute(self, invocation: ToolInvocation, document_id: str) -> str:
        """Run *invocation*; ``search_documents`` is pinned to *document_id*.

        Raises
        ------
        ToolExecutionError
            Wrapping whatever the underlying retrieval raised.
        """
        try:
            if isinstance(invocation, ListAvailableFilesCall):
                return self.list_available_files()
            if isinstance(invocation, SearchDocumentsCall):
                return self.search_documents(invocation.query, document_id)
        except Exception as exc:
            raise ToolExecutionError(f"{invocation.name} failed: {exc}") from exc
        raise ModelProtocolError(f"Unsupported invocation {type(invocation).__name__}")
