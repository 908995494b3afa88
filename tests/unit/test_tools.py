"""Unit tests for the retrieval tools exposed to the chat model."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from docchat.agent.tools import (
    NO_FILES_MESSAGE,
    NO_RELEVANT_INFO_MESSAGE,
    TOOL_SCHEMAS,
    UNRANKED_NOTE,
    ListAvailableFilesCall,
    RetrievalTools,
    SearchDocumentsCall,
    parse_tool_invocation,
)
from docchat.errors import ModelProtocolError, ToolExecutionError
from docchat.ingestion.embedder import EmbeddingGateway
from docchat.retrieval.memory_store import InMemoryDocumentStore
from docchat.retrieval.models import SearchHit, SearchResponse
from docchat.retrieval.retriever import DocumentSearcher
from tests.fakes import add_document


@pytest.fixture()
def tools(memory_store: InMemoryDocumentStore, gateway: EmbeddingGateway) -> RetrievalTools:
    return RetrievalTools(DocumentSearcher(memory_store, gateway), memory_store, result_limit=3)


def _hit(i: int, text: str, filename: str = "terms.pdf") -> SearchHit:
    return SearchHit(id=f"d_{i}", chunk_text=text, document_id="d", chunk_index=i, filename=filename)


# ── Schemas ─────────────────────────────────────────────────────────────


class TestSchemas:
    def test_two_tools(self) -> None:
        assert [s["function"]["name"] for s in TOOL_SCHEMAS] == ["list_available_files", "search_documents"]

    def test_search_requires_only_query(self) -> None:
        params = TOOL_SCHEMAS[1]["function"]["parameters"]
        assert params["required"] == ["query"]
        assert "documentId" not in params["properties"]


# ── parse_tool_invocation ───────────────────────────────────────────────


class TestParseToolInvocation:
    def test_search_call(self) -> None:
        invocation = parse_tool_invocation("search_documents", {"query": "refund"}, "c1")
        assert invocation == SearchDocumentsCall(call_id="c1", query="refund")

    def test_list_call_ignores_extra_args(self) -> None:
        invocation = parse_tool_invocation("list_available_files", {"verbose": True}, "c2")
        assert isinstance(invocation, ListAvailableFilesCall)

    def test_list_call_without_args(self) -> None:
        assert isinstance(parse_tool_invocation("list_available_files", None, "c3"), ListAvailableFilesCall)

    def test_routing_fields_are_stripped(self) -> None:
        invocation = parse_tool_invocation(
            "search_documents",
            {"query": "refund", "documentId": "other-doc", "document_id": "x", "call_id": "spoof"},
            "c4",
        )
        assert invocation.call_id == "c4"
        assert not hasattr(invocation, "documentId")

    def test_unknown_tool(self) -> None:
        with pytest.raises(ModelProtocolError, match="Unknown tool"):
            parse_tool_invocation("delete_everything", {}, "c5")

    def test_missing_query(self) -> None:
        with pytest.raises(ModelProtocolError, match="Invalid arguments"):
            parse_tool_invocation("search_documents", {}, "c6")


# ── list_available_files ────────────────────────────────────────────────


class TestListAvailableFiles:
    def test_no_files(self, tools: RetrievalTools) -> None:
        assert tools.list_available_files() == NO_FILES_MESSAGE

    def test_comma_joined_in_insertion_order(
        self, tools: RetrievalTools, memory_store: InMemoryDocumentStore, gateway: EmbeddingGateway
    ) -> None:
        add_document(memory_store, gateway, "terms.pdf", ["refund"])
        add_document(memory_store, gateway, "notes.docx", ["shipping"])
        assert tools.list_available_files() == "terms.pdf, notes.docx"


# ── search_documents ────────────────────────────────────────────────────


class TestSearchDocuments:
    def test_formats_blocks(
        self, tools: RetrievalTools, memory_store: InMemoryDocumentStore, gateway: EmbeddingGateway
    ) -> None:
        doc_id = add_document(memory_store, gateway, "terms.pdf", ["Refunds are issued within 30 days."])
        assert tools.search_documents("refund", doc_id) == (
            "File: terms.pdf\nContent: Refunds are issued within 30 days."
        )

    def test_at_most_three_blocks(self) -> None:
        searcher = MagicMock(spec=DocumentSearcher)
        searcher.search.return_value = SearchResponse(results=[_hit(i, f"text {i}") for i in range(5)])
        tools = RetrievalTools(searcher, MagicMock(), result_limit=3)

        text = tools.search_documents("q", "d")

        assert text.split("\n\n---\n\n") == [
            "File: terms.pdf\nContent: text 0",
            "File: terms.pdf\nContent: text 1",
            "File: terms.pdf\nContent: text 2",
        ]

    def test_no_results_sentinel(self, tools: RetrievalTools) -> None:
        assert tools.search_documents("refund", "unknown-doc") == NO_RELEVANT_INFO_MESSAGE

    def test_unranked_results_are_labelled(self) -> None:
        searcher = MagicMock(spec=DocumentSearcher)
        searcher.search.return_value = SearchResponse(results=[_hit(0, "first")], fallback=True)
        text = RetrievalTools(searcher, MagicMock()).search_documents("q", "d")
        assert text.startswith(UNRANKED_NOTE)
        assert text.endswith("File: terms.pdf\nContent: first")


# ── execute ─────────────────────────────────────────────────────────────


class TestExecute:
    def test_search_is_pinned_to_bound_document(self) -> None:
        searcher = MagicMock(spec=DocumentSearcher)
        searcher.search.return_value = SearchResponse()
        tools = RetrievalTools(searcher, MagicMock())
        invocation = parse_tool_invocation("search_documents", {"query": "q", "documentId": "doc-B"}, "c")

        tools.execute(invocation, "doc-A")

        searcher.search.assert_called_once_with("q", "doc-A")

    def test_list_files(self, tools: RetrievalTools) -> None:
        assert tools.execute(ListAvailableFilesCall(call_id="c"), "doc-A") == NO_FILES_MESSAGE

    def test_failures_are_wrapped(self) -> None:
        store = MagicMock()
        store.list_documents.side_effect = ConnectionError("store offline")
        tools = RetrievalTools(MagicMock(spec=DocumentSearcher), store)
        with pytest.raises(ToolExecutionError, match="store offline"):
            tools.execute(ListAvailableFilesCall(call_id="c"), "doc-A")
