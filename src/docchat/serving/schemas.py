"""Request / response schemas of the HTTP API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts and emits camelCase field names (``documentId``, ``toolsUsed``)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Chat ──────────────────────────────────────────────────────────────
class HistoryTurn(BaseModel):
    """One prior turn.  Fields other than role / content are dropped."""

    model_config = ConfigDict(extra="ignore")

    role: Literal["user", "assistant", "system", "tool"]
    content: str | None = ""


class ChatRequest(CamelModel):
    message: str
    history: list[HistoryTurn] = Field(default_factory=list)
    document_id: str


class ChatResponse(CamelModel):
    success: bool = True
    message: str
    tools_used: list[str] = Field(default_factory=list)


# ── Upload ────────────────────────────────────────────────────────────
class UploadResponse(CamelModel):
    success: bool = True
    document_id: str
    filename: str
    chunk_count: int | None = None
    skipped: bool | None = None
    message: str | None = None


# ── Tool endpoints ────────────────────────────────────────────────────
class DocumentSummary(BaseModel):
    id: str
    filename: str


class ListFilesResponse(BaseModel):
    success: bool = True
    documents: list[DocumentSummary] = Field(default_factory=list)


class SearchRequest(CamelModel):
    query: str
    document_id: str


class OwningDocument(BaseModel):
    filename: str


class SearchResultItem(BaseModel):
    id: str
    chunk_text: str
    document_id: str
    similarity: float | None = None
    documents: OwningDocument


class SearchResponseBody(BaseModel):
    success: bool = True
    results: list[SearchResultItem] = Field(default_factory=list)
    fallback: bool | None = None


# ── Errors ────────────────────────────────────────────────────────────
class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    stage: str | None = None
