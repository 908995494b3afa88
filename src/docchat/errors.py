"""Error taxonomy shared by the ingestion, retrieval and chat layers.

Every error carries the pipeline ``stage`` it originated from so that the
HTTP layer can report *where* an upload or chat turn failed without
exposing provider stack traces.
"""

from __future__ import annotations


class DocChatError(Exception):
    """Base class for all expected failures.

    Parameters
    ----------
    message:
        Human-readable description, safe to return to callers.
    stage:
        Pipeline stage that failed (``"extract"``, ``"embed"``, ``"search"`` …).
    """

    status_code: int = 500
    default_stage: str = "unknown"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage

    def __str__(self) -> str:
        return self.message


class ConfigurationError(DocChatError):
    """Invalid static configuration (e.g. chunk overlap >= chunk size)."""

    default_stage = "configure"


class ValidationError(DocChatError):
    """Missing or malformed request fields. Never retried."""

    status_code = 400
    default_stage = "validate"


class ExtractionError(DocChatError):
    """Document is unreadable, empty or image-only. Terminal for the upload."""

    status_code = 422
    default_stage = "extract"


class EmbeddingProviderError(DocChatError):
    """The embedding provider failed and no fallback applies."""

    status_code = 502
    default_stage = "embed"


class StoreError(DocChatError):
    """Insert or query failure in the document store."""

    default_stage = "persist"


class EmbeddingStrategyMismatchError(StoreError):
    """Query vector was produced by a different strategy than the stored chunks."""

    status_code = 409
    default_stage = "search"


class ToolExecutionError(DocChatError):
    """A retrieval tool failed. Fed back to the model, never raised to callers."""

    default_stage = "tool"


class ModelProtocolError(DocChatError):
    """The model requested an unknown tool or emitted unusable call syntax."""

    default_stage = "tool"


class LanguageModelError(DocChatError):
    """The chat model provider failed or timed out."""

    status_code = 502
    default_stage = "chat"
