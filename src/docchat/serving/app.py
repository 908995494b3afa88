"""FastAPI application exposing upload, chat and the retrieval tools."""

from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Callable
from typing import Any

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from docchat.config import Settings, settings as default_settings
from docchat.errors import DocChatError, ValidationError
from docchat.serving.schemas import (
    ChatRequest,
    ChatResponse,
    DocumentSummary,
    ErrorResponse,
    ListFilesResponse,
    OwningDocument,
    SearchRequest,
    SearchResponseBody,
    SearchResultItem,
    UploadResponse,
)
from docchat.serving.services import Services, build_services

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str, stage: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=message, stage=stage)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Convert any failure of a route into a structured error response.

    Expected errors keep their message and stage; anything else is logged
    with its traceback and reported with a generic message.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except DocChatError as exc:
            if exc.status_code >= 500:
                logger.error("%s failed at stage %s: %s", func.__name__, exc.stage, exc, exc_info=True)
            else:
                logger.warning("%s rejected at stage %s: %s", func.__name__, exc.stage, exc)
            return _error_response(exc.status_code, exc.message, exc.stage)
        except Exception:
            logger.exception("Unhandled error in %s", func.__name__)
            return _error_response(500, "Internal server error")

    return wrapper


def create_app(services: Services | None = None, config: Settings = default_settings) -> FastAPI:
    """Build the API.  *services* is created on first use when not given."""
    app = FastAPI(
        title="DocChat API",
        version="0.1.0",
        description="Upload PDF/DOCX documents and chat with them.",
    )
    app.state.services = services
    services_lock = threading.Lock()

    def get_services(request: Request) -> Services:
        """Shared services, built on first use inside the route error boundary."""
        if request.app.state.services is None:
            with services_lock:
                if request.app.state.services is None:
                    request.app.state.services = build_services(config)
        return request.app.state.services

    @app.exception_handler(RequestValidationError)
    async def _validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}" for err in exc.errors()
        )
        logger.warning("Invalid request to %s: %s", request.url.path, problems)
        return _error_response(400, f"Invalid request: {problems}", "validate")

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok"}

    @app.post("/api/upload", response_model=UploadResponse, response_model_exclude_none=True)
    @handle_errors
    def upload(
        request: Request,
        file: UploadFile | None = File(default=None),
    ) -> Any:
        """Ingest one PDF or DOCX file."""
        svc = get_services(request)
        if file is None or not file.filename:
            raise ValidationError("No file provided")
        result = svc.pipeline.ingest(file.filename, file.file.read())
        if result.skipped:
            return UploadResponse(
                document_id=result.document_id,
                filename=result.filename,
                skipped=True,
                message="Document already exists. Skipping processing.",
            )
        return UploadResponse(
            document_id=result.document_id,
            filename=result.filename,
            chunk_count=result.chunk_count,
        )

    @app.post("/api/chat", response_model=ChatResponse)
    @handle_errors
    def chat(request: Request, body: ChatRequest) -> Any:
        """Answer a question about the bound document."""
        svc = get_services(request)
        result = svc.orchestrator.chat(
            body.message,
            [turn.model_dump() for turn in body.history],
            body.document_id,
        )
        return ChatResponse(message=result.answer, tools_used=result.tools_used)

    @app.get("/api/tools/list-files", response_model=ListFilesResponse)
    @handle_errors
    def list_files(request: Request) -> Any:
        """Every uploaded document."""
        svc = get_services(request)
        documents = [DocumentSummary(id=d.id, filename=d.filename) for d in svc.store.list_documents()]
        return ListFilesResponse(documents=documents)

    @app.post("/api/tools/search", response_model=SearchResponseBody, response_model_exclude_none=True)
    @handle_errors
    def search(request: Request, body: SearchRequest) -> Any:
        """Nearest chunks of one document."""
        svc = get_services(request)
        if not body.query.strip():
            raise ValidationError("Query text is required")
        if not body.document_id.strip():
            raise ValidationError("documentId is required")
        response = svc.searcher.search(body.query, body.document_id)
        results = [
            SearchResultItem(
                id=hit.id,
                chunk_text=hit.chunk_text,
                document_id=hit.document_id,
                similarity=hit.similarity,
                documents=OwningDocument(filename=hit.filename),
            )
            for hit in response.results
        ]
        return SearchResponseBody(results=results, fallback=True if response.fallback else None)

    return app


app = create_app()


def main() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=default_settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=default_settings.api_host, port=default_settings.api_port)


if __name__ == "__main__":
    main()
