"""Unit tests for text extraction, file storage and the ingestion pipeline."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from langchain_core.documents import Document

from docchat.errors import EmbeddingProviderError, ExtractionError, StoreError, ValidationError
from docchat.ingestion.embedder import EmbeddingGateway
from docchat.ingestion.loader import content_type_for, extract_text, file_extension
from docchat.ingestion.pipeline import IngestionPipeline
from docchat.ingestion.storage import LocalFileStorage
from docchat.retrieval.memory_store import InMemoryDocumentStore
from tests.fakes import BrokenEmbeddings

TERMS_TEXT = "Refund policy: refunds are issued within 30 days. " * 30


def _extractor(text: str = TERMS_TEXT) -> MagicMock:
    return MagicMock(return_value=text)


@pytest.fixture()
def file_storage(tmp_path: Path) -> LocalFileStorage:
    return LocalFileStorage(tmp_path / "uploads")


@pytest.fixture()
def pipeline(
    memory_store: InMemoryDocumentStore, gateway: EmbeddingGateway, file_storage: LocalFileStorage
) -> IngestionPipeline:
    return IngestionPipeline(
        memory_store, gateway, file_storage, extractor=_extractor(), chunk_size=200, chunk_overlap=50
    )


def _stored_files(storage: LocalFileStorage) -> list[Path]:
    if not storage.root.exists():
        return []
    return [p for p in storage.root.rglob("*") if p.is_file()]


# ── Loader ──────────────────────────────────────────────────────────────


class TestLoader:
    @pytest.mark.parametrize(
        ("filename", "expected"),
        [("a.pdf", "pdf"), ("REPORT.PDF", "pdf"), ("notes.DocX", "docx")],
    )
    def test_supported_types(self, filename: str, expected: str) -> None:
        assert content_type_for(filename) == expected

    @pytest.mark.parametrize("filename", ["a.txt", "a.doc", "pdf", "archive.pdf.zip"])
    def test_unsupported_types(self, filename: str) -> None:
        with pytest.raises(ValidationError, match="Only PDF and DOCX files are supported"):
            content_type_for(filename)

    def test_file_extension(self) -> None:
        assert file_extension("a.b.Docx") == "docx"
        assert file_extension("noext") == ""

    @patch("docchat.ingestion.loader.load_pdf")
    def test_pdf_pages_are_joined(self, mock_load: MagicMock) -> None:
        mock_load.return_value = [Document(page_content="Page one."), Document(page_content="Page two.")]
        assert extract_text("/tmp/x/report.pdf") == "Page one.\nPage two."

    @patch("docchat.ingestion.loader.load_pdf")
    def test_scanned_pdf_rejected(self, mock_load: MagicMock) -> None:
        mock_load.return_value = [Document(page_content="  ")]
        with pytest.raises(ExtractionError, match="scanned"):
            extract_text("/tmp/x/scan.pdf")

    @patch("docchat.ingestion.loader.load_docx")
    def test_empty_docx_rejected(self, mock_load: MagicMock) -> None:
        mock_load.return_value = [Document(page_content="")]
        with pytest.raises(ExtractionError):
            extract_text("/tmp/x/blank.docx")

    @patch("docchat.ingestion.loader.load_docx")
    def test_filename_overrides_path_name(self, mock_load: MagicMock) -> None:
        mock_load.return_value = [Document(page_content="hello")]
        assert extract_text("/tmp/x/blob", "letter.docx") == "hello"

    @patch("docchat.ingestion.loader.load_pdf", side_effect=RuntimeError("EOF marker not found"))
    def test_loader_failure_wrapped(self, _mock_load: MagicMock) -> None:
        with pytest.raises(ExtractionError, match="Failed to extract text from PDF"):
            extract_text("/tmp/x/broken.pdf")


# ── LocalFileStorage ────────────────────────────────────────────────────


class TestLocalFileStorage:
    def test_save_and_delete(self, file_storage: LocalFileStorage) -> None:
        ref = file_storage.save("doc-1", "terms.pdf", b"%PDF")
        assert ref == "doc-1/terms.pdf"
        assert file_storage.path_for(ref).read_bytes() == b"%PDF"
        file_storage.delete(ref)
        assert not file_storage.path_for(ref).parent.exists()

    def test_path_components_are_stripped(self, file_storage: LocalFileStorage) -> None:
        ref = file_storage.save("doc-1", "../../etc/passwd.pdf", b"x")
        assert ref == "doc-1/passwd.pdf"

    def test_existing_document_directory_fails(self, file_storage: LocalFileStorage) -> None:
        file_storage.save("doc-1", "a.pdf", b"x")
        with pytest.raises(StoreError):
            file_storage.save("doc-1", "b.pdf", b"y")


# ── IngestionPipeline ───────────────────────────────────────────────────


class TestIngestionPipeline:
    def test_ingest_stores_document_and_chunks(
        self, pipeline: IngestionPipeline, memory_store: InMemoryDocumentStore, file_storage: LocalFileStorage
    ) -> None:
        result = pipeline.ingest("terms.pdf", b"%PDF-1.4")

        assert result.skipped is False
        assert result.chunk_count is not None and result.chunk_count > 1
        document = memory_store.get_document(result.document_id)
        assert document is not None
        assert document.filename == "terms.pdf"
        assert document.content_type == "pdf"
        assert document.chunk_count == result.chunk_count
        assert document.embedding_strategy == "hf:keyword-test"
        assert memory_store.chunk_count(result.document_id) == result.chunk_count
        assert file_storage.path_for(document.storage_ref).read_bytes() == b"%PDF-1.4"

    def test_same_filename_is_skipped(
        self, pipeline: IngestionPipeline, memory_store: InMemoryDocumentStore, file_storage: LocalFileStorage
    ) -> None:
        first = pipeline.ingest("terms.pdf", b"one")
        second = pipeline.ingest("terms.pdf", b"two")

        assert second.skipped is True
        assert second.document_id == first.document_id
        assert second.chunk_count is None
        assert memory_store.chunk_count(first.document_id) == first.chunk_count
        assert len(memory_store.list_documents()) == 1
        assert len(_stored_files(file_storage)) == 1

    def test_unsupported_extension_stores_nothing(
        self, pipeline: IngestionPipeline, memory_store: InMemoryDocumentStore, file_storage: LocalFileStorage
    ) -> None:
        with pytest.raises(ValidationError):
            pipeline.ingest("notes.txt", b"hello")
        assert memory_store.list_documents() == []
        assert _stored_files(file_storage) == []

    def test_missing_filename(self, pipeline: IngestionPipeline) -> None:
        with pytest.raises(ValidationError, match="No file provided"):
            pipeline.ingest("", b"data")

    def test_extraction_failure_rolls_back(
        self, memory_store: InMemoryDocumentStore, gateway: EmbeddingGateway, file_storage: LocalFileStorage
    ) -> None:
        extractor = MagicMock(side_effect=ExtractionError("PDF appears to be empty or image-based (scanned PDF)."))
        pipeline = IngestionPipeline(memory_store, gateway, file_storage, extractor=extractor)

        with pytest.raises(ExtractionError) as exc_info:
            pipeline.ingest("scan.pdf", b"%PDF")

        assert exc_info.value.stage == "extract"
        assert memory_store.list_documents() == []
        assert _stored_files(file_storage) == []

    def test_blank_text_rejected(
        self, memory_store: InMemoryDocumentStore, gateway: EmbeddingGateway, file_storage: LocalFileStorage
    ) -> None:
        pipeline = IngestionPipeline(memory_store, gateway, file_storage, extractor=_extractor("   "))
        with pytest.raises(ExtractionError):
            pipeline.ingest("blank.docx", b"PK")
        assert _stored_files(file_storage) == []

    def test_chunk_insert_failure_leaves_nothing_visible(
        self,
        memory_store: InMemoryDocumentStore,
        gateway: EmbeddingGateway,
        file_storage: LocalFileStorage,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(memory_store, "insert_chunks", MagicMock(side_effect=StoreError("write failed")))
        pipeline = IngestionPipeline(memory_store, gateway, file_storage, extractor=_extractor())

        with pytest.raises(StoreError):
            pipeline.ingest("terms.pdf", b"%PDF")

        assert memory_store.get_document_by_filename("terms.pdf") is None
        assert _stored_files(file_storage) == []

    def test_document_insert_failure_removes_chunks(
        self,
        memory_store: InMemoryDocumentStore,
        gateway: EmbeddingGateway,
        file_storage: LocalFileStorage,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(memory_store, "insert_document", MagicMock(side_effect=ConnectionError("lost")))
        pipeline = IngestionPipeline(memory_store, gateway, file_storage, extractor=_extractor())

        with pytest.raises(StoreError, match="lost"):
            pipeline.ingest("terms.pdf", b"%PDF")

        assert memory_store._chunks == {}
        assert _stored_files(file_storage) == []

    def test_provider_down_uses_fallback_strategy(
        self, memory_store: InMemoryDocumentStore, file_storage: LocalFileStorage
    ) -> None:
        gateway = EmbeddingGateway(BrokenEmbeddings, model_name="broken", fallback_dim=32)
        pipeline = IngestionPipeline(memory_store, gateway, file_storage, extractor=_extractor())

        result = pipeline.ingest("terms.pdf", b"%PDF")

        assert memory_store.get_document(result.document_id).embedding_strategy == "hash-v1:32"

    def test_provider_down_without_fallback_fails_cleanly(
        self, memory_store: InMemoryDocumentStore, file_storage: LocalFileStorage
    ) -> None:
        gateway = EmbeddingGateway(BrokenEmbeddings, allow_fallback=False)
        pipeline = IngestionPipeline(memory_store, gateway, file_storage, extractor=_extractor())

        with pytest.raises(EmbeddingProviderError):
            pipeline.ingest("terms.pdf", b"%PDF")

        assert memory_store.list_documents() == []
        assert _stored_files(file_storage) == []

    def test_chunks_follow_window(
        self, pipeline: IngestionPipeline, memory_store: InMemoryDocumentStore
    ) -> None:
        result = pipeline.ingest("terms.pdf", b"%PDF")
        chunks = memory_store._chunks[result.document_id]
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert chunks[0].chunk_text == TERMS_TEXT[:200]
        assert chunks[1].chunk_text == TERMS_TEXT[150:350]
