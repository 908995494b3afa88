"""Text extraction — thin wrappers around LangChain document loaders."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from langchain_community.document_loaders import Docx2txtLoader, PyPDFLoader

from docchat.errors import ExtractionError, ValidationError

if TYPE_CHECKING:
    from langchain_core.documents import Document

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ("pdf", "docx")

# PDFs yielding less text than this are treated as scanned / image-only.
MIN_PDF_TEXT_LENGTH = 10


def file_extension(filename: str) -> str:
    """Return the lower-cased extension of *filename* without the dot."""
    return Path(filename).suffix.lower().lstrip(".")


def content_type_for(filename: str) -> str:
    """Map *filename* to ``"pdf"`` or ``"docx"``.

    Raises
    ------
    ValidationError
        For any other extension.
    """
    extension = file_extension(filename)
    if extension not in SUPPORTED_EXTENSIONS:
        raise ValidationError("Only PDF and DOCX files are supported")
    return extension


def load_pdf(path: str | Path) -> list[Document]:
    """Load a single PDF file, one document per page."""
    return PyPDFLoader(str(path)).load()


def load_docx(path: str | Path) -> list[Document]:
    """Load a single DOCX file."""
    return Docx2txtLoader(str(path)).load()


def extract_text(path: str | Path, filename: str | None = None) -> str:
    """Extract the plain text of a stored PDF or DOCX file.

    Parameters
    ----------
    path:
        Location of the stored file.
    filename:
        Original upload name, used to pick the loader.  Defaults to the
        name component of *path*.

    Raises
    ------
    ExtractionError
        If the loader fails or the document contains no usable text.
    """
    content_type = content_type_for(filename or Path(path).name)
    try:
        pages = load_pdf(path) if content_type == "pdf" else load_docx(path)
    except Exception as exc:
        logger.exception("Text extraction failed for %s", path)
        raise ExtractionError(
            f"Failed to extract text from {content_type.upper()}: {exc}"
        ) from exc

    text = "\n".join(page.page_content for page in pages).strip()

    if content_type == "pdf" and len(text) < MIN_PDF_TEXT_LENGTH:
        raise ExtractionError("PDF appears to be empty or image-based (scanned PDF).")
    if not text:
        raise ExtractionError("No text could be extracted from the document")

    logger.info("Extracted %d characters from %s", len(text), path)
    return text
