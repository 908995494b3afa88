"""Local file storage for uploaded originals."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from docchat.errors import StoreError

logger = logging.getLogger(__name__)


class LocalFileStorage:
    """Stores each upload under ``<root>/<document_id>/<filename>``.

    The returned storage reference is the path relative to *root*.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def save(self, document_id: str, filename: str, data: bytes) -> str:
        """Write *data* and return its storage reference."""
        safe_name = Path(filename).name
        ref = f"{document_id}/{safe_name}"
        target = self.root / ref
        try:
            target.parent.mkdir(parents=True, exist_ok=False)
            target.write_bytes(data)
        except OSError as exc:
            raise StoreError(f"Failed to upload file: {exc}", stage="store_file") from exc
        logger.info("Stored %d bytes at %s", len(data), target)
        return ref

    def path_for(self, ref: str) -> Path:
        return self.root / ref

    def delete(self, ref: str) -> None:
        """Remove a stored upload and its per-document directory."""
        shutil.rmtree(self.path_for(ref).parent, ignore_errors=True)
