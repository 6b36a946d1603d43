"""File-backed store for already-extracted document text.

Document-to-text conversion happens upstream; this store only keeps the text
under an opaque reference so a search request can point at it.
"""

import asyncio
import logging
import re
import uuid
from pathlib import Path

from app.config import settings

logger = logging.getLogger(__name__)

_REFERENCE_RE = re.compile(r"^[0-9a-f]{32}$")


class DocumentStore:
    """Stores one UTF-8 text file per reference under ``directory``."""

    def __init__(self, directory: str | Path | None = None):
        self.directory = Path(directory or settings.documents_dir)

    def _path(self, reference: str) -> Path | None:
        if not _REFERENCE_RE.match(reference or ""):
            return None
        return self.directory / f"{reference}.txt"

    async def put_text(self, text: str) -> str:
        reference = uuid.uuid4().hex
        path = self._path(reference)
        await asyncio.to_thread(self._write, path, text)
        logger.info("Document stored | ref=%s | chars=%d", reference, len(text))
        return reference

    async def get_text(self, reference: str) -> str | None:
        """Return the stored text, or None when the document is gone."""
        path = self._path(reference)
        if path is None:
            logger.warning("Document reference rejected | ref=%s", str(reference)[:40])
            return None
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            logger.info("Document missing | ref=%s", reference)
            return None

    async def exists(self, reference: str) -> bool:
        path = self._path(reference)
        return path is not None and await asyncio.to_thread(path.is_file)

    async def delete(self, reference: str) -> bool:
        path = self._path(reference)
        if path is None:
            return False
        try:
            await asyncio.to_thread(path.unlink)
            logger.info("Document deleted | ref=%s", reference)
            return True
        except FileNotFoundError:
            return False

    def _write(self, path: Path, text: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


# Singleton instance
document_store = DocumentStore()
