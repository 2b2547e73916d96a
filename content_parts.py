# content_parts.py
import asyncio
import base64
import io
import mimetypes
import time
import uuid
import zipfile
from contextlib import asynccontextmanager
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, List

import docx
from docx.opc.exceptions import PackageNotFoundError

from client_base import BaseModelClient
from config import AppSettings, DOCX_MIME_TYPE, MEDIA_MIME_TYPES, TEXT_MIME_TYPES
from exceptions import EmptyDocumentError, UnsupportedTypeError
from models import ContentPart, InlineData, TextSegment, UploadedDocument
from utils import clean_filename, log

_GENERIC_MIME_TYPES = {"", "application/octet-stream"}


class IngestionStrategy(str, Enum):
    INLINE = "inline"          # media sent as base64
    TEXT = "text"              # small text decoded to a text part
    REMOTE = "remote"          # anything large, via the Files API
    DOCX_TEXT = "docx_text"    # word document, text extracted locally
    UNSUPPORTED = "unsupported"


def normalize_mime_type(declared: str, filename: str = "") -> str:
    """Strips parameters from a MIME type and guesses one from the filename when generic."""
    mime_type = (declared or "").split(";", 1)[0].strip().lower()
    if mime_type in _GENERIC_MIME_TYPES and filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed:
            log.debug(f"Guessed MIME type {guessed} for '{filename}' (declared '{declared}')")
            return guessed
    return mime_type


def classify(mime_type: str, size_bytes: int, inline_threshold: int) -> IngestionStrategy:
    """Picks the ingestion strategy for a file. First matching category wins."""
    is_small = size_bytes <= inline_threshold
    if mime_type in MEDIA_MIME_TYPES:
        return IngestionStrategy.INLINE if is_small else IngestionStrategy.REMOTE
    if mime_type in TEXT_MIME_TYPES:
        return IngestionStrategy.TEXT if is_small else IngestionStrategy.REMOTE
    if mime_type == DOCX_MIME_TYPE:
        return IngestionStrategy.DOCX_TEXT
    return IngestionStrategy.UNSUPPORTED


def extract_docx_text(data: bytes) -> str:
    """Returns the raw text of a .docx: paragraphs, then table cells, one per line."""
    document = docx.Document(io.BytesIO(data))
    lines = [p.text for p in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            lines.append("\t".join(cell.text for cell in row.cells))
    return "\n".join(lines)


def _write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


class ContentPartBuilder:
    """Turns an uploaded document into the content parts of one model request."""

    def __init__(self, app_settings: AppSettings, client: BaseModelClient):
        self._settings = app_settings
        self._client = client

    def temp_path_for(self, original_name: str) -> Path:
        """Unique per-request temp path, safe under concurrent uploads of the same name."""
        unique = f"{time.time_ns()}_{uuid.uuid4().hex[:8]}_{clean_filename(original_name)}"
        return self._settings.TEMP_DIR / unique

    @asynccontextmanager
    async def scoped_temp_file(self, document: UploadedDocument) -> AsyncIterator[Path]:
        """Writes the document to a temp file and removes it on every exit path."""
        temp_path = self.temp_path_for(document.original_name)
        try:
            await asyncio.to_thread(_write_bytes, temp_path, document.data)
            log.debug(f"Wrote {document.size_bytes} bytes to temporary file {temp_path}")
            yield temp_path
        finally:
            try:
                temp_path.unlink(missing_ok=True)
                log.debug(f"Cleaned up temporary file: {temp_path}")
            except OSError as e:
                log.error(f"Error cleaning up file {temp_path}: {e}")

    async def build_parts(self, document: UploadedDocument) -> List[ContentPart]:
        """
        Classifies the document and produces exactly one content part for it.

        Raises:
            UnsupportedTypeError: the MIME type is not in any accepted category.
            EmptyDocumentError: a .docx yielded no text.
            ModelBackendError: the remote upload of a large file failed.
        """
        mime_type = normalize_mime_type(document.mime_type, document.original_name)
        strategy = classify(mime_type, document.size_bytes, self._settings.MAX_INLINE_BYTES)
        log.info(
            f"Classified '{document.original_name}' ({mime_type}, {document.size_bytes} bytes) as {strategy.value}"
        )

        if strategy is IngestionStrategy.INLINE:
            encoded = base64.b64encode(document.data).decode("ascii")
            return [InlineData(mime_type=mime_type, data=encoded)]

        if strategy is IngestionStrategy.TEXT:
            return [TextSegment(text=document.data.decode("utf-8", errors="replace"))]

        if strategy is IngestionStrategy.REMOTE:
            async with self.scoped_temp_file(document) as temp_path:
                reference = await self._client.upload_file(temp_path, mime_type)
            return [reference]

        if strategy is IngestionStrategy.DOCX_TEXT:
            try:
                text = (await asyncio.to_thread(extract_docx_text, document.data)).strip()
            except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
                log.error(f"Could not read '{document.original_name}' as a .docx: {e}")
                raise EmptyDocumentError(
                    f"'{document.original_name}' could not be read as a .docx document."
                ) from e
            if not text:
                raise EmptyDocumentError(
                    f"No text could be extracted from '{document.original_name}'. "
                    "Convert it to PDF and try again."
                )
            return [TextSegment(text=text)]

        if strategy is IngestionStrategy.UNSUPPORTED:
            log.warning(f"Unsupported file type: {mime_type} for file {document.original_name}")
            raise UnsupportedTypeError(mime_type, self._settings.SUPPORTED_MIME_TYPES)

        raise AssertionError(f"Unhandled ingestion strategy: {strategy}")
