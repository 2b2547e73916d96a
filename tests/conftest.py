import io
import os
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional

# Keep test runs from writing app_log.log into the working directory.
os.environ.setdefault("LOG_FILE_PATH_STR", "")

import docx
import pytest

from client_base import BaseModelClient
from config import AppSettings
from exceptions import CacheCreationError
from models import CacheHandle, ContentPart, RemoteReference

SCHEMA = {
    "type": "object",
    "properties": {"productName": {"type": "string"}, "premiumAmount": {"type": "number"}},
}
PROMPT = "You are a financial document analyst. Extract the calculator fields."


class FakeModelClient(BaseModelClient):
    """In-memory stand-in for the Gemini backend that records every call."""

    def __init__(self) -> None:
        self.uploads: List[Dict[str, Any]] = []
        self.upload_error: Optional[Exception] = None
        self.cache_prompts: List[str] = []
        self.cache_error: Optional[Exception] = None
        self.cache_name = "cachedContents/ilp-rules-1"
        self.deleted_caches: List[str] = []
        self.generate_calls: List[Dict[str, Any]] = []
        self.generate_error: Optional[Exception] = None
        self.response_text = '{"productName": "Wealth Builder", "premiumAmount": 1200}'

    async def upload_file(self, path: Path, mime_type: str) -> RemoteReference:
        self.uploads.append({
            "path": path,
            "mime_type": mime_type,
            "existed": path.exists(),
            "size": path.stat().st_size if path.exists() else None,
        })
        if self.upload_error is not None:
            raise self.upload_error
        return RemoteReference(
            uri=f"https://generativelanguage.googleapis.com/v1beta/files/f{len(self.uploads)}",
            mime_type=mime_type,
        )

    async def create_cache(self, prompt: str) -> CacheHandle:
        self.cache_prompts.append(prompt)
        if self.cache_error is not None:
            raise self.cache_error
        return CacheHandle(name=self.cache_name)

    async def delete_cache(self, handle: CacheHandle) -> None:
        self.deleted_caches.append(handle.name)

    async def generate(
        self,
        *,
        parts: List[ContentPart],
        schema: Dict[str, Any],
        cache: Optional[CacheHandle] = None,
        system_instruction: Optional[str] = None,
    ) -> str:
        self.generate_calls.append({
            "parts": parts,
            "schema": schema,
            "cache": cache,
            "system_instruction": system_instruction,
        })
        if self.generate_error is not None:
            raise self.generate_error
        return self.response_text


@pytest.fixture()
def fake_client() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture()
def app_settings(tmp_path: Path) -> AppSettings:
    """Settings pointing every file path into a per-test directory."""
    schema_path = tmp_path / "schema.json"
    schema_path.write_text('{"type": "object", "properties": {"productName": {"type": "string"}, '
                           '"premiumAmount": {"type": "number"}}}', encoding="utf-8")
    prompt_path = tmp_path / "prompt.txt"
    prompt_path.write_text(PROMPT, encoding="utf-8")
    return AppSettings(
        _env_file=None,
        GEMINI_API_KEY="test-key",
        MODEL="gemini-2.5-flash",
        MAX_INLINE_BYTES=14 * 1024 * 1024,
        TEMP_DIR_PATH_STR=str(tmp_path / "temp_processing"),
        CACHE_META_PATH_STR=str(tmp_path / ".cache.json"),
        SCHEMA_PATH_STR=str(schema_path),
        PROMPT_PATH_STR=str(prompt_path),
        LOG_FILE_PATH_STR="",
        HEALTH_PING_URL=None,
    )


@pytest.fixture()
def failing_cache_client(fake_client: FakeModelClient) -> FakeModelClient:
    fake_client.cache_error = CacheCreationError("RESOURCE_EXHAUSTED: quota exceeded")
    return fake_client


def make_docx_bytes(*paragraphs: str) -> bytes:
    document = docx.Document()
    for text in paragraphs:
        document.add_paragraph(text)
    buf = io.BytesIO()
    document.save(buf)
    return buf.getvalue()


@pytest.fixture()
def sample_docx_bytes() -> bytes:
    """A small .docx with policy text surrounded by blank paragraphs."""
    return make_docx_bytes("", "  Policy: Wealth Builder  ", "Annual premium: SGD 1,200", "")


@pytest.fixture()
def blank_docx_bytes() -> bytes:
    return make_docx_bytes("", "   ", "\t")


@pytest.fixture()
def spreadsheet_ooxml_bytes() -> bytes:
    """A valid OOXML package whose main part is a workbook, not a Word document."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        archive.writestr(
            "[Content_Types].xml",
            '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
            '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
            '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
            '<Default Extension="xml" ContentType="application/xml"/>'
            '<Override PartName="/xl/workbook.xml" '
            'ContentType="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet.main+xml"/>'
            "</Types>",
        )
        archive.writestr(
            "_rels/.rels",
            '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
            '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
            '<Relationship Id="rId1" '
            'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument" '
            'Target="xl/workbook.xml"/>'
            "</Relationships>",
        )
        archive.writestr(
            "xl/workbook.xml",
            '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
            '<workbook xmlns="http://schemas.openxmlformats.org/spreadsheetml/2006/main"/>',
        )
    return buf.getvalue()
