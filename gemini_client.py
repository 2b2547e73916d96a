# gemini_client.py
import base64
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from client_base import BaseModelClient
from config import AppSettings, SYSTEM_INSTRUCTION
from exceptions import CacheCreationError, MissingCredentialError, ModelBackendError
from models import CacheHandle, ContentPart, InlineData, RemoteReference, TextSegment
from utils import log

# Transport and SDK failures that are wrapped into our own taxonomy
_BACKEND_ERRORS = (genai_errors.APIError, httpx.HTTPError, OSError)


def to_genai_part(part: ContentPart) -> types.Part:
    """Converts one of our content parts into a google-genai Part."""
    if isinstance(part, InlineData):
        return types.Part.from_bytes(data=base64.b64decode(part.data), mime_type=part.mime_type)
    if isinstance(part, RemoteReference):
        return types.Part.from_uri(file_uri=part.uri, mime_type=part.mime_type)
    if isinstance(part, TextSegment):
        return types.Part.from_text(text=part.text)
    raise TypeError(f"Unknown content part: {type(part).__name__}")


class GeminiClient(BaseModelClient):
    """
    Adapter over the google-genai async client.
    The underlying client is created on first use so the service can start
    (and report health) without an API key configured.
    """

    def __init__(self, app_settings: AppSettings):
        self._settings = app_settings
        self._client: Optional[genai.Client] = None

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self._settings.GEMINI_API_KEY:
                raise MissingCredentialError()
            log.info(f"Initializing Gemini client for model='{self._settings.MODEL}'")
            self._client = genai.Client(api_key=self._settings.GEMINI_API_KEY)
        return self._client

    async def upload_file(self, path: Path, mime_type: str) -> RemoteReference:
        log.info(f"Uploading {path.name} ({mime_type}) to the Gemini Files API")
        try:
            uploaded = await self.client.aio.files.upload(
                file=str(path),
                config=types.UploadFileConfig(mime_type=mime_type, display_name=path.name),
            )
        except _BACKEND_ERRORS as e:
            log.error(f"File upload failed for {path.name}: {type(e).__name__} - {e}")
            raise ModelBackendError(f"File upload failed: {e!s}") from e

        if not uploaded.uri:
            raise ModelBackendError(f"File upload for {path.name} returned no URI")
        log.info(f"Uploaded {path.name} as {uploaded.uri}")
        return RemoteReference(uri=uploaded.uri, mime_type=uploaded.mime_type or mime_type)

    async def create_cache(self, prompt: str) -> CacheHandle:
        log.info(
            f"Creating prompt cache '{self._settings.CACHE_DISPLAY_NAME}' "
            f"(ttl={self._settings.CACHE_TTL_SECONDS}s)"
        )
        try:
            created = await self.client.aio.caches.create(
                model=self._settings.MODEL,
                config=types.CreateCachedContentConfig(
                    display_name=self._settings.CACHE_DISPLAY_NAME,
                    system_instruction=SYSTEM_INSTRUCTION,
                    contents=[types.Content(role="user", parts=[types.Part.from_text(text=prompt)])],
                    ttl=f"{self._settings.CACHE_TTL_SECONDS}s",
                ),
            )
        except (MissingCredentialError,) + _BACKEND_ERRORS as e:
            raise CacheCreationError(f"{type(e).__name__}: {e!s}") from e

        if not created.name:
            raise CacheCreationError("Cache creation returned no name")
        return CacheHandle(name=created.name)

    async def delete_cache(self, handle: CacheHandle) -> None:
        try:
            await self.client.aio.caches.delete(name=handle.name)
        except _BACKEND_ERRORS as e:
            raise ModelBackendError(f"Cache deletion failed: {e!s}") from e

    async def generate(
        self,
        *,
        parts: List[ContentPart],
        schema: Dict[str, Any],
        cache: Optional[CacheHandle] = None,
        system_instruction: Optional[str] = None,
    ) -> str:
        # A cached context already carries the system instruction; the API
        # rejects requests that set both.
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
            cached_content=cache.name if cache else None,
            system_instruction=None if cache else system_instruction,
        )
        contents = [types.Content(role="user", parts=[to_genai_part(p) for p in parts])]

        try:
            log.debug(f"Sending generate_content request with {len(parts)} parts (cached={cache is not None})")
            response = await self.client.aio.models.generate_content(
                model=self._settings.MODEL,
                contents=contents,
                config=config,
            )
        except _BACKEND_ERRORS as e:
            log.error(f"Gemini generate_content failed: {type(e).__name__} - {e}")
            raise ModelBackendError(f"Gemini API Error: {e!s}") from e

        return response.text or ""
