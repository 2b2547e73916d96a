# processing.py
import json
from typing import Any, List, Optional

from client_base import BaseModelClient
from config import AppSettings, SYSTEM_INSTRUCTION, TASK_INSTRUCTION
from content_parts import ContentPartBuilder
from exceptions import MissingCredentialError, MissingFileError, ModelOutputNotJsonError
from models import CacheHandle, ContentPart, ExtractionResult, TextSegment, UploadedDocument
from prompt_cache import PromptCacheManager
from prompt_loader import load_prompt, load_schema
from utils import log


def _strip_code_fences(text: str) -> str:
    """Removes a markdown code fence the model sometimes wraps JSON in."""
    stripped = text.strip()
    if stripped.startswith("```json"):
        stripped = stripped[7:]
    elif stripped.startswith("```"):
        stripped = stripped[3:]
    else:
        return stripped
    if stripped.endswith("```"):
        stripped = stripped[:-3]
    return stripped.strip()


def parse_model_json(text: str) -> Any:
    """
    Parses the model response as JSON.
    An empty response is read as an empty object.

    Raises:
        ModelOutputNotJsonError: carrying the exact raw text.
    """
    candidate = _strip_code_fences(text or "")
    if not candidate:
        candidate = "{}"
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as json_err:
        log.error(f"Failed to decode JSON response from Gemini. Error: {json_err}")
        log.error(f"Raw Gemini Response Text:\n{text}")
        raise ModelOutputNotJsonError(raw=text) from json_err


class DocumentExtractor:
    """Composes part building, prompt caching and one model call per document."""

    def __init__(
        self,
        app_settings: AppSettings,
        client: BaseModelClient,
        part_builder: ContentPartBuilder,
        cache_manager: PromptCacheManager,
    ):
        self._settings = app_settings
        self._client = client
        self._part_builder = part_builder
        self._cache_manager = cache_manager

    async def _resolve_cache(self) -> Optional[CacheHandle]:
        # Cache trouble only changes how the instructions are delivered.
        try:
            await self._cache_manager.ensure_resolved()
        except Exception as e:
            log.exception(f"Unexpected error resolving prompt cache, using inline prompt: {e}")
        return self._cache_manager.current_handle()

    async def extract(self, document: Optional[UploadedDocument]) -> ExtractionResult:
        """
        Runs the full extraction for one uploaded document.

        Client-input errors (credential, missing file, unsupported or empty
        document) and backend failures are raised; a response that is not
        JSON is returned as a failed result carrying the raw text.
        """
        if not self._settings.GEMINI_API_KEY:
            raise MissingCredentialError()
        if document is None:
            raise MissingFileError()

        log.info(
            f"Starting extraction for '{document.original_name}' "
            f"({document.mime_type}, {document.size_bytes} bytes)"
        )
        document_parts = await self._part_builder.build_parts(document)

        handle = await self._resolve_cache()
        schema = await load_schema(self._settings.SCHEMA_PATH)

        request_parts: List[ContentPart] = [TextSegment(text=TASK_INSTRUCTION)] + document_parts
        if handle is None:
            log.info("No prompt cache available, sending the extraction prompt inline")
            prompt = await load_prompt(self._settings.PROMPT_PATH)
            request_parts.insert(0, TextSegment(text=prompt))
        else:
            log.debug(f"Referencing prompt cache {handle.name}")

        log.info(f"Sending extraction request to Gemini for '{document.original_name}'")
        text = await self._client.generate(
            parts=request_parts,
            schema=schema,
            cache=handle,
            system_instruction=None if handle else SYSTEM_INSTRUCTION,
        )
        log.info(f"Received extraction response from Gemini for '{document.original_name}'")

        parts_used = [p.kind for p in document_parts]
        try:
            payload = parse_model_json(text)
        except ModelOutputNotJsonError as e:
            return ExtractionResult(
                ok=False,
                error_kind=type(e).__name__,
                error=str(e),
                raw_response=e.raw,
                parts_used=parts_used,
                cached=handle is not None,
            )

        return ExtractionResult(ok=True, data=payload, parts_used=parts_used, cached=handle is not None)
