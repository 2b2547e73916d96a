# main.py
import asyncio
from contextlib import asynccontextmanager, suppress
from typing import Optional

import uvicorn
from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse

from client_base import BaseModelClient
from config import AppSettings, settings
from content_parts import ContentPartBuilder
from exceptions import ExtractionServiceError
from gemini_client import GeminiClient
from health_ping import start_health_ping
from models import UploadedDocument, UploadResult
from processing import DocumentExtractor
from prompt_cache import PromptCacheManager
from utils import log


async def read_upload(upload: Optional[UploadFile]) -> UploadResult:
    """Reads the multipart file into an UploadedDocument, or reports why it could not."""
    if upload is None:
        return UploadResult()
    try:
        data = await upload.read()
    except OSError as e:
        log.error(f"Failed to read uploaded file {upload.filename}: {e}")
        return UploadResult(error=f"Failed to read uploaded file: {e}")
    finally:
        # Ensure the file object provided by FastAPI is closed
        await upload.close()

    log.info(f"Received file: {upload.filename}, Content-Type: {upload.content_type}, Size: {len(data)}")
    return UploadResult(
        document=UploadedDocument(
            data=data,
            mime_type=upload.content_type or "",
            size_bytes=len(data),
            original_name=upload.filename or "",
        )
    )


async def warm_cache(manager: PromptCacheManager) -> None:
    """Resolves the prompt cache; requests arriving meanwhile use the inline prompt."""
    try:
        await manager.resolve()
    except Exception as e:
        log.exception(f"Prompt cache warm-up failed, continuing without cache: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Runs in the background so the server accepts requests while the cache is created.
    warmup_task = asyncio.create_task(warm_cache(app.state.cache_manager), name="cache-warmup")

    app_settings: AppSettings = app.state.settings
    ping_task = start_health_ping(app_settings.HEALTH_PING_URL, app_settings.HEALTH_PING_MAX_DELAY_SECONDS)
    yield
    for task in (warmup_task, ping_task):
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task


def create_app(app_settings: Optional[AppSettings] = None, client: Optional[BaseModelClient] = None) -> FastAPI:
    """Builds the service with one shared client, cache manager and extractor."""
    app_settings = app_settings or settings
    client = client or GeminiClient(app_settings)
    cache_manager = PromptCacheManager(app_settings, client)
    extractor = DocumentExtractor(
        app_settings,
        client,
        ContentPartBuilder(app_settings, client),
        cache_manager,
    )

    app = FastAPI(title="Policy Document Extraction Service", version="1.0.0", lifespan=lifespan)
    app.state.settings = app_settings
    app.state.cache_manager = cache_manager
    app.state.extractor = extractor

    @app.get("/health")
    @app.get("/ilpCheck")
    async def health(request: Request):
        manager: PromptCacheManager = request.app.state.cache_manager
        return {
            "ok": True,
            "model": app_settings.MODEL,
            "cached": manager.current_handle() is not None,
            "maxInlineBytes": app_settings.MAX_INLINE_BYTES,
        }

    @app.post("/cache/rebuild")
    async def rebuild_cache(request: Request):
        manager: PromptCacheManager = request.app.state.cache_manager
        try:
            handle = await manager.rebuild()
        except Exception as e:
            log.exception(f"Unexpected error rebuilding prompt cache: {e}")
            return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})
        return {"ok": True, "cachedContent": handle.name if handle else None}

    @app.post("/extract")
    async def extract(
        request: Request,
        file: Optional[UploadFile] = File(None),
        pdf: Optional[UploadFile] = File(None),  # legacy field name
    ):
        """
        Accepts one document (PDF, image, text, CSV, JSON or DOCX) and returns
        the fields extracted by Gemini, shaped by the configured JSON schema.
        """
        # The primary field wins when both are sent; the other is just closed.
        if file is not None and pdf is not None:
            log.warning(f"Both 'file' and 'pdf' fields sent, ignoring 'pdf' ({pdf.filename})")
            await pdf.close()
        upload = await read_upload(file if file is not None else pdf)
        if upload.error:
            return JSONResponse(status_code=400, content={"error": upload.error})

        try:
            result = await request.app.state.extractor.extract(upload.document)
        except ExtractionServiceError as e:
            log.error(f"{type(e).__name__} during extraction: {e}")
            if e.status_code >= 500:
                return JSONResponse(status_code=e.status_code, content={"ok": False, "error": str(e)})
            return JSONResponse(status_code=e.status_code, content={"error": str(e)})
        except Exception as e:
            log.exception(f"An unexpected error occurred during extraction: {e}")
            return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})

        log.info(
            f"Extraction finished for '{upload.document.original_name}': ok={result.ok}, "
            f"parts={result.parts_used}, cached={result.cached}"
        )
        if not result.ok:
            return JSONResponse(status_code=502, content={"error": result.error, "raw": result.raw_response})
        return {"ok": True, "data": result.data}

    return app


app = create_app()

# --- To run the server ---
# uvicorn main:app --host 0.0.0.0 --port 8080
if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
