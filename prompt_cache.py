# prompt_cache.py
import asyncio
import json
from pathlib import Path
from typing import Optional

from client_base import BaseModelClient
from config import AppSettings
from exceptions import ExtractionServiceError
from models import CacheHandle
from prompt_loader import load_prompt
from utils import log


def _read_record(path: Path) -> Optional[CacheHandle]:
    """Reads the persisted handle record. Missing and malformed records both yield None."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        log.warning(f"Could not read cache record {path}: {e}")
        return None
    except UnicodeDecodeError:
        log.warning(f"Ignoring malformed cache record at {path}")
        return None

    try:
        meta = json.loads(raw)
    except json.JSONDecodeError:
        log.warning(f"Ignoring malformed cache record at {path}")
        return None

    name = meta.get("name") if isinstance(meta, dict) else None
    if not isinstance(name, str) or not name:
        log.warning(f"Ignoring cache record without a name at {path}")
        return None
    return CacheHandle(name=name)


def _write_record(path: Path, handle: CacheHandle) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"name": handle.name}, indent=2), encoding="utf-8")


def _delete_record(path: Path) -> None:
    path.unlink(missing_ok=True)


class PromptCacheManager:
    """
    Owns the single cached-instruction handle shared by all requests.

    States: uncached (handle is None) or cached. Writes happen only in
    resolve() and rebuild(); requests read the handle without locking and
    fall back to an inline prompt whenever it is absent.
    """

    def __init__(self, app_settings: AppSettings, client: BaseModelClient):
        self._settings = app_settings
        self._client = client
        self._handle: Optional[CacheHandle] = None
        self._resolved = False

    def current_handle(self) -> Optional[CacheHandle]:
        return self._handle

    @property
    def is_resolved(self) -> bool:
        return self._resolved

    async def resolve(self) -> Optional[CacheHandle]:
        """Adopts the persisted handle, or creates a new cache when there is none."""
        self._resolved = True
        persisted = await asyncio.to_thread(_read_record, self._settings.CACHE_META_PATH)
        if persisted is not None:
            log.info(f"Using persisted prompt cache {persisted.name}")
            self._handle = persisted
            return self._handle
        return await self._create()

    async def ensure_resolved(self) -> Optional[CacheHandle]:
        """Resolves once per process; never retries a failed creation."""
        if not self._resolved:
            return await self.resolve()
        return self._handle

    async def rebuild(self) -> Optional[CacheHandle]:
        """Drops the persisted and in-memory handle, then creates a new cache."""
        self._resolved = True
        previous = self._handle
        self._handle = None
        try:
            await asyncio.to_thread(_delete_record, self._settings.CACHE_META_PATH)
        except OSError as e:
            log.warning(f"Could not delete cache record {self._settings.CACHE_META_PATH}: {e}")

        if previous is not None:
            try:
                await self._client.delete_cache(previous)
                log.info(f"Deleted previous prompt cache {previous.name}")
            except ExtractionServiceError as e:
                log.warning(f"Could not delete previous prompt cache {previous.name}: {e}")

        return await self._create()

    async def _create(self) -> Optional[CacheHandle]:
        try:
            prompt = await load_prompt(self._settings.PROMPT_PATH)
            handle = await self._client.create_cache(prompt)
        except ExtractionServiceError as e:
            log.error(f"Cache creation failed (continuing without cache): {e}")
            self._handle = None
            return None

        self._handle = handle
        try:
            await asyncio.to_thread(_write_record, self._settings.CACHE_META_PATH, handle)
        except OSError as e:
            # The handle stays usable for this process; it just won't survive a restart.
            log.warning(f"Could not persist cache record {self._settings.CACHE_META_PATH}: {e}")
        log.info(f"Created prompt cache {handle.name}")
        return handle
