# client_base.py
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from models import CacheHandle, ContentPart, RemoteReference


class BaseModelClient(ABC):
    """Contract for the generative-model backend and its file storage."""

    @abstractmethod
    async def upload_file(self, path: Path, mime_type: str) -> RemoteReference:
        """Upload a local file and return a reference usable in a request.

        Raises:
            ModelBackendError: if the upload fails.
        """

    @abstractmethod
    async def create_cache(self, prompt: str) -> CacheHandle:
        """Store the long-form prompt as a cached context.

        Raises:
            CacheCreationError: if the backend refuses or the call fails.
        """

    @abstractmethod
    async def delete_cache(self, handle: CacheHandle) -> None:
        """Delete a cached context. Implementations may raise on failure."""

    @abstractmethod
    async def generate(
        self,
        *,
        parts: List[ContentPart],
        schema: Dict[str, Any],
        cache: Optional[CacheHandle] = None,
        system_instruction: Optional[str] = None,
    ) -> str:
        """Issue one generation request and return the response text.

        Raises:
            ModelBackendError: on any backend or transport failure.
        """
