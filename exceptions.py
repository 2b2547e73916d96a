# exceptions.py
from typing import Iterable


class ExtractionServiceError(Exception):
    """Base exception for all extraction pipeline errors."""

    status_code: int = 500


class MissingCredentialError(ExtractionServiceError):
    """Raised when no Gemini API key is configured."""

    status_code = 400

    def __init__(self, message: str = "Missing GEMINI_API_KEY"):
        super().__init__(message)


class MissingFileError(ExtractionServiceError):
    """Raised when the request carries no file field."""

    status_code = 400

    def __init__(self, message: str = "Upload a file in form-data with field name 'file' (or legacy 'pdf')."):
        super().__init__(message)


class UnsupportedTypeError(ExtractionServiceError):
    """Raised when the declared MIME type is not in any accepted category."""

    status_code = 415

    def __init__(self, mime_type: str, supported: Iterable[str]):
        self.mime_type = mime_type
        self.supported = list(supported)
        super().__init__(
            f"Unsupported file type '{mime_type or 'unknown'}'. "
            f"Supported types: {', '.join(self.supported)}. "
            "Convert the document to PDF or TXT and try again."
        )


class EmptyDocumentError(ExtractionServiceError):
    """Raised when a word-processor document contains no extractable text."""

    status_code = 422


class SchemaLoadError(ExtractionServiceError):
    """Raised when the extraction schema or prompt cannot be read."""

    status_code = 500


class CacheCreationError(ExtractionServiceError):
    """Raised when the prompt cache cannot be created. Always recovered locally."""


class ModelBackendError(ExtractionServiceError):
    """Raised when a call to the model backend or file storage fails."""

    status_code = 502


class ModelOutputNotJsonError(ExtractionServiceError):
    """Raised when the model response text does not parse as JSON."""

    status_code = 502

    def __init__(self, raw: str, message: str = "Model did not return valid JSON"):
        self.raw = raw
        super().__init__(message)
