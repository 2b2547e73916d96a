# models.py
from typing import Optional, Any, List, Union, Literal, Annotated
from pydantic import BaseModel, ConfigDict, Field

# --- Uploaded Document ---

class UploadedDocument(BaseModel):
    """
    A single file received on the extract endpoint.
    Lives for the duration of one request and is never persisted.
    """
    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    mime_type: str
    size_bytes: int = Field(..., ge=0)
    original_name: str = ""

class UploadResult(BaseModel):
    """Outcome of reading the multipart upload: either a document or an error."""
    document: Optional[UploadedDocument] = None
    error: Optional[str] = None

# --- Content Parts (one unit of the model request payload) ---

class InlineData(BaseModel):
    """Raw bytes embedded in the request, base64-encoded."""
    kind: Literal["inline_data"] = "inline_data"
    mime_type: str
    data: str = Field(repr=False)  # base64

class RemoteReference(BaseModel):
    """A file previously uploaded to the Gemini Files API."""
    kind: Literal["remote_reference"] = "remote_reference"
    uri: str
    mime_type: str

class TextSegment(BaseModel):
    """Plain text sent as-is."""
    kind: Literal["text_segment"] = "text_segment"
    text: str

ContentPart = Annotated[Union[InlineData, RemoteReference, TextSegment], Field(discriminator="kind")]

# --- Prompt Cache ---

class CacheHandle(BaseModel):
    """Opaque identifier of a server-side cached instruction context."""
    name: str

# --- Extraction Result ---

class ExtractionResult(BaseModel):
    """
    Result of one extraction request.
    On success `data` holds the parsed JSON; on failure `error_kind` names the
    failure and `raw_response` keeps the model text for diagnostics.
    """
    ok: bool
    data: Optional[Any] = None
    error_kind: Optional[str] = None
    error: Optional[str] = None
    raw_response: Optional[str] = None
    parts_used: List[str] = Field(default_factory=list)  # kinds of content parts sent
    cached: bool = False  # whether the cached context was referenced
