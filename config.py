# config.py
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from a .env file if present
load_dotenv()

# --- Accepted upload types, grouped by ingestion category ---
# Order matters only for the error message listing accepted types.
MEDIA_MIME_TYPES: Dict[str, str] = {
    "application/pdf": "PDF",
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/webp": "WEBP",
    "image/heic": "HEIC",
    "image/heif": "HEIF",
}
TEXT_MIME_TYPES: Dict[str, str] = {
    "text/plain": "TXT",
    "text/csv": "CSV",
    "application/json": "JSON",
}
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# Sent with every request; also stored inside the cached context.
SYSTEM_INSTRUCTION = "Return ONLY JSON per the response schema."
TASK_INSTRUCTION = "Extract the required fields for the calculator."


class AppSettings(BaseSettings):
    """
    Centralized application settings managed by Pydantic.
    Loads from environment variables and .env file.
    """
    # --- Gemini Configuration ---
    GEMINI_API_KEY: Optional[str] = Field(default=None)
    MODEL: str = Field(default="gemini-2.5-flash")

    # --- Server Configuration ---
    PORT: int = Field(default=8080)

    # --- Prompt Cache Configuration ---
    CACHE_TTL_SECONDS: int = Field(default=60 * 60 * 24 * 30)  # 30 days
    CACHE_DISPLAY_NAME: str = Field(default="ilp_extraction_rules_v1")
    CACHE_META_PATH_STR: str = Field(default=".cache.json")

    # --- Ingestion Configuration ---
    # Files above this size are uploaded to the Files API instead of sent inline.
    MAX_INLINE_BYTES: int = Field(default=14 * 1024 * 1024)
    TEMP_DIR_PATH_STR: str = Field(default="temp_processing")

    # --- Extraction Configuration Files ---
    SCHEMA_PATH_STR: str = Field(default="schema.json")
    PROMPT_PATH_STR: str = Field(default="ilp_extraction_prompt.txt")

    # --- Health Ping Configuration ---
    HEALTH_PING_URL: Optional[str] = Field(default=None)
    HEALTH_PING_MAX_DELAY_SECONDS: float = Field(default=600.0)

    # --- Logging Configuration ---
    LOG_FILE_PATH_STR: str = Field(default="app_log.log")  # empty string disables the file handler
    LOG_LEVEL: str = Field(default="INFO")

    # --- Derived Path Properties ---
    @property
    def TEMP_DIR(self) -> Path:
        return Path(self.TEMP_DIR_PATH_STR)

    @property
    def SCHEMA_PATH(self) -> Path:
        return Path(self.SCHEMA_PATH_STR)

    @property
    def PROMPT_PATH(self) -> Path:
        return Path(self.PROMPT_PATH_STR)

    @property
    def CACHE_META_PATH(self) -> Path:
        return Path(self.CACHE_META_PATH_STR)

    @property
    def LOG_FILE(self) -> Optional[Path]:
        if not self.LOG_FILE_PATH_STR:
            return None
        return Path(self.LOG_FILE_PATH_STR)

    @property
    def SUPPORTED_MIME_TYPES(self) -> List[str]:
        """Every accepted MIME type, in the order reported to clients."""
        return list(MEDIA_MIME_TYPES) + list(TEXT_MIME_TYPES) + [DOCX_MIME_TYPE]

    # Pydantic settings configuration
    model_config = SettingsConfigDict(
        env_file=".env",                # Load .env file
        env_file_encoding='utf-8',      # Encoding for .env file
        extra='ignore',                 # Ignore extra fields from environment
        case_sensitive=False            # Environment variable names are case-insensitive
    )

# --- Instantiate settings ---
# This single 'settings' instance will be imported by other modules.
settings = AppSettings()
