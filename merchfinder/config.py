import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Set

from dotenv import load_dotenv

from .constants import ALLOWED_MIME_TYPES

# Load .env early so os.getenv can pick up values defined there.
BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    openrouter_api_key: str = field(default_factory=lambda: os.getenv("OPENROUTER_API_KEY", ""))
    openrouter_base_url: str = field(
        default_factory=lambda: os.getenv(
            "OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1/chat/completions"
        )
    )
    openrouter_referer: str = field(default_factory=lambda: os.getenv("OPENROUTER_REFERER", ""))
    openrouter_app_name: str = field(
        default_factory=lambda: os.getenv("OPENROUTER_APP_NAME", "anime-merch-finder")
    )
    vision_model: str = field(
        default_factory=lambda: os.getenv("VISION_MODEL", "google/gemini-2.5-flash")
    )
    structured_output: bool = field(default_factory=lambda: _env_bool("STRUCTURED_OUTPUT", True))
    serper_api_key: str = field(default_factory=lambda: os.getenv("SERPER_API_KEY", ""))
    serper_base_url: str = field(
        default_factory=lambda: os.getenv("SERPER_BASE_URL", "https://google.serper.dev/search")
    )
    search_result_count: int = field(default_factory=lambda: _env_int("SEARCH_RESULT_COUNT", 10))
    search_country: str = field(default_factory=lambda: os.getenv("SEARCH_COUNTRY", "jp"))
    search_language: str = field(default_factory=lambda: os.getenv("SEARCH_LANGUAGE", "ja"))
    request_timeout: int = field(default_factory=lambda: _env_int("REQUEST_TIMEOUT", 60))
    max_image_bytes: int = field(
        default_factory=lambda: _env_int("MAX_IMAGE_BYTES", 10 * 1024 * 1024)
    )
    allowed_mime_types: Set[str] = field(default_factory=lambda: set(ALLOWED_MIME_TYPES))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_llm_raw: bool = field(default_factory=lambda: _env_bool("LOG_LLM_RAW", False))
    log_requests: bool = field(default_factory=lambda: _env_bool("LOG_REQUESTS", True))
    log_requests_retention_days: int = field(
        default_factory=lambda: _env_int("LOG_REQUESTS_RETENTION_DAYS", 7)
    )
    log_requests_max_files: int = field(
        default_factory=lambda: _env_int("LOG_REQUESTS_MAX_FILES", 1000)
    )

    def __post_init__(self) -> None:
        self.search_result_count = max(1, min(self.search_result_count, 100))
        self.log_level = (self.log_level or "INFO").upper()


def load_settings() -> Settings:
    return Settings()
