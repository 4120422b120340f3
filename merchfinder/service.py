import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import Settings
from .constants import DEFAULT_MIME_TYPE
from .errors import BadRequestError, ImageRejectedError, ResponseParseError
from .llm.client import OpenRouterClient
from .llm.prompts import (
    ANALYSIS_RESPONSE_FORMAT,
    ANALYSIS_SYSTEM_PROMPT,
    ANALYSIS_USER_PROMPT,
    VALIDATION_PROMPT,
    VALIDATION_RESPONSE_FORMAT,
)
from .models import ClassificationResult, ImageValidation
from .utils import (
    clean_string,
    decode_base64_image,
    extract_json_object,
    image_bytes_to_data_url,
    simplify_keywords,
    split_data_url,
)

logger = logging.getLogger(__name__)

NOT_ANIME_REASON = "Image does not appear to contain anime-related content"
UNCLEAR_REASON = "Image is too blurry or unclear to analyze accurately"


def _as_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"yes", "true", "1"}
    return bool(value)


class AnimeMerchAnalyzer:
    """Two-step image classification: validate the image, then analyze it.

    The analysis call is only made once the validation call has confirmed the
    image is anime-related and clear enough to read.
    """

    def __init__(self, settings: Settings, vision_client: OpenRouterClient):
        self.settings = settings
        self.vision_client = vision_client
        self._logs_dir = Path(__file__).resolve().parent.parent / "logs"

    def analyze(self, image_base64: str, mime_type: Optional[str] = None) -> ClassificationResult:
        data_url = self._prepare_image(image_base64, mime_type)

        validation = self.validate_image(data_url)
        if not validation.is_anime:
            raise ImageRejectedError(NOT_ANIME_REASON)
        if not validation.is_clear:
            raise ImageRejectedError(UNCLEAR_REASON)

        return self.describe_image(data_url)

    def _prepare_image(self, image_base64: str, mime_type: Optional[str]) -> str:
        if not isinstance(image_base64, str) or not image_base64.strip():
            raise BadRequestError("Image data is required.")

        payload, embedded_mime = split_data_url(image_base64)
        mime = (mime_type or embedded_mime or DEFAULT_MIME_TYPE).lower()
        if mime not in self.settings.allowed_mime_types:
            raise BadRequestError("Unsupported image type.")

        try:
            data = decode_base64_image(payload)
        except ValueError as exc:
            raise BadRequestError(str(exc)) from exc
        if not data:
            raise BadRequestError("Image is empty.")
        if len(data) > self.settings.max_image_bytes:
            raise BadRequestError("Image is too large.")

        return image_bytes_to_data_url(data, mime)

    def validate_image(self, image_data_url: str) -> ImageValidation:
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "image_url", "image_url": {"url": image_data_url}},
                    {"type": "text", "text": VALIDATION_PROMPT},
                ],
            },
        ]
        content = self._call_vision(
            "validation", messages, max_tokens=300, response_format=VALIDATION_RESPONSE_FORMAT
        )
        parsed = extract_json_object(content)
        if parsed is None:
            self._log_raw("validation_parse_error", {"content": content})
            raise ImageRejectedError("Could not parse image validation response")

        validation = ImageValidation(
            is_anime=_as_flag(parsed.get("isAnime")),
            is_clear=_as_flag(parsed.get("isClear")),
            reason=clean_string(parsed.get("reason")),
        )
        logger.info(
            "Image validation: anime=%s clear=%s reason=%s",
            validation.is_anime,
            validation.is_clear,
            validation.reason,
        )
        return validation

    def describe_image(self, image_data_url: str) -> ClassificationResult:
        messages = [
            {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "image_url", "image_url": {"url": image_data_url}},
                    {"type": "text", "text": ANALYSIS_USER_PROMPT},
                ],
            },
        ]
        content = self._call_vision(
            "analysis", messages, max_tokens=800, response_format=ANALYSIS_RESPONSE_FORMAT
        )
        parsed = extract_json_object(content)
        if parsed is None:
            self._log_raw("analysis_parse_error", {"content": content})
            raise ResponseParseError("Could not parse analysis response as JSON", stage="analysis")

        series = clean_string(parsed.get("series"))
        character = clean_string(parsed.get("character"))
        jp_keywords = clean_string(parsed.get("jpKeywords"))
        if not series or not character or not jp_keywords:
            raise ResponseParseError("Analysis response missing required fields", stage="analysis")

        search_keyword = clean_string(parsed.get("searchKeyword")) or simplify_keywords(jp_keywords)
        return ClassificationResult(
            series=series,
            character=character,
            japanese_keywords=jp_keywords,
            search_keyword=search_keyword,
            reasoning=clean_string(parsed.get("reasoning")),
        )

    def _call_vision(
        self,
        stage: str,
        messages: List[Dict[str, Any]],
        max_tokens: int,
        response_format: Dict[str, Any],
    ) -> str:
        content, raw_response = self.vision_client.chat(
            model=self.settings.vision_model,
            messages=messages,
            temperature=0.2,
            max_tokens=max_tokens,
            response_format=response_format if self.settings.structured_output else None,
        )
        self._log_raw(f"{stage}_content", content)
        self._log_raw(f"{stage}_raw_response", raw_response)
        return content

    def _log_raw(self, name: str, payload: Any) -> None:
        if not self.settings.log_llm_raw:
            return
        try:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
            path = self._logs_dir / f"{name}_{timestamp}.log"
            with path.open("w", encoding="utf-8") as f:
                if isinstance(payload, str):
                    f.write(payload)
                else:
                    json.dump(payload, f, ensure_ascii=False, indent=2)
        except OSError as exc:
            logger.warning("Could not write raw LLM log %s: %s", name, exc)
