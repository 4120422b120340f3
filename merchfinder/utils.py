import base64
import binascii
import json
import re
from typing import Any, Dict, List, Optional, Tuple

_DATA_URL_PREFIX = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,", re.IGNORECASE)
_KEYWORD_SPLIT = re.compile(r"[;,、\n]")

# Parts of a keyword list that describe condition or product type rather than
# the character itself.
_GENERIC_KEYWORD_TERMS = (
    "excellent",
    "good",
    "fair",
    "poor",
    "condition",
    "状態",
    "美品",
    "良好",
    "傷あり",
    "new",
    "used",
    "like new",
    "figure",
    "doll",
    "toy",
    "merchandise",
    "goods",
    "item",
)


def compress_whitespace(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def image_bytes_to_data_url(data: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def split_data_url(raw: str) -> Tuple[str, Optional[str]]:
    """Strip a ``data:<mime>;base64,`` prefix, returning the payload and the mime it named."""
    text = raw.strip()
    match = _DATA_URL_PREFIX.match(text)
    if not match:
        return text, None
    return text[match.end():], match.group("mime").lower()


def decode_base64_image(payload: str) -> bytes:
    cleaned = re.sub(r"\s+", "", payload)
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Image must be a base64 encoded string.") from exc


def safe_json_loads(raw: str) -> Any:
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
    cleaned = cleaned.strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        # Fall back to the outermost brace-delimited span.
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start != -1 and end != -1 and end > start:
            snippet = cleaned[start : end + 1]
            return json.loads(snippet)
        raise


def extract_json_object(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the JSON object carried by a model reply, or None if there is none."""
    if not raw:
        return None
    try:
        parsed = safe_json_loads(raw)
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


def clean_string(value: Any) -> str:
    if value is None:
        return ""
    return compress_whitespace(str(value))


def simplify_keywords(jp_keywords: str) -> str:
    """Reduce a keyword list to a short search phrase.

    Example: "初音ミク, ボーカロイド, 美品, フィギュア" -> "初音ミク ボーカロイド"
    """
    parts: List[str] = [p.strip() for p in _KEYWORD_SPLIT.split(jp_keywords) if p.strip()]
    if not parts:
        return compress_whitespace(jp_keywords)

    meaningful = [
        part
        for part in parts
        if not any(term in part.lower() for term in _GENERIC_KEYWORD_TERMS)
    ]
    if not meaningful:
        return parts[0]
    return " ".join(meaningful[:2])
