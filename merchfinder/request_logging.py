import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from fastapi import Request
from starlette.datastructures import FormData, UploadFile

logger = logging.getLogger(__name__)

REQUEST_LOG_DIR = Path(__file__).resolve().parent.parent / "logs" / "requests"
_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
_FILENAME_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

# JSON body fields that carry base64 payloads; logged by length only.
_REDACTED_FIELDS = ("image",)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _sanitize_path(path: str) -> str:
    slug = "".join(ch if ch.isalnum() else "_" for ch in path.strip("/"))
    return slug or "root"


def _append_multi(target: Dict[str, Any], key: str, value: Any) -> None:
    if key not in target:
        target[key] = value
        return
    existing = target[key]
    if isinstance(existing, list):
        existing.append(value)
    else:
        target[key] = [existing, value]


def _serialize_items(items: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for key, value in items:
        _append_multi(payload, key, value)
    return payload


def redact_json_body(body: Any) -> Any:
    if not isinstance(body, dict):
        return body
    redacted = dict(body)
    for key in _REDACTED_FIELDS:
        value = redacted.get(key)
        if isinstance(value, str):
            redacted[key] = f"<base64 {len(value)} chars>"
    return redacted


def _serialize_form(form: FormData) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            file_info = {
                "filename": value.filename or "",
                "content_type": value.content_type or "",
                "size_bytes": value.size,
            }
            _append_multi(payload, key, file_info)
        else:
            _append_multi(payload, key, value)
    return payload


async def _parse_form_from_body(request: Request, body: bytes) -> Dict[str, Any]:
    async def receive() -> Dict[str, Any]:
        return {"type": "http.request", "body": body, "more_body": False}

    temp_request = Request(request.scope, receive)
    form = await temp_request.form()
    try:
        return _serialize_form(form)
    finally:
        await form.close()


async def build_request_log(request: Request, body: Optional[bytes] = None) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "timestamp_utc": _now().strftime(_TIMESTAMP_FORMAT),
        "method": request.method,
        "path": request.url.path,
        "query": _serialize_items(request.query_params.multi_items()),
        "client": {
            "host": request.client.host if request.client else "",
            "port": request.client.port if request.client else None,
            "forwarded_for": request.headers.get("x-forwarded-for", ""),
        },
        "headers": {
            "content_type": request.headers.get("content-type", ""),
            "user_agent": request.headers.get("user-agent", ""),
            "content_length": request.headers.get("content-length", ""),
        },
    }

    content_type = entry["headers"]["content_type"]
    body_payload: Optional[Dict[str, Any]] = None
    if request.method in {"POST", "PUT", "PATCH"} and body:
        if "application/json" in content_type:
            try:
                body_payload = {"json": redact_json_body(json.loads(body))}
            except ValueError:
                body_payload = {"raw_size_bytes": len(body)}
        elif "multipart/form-data" in content_type or "application/x-www-form-urlencoded" in content_type:
            try:
                body_payload = {"form": await _parse_form_from_body(request, body)}
            except Exception as exc:  # malformed multipart bodies surface as assorted errors
                body_payload = {"parse_error": str(exc)}

    if body is not None:
        entry["body_size_bytes"] = len(body)

    if body_payload:
        entry["body"] = body_payload

    return entry


def _unique_log_path(directory: Path, basename: str) -> Path:
    candidate = directory / f"{basename}.json"
    if not candidate.exists():
        return candidate
    counter = 1
    while True:
        candidate = directory / f"{basename}_{counter}.json"
        if not candidate.exists():
            return candidate
        counter += 1


def _prune_request_logs(directory: Path, retention_days: int, max_files: int) -> None:
    if retention_days <= 0 and max_files <= 0:
        return

    files = [item for item in directory.iterdir() if item.is_file() and item.suffix == ".json"]
    if not files:
        return

    if retention_days > 0:
        cutoff = (_now() - timedelta(days=retention_days)).timestamp()
        for item in files:
            try:
                if item.stat().st_mtime < cutoff:
                    item.unlink()
            except OSError:
                continue

    if max_files > 0:
        remaining = [item for item in directory.iterdir() if item.is_file() and item.suffix == ".json"]
        if len(remaining) <= max_files:
            return
        remaining.sort(key=lambda p: p.stat().st_mtime)
        for item in remaining[: len(remaining) - max_files]:
            try:
                item.unlink()
            except OSError:
                continue


def write_request_log(
    entry: Dict[str, Any],
    status_code: int,
    duration_ms: float,
    error: str = "",
    retention_days: int = 7,
    max_files: int = 1000,
    directory: Path = REQUEST_LOG_DIR,
) -> Optional[Path]:
    try:
        directory.mkdir(parents=True, exist_ok=True)
        path_token = _sanitize_path(entry.get("path", "request"))
        method = entry.get("method", "UNKNOWN")
        log_entry = dict(entry)
        log_entry["response"] = {
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
        }
        if error:
            log_entry["response"]["error"] = error
        basename = f"{_now().strftime(_FILENAME_TIMESTAMP_FORMAT)}_{method}_{path_token}"
        path = _unique_log_path(directory, basename)
        with path.open("w", encoding="utf-8") as f:
            json.dump(log_entry, f, ensure_ascii=False, indent=2)
        _prune_request_logs(directory, retention_days, max_files)
        return path
    except OSError as exc:
        logger.warning("Could not write request log: %s", exc)
        return None
