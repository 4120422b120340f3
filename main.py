import logging
import time
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from merchfinder.config import load_settings
from merchfinder.errors import (
    BadRequestError,
    ConfigurationError,
    ContentPolicyError,
    ImageRejectedError,
    LLMRequestError,
    ResponseParseError,
)
from merchfinder.llm.client import OpenRouterClient
from merchfinder.models import Platform, SearchFilters
from merchfinder.request_logging import build_request_log, write_request_log
from merchfinder.search.client import SerperClient
from merchfinder.search.service import MerchandiseSearcher
from merchfinder.service import AnimeMerchAnalyzer

settings = load_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("merchfinder.api")

vision_client = OpenRouterClient(
    api_key=settings.openrouter_api_key,
    base_url=settings.openrouter_base_url,
    timeout=settings.request_timeout,
    referer=settings.openrouter_referer,
    app_name=settings.openrouter_app_name,
)
search_client = SerperClient(
    api_key=settings.serper_api_key,
    base_url=settings.serper_base_url,
    timeout=settings.request_timeout,
    country=settings.search_country,
    language=settings.search_language,
)

analyzer = AnimeMerchAnalyzer(settings=settings, vision_client=vision_client)
searcher = MerchandiseSearcher(settings=settings, search_client=search_client)

app = FastAPI(title="Anime Merch Finder", version="1.0.0")

# Allow local dev CORS for the frontend or other origins.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    if not settings.log_requests:
        return await call_next(request)

    started = time.perf_counter()
    body = await request.body()
    entry = await build_request_log(request, body)
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000
    await run_in_threadpool(
        write_request_log,
        entry,
        response.status_code,
        duration_ms,
        retention_days=settings.log_requests_retention_days,
        max_files=settings.log_requests_max_files,
    )
    return response


def _error(status_code: int, error: str, details: str = "") -> JSONResponse:
    body: Dict[str, Any] = {"error": error}
    if details:
        body["details"] = details
    return JSONResponse(body, status_code=status_code)


async def _read_json_object(request: Request) -> Optional[Dict[str, Any]]:
    try:
        body = await request.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    return body


def _parse_filters(body: Dict[str, Any]) -> SearchFilters:
    max_price = body.get("maxPrice")
    if max_price is not None:
        if isinstance(max_price, bool) or not isinstance(max_price, (int, float)) or max_price < 0:
            raise BadRequestError("maxPrice must be a non-negative number.")
        max_price = int(max_price)

    condition = body.get("condition")
    if condition is not None and not isinstance(condition, str):
        raise BadRequestError("condition must be a string.")

    platform = body.get("platform")
    if platform is not None:
        try:
            platform = Platform(platform)
        except ValueError as exc:
            allowed = ", ".join(p.value for p in Platform)
            raise BadRequestError(f"platform must be one of: {allowed}.") from exc

    return SearchFilters(max_price=max_price, condition=condition or None, platform=platform)


@app.post("/api/analyze")
async def analyze_image(request: Request):
    if not settings.openrouter_api_key:
        return _error(500, "API configuration error", "OPENROUTER_API_KEY is not configured.")

    body = await _read_json_object(request)
    if body is None:
        return _error(400, "Invalid request", "Request body must be a JSON object.")

    image = body.get("image")
    if not image:
        return _error(400, "No image provided", "Image data is required")
    if not isinstance(image, str):
        return _error(400, "Invalid image format", "Image must be a base64 encoded string")

    mime_type = body.get("mimeType") or None
    if mime_type is not None and (
        not isinstance(mime_type, str) or mime_type.lower() not in settings.allowed_mime_types
    ):
        allowed = ", ".join(sorted(settings.allowed_mime_types))
        return _error(400, "Unsupported image type", f"mimeType must be one of: {allowed}")

    try:
        result = await run_in_threadpool(analyzer.analyze, image, mime_type)
    except BadRequestError as exc:
        return _error(400, "Invalid image", str(exc))
    except ContentPolicyError as exc:
        return _error(400, "Content policy violation", str(exc))
    except ImageRejectedError as exc:
        return _error(400, "Image validation failed", str(exc))
    except ResponseParseError as exc:
        logger.warning("Unparseable %s response from vision model: %s", exc.stage, exc)
        return _error(500, "Analysis parsing error", str(exc))
    except ConfigurationError as exc:
        return _error(500, "API configuration error", str(exc))
    except LLMRequestError as exc:
        logger.error("Vision provider request failed: %s", exc)
        return _error(502, "Vision provider request failed", str(exc))
    except Exception as exc:
        logger.exception("Unexpected error analyzing image")
        return _error(500, "Image analysis failed", str(exc) or "Unknown error")

    return JSONResponse(result.to_dict())


@app.post("/api/search")
async def search_merchandise(request: Request):
    body = await _read_json_object(request)
    if body is None:
        return _error(400, "Invalid request", "Request body must be a JSON object.")

    keyword = body.get("keyword", body.get("jpKeywords"))
    if not keyword or not isinstance(keyword, str) or not keyword.strip():
        return _error(400, "Invalid request", "keyword is required and must be a string")

    if not settings.serper_api_key:
        return _error(500, "Search service not configured", "SERPER_API_KEY is not set.")

    try:
        filters = _parse_filters(body)
    except BadRequestError as exc:
        return _error(400, "Invalid request", str(exc))

    try:
        outcome = await run_in_threadpool(searcher.search, keyword, filters)
    except BadRequestError as exc:
        return _error(400, "Invalid request", str(exc))
    except ConfigurationError as exc:
        return _error(500, "Search service not configured", str(exc))
    except Exception as exc:
        logger.exception("Unexpected error searching for %r", keyword)
        return _error(500, "Search failed", str(exc) or "Unknown error")

    if outcome.provider_failed:
        return _error(502, "Search provider unavailable", outcome.provider_error or "")

    return JSONResponse(outcome.to_dict())


@app.post("/api/upload")
async def upload_image(file: Optional[UploadFile] = File(None)):
    if file is None:
        return _error(400, "No file provided")

    # Placeholder: the upload is acknowledged but not analyzed.
    data = await file.read()
    return JSONResponse(
        {
            "success": True,
            "message": "Image received and queued for analysis",
            "fileSize": len(data),
            "fileName": file.filename or "",
            "mimeType": file.content_type or "",
            "analysisId": f"analysis_{uuid4().hex}",
        }
    )


@app.get("/health")
def health() -> dict:
    return {
        "status": "ok",
        "models": {
            "vision_model": settings.vision_model,
            "structured_output": settings.structured_output,
        },
        "providers": {
            "vision_configured": bool(settings.openrouter_api_key),
            "search_configured": bool(settings.serper_api_key),
        },
    }
