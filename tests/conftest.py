"""Shared fixtures for merchfinder tests."""

import base64
import os

# Keep the app from writing request logs while tests import main.
os.environ["LOG_REQUESTS"] = "false"
os.environ["LOG_LLM_RAW"] = "false"

import pytest

from merchfinder.config import Settings
from merchfinder.models import RawSearchHit


@pytest.fixture
def settings():
    return Settings(
        openrouter_api_key="test-openrouter-key",
        serper_api_key="test-serper-key",
        vision_model="google/gemini-2.5-flash",
        structured_output=True,
        search_result_count=10,
        search_country="jp",
        search_language="ja",
        log_llm_raw=False,
        log_requests=False,
    )


@pytest.fixture
def image_base64():
    return base64.b64encode(b"\x89PNG\r\n\x1a\nfake-image-bytes").decode("ascii")


@pytest.fixture
def scenario_hits():
    """Two product pages and one Mercari search page, as Serper would return them."""
    return [
        RawSearchHit(
            title="Figure A",
            url="https://jp.mercari.com/item/m123",
            snippet="¥5,000 未使用",
        ),
        RawSearchHit(
            title="listing page",
            url="https://jp.mercari.com/search?q=x",
            snippet="",
        ),
        RawSearchHit(
            title="Figure B",
            url="https://www.suruga-ya.jp/product/detail/456",
            snippet="1000円 売り切れ",
        ),
    ]


@pytest.fixture
def validation_json():
    return '{"isAnime": true, "isClear": true, "reason": "Clear photo of an anime acrylic stand"}'


@pytest.fixture
def analysis_json():
    return """{
        "series": "VOCALOID",
        "character": "初音ミク",
        "jpKeywords": "初音ミク, アクリルスタンド, ボーカロイド, 美品",
        "searchKeyword": "初音ミク アクスタ",
        "reasoning": "Teal twin tails and the 01 shoulder tattoo."
    }"""
