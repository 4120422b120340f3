"""Tests for the two-phase image classification flow."""

import base64
from unittest.mock import MagicMock

import pytest

from merchfinder.errors import (
    BadRequestError,
    ContentPolicyError,
    ImageRejectedError,
    ResponseParseError,
)
from merchfinder.llm.prompts import (
    ANALYSIS_RESPONSE_FORMAT,
    ANALYSIS_SYSTEM_PROMPT,
    VALIDATION_PROMPT,
    VALIDATION_RESPONSE_FORMAT,
)
from merchfinder.models import ClassificationResult
from merchfinder.service import NOT_ANIME_REASON, UNCLEAR_REASON, AnimeMerchAnalyzer


def _analyzer(settings, *replies):
    client = MagicMock()
    client.chat.side_effect = [(reply, {"choices": []}) for reply in replies]
    return AnimeMerchAnalyzer(settings=settings, vision_client=client), client


def _text_parts(call):
    messages = call[1]["messages"]
    parts = []
    for message in messages:
        content = message["content"]
        if isinstance(content, str):
            parts.append(content)
        else:
            parts.extend(item["text"] for item in content if item["type"] == "text")
    return parts


def _image_url(call):
    user = call[1]["messages"][-1]
    return next(item["image_url"]["url"] for item in user["content"] if item["type"] == "image_url")


class TestAnalyze:
    def test_success(self, settings, image_base64, validation_json, analysis_json):
        analyzer, client = _analyzer(settings, validation_json, analysis_json)

        result = analyzer.analyze(image_base64, "image/png")

        assert result == ClassificationResult(
            series="VOCALOID",
            character="初音ミク",
            japanese_keywords="初音ミク, アクリルスタンド, ボーカロイド, 美品",
            search_keyword="初音ミク アクスタ",
            reasoning="Teal twin tails and the 01 shoulder tattoo.",
        )
        assert client.chat.call_count == 2

    def test_phase_order_and_prompts(self, settings, image_base64, validation_json, analysis_json):
        analyzer, client = _analyzer(settings, validation_json, analysis_json)

        analyzer.analyze(image_base64, "image/png")

        first, second = client.chat.call_args_list
        assert VALIDATION_PROMPT in _text_parts(first)
        assert ANALYSIS_SYSTEM_PROMPT in _text_parts(second)
        assert first[1]["model"] == "google/gemini-2.5-flash"
        assert first[1]["response_format"] == VALIDATION_RESPONSE_FORMAT
        assert second[1]["response_format"] == ANALYSIS_RESPONSE_FORMAT
        assert _image_url(first) == f"data:image/png;base64,{image_base64}"
        assert _image_url(second) == _image_url(first)

    def test_structured_output_disabled(self, settings, image_base64, validation_json, analysis_json):
        settings.structured_output = False
        analyzer, client = _analyzer(settings, validation_json, analysis_json)

        analyzer.analyze(image_base64, "image/png")

        for call in client.chat.call_args_list:
            assert call[1]["response_format"] is None

    def test_validation_without_json_skips_analysis(self, settings, image_base64):
        analyzer, client = _analyzer(settings, "I cannot tell what this image shows.")

        with pytest.raises(ImageRejectedError, match="Could not parse image validation response"):
            analyzer.analyze(image_base64, "image/jpeg")

        assert client.chat.call_count == 1

    def test_not_anime(self, settings, image_base64):
        analyzer, client = _analyzer(
            settings, '{"isAnime": false, "isClear": true, "reason": "A photo of a cat"}'
        )

        with pytest.raises(ImageRejectedError, match=NOT_ANIME_REASON):
            analyzer.analyze(image_base64, "image/jpeg")
        assert client.chat.call_count == 1

    def test_unclear(self, settings, image_base64):
        analyzer, client = _analyzer(
            settings, '{"isAnime": true, "isClear": false, "reason": "Heavily blurred"}'
        )

        with pytest.raises(ImageRejectedError, match=UNCLEAR_REASON):
            analyzer.analyze(image_base64, "image/jpeg")
        assert client.chat.call_count == 1

    def test_yes_no_strings_accepted(self, settings, image_base64, analysis_json):
        analyzer, _ = _analyzer(
            settings, '{"isAnime": "yes", "isClear": "yes", "reason": "ok"}', analysis_json
        )

        assert analyzer.analyze(image_base64, "image/jpeg").character == "初音ミク"

    def test_markdown_and_chatter_around_json(self, settings, image_base64, validation_json, analysis_json):
        analyzer, _ = _analyzer(
            settings,
            "```json\n" + validation_json + "\n```",
            "Here is the result:\n" + analysis_json + "\nLet me know if you need more.",
        )

        assert analyzer.analyze(image_base64, "image/jpeg").series == "VOCALOID"

    def test_analysis_without_json(self, settings, image_base64, validation_json):
        analyzer, _ = _analyzer(settings, validation_json, "Sorry, I can't help with that.")

        with pytest.raises(ResponseParseError) as excinfo:
            analyzer.analyze(image_base64, "image/jpeg")
        assert excinfo.value.stage == "analysis"

    @pytest.mark.parametrize("missing", ["series", "character", "jpKeywords"])
    def test_required_fields(self, settings, image_base64, validation_json, missing):
        fields = {"series": "VOCALOID", "character": "初音ミク", "jpKeywords": "初音ミク"}
        fields[missing] = "  "
        reply = (
            '{"series": "%(series)s", "character": "%(character)s", "jpKeywords": "%(jpKeywords)s"}'
            % fields
        )
        analyzer, _ = _analyzer(settings, validation_json, reply)

        with pytest.raises(ResponseParseError, match="missing required fields"):
            analyzer.analyze(image_base64, "image/jpeg")

    def test_search_keyword_derived_when_missing(self, settings, image_base64, validation_json):
        reply = '{"series": "VOCALOID", "character": "初音ミク", "jpKeywords": "初音ミク, 美品, ボーカロイド, フィギュア"}'
        analyzer, _ = _analyzer(settings, validation_json, reply)

        result = analyzer.analyze(image_base64, "image/jpeg")

        assert result.search_keyword == "初音ミク ボーカロイド"
        assert result.reasoning == ""

    def test_content_policy_error_propagates(self, settings, image_base64):
        client = MagicMock()
        client.chat.side_effect = ContentPolicyError("The image content violates safety policies.")
        analyzer = AnimeMerchAnalyzer(settings=settings, vision_client=client)

        with pytest.raises(ContentPolicyError):
            analyzer.analyze(image_base64, "image/jpeg")


class TestPrepareImage:
    def test_data_url_prefix_supplies_mime(self, settings, image_base64, validation_json, analysis_json):
        analyzer, client = _analyzer(settings, validation_json, analysis_json)

        analyzer.analyze(f"data:image/webp;base64,{image_base64}")

        assert _image_url(client.chat.call_args_list[0]).startswith("data:image/webp;base64,")

    def test_default_mime_is_jpeg(self, settings, image_base64, validation_json, analysis_json):
        analyzer, client = _analyzer(settings, validation_json, analysis_json)

        analyzer.analyze(image_base64)

        assert _image_url(client.chat.call_args_list[0]).startswith("data:image/jpeg;base64,")

    @pytest.mark.parametrize("image", ["", "   ", "not base64!!"])
    def test_bad_payload(self, settings, image):
        analyzer, client = _analyzer(settings)

        with pytest.raises(BadRequestError):
            analyzer.analyze(image, "image/png")
        client.chat.assert_not_called()

    def test_unsupported_mime(self, settings, image_base64):
        analyzer, client = _analyzer(settings)

        with pytest.raises(BadRequestError, match="Unsupported"):
            analyzer.analyze(image_base64, "image/bmp")
        client.chat.assert_not_called()

    def test_too_large(self, settings):
        settings.max_image_bytes = 4
        analyzer, client = _analyzer(settings)

        with pytest.raises(BadRequestError, match="too large"):
            analyzer.analyze(base64.b64encode(b"12345").decode("ascii"), "image/png")
        client.chat.assert_not_called()
