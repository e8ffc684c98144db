import json

import httpx
import pytest
import respx

from invoice_lens.input_handler import RasterImage
from invoice_lens.model_inference import AnthropicClient, GeminiClient, ProviderClient
from invoice_lens.utils.exceptions import ProviderError

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
GEMINI_HOST = "generativelanguage.googleapis.com"
GEMINI_PATH = "/v1beta/models/gemini-2.5-flash:generateContent"

RASTER = RasterImage(base64_data="aGVsbG8=", media_type="image/jpeg", width=1, height=1)


def test_clients_satisfy_protocol():
    assert isinstance(AnthropicClient(), ProviderClient)
    assert isinstance(GeminiClient(), ProviderClient)


class TestAnthropicClient:

    @pytest.mark.asyncio
    @respx.mock
    async def test_success_concatenates_text_blocks(self):
        route = respx.post(ANTHROPIC_URL).mock(return_value=httpx.Response(200, json={
            "content": [
                {"type": "text", "text": '{"invoiceNo":'},
                {"type": "text", "text": ' "A1"}'},
            ],
            "stop_reason": "end_turn",
        }))

        result = await AnthropicClient().call("sk-test", RASTER, "extract")

        assert result.provider_id == "anthropic"
        assert result.raw_text == '{"invoiceNo": "A1"}'

        request = route.calls.last.request
        assert request.headers["x-api-key"] == "sk-test"
        assert request.headers["anthropic-version"] == "2023-06-01"
        body = json.loads(request.content)
        assert body["model"] == "claude-haiku-4-5-20251001"
        assert body["max_tokens"] == 4000
        image_part, text_part = body["messages"][0]["content"]
        assert image_part["source"] == {"type": "base64", "media_type": "image/jpeg", "data": "aGVsbG8="}
        assert text_part == {"type": "text", "text": "extract"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_max_tokens_stop_is_accepted(self):
        respx.post(ANTHROPIC_URL).mock(return_value=httpx.Response(200, json={
            "content": [{"type": "text", "text": '{"invoiceNo":"A1","lineItems":['}],
            "stop_reason": "max_tokens",
        }))

        result = await AnthropicClient().call("sk-test", RASTER, "extract")
        assert result.raw_text.startswith('{"invoiceNo"')

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_error_uses_error_message(self):
        respx.post(ANTHROPIC_URL).mock(return_value=httpx.Response(
            529, json={"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}
        ))

        with pytest.raises(ProviderError) as exc_info:
            await AnthropicClient().call("sk-test", RASTER, "extract")

        assert exc_info.value.http_status == 529
        assert exc_info.value.reason == "HTTP 529: Overloaded"

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_body_with_200_status(self):
        respx.post(ANTHROPIC_URL).mock(return_value=httpx.Response(
            200, json={"error": {"message": "Your credit balance is too low"}}
        ))

        with pytest.raises(ProviderError, match="credit balance"):
            await AnthropicClient().call("sk-test", RASTER, "extract")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"content": [], "stop_reason": "end_turn"},
        {"content": [{"type": "text", "text": "x"}], "stop_reason": "error"},
        {"content": [{"type": "text", "text": "no"}], "stop_reason": "refusal"},
        {"content": [{"type": "tool_use", "id": "t1"}], "stop_reason": "end_turn"},
    ])
    async def test_unusable_completion_fails(self, body):
        with respx.mock:
            respx.post(ANTHROPIC_URL).mock(return_value=httpx.Response(200, json=body))

            with pytest.raises(ProviderError):
                await AnthropicClient().call("sk-test", RASTER, "extract")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"content": [{"type": "text", "text": 5}], "stop_reason": "end_turn"},
        {"content": [{"type": "text", "text": ["x"]}], "stop_reason": "end_turn"},
        {"content": {"type": "text", "text": "x"}, "stop_reason": "end_turn"},
        {"content": "x", "stop_reason": "end_turn"},
    ])
    async def test_malformed_body_fails(self, body):
        with respx.mock:
            respx.post(ANTHROPIC_URL).mock(return_value=httpx.Response(200, json=body))

            with pytest.raises(ProviderError, match="malformed response body"):
                await AnthropicClient().call("sk-test", RASTER, "extract")

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_error(self):
        respx.post(ANTHROPIC_URL).mock(side_effect=httpx.ConnectError("connection refused"))

        with pytest.raises(ProviderError) as exc_info:
            await AnthropicClient().call("sk-test", RASTER, "extract")

        assert exc_info.value.http_status is None
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_json_body(self):
        respx.post(ANTHROPIC_URL).mock(return_value=httpx.Response(502, text="<html>Bad gateway</html>"))

        with pytest.raises(ProviderError) as exc_info:
            await AnthropicClient().call("sk-test", RASTER, "extract")

        assert exc_info.value.http_status == 502
        assert "non-JSON" in exc_info.value.reason


class TestGeminiClient:

    @pytest.mark.asyncio
    @respx.mock
    async def test_success_concatenates_parts(self):
        route = respx.post(host=GEMINI_HOST, path=GEMINI_PATH).mock(return_value=httpx.Response(200, json={
            "candidates": [{
                "content": {"parts": [{"text": '{"invoiceNo":'}, {"text": '"G1"}'}]},
                "finishReason": "STOP",
            }],
        }))

        result = await GeminiClient().call("g-key", RASTER, "extract")

        assert result.provider_id == "gemini"
        assert result.raw_text == '{"invoiceNo":"G1"}'

        request = route.calls.last.request
        assert request.url.params["key"] == "g-key"
        body = json.loads(request.content)
        assert body["contents"][0]["parts"][0] == {
            "inline_data": {"mime_type": "image/jpeg", "data": "aGVsbG8="}
        }
        assert body["contents"][0]["parts"][1] == {"text": "extract"}
        assert body["generationConfig"] == {"temperature": 0.1, "maxOutputTokens": 4000}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body, expected", [
        ({"candidates": []}, "no candidates"),
        ({"promptFeedback": {"blockReason": "SAFETY"}}, "SAFETY"),
        ({"candidates": [{"content": {"parts": [{"text": "x"}]}, "finishReason": "RECITATION"}]}, "RECITATION"),
        ({"candidates": [{"content": {"parts": []}, "finishReason": "STOP"}]}, "empty content"),
        ({"error": {"message": "quota exceeded"}}, "quota exceeded"),
    ])
    async def test_unusable_completion_fails(self, body, expected):
        with respx.mock:
            respx.post(host=GEMINI_HOST, path=GEMINI_PATH).mock(return_value=httpx.Response(200, json=body))

            with pytest.raises(ProviderError, match=expected):
                await GeminiClient().call("g-key", RASTER, "extract")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"candidates": ["oops"]},
        {"candidates": {"content": {"parts": [{"text": "x"}]}}},
        {"candidates": [{"content": {"parts": {"text": "x"}}, "finishReason": "STOP"}]},
        {"promptFeedback": "blocked"},
    ])
    async def test_malformed_body_fails(self, body):
        with respx.mock:
            respx.post(host=GEMINI_HOST, path=GEMINI_PATH).mock(return_value=httpx.Response(200, json=body))

            with pytest.raises(ProviderError, match="malformed response body"):
                await GeminiClient().call("g-key", RASTER, "extract")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["oops", {"parts": [{"text": 7}, "x"]}])
    async def test_content_without_text_parts_is_empty(self, content):
        with respx.mock:
            respx.post(host=GEMINI_HOST, path=GEMINI_PATH).mock(return_value=httpx.Response(200, json={
                "candidates": [{"content": content, "finishReason": "STOP"}],
            }))

            with pytest.raises(ProviderError, match="empty content"):
                await GeminiClient().call("g-key", RASTER, "extract")

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_error(self):
        respx.post(host=GEMINI_HOST, path=GEMINI_PATH).mock(return_value=httpx.Response(
            429, json={"error": {"code": 429, "message": "Resource has been exhausted"}}
        ))

        with pytest.raises(ProviderError) as exc_info:
            await GeminiClient().call("g-key", RASTER, "extract")

        assert exc_info.value.http_status == 429
        assert "Resource has been exhausted" in exc_info.value.reason

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_error_hides_key(self):
        respx.post(host=GEMINI_HOST, path=GEMINI_PATH).mock(
            side_effect=httpx.ReadTimeout("timed out reading g-key-secret")
        )

        with pytest.raises(ProviderError) as exc_info:
            await GeminiClient().call("g-key-secret", RASTER, "extract")

        assert "g-key-secret" not in str(exc_info.value)
