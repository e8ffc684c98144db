"""
Gemini generateContent Client.

Sends one page image and the extraction prompt to
``/v1beta/models/{model}:generateContent`` and returns the concatenated
text parts of the first candidate.
"""

from typing import Any, Dict, Optional

import httpx

from config import get_config
from invoice_lens.input_handler.raster_image import RasterImage
from invoice_lens.utils.logger import get_logger
from invoice_lens.utils.exceptions import ProviderError

from .provider_result import ProviderResult, decode_json_body, error_message

logger = get_logger(__name__)


class GeminiClient:
    """
    Client for the Gemini generateContent API.

    The API key travels as the ``key`` query parameter and is kept out
    of log lines.
    """

    provider_id = "gemini"

    ACCEPTED_FINISH_REASONS = ("STOP", "MAX_TOKENS")

    def __init__(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None
    ) -> None:
        self.base_url = (
            base_url or get_config(
                "providers.gemini.base_url", "https://generativelanguage.googleapis.com"
            )
        ).rstrip("/")
        self.model = model or get_config("providers.gemini.model", "gemini-2.5-flash")
        self.max_tokens = max_tokens or get_config("providers.gemini.max_tokens", 4000)
        self.temperature = (
            temperature if temperature is not None
            else get_config("providers.gemini.temperature", 0.1)
        )
        self.timeout = timeout or get_config("providers.gemini.timeout", 120)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1beta/models/{self.model}:generateContent"

    def build_payload(self, image: RasterImage, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{
                "parts": [
                    {"inline_data": {"mime_type": image.media_type, "data": image.base64_data}},
                    {"text": prompt},
                ],
            }],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }

    async def call(self, api_key: str, image: RasterImage, prompt: str) -> ProviderResult:
        """
        Send a single extraction request.

        Raises:
            ProviderError: On transport failure, non-2xx status, an error
                           or block payload, or an empty completion.
        """
        logger.debug(f"POST {self.endpoint}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.endpoint,
                    params={"key": api_key},
                    headers={"content-type": "application/json"},
                    json=self.build_payload(image, prompt)
                )
        except httpx.HTTPError as e:
            # httpx includes the request URL in some messages; keep the key out
            reason = str(e).replace(api_key, "***") if api_key else str(e)
            raise ProviderError(self.provider_id, f"request error: {type(e).__name__}: {reason}", cause=e)

        data = decode_json_body(self.provider_id, response)
        return ProviderResult(self.provider_id, self.extract_text(data))

    def extract_text(self, data: Dict[str, Any]) -> str:
        """Concatenate the text parts of the first candidate, in order."""
        if data.get("error"):
            raise ProviderError(self.provider_id, f"API error: {error_message(data)}")

        feedback = data.get("promptFeedback") or {}
        if not isinstance(feedback, dict):
            raise ProviderError(self.provider_id, "malformed response body (promptFeedback)")
        if feedback.get("blockReason"):
            raise ProviderError(
                self.provider_id,
                f"prompt blocked (blockReason: {feedback['blockReason']})"
            )

        candidates = data.get("candidates") or []
        if not isinstance(candidates, list):
            raise ProviderError(self.provider_id, "malformed response body (candidates)")
        if not candidates:
            raise ProviderError(self.provider_id, "returned no candidates")

        candidate = candidates[0] or {}
        if not isinstance(candidate, dict):
            raise ProviderError(self.provider_id, "malformed response body (candidate)")

        content = candidate.get("content") or {}
        parts = content.get("parts") if isinstance(content, dict) else None
        if parts is None:
            parts = []
        if not isinstance(parts, list):
            raise ProviderError(self.provider_id, "malformed response body (content)")

        finish_reason = candidate.get("finishReason") or "unknown"
        text = "".join(
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )

        if finish_reason not in self.ACCEPTED_FINISH_REASONS and finish_reason != "unknown":
            raise ProviderError(
                self.provider_id,
                f"returned no usable content (finishReason: {finish_reason})"
            )

        if not text:
            raise ProviderError(
                self.provider_id,
                f"returned empty content (finishReason: {finish_reason})"
            )

        if finish_reason == "MAX_TOKENS":
            logger.warning("Gemini completion hit MAX_TOKENS; response may be truncated")

        return text
