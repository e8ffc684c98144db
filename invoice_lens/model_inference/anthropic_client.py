"""
Anthropic Messages API Client.

Sends one page image and the extraction prompt to ``/v1/messages`` and
returns the concatenated text blocks of the reply.

Failure cases (all raised as ProviderError):
    - Transport errors and timeouts
    - Non-2xx status or a non-JSON body
    - A 200 response that still carries an ``error`` object
    - ``stop_reason`` of "error" or "refusal"
    - No content blocks, or no text in them
    - A body whose content does not have the documented shape

A ``max_tokens`` stop is a success: the truncated JSON is repaired by the
response parser.
"""

from typing import Any, Dict, Optional

import httpx

from config import get_config
from invoice_lens.input_handler.raster_image import RasterImage
from invoice_lens.utils.logger import get_logger
from invoice_lens.utils.exceptions import ProviderError

from .provider_result import ProviderResult, decode_json_body, error_message

logger = get_logger(__name__)


class AnthropicClient:
    """
    Client for the Anthropic Messages API.

    Attributes:
        provider_id: Always "anthropic".
        base_url: API root, without trailing slash.
        api_version: Value of the ``anthropic-version`` header.
        model: Model name.
        max_tokens: Completion token limit.
        timeout: Request timeout in seconds.

    Example:
        >>> client = AnthropicClient()
        >>> result = await client.call(api_key, raster, EXTRACTION_PROMPT)
        >>> result.provider_id
        'anthropic'
    """

    provider_id = "anthropic"

    FAILED_STOP_REASONS = ("error", "refusal")

    def __init__(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None
    ) -> None:
        self.base_url = (
            base_url or get_config("providers.anthropic.base_url", "https://api.anthropic.com")
        ).rstrip("/")
        self.api_version = get_config("providers.anthropic.api_version", "2023-06-01")
        self.model = model or get_config("providers.anthropic.model", "claude-haiku-4-5-20251001")
        self.max_tokens = max_tokens or get_config("providers.anthropic.max_tokens", 4000)
        self.timeout = timeout or get_config("providers.anthropic.timeout", 120)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1/messages"

    def build_payload(self, image: RasterImage, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": image.media_type,
                            "data": image.base64_data,
                        },
                    },
                    {"type": "text", "text": prompt},
                ],
            }],
        }

    async def call(self, api_key: str, image: RasterImage, prompt: str) -> ProviderResult:
        """
        Send a single extraction request.

        Args:
            api_key: Anthropic API key.
            image: Page image to extract from.
            prompt: Extraction instruction.

        Returns:
            ProviderResult with the concatenated completion text.

        Raises:
            ProviderError: On any transport or provider-level failure.
        """
        headers = {
            "content-type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": self.api_version,
        }

        logger.debug(f"POST {self.endpoint} model={self.model}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.endpoint,
                    headers=headers,
                    json=self.build_payload(image, prompt)
                )
        except httpx.HTTPError as e:
            raise ProviderError(self.provider_id, f"request error: {type(e).__name__}: {e}", cause=e)

        data = decode_json_body(self.provider_id, response)
        return ProviderResult(self.provider_id, self.extract_text(data))

    def extract_text(self, data: Dict[str, Any]) -> str:
        """Concatenate the text blocks of a Messages API reply, in order."""
        if data.get("error"):
            raise ProviderError(self.provider_id, f"API error: {error_message(data)}")

        stop_reason = data.get("stop_reason")
        content = data.get("content") or []

        if stop_reason in self.FAILED_STOP_REASONS or not content:
            raise ProviderError(
                self.provider_id,
                f"returned no content (stop_reason: {stop_reason})"
            )
        if not isinstance(content, list):
            raise ProviderError(self.provider_id, "malformed response body (content)")

        blocks = [
            block for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        if any(not isinstance(block.get("text") or "", str) for block in blocks):
            raise ProviderError(self.provider_id, "malformed response body (text block)")

        text = "".join(block.get("text") or "" for block in blocks)
        if not text:
            raise ProviderError(
                self.provider_id,
                f"returned no text (stop_reason: {stop_reason})"
            )

        if stop_reason == "max_tokens":
            logger.warning("Anthropic completion hit max_tokens; response may be truncated")

        return text
