"""
Provider Result and Client Protocol.

Every provider client turns one page image plus the extraction prompt
into a ProviderResult, or raises ProviderError. Clients share no base
class; anything with a ``provider_id`` and an async ``call`` qualifies.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Protocol, runtime_checkable

import httpx

from invoice_lens.input_handler.raster_image import RasterImage
from invoice_lens.utils.exceptions import ProviderError


@dataclass(frozen=True)
class ProviderResult:
    """
    Normalized successful completion.

    Attributes:
        provider_id: Provider that produced the text.
        raw_text: Completion text, possibly wrapped in prose or fences.
    """
    provider_id: str
    raw_text: str

    def __repr__(self) -> str:
        return f"ProviderResult(provider={self.provider_id!r}, chars={len(self.raw_text)})"


@runtime_checkable
class ProviderClient(Protocol):
    """Capability shared by all provider clients."""

    provider_id: str

    async def call(self, api_key: str, image: RasterImage, prompt: str) -> ProviderResult:
        ...


def decode_json_body(provider_id: str, response: httpx.Response) -> Dict[str, Any]:
    """
    Decode a provider response body as a JSON object.

    Non-2xx responses and bodies that are not JSON objects become
    ProviderError; the error message prefers the provider's own
    ``error.message``.
    """
    try:
        data = response.json()
    except ValueError as e:
        excerpt = response.text[:200]
        raise ProviderError(
            provider_id,
            f"HTTP {response.status_code}: non-JSON response: {excerpt}",
            http_status=response.status_code,
            cause=e
        )

    if not isinstance(data, dict):
        raise ProviderError(
            provider_id,
            f"HTTP {response.status_code}: unexpected response body",
            http_status=response.status_code
        )

    if response.is_error:
        raise ProviderError(
            provider_id,
            f"HTTP {response.status_code}: {error_message(data)}",
            http_status=response.status_code
        )

    return data


def error_message(data: Dict[str, Any]) -> str:
    """Best description of an error payload."""
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    return json.dumps(data)[:200]
