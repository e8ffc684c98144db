"""
Shared pytest fixtures.

Every test starts from the bundled settings.yaml with no provider
credentials in the environment.
"""

import io
from typing import List, Optional

import pytest
from PIL import Image

from config import ConfigurationManager, CONFIG_PATH_ENV
from invoice_lens.model_inference import ProviderResult
from invoice_lens.utils.exceptions import ProviderError


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """Reset the configuration singleton and clear credentials."""
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    ConfigurationManager.reset()
    yield
    ConfigurationManager.reset()


def image_bytes(width: int, height: int, mode: str = "RGB", color=(200, 200, 200), fmt: str = "PNG") -> bytes:
    image = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def make_image():
    """Factory for encoded test images."""
    return image_bytes


@pytest.fixture
def png_bytes() -> bytes:
    return image_bytes(300, 400)


@pytest.fixture
def pdf_bytes() -> bytes:
    """Two-page A4 PDF with some text on page one."""
    import fitz

    doc = fitz.open()
    page = doc.new_page(width=595, height=842)
    page.insert_text((72, 72), "INVOICE INV-9  Total 42.00 USD")
    doc.new_page(width=595, height=842)
    data = doc.tobytes()
    doc.close()
    return data


class FakeClient:
    """Provider client that returns canned text or raises."""

    def __init__(self, provider_id: str, text: Optional[str] = None, error: Optional[str] = None):
        self.provider_id = provider_id
        self.text = text
        self.error = error
        self.calls: List[tuple] = []

    async def call(self, api_key, image, prompt):
        self.calls.append((api_key, image, prompt))
        if self.error is not None:
            raise ProviderError(self.provider_id, self.error, http_status=500)
        return ProviderResult(self.provider_id, self.text)


@pytest.fixture
def fake_client():
    """Factory for FakeClient instances."""
    return FakeClient


VALID_RESPONSE = (
    '{"invoiceNo":"INV-9","invoiceDate":"2024-07-01","vendorName":"Acme Ltd",'
    '"amount":"42.00","currency":"USD",'
    '"lineItems":[{"description":"Widget","qty":"2","unitPrice":"21.00","amount":"42.00"}]}'
)


@pytest.fixture
def valid_response() -> str:
    return VALID_RESPONSE
