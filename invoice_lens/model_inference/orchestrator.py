"""
Extraction Orchestrator Module.

Runs the full pipeline for one document:

    rasterize -> provider call(s) -> parse -> coerce

Providers are tried one at a time in configured priority order. A failed
attempt is logged and recorded, then the next provider is tried; the
page image is rendered once and reused for every attempt. Parsing
failures are terminal for the document and do not trigger failover.

Usage:
    from invoice_lens.model_inference import ExtractionOrchestrator

    orchestrator = ExtractionOrchestrator()
    result = await orchestrator.extract(data, "application/pdf", "invoice.pdf")
    print(result.record.invoice_no, result.provider_id)
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Type

from config import get_config, get_secret
from invoice_lens.input_handler import InputHandler, RasterImage
from invoice_lens.postprocessor import coerce, parse
from invoice_lens.utils.logger import get_logger
from invoice_lens.utils.helpers import format_file_size
from invoice_lens.utils.exceptions import (
    AllProvidersFailedError,
    NoJsonFoundError,
    NoProviderConfiguredError,
    PayloadTooLargeError,
    ProviderError,
)

from .anthropic_client import AnthropicClient
from .extraction_result import ExtractionResult
from .gemini_client import GeminiClient
from .prompt import EXTRACTION_PROMPT
from .provider_result import ProviderClient

logger = get_logger(__name__)

PROVIDER_CLIENTS: Dict[str, Type] = {
    "anthropic": AnthropicClient,
    "gemini": GeminiClient,
}

DEFAULT_PROVIDER_ORDER = ["anthropic", "gemini"]

DEFAULT_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
}

DEFAULT_HARD_CAP_BYTES = 5 * 1024 * 1024


@dataclass(frozen=True)
class ProviderSlot:
    """
    A provider client paired with its credential.

    Attributes:
        client: Object satisfying ProviderClient.
        api_key: Credential, or None when not configured.
        env_name: Environment variable the credential is read from.
    """
    client: ProviderClient
    api_key: Optional[str] = None
    env_name: Optional[str] = None

    @property
    def provider_id(self) -> str:
        return self.client.provider_id

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


def load_provider_slots() -> List[ProviderSlot]:
    """
    Build provider slots from configuration and the environment.

    Order follows ``providers.order``; each provider's credential is read
    from the variable named by ``providers.<id>.api_key_env``. Unknown
    provider ids are skipped with a warning.
    """
    slots = []
    for provider_id in get_config("providers.order", DEFAULT_PROVIDER_ORDER) or []:
        client_class = PROVIDER_CLIENTS.get(provider_id)
        if client_class is None:
            logger.warning(f"Unknown provider in providers.order: {provider_id!r}")
            continue

        env_name = get_config(
            f"providers.{provider_id}.api_key_env", DEFAULT_KEY_ENV.get(provider_id)
        )
        slots.append(ProviderSlot(client_class(), get_secret(env_name), env_name))

    return slots


class ExtractionOrchestrator:
    """
    Invoice extraction with provider failover.

    Attributes:
        input_handler: Rasterizer for incoming documents.
        providers: Explicit provider slots, or None to load them from
                   configuration on every call.
        hard_cap_bytes: Largest page image a provider may be sent.
    """

    def __init__(
        self,
        input_handler: Optional[InputHandler] = None,
        providers: Optional[Sequence[ProviderSlot]] = None
    ) -> None:
        self.input_handler = input_handler or InputHandler()
        self.providers = list(providers) if providers is not None else None
        self.hard_cap_bytes = get_config("input.raster.hard_cap_bytes", DEFAULT_HARD_CAP_BYTES)

        logger.debug("ExtractionOrchestrator initialized")

    def resolve_providers(
        self,
        providers: Optional[Sequence[ProviderSlot]] = None
    ) -> List[ProviderSlot]:
        """
        Return the slots to attempt, in order, keeping only configured ones.

        Raises:
            NoProviderConfiguredError: If no slot has a credential.
        """
        if providers is None:
            providers = self.providers if self.providers is not None else load_provider_slots()

        active = [slot for slot in providers if slot.configured]
        if not active:
            env_names = [slot.env_name for slot in providers if slot.env_name]
            raise NoProviderConfiguredError(env_names or list(DEFAULT_KEY_ENV.values()))

        return active

    def check_payload(self, raster: RasterImage) -> None:
        if raster.estimated_bytes > self.hard_cap_bytes:
            raise PayloadTooLargeError(raster.estimated_bytes, self.hard_cap_bytes)

    async def extract(
        self,
        document_bytes: bytes,
        mime: Optional[str] = None,
        filename: Optional[str] = None,
        prompt: str = EXTRACTION_PROMPT,
        providers: Optional[Sequence[ProviderSlot]] = None
    ) -> ExtractionResult:
        """
        Extract an invoice record from a document.

        Args:
            document_bytes: Raw file contents (PDF or image).
            mime: Declared MIME type, if known.
            filename: Original filename, used for type inference and logs.
            prompt: Extraction instruction sent with the page image.
            providers: Slots to use for this call instead of the defaults.

        Returns:
            ExtractionResult tagged with the provider that succeeded.

        Raises:
            NoProviderConfiguredError: If no provider has a credential.
            UnsupportedFormatError: If the document cannot be identified.
            RenderFailureError: If the document cannot be rendered.
            PayloadTooLargeError: If the page image exceeds the hard cap.
            AllProvidersFailedError: If every attempted provider failed.
            NoJsonFoundError: If the successful completion holds no
                              parseable JSON object.
        """
        start_time = time.time()
        source = filename or "<upload>"

        slots = self.resolve_providers(providers)

        raster = await asyncio.to_thread(
            self.input_handler.rasterize, document_bytes, mime, filename
        )
        self.check_payload(raster)

        attempts: List[ProviderError] = []

        for slot in slots:
            logger.info(f"Extracting {source} with {slot.provider_id}")
            try:
                result = await slot.client.call(slot.api_key, raster, prompt)
            except ProviderError as e:
                logger.warning(f"{source}: {e}")
                attempts.append(e)
                continue

            try:
                record = coerce(parse(result.raw_text))
            except NoJsonFoundError as e:
                e.provider_id = result.provider_id
                logger.error(f"{source}: {result.provider_id} response unparseable: {e.reason}")
                raise

            processing_time = time.time() - start_time
            logger.info(
                f"Extracted {source} via {result.provider_id} in {processing_time:.2f}s"
                + (f" after {len(attempts)} failed attempt(s)" if attempts else "")
            )

            return ExtractionResult(
                record=record,
                provider_id=result.provider_id,
                attempts=attempts,
                raw_text=result.raw_text,
                source_file=filename,
                processing_time=processing_time
            )

        logger.error(
            f"{source}: all {len(attempts)} provider(s) failed "
            f"(image ~{format_file_size(raster.estimated_bytes)})"
        )
        raise AllProvidersFailedError(attempts)


async def extract(
    document_bytes: bytes,
    mime: Optional[str] = None,
    filename: Optional[str] = None,
    prompt: str = EXTRACTION_PROMPT,
    providers: Optional[Sequence[ProviderSlot]] = None
) -> ExtractionResult:
    """Extract with a default-configured ExtractionOrchestrator."""
    return await ExtractionOrchestrator().extract(
        document_bytes, mime, filename, prompt, providers
    )
