"""
Model Inference Module for Invoice Lens.

This module sends rendered invoice pages to hosted vision models and
turns their replies into invoice records.

Features:
    - Anthropic and Gemini clients behind one call signature
    - Sequential provider failover in configured priority order
    - A fixed extraction prompt with an exact JSON schema

Providers:
    - anthropic (ANTHROPIC_API_KEY)
    - gemini (GEMINI_API_KEY)
"""

from .anthropic_client import AnthropicClient
from .gemini_client import GeminiClient
from .provider_result import ProviderResult, ProviderClient
from .extraction_result import ExtractionResult
from .orchestrator import (
    ExtractionOrchestrator,
    ProviderSlot,
    load_provider_slots,
    extract,
)
from .prompt import EXTRACTION_PROMPT

__all__ = [
    'AnthropicClient',
    'GeminiClient',
    'ProviderResult',
    'ProviderClient',
    'ExtractionResult',
    'ExtractionOrchestrator',
    'ProviderSlot',
    'load_provider_slots',
    'extract',
    'EXTRACTION_PROMPT',
]
