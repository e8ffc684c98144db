"""
Invoice Lens - Source Package.

This package contains the core modules for vision-model invoice
extraction. Each module has a single responsibility.

Modules:
    - input_handler: PDF and image rasterization under a byte budget
    - model_inference: Provider clients and failover orchestration
    - postprocessor: Tolerant JSON parsing and field coercion
    - output_handler: Excel export
    - session: In-memory review queue
    - utils: Logging, exceptions and helpers

Architecture:
    Input -> Rasterize -> Provider (with fallback) -> Parse -> Coerce
                                                               |
                                                  Session -> Excel
"""

__version__ = "1.0.0"

__all__ = [
    'input_handler',
    'model_inference',
    'postprocessor',
    'output_handler',
    'session',
    'utils'
]
