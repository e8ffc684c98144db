"""
Post-Processing Module for Invoice Lens.

This module provides functionality for:
    - Tolerant JSON extraction from model responses
    - Truncated-response repair
    - Coercion onto the fixed invoice schema
"""

from .response_parser import parse, strip_code_fences, repair_truncated
from .coercion import coerce
from .invoice_record import (
    InvoiceRecord,
    LineItem,
    INVOICE_FIELDS,
    FIELD_KEYS,
    LINE_ITEMS_KEY,
)

__all__ = [
    'parse',
    'strip_code_fences',
    'repair_truncated',
    'coerce',
    'InvoiceRecord',
    'LineItem',
    'INVOICE_FIELDS',
    'FIELD_KEYS',
    'LINE_ITEMS_KEY',
]
