"""
Field Coercion Module.

Maps a parsed model response onto InvoiceRecord. Coercion never fails:
missing, null or oddly-typed values become "", and a missing or
non-list ``lineItems`` becomes []. Line-item entries are kept as-is.
"""

from typing import Any, Mapping

from .invoice_record import INVOICE_FIELDS, LINE_ITEMS_KEY, InvoiceRecord, text_value


def coerce(parsed: Any) -> InvoiceRecord:
    """
    Build a total InvoiceRecord from a parsed JSON object.

    Args:
        parsed: Output of response_parser.parse(); any value is accepted.

    Returns:
        InvoiceRecord with every scalar field set.

    Example:
        >>> coerce({"invoiceNo": "INV-9", "amount": 42}).amount
        '42'
        >>> coerce({}).line_items
        []
    """
    if not isinstance(parsed, Mapping):
        return InvoiceRecord()

    values = {attr: text_value(parsed.get(key)) for key, attr, _ in INVOICE_FIELDS}

    line_items = parsed.get(LINE_ITEMS_KEY)
    values["line_items"] = list(line_items) if isinstance(line_items, list) else []

    return InvoiceRecord(**values)
