"""
Invoice Record Data Classes.

The canonical output of the extraction pipeline. Every scalar field is
always present as a string ("" when unknown) so downstream consumers can
treat a record as a total mapping.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

# (json key, attribute name, display label), in form order
INVOICE_FIELDS: List[Tuple[str, str, str]] = [
    ("invoiceNo", "invoice_no", "Invoice No."),
    ("invoiceDate", "invoice_date", "Invoice Date"),
    ("dueDate", "due_date", "Due Date"),
    ("paymentTerms", "payment_terms", "Payment Terms"),
    ("vendorName", "vendor_name", "Vendor Name"),
    ("vendorAddress", "vendor_address", "Vendor Address"),
    ("billToName", "bill_to_name", "Bill To Name"),
    ("billToAddress", "bill_to_address", "Bill To Address"),
    ("amount", "amount", "Total Amount"),
    ("currency", "currency", "Currency"),
    ("taxAmount", "tax_amount", "Tax Amount"),
    ("poNumber", "po_number", "PO Number"),
    ("description", "description", "Notes / Summary"),
    ("bankDetails", "bank_details", "Bank / Payment"),
]

FIELD_KEYS: List[str] = [key for key, _, _ in INVOICE_FIELDS]

LINE_ITEMS_KEY = "lineItems"

_ATTR_BY_KEY: Dict[str, str] = {key: attr for key, attr, _ in INVOICE_FIELDS}

# (json key, attribute name)
LINE_ITEM_FIELDS: List[Tuple[str, str]] = [
    ("description", "description"),
    ("qty", "qty"),
    ("unitPrice", "unit_price"),
    ("amount", "amount"),
]


def text_value(value: Any) -> str:
    """
    Render a parsed JSON value as field text.

    Strings pass through, numbers are printed, and anything else
    (null, booleans, objects, arrays) becomes "".
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return ""
    # a numeric 0 is a real amount (e.g. zero tax) and is kept as "0"
    if isinstance(value, (int, float)):
        return str(value)
    return ""


@dataclass
class LineItem:
    """
    One itemized charge, as shown in review tables and exports.

    Line items are stored on InvoiceRecord exactly as the model returned
    them; LineItem is the presentation view built with from_entry().
    """
    description: str = ""
    qty: str = ""
    unit_price: str = ""
    amount: str = ""

    @classmethod
    def from_entry(cls, entry: Any) -> 'LineItem':
        """Build a LineItem from a raw entry; non-mapping entries give an empty row."""
        if not isinstance(entry, Mapping):
            return cls()
        return cls(**{attr: text_value(entry.get(key)) for key, attr in LINE_ITEM_FIELDS})

    def to_dict(self) -> Dict[str, str]:
        return {key: getattr(self, attr) for key, attr in LINE_ITEM_FIELDS}


@dataclass
class InvoiceRecord:
    """
    Canonical invoice record.

    Attributes mirror INVOICE_FIELDS; ``line_items`` holds the model's
    line-item entries unchanged.

    Example:
        >>> record = InvoiceRecord(invoice_no="INV-9", amount="42.00")
        >>> record.to_dict()["invoiceNo"]
        'INV-9'
    """
    invoice_no: str = ""
    invoice_date: str = ""
    due_date: str = ""
    payment_terms: str = ""
    vendor_name: str = ""
    vendor_address: str = ""
    bill_to_name: str = ""
    bill_to_address: str = ""
    amount: str = ""
    currency: str = ""
    tax_amount: str = ""
    po_number: str = ""
    description: str = ""
    bank_details: str = ""
    line_items: List[Any] = field(default_factory=list)

    @property
    def fields(self) -> Dict[str, str]:
        """Scalar fields keyed by their JSON key, in form order."""
        return {key: getattr(self, attr) for key, attr, _ in INVOICE_FIELDS}

    @property
    def missing_fields(self) -> List[str]:
        return [key for key, value in self.fields.items() if value == ""]

    @property
    def extracted_fields(self) -> Dict[str, str]:
        return {key: value for key, value in self.fields.items() if value != ""}

    @property
    def line_item_rows(self) -> List[LineItem]:
        return [LineItem.from_entry(entry) for entry in self.line_items]

    def get(self, key: str) -> str:
        """Get a scalar field by JSON key."""
        if key not in _ATTR_BY_KEY:
            raise KeyError(key)
        return getattr(self, _ATTR_BY_KEY[key])

    def set(self, key: str, value: str) -> None:
        """Set a scalar field by JSON key; None is stored as ""."""
        if key not in _ATTR_BY_KEY:
            raise KeyError(key)
        setattr(self, _ATTR_BY_KEY[key], "" if value is None else str(value))

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready mapping with every scalar key plus ``lineItems``."""
        data: Dict[str, Any] = dict(self.fields)
        data[LINE_ITEMS_KEY] = list(self.line_items)
        return data

    def __repr__(self) -> str:
        return (
            f"InvoiceRecord(invoice={self.invoice_no!r}, "
            f"vendor={self.vendor_name!r}, "
            f"amount={self.amount!r} {self.currency}, "
            f"line_items={len(self.line_items)})"
        )
