"""
Extraction Result Data Class.

Wraps the InvoiceRecord produced for one document with the metadata of
how it was produced: which provider answered, which attempts failed
before it, and the raw completion text.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from invoice_lens.postprocessor.invoice_record import InvoiceRecord
from invoice_lens.utils.exceptions import ProviderError


@dataclass
class ExtractionResult:
    """
    Result of a successful extraction.

    Attributes:
        record: The coerced invoice record.
        provider_id: Provider whose completion was used.
        attempts: ProviderError for every attempt that failed first.
        raw_text: Completion text the record was parsed from.
        source_file: Source filename, if known.
        processing_time: Wall time for the whole pipeline, in seconds.
        extraction_timestamp: ISO timestamp, set on creation.

    Example:
        >>> result = await orchestrator.extract(data, filename="inv.pdf")
        >>> result.record.invoice_no
        'INV-9'
        >>> result.used_fallback
        False
    """
    record: InvoiceRecord
    provider_id: str
    attempts: List[ProviderError] = field(default_factory=list)
    raw_text: str = ""
    source_file: Optional[str] = None
    processing_time: float = 0.0
    extraction_timestamp: Optional[str] = None

    def __post_init__(self):
        if self.extraction_timestamp is None:
            self.extraction_timestamp = datetime.now().isoformat()

    @property
    def used_fallback(self) -> bool:
        """True when at least one provider failed before this result."""
        return bool(self.attempts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'record': self.record.to_dict(),
            'provider': self.provider_id,
            'failed_attempts': [
                {'provider': a.provider_id, 'reason': a.reason, 'http_status': a.http_status}
                for a in self.attempts
            ],
            'used_fallback': self.used_fallback,
            'source_file': self.source_file,
            'processing_time': self.processing_time,
            'extraction_timestamp': self.extraction_timestamp,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def __repr__(self) -> str:
        return (
            f"ExtractionResult(provider={self.provider_id!r}, "
            f"invoice={self.record.invoice_no!r}, "
            f"fallback={self.used_fallback}, "
            f"time={self.processing_time:.2f}s)"
        )
