"""
Invoice Session Module.

In-memory review workflow for a batch of uploaded documents:

    add -> extract -> (update) -> save -> export

Each queued document is extracted as its own asyncio task; a task only
ever writes to its own QueueItem, looked up by item id. Nothing here is
persisted.

Usage:
    session = InvoiceSession()
    item = session.add("invoice.pdf", data)
    await session.extract_all()
    session.save(item.item_id)
    session.export()
"""

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from config import get_config
from invoice_lens.model_inference import ExtractionOrchestrator
from invoice_lens.output_handler import ExcelExporter
from invoice_lens.postprocessor.invoice_record import InvoiceRecord
from invoice_lens.utils.logger import get_logger
from invoice_lens.utils.exceptions import (
    InvoiceExtractionError,
    ProviderError,
    SessionError,
    format_failure_message,
)

logger = get_logger(__name__)

PENDING = "pending"
EXTRACTING = "extracting"
READY = "ready"
ERROR = "error"
SAVED = "saved"

DEFAULT_MAX_FILES = 3


@dataclass
class QueueItem:
    """
    One uploaded document and its extraction state.

    Attributes:
        item_id: Session-unique identifier.
        file_name: Original filename.
        data: Raw file contents.
        mime: Declared MIME type, if any.
        status: pending, extracting, ready, error or saved.
        record: Extracted record once ready.
        provider_id: Provider that produced the record.
        attempts: Failed provider attempts before the record was produced.
        error: User-visible failure message when status is error.
    """
    item_id: str
    file_name: str
    data: bytes = field(repr=False)
    mime: Optional[str] = None
    status: str = PENDING
    record: Optional[InvoiceRecord] = None
    provider_id: Optional[str] = None
    attempts: List[ProviderError] = field(default_factory=list, repr=False)
    error: Optional[str] = None


@dataclass
class SavedInvoice:
    """A reviewed record ready for export."""
    record: InvoiceRecord
    file_name: str = ""


class InvoiceSession:
    """
    Caller-held queue of documents under review.

    Attributes:
        orchestrator: Runs the extraction pipeline for each item.
        max_files: Largest number of unsaved items the queue may hold.
        saved: Invoices saved so far, in save order.
    """

    def __init__(
        self,
        orchestrator: Optional[ExtractionOrchestrator] = None,
        max_files: Optional[int] = None,
        exporter: Optional[ExcelExporter] = None
    ) -> None:
        self.orchestrator = orchestrator or ExtractionOrchestrator()
        self.max_files = max_files or get_config("session.max_files", DEFAULT_MAX_FILES)
        self.exporter = exporter
        self.saved: List[SavedInvoice] = []
        self._items: Dict[str, QueueItem] = {}
        self._ids = itertools.count(1)

    @property
    def items(self) -> List[QueueItem]:
        """Queued items in upload order."""
        return list(self._items.values())

    def get(self, item_id: str) -> QueueItem:
        try:
            return self._items[item_id]
        except KeyError:
            raise SessionError(f"No queued item: {item_id}")

    def add(self, filename: str, data: bytes, mime: Optional[str] = None) -> QueueItem:
        """
        Queue a document for extraction.

        Raises:
            SessionError: If the queue already holds max_files items.
        """
        if len(self._items) >= self.max_files:
            raise SessionError(
                f"Queue is full ({self.max_files} files). Save or remove an invoice first.",
                {"max_files": self.max_files}
            )

        item = QueueItem(item_id=f"item-{next(self._ids)}", file_name=filename, data=data, mime=mime)
        self._items[item.item_id] = item
        logger.debug(f"Queued {filename} as {item.item_id}")
        return item

    async def extract(self, item_id: str) -> QueueItem:
        """
        Run the pipeline for one item.

        Failures are recorded on the item (status error plus message)
        rather than raised, so a batch keeps going.
        """
        item = self.get(item_id)
        if item.status not in (PENDING, ERROR):
            raise SessionError(f"Cannot extract {item.file_name} while {item.status}")

        item.status = EXTRACTING
        item.error = None

        try:
            result = await self.orchestrator.extract(item.data, item.mime, item.file_name)
        except InvoiceExtractionError as e:
            item.status = ERROR
            item.error = format_failure_message(e)
            logger.error(f"{item.file_name}: {item.error}")
            return item
        except Exception as e:
            item.status = ERROR
            item.error = f"Unexpected error: {type(e).__name__}: {e}"
            logger.exception(f"Error processing {item.file_name}")
            return item

        item.record = result.record
        item.provider_id = result.provider_id
        item.attempts = list(result.attempts)
        item.status = READY
        return item

    async def extract_all(self) -> List[QueueItem]:
        """Extract every pending item concurrently."""
        pending = [item.item_id for item in self._items.values() if item.status == PENDING]
        if not pending:
            return []

        logger.info(f"Extracting {len(pending)} queued file(s)")
        return list(await asyncio.gather(*(self.extract(item_id) for item_id in pending)))

    def update(
        self,
        item_id: str,
        fields: Optional[Mapping[str, Any]] = None,
        line_items: Optional[List[Any]] = None
    ) -> InvoiceRecord:
        """
        Apply review edits to an extracted record.

        Args:
            item_id: Item to edit.
            fields: Scalar field values keyed by JSON key (e.g. "invoiceNo").
            line_items: Replacement line-item list.

        Raises:
            SessionError: If the item has no record or a key is unknown.
        """
        item = self.get(item_id)
        if item.record is None:
            raise SessionError(f"{item.file_name} has no extracted record to edit")

        for key, value in (fields or {}).items():
            try:
                item.record.set(key, value)
            except KeyError:
                raise SessionError(f"Unknown invoice field: {key}")

        if line_items is not None:
            item.record.line_items = list(line_items)

        return item.record

    def save(self, item_id: str) -> SavedInvoice:
        """Move a reviewed item to the saved list."""
        item = self.get(item_id)
        if item.status != READY or item.record is None:
            raise SessionError(f"Cannot save {item.file_name} while {item.status}")

        item.status = SAVED
        saved = SavedInvoice(record=item.record, file_name=item.file_name)
        self.saved.append(saved)
        del self._items[item_id]

        logger.info(f"Saved {item.file_name} ({len(self.saved)} saved)")
        return saved

    def remove(self, item_id: str) -> None:
        item = self.get(item_id)
        del self._items[item_id]
        logger.debug(f"Removed {item.file_name}")

    def export(self, filename: Optional[str] = None, output_dir: Optional[str] = None) -> str:
        """Write saved invoices to Excel; returns the file path."""
        exporter = self.exporter or ExcelExporter()
        return exporter.export(self.saved, filename=filename, output_dir=output_dir)
