import asyncio

import pytest
from openpyxl import load_workbook

from invoice_lens.model_inference import ExtractionResult
from invoice_lens.postprocessor import InvoiceRecord
from invoice_lens.session import InvoiceSession
from invoice_lens.utils.exceptions import AllProvidersFailedError, NoJsonFoundError, ProviderError, SessionError


class StubOrchestrator:
    """Returns a record named after the file, or raises a queued error."""

    def __init__(self, errors=None, delay=0.0):
        self.errors = errors or {}
        self.delay = delay
        self.active = 0
        self.max_active = 0

    async def extract(self, data, mime=None, filename=None):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            if filename in self.errors:
                raise self.errors[filename]
            record = InvoiceRecord(invoice_no=filename.split(".")[0], amount="10.00")
            return ExtractionResult(record=record, provider_id="anthropic", source_file=filename)
        finally:
            self.active -= 1


def test_add_respects_max_files():
    session = InvoiceSession(orchestrator=StubOrchestrator())
    assert session.max_files == 3

    for name in ("a.pdf", "b.pdf", "c.pdf"):
        session.add(name, b"data")

    with pytest.raises(SessionError):
        session.add("d.pdf", b"data")

    assert [item.status for item in session.items] == ["pending"] * 3


@pytest.mark.asyncio
async def test_extract_all_runs_items_concurrently():
    orchestrator = StubOrchestrator(delay=0.02)
    session = InvoiceSession(orchestrator=orchestrator)
    for name in ("a.pdf", "b.pdf", "c.pdf"):
        session.add(name, b"data")

    items = await session.extract_all()

    assert [item.status for item in items] == ["ready"] * 3
    assert [item.record.invoice_no for item in items] == ["a", "b", "c"]
    assert orchestrator.max_active == 3


@pytest.mark.asyncio
async def test_failed_item_records_message_with_raw_text():
    errors = {
        "bad.pdf": NoJsonFoundError("No JSON object in response:\n", raw_text="I see a cat, not an invoice."),
        "down.pdf": AllProvidersFailedError([ProviderError("anthropic", "HTTP 529: Overloaded")]),
    }
    session = InvoiceSession(orchestrator=StubOrchestrator(errors=errors))
    bad = session.add("bad.pdf", b"data")
    down = session.add("down.pdf", b"data")
    good = session.add("good.pdf", b"data")

    await session.extract_all()

    assert bad.status == "error"
    assert bad.error.endswith("Raw: I see a cat, not an invoice.")
    assert down.status == "error"
    assert down.error == "Provider failed.\nanthropic: HTTP 529: Overloaded"
    assert good.status == "ready"


@pytest.mark.asyncio
async def test_errored_item_can_be_retried():
    orchestrator = StubOrchestrator(errors={"a.pdf": NoJsonFoundError("nope")})
    session = InvoiceSession(orchestrator=orchestrator)
    item = session.add("a.pdf", b"data")

    await session.extract(item.item_id)
    assert item.status == "error"

    orchestrator.errors.clear()
    await session.extract(item.item_id)
    assert item.status == "ready"
    assert item.error is None


@pytest.mark.asyncio
async def test_update_save_and_export(tmp_path):
    session = InvoiceSession(orchestrator=StubOrchestrator())
    item = session.add("a.pdf", b"data")
    await session.extract(item.item_id)

    session.update(
        item.item_id,
        fields={"vendorName": "Acme", "amount": "12.50"},
        line_items=[{"description": "Fix", "qty": "1", "unitPrice": "12.50", "amount": "12.50"}],
    )
    saved = session.save(item.item_id)

    assert saved.file_name == "a.pdf"
    assert saved.record.vendor_name == "Acme"
    assert session.items == []
    assert session.saved == [saved]

    path = session.export(filename="session.xlsx", output_dir=str(tmp_path))
    workbook = load_workbook(path)
    assert workbook.sheetnames == ["Invoices", "a"]
    assert workbook["Invoices"]["H2"].value == "12.50"


def test_save_requires_ready_item():
    session = InvoiceSession(orchestrator=StubOrchestrator())
    item = session.add("a.pdf", b"data")

    with pytest.raises(SessionError):
        session.save(item.item_id)

    with pytest.raises(SessionError):
        session.update(item.item_id, fields={"invoiceNo": "X"})


@pytest.mark.asyncio
async def test_update_rejects_unknown_field():
    session = InvoiceSession(orchestrator=StubOrchestrator())
    item = session.add("a.pdf", b"data")
    await session.extract(item.item_id)

    with pytest.raises(SessionError, match="total"):
        session.update(item.item_id, fields={"total": "1"})


def test_remove_frees_a_slot():
    session = InvoiceSession(orchestrator=StubOrchestrator(), max_files=1)
    item = session.add("a.pdf", b"data")

    session.remove(item.item_id)
    session.add("b.pdf", b"data")

    with pytest.raises(SessionError):
        session.remove(item.item_id)


@pytest.mark.asyncio
async def test_unexpected_error_does_not_abort_batch():
    orchestrator = StubOrchestrator(errors={"a.pdf": AttributeError("'str' object has no attribute 'get'")})
    session = InvoiceSession(orchestrator=orchestrator)
    broken = session.add("a.pdf", b"data")
    good = session.add("b.pdf", b"data")

    await session.extract_all()

    assert broken.status == "error"
    assert broken.error.startswith("Unexpected error: AttributeError")
    assert good.status == "ready"
