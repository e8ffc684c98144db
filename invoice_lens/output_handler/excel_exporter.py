"""
Excel Exporter Module.

This module writes reviewed invoices to an .xlsx workbook with openpyxl.

Layout:
    - "Invoices" sheet: one row per invoice, header fields plus file name
    - One sheet per invoice that has line items, linked both ways
      with the summary row
"""

import re
from datetime import date
from pathlib import Path
from typing import Any, List, Optional, Sequence, Set

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.hyperlink import Hyperlink

from config import get_config
from invoice_lens.postprocessor.invoice_record import InvoiceRecord, LineItem
from invoice_lens.utils.logger import get_logger
from invoice_lens.utils.helpers import ensure_directory
from invoice_lens.utils.exceptions import ExcelExportError

logger = get_logger(__name__)

_SHEET_UNSAFE = re.compile(r"[:\\/?*\[\]]")


def cell_text(value: Any) -> Any:
    """Drop control characters that openpyxl refuses to write."""
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def sheet_reference(sheet_name: str, cell: str = "A1") -> str:
    """Internal hyperlink target, e.g. 'O''Brien'!A1."""
    quoted = sheet_name.replace("'", "''")
    return f"'{quoted}'!{cell}"


def slug_sheet_name(name: Optional[str], index: int, max_length: int = 28) -> str:
    """
    Make a worksheet title from an invoice number or vendor name.

    Args:
        name: Preferred title source; falsy values fall back to Invoice_<n>.
        index: Zero-based position of the invoice in the export.
        max_length: Title length limit.

    Example:
        >>> slug_sheet_name("INV/2024:07", 0)
        'INV_2024_07'
        >>> slug_sheet_name("", 2)
        'Invoice_3'
    """
    title = cell_text(name) or f"Invoice_{index + 1}"
    # Excel rejects titles that begin or end with an apostrophe
    title = _SHEET_UNSAFE.sub("_", title)[:max_length].strip("'")
    return title or f"Invoice_{index + 1}"


class ExcelExporter:
    """
    Exports saved invoices to Excel format.

    Attributes:
        output_dir: Directory for output files.
        summary_sheet: Title of the one-row-per-invoice sheet.
        sheet_name_length: Maximum length of line-item sheet titles.

    Example:
        >>> exporter = ExcelExporter()
        >>> filepath = exporter.export(session.saved)
        >>> print(f"Saved to: {filepath}")
    """

    # (header, record attribute, column width)
    COLUMNS = [
        ('Invoice No.', 'invoice_no', 14),
        ('Vendor Name', 'vendor_name', 22),
        ('Vendor Address', 'vendor_address', 28),
        ('Bill To Name', 'bill_to_name', 22),
        ('Bill To Address', 'bill_to_address', 28),
        ('Invoice Date', 'invoice_date', 14),
        ('Due Date', 'due_date', 14),
        ('Amount', 'amount', 12),
        ('Currency', 'currency', 10),
        ('Tax Amount', 'tax_amount', 12),
        ('Payment Terms', 'payment_terms', 14),
        ('PO Number', 'po_number', 14),
        ('Notes', 'description', 30),
        ('Bank Details', 'bank_details', 30),
    ]

    FILE_NAME_COLUMN = ('File Name', 24)
    LINE_ITEMS_COLUMN = ('Line Items Sheet', 22)

    INFO_ROWS = [
        ('Invoice No.', 'invoice_no'),
        ('Vendor', 'vendor_name'),
        ('Bill To', 'bill_to_name'),
        ('Invoice Date', 'invoice_date'),
        ('Due Date', 'due_date'),
        ('Total', 'amount'),
    ]

    LINE_ITEM_COLUMNS = [
        ('Description', 'description', 44),
        ('Qty', 'qty', 10),
        ('Unit Price', 'unit_price', 14),
        ('Amount', 'amount', 14),
    ]

    LINE_ITEMS_MARKER = 'LINE ITEMS'

    def __init__(self) -> None:
        self.output_dir = Path(get_config("paths.output_dir", "outputs"))
        self.summary_sheet = get_config("output.excel.summary_sheet", "Invoices")
        self.sheet_name_length = get_config("output.excel.sheet_name_length", 28)

        self.header_font = Font(bold=True, color="FFFFFF")
        self.header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
        self.header_alignment = Alignment(horizontal="center", vertical="center")
        self.thin_border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )

        logger.debug(f"ExcelExporter initialized (output_dir: {self.output_dir})")

    def export(
        self,
        saved_invoices: Sequence[Any],
        filename: Optional[str] = None,
        output_dir: Optional[str] = None
    ) -> str:
        """
        Export saved invoices to an Excel file.

        Args:
            saved_invoices: Objects with ``record`` (InvoiceRecord) and
                            ``file_name`` attributes, e.g. SavedInvoice.
            filename: Output filename. If None, invoices_<date>.xlsx.
            output_dir: Output directory. If None, uses configured dir.

        Returns:
            Path to the created Excel file.

        Raises:
            ExcelExportError: If there is nothing to export or writing fails.
        """
        saved_invoices = list(saved_invoices)
        if not saved_invoices:
            raise ExcelExportError(filename or "<none>", "No saved invoices to export")

        out_dir = Path(output_dir) if output_dir else self.output_dir
        filepath = out_dir / (filename or self.get_default_filename())

        try:
            ensure_directory(out_dir)

            workbook = Workbook()
            summary = workbook.active
            summary.title = self.summary_sheet

            sheet_names = self.assign_sheet_names(saved_invoices)
            self._write_summary_sheet(summary, saved_invoices, sheet_names)

            for index, (invoice, sheet_name) in enumerate(zip(saved_invoices, sheet_names)):
                if sheet_name is None:
                    continue
                self._write_line_item_sheet(workbook, invoice.record, sheet_name, index + 2)

            workbook.save(filepath)
        except (OSError, ValueError) as e:
            logger.error(f"Excel export failed: {e}")
            raise ExcelExportError(str(filepath), str(e))

        detail_count = sum(1 for name in sheet_names if name)
        logger.info(
            f"Excel file saved: {filepath} "
            f"({len(saved_invoices)} invoices, {detail_count} line-item sheets)"
        )
        return str(filepath)

    def assign_sheet_names(self, saved_invoices: Sequence[Any]) -> List[Optional[str]]:
        """
        Pick a unique line-item sheet title per invoice.

        Invoices without line items get None.
        """
        used: Set[str] = {self.summary_sheet.lower()}
        names: List[Optional[str]] = []

        for index, invoice in enumerate(saved_invoices):
            record: InvoiceRecord = invoice.record
            if not record.line_items:
                names.append(None)
                continue

            base = slug_sheet_name(
                record.invoice_no or record.vendor_name, index, self.sheet_name_length
            )
            name = base
            counter = 2
            # Excel compares titles case-insensitively
            while name.lower() in used:
                suffix = f"_{counter}"
                name = base[:self.sheet_name_length - len(suffix)] + suffix
                counter += 1

            used.add(name.lower())
            names.append(name)

        return names

    def _write_header(self, sheet, row: int, headers: List[str]) -> None:
        for col, header in enumerate(headers, 1):
            cell = sheet.cell(row=row, column=col, value=header)
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.alignment = self.header_alignment
            cell.border = self.thin_border

    def _write_summary_sheet(
        self,
        sheet,
        saved_invoices: List[Any],
        sheet_names: List[Optional[str]]
    ) -> None:
        headers = [name for name, _, _ in self.COLUMNS]
        headers += [self.FILE_NAME_COLUMN[0], self.LINE_ITEMS_COLUMN[0]]
        widths = [width for _, _, width in self.COLUMNS]
        widths += [self.FILE_NAME_COLUMN[1], self.LINE_ITEMS_COLUMN[1]]

        self._write_header(sheet, 1, headers)

        for row_num, (invoice, sheet_name) in enumerate(zip(saved_invoices, sheet_names), 2):
            record: InvoiceRecord = invoice.record
            values = [getattr(record, attr) for _, attr, _ in self.COLUMNS]
            values.append(invoice.file_name or "")

            for col, value in enumerate(values, 1):
                cell = sheet.cell(row=row_num, column=col, value=cell_text(value))
                cell.border = self.thin_border

            link_cell = sheet.cell(row=row_num, column=len(values) + 1)
            link_cell.border = self.thin_border
            if sheet_name:
                link_cell.value = f"See: {sheet_name}"
                link_cell.hyperlink = Hyperlink(ref=link_cell.coordinate, location=sheet_reference(sheet_name))
                link_cell.font = Font(color="0563C1", underline="single")
            else:
                link_cell.value = ""

        for col, width in enumerate(widths, 1):
            sheet.column_dimensions[get_column_letter(col)].width = width

        sheet.freeze_panes = 'A2'

    def _write_line_item_sheet(
        self,
        workbook,
        record: InvoiceRecord,
        sheet_name: str,
        summary_row: int
    ) -> None:
        """
        Add one invoice's line-item sheet.

        Rows: the info block, a blank row, the LINE ITEMS marker, then the
        item table. The Invoice No. value links back to the summary row.
        """
        sheet = workbook.create_sheet(title=sheet_name)

        for row_num, (label, attr) in enumerate(self.INFO_ROWS, 1):
            sheet.cell(row=row_num, column=1, value=label).font = Font(bold=True)
            sheet.cell(row=row_num, column=2, value=cell_text(getattr(record, attr)))

        back_link = sheet.cell(row=1, column=2)
        back_link.hyperlink = Hyperlink(
            ref=back_link.coordinate, location=sheet_reference(self.summary_sheet, f"A{summary_row}")
        )

        marker_row = len(self.INFO_ROWS) + 2
        sheet.cell(row=marker_row, column=1, value=self.LINE_ITEMS_MARKER).font = Font(bold=True)

        table_row = marker_row + 1
        self._write_header(sheet, table_row, [name for name, _, _ in self.LINE_ITEM_COLUMNS])

        for row_num, item in enumerate(record.line_item_rows, table_row + 1):
            for col, (_, attr, _) in enumerate(self.LINE_ITEM_COLUMNS, 1):
                cell = sheet.cell(row=row_num, column=col, value=cell_text(getattr(item, attr)))
                cell.border = self.thin_border

        for col, (_, _, width) in enumerate(self.LINE_ITEM_COLUMNS, 1):
            sheet.column_dimensions[get_column_letter(col)].width = width

    def get_default_filename(self) -> str:
        """Default filename from the configured pattern and today's date."""
        pattern = get_config("output.excel.filename_pattern", "invoices_{date}.xlsx")
        return pattern.format(date=date.today().isoformat())
