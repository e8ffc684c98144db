"""
Output Handler Module for Invoice Lens.

This module provides functionality for:
    - Excel export of saved invoices (summary plus line-item sheets)
"""

from .excel_exporter import ExcelExporter, slug_sheet_name

__all__ = ['ExcelExporter', 'slug_sheet_name']
