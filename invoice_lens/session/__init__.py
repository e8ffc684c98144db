"""
Session Module for Invoice Lens.

In-memory upload queue, review edits and saved-invoice list.
"""

from .queue import InvoiceSession, QueueItem, SavedInvoice

__all__ = ['InvoiceSession', 'QueueItem', 'SavedInvoice']
