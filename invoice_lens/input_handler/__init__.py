"""
Input Handler Module for Invoice Lens.

This module provides functionality for:
    - Resolving document types from MIME type or extension
    - Rendering the first page of PDFs
    - Decoding images and flattening transparency
    - Resizing and compressing pages under a byte budget

Supported formats:
    - PDF (first page)
    - Images: JPG, JPEG, PNG, WEBP, GIF
"""

from .handler import InputHandler, normalize_mime, rasterize
from .pdf_processor import PDFProcessor, PdfEngineHandle, PDF_ENGINE
from .image_processor import ImageProcessor, compute_scale
from .raster_image import RasterImage

__all__ = [
    'InputHandler',
    'normalize_mime',
    'rasterize',
    'PDFProcessor',
    'PdfEngineHandle',
    'PDF_ENGINE',
    'ImageProcessor',
    'compute_scale',
    'RasterImage',
]
