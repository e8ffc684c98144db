"""
Main Input Handler Module.

InputHandler turns an uploaded document (bytes plus a declared MIME type
and/or filename) into a RasterImage ready for a provider call. It resolves
the document type and delegates to the PDF or image processor.

Usage:
    from invoice_lens.input_handler import InputHandler

    handler = InputHandler()
    raster = handler.rasterize(data, "application/pdf", "invoice.pdf")
"""

from typing import Dict, Optional

from config import get_config
from invoice_lens.utils.logger import get_logger
from invoice_lens.utils.helpers import get_file_extension, format_file_size
from invoice_lens.utils.exceptions import UnsupportedFormatError

from .image_processor import ImageProcessor, parse_passes
from .pdf_processor import PDFProcessor
from .raster_image import RasterImage

logger = get_logger(__name__)

PDF_MIME = "application/pdf"
DEFAULT_MIME = "image/jpeg"

MIME_BY_TYPE: Dict[str, str] = {
    "application/pdf": PDF_MIME,
    "image/jpeg": "image/jpeg",
    "image/jpg": "image/jpeg",
    "image/png": "image/png",
    "image/webp": "image/webp",
    "image/gif": "image/gif",
}

MIME_BY_EXTENSION: Dict[str, str] = {
    "pdf": PDF_MIME,
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
}

DEFAULT_PDF_PASSES = [
    (2000, 900, 85),
    (2000, 900, 70),
    (1600, 800, 60),
]


def normalize_mime(declared_mime: Optional[str] = None, filename: Optional[str] = None) -> str:
    """
    Resolve a document's type to one of pdf, jpeg, png, webp or gif.

    The declared MIME type wins when it is recognized; otherwise the
    filename extension decides. Anything unrecognized resolves to JPEG,
    leaving the decoder to report a genuinely unreadable file.

    Args:
        declared_mime: MIME type reported by the caller (may be None,
                       empty or generic such as application/octet-stream).
        filename: Original filename, used for extension inference.

    Returns:
        Normalized MIME type string.

    Example:
        >>> normalize_mime("application/octet-stream", "scan.PDF")
        "application/pdf"
        >>> normalize_mime("image/jpg")
        "image/jpeg"
    """
    declared = (declared_mime or "").split(";")[0].strip().lower()
    if declared in MIME_BY_TYPE:
        return MIME_BY_TYPE[declared]

    extension = get_file_extension(filename)
    if extension in MIME_BY_EXTENSION:
        return MIME_BY_EXTENSION[extension]

    return DEFAULT_MIME


class InputHandler:
    """
    Unified entry point for document rasterization.

    Attributes:
        pdf_processor: PDFProcessor for PDF documents.
        image_processor: ImageProcessor for image documents.
        pdf_passes: Encode passes used for rendered PDF pages.

    Example:
        >>> handler = InputHandler()
        >>> raster = handler.rasterize(data, filename="receipt.png")
        >>> raster.media_type
        'image/jpeg'
    """

    def __init__(
        self,
        pdf_processor: Optional[PDFProcessor] = None,
        image_processor: Optional[ImageProcessor] = None
    ) -> None:
        self.pdf_processor = pdf_processor or PDFProcessor()
        self.image_processor = image_processor or ImageProcessor()
        self.pdf_passes = parse_passes(
            get_config("input.raster.pdf.passes", DEFAULT_PDF_PASSES)
        )

        logger.debug("InputHandler initialized")

    def rasterize(
        self,
        document_bytes: bytes,
        declared_mime: Optional[str] = None,
        filename: Optional[str] = None
    ) -> RasterImage:
        """
        Convert a document into a normalized JPEG RasterImage.

        Args:
            document_bytes: Raw file contents.
            declared_mime: MIME type reported by the caller.
            filename: Original filename.

        Returns:
            RasterImage within the byte budget where achievable.

        Raises:
            UnsupportedFormatError: If the document is empty or not an image/PDF.
            RenderFailureError: If rendering or decoding fails.
        """
        source = filename or "<upload>"

        if not document_bytes:
            raise UnsupportedFormatError(declared_mime or "unknown", "document is empty")

        mime = normalize_mime(declared_mime, filename)
        logger.info(
            f"Rasterizing {source} as {mime} ({format_file_size(len(document_bytes))})"
        )

        if mime == PDF_MIME:
            image = self.pdf_processor.render_first_page(document_bytes, source)
            passes = self.pdf_passes
        else:
            image = self.image_processor.load_image(document_bytes, mime, source)
            passes = self.image_processor.passes

        raster = self.image_processor.fit_to_budget(image, passes)

        logger.info(
            f"Rasterized {source}: {raster.width}x{raster.height} "
            f"~{format_file_size(raster.estimated_bytes)}"
        )
        return raster


def rasterize(
    document_bytes: bytes,
    declared_mime: Optional[str] = None,
    filename: Optional[str] = None
) -> RasterImage:
    """Rasterize a document with a default-configured InputHandler."""
    return InputHandler().rasterize(document_bytes, declared_mime, filename)
