"""
PDF Processor Module.

Renders the first page of a PDF invoice to an RGB image with PyMuPDF.

The PyMuPDF module is the one process-wide resource in the pipeline. It is
loaded on first use through PdfEngineHandle, whose lock makes concurrent
first requests wait for a single load instead of importing twice.
"""

import importlib
import threading
from typing import Any, Callable, Optional

from PIL import Image

from config import get_config
from invoice_lens.utils.logger import get_logger
from invoice_lens.utils.exceptions import RenderFailureError

logger = get_logger(__name__)

DEFAULT_PDF_SCALE = 2.0


def _import_pymupdf() -> Any:
    return importlib.import_module("fitz")


class PdfEngineHandle:
    """
    Lazily loaded, process-wide handle to the PDF rendering engine.

    Initialization happens at most once; callers arriving while the
    engine is loading block on the lock and then reuse the loaded module.

    Attributes:
        loaded: Whether the engine has been loaded.

    Example:
        >>> fitz = PDF_ENGINE.get()
    """

    def __init__(self, loader: Callable[[], Any] = _import_pymupdf) -> None:
        self._loader = loader
        self._engine: Optional[Any] = None
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._engine is not None

    def get(self) -> Any:
        """
        Return the engine module, loading it on first use.

        Raises:
            RenderFailureError: If the engine cannot be loaded.
        """
        if self._engine is not None:
            return self._engine

        with self._lock:
            if self._engine is None:
                logger.info("Loading PDF engine")
                try:
                    engine = self._loader()
                except ImportError as e:
                    raise RenderFailureError("PDF engine", f"PyMuPDF is not available: {e}")
                self._engine = engine
                logger.debug(f"PDF engine loaded: {getattr(engine, 'VersionBind', 'unknown version')}")

        return self._engine


PDF_ENGINE = PdfEngineHandle()


class PDFProcessor:
    """
    First-page PDF rasterizer.

    Attributes:
        scale: Render scale relative to the page's 72 dpi user space.

    Example:
        >>> processor = PDFProcessor()
        >>> image = processor.render_first_page(pdf_bytes, "invoice.pdf")
        >>> print(image.size)
    """

    def __init__(self, engine: Optional[PdfEngineHandle] = None) -> None:
        self.engine = engine or PDF_ENGINE
        self.scale = float(get_config("input.raster.pdf.scale", DEFAULT_PDF_SCALE))

        logger.debug(f"PDFProcessor initialized (scale={self.scale})")

    def render_first_page(self, data: bytes, source: str) -> Image.Image:
        """
        Render page one onto an opaque white RGB canvas.

        Args:
            data: Raw PDF bytes.
            source: Filename or label for logging and errors.

        Returns:
            RGB PIL Image of the page at ``scale`` times its point size.

        Raises:
            RenderFailureError: If the PDF cannot be opened or rendered.
        """
        fitz = self.engine.get()

        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            logger.error(f"Could not open PDF {source}: {e}")
            raise RenderFailureError(source, str(e))

        try:
            if doc.page_count < 1:
                raise RenderFailureError(source, "PDF has no pages")

            if doc.page_count > 1:
                logger.info(f"{source} has {doc.page_count} pages; rendering page 1 only")

            page = doc.load_page(0)
            matrix = fitz.Matrix(self.scale, self.scale)

            # alpha=False renders onto an opaque white background
            pix = page.get_pixmap(matrix=matrix, alpha=False)
            image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)

        except RenderFailureError:
            raise
        except Exception as e:
            logger.error(f"PDF rendering failed for {source}: {e}")
            raise RenderFailureError(source, str(e))
        finally:
            doc.close()

        logger.debug(f"Rendered {source} page 1 at {image.width}x{image.height}")
        return image
