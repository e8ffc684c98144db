"""
Image Processor Module.

Decodes invoice images and reduces them to a JPEG payload that stays
under the provider byte budget:
    - Image decoding and EXIF orientation
    - Transparency flattening onto white
    - Smart resize that protects narrow receipts
    - Multi-pass JPEG encoding under a byte budget

Supports: JPG, JPEG, PNG, WEBP, GIF (first frame)
"""

import base64
import io
from typing import List, Sequence, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from config import get_config
from invoice_lens.utils.logger import get_logger
from invoice_lens.utils.helpers import format_file_size
from invoice_lens.utils.exceptions import RenderFailureError, UnsupportedFormatError
from .raster_image import RasterImage

logger = get_logger(__name__)

# (long_edge, min_width, jpeg_quality)
EncodePass = Tuple[int, int, int]

DEFAULT_IMAGE_PASSES: List[EncodePass] = [
    (2000, 900, 82),
    (2000, 900, 65),
    (1600, 800, 60),
]

DEFAULT_BYTE_BUDGET = 700 * 1024


def compute_scale(width: int, height: int, long_edge: int, min_width: int) -> float:
    """
    Compute the downscale factor for an image.

    Portrait images are scaled so the height meets ``long_edge``, but the
    width is kept at or above ``min_width`` so dense glyphs (CJK text on
    narrow receipts) stay legible. Landscape images are scaled by width.
    The result never exceeds 1.0.

    Args:
        width: Source width in pixels.
        height: Source height in pixels.
        long_edge: Maximum long-edge length.
        min_width: Width floor for portrait images.

    Returns:
        Scale factor in (0, 1].

    Example:
        >>> compute_scale(1000, 4000, 2000, 900)
        0.9
    """
    if height > width:
        scale = min(long_edge / height, 1.0)
        if width * scale < min_width:
            scale = min(min_width / width, 1.0)
    else:
        scale = min(long_edge / width, 1.0)
    return scale


def parse_passes(raw_passes: Sequence[Sequence[int]]) -> List[EncodePass]:
    """
    Convert pass tables loaded from YAML into (long_edge, min_width, quality) tuples.

    Raises:
        ValueError: If the table is empty or an entry is malformed.
    """
    passes = []
    for entry in raw_passes:
        if len(entry) != 3:
            raise ValueError(f"Encode pass must be [long_edge, min_width, quality]: {entry}")
        long_edge, min_width, quality = (int(v) for v in entry)
        passes.append((long_edge, min_width, quality))
    if not passes:
        raise ValueError("At least one encode pass is required")
    return passes


class ImageProcessor:
    """
    Decoder and budget-aware encoder for invoice images.

    Attributes:
        passes: Ordered encode passes for image inputs.
        byte_budget: Target decoded payload size in bytes.
        auto_orient: Whether to apply EXIF orientation.

    Example:
        >>> processor = ImageProcessor()
        >>> image = processor.load_image(data, "image/png", "receipt.png")
        >>> raster = processor.fit_to_budget(image, processor.passes)
    """

    def __init__(self) -> None:
        self.passes = parse_passes(
            get_config("input.raster.image_passes", DEFAULT_IMAGE_PASSES)
        )
        self.byte_budget = int(get_config("input.raster.byte_budget", DEFAULT_BYTE_BUDGET))
        self.auto_orient = get_config("input.image.auto_orient", True)

        logger.debug(
            f"ImageProcessor initialized (budget={format_file_size(self.byte_budget)}, "
            f"passes={self.passes})"
        )

    def load_image(self, data: bytes, media_type: str, source: str) -> Image.Image:
        """
        Decode image bytes onto an opaque white RGB canvas at native size.

        Args:
            data: Raw image bytes.
            media_type: Normalized media type, used in error messages.
            source: Filename or label for logging.

        Returns:
            RGB PIL Image.

        Raises:
            UnsupportedFormatError: If the bytes are not a recognizable image.
            RenderFailureError: If a recognized image fails to decode.
        """
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except UnidentifiedImageError as e:
            raise UnsupportedFormatError(media_type, str(e))
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            logger.error(f"Failed to decode image {source}: {e}")
            raise RenderFailureError(source, str(e))

        logger.debug(f"Decoded {source}: {image.format} {image.width}x{image.height} ({image.mode})")

        if self.auto_orient:
            image = self._fix_orientation(image)

        return self._flatten(image)

    def _fix_orientation(self, image: Image.Image) -> Image.Image:
        """Apply EXIF orientation so the model sees the page upright."""
        try:
            return ImageOps.exif_transpose(image)
        except Exception as e:
            logger.debug(f"Could not fix orientation: {e}")
            return image

    def _flatten(self, image: Image.Image) -> Image.Image:
        """
        Convert to RGB, compositing any transparency onto white.

        Transparent PNG/GIF/WEBP pixels would otherwise turn black in JPEG.
        """
        has_alpha = image.mode in ("RGBA", "LA", "PA") or (
            image.mode == "P" and "transparency" in image.info
        )

        if has_alpha:
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[3])
            return background

        if image.mode != "RGB":
            return image.convert("RGB")

        return image

    def smart_resize(self, image: Image.Image, long_edge: int, min_width: int) -> Image.Image:
        """
        Downscale an image according to compute_scale().

        Args:
            image: RGB image.
            long_edge: Maximum long-edge length.
            min_width: Width floor for portrait images.

        Returns:
            The resized image, or the original when no reduction is needed.
        """
        width, height = image.size
        scale = compute_scale(width, height, long_edge, min_width)

        if scale >= 1.0:
            return image

        new_size = (max(1, round(width * scale)), max(1, round(height * scale)))
        logger.debug(f"Resizing {width}x{height} -> {new_size[0]}x{new_size[1]}")
        return image.resize(new_size, Image.LANCZOS)

    def encode_jpeg(self, image: Image.Image, quality: int) -> str:
        """Encode an RGB image as base64 JPEG text."""
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=quality, optimize=True)
        return base64.b64encode(buffer.getvalue()).decode("ascii")

    def fit_to_budget(self, image: Image.Image, passes: Sequence[EncodePass]) -> RasterImage:
        """
        Encode with each pass in order until the payload fits the budget.

        The last pass is returned even if it is still over budget; the hard
        cap is enforced by the orchestrator before any provider call.

        Args:
            image: RGB image at native or rendered resolution.
            passes: Ordered (long_edge, min_width, quality) passes.

        Returns:
            The first RasterImage within budget, or the last attempt.

        Raises:
            ValueError: If no passes are given.
        """
        if not passes:
            raise ValueError("At least one encode pass is required")

        raster = None

        for attempt, (long_edge, min_width, quality) in enumerate(passes, 1):
            resized = self.smart_resize(image, long_edge, min_width)
            raster = RasterImage(
                base64_data=self.encode_jpeg(resized, quality),
                media_type="image/jpeg",
                width=resized.width,
                height=resized.height
            )

            logger.debug(
                f"Encode pass {attempt}/{len(passes)} "
                f"(long_edge={long_edge}, min_width={min_width}, quality={quality}): "
                f"{raster.width}x{raster.height}, ~{format_file_size(raster.estimated_bytes)}"
            )

            if raster.estimated_bytes <= self.byte_budget:
                return raster

        logger.warning(
            f"Image still over budget after {len(passes)} passes "
            f"(~{format_file_size(raster.estimated_bytes)})"
        )
        return raster
