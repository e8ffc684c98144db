"""
Raster Image Data Class.

The normalized image payload handed from the input handler to the
provider clients: base64 text plus its declared media type.
"""

import base64
from dataclasses import dataclass
from typing import ClassVar, FrozenSet


@dataclass(frozen=True)
class RasterImage:
    """
    A normalized, base64-encoded raster image.

    Attributes:
        base64_data: Image bytes encoded as base64 text.
        media_type: One of SUPPORTED_MEDIA_TYPES.
        width: Pixel width of the encoded image.
        height: Pixel height of the encoded image.

    Example:
        >>> raster = RasterImage(base64_data="/9j/4AAQ...", media_type="image/jpeg")
        >>> raster.estimated_bytes
    """

    SUPPORTED_MEDIA_TYPES: ClassVar[FrozenSet[str]] = frozenset({
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/gif",
    })

    base64_data: str
    media_type: str = "image/jpeg"
    width: int = 0
    height: int = 0

    def __post_init__(self) -> None:
        if self.media_type not in self.SUPPORTED_MEDIA_TYPES:
            raise ValueError(f"Unsupported raster media type: {self.media_type}")

    @property
    def estimated_bytes(self) -> int:
        """Decoded size estimated from the base64 length (3 bytes per 4 chars)."""
        return int(len(self.base64_data) * 0.75)

    def to_bytes(self) -> bytes:
        """Decode the payload back to raw image bytes."""
        return base64.b64decode(self.base64_data)

    def __repr__(self) -> str:
        return (
            f"RasterImage(media_type='{self.media_type}', "
            f"size={self.width}x{self.height}, "
            f"bytes~{self.estimated_bytes})"
        )
