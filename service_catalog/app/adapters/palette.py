"""
Poster color palette derivation.
"""

import asyncio
import io
from typing import List, Optional

from PIL import Image

from shared.logging import get_logger
from shared.errors import ExternalServiceError, UpstreamHTTPError
from .upstream_client import UpstreamClient


RASTER_EXTENSIONS = (".jpg", ".jpeg", ".png")
PALETTE_SIZE = 6
THUMBNAIL_SIZE = (128, 128)


def rgb_to_hex(rgb) -> str:
    red, green, blue = rgb
    return f"#{red:02x}{green:02x}{blue:02x}"


def extract_palette(data: bytes, colors: int = PALETTE_SIZE) -> List[str]:
    """Return up to ``colors`` dominant colors, most common first."""
    with Image.open(io.BytesIO(data)) as image:
        rgb = image.convert("RGB")
    rgb.thumbnail(THUMBNAIL_SIZE)
    quantized = rgb.quantize(colors=colors)
    palette = quantized.getpalette() or []
    counts = sorted(quantized.getcolors() or [], reverse=True)

    hex_colors: List[str] = []
    for _, index in counts:
        channel = palette[index * 3:index * 3 + 3]
        if len(channel) != 3:
            continue
        color = rgb_to_hex(channel)
        if color not in hex_colors:
            hex_colors.append(color)
    return hex_colors


class PaletteExtractor:
    """Downloads a poster and derives its palette.

    Only URLs with a raster extension are processed. Every failure yields
    ``None`` so a missing palette never fails the enclosing item.
    """

    def __init__(self, images: UpstreamClient, *, enabled: bool = True):
        self.images = images
        self.enabled = enabled
        self.logger = get_logger("catalog.palette")

    @staticmethod
    def supports(image_url: Optional[str]) -> bool:
        return bool(image_url) and image_url.lower().endswith(RASTER_EXTENSIONS)

    async def palette_for(self, image_url: Optional[str]) -> Optional[List[str]]:
        if not self.enabled or not self.supports(image_url):
            return None

        try:
            data = await self.images.get_bytes(image_url)
            return await asyncio.to_thread(extract_palette, data)
        except UpstreamHTTPError as exc:
            if exc.status_code != 404:
                self.logger.warning("Failed to get palette", url=image_url, status_code=exc.status_code)
            return None
        except (ExternalServiceError, OSError, ValueError) as exc:
            self.logger.warning("Failed to get palette", url=image_url, error=str(exc))
            return None

    async def close(self) -> None:
        await self.images.close()
