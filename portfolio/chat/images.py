"""
Image loading for the chat endpoint

Fetches project images and base64-encodes them for the model's vision
input. A missing or unusable image is skipped, never fatal.
"""
import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

SUPPORTED_MEDIA_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024  # per-image limit of the vision API

EXTENSION_MEDIA_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


@dataclass(frozen=True)
class EncodedImage:
    url: str
    media_type: str
    data: str  # base64

    def to_content_block(self) -> dict:
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": self.media_type, "data": self.data},
        }


def detect_media_type(url: str) -> Optional[str]:
    extension = url.split("?", 1)[0].rsplit(".", 1)[-1].lower()
    return EXTENSION_MEDIA_TYPES.get(extension)


class ImageFetcher:
    def __init__(self, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    async def fetch_all(self, urls: list[str]) -> list[EncodedImage]:
        """Fetch concurrently, keep the input order, drop failures."""
        if not urls:
            return []
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            results = await asyncio.gather(*(self._fetch(client, url) for url in urls))
        return [image for image in results if image is not None]

    async def _fetch(self, client: httpx.AsyncClient, url: str) -> Optional[EncodedImage]:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Skipping chat image {url}: {e}")
            return None

        media_type = response.headers.get("content-type", "").split(";", 1)[0].strip()
        if media_type not in SUPPORTED_MEDIA_TYPES:
            media_type = detect_media_type(url)
        if media_type is None:
            logger.warning(f"Skipping chat image {url}: unsupported type")
            return None
        if len(response.content) > MAX_IMAGE_BYTES:
            logger.warning(f"Skipping chat image {url}: {len(response.content)} bytes is over the limit")
            return None

        return EncodedImage(
            url=url,
            media_type=media_type,
            data=base64.b64encode(response.content).decode("ascii"),
        )


def get_image_fetcher() -> ImageFetcher:
    return ImageFetcher()
