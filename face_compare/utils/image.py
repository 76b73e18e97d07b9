"""Image acquisition utilities.

This module fetches images from remote URLs and decodes inline base64 image
data, each under its own deadline, and normalizes the decoded raster to a
bounded size before it is handed to the face detector.
"""

import asyncio
import base64
import binascii
import logging
import re
from typing import Optional

import cv2
import httpx
import numpy as np

from ..config import (
    DECODE_TIMEOUT_SECONDS,
    FETCH_TIMEOUT_SECONDS,
    MAX_BODY_SIZE,
    MAX_IMAGE_SIZE,
)
from ..models.types import ImageSource, NormalizedImage

logger = logging.getLogger(__name__)

DATA_URI_PREFIX = re.compile(r"^data:image/\w+;base64,")

USER_AGENT = "Mozilla/5.0"


class ImageProcessingError(Exception):
    """Base exception for image acquisition errors."""
    pass


class ImageDecodingError(ImageProcessingError):
    """Exception raised when image data cannot be decoded."""
    pass


class DecodeTimeoutError(ImageProcessingError):
    """Exception raised when decoding exceeds its deadline."""
    pass


class FetchError(ImageProcessingError):
    """Exception raised when a remote image cannot be downloaded."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class FetchTimeoutError(ImageProcessingError):
    """Exception raised when a remote download exceeds its deadline."""
    pass


def normalize_image(image: np.ndarray, max_size: int = MAX_IMAGE_SIZE) -> NormalizedImage:
    """Downscale image so its longer edge is at most max_size.

    Args:
        image: Decoded image.
        max_size: Maximum length of the longer edge in pixels.

    Returns:
        The original image if it already fits, otherwise a resized copy
        with floor-truncated dimensions and the same aspect ratio.
    """
    height, width = image.shape[:2]
    if max(width, height) <= max_size:
        return image

    scale = min(max_size / width, max_size / height)
    target_width = max(1, int(width * scale))
    target_height = max(1, int(height * scale))

    return cv2.resize(image, (target_width, target_height), interpolation=cv2.INTER_AREA)


def strip_data_uri(encoded: str) -> str:
    """Remove a leading "data:image/<type>;base64," header if present."""
    return DATA_URI_PREFIX.sub("", encoded, count=1)


def decode_base64_payload(encoded: str) -> bytes:
    """Decode base64 text (optionally a data URI) to raw bytes.

    Raises:
        ImageDecodingError: If the payload is not valid base64.
    """
    payload = strip_data_uri(encoded.strip())
    try:
        data = base64.b64decode(payload)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodingError("Invalid base64 image data") from e
    if not data:
        raise ImageDecodingError("Invalid base64 image data")
    return data


def decode_image_bytes(data: bytes) -> Optional[np.ndarray]:
    """Decode encoded image bytes to a BGR array, or None if unreadable."""
    if not data:
        return None
    buffer = np.frombuffer(data, np.uint8)
    try:
        return cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    except cv2.error:
        return None


async def decode_image(data: bytes, error_message: str, timeout_message: str) -> NormalizedImage:
    """Decode and normalize image bytes under the decode deadline.

    Decoding runs in a worker thread; if the deadline fires first the
    thread's eventual result is discarded.

    Args:
        data: Encoded image bytes.
        error_message: Message for ImageDecodingError.
        timeout_message: Message for DecodeTimeoutError.

    Raises:
        ImageDecodingError: If the bytes are not a readable image.
        DecodeTimeoutError: If decoding does not finish in time.
    """
    try:
        async with asyncio.timeout(DECODE_TIMEOUT_SECONDS):
            image = await asyncio.to_thread(decode_image_bytes, data)
    except TimeoutError:
        raise DecodeTimeoutError(timeout_message) from None

    if image is None:
        raise ImageDecodingError(error_message)

    height, width = image.shape[:2]
    logger.info(f"  Image decoded ({width}x{height})")
    return normalize_image(image)


async def fetch_image_bytes(url: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> bytes:
    """Download url under the fetch deadline.

    The deadline covers connecting and reading the full body. The client
    is closed on every exit path.

    Raises:
        FetchError: On a non-2xx status, a transport failure or an
            oversized body.
        FetchTimeoutError: If the download does not finish in time.
    """
    try:
        async with asyncio.timeout(FETCH_TIMEOUT_SECONDS):
            async with httpx.AsyncClient(
                transport=transport,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
                timeout=None,
            ) as client:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise FetchError(
                            f"URL image error: HTTP {response.status_code}: {response.reason_phrase}",
                            status=response.status_code,
                        )

                    content = bytearray()
                    async for chunk in response.aiter_bytes():
                        content.extend(chunk)
                        if len(content) > MAX_BODY_SIZE:
                            raise FetchError(
                                "URL image error: Image too large (max 10MB)",
                                status=response.status_code,
                            )
                    return bytes(content)
    except TimeoutError:
        raise FetchTimeoutError(f"URL fetch timeout ({FETCH_TIMEOUT_SECONDS:.0f}s)") from None
    except httpx.HTTPError as e:
        raise FetchError(f"URL image error: {e}") from e


async def acquire_remote(url: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> NormalizedImage:
    """Fetch and decode an image from a remote URL.

    Args:
        url: http(s) URL of the image.
        transport: Optional httpx transport, used instead of the network.

    Returns:
        Normalized BGR image.
    """
    logger.info("  Fetching URL image...")
    data = await fetch_image_bytes(url, transport=transport)
    logger.info(f"  URL image fetched ({len(data) / 1024:.0f}KB)")

    return await decode_image(
        data,
        error_message="Failed to decode URL image",
        timeout_message="Image decode timeout",
    )


async def acquire_inline(encoded: str) -> NormalizedImage:
    """Decode an inline base64 image.

    Args:
        encoded: Base64 string, optionally with a data URI prefix.
            Example formats:
            - "data:image/jpeg;base64,/9j/4AAQSkZ..."
            - "/9j/4AAQSkZ..." (without prefix)

    Returns:
        Normalized BGR image.
    """
    logger.info(f"  Decoding base64 image ({len(encoded) / 1024:.0f}KB)...")
    data = decode_base64_payload(encoded)

    return await decode_image(
        data,
        error_message="Invalid base64 image data",
        timeout_message=f"Base64 image decode timeout ({DECODE_TIMEOUT_SECONDS:.0f}s)",
    )


async def acquire(source: ImageSource) -> NormalizedImage:
    """Acquire the image behind source."""
    if source.kind == "remote":
        return await acquire_remote(source.value)
    return await acquire_inline(source.value)
