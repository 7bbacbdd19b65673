"""
Video Downloader

Streams a finished video from Replicate's delivery URL into memory while
enforcing a hard size ceiling.
"""

import logging

import aiohttp

from webhook_models import PayloadTooLargeError, UpstreamError

logger = logging.getLogger(__name__)

MB = 1024 * 1024
CHUNK_SIZE = 1 * MB
DOWNLOAD_TIMEOUT_SECONDS = 120


def size_mb(num_bytes: int) -> str:
    return f"{num_bytes / MB:.2f}MB"


async def download_video(url: str, max_bytes: int, timeout_seconds: int = DOWNLOAD_TIMEOUT_SECONDS) -> bytes:
    """
    Download the video at url.

    Args:
        url: https URL of the produced video
        max_bytes: Size ceiling; larger bodies are rejected
        timeout_seconds: Total request timeout

    Returns:
        Video bytes

    Raises:
        UpstreamError: On a non-2xx response
        PayloadTooLargeError: If the body exceeds max_bytes
    """
    logger.info(f"[webhook] Downloading video: {url}")

    async with aiohttp.ClientSession() as session:
        async with session.get(
            url,
            timeout=aiohttp.ClientTimeout(total=timeout_seconds)
        ) as response:
            if response.status < 200 or response.status >= 300:
                raise UpstreamError(f"Failed to download video: {response.status} {response.reason}")

            declared = response.content_length
            if declared is not None and declared > max_bytes:
                raise PayloadTooLargeError(f"Video file too large: {size_mb(declared)}")

            buffer = bytearray()
            async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                buffer.extend(chunk)
                if len(buffer) > max_bytes:
                    raise PayloadTooLargeError(f"Video file too large: more than {size_mb(max_bytes)}")

    logger.info(f"[webhook] Video downloaded: {len(buffer)} bytes ({size_mb(len(buffer))})")
    return bytes(buffer)
