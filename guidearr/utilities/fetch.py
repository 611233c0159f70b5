"""Open a file from an HTTP(S) URL or local disk.

Gzip-compressed content is detected by its magic bytes and decompressed.
"""

import gzip
import logging
from pathlib import Path

import httpx

from guidearr.config import Config

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


def is_remote(path: str) -> bool:
    return path.lower().startswith(("http://", "https://"))


def get_file(
    path: str,
    timeout: float | None = None,
    transport: httpx.BaseTransport | None = None,
) -> bytes:
    """Read a file's full content, decompressing gzip.

    Raises:
        httpx.HTTPError: If a remote file cannot be downloaded
        OSError: If a local file cannot be read
        EOFError, zlib.error: If gzip content is truncated or corrupt
    """
    if is_remote(path):
        logger.debug("[FETCH] Downloading %s", path)
        with httpx.Client(
            timeout=timeout if timeout is not None else Config.HTTP_TIMEOUT,
            transport=transport,
            follow_redirects=True,
            # Some providers only serve files to a browser User-Agent
            headers={"User-Agent": Config.HTTP_USER_AGENT},
        ) as client:
            response = client.get(path)
            response.raise_for_status()
            content = response.content
    else:
        logger.debug("[FETCH] Reading %s from disk", path)
        content = Path(path).expanduser().read_bytes()

    if content[:2] == GZIP_MAGIC:
        content = gzip.decompress(content)
    return content
