"""Fetch a document by URL into a ``SourceDocument``.

Streams the response body into memory with a running size guard and
rejects HTML responses (login walls and error pages served with 200).
Retry is handled by tenacity: 3 attempts with exponential backoff, retrying
only on transient HTTP and transport errors.

The ``httpx.Client`` is created and closed by the caller.
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import PurePosixPath
from urllib.parse import unquote, urlparse

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from studyguide_extractor.config.settings import PipelineSettings
from studyguide_extractor.extractor.errors import (
    DocumentFetchError,
    FileTooLargeError,
    UnsupportedFormatError,
)
from studyguide_extractor.extractor.formats import extension_for, has_known_extension
from studyguide_extractor.extractor.types import SourceDocument

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 20 * 1024 * 1024


def filename_from_url(url: str) -> str:
    """Last path segment of *url*, or ``"document"`` when there is none."""
    name = PurePosixPath(unquote(urlparse(url).path)).name
    return name or "document"


def build_client(settings: PipelineSettings) -> httpx.Client:
    """HTTP client with the configured user agent; the caller closes it."""
    return httpx.Client(
        headers={"User-Agent": settings.user_agent},
        timeout=settings.download_timeout_seconds,
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.TransportError)),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
def _download_with_retry(
    url: str,
    filename: str,
    settings: PipelineSettings,
    http_client: httpx.Client,
    max_bytes: int,
) -> SourceDocument:
    """Core download logic wrapped with tenacity retry.

    Raises httpx.HTTPStatusError or httpx.TransportError on transient
    failures so tenacity can retry; size and content-type rejections are
    final.
    """
    with http_client.stream(
        "GET",
        url,
        timeout=settings.download_timeout_seconds,
        follow_redirects=True,
    ) as response:
        response.raise_for_status()

        # --- Content-Type check ---
        content_type = response.headers.get("content-type", "")
        if "text/html" in content_type.lower():
            raise UnsupportedFormatError(
                f"{url} returned an HTML page, not a document",
                filename=filename,
            )

        # --- Content-Length pre-check ---
        content_length = response.headers.get("content-length")
        if content_length is not None:
            try:
                declared_size = int(content_length)
            except ValueError:
                declared_size = 0
            if declared_size > max_bytes:
                raise FileTooLargeError(
                    f"{filename} is {declared_size} bytes, over the {max_bytes} byte limit",
                    filename=filename,
                )

        # --- Streaming read with runtime size guard ---
        buffer = bytearray()
        for chunk in response.iter_bytes(chunk_size=settings.download_chunk_size):
            buffer.extend(chunk)
            if len(buffer) > max_bytes:
                logger.warning(
                    "Download of %s exceeded max size during streaming "
                    "(%d bytes > %d bytes), aborting",
                    url,
                    len(buffer),
                    max_bytes,
                )
                raise FileTooLargeError(
                    f"{filename} exceeded the {max_bytes} byte limit while downloading",
                    filename=filename,
                )

    logger.info("Fetched %s (%d bytes) as %s", url, len(buffer), filename)
    return SourceDocument(
        data=bytes(buffer),
        filename=filename,
        mime_type=content_type.split(";")[0].strip(),
    )


def fetch_document(
    url: str,
    filename: str | None,
    settings: PipelineSettings,
    http_client: httpx.Client,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> SourceDocument:
    """Download a document for extraction.

    Args:
        url: Document URL.
        filename: Name to give the document; derived from the URL if None.
        settings: Pipeline settings (timeout, chunk size).
        http_client: Caller-owned httpx client.
        max_bytes: Size ceiling, normally ``ExtractionSettings.max_file_size_bytes``.

    Returns:
        SourceDocument with the response body and its declared MIME type.

    Raises:
        UnsupportedFormatError: The server returned HTML, or the name and
            Content-Type together do not identify a supported format.
        FileTooLargeError: The body exceeds *max_bytes*.
        DocumentFetchError: HTTP or transport failure after all retries.
    """
    name = filename or filename_from_url(url)
    try:
        document = _download_with_retry(url, name, settings, http_client, max_bytes)
    except httpx.HTTPStatusError as e:
        logger.error("HTTP %d fetching %s", e.response.status_code, url)
        raise DocumentFetchError(
            f"Server returned HTTP {e.response.status_code} for {url}",
            filename=name,
        ) from e
    except httpx.HTTPError as e:
        logger.error("Transport error fetching %s: %s", url, e)
        raise DocumentFetchError(f"Could not download {url}: {e}", filename=name) from e

    if has_known_extension(document.filename):
        return document

    # Download links often lack an extension; name the file after its content
    ext = extension_for(document.mime_type, document.data)
    if ext is None:
        raise UnsupportedFormatError(
            f"Cannot tell what kind of document {url} is "
            f"({document.mime_type or 'no Content-Type'})",
            filename=document.filename,
        )
    logger.info("Naming %s as .%s from its content type", document.filename, ext)
    return dataclasses.replace(document, filename=f"{document.filename}.{ext}")
