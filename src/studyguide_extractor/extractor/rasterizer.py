"""Page rasterizer for vision-model consumption.

Renders PDF pages to JPEG with PyMuPDF and Pillow. Every produced image is
at most ``max_image_bytes``: quality steps down from ``start_quality`` to
``min_quality``, and if that is not enough the image is shrunk by the
square root of the remaining overshoot and re-encoded at
``fallback_quality`` until it fits.

A page that fails to render is logged and skipped; the rest still render.
"""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass, field

import pymupdf
from PIL import Image

from studyguide_extractor.config.settings import ExtractionSettings
from studyguide_extractor.extractor.errors import CorruptDocumentError
from studyguide_extractor.extractor.formats import image_mime_type
from studyguide_extractor.extractor.pymupdf_extractor import PdfSource, open_pdf
from studyguide_extractor.extractor.types import PageImage, ProgressCallback

logger = logging.getLogger(__name__)


@dataclass
class RasterizedPages:
    """Pages rendered from one document."""

    pages: list[PageImage] = field(default_factory=list)
    failed_pages: list[int] = field(default_factory=list)
    page_count: int = 0


def render_scale(width: float, height: float, settings: ExtractionSettings) -> float:
    """Scale that fits the long edge to ``target_resolution``, capped at ``max_render_scale``."""
    return min(
        settings.target_resolution / width,
        settings.target_resolution / height,
        settings.max_render_scale,
    )


def _encode_jpeg(image: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()


def compress_image(
    image: Image.Image,
    settings: ExtractionSettings,
) -> tuple[bytes, int, int]:
    """Encode *image* as JPEG under the byte ceiling.

    Returns:
        ``(jpeg_bytes, width, height)`` of the final encoding.

    Raises:
        ValueError: If the image cannot be shrunk any further and is still
            over the ceiling.
    """
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    limit = settings.max_image_bytes
    quality = settings.start_quality
    data = _encode_jpeg(image, quality)
    while len(data) > limit and quality - settings.quality_step >= settings.min_quality:
        quality -= settings.quality_step
        data = _encode_jpeg(image, quality)
        logger.debug("Re-encoded at quality %d: %d bytes", quality, len(data))

    while len(data) > limit:
        ratio = math.sqrt(limit / len(data))
        width = max(1, int(image.width * ratio))
        height = max(1, int(image.height * ratio))
        if (width, height) == image.size:
            msg = f"Cannot compress {image.width}x{image.height} image under {limit} bytes"
            raise ValueError(msg)
        image = image.resize((width, height), Image.Resampling.LANCZOS)
        data = _encode_jpeg(image, settings.fallback_quality)
        logger.debug("Downscaled to %dx%d: %d bytes", width, height, len(data))

    return data, image.width, image.height


def compress_image_bytes(
    data: bytes,
    settings: ExtractionSettings,
    page_number: int = 1,
) -> PageImage:
    """Bound an uploaded image to the size and resolution limits.

    Images already within both limits pass through untouched (keeping PNG
    as PNG); anything else is resized and re-encoded as JPEG.
    """
    with Image.open(io.BytesIO(data)) as image:
        image.load()
        within_resolution = max(image.size) <= settings.target_resolution
        if len(data) <= settings.max_image_bytes and within_resolution:
            return PageImage(
                page_number=page_number,
                data=data,
                mime_type=image_mime_type(data),
                width=image.width,
                height=image.height,
            )
        working = image.copy()

    working.thumbnail((settings.target_resolution, settings.target_resolution))
    jpeg, width, height = compress_image(working, settings)
    logger.info(
        "Compressed image from %d to %d bytes (%dx%d)", len(data), len(jpeg), width, height
    )
    return PageImage(page_number=page_number, data=jpeg, width=width, height=height)


def _render_page(page: pymupdf.Page, settings: ExtractionSettings) -> Image.Image:
    scale = render_scale(page.rect.width, page.rect.height, settings)
    pixmap = page.get_pixmap(matrix=pymupdf.Matrix(scale, scale), alpha=False)
    return Image.frombytes("RGB", (pixmap.width, pixmap.height), pixmap.samples)


def rasterize_pdf(
    source: PdfSource,
    settings: ExtractionSettings,
    progress: ProgressCallback | None = None,
    max_pages: int | None = None,
) -> RasterizedPages:
    """Render PDF pages to bounded JPEG images.

    Args:
        source: PDF bytes or path.
        settings: Resolution, quality and size limits.
        progress: Called with "Converting page N of M..." before each page.
        max_pages: Page cap for this call; falls back to ``settings.max_pages``
            (None there means no cap).

    Returns:
        Rendered pages in ascending page order plus the numbers of pages
        that failed.

    Raises:
        CorruptDocumentError: If the PDF cannot be opened at all.
    """
    cap = max_pages if max_pages is not None else settings.max_pages
    try:
        doc = open_pdf(source)
    except Exception as e:
        raise CorruptDocumentError(f"Cannot open PDF for rendering: {e}") from e

    result = RasterizedPages()
    with doc:
        result.page_count = len(doc)
        total = result.page_count if cap is None else min(cap, result.page_count)
        if total < result.page_count:
            logger.info("Rendering first %d of %d pages", total, result.page_count)

        for index in range(total):
            number = index + 1
            if progress is not None:
                progress(f"Converting page {number} of {total}...")
            try:
                image = _render_page(doc[index], settings)
                data, width, height = compress_image(image, settings)
            except Exception as e:
                logger.warning("Failed to render page %d: %s", number, e)
                result.failed_pages.append(number)
                continue
            result.pages.append(
                PageImage(page_number=number, data=data, width=width, height=height)
            )
            logger.debug("Rendered page %d (%dx%d, %d bytes)", number, width, height, len(data))

    logger.info(
        "Rasterized %d pages (%d failed)", len(result.pages), len(result.failed_pages)
    )
    return result
