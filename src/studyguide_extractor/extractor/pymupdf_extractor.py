"""PDF text extraction with PyMuPDF.

Two variants run as separate strategies because they fail differently on
malformed files: ``pymupdf4llm`` markdown conversion (layout-aware, tables,
headers) and PyMuPDF's plain ``get_text`` with reading-order sort.

Both accept either in-memory bytes or a path, so the orchestrator can retry
the same parser against a temporary file.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pymupdf
import pymupdf4llm

from studyguide_extractor.config.settings import ExtractionSettings
from studyguide_extractor.extractor.quality import candidate_confidence
from studyguide_extractor.extractor.types import ExtractionCandidate, ExtractionStrategy

logger = logging.getLogger(__name__)

PdfSource = bytes | Path


def open_pdf(source: PdfSource) -> pymupdf.Document:
    """Open a PDF from bytes or a filesystem path."""
    if isinstance(source, Path):
        return pymupdf.open(str(source))
    return pymupdf.open(stream=source, filetype="pdf")


def _describe(source: PdfSource) -> str:
    return source.name if isinstance(source, Path) else f"<{len(source)} bytes>"


def try_pymupdf4llm(
    source: PdfSource,
    settings: ExtractionSettings,
) -> ExtractionCandidate | None:
    """Extract text from a PDF using pymupdf4llm markdown conversion.

    ``force_text=True`` extracts text even from areas overlapping images,
    which matters for slide decks exported with background pictures.

    Returns:
        Candidate with markdown text, or None if the parser raised.
    """
    try:
        with open_pdf(source) as doc:
            if doc.needs_pass:
                logger.warning("pymupdf4llm: encrypted PDF %s", _describe(source))
                return None
            page_count = len(doc)
            md_text = pymupdf4llm.to_markdown(
                doc,
                pages=None,
                table_strategy=settings.table_strategy,
                page_chunks=False,
                show_progress=False,
                embed_images=False,
                write_images=False,
                force_text=True,
            )
    except Exception as e:
        logger.warning("pymupdf4llm extraction failed for %s: %s", _describe(source), e)
        return None

    logger.info(
        "pymupdf4llm extracted %d chars from %d pages: %s",
        len(md_text.strip()),
        page_count,
        _describe(source),
    )
    return ExtractionCandidate(
        text=md_text.strip(),
        strategy=ExtractionStrategy.PYMUPDF4LLM,
        confidence=candidate_confidence(md_text, settings.min_text_chars),
        page_count=page_count,
    )


def try_pymupdf_text(
    source: PdfSource,
    settings: ExtractionSettings,
) -> ExtractionCandidate | None:
    """Extract plain page text with PyMuPDF, pages separated by blank lines."""
    try:
        with open_pdf(source) as doc:
            if doc.needs_pass:
                logger.warning("PyMuPDF text: encrypted PDF %s", _describe(source))
                return None
            page_count = len(doc)
            pages = [page.get_text("text", sort=True).strip() for page in doc]
    except Exception as e:
        logger.warning("PyMuPDF text extraction failed for %s: %s", _describe(source), e)
        return None

    text = "\n\n".join(page for page in pages if page)
    logger.info(
        "PyMuPDF text extracted %d chars from %d pages: %s",
        len(text),
        page_count,
        _describe(source),
    )
    return ExtractionCandidate(
        text=text,
        strategy=ExtractionStrategy.PYMUPDF_TEXT,
        confidence=candidate_confidence(text, settings.min_text_chars),
        page_count=page_count,
    )


def is_image_only(source: PdfSource) -> bool:
    """True if the PDF has pages, none with a text layer, and at least one image.

    Flattened scans and photographed handouts look like this; text
    strategies cannot succeed on them, so they go straight to rasterization.
    Unopenable files return False and are left to the text strategies.
    """
    try:
        with open_pdf(source) as doc:
            if doc.needs_pass or len(doc) == 0:
                return False
            has_images = False
            for page in doc:
                if page.get_text("text").strip():
                    return False
                if page.get_images(full=False):
                    has_images = True
            return has_images
    except Exception as e:
        logger.debug("Image-only probe could not open %s: %s", _describe(source), e)
        return False
