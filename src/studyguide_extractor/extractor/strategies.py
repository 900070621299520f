"""Ordered extraction strategies per document format.

The orchestrator walks these lists in order and accepts the first
candidate that passes its quality check:

- ``LIBRARY_STRATEGIES``: parsing-library variants, each tried first
  against in-memory bytes and then once more against a temporary file.
- ``raw_scan``: byte-level scanners from ``pdf_scanner``/``ooxml_scanner``,
  strict first, then aggressive with relaxed classifier thresholds.

Every strategy returns an ``ExtractionCandidate`` or None and never raises.
"""

from __future__ import annotations

import contextlib
import functools
import logging
import os
import tempfile
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

from studyguide_extractor.config.settings import ExtractionSettings
from studyguide_extractor.extractor.office_extractor import try_python_docx, try_python_pptx
from studyguide_extractor.extractor.ooxml_scanner import scan_docx, scan_pptx
from studyguide_extractor.extractor.pdf_scanner import scan_pdf
from studyguide_extractor.extractor.pdfplumber_extractor import try_pdfplumber
from studyguide_extractor.extractor.pymupdf_extractor import try_pymupdf4llm, try_pymupdf_text
from studyguide_extractor.extractor.quality import candidate_confidence
from studyguide_extractor.extractor.types import (
    DocumentFormat,
    ExtractionCandidate,
    ExtractionStrategy,
    SourceDocument,
)

logger = logging.getLogger(__name__)

LibraryCall = Callable[[bytes | Path, ExtractionSettings], ExtractionCandidate | None]


@dataclass(frozen=True)
class LibraryStrategy:
    """One library parser variant."""

    strategy: ExtractionStrategy
    run: LibraryCall


LIBRARY_STRATEGIES: dict[DocumentFormat, list[LibraryStrategy]] = {
    DocumentFormat.PDF: [
        LibraryStrategy(ExtractionStrategy.PYMUPDF4LLM, try_pymupdf4llm),
        LibraryStrategy(ExtractionStrategy.PYMUPDF_TEXT, try_pymupdf_text),
        LibraryStrategy(ExtractionStrategy.PDFPLUMBER, try_pdfplumber),
        LibraryStrategy(
            ExtractionStrategy.PDFPLUMBER_LAYOUT,
            functools.partial(try_pdfplumber, layout=True),
        ),
    ],
    DocumentFormat.DOCX: [
        LibraryStrategy(ExtractionStrategy.PYTHON_DOCX, try_python_docx),
    ],
    DocumentFormat.PPTX: [
        LibraryStrategy(ExtractionStrategy.PYTHON_PPTX, try_python_pptx),
    ],
}

RAW_SCAN_FORMATS = frozenset({DocumentFormat.PDF, DocumentFormat.DOCX, DocumentFormat.PPTX})


@contextlib.contextmanager
def temporary_copy(document: SourceDocument) -> Iterator[Path]:
    """Write *document* to a temporary file, removed on exit even on error."""
    suffix = f".{document.extension}" if document.extension else ""
    fd, name = tempfile.mkstemp(prefix="studyguide-", suffix=suffix)
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(document.data)
        logger.debug("Wrote %d bytes to temporary file %s", document.size, path)
        yield path
    finally:
        path.unlink(missing_ok=True)
        logger.debug("Removed temporary file %s", path)


def _scan_fragments(
    document: SourceDocument,
    fmt: DocumentFormat,
    settings: ExtractionSettings,
    aggressive: bool,
) -> tuple[list[str], str]:
    if fmt is DocumentFormat.PDF:
        if aggressive:
            fragments = scan_pdf(
                document.data,
                max_special_ratio=settings.relaxed_special_char_ratio,
                min_word_ratio=settings.relaxed_readable_word_ratio,
                alnum_min_chars=settings.alnum_run_min_chars,
                aggressive=True,
            )
        else:
            fragments = scan_pdf(
                document.data,
                max_special_ratio=settings.max_special_char_ratio,
                min_word_ratio=settings.min_readable_word_ratio,
                alnum_min_chars=settings.alnum_run_min_chars,
            )
        return fragments, "\n"
    if fmt is DocumentFormat.PPTX:
        return scan_pptx(document.data, include_notes=aggressive), "\n\n"
    if fmt is DocumentFormat.DOCX:
        return scan_docx(document.data, include_auxiliary=aggressive), "\n\n"
    return [], ""


def raw_scan(
    document: SourceDocument,
    fmt: DocumentFormat,
    settings: ExtractionSettings,
    *,
    aggressive: bool = False,
) -> ExtractionCandidate | None:
    """Scan raw bytes for text fragments.

    Args:
        document: Source document.
        fmt: Detected format (PDF, DOCX or PPTX).
        settings: Classifier thresholds and minimum run length.
        aggressive: Use relaxed classifier thresholds and extra sources
            (any PDF string literal, PPTX notes, DOCX headers/footers).

    Returns:
        Candidate with fragments joined in scan order, or None if the
        scanner raised.
    """
    strategy = ExtractionStrategy.AGGRESSIVE_SCAN if aggressive else ExtractionStrategy.RAW_SCAN
    try:
        fragments, separator = _scan_fragments(document, fmt, settings, aggressive)
    except Exception as e:
        logger.warning("%s failed for %s: %s", strategy.value, document.filename, e)
        return None

    text = separator.join(fragments)
    logger.info(
        "%s found %d fragments (%d chars) in %s",
        strategy.value,
        len(fragments),
        len(text),
        document.filename,
    )
    return ExtractionCandidate(
        text=text,
        strategy=strategy,
        confidence=candidate_confidence(text, settings.min_text_chars),
    )
