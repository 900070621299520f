"""Per-document extraction service with multi-strategy fallback.

Orchestrates extraction for a single document:

1. **Guards** -- size limit, format detection, header validation. Failures
   here are immediate and record zero attempts.
2. **Routing** -- plain text and images are handled directly; Keynote
   bundles and image-only (or ``pdf_mode="images"``) PDFs go straight to
   the rasterizer.
3. **Fallback chain** for PDF/DOCX/PPTX text::

       TRY_LIBRARY -> TRY_TEMPFILE_LIBRARY -> TRY_RAW_SCAN
                   -> TRY_AGGRESSIVE_SCAN -> FAIL

   Each candidate goes through a quality check; the first one that passes
   wins and is summarized down to the content budget.

``extract_document`` is the public boundary: it runs the work under
``timeout_seconds`` and only ever raises ``ExtractionError`` subclasses.
"""

from __future__ import annotations

import io
import logging
import zipfile
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError

from studyguide_extractor.config.settings import ExtractionSettings, ScoringSettings
from studyguide_extractor.extractor.errors import (
    HINT_CONVERT_DOCX,
    HINT_EXPORT_KEYNOTE,
    HINT_EXPORT_PDF,
    CorruptDocumentError,
    EnvironmentUnavailableError,
    ExtractionError,
    ExtractionExhaustedError,
    ExtractionTimeoutError,
    FileTooLargeError,
)
from studyguide_extractor.extractor.formats import ZIP_MAGIC, detect_format, validate_header
from studyguide_extractor.extractor.pymupdf_extractor import is_image_only
from studyguide_extractor.extractor.quality import (
    candidate_confidence,
    passes_quality_check,
    passes_scan_quality_check,
)
from studyguide_extractor.extractor.rasterizer import compress_image_bytes, rasterize_pdf
from studyguide_extractor.extractor.strategies import (
    LIBRARY_STRATEGIES,
    RAW_SCAN_FORMATS,
    raw_scan,
    temporary_copy,
)
from studyguide_extractor.extractor.summarizer import summarize
from studyguide_extractor.extractor.types import (
    DocumentFormat,
    ExtractionCandidate,
    ExtractionResult,
    ExtractionStrategy,
    ProgressCallback,
    ResultKind,
    SourceDocument,
)

logger = logging.getLogger(__name__)

# Re-export shared types so consumers can import from service
__all__ = [
    "ExtractionResult",
    "SourceDocument",
    "extract_document",
]

KEYNOTE_PREVIEW_PDF = "QuickLook/Preview.pdf"
KEYNOTE_PREVIEW_IMAGES = ("QuickLook/Thumbnail.jpg", "preview.jpg", "preview-web.jpg")

_EXHAUSTED_HINTS = {
    DocumentFormat.PDF: HINT_CONVERT_DOCX,
    DocumentFormat.DOCX: HINT_EXPORT_PDF,
    DocumentFormat.PPTX: HINT_EXPORT_PDF,
    DocumentFormat.TXT: HINT_CONVERT_DOCX,
}


def _notify(progress: ProgressCallback | None, message: str) -> None:
    if progress is not None:
        progress(message)


def _accepted(
    candidate: ExtractionCandidate | None,
    settings: ExtractionSettings,
    fmt: DocumentFormat | None = None,
) -> bool:
    if candidate is None:
        return False
    if fmt is not None:
        return passes_scan_quality_check(candidate, fmt, settings)
    return passes_quality_check(candidate, settings)


def _run_text_chain(
    document: SourceDocument,
    fmt: DocumentFormat,
    settings: ExtractionSettings,
    attempts: list[str],
) -> ExtractionCandidate | None:
    """Walk the fallback chain and return the first accepted candidate."""
    library = LIBRARY_STRATEGIES.get(fmt, [])

    # --- TRY_LIBRARY: in-memory bytes ---
    for entry in library:
        attempts.append(entry.strategy.value)
        candidate = entry.run(document.data, settings)
        if _accepted(candidate, settings):
            return candidate

    # --- TRY_TEMPFILE_LIBRARY: same parsers, file-backed ---
    if library:
        logger.info("In-memory parsing failed for %s, retrying via temp file", document.filename)
        with temporary_copy(document) as path:
            for entry in library:
                attempts.append(f"{entry.strategy.value}:tempfile")
                candidate = entry.run(path, settings)
                if _accepted(candidate, settings):
                    return candidate

    if fmt not in RAW_SCAN_FORMATS:
        return None

    # --- TRY_RAW_SCAN, then TRY_AGGRESSIVE_SCAN ---
    for aggressive in (False, True):
        candidate = raw_scan(document, fmt, settings, aggressive=aggressive)
        attempts.append(
            (ExtractionStrategy.AGGRESSIVE_SCAN if aggressive else ExtractionStrategy.RAW_SCAN).value
        )
        if _accepted(candidate, settings, fmt):
            return candidate

    return None


def _text_result(
    document: SourceDocument,
    candidate: ExtractionCandidate,
    settings: ExtractionSettings,
    scoring: ScoringSettings,
    attempts: list[str],
) -> ExtractionResult:
    text = candidate.text.strip()
    content = summarize(text, settings, scoring).strip()
    if not content:
        raise ExtractionExhaustedError(
            f"Extracted text for {document.filename} was empty after summarizing",
            filename=document.filename,
            attempts=attempts,
        )
    logger.info(
        "Extraction succeeded via %s: %s (%d chars%s)",
        candidate.strategy.value,
        document.filename,
        len(content),
        ", summarized" if content != text else "",
    )
    return ExtractionResult(
        kind=ResultKind.TEXT,
        filename=document.filename,
        strategy=candidate.strategy,
        content=content,
        page_count=candidate.page_count,
        summarized=content != text,
        attempts=list(attempts),
    )


def _images_from_pdf(
    pdf: bytes,
    document: SourceDocument,
    settings: ExtractionSettings,
    progress: ProgressCallback | None,
    max_pages: int | None,
    attempts: list[str],
) -> ExtractionResult:
    attempts.append(ExtractionStrategy.RASTERIZE.value)
    raster = rasterize_pdf(pdf, settings, progress, max_pages)
    if not raster.pages:
        raise ExtractionExhaustedError(
            f"No pages of {document.filename} could be rendered",
            hint=HINT_EXPORT_PDF,
            filename=document.filename,
            attempts=attempts,
        )
    return ExtractionResult(
        kind=ResultKind.IMAGES,
        filename=document.filename,
        strategy=ExtractionStrategy.RASTERIZE,
        pages=raster.pages,
        page_count=raster.page_count,
        failed_pages=raster.failed_pages,
        attempts=list(attempts),
    )


def _image_result(
    data: bytes,
    document: SourceDocument,
    settings: ExtractionSettings,
    attempts: list[str],
) -> ExtractionResult:
    attempts.append(ExtractionStrategy.IMAGE_PASSTHROUGH.value)
    try:
        page = compress_image_bytes(data, settings)
    except (OSError, ValueError) as e:
        raise CorruptDocumentError(
            f"Cannot decode image in {document.filename}: {e}",
            filename=document.filename,
            attempts=attempts,
        ) from e
    return ExtractionResult(
        kind=ResultKind.IMAGES,
        filename=document.filename,
        strategy=ExtractionStrategy.IMAGE_PASSTHROUGH,
        pages=[page],
        page_count=1,
        attempts=list(attempts),
    )


def _extract_plain_text(
    document: SourceDocument,
    settings: ExtractionSettings,
    scoring: ScoringSettings,
    attempts: list[str],
) -> ExtractionResult:
    attempts.append(ExtractionStrategy.PLAIN_TEXT.value)
    text = document.data.decode("utf-8-sig", errors="replace")
    candidate = ExtractionCandidate(
        text=text,
        strategy=ExtractionStrategy.PLAIN_TEXT,
        confidence=candidate_confidence(text, settings.min_text_chars),
    )
    if not passes_quality_check(candidate, settings):
        raise ExtractionExhaustedError(
            f"Text file {document.filename} has too little readable content",
            filename=document.filename,
            attempts=attempts,
        )
    return _text_result(document, candidate, settings, scoring, attempts)


def _extract_keynote(
    document: SourceDocument,
    settings: ExtractionSettings,
    progress: ProgressCallback | None,
    max_pages: int | None,
    attempts: list[str],
) -> ExtractionResult:
    """Use the previews Keynote embeds in zipped presentations."""
    if not document.data.startswith(ZIP_MAGIC):
        raise EnvironmentUnavailableError(
            f"{document.filename} is a Keynote package bundle, which cannot be read "
            "as a single uploaded file",
            hint=HINT_EXPORT_KEYNOTE,
            filename=document.filename,
        )
    try:
        with zipfile.ZipFile(io.BytesIO(document.data)) as archive:
            names = set(archive.namelist())
            if KEYNOTE_PREVIEW_PDF in names:
                preview_pdf = archive.read(KEYNOTE_PREVIEW_PDF)
                preview_image = None
            else:
                preview_pdf = None
                preview_image = next(
                    (archive.read(name) for name in KEYNOTE_PREVIEW_IMAGES if name in names),
                    None,
                )
    except zipfile.BadZipFile as e:
        raise CorruptDocumentError(
            f"Keynote file {document.filename} is not a readable archive: {e}",
            hint=HINT_EXPORT_KEYNOTE,
            filename=document.filename,
        ) from e

    if preview_pdf is not None:
        logger.info("Rendering embedded Keynote preview PDF for %s", document.filename)
        return _images_from_pdf(preview_pdf, document, settings, progress, max_pages, attempts)
    if preview_image is not None:
        logger.info("Using embedded Keynote preview image for %s", document.filename)
        return _image_result(preview_image, document, settings, attempts)

    raise ExtractionExhaustedError(
        f"Keynote file {document.filename} has no embedded preview",
        hint=HINT_EXPORT_KEYNOTE,
        filename=document.filename,
        attempts=attempts,
    )


def _extract(
    document: SourceDocument,
    settings: ExtractionSettings,
    scoring: ScoringSettings,
    progress: ProgressCallback | None,
    max_pages: int | None,
    attempts: list[str],
) -> ExtractionResult:
    if document.size > settings.max_file_size_bytes:
        raise FileTooLargeError(
            f"{document.filename} is {document.size} bytes, over the "
            f"{settings.max_file_size_bytes} byte limit",
            filename=document.filename,
        )

    fmt = detect_format(document)
    validate_header(document, fmt)
    logger.info("Extracting %s as %s (%d bytes)", document.filename, fmt.value, document.size)

    if fmt is DocumentFormat.TXT:
        return _extract_plain_text(document, settings, scoring, attempts)
    if fmt is DocumentFormat.IMAGE:
        return _image_result(document.data, document, settings, attempts)
    if fmt is DocumentFormat.KEYNOTE:
        return _extract_keynote(document, settings, progress, max_pages, attempts)

    if fmt is DocumentFormat.PDF:
        if settings.pdf_mode == "images":
            return _images_from_pdf(document.data, document, settings, progress, max_pages, attempts)
        if is_image_only(document.data):
            logger.info("%s has no text layer, rasterizing", document.filename)
            return _images_from_pdf(document.data, document, settings, progress, max_pages, attempts)

    _notify(progress, "Extracting text...")
    candidate = _run_text_chain(document, fmt, settings, attempts)
    if candidate is not None:
        return _text_result(document, candidate, settings, scoring, attempts)

    if fmt is DocumentFormat.PDF and settings.rasterize_on_failure:
        logger.warning("All text strategies failed for %s, rasterizing", document.filename)
        return _images_from_pdf(document.data, document, settings, progress, max_pages, attempts)

    logger.error(
        "All extraction strategies failed for %s (%d attempts)",
        document.filename,
        len(attempts),
    )
    raise ExtractionExhaustedError(
        f"Could not extract readable text from {document.filename}",
        hint=_EXHAUSTED_HINTS.get(fmt),
        filename=document.filename,
        attempts=attempts,
    )


def extract_document(
    document: SourceDocument,
    settings: ExtractionSettings,
    scoring: ScoringSettings,
    progress: ProgressCallback | None = None,
    max_pages: int | None = None,
) -> ExtractionResult:
    """Extract text (or page images) from a single document.

    The work runs on a worker thread bounded by ``settings.timeout_seconds``.
    On timeout the caller gets ``ExtractionTimeoutError`` immediately, but the
    worker cannot be interrupted: it keeps running until its current strategy
    returns, and since executor threads are non-daemon a runaway parse still
    delays interpreter exit.

    Args:
        document: Raw bytes with filename and declared MIME type.
        settings: Extraction configuration (thresholds, limits, timeout).
        scoring: Summarizer weights and keyword lists.
        progress: Optional callback receiving human-readable phase strings.
        max_pages: Page cap for rasterization, overriding ``settings.max_pages``.

    Returns:
        ExtractionResult with non-empty text or at least one page image.

    Raises:
        ExtractionError: Always a structured subclass; low-level exceptions
            are converted to ``ExtractionExhaustedError``.
    """
    attempts: list[str] = []
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="extract")
    future = executor.submit(_extract, document, settings, scoring, progress, max_pages, attempts)
    try:
        return future.result(timeout=settings.timeout_seconds)
    except FuturesTimeoutError as e:
        # The worker thread cannot be interrupted; it is abandoned and its
        # result discarded.
        logger.error(
            "Extraction of %s timed out after %.1fs", document.filename, settings.timeout_seconds
        )
        raise ExtractionTimeoutError(
            f"Extraction of {document.filename} took longer than "
            f"{settings.timeout_seconds:g} seconds",
            filename=document.filename,
            attempts=list(attempts),
        ) from e
    except ExtractionError as e:
        if not e.filename:
            e.filename = document.filename
        if not e.attempts:
            e.attempts = list(attempts)
        logger.warning("Extraction failed for %s: %s", document.filename, e.message)
        raise
    except Exception as e:
        logger.exception("Unexpected error extracting %s", document.filename)
        raise ExtractionExhaustedError(
            f"Unexpected error while extracting {document.filename}: {e}",
            filename=document.filename,
            attempts=list(attempts),
        ) from e
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
