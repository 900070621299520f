"""Batch extraction orchestrator with per-document error tolerance.

Runs many documents through ``extract_document`` in a thread pool. Each
document is independent: one document's failure is recorded in the batch
result and never blocks the others.

Public API:
    extract_documents(documents, extraction_settings, scoring_settings)
        -> ExtractionBatchResult
    extract_directory(input_dir, output_dir, extraction_settings, scoring_settings)
        -> ExtractionBatchResult
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from studyguide_extractor.config.settings import ExtractionSettings, ScoringSettings
from studyguide_extractor.extractor.errors import ExtractionError
from studyguide_extractor.extractor.markdown import should_extract, write_result
from studyguide_extractor.extractor.service import extract_document
from studyguide_extractor.extractor.types import ExtractionResult, SourceDocument

logger = logging.getLogger(__name__)

__all__ = [
    "ExtractionBatchResult",
    "extract_directory",
    "extract_documents",
]

SUPPORTED_EXTENSIONS = frozenset(
    {".pdf", ".docx", ".pptx", ".key", ".txt", ".jpg", ".jpeg", ".png", ".ppt", ".doc"}
)


@dataclass
class ExtractionBatchResult:
    """Aggregated outcome of extracting a batch of documents."""

    documents_attempted: int = 0
    documents_succeeded: int = 0
    documents_failed: int = 0
    documents_skipped: int = 0
    documents_unsupported: int = 0
    results: dict[str, ExtractionResult] = field(default_factory=dict)
    failures: dict[str, ExtractionError] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


def extract_documents(
    documents: list[SourceDocument],
    extraction_settings: ExtractionSettings,
    scoring_settings: ScoringSettings,
) -> ExtractionBatchResult:
    """Extract every document, ``max_workers`` at a time.

    Args:
        documents: Documents to extract (filenames should be unique).
        extraction_settings: Extraction configuration.
        scoring_settings: Summarizer configuration.

    Returns:
        ExtractionBatchResult keyed by filename.
    """
    batch = ExtractionBatchResult()
    if not documents:
        logger.info("No documents to extract")
        return batch

    logger.info(
        "Extracting %d documents with %d workers",
        len(documents),
        extraction_settings.max_workers,
    )

    with ThreadPoolExecutor(
        max_workers=extraction_settings.max_workers,
        thread_name_prefix="batch",
    ) as pool:
        futures = {
            pool.submit(extract_document, doc, extraction_settings, scoring_settings): doc
            for doc in documents
        }
        for future in as_completed(futures):
            doc = futures[future]
            batch.documents_attempted += 1
            try:
                result = future.result()
            except ExtractionError as e:
                batch.documents_failed += 1
                batch.failures[doc.filename] = e
                batch.errors.append(f"{doc.filename}: {e.message}")
                continue
            except Exception:
                logger.exception("Unexpected error processing %s", doc.filename)
                batch.documents_failed += 1
                batch.errors.append(f"{doc.filename}: unexpected error")
                continue
            batch.documents_succeeded += 1
            batch.results[doc.filename] = result

    logger.info(
        "Extraction batch complete: %d attempted, %d succeeded, %d failed",
        batch.documents_attempted,
        batch.documents_succeeded,
        batch.documents_failed,
    )
    return batch


def extract_directory(
    input_dir: Path,
    output_dir: Path,
    extraction_settings: ExtractionSettings,
    scoring_settings: ScoringSettings,
) -> ExtractionBatchResult:
    """Extract every supported file in *input_dir* and write outputs.

    Files whose markdown output already exists in *output_dir* are skipped,
    so re-running only picks up new documents.
    Files with an unrecognized extension are counted in
    ``documents_unsupported`` and left alone.
    """
    if not input_dir.is_dir():
        logger.warning("Input directory %s does not exist", input_dir)
        return ExtractionBatchResult()

    pending: list[SourceDocument] = []
    skipped = 0
    unsupported = 0
    for path in sorted(input_dir.iterdir()):
        if not path.is_file():
            continue
        if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
            logger.warning("Ignoring %s: unsupported file type", path.name)
            unsupported += 1
            continue
        if not should_extract(output_dir, path.name):
            logger.info("Skipping %s: already extracted", path.name)
            skipped += 1
            continue
        pending.append(SourceDocument.from_path(path))

    batch = extract_documents(pending, extraction_settings, scoring_settings)
    batch.documents_skipped = skipped
    batch.documents_unsupported = unsupported

    for filename, result in batch.results.items():
        try:
            write_result(output_dir, result)
        except OSError as e:
            logger.error("Failed to write output for %s: %s", filename, e)
            batch.errors.append(f"{filename}: cannot write output ({e})")

    return batch
