"""Study-guide document extractor -- application entry point.

Startup sequence:
    1. Load pipeline configuration (needed for log_dir and directories)
    2. Setup logging (must happen before any code that logs)
    3. Load extraction and scoring configuration
    4. Fetch any documents given by URL into the input directory
    5. Extract every pending document in the input directory

Directories default to config/pipeline.yaml and can be overridden with
PIPELINE_INPUT_DIR / PIPELINE_OUTPUT_DIR or the command-line options.
"""

import argparse
import logging
import sys
from pathlib import Path

from studyguide_extractor.config import ExtractionSettings, PipelineSettings, ScoringSettings
from studyguide_extractor.extractor import extract_directory
from studyguide_extractor.extractor.errors import ExtractionError
from studyguide_extractor.extractor.fetch import build_client, fetch_document
from studyguide_extractor.logging import setup_logging

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract study material text from documents.")
    parser.add_argument("--input-dir", type=Path, help="Directory of documents to extract")
    parser.add_argument("--output-dir", type=Path, help="Directory for extracted output")
    parser.add_argument(
        "--url",
        action="append",
        default=[],
        help="Download a document into the input directory first (repeatable)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run the extraction pipeline; returns a process exit code."""
    args = _parse_args(argv)

    # 1. Load pipeline config first -- needed for logging
    pipeline = PipelineSettings()

    # 2. Setup logging BEFORE anything else logs
    setup_logging(
        log_dir=pipeline.log_dir,
        max_bytes=pipeline.log_max_bytes,
        backup_count=pipeline.log_backup_count,
    )

    logger.info("Study-guide extractor starting")

    # 3. Load remaining configuration
    extraction = ExtractionSettings()
    scoring = ScoringSettings()

    input_dir = args.input_dir or Path(pipeline.input_dir)
    output_dir = args.output_dir or Path(pipeline.output_dir)

    logger.info(
        "Config loaded -- extraction: min_chars=%s, budget=%s, pdf_mode=%s, workers=%s",
        extraction.min_text_chars,
        extraction.content_budget_chars,
        extraction.pdf_mode,
        extraction.max_workers,
    )
    logger.info("Config loaded -- scoring: %d keyword rules", len(scoring.rules))
    logger.info("Input: %s, output: %s", input_dir, output_dir)

    # 4. Fetch URL documents
    fetch_failures = 0
    if args.url:
        input_dir.mkdir(parents=True, exist_ok=True)
        with build_client(pipeline) as client:
            for url in args.url:
                try:
                    document = fetch_document(
                        url,
                        None,
                        pipeline,
                        client,
                        max_bytes=extraction.max_file_size_bytes,
                    )
                except ExtractionError as e:
                    logger.error("Fetch failed for %s: %s", url, e)
                    fetch_failures += 1
                    continue
                (input_dir / document.filename).write_bytes(document.data)

    # 5. Extract
    batch = extract_directory(input_dir, output_dir, extraction, scoring)

    for filename, error in batch.failures.items():
        logger.warning("%s: %s (%s)", filename, error.message, error.hint)

    logger.info(
        "Run complete -- %d extracted, %d failed, %d skipped, %d unsupported",
        batch.documents_succeeded,
        batch.documents_failed,
        batch.documents_skipped,
        batch.documents_unsupported,
    )
    return 1 if batch.documents_failed or fetch_failures else 0


if __name__ == "__main__":
    sys.exit(main())
