"""Output writers for extraction results.

Text results become a markdown file with YAML frontmatter describing how
the text was obtained; image results become one ``<stem>_page_<n>.<ext>``
file per page next to it. ``should_extract`` makes directory runs
idempotent: a document whose output already exists is skipped.

Public API:
    output_path(output_dir, filename) -> Path
    should_extract(output_dir, filename) -> bool
    write_result(output_dir, result) -> list[Path]
"""

from __future__ import annotations

import datetime
import logging
from pathlib import Path

import frontmatter

from studyguide_extractor.extractor.types import ExtractionResult, ResultKind

logger = logging.getLogger(__name__)

_IMAGE_EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png"}


def output_path(output_dir: Path, filename: str) -> Path:
    """Markdown path for a source document (images share the same stem)."""
    return output_dir / f"{Path(filename).stem}.md"


def should_extract(output_dir: Path, filename: str) -> bool:
    """Check whether a document still needs extracting.

    Returns False (skip) if its markdown file already exists and has
    content. Image results always write a markdown index as well, so the
    same check covers both result kinds.
    """
    md_path = output_path(output_dir, filename)
    if md_path.exists() and md_path.stat().st_size > 0:
        return False
    return True


def page_image_name(stem: str, page_number: int, mime_type: str) -> str:
    return f"{stem}_page_{page_number}.{_IMAGE_EXTENSIONS.get(mime_type, 'jpg')}"


def write_result(output_dir: Path, result: ExtractionResult) -> list[Path]:
    """Write an extraction result to *output_dir*.

    Args:
        output_dir: Destination directory (created if missing).
        result: Successful extraction result.

    Returns:
        Paths written, markdown file first.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    md_path = output_path(output_dir, result.filename)
    stem = md_path.stem
    written: list[Path] = []

    image_paths: list[Path] = []
    for page in result.pages:
        image_path = output_dir / page_image_name(stem, page.page_number, page.mime_type)
        image_path.write_bytes(page.data)
        image_paths.append(image_path)

    if result.kind is ResultKind.TEXT:
        body = result.content
    else:
        body = "\n".join(
            f"![Page {page.page_number}]({path.name})"
            for page, path in zip(result.pages, image_paths)
        )

    post = frontmatter.Post(body)
    post.metadata["source_file"] = result.filename
    post.metadata["result_kind"] = result.kind.value
    post.metadata["extraction_method"] = result.strategy.value
    post.metadata["extraction_date"] = datetime.datetime.now(datetime.UTC).isoformat()
    post.metadata["page_count"] = result.page_count
    if result.kind is ResultKind.TEXT:
        post.metadata["char_count"] = result.char_count
        post.metadata["summarized"] = result.summarized
    else:
        post.metadata["images"] = len(result.pages)
        post.metadata["failed_pages"] = list(result.failed_pages)
    post.metadata["attempts"] = list(result.attempts)

    with open(md_path, "w", encoding="utf-8") as f:
        f.write(frontmatter.dumps(post))
    written.append(md_path)
    written.extend(image_paths)

    logger.info(
        "Wrote %s result for %s to %s (%d files)",
        result.kind.value,
        result.filename,
        md_path.name,
        len(written),
    )
    return written
