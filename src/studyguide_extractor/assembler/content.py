"""Assemble extraction results into LLM prompt content.

Text results become ``--- <filename> ---`` sections; image results become
base64 image content blocks for a vision-capable messages API. Nothing here
calls a model.
"""

from __future__ import annotations

import base64
import logging

from studyguide_extractor.extractor.types import ExtractionResult, ResultKind

logger = logging.getLogger(__name__)

LIMITED_TOTAL_CHARS = 100
LIMITED_DOCUMENT_CHARS = 50


def section(filename: str, content: str) -> str:
    return f"--- {filename} ---\n{content}"


def assemble_text(results: list[ExtractionResult]) -> str:
    """Join text results as filename-headed sections separated by blank lines.

    Image results are skipped; use ``build_message_content`` for those.
    """
    return "\n\n".join(
        section(result.filename, result.content)
        for result in results
        if result.kind is ResultKind.TEXT
    )


def has_limited_content(results: list[ExtractionResult]) -> bool:
    """True when the combined text is very short or any document is nearly empty.

    Callers use this to tell the model to lean on general knowledge of the
    topic rather than the uploaded material.
    """
    texts = [result for result in results if result.kind is ResultKind.TEXT]
    if not texts:
        return False
    total = len(assemble_text(texts))
    return total < LIMITED_TOTAL_CHARS or any(
        len(result.content) < LIMITED_DOCUMENT_CHARS for result in texts
    )


def image_block(data: bytes, mime_type: str) -> dict:
    return {
        "type": "image",
        "source": {
            "type": "base64",
            "media_type": mime_type,
            "data": base64.b64encode(data).decode("ascii"),
        },
    }


def build_message_content(
    results: list[ExtractionResult],
    instructions: str | None = None,
) -> list[dict]:
    """Build a messages-API content list from extraction results.

    Args:
        results: Successful extraction results, in the order to present them.
        instructions: Optional leading text block (the prompt itself).

    Returns:
        Content blocks: the instructions, one text block for all text
        results, then a label and the page images for each image result.
    """
    blocks: list[dict] = []
    if instructions:
        blocks.append({"type": "text", "text": instructions})

    combined = assemble_text(results)
    if combined:
        blocks.append({"type": "text", "text": combined})

    image_count = 0
    for result in results:
        if result.kind is not ResultKind.IMAGES:
            continue
        blocks.append(
            {
                "type": "text",
                "text": f"--- {result.filename} ({len(result.pages)} page images) ---",
            }
        )
        for page in sorted(result.pages, key=lambda p: p.page_number):
            blocks.append(image_block(page.data, page.mime_type))
            image_count += 1

    logger.debug(
        "Built %d content blocks (%d chars of text, %d images)",
        len(blocks),
        len(combined),
        image_count,
    )
    return blocks
