"""Word and PowerPoint text extraction with python-docx / python-pptx.

Output layout matches the raw OOXML scanner so callers (and the LLM
prompt) see the same shape whichever strategy won: Word paragraphs
separated by blank lines, slides as ``--- Slide N ---`` blocks.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Iterator
from pathlib import Path

from docx import Document as open_docx
from docx.table import Table
from pptx import Presentation
from pptx.enum.shapes import MSO_SHAPE_TYPE

from studyguide_extractor.config.settings import ExtractionSettings
from studyguide_extractor.extractor.ooxml_scanner import slide_marker
from studyguide_extractor.extractor.quality import candidate_confidence
from studyguide_extractor.extractor.types import ExtractionCandidate, ExtractionStrategy

logger = logging.getLogger(__name__)


def _opened(source: bytes | Path):
    return str(source) if isinstance(source, Path) else io.BytesIO(source)


def _table_rows(table: Table) -> Iterator[str]:
    for row in table.rows:
        cells = [cell.text.strip() for cell in row.cells]
        if any(cells):
            yield " | ".join(cells)


def try_python_docx(
    source: bytes | Path,
    settings: ExtractionSettings,
) -> ExtractionCandidate | None:
    """Extract body paragraphs and table rows, in document order."""
    try:
        document = open_docx(_opened(source))
        blocks: list[str] = []
        for item in document.iter_inner_content():
            if isinstance(item, Table):
                blocks.extend(_table_rows(item))
            elif item.text.strip():
                blocks.append(item.text.strip())
    except Exception as e:
        logger.warning("python-docx extraction failed: %s", e)
        return None

    text = "\n\n".join(blocks)
    logger.info("python-docx extracted %d chars from %d blocks", len(text), len(blocks))
    return ExtractionCandidate(
        text=text,
        strategy=ExtractionStrategy.PYTHON_DOCX,
        confidence=candidate_confidence(text, settings.min_text_chars),
    )


def _shape_texts(shapes) -> Iterator[str]:
    for shape in shapes:
        if shape.shape_type == MSO_SHAPE_TYPE.GROUP:
            yield from _shape_texts(shape.shapes)
        elif shape.has_text_frame:
            for paragraph in shape.text_frame.paragraphs:
                text = paragraph.text.replace("\v", " ").strip()
                if text:
                    yield text
        elif getattr(shape, "has_table", False) and shape.has_table:
            for row in shape.table.rows:
                for cell in row.cells:
                    if cell.text.strip():
                        yield cell.text.strip()


def try_python_pptx(
    source: bytes | Path,
    settings: ExtractionSettings,
) -> ExtractionCandidate | None:
    """Extract slide text in presentation order with slide markers."""
    try:
        presentation = Presentation(_opened(source))
        blocks: list[str] = []
        slide_count = 0
        for number, slide in enumerate(presentation.slides, start=1):
            slide_count = number
            text = " ".join(_shape_texts(slide.shapes))
            if text:
                blocks.append(f"{slide_marker(number)}\n{text}")
    except Exception as e:
        logger.warning("python-pptx extraction failed: %s", e)
        return None

    text = "\n\n".join(blocks)
    logger.info(
        "python-pptx extracted %d chars from %d slides", len(text), slide_count
    )
    return ExtractionCandidate(
        text=text,
        strategy=ExtractionStrategy.PYTHON_PPTX,
        confidence=candidate_confidence(text, settings.min_text_chars),
        page_count=slide_count,
    )
