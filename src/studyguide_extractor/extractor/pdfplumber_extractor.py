"""PDF text extraction with pdfplumber (pdfminer.six underneath).

pdfminer tolerates a different set of malformed files than MuPDF, so it is
a genuine second opinion rather than a duplicate. Two variants:

- plain: ``extract_text()`` per page, tables rendered as markdown.
- layout: ``extract_text(layout=True)``, which keeps column positions and
  helps with slide-deck PDFs whose text boxes are scattered.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path

import pandas as pd
import pdfplumber
from pdfplumber.utils import get_bbox_overlap, obj_to_bbox

from studyguide_extractor.config.settings import ExtractionSettings
from studyguide_extractor.extractor.quality import candidate_confidence
from studyguide_extractor.extractor.types import ExtractionCandidate, ExtractionStrategy

logger = logging.getLogger(__name__)


def _clamp_bbox(
    bbox: tuple[float, float, float, float],
    page_width: float,
    page_height: float,
) -> tuple[float, float, float, float]:
    """Clamp a table bounding box to the page.

    pdfplumber sometimes detects table regions extending past the page
    edge, which makes ``filter`` raise.
    """
    x0, top, x1, bottom = bbox
    return (
        max(0, x0),
        max(0, top),
        min(page_width, x1),
        min(page_height, bottom),
    )


def _table_to_markdown(table_data: list[list[str | None]]) -> str | None:
    """Convert pdfplumber table rows (first row = header) to a markdown table."""
    if not table_data or len(table_data) < 2:
        return None

    header = [str(cell) if cell is not None else "" for cell in table_data[0]]
    rows = [
        [str(cell) if cell is not None else "" for cell in row]
        for row in table_data[1:]
    ]

    try:
        return pd.DataFrame(rows, columns=header).to_markdown(index=False)
    except Exception:
        # Mismatched column counts, duplicate headers, etc.
        return None


def _page_text(page, layout: bool) -> str:
    parts: list[str] = []
    tables = page.find_tables()

    if tables:
        filtered_page = page
        for table in tables:
            clamped = _clamp_bbox(table.bbox, page.width, page.height)
            filtered_page = filtered_page.filter(
                lambda obj, bbox=clamped: get_bbox_overlap(obj_to_bbox(obj), bbox) is None
            )
        text = filtered_page.extract_text(layout=layout)
        if text and text.strip():
            parts.append(text.strip())
        for table in tables:
            md_table = _table_to_markdown(table.extract())
            if md_table:
                parts.append(md_table)
    else:
        text = page.extract_text(layout=layout)
        if text and text.strip():
            parts.append(text.strip())

    return "\n\n".join(parts)


def try_pdfplumber(
    source: bytes | Path,
    settings: ExtractionSettings,
    layout: bool = False,
) -> ExtractionCandidate | None:
    """Extract text from a PDF using pdfplumber with table detection.

    Args:
        source: PDF bytes or path.
        settings: Extraction configuration.
        layout: Preserve horizontal layout (the "layout" variant).

    Returns:
        Candidate with page texts joined by blank lines, or None if
        pdfplumber raised.
    """
    strategy = ExtractionStrategy.PDFPLUMBER_LAYOUT if layout else ExtractionStrategy.PDFPLUMBER
    opened = str(source) if isinstance(source, Path) else io.BytesIO(source)
    try:
        with pdfplumber.open(opened) as pdf:
            page_count = len(pdf.pages)
            pages = [_page_text(page, layout) for page in pdf.pages]
    except Exception as e:
        logger.warning("%s extraction failed: %s", strategy.value, e)
        return None

    text = "\n\n".join(page for page in pages if page)
    logger.info(
        "%s extracted %d chars from %d pages",
        strategy.value,
        len(text),
        page_count,
    )
    return ExtractionCandidate(
        text=text,
        strategy=strategy,
        confidence=candidate_confidence(text, settings.min_text_chars),
        page_count=page_count,
    )
