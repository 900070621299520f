"""Shared fixtures: settings objects and in-memory document builders."""

from __future__ import annotations

import io
import zipfile

import pymupdf
import pytest
from docx import Document
from pptx import Presentation
from pptx.util import Inches

from studyguide_extractor.config.settings import ExtractionSettings, ScoringSettings

_NS_P = "http://schemas.openxmlformats.org/presentationml/2006/main"
_NS_A = "http://schemas.openxmlformats.org/drawingml/2006/main"
_NS_R = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
_NS_W = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
_NS_PKG_REL = "http://schemas.openxmlformats.org/package/2006/relationships"
_SLIDE_REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/slide"


@pytest.fixture
def extraction_settings() -> ExtractionSettings:
    return ExtractionSettings(timeout_seconds=60, max_workers=2)


@pytest.fixture
def scoring_settings() -> ScoringSettings:
    return ScoringSettings()


def build_pdf(pages: list[list[str]]) -> bytes:
    """PDF with one page per entry, each line drawn as text."""
    doc = pymupdf.open()
    for lines in pages:
        page = doc.new_page()
        y = 72
        for line in lines:
            page.insert_text((72, y), line, fontsize=11)
            y += 16
    data = doc.tobytes()
    doc.close()
    return data


def build_pptx_zip(slides: list[str], order: list[int] | None = None) -> bytes:
    """Minimal hand-built .pptx archive (no content types, no layouts).

    Args:
        slides: Text of ``slide1.xml``, ``slide2.xml``, ... in file order.
        order: 1-based file numbers in presentation order (default: file order).
    """
    order = order or list(range(1, len(slides) + 1))
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        ids = "".join(
            f'<p:sldId id="{255 + position}" r:id="rId{number}"/>'
            for position, number in enumerate(order, start=1)
        )
        archive.writestr(
            "ppt/presentation.xml",
            f'<p:presentation xmlns:p="{_NS_P}" xmlns:r="{_NS_R}">'
            f"<p:sldIdLst>{ids}</p:sldIdLst></p:presentation>",
        )
        rels = "".join(
            f'<Relationship Id="rId{number}" Type="{_SLIDE_REL}" Target="slides/slide{number}.xml"/>'
            for number in range(1, len(slides) + 1)
        )
        archive.writestr(
            "ppt/_rels/presentation.xml.rels",
            f'<Relationships xmlns="{_NS_PKG_REL}">{rels}</Relationships>',
        )
        for number, text in enumerate(slides, start=1):
            archive.writestr(
                f"ppt/slides/slide{number}.xml",
                f'<p:sld xmlns:p="{_NS_P}" xmlns:a="{_NS_A}"><p:cSld><p:spTree><p:sp>'
                f"<p:txBody><a:p><a:r><a:t>{text}</a:t></a:r></a:p></p:txBody>"
                f"</p:sp></p:spTree></p:cSld></p:sld>",
            )
    return buffer.getvalue()


def build_docx_zip(paragraphs: list[str]) -> bytes:
    """Minimal hand-built .docx archive holding only ``word/document.xml``."""
    body = "".join(f"<w:p><w:r><w:t>{text}</w:t></w:r></w:p>" for text in paragraphs)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr(
            "word/document.xml",
            f'<w:document xmlns:w="{_NS_W}"><w:body>{body}</w:body></w:document>',
        )
    return buffer.getvalue()


def build_pptx(slides: list[str]) -> bytes:
    """Real .pptx written by python-pptx, one text box per slide."""
    presentation = Presentation()
    blank = presentation.slide_layouts[6]
    for text in slides:
        slide = presentation.slides.add_slide(blank)
        box = slide.shapes.add_textbox(Inches(1), Inches(1), Inches(8), Inches(1))
        box.text_frame.text = text
    buffer = io.BytesIO()
    presentation.save(buffer)
    return buffer.getvalue()


def build_docx(paragraphs: list[str]) -> bytes:
    """Real .docx written by python-docx."""
    document = Document()
    for text in paragraphs:
        document.add_paragraph(text)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()
