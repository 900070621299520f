"""Readable-text classifier and raw PDF / OOXML scanners."""

from __future__ import annotations

import zlib

from conftest import build_docx_zip, build_pptx_zip

from studyguide_extractor.extractor import pdf_scanner
from studyguide_extractor.extractor.ooxml_scanner import scan_docx, scan_pptx, slide_marker
from studyguide_extractor.extractor.pdf_scanner import (
    is_structural,
    scan_pdf,
    scan_pdf_text,
    unescape_pdf_string,
)
from studyguide_extractor.extractor.readability import is_readable


def _raw_pdf(content: bytes, compress: bool = False) -> bytes:
    body = zlib.compress(content) if compress else content
    return (
        b"%%PDF-1.4\n1 0 obj\n<< /Length %d >>\nstream\n" % len(body)
        + body
        + b"\nendstream\nendobj\n%%EOF\n"
    )


# --- classifier ---


def test_short_strings_are_never_readable():
    for text in ["", "a", "ab", "  ab  ", "!!", "\n\t"]:
        assert is_readable(text) is False


def test_plain_prose_is_readable():
    assert is_readable("Density is mass divided by volume.")


def test_mojibake_is_rejected():
    assert not is_readable("Photosynthesis Ã© converts light")


def test_symbol_soup_is_rejected():
    assert not is_readable("#$%^&*{}<>|~ #$%^ &*{}")


def test_relaxed_thresholds_accept_more():
    text = "word #x# #y# #z#"
    assert not is_readable(text)
    assert is_readable(text, max_special_ratio=0.5, min_word_ratio=0.25)


# --- PDF scanner ---


def test_unescape_pdf_string():
    assert unescape_pdf_string(r"a\(b\)c\\d") == "a(b)c\\d"
    assert unescape_pdf_string(r"caf\351") == "caf\xe9"
    assert unescape_pdf_string("line\\\ncontinued") == "linecontinued"


def test_scan_pdf_extracts_show_operands():
    data = _raw_pdf(b"BT /F1 12 Tf 72 712 Td (Photosynthesis converts light energy) Tj ET")
    fragments = scan_pdf(data)
    assert "Photosynthesis converts light energy" in fragments


def test_scan_pdf_reads_tj_arrays_with_word_gaps():
    data = _raw_pdf(b"BT [(Chloro)-20(phyll)-450(absorbs)-300(red light)] TJ ET")
    fragments = scan_pdf(data)
    assert "Chlorophyll absorbs red light" in fragments


def test_scan_pdf_inflates_compressed_streams():
    data = _raw_pdf(b"BT (Cellular respiration releases energy) Tj ET", compress=True)
    assert "Cellular respiration releases energy" in scan_pdf(data)


def test_stream_inflation_is_capped(monkeypatch):
    monkeypatch.setattr(pdf_scanner, "MAX_STREAM_BYTES", 1024)
    bomb = _raw_pdf(b"\0" * (1 << 20), compress=True)
    assert [len(body) for body in pdf_scanner._stream_bodies(bomb)] == [1024]

    buried = _raw_pdf(b" " * 4096 + b"BT (Cellular respiration releases energy) Tj ET", compress=True)
    assert "Cellular respiration releases energy" not in scan_pdf(buried)


def test_scan_pdf_fragments_are_unique():
    data = _raw_pdf(
        b"BT (Mitochondria make ATP for the cell) Tj ET "
        b"BT (Mitochondria make ATP for the cell) Tj ET "
        b"BT (Mitochondria  make ATP for the cell) Tj ET"
    )
    fragments = scan_pdf(data)
    assert len(fragments) == len(set(fragments))
    assert fragments.count("Mitochondria make ATP for the cell") == 1


def test_scan_pdf_structural_only_is_empty():
    data = b"%PDF-1.4\n" + b"1 0 obj\n<< /Type /Page >>\nendobj\n" * 25 + b"%%EOF\n"
    assert scan_pdf(data) == []
    assert scan_pdf(data, max_special_ratio=0.5, min_word_ratio=0.5, aggressive=True) == []
    assert scan_pdf_text(data) == ""


def test_is_structural():
    assert is_structural("endobj endstream xref")
    assert is_structural("F1 12 Tf 72 712 Td")
    assert not is_structural("The water cycle moves water")


def test_aggressive_scan_harvests_loose_strings():
    data = _raw_pdf(b"/Title (Plate tectonics) /Subject (Earth)")
    assert "Plate tectonics" not in scan_pdf(data, alnum_min_chars=40)
    assert "Plate tectonics" in scan_pdf(data, alnum_min_chars=40, aggressive=True)


# --- OOXML scanner ---


def test_scan_pptx_two_slides_in_order():
    data = build_pptx_zip(["Photosynthesis overview", "Key terms: chlorophyll"])
    fragments = scan_pptx(data)
    assert fragments == [
        f"{slide_marker(1)}\nPhotosynthesis overview",
        f"{slide_marker(2)}\nKey terms: chlorophyll",
    ]


def test_scan_pptx_preserves_slide_order():
    data = build_pptx_zip(["First", "Second", "Third"])
    joined = "\n\n".join(scan_pptx(data))
    assert joined.index("First") < joined.index("Second") < joined.index("Third")


def test_scan_pptx_follows_presentation_order():
    data = build_pptx_zip(["File one", "File two", "File three"], order=[3, 1, 2])
    fragments = scan_pptx(data)
    assert [fragment.split("\n")[1] for fragment in fragments] == [
        "File three",
        "File one",
        "File two",
    ]
    assert fragments[0].startswith(slide_marker(1))


def test_scan_pptx_unescapes_entities():
    data = build_pptx_zip(["Forces &amp; motion"])
    assert scan_pptx(data) == [f"{slide_marker(1)}\nForces & motion"]


def test_scan_docx_paragraph_order():
    data = build_docx_zip(["Introduction", "Cells are the unit of life", "Summary"])
    assert scan_docx(data) == ["Introduction", "Cells are the unit of life", "Summary"]


def test_scan_docx_repeated_paragraphs_kept_once():
    data = build_docx_zip(["Key terms", "Osmosis moves water across membranes", "Key terms"])
    assert scan_docx(data) == ["Key terms", "Osmosis moves water across membranes"]


def test_scanners_return_empty_for_non_zip():
    assert scan_pptx(b"not a zip archive") == []
    assert scan_docx(b"not a zip archive") == []
