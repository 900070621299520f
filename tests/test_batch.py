"""Batch orchestration, output writing and prompt assembly."""

from __future__ import annotations

import base64

import frontmatter
from conftest import build_pdf, build_pptx_zip

from studyguide_extractor.assembler import assemble_text, build_message_content, has_limited_content
from studyguide_extractor.config.settings import ExtractionSettings
from studyguide_extractor.extractor import extract_directory, extract_documents
from studyguide_extractor.extractor.markdown import should_extract, write_result
from studyguide_extractor.extractor.types import (
    ExtractionResult,
    ExtractionStrategy,
    PageImage,
    ResultKind,
    SourceDocument,
)

NOTES = "Igneous rocks form when magma cools and solidifies underground or at the surface."


def _text_result(filename: str, content: str) -> ExtractionResult:
    return ExtractionResult(
        kind=ResultKind.TEXT,
        filename=filename,
        strategy=ExtractionStrategy.PLAIN_TEXT,
        content=content,
    )


def _image_result(filename: str, pages: int) -> ExtractionResult:
    return ExtractionResult(
        kind=ResultKind.IMAGES,
        filename=filename,
        strategy=ExtractionStrategy.RASTERIZE,
        pages=[PageImage(page_number=n, data=f"jpeg{n}".encode()) for n in range(1, pages + 1)],
        page_count=pages,
    )


def test_one_failure_does_not_block_others(extraction_settings, scoring_settings):
    documents = [
        SourceDocument(data=NOTES.encode(), filename="rocks.txt"),
        SourceDocument(data=b"broken", filename="broken.pdf"),
        SourceDocument(
            data=build_pptx_zip(["Photosynthesis overview", "Key terms: chlorophyll"]),
            filename="bio.pptx",
        ),
    ]
    batch = extract_documents(documents, extraction_settings, scoring_settings)

    assert batch.documents_attempted == 3
    assert batch.documents_succeeded == 2
    assert batch.documents_failed == 1
    assert set(batch.results) == {"rocks.txt", "bio.pptx"}
    assert batch.failures["broken.pdf"].to_dict()["kind"] == "corrupt_input"
    assert batch.errors and batch.errors[0].startswith("broken.pdf")


def test_empty_batch(extraction_settings, scoring_settings):
    batch = extract_documents([], extraction_settings, scoring_settings)
    assert batch.documents_attempted == 0


def test_extract_directory_writes_and_skips(tmp_path, scoring_settings):
    settings = ExtractionSettings(pdf_mode="images", max_workers=2)
    inbox = tmp_path / "inbox"
    outbox = tmp_path / "out"
    inbox.mkdir()
    (inbox / "rocks.txt").write_text(NOTES, encoding="utf-8")
    (inbox / "slides.pdf").write_bytes(build_pdf([["One"], ["Two"]]))
    (inbox / "ignored.csv").write_text("a,b\n1,2\n", encoding="utf-8")

    first = extract_directory(inbox, outbox, settings, scoring_settings)

    assert first.documents_succeeded == 2
    assert first.documents_unsupported == 1
    post = frontmatter.load(outbox / "rocks.md")
    assert post.content.strip() == NOTES
    assert post.metadata["source_file"] == "rocks.txt"
    assert post.metadata["extraction_method"] == "plain_text"
    assert (outbox / "slides_page_1.jpg").exists()
    assert (outbox / "slides_page_2.jpg").exists()
    assert frontmatter.load(outbox / "slides.md").metadata["images"] == 2

    second = extract_directory(inbox, outbox, settings, scoring_settings)
    assert second.documents_skipped == 2
    assert second.documents_attempted == 0


def test_should_extract(tmp_path):
    assert should_extract(tmp_path, "notes.pdf")
    (tmp_path / "notes.md").write_text("", encoding="utf-8")
    assert should_extract(tmp_path, "notes.pdf")
    (tmp_path / "notes.md").write_text("done", encoding="utf-8")
    assert not should_extract(tmp_path, "notes.pdf")


def test_write_result_returns_paths(tmp_path):
    paths = write_result(tmp_path / "out", _image_result("deck.key", 2))
    assert [path.name for path in paths] == ["deck.md", "deck_page_1.jpg", "deck_page_2.jpg"]


def test_assemble_text_sections():
    results = [
        _text_result("a.pdf", "Alpha content"),
        _image_result("b.pdf", 1),
        _text_result("c.docx", "Gamma content"),
    ]
    assert assemble_text(results) == "--- a.pdf ---\nAlpha content\n\n--- c.docx ---\nGamma content"


def test_build_message_content():
    results = [_text_result("a.pdf", NOTES), _image_result("slides.pdf", 2)]
    blocks = build_message_content(results, instructions="Make a study guide.")

    assert blocks[0] == {"type": "text", "text": "Make a study guide."}
    assert blocks[1]["text"].startswith("--- a.pdf ---\n")
    assert blocks[2]["type"] == "text"
    images = [block for block in blocks if block["type"] == "image"]
    assert len(images) == 2
    assert images[0]["source"]["media_type"] == "image/jpeg"
    assert base64.b64decode(images[1]["source"]["data"]) == b"jpeg2"


def test_has_limited_content():
    assert has_limited_content([_text_result("a.txt", "tiny")])
    assert not has_limited_content([_text_result("a.txt", NOTES * 2)])
    assert not has_limited_content([_image_result("b.pdf", 1)])
