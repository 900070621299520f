"""Raw OOXML scanner for PowerPoint (.pptx) and Word (.docx) files.

Treats the upload as a zip archive and pulls run text (``<a:t>`` for
slides, ``<w:t>`` for Word) out of the body XML parts with pattern
matching, so it still works on packages python-pptx/python-docx refuse to
open (missing content-type or relationship parts, odd generators).

Slide order follows ``ppt/presentation.xml`` when its relationships can be
resolved and falls back to the numeric suffix of ``slideN.xml``.
"""

from __future__ import annotations

import html
import io
import logging
import posixpath
import re
import zipfile

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# Skip archive members that would inflate beyond this (zip-bomb guard)
MAX_PART_BYTES = 50 * 1024 * 1024

_SLIDE_NAME_RE = re.compile(r"^ppt/slides/slide(\d+)\.xml$")
_PPTX_RUN_RE = re.compile(r"<a:t(?:\s[^>]*)?>([^<]*)</a:t>")
_DOCX_PARAGRAPH_RE = re.compile(r"<w:p(?:\s[^>]*)?>")
_DOCX_TOKEN_RE = re.compile(r"<w:t(?:\s[^>]*)?>([^<]*)</w:t>|<w:(tab|br|cr)\b[^>]*/>")
_DOCX_AUX_RE = re.compile(r"^word/(header\d*|footer\d*|footnotes|endnotes)\.xml$")


def slide_marker(number: int) -> str:
    return f"--- Slide {number} ---"


def _read_part(archive: zipfile.ZipFile, name: str) -> str | None:
    try:
        info = archive.getinfo(name)
    except KeyError:
        return None
    if info.file_size > MAX_PART_BYTES:
        logger.warning(
            "Skipping oversized archive member %s (%d bytes)", name, info.file_size
        )
        return None
    return archive.read(name).decode("utf-8", errors="replace")


def _relationship_targets(archive: zipfile.ZipFile, rels_name: str, base_dir: str) -> dict[str, str]:
    """Map relationship Id -> archive member name for one .rels part."""
    xml = _read_part(archive, rels_name)
    if not xml:
        return {}
    soup = BeautifulSoup(xml, "xml")
    targets: dict[str, str] = {}
    for rel in soup.find_all("Relationship"):
        rel_id, target = rel.get("Id"), rel.get("Target")
        if not rel_id or not target:
            continue
        if target.startswith("/"):
            targets[rel_id] = target.lstrip("/")
        else:
            targets[rel_id] = posixpath.normpath(posixpath.join(base_dir, target))
    return targets


def slide_part_names(archive: zipfile.ZipFile) -> list[str]:
    """Return slide XML member names in presentation order."""
    present = set(archive.namelist())
    numbered = sorted(
        (int(match.group(1)), name)
        for name in present
        if (match := _SLIDE_NAME_RE.match(name))
    )
    fallback = [name for _, name in numbered]

    presentation = _read_part(archive, "ppt/presentation.xml")
    if not presentation:
        return fallback

    targets = _relationship_targets(archive, "ppt/_rels/presentation.xml.rels", "ppt")
    soup = BeautifulSoup(presentation, "xml")
    ordered: list[str] = []
    for slide_id in soup.find_all("sldId"):
        rel_id = slide_id.get("r:id") or slide_id.get("id")
        name = targets.get(rel_id or "")
        if name in present and name not in ordered:
            ordered.append(name)

    if not ordered:
        return fallback
    # Slides present in the archive but missing from the id list go last
    ordered.extend(name for name in fallback if name not in ordered)
    return ordered


def _slide_runs(xml: str) -> str:
    runs = (html.unescape(run) for run in _PPTX_RUN_RE.findall(xml))
    return " ".join(run.strip() for run in runs if run.strip())


def _notes_text(archive: zipfile.ZipFile, slide_name: str) -> str:
    slide_dir, slide_file = posixpath.split(slide_name)
    rels_name = posixpath.join(slide_dir, "_rels", f"{slide_file}.rels")
    for target in _relationship_targets(archive, rels_name, slide_dir).values():
        if "notesSlide" in target:
            xml = _read_part(archive, target)
            if xml:
                return _slide_runs(xml)
    return ""


def scan_pptx(data: bytes, *, include_notes: bool = False) -> list[str]:
    """Extract slide text from a PowerPoint package.

    Args:
        data: Raw .pptx bytes.
        include_notes: Also append each slide's speaker notes.

    Returns:
        One ``--- Slide N ---`` prefixed fragment per slide with text, in
        presentation order. Empty if the archive is unreadable or has no text.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            fragments: list[str] = []
            for number, name in enumerate(slide_part_names(archive), start=1):
                xml = _read_part(archive, name) or ""
                text = _slide_runs(xml)
                if include_notes:
                    notes = _notes_text(archive, name)
                    if notes:
                        text = f"{text}\nNotes: {notes}" if text else f"Notes: {notes}"
                if text:
                    fragments.append(f"{slide_marker(number)}\n{text}")
            return fragments
    except zipfile.BadZipFile as e:
        logger.warning("PPTX raw scan could not open archive: %s", e)
        return []


def _docx_paragraphs(xml: str) -> list[str]:
    paragraphs: list[str] = []
    for chunk in _DOCX_PARAGRAPH_RE.split(xml)[1:]:
        parts: list[str] = []
        for text, control in _DOCX_TOKEN_RE.findall(chunk):
            if control == "tab":
                parts.append("\t")
            elif control:
                parts.append("\n")
            else:
                parts.append(html.unescape(text))
        paragraph = "".join(parts).strip()
        if paragraph:
            paragraphs.append(paragraph)
    return paragraphs


def scan_docx(data: bytes, *, include_auxiliary: bool = False) -> list[str]:
    """Extract paragraph text from a Word package.

    Args:
        data: Raw .docx bytes.
        include_auxiliary: Also scan headers, footers, footnotes and endnotes.

    Returns:
        Unique paragraphs in first-seen document order, empty if unreadable.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            body = _read_part(archive, "word/document.xml")
            if body is None:
                logger.warning("DOCX raw scan: word/document.xml missing")
                return []
            paragraphs = _docx_paragraphs(body)
            if include_auxiliary:
                for name in sorted(archive.namelist()):
                    if _DOCX_AUX_RE.match(name):
                        paragraphs.extend(_docx_paragraphs(_read_part(archive, name) or ""))
            return list(dict.fromkeys(paragraphs))
    except zipfile.BadZipFile as e:
        logger.warning("DOCX raw scan could not open archive: %s", e)
        return []
