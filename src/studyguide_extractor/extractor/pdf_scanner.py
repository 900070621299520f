"""Raw PDF token scanner.

Pulls text straight out of the PDF byte stream without a parsing library,
for files that PyMuPDF and pdfplumber reject or read as empty (slide decks
exported by unusual tools are the common case).

Fragment sources, in order:

1. Text-show operands (``(...) Tj``, ``(...) '``, ``[...] TJ``) inside
   ``BT ... ET`` text objects.
2. The same operands inside ``stream ... endstream`` bodies, inflating
   Flate-compressed streams first.
3. Runs of 10+ letters/digits/punctuation anywhere in the file.
4. Aggressive mode only: any parenthesized or bracketed string of 5+ chars.

Every fragment is whitespace-normalized, passed through the readability
classifier, filtered for PDF syntax tokens, and deduplicated in first-seen
order. The scanner never invents content: no passing fragments means an
empty list.
"""

from __future__ import annotations

import logging
import re
import zlib
from collections.abc import Iterator

from studyguide_extractor.extractor.readability import is_readable

logger = logging.getLogger(__name__)

_TEXT_OBJECT_RE = re.compile(r"\bBT\b(.*?)\bET\b", re.DOTALL)
_STREAM_RE = re.compile(rb"stream\r?\n(.*?)endstream", re.DOTALL)

# Literal string followed by a show operator, or an array followed by TJ
_SHOW_OP_RE = re.compile(
    r"\(((?:\\.|[^\\)])*)\)\s*(?:Tj|'|\")|\[((?:\\.|[^\\\]])*)\]\s*TJ",
    re.DOTALL,
)
# Items inside a TJ array: literal strings and kerning adjustments
_ARRAY_ITEM_RE = re.compile(r"\(((?:\\.|[^\\)])*)\)|(-?\d+(?:\.\d+)?)")
_PAREN_STRING_RE = re.compile(r"\(([^)]{5,})\)")
_BRACKET_STRING_RE = re.compile(r"\[([^\]]{5,})\]")
_ESCAPE_RE = re.compile(r"\\([0-7]{1,3}|.)", re.DOTALL)

_ESCAPES = {
    "n": "\n",
    "r": "\n",
    "t": "\t",
    "b": "",
    "f": "",
    "(": "(",
    ")": ")",
    "\\": "\\",
}

# Inflated size cap per stream
MAX_STREAM_BYTES = 16 * 1024 * 1024

# TJ kerning at or below this (thousandths of an em) is a word gap
_WORD_GAP_KERNING = -200

PDF_SYNTAX_WORDS = frozenset(
    {
        "obj", "endobj", "stream", "endstream", "xref", "trailer", "startxref",
        "R", "n", "f", "BT", "ET", "Tf", "Td", "TD", "Tm", "Tj", "TJ", "T",
        "Type", "Page", "Pages", "Catalog", "Font", "FontDescriptor", "Kids",
        "Count", "Parent", "Resources", "Contents", "MediaBox", "CropBox",
        "Length", "Filter", "FlateDecode", "DCTDecode", "XObject", "Image",
        "Subtype", "BaseFont", "Encoding", "ProcSet", "PDF", "Text", "Root",
        "Info", "Size", "Prev", "ID", "XRef", "ObjStm", "Widths", "FirstChar",
        "LastChar", "Annots", "Group", "Metadata", "re", "cm", "q", "Q", "BI",
        "EI", "ID", "Do", "gs", "cs", "CS", "sc", "scn", "rg", "RG", "g", "G",
        "w", "l", "m", "h", "S", "s", "W", "EOF",
    }
)
_WORD_RE = re.compile(r"[A-Za-z]+")


def unescape_pdf_string(raw: str) -> str:
    """Resolve backslash escapes in a PDF literal string body."""

    def _replace(match: re.Match[str]) -> str:
        token = match.group(1)
        if token[0] in "01234567":
            return chr(int(token, 8) & 0xFF)
        if token in "\r\n":
            return ""  # line continuation
        return _ESCAPES.get(token, token)

    return _ESCAPE_RE.sub(_replace, raw)


def _array_text(array_body: str) -> str:
    parts: list[str] = []
    for match in _ARRAY_ITEM_RE.finditer(array_body):
        literal, number = match.group(1), match.group(2)
        if literal is not None:
            parts.append(unescape_pdf_string(literal))
        elif number is not None and float(number) <= _WORD_GAP_KERNING:
            parts.append(" ")
    return "".join(parts)


def _show_operands(region: str) -> Iterator[str]:
    for match in _SHOW_OP_RE.finditer(region):
        literal, array_body = match.group(1), match.group(2)
        if literal is not None:
            yield unescape_pdf_string(literal)
        elif array_body is not None:
            yield _array_text(array_body)


def _stream_bodies(data: bytes) -> Iterator[str]:
    """Yield stream bodies as Latin-1 text, inflated when zlib-compressed.

    Inflation stops at ``MAX_STREAM_BYTES``; the rest of the stream is dropped.
    """
    for match in _STREAM_RE.finditer(data):
        body = match.group(1)
        if body[:1] == b"x":
            try:
                body = zlib.decompressobj().decompress(body, MAX_STREAM_BYTES)
            except zlib.error:
                pass
        yield body.decode("latin-1")


def is_structural(fragment: str) -> bool:
    """True if a fragment is made of PDF syntax tokens rather than prose."""
    words = _WORD_RE.findall(fragment)
    if not words:
        return True
    syntax = sum(1 for word in words if word in PDF_SYNTAX_WORDS)
    return syntax / len(words) >= 0.5


def _alnum_run_re(min_chars: int) -> re.Pattern[str]:
    return re.compile(
        r"[A-Za-z][A-Za-z0-9 .,!?;:'\"\-]{%d,}" % max(0, min_chars - 1)
    )


def scan_pdf(
    data: bytes,
    *,
    max_special_ratio: float = 0.3,
    min_word_ratio: float = 0.7,
    alnum_min_chars: int = 10,
    aggressive: bool = False,
) -> list[str]:
    """Extract readable text fragments from raw PDF bytes.

    Args:
        data: Raw PDF file bytes.
        max_special_ratio: Classifier special-character ceiling.
        min_word_ratio: Classifier readable-word floor.
        alnum_min_chars: Minimum length of a permissive alphanumeric run.
        aggressive: Also harvest any parenthesized/bracketed string.

    Returns:
        Deduplicated fragments in first-seen order (possibly empty).
    """
    document = data.decode("latin-1")
    candidates: list[str] = []

    for region in _TEXT_OBJECT_RE.finditer(document):
        candidates.extend(_show_operands(region.group(1)))

    for body in _stream_bodies(data):
        for region in _TEXT_OBJECT_RE.finditer(body):
            candidates.extend(_show_operands(region.group(1)))
        candidates.extend(_show_operands(body))

    candidates.extend(_alnum_run_re(alnum_min_chars).findall(document))

    if aggressive:
        for pattern in (_PAREN_STRING_RE, _BRACKET_STRING_RE):
            candidates.extend(
                unescape_pdf_string(match) for match in pattern.findall(document)
            )

    fragments: dict[str, None] = {}
    for candidate in candidates:
        fragment = " ".join(candidate.split())
        if fragment in fragments:
            continue
        if not is_readable(fragment, max_special_ratio, min_word_ratio):
            continue
        if is_structural(fragment):
            continue
        fragments[fragment] = None

    logger.debug(
        "PDF raw scan (%s): %d candidates, %d readable fragments",
        "aggressive" if aggressive else "strict",
        len(candidates),
        len(fragments),
    )
    return list(fragments)


def scan_pdf_text(data: bytes, **kwargs) -> str:
    """Scan and join fragments with newlines (empty string if none)."""
    return "\n".join(scan_pdf(data, **kwargs))
