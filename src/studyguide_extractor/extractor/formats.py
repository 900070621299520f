"""Format detection and header validation.

Routing uses, in order: the declared MIME type, the filename extension, and
finally the leading magic bytes. Legacy binary Office formats are rejected
with a conversion hint rather than attempted.
"""

from __future__ import annotations

import logging

from studyguide_extractor.extractor.errors import (
    CorruptDocumentError,
    UnsupportedFormatError,
)
from studyguide_extractor.extractor.types import DocumentFormat, SourceDocument

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"
ZIP_MAGIC = b"PK\x03\x04"
JPEG_MAGIC = b"\xff\xd8\xff"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"

_MIME_FORMATS = {
    "application/pdf": DocumentFormat.PDF,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DocumentFormat.DOCX,
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": DocumentFormat.PPTX,
    "application/vnd.apple.keynote": DocumentFormat.KEYNOTE,
    "application/x-iwork-keynote-sffkey": DocumentFormat.KEYNOTE,
    "text/plain": DocumentFormat.TXT,
    "image/jpeg": DocumentFormat.IMAGE,
    "image/png": DocumentFormat.IMAGE,
}

_EXTENSION_FORMATS = {
    "pdf": DocumentFormat.PDF,
    "docx": DocumentFormat.DOCX,
    "pptx": DocumentFormat.PPTX,
    "key": DocumentFormat.KEYNOTE,
    "txt": DocumentFormat.TXT,
    "jpg": DocumentFormat.IMAGE,
    "jpeg": DocumentFormat.IMAGE,
    "png": DocumentFormat.IMAGE,
}

_LEGACY_HINTS = {
    "ppt": "Old PowerPoint (.ppt) files aren't supported. Please save as PPTX or export to PDF.",
    "doc": "Old Word (.doc) files aren't supported. Please save as DOCX or export to PDF.",
    "application/vnd.ms-powerpoint": "Old PowerPoint (.ppt) files aren't supported. Please save as PPTX or export to PDF.",
    "application/msword": "Old Word (.doc) files aren't supported. Please save as DOCX or export to PDF.",
}

# Declared types that carry no routing information
_GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


def _sniff(data: bytes) -> DocumentFormat | None:
    if data.startswith(PDF_MAGIC):
        return DocumentFormat.PDF
    if data.startswith(JPEG_MAGIC) or data.startswith(PNG_MAGIC):
        return DocumentFormat.IMAGE
    return None


def detect_format(document: SourceDocument) -> DocumentFormat:
    """Decide how a document should be routed.

    Args:
        document: Source document with declared MIME type and filename.

    Returns:
        The detected DocumentFormat.

    Raises:
        UnsupportedFormatError: If neither MIME type, extension, nor magic
            bytes identify a supported format.
    """
    mime = document.mime_type.split(";")[0].strip().lower()
    ext = document.extension

    for key in (mime, ext):
        if key in _LEGACY_HINTS:
            raise UnsupportedFormatError(
                f"Unsupported legacy format: {document.filename}",
                hint=_LEGACY_HINTS[key],
                filename=document.filename,
            )

    if mime not in _GENERIC_MIME_TYPES and mime in _MIME_FORMATS:
        return _MIME_FORMATS[mime]
    if ext in _EXTENSION_FORMATS:
        return _EXTENSION_FORMATS[ext]

    sniffed = _sniff(document.data)
    if sniffed is not None:
        logger.debug(
            "Format for %s sniffed from magic bytes: %s",
            document.filename,
            sniffed.value,
        )
        return sniffed

    raise UnsupportedFormatError(
        f"File type not supported: {document.filename} ({mime or 'unknown type'})",
        filename=document.filename,
    )


_FORMAT_EXTENSIONS = {
    DocumentFormat.PDF: "pdf",
    DocumentFormat.DOCX: "docx",
    DocumentFormat.PPTX: "pptx",
    DocumentFormat.KEYNOTE: "key",
    DocumentFormat.TXT: "txt",
}

_LEGACY_MIME_EXTENSIONS = {
    "application/vnd.ms-powerpoint": "ppt",
    "application/msword": "doc",
}


def has_known_extension(filename: str) -> bool:
    """True if *filename* ends in an extension the router recognizes."""
    ext = filename.rpartition(".")[2].lower() if "." in filename else ""
    return ext in _EXTENSION_FORMATS or ext in _LEGACY_HINTS


def extension_for(mime_type: str, data: bytes) -> str | None:
    """File extension matching a declared MIME type, else the magic bytes.

    Returns None when neither identifies a format (a bare ZIP could be
    DOCX, PPTX or Keynote, so it stays unknown without a MIME type).
    """
    mime = mime_type.split(";")[0].strip().lower()
    if mime in _LEGACY_MIME_EXTENSIONS:
        return _LEGACY_MIME_EXTENSIONS[mime]
    fmt = _MIME_FORMATS.get(mime) or _sniff(data)
    if fmt is DocumentFormat.IMAGE:
        return "png" if data.startswith(PNG_MAGIC) else "jpg"
    return _FORMAT_EXTENSIONS.get(fmt)


def image_mime_type(data: bytes) -> str:
    """MIME type of an image payload from its magic bytes (JPEG by default)."""
    return "image/png" if data.startswith(PNG_MAGIC) else "image/jpeg"


def validate_header(document: SourceDocument, fmt: DocumentFormat) -> None:
    """Reject documents whose leading bytes contradict their format.

    Keynote is not checked here: a non-zip Keynote upload is an unreadable
    bundle, which the orchestrator reports separately.

    Raises:
        CorruptDocumentError: If the magic bytes are missing.
    """
    data = document.data
    if fmt is DocumentFormat.PDF and not data.startswith(PDF_MAGIC):
        raise CorruptDocumentError(
            f"Invalid PDF header in {document.filename}: file does not start with %PDF",
            filename=document.filename,
        )
    if fmt in (DocumentFormat.DOCX, DocumentFormat.PPTX) and not data.startswith(ZIP_MAGIC):
        raise CorruptDocumentError(
            f"Invalid {fmt.value.upper()} file {document.filename}: not a zip archive",
            filename=document.filename,
        )
    if fmt is DocumentFormat.IMAGE and not (
        data.startswith(JPEG_MAGIC) or data.startswith(PNG_MAGIC)
    ):
        raise CorruptDocumentError(
            f"Invalid image file {document.filename}: not a JPEG or PNG",
            filename=document.filename,
        )
