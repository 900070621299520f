"""Structured extraction failures with user-actionable remediation hints.

Every failure that crosses the public boundary of the pipeline is an
``ExtractionError``. Callers (HTTP handlers, the batch runner) turn it into
a response with ``to_dict()`` and show ``hint`` to the uploader.
"""

from __future__ import annotations

from enum import Enum

HINT_SUPPORTED_TYPES = "Please upload a PDF, DOCX, PPTX, TXT, or image file."
HINT_CONVERT_DOCX = "Please try converting to DOCX or text format, or paste the text directly."
HINT_EXPORT_PDF = "Please try exporting the file to PDF and uploading it again."
HINT_EXPORT_KEYNOTE = (
    "Keynote files can't be read directly. In Keynote choose File > Export To > "
    "PDF or PowerPoint, then upload the exported file."
)
HINT_SMALLER_FILE = "Please upload a smaller file or split the document into parts."
HINT_REEXPORT = "The file appears to be damaged. Please re-save or re-export it and try again."
HINT_CHECK_LINK = "Please check the link, or download the file and upload it directly."


class FailureKind(Enum):
    UNSUPPORTED_FORMAT = "unsupported_format"
    FILE_TOO_LARGE = "file_too_large"
    CORRUPT_INPUT = "corrupt_input"
    EXTRACTION_EXHAUSTED = "extraction_exhausted"
    ENVIRONMENT_UNAVAILABLE = "environment_unavailable"
    TIMEOUT = "timeout"
    FETCH_FAILED = "fetch_failed"


class ExtractionError(Exception):
    """Terminal failure for a single document."""

    kind: FailureKind = FailureKind.EXTRACTION_EXHAUSTED
    default_hint: str = HINT_CONVERT_DOCX

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        filename: str = "",
        attempts: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint or self.default_hint
        self.filename = filename
        self.attempts = list(attempts or [])

    def __str__(self) -> str:
        return f"{self.message} {self.hint}"

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind.value,
            "hint": self.hint,
            "filename": self.filename,
            "attempts": list(self.attempts),
        }


class UnsupportedFormatError(ExtractionError):
    kind = FailureKind.UNSUPPORTED_FORMAT
    default_hint = HINT_SUPPORTED_TYPES


class FileTooLargeError(ExtractionError):
    kind = FailureKind.FILE_TOO_LARGE
    default_hint = HINT_SMALLER_FILE


class CorruptDocumentError(ExtractionError):
    kind = FailureKind.CORRUPT_INPUT
    default_hint = HINT_REEXPORT


class ExtractionExhaustedError(ExtractionError):
    kind = FailureKind.EXTRACTION_EXHAUSTED
    default_hint = HINT_CONVERT_DOCX


class EnvironmentUnavailableError(ExtractionError):
    kind = FailureKind.ENVIRONMENT_UNAVAILABLE
    default_hint = HINT_EXPORT_PDF


class ExtractionTimeoutError(ExtractionError):
    kind = FailureKind.TIMEOUT
    default_hint = HINT_SMALLER_FILE


class DocumentFetchError(ExtractionError):
    kind = FailureKind.FETCH_FAILED
    default_hint = HINT_CHECK_LINK
