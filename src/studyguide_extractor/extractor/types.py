"""Shared types for the extraction pipeline.

Defines the input document, the per-strategy candidate, and the final
result used across scanners, library extractors, quality checks, the
rasterizer, and the orchestration service.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

ProgressCallback = Callable[[str], None]


class DocumentFormat(Enum):
    """Document formats the pipeline knows how to route."""

    PDF = "pdf"
    DOCX = "docx"
    PPTX = "pptx"
    KEYNOTE = "key"
    TXT = "txt"
    IMAGE = "image"


class ExtractionStrategy(Enum):
    """Strategy that produced a candidate or result."""

    PYMUPDF4LLM = "pymupdf4llm"
    PYMUPDF_TEXT = "pymupdf_text"
    PDFPLUMBER = "pdfplumber"
    PDFPLUMBER_LAYOUT = "pdfplumber_layout"
    PYTHON_DOCX = "python_docx"
    PYTHON_PPTX = "python_pptx"
    RAW_SCAN = "raw_scan"
    AGGRESSIVE_SCAN = "aggressive_scan"
    PLAIN_TEXT = "plain_text"
    RASTERIZE = "rasterize"
    IMAGE_PASSTHROUGH = "image_passthrough"


class ResultKind(Enum):
    """Shape of a successful extraction."""

    TEXT = "text"
    IMAGES = "images"


@dataclass(frozen=True)
class SourceDocument:
    """Raw document as received from the caller.

    Attributes:
        data: Raw file bytes.
        filename: Original filename (used for extension sniffing and output names).
        mime_type: Declared MIME type, or empty string when unknown.
    """

    data: bytes
    filename: str
    mime_type: str = ""

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower().lstrip(".")

    @property
    def stem(self) -> str:
        return Path(self.filename).stem

    @classmethod
    def from_path(cls, path: Path, mime_type: str = "") -> SourceDocument:
        """Read a document from disk."""
        return cls(data=path.read_bytes(), filename=path.name, mime_type=mime_type)


@dataclass
class ExtractionCandidate:
    """Text produced by one strategy attempt, before acceptance.

    Attributes:
        text: Extracted text.
        strategy: Which strategy produced the text.
        confidence: 0-1 signal from length and readable-word ratio.
        page_count: Number of pages/slides seen by the strategy (0 if unknown).
    """

    text: str
    strategy: ExtractionStrategy
    confidence: float = 0.0
    page_count: int = 0

    @property
    def char_count(self) -> int:
        return len(self.text.strip())


@dataclass
class PageImage:
    """A single rendered or compressed page image."""

    page_number: int
    data: bytes
    mime_type: str = "image/jpeg"
    width: int = 0
    height: int = 0

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ExtractionResult:
    """Final outcome for one document: either text or an ordered page set.

    Attributes:
        kind: ``ResultKind.TEXT`` or ``ResultKind.IMAGES``.
        filename: Source document filename.
        strategy: Strategy that produced the accepted output.
        content: Extracted (and possibly summarized) text for TEXT results.
        pages: Page images ordered by page number for IMAGES results.
        page_count: Pages/slides in the source, when known.
        summarized: True if the summarizer reduced the text.
        failed_pages: Page numbers that could not be rasterized.
        attempts: Strategy names tried, in order.
    """

    kind: ResultKind
    filename: str
    strategy: ExtractionStrategy
    content: str = ""
    pages: list[PageImage] = field(default_factory=list)
    page_count: int = 0
    summarized: bool = False
    failed_pages: list[int] = field(default_factory=list)
    attempts: list[str] = field(default_factory=list)

    @property
    def char_count(self) -> int:
        return len(self.content)

    def to_dict(self) -> dict:
        """Structured output shape without image bytes."""
        if self.kind is ResultKind.TEXT:
            return {
                "kind": self.kind.value,
                "filename": self.filename,
                "strategy": self.strategy.value,
                "content": self.content,
                "summarized": self.summarized,
            }
        return {
            "kind": self.kind.value,
            "filename": self.filename,
            "strategy": self.strategy.value,
            "pages": [
                {
                    "pageNumber": page.page_number,
                    "mimeType": page.mime_type,
                    "bytes": page.size,
                }
                for page in self.pages
            ],
            "failed_pages": list(self.failed_pages),
        }
