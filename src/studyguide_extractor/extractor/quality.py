"""Acceptance checks for extraction candidates.

Decides whether a strategy's output is usable or whether the next strategy
in the fallback chain should run. Two validation levels:

- ``passes_quality_check``: library-parser output (PyMuPDF, pdfplumber,
  python-docx, python-pptx, plain text).
- ``passes_scan_quality_check``: raw byte-scan output, which additionally
  must not be dominated by format syntax (``endobj``, ``xmlns`` ...).

Quality heuristics:
1. Minimum content: more than ``min_text_chars`` after trimming.
2. Garble ratio: replacement / control characters below threshold.
3. Excessive repetition: a 3-char sequence repeated hundreds of times,
   the signature of a broken font mapping.
4. Structural noise (raw scans only): format keyword count below ceiling.
"""

from __future__ import annotations

import logging
import re
from collections import Counter

from studyguide_extractor.config.settings import ExtractionSettings
from studyguide_extractor.extractor.readability import readable_word_ratio
from studyguide_extractor.extractor.types import DocumentFormat, ExtractionCandidate

logger = logging.getLogger(__name__)

# Matches Unicode replacement char, NULL, and non-printable control chars
_GARBLE_PATTERN = re.compile(r"[\ufffd\x00-\x08\x0b\x0c\x0e-\x1f]")

_STRUCTURAL_PATTERNS = {
    DocumentFormat.PDF: re.compile(
        r"\b(?:endobj|endstream|obj|stream|xref|startxref|trailer)\b"
        r"|/(?:Type|Font|Filter|Length|FlateDecode|Subtype|MediaBox)\b"
    ),
    DocumentFormat.DOCX: re.compile(r"xmlns|schemas\.openxmlformats|</?w:[A-Za-z]"),
    DocumentFormat.PPTX: re.compile(r"xmlns|schemas\.openxmlformats|</?[ap]:[A-Za-z]"),
}

# Slide markers and markdown table rules repeat by construction
_LAYOUT_LINE_PATTERN = re.compile(r"(?m)^--- Slide \d+ ---$|^[\s|:\-]+$")

_REPETITION_SAMPLE_CHARS = 10_000
_REPETITION_LIMIT = 200


def candidate_confidence(text: str, min_chars: int) -> float:
    """0-1 confidence from length (saturating at 10x the minimum) and readability."""
    stripped = text.strip()
    if not stripped:
        return 0.0
    length_score = min(1.0, len(stripped) / max(1, min_chars * 10))
    return round(length_score * readable_word_ratio(stripped), 3)


def count_structural_markers(text: str, fmt: DocumentFormat) -> int:
    pattern = _STRUCTURAL_PATTERNS.get(fmt)
    if pattern is None:
        return 0
    return len(pattern.findall(text))


def _has_minimum_content(candidate: ExtractionCandidate, settings: ExtractionSettings) -> bool:
    if candidate.char_count <= settings.min_text_chars:
        logger.warning(
            "Quality check failed (minimum content) for %s: %d chars <= %d minimum",
            candidate.strategy.value,
            candidate.char_count,
            settings.min_text_chars,
        )
        return False
    return True


def passes_quality_check(
    candidate: ExtractionCandidate,
    settings: ExtractionSettings,
) -> bool:
    """Check whether library-parser output meets quality standards.

    Args:
        candidate: Strategy output to validate.
        settings: Extraction settings with threshold configuration.

    Returns:
        True if all checks pass, False if any check fails.
    """
    if not candidate.text or not candidate.text.strip():
        logger.warning(
            "Quality check failed for %s: empty or whitespace-only text",
            candidate.strategy.value,
        )
        return False

    if not _has_minimum_content(candidate, settings):
        return False

    garble_chars = len(_GARBLE_PATTERN.findall(candidate.text))
    garble_ratio = garble_chars / len(candidate.text)
    if garble_ratio > settings.garble_ratio_threshold:
        logger.warning(
            "Quality check failed (garble ratio) for %s: %.3f > %.3f threshold "
            "(%d garbled chars in %d total)",
            candidate.strategy.value,
            garble_ratio,
            settings.garble_ratio_threshold,
            garble_chars,
            len(candidate.text),
        )
        return False

    # Natural English trigrams like "the" stay well under the limit in 10K
    # chars; font-mapping failures repeat one glyph sequence hundreds of times.
    sample = _LAYOUT_LINE_PATTERN.sub("", candidate.text)[:_REPETITION_SAMPLE_CHARS]
    if len(sample) >= 3:
        trigram_counts = Counter(sample[i : i + 3] for i in range(len(sample) - 2))
        for trigram, count in trigram_counts.most_common(10):
            if count > _REPETITION_LIMIT and re.search(r"\S", trigram):
                logger.warning(
                    "Quality check failed (excessive repetition) for %s: "
                    "trigram %r appears %d times in first 10K chars",
                    candidate.strategy.value,
                    trigram,
                    count,
                )
                return False

    return True


def passes_scan_quality_check(
    candidate: ExtractionCandidate,
    fmt: DocumentFormat,
    settings: ExtractionSettings,
) -> bool:
    """Check whether raw-scan output is usable prose.

    Repetition is not checked: scanner output is already deduplicated.
    """
    if not candidate.text or not candidate.text.strip():
        logger.warning(
            "Scan quality check failed for %s: no readable fragments",
            candidate.strategy.value,
        )
        return False

    if not _has_minimum_content(candidate, settings):
        return False

    markers = count_structural_markers(candidate.text, fmt)
    if markers > settings.max_structural_markers:
        logger.warning(
            "Scan quality check failed (structural noise) for %s: %d %s markers > %d",
            candidate.strategy.value,
            markers,
            fmt.value,
            settings.max_structural_markers,
        )
        return False

    return True
