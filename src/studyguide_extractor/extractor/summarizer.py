"""Content scorer and summarizer for oversized extraction output.

Fits extracted text into the LLM content budget while keeping the parts
most likely to matter for a study guide. Three stages, each only run if
the previous one left the text over budget:

1. Artifact stripping: page numbers, dates, times, emails, phone numbers,
   URLs and bare number lines are removed.
2. Line filtering: lines under ``min_line_chars`` are dropped, as are lines
   matching a noise pattern (navigation, headers, pure symbols) unless they
   contain a content keyword.
3. Sentence selection: sentences are scored against the weights table in
   ``ScoringSettings`` and the highest-scoring ones are taken greedily up to
   ``summary_target_chars``. Output order is rank order, not source order.

Text already within budget is returned unchanged, so ``summarize`` is
idempotent. Keyword data is English-only (see ``config/scoring.yaml``).
"""

from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass

from studyguide_extractor.config.settings import ExtractionSettings, ScoringSettings

logger = logging.getLogger(__name__)

_ARTIFACT_PATTERNS = [
    re.compile(r"(?:https?://|www\.)\S+"),
    re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    re.compile(r"\bPage\s+\d+(?:\s+of\s+\d+)?\b", re.IGNORECASE),
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{2,4}\b"),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(r"\b\d{1,2}:\d{2}(?::\d{2})?(?:\s*[AaPp][Mm])?\b"),
    re.compile(r"(?:\(\d{3}\)\s*|\b\d{3}[-.\s])\d{3}[-.]\d{4}\b"),
    re.compile(r"(?m)^\s*\d+\s*$"),
]
_HORIZONTAL_SPACE = re.compile(r"[ \t]+")
_BLANK_LINES = re.compile(r"\n\s*\n+")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")


@dataclass
class ScoredSentence:
    text: str
    score: int
    position: int


@functools.lru_cache(maxsize=8)
def _compile_noise(patterns: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern) for pattern in patterns)


def strip_artifacts(text: str) -> str:
    """Remove non-content artifacts and normalize whitespace."""
    for pattern in _ARTIFACT_PATTERNS:
        text = pattern.sub("", text)
    text = _HORIZONTAL_SPACE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.splitlines())
    return _BLANK_LINES.sub("\n", text).strip()


def is_content_line(line: str, scoring: ScoringSettings) -> bool:
    lowered = line.lower()
    return any(keyword in lowered for keyword in scoring.content_keywords)


def is_noise_line(line: str, scoring: ScoringSettings) -> bool:
    noise = _compile_noise(tuple(scoring.noise_line_patterns))
    return any(pattern.search(line) for pattern in noise)


def filter_lines(text: str, scoring: ScoringSettings) -> str:
    """Drop short lines and noise lines that carry no content keyword."""
    kept: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if len(stripped) < scoring.min_line_chars:
            continue
        if is_content_line(stripped, scoring) or not is_noise_line(stripped, scoring):
            kept.append(stripped)
    return "\n".join(kept)


def score_sentence(sentence: str, scoring: ScoringSettings) -> int:
    """Signed sum of rule weights hit by *sentence*, plus length penalties."""
    lowered = sentence.lower()
    score = sum(
        rule.weight
        for rule in scoring.rules
        if any(term in lowered for term in rule.terms)
    )
    if len(sentence) < scoring.short_sentence_chars:
        score += scoring.short_sentence_penalty
    if len(sentence) > scoring.long_sentence_chars:
        score += scoring.long_sentence_penalty
    return score


def rank_sentences(text: str, scoring: ScoringSettings) -> list[ScoredSentence]:
    """Split into sentences and sort by score, ties in source order."""
    sentences = (" ".join(part.split()) for part in _SENTENCE_SPLIT.split(text))
    scored = [
        ScoredSentence(text=sentence, score=score_sentence(sentence, scoring), position=idx)
        for idx, sentence in enumerate(sentences)
        if len(sentence) > scoring.min_sentence_chars
    ]
    return sorted(scored, key=lambda item: -item.score)


def select_sentences(text: str, scoring: ScoringSettings, target_chars: int) -> str:
    """Greedily take top-ranked sentences until *target_chars* would be exceeded."""
    selected: list[str] = []
    length = 0
    for sentence in rank_sentences(text, scoring):
        if length + len(sentence.text) > target_chars:
            break
        selected.append(f"{sentence.text}.")
        length += len(sentence.text) + 2
    return " ".join(selected)


def summarize(
    text: str,
    settings: ExtractionSettings,
    scoring: ScoringSettings,
) -> str:
    """Reduce *text* to at most ``content_budget_chars`` characters.

    Returns *text* unchanged when it is already within budget. If every
    stage empties the text (e.g. one enormous sentence), the artifact-
    stripped text is truncated to the budget instead.
    """
    budget = settings.content_budget_chars
    if len(text) <= budget:
        return text

    logger.info("Text over budget (%d > %d chars), summarizing", len(text), budget)

    stripped = strip_artifacts(text)
    filtered = filter_lines(stripped, scoring)
    if filtered and len(filtered) <= budget:
        logger.info("Summarized by line filtering: %d -> %d chars", len(text), len(filtered))
        return filtered

    selected = select_sentences(filtered or stripped, scoring, settings.summary_target_chars)
    if selected:
        logger.info("Summarized by sentence scoring: %d -> %d chars", len(text), len(selected))
        return selected[:budget]

    logger.warning("Sentence selection produced nothing, truncating to %d chars", budget)
    return stripped[:budget].rstrip()
