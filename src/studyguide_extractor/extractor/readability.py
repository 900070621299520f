"""Readable-text classifier for raw-scan fragments.

Decides whether a decoded fragment looks like human prose rather than
mojibake or format syntax. Heuristic only: it has no false-negative
guarantee and is tuned for English text.
"""

from __future__ import annotations

import re

MIN_READABLE_CHARS = 3

# Characters that show up when UTF-8 or font-encoded bytes are read as Latin-1
_MOJIBAKE_PATTERN = re.compile(r"[�ïÓñ©´ØÈÉÅöçÏßÃâ€™œ]")

# Anything outside printable ASCII letters/digits, whitespace, and common punctuation
_SPECIAL_CHAR_PATTERN = re.compile(r"[^A-Za-z0-9\s.,!?;:'\"()\-]")

_READABLE_WORD_PATTERN = re.compile(r"^[A-Za-z0-9.,!?;:'\"()\-]+$")


def special_char_ratio(text: str) -> float:
    if not text:
        return 1.0
    return len(_SPECIAL_CHAR_PATTERN.findall(text)) / len(text)


def readable_word_ratio(text: str) -> float:
    words = text.split()
    if not words:
        return 0.0
    readable = sum(1 for word in words if _READABLE_WORD_PATTERN.match(word))
    return readable / len(words)


def is_readable(
    text: str,
    max_special_ratio: float = 0.3,
    min_word_ratio: float = 0.7,
) -> bool:
    """Return True if *text* looks like human-readable prose.

    Rejects, in order: fragments shorter than 3 characters after trimming,
    fragments containing known mojibake characters, fragments where more
    than *max_special_ratio* of characters fall outside ASCII letters,
    digits, whitespace and punctuation, and fragments where fewer than
    *min_word_ratio* of whitespace-delimited tokens are purely
    alphanumeric/punctuation.
    """
    stripped = text.strip() if text else ""
    if len(stripped) < MIN_READABLE_CHARS:
        return False

    if _MOJIBAKE_PATTERN.search(stripped):
        return False

    if special_char_ratio(stripped) > max_special_ratio:
        return False

    return readable_word_ratio(stripped) >= min_word_ratio
