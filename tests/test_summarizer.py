"""Content scorer and summarizer."""

from __future__ import annotations

import re

from studyguide_extractor.config.settings import ExtractionSettings, KeywordRule, ScoringSettings
from studyguide_extractor.extractor.summarizer import (
    filter_lines,
    rank_sentences,
    score_sentence,
    strip_artifacts,
    summarize,
)


def _long_course_text(target_chars: int = 50_000) -> str:
    block = "\n".join(
        [
            "Page 3",
            "Chapter 2 Fluids",
            "Density is defined as mass per unit volume of a substance.",
            "For example, a block of wood floats because its density is lower than water.",
            "Pressure is the force applied over an area and is measured in pascals.",
            "Email the teacher at ms.rivera@school.example.org with questions about the lab.",
            "Updated 09/14/2023 at 10:45, see https://school.example.org/physics/unit2 for slides.",
            "Call 555-123-4567 to reach the front office.",
            "Click Next to continue to the quiz menu.",
            "The students recorded each observation carefully during the buoyancy experiment.",
            "42",
        ]
    )
    copies = target_chars // len(block) + 1
    return "\n".join(f"{block}\nSection {i} review notes on fluids and buoyancy." for i in range(copies))


def test_under_budget_returns_input_unchanged(extraction_settings, scoring_settings):
    text = "Short notes.\nPage 4\nteacher@example.com"
    assert summarize(text, extraction_settings, scoring_settings) == text


def test_summarize_is_idempotent(extraction_settings, scoring_settings):
    text = _long_course_text()
    once = summarize(text, extraction_settings, scoring_settings)
    assert summarize(once, extraction_settings, scoring_settings) == once


def test_large_text_fits_budget_without_artifacts(extraction_settings, scoring_settings):
    text = _long_course_text(50_000)
    assert len(text) >= 50_000

    summary = summarize(text, extraction_settings, scoring_settings)

    assert 0 < len(summary) <= extraction_settings.content_budget_chars
    assert "@" not in summary
    assert not re.search(r"(?i)\bpage\s+\d+", summary)
    assert "https://" not in summary
    assert "555-123-4567" not in summary
    assert "density" in summary.lower()


def test_sentence_selection_prefers_high_scores(scoring_settings):
    settings = ExtractionSettings(content_budget_chars=300, summary_target_chars=200)
    filler = "This line is about something else entirely and goes on. " * 20
    text = filler + "Density and pressure are defined by a formula. " + filler
    summary = summarize(text, settings, scoring_settings)
    assert len(summary) <= 300
    assert summary.startswith("Density and pressure are defined by a formula.")


def test_strip_artifacts():
    text = "See Page 12 of 40\nMeet at 3:30 PM on 1/2/2024\nmail a.b@c.io or www.example.com\n7\nKeep this"
    stripped = strip_artifacts(text)
    assert "12" not in stripped
    assert "3:30" not in stripped
    assert "1/2/2024" not in stripped
    assert "a.b@c.io" not in stripped
    assert "www.example.com" not in stripped
    assert stripped.endswith("Keep this")
    assert "\n7\n" not in stripped


def test_filter_lines_drops_short_and_noise_lines(scoring_settings):
    text = "\n".join(
        [
            "tiny",
            "HEADER IN CAPS ONLY",
            "Click here to open the menu",
            "Click to see the formula for density",
            "Cells divide through mitosis and meiosis",
            "==========",
        ]
    )
    kept = filter_lines(text, scoring_settings).splitlines()
    assert kept == [
        "Click to see the formula for density",
        "Cells divide through mitosis and meiosis",
    ]


def test_score_sentence_weights(scoring_settings):
    assert score_sentence("The density formula is on the board today", scoring_settings) == 25
    # "click" -5, "menu" -5, short sentence -3
    assert score_sentence("Click the menu", scoring_settings) == -13
    long_sentence = "word " * 50
    assert score_sentence(long_sentence, scoring_settings) == -2


def test_rule_matches_once_per_sentence(scoring_settings):
    assert score_sentence("A definition helps define the formula terms", scoring_settings) == 20


def test_rank_is_stable_for_ties():
    scoring = ScoringSettings(rules=[KeywordRule(terms=["cell"], weight=5)])
    text = "Alpha sentence without keywords here. The cell membrane is thin. Beta sentence without keywords here."
    ranked = rank_sentences(text, scoring)
    assert [s.text for s in ranked] == [
        "The cell membrane is thin",
        "Alpha sentence without keywords here",
        "Beta sentence without keywords here",
    ]
