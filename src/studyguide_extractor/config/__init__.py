"""Configuration package -- typed, validated settings from YAML + .env."""

from .settings import (
    ExtractionSettings,
    KeywordRule,
    PipelineSettings,
    ScoringSettings,
)

__all__ = [
    "ExtractionSettings",
    "KeywordRule",
    "PipelineSettings",
    "ScoringSettings",
    "load_all_settings",
]


def load_all_settings() -> tuple[ExtractionSettings, ScoringSettings, PipelineSettings]:
    """Load and return all configuration objects.

    Returns a tuple of (ExtractionSettings, ScoringSettings, PipelineSettings),
    each populated from its own YAML file with environment variable overrides.
    """
    return ExtractionSettings(), ScoringSettings(), PipelineSettings()
