"""Pydantic settings models for study-guide document extraction.

Three settings classes load from separate YAML config files with environment
variable override support. Source priority (highest to lowest):

    1. Explicit keyword arguments (tests, callers overriding a single run)
    2. Environment variables (with prefix, e.g., EXTRACT_MIN_TEXT_CHARS)
    3. .env file
    4. YAML config file (e.g., config/extraction.yaml)
    5. Default values defined here

Config paths are resolved relative to PROJECT_ROOT so the application works
regardless of the current working directory.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

# Resolve project root: settings.py -> config/ -> studyguide_extractor/ -> src/ -> repo root
PROJECT_ROOT = Path(__file__).resolve().parents[3]

_CONFIG_DIR = PROJECT_ROOT / "config"
_ENV_FILE = PROJECT_ROOT / ".env"


class _YamlSettings(BaseSettings):
    """Shared source ordering: init > env > .env > YAML > defaults."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


class ExtractionSettings(_YamlSettings):
    """Extraction behaviour: size limits, acceptance thresholds, rasterizer bounds."""

    # Input guards
    max_file_size_bytes: int = 20 * 1024 * 1024  # 20MB

    # Acceptance
    min_text_chars: int = 50
    max_structural_markers: int = 10
    garble_ratio_threshold: float = 0.05

    # Readable-text classifier (strict, then relaxed for the aggressive scan)
    max_special_char_ratio: float = 0.3
    min_readable_word_ratio: float = 0.7
    relaxed_special_char_ratio: float = 0.5
    relaxed_readable_word_ratio: float = 0.5
    alnum_run_min_chars: int = 10

    # Content budget
    content_budget_chars: int = 15_000
    summary_target_chars: int = 12_000

    # Library extractors
    table_strategy: str = "lines_strict"  # pymupdf4llm table detection

    # Routing
    pdf_mode: Literal["text", "images"] = "text"
    rasterize_on_failure: bool = False

    # Execution
    timeout_seconds: float = 120.0
    max_workers: int = 4

    # Rasterizer
    max_image_bytes: int = 4_718_592  # 4.5MB, under the 5MB vision upload limit
    target_resolution: int = 1500
    max_render_scale: float = 2.0
    start_quality: int = 90
    min_quality: int = 20
    quality_step: int = 10
    fallback_quality: int = 85
    max_pages: int | None = 10

    model_config = SettingsConfigDict(
        yaml_file=str(_CONFIG_DIR / "extraction.yaml"),
        env_file=str(_ENV_FILE),
        env_prefix="EXTRACT_",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _target_within_budget(self) -> "ExtractionSettings":
        if self.summary_target_chars > self.content_budget_chars:
            msg = (
                f"summary_target_chars ({self.summary_target_chars}) must not "
                f"exceed content_budget_chars ({self.content_budget_chars})"
            )
            raise ValueError(msg)
        return self


class KeywordRule(BaseModel):
    """One row of the sentence scoring table.

    A sentence containing any of ``terms`` (case-insensitive substring match)
    gains ``weight`` once, regardless of how many of the terms it contains.
    """

    terms: list[str]
    weight: int


def _default_rules() -> list[KeywordRule]:
    rows = [
        (["definition", "define"], 10),
        (["formula", "equation"], 10),
        (["example", "for instance"], 8),
        (["calculate", "solve"], 8),
        (["key term", "vocabulary"], 8),
        (["density", "pressure"], 15),
        (["volume", "mass"], 8),
        (["force", "area"], 8),
        (["experiment", "observation"], 6),
        (["properties", "characteristics"], 5),
        (["types", "kinds"], 5),
        (["measurement", "units"], 5),
        (["page", "slide"], -3),
        (["click", "press"], -5),
        (["menu", "navigation"], -5),
    ]
    return [KeywordRule(terms=terms, weight=weight) for terms, weight in rows]


class ScoringSettings(_YamlSettings):
    """Summarizer data: sentence weights, content allowlist, noise-line denylist.

    The keyword lists are English-only and lean towards science and maths
    vocabulary. They are kept here, not in the summarizer, so they can be
    tuned per deployment through ``config/scoring.yaml``.
    """

    rules: list[KeywordRule] = Field(default_factory=_default_rules)
    short_sentence_chars: int = 20
    short_sentence_penalty: int = -3
    long_sentence_chars: int = 200
    long_sentence_penalty: int = -2
    min_sentence_chars: int = 15
    min_line_chars: int = 10

    content_keywords: list[str] = Field(
        default_factory=lambda: [
            "definition", "concept", "formula", "equation", "theory", "principle",
            "density", "pressure", "volume", "mass", "force", "area", "height",
            "calculate", "solve", "example", "problem", "solution", "answer",
            "explain", "describe", "analyze", "compare", "contrast", "identify",
            "properties", "characteristics", "features", "types", "kinds",
            "measurement", "units", "conversion", "factor", "ratio", "proportion",
            "graph", "chart", "diagram", "figure", "illustration",
            "experiment", "observation", "hypothesis", "conclusion", "result",
        ]
    )
    noise_line_patterns: list[str] = Field(
        default_factory=lambda: [
            r"^[A-Z\s]+$",
            r"(?i)^(Home|Menu|Back|Next|Previous|Close|Open|Save|Print|Download)\b",
            r"(?i)^(Page|Slide|Chapter|Section)\s*\d+",
            r"(?i)^(Copyright|©|All rights reserved)",
            r"(?i)^(Created|Modified|Updated|Last updated)\b",
            r"(?i)^(File|Edit|View|Insert|Format|Tools|Help)\b",
            r"(?i)^(Click|Press|Select|Choose|Enter|Type)\b",
            r"(?i)^(Navigation|Toolbar|Sidebar|Footer|Header)\b",
            r"^[^\w\s]*$",
            r"^\d+$",
        ]
    )

    model_config = SettingsConfigDict(
        yaml_file=str(_CONFIG_DIR / "scoring.yaml"),
        env_prefix="SCORING_",
        extra="ignore",
    )


class PipelineSettings(_YamlSettings):
    """Pipeline operations: directories, logging, document fetching."""

    input_dir: str = "data/inbox"
    output_dir: str = "data/extracted"
    log_dir: str = "logs"
    log_max_bytes: int = 10_485_760  # 10MB
    log_backup_count: int = 5

    # URL fetching
    user_agent: str = "StudyGuide-Extractor/1.0"
    download_timeout_seconds: float = 60.0
    download_chunk_size: int = 65_536

    model_config = SettingsConfigDict(
        yaml_file=str(_CONFIG_DIR / "pipeline.yaml"),
        env_prefix="PIPELINE_",
        extra="ignore",
    )
