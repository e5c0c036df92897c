#!/usr/bin/env python3
"""
Configuration loading and management for statement-mapper.

Handles loading configuration from config.yaml and merging with CLI arguments.
CLI arguments take precedence over config.yaml values.

The matching, pattern and template sections hold empirical tuning knobs
(auto-accept threshold, score weights, merge weights). Algorithms read them
from the dataclasses below so they can be retuned without code changes.
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .logging_config import get_logger
from .schema import validate_config

# Initialize logger for this module
logger = get_logger(__name__)


@dataclass
class MatchingConfig:
    """Configuration for header matching and auto-mapping behavior."""
    auto_accept_threshold: int = 65  # Minimum confidence to auto-assign a header
    min_suggestion_confidence: int = 40  # Candidates at or below this are dropped
    exact_match_score: int = 100
    substring_match_score: int = 85
    template_bonus: int = 10  # Added to a learned template entry's confidence
    pattern_sample_size: int = 10  # Column values checked by the field validator
    pattern_valid_rate: float = 0.7
    pattern_invalid_rate: float = 0.3
    pattern_bonus_weight: float = 15.0
    pattern_mismatch_penalty: float = 20.0
    exact_match_exempt: bool = True  # Exact synonym hits skip the pattern adjustment
    validation_sample_size: int = 20
    validation_error_rate: float = 0.5
    validation_warning_rate: float = 0.8


@dataclass
class PatternConfig:
    """Configuration for date format and payment frequency detection."""
    sample_size: int = 20
    parse_weight: float = 0.7
    chronology_weight: float = 0.3
    min_format_score: float = 0.5
    ambiguity_confidence: int = 95  # Below this, DD/MM vs MM/DD is re-checked numerically
    max_chronology_gap_days: int = 1825
    min_frequency_samples: int = 3


@dataclass
class TemplateConfig:
    """Configuration for template learning and retrieval."""
    merge_old_weight: float = 0.4
    merge_new_weight: float = 0.6
    rank_success_weight: float = 0.6  # Ordering of a user's templates for a context
    rank_usage_weight: float = 0.4
    score_success_weight: float = 0.5  # Fit of a template to an unseen file
    score_overlap_weight: float = 0.3
    score_usage_weight: float = 0.2
    fallback_min_score: float = 30.0
    provider_confirmation_threshold: int = 80


DEFAULT_MATCHING_CONFIG = MatchingConfig()
DEFAULT_PATTERN_CONFIG = PatternConfig()
DEFAULT_TEMPLATE_CONFIG = TemplateConfig()


def _update_dataclass(target: Any, values: Optional[Dict[str, Any]]) -> None:
    """Copy known keys from a validated section onto a config dataclass."""
    if not values:
        return
    known = {f.name for f in fields(target)}
    for key, value in values.items():
        if key in known:
            setattr(target, key, value)


class Config:
    """Configuration management class for statement-mapper."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration with defaults and load from file if available."""
        # Set default values
        self.store_dir = "data/templates"
        self.default_context = "pensions"
        self.matching = MatchingConfig()
        self.patterns = PatternConfig()
        self.templates = TemplateConfig()

        # Load from config file if it exists
        if config_path is None:
            # Look in config directory first, fallback to working directory
            config_path = Path.cwd() / "config" / "config.yaml"
            if not config_path.exists():
                config_path = Path.cwd() / "config.yaml"

        if config_path.exists():
            self._load_from_file(config_path)

    def _load_from_file(self, config_path: Path) -> None:
        """Load configuration from YAML file."""
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f)

            if config_data:
                validated = validate_config(config_data)
                self.store_dir = validated.store_dir
                self.default_context = validated.default_context

                # Only keys present in the file override defaults
                for section in ("matching", "patterns", "templates"):
                    section_model = getattr(validated, section)
                    if section_model is not None:
                        _update_dataclass(
                            getattr(self, section),
                            section_model.model_dump(exclude_unset=True),
                        )

        except Exception as e:
            logger.warning(f"Could not load config.yaml: {e}")
            logger.info("Using default values")

    def merge_with_cli_args(self, args) -> None:
        """Merge CLI arguments with config values. CLI args take precedence."""
        if getattr(args, "store", None) is not None:
            self.store_dir = args.store
        if getattr(args, "context", None) is None and hasattr(args, "context"):
            args.context = self.default_context
        if getattr(args, "auto_accept", None) is not None:
            self.matching.auto_accept_threshold = args.auto_accept

    def get_store_dir(self) -> Path:
        """Get the full template store directory path."""
        store_dir = Path(self.store_dir)
        if store_dir.is_absolute():
            return store_dir
        return Path.cwd() / store_dir


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file or use defaults."""
    return Config(config_path)
