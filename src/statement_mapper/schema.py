#!/usr/bin/env python3
"""
Schema validation for configuration and persisted template files.

This module provides Pydantic models for validating:
- config.yaml: Main configuration file with matching/pattern/template tuning
- <template_id>.yaml: Learned provider templates written by the template store
"""

import re
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator

CONTEXT_NAMES = ("pensions", "savings", "debts", "investments")


class ValidationError(Exception):
    """Custom validation error for clearer error messages."""

    pass


def utc_now() -> datetime:
    """Timezone-aware current time used for template timestamps."""
    return datetime.now(timezone.utc)


def make_template_id(provider: str, context: str) -> str:
    """Build the storage id of a template, e.g. ("Scottish Widows", "pensions") -> "scottish_widows_pensions"."""
    provider_key = re.sub(r"\s+", "_", provider.strip().lower())
    return f"{provider_key}_{context}"


# Config.yaml schemas
class MatchingConfigSchema(BaseModel):
    """Tuning knobs for header matching and auto-mapping."""

    auto_accept_threshold: int = Field(default=65, ge=0, le=100)
    min_suggestion_confidence: int = Field(default=40, ge=0, le=100)
    exact_match_score: int = Field(default=100, ge=0, le=100)
    substring_match_score: int = Field(default=85, ge=0, le=100)
    template_bonus: int = Field(default=10, ge=0, le=100)
    pattern_sample_size: int = Field(default=10, ge=1)
    pattern_valid_rate: float = Field(default=0.7, ge=0.0, le=1.0)
    pattern_invalid_rate: float = Field(default=0.3, ge=0.0, le=1.0)
    pattern_bonus_weight: float = Field(default=15.0, ge=0.0)
    pattern_mismatch_penalty: float = Field(default=20.0, ge=0.0)
    exact_match_exempt: bool = True
    validation_sample_size: int = Field(default=20, ge=1)
    validation_error_rate: float = Field(default=0.5, ge=0.0, le=1.0)
    validation_warning_rate: float = Field(default=0.8, ge=0.0, le=1.0)


class PatternConfigSchema(BaseModel):
    """Tuning knobs for date format and frequency detection."""

    sample_size: int = Field(default=20, ge=1)
    parse_weight: float = Field(default=0.7, ge=0.0, le=1.0)
    chronology_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    min_format_score: float = Field(default=0.5, ge=0.0, le=1.0)
    ambiguity_confidence: int = Field(default=95, ge=0, le=100)
    max_chronology_gap_days: int = Field(default=1825, ge=1)
    min_frequency_samples: int = Field(default=3, ge=2)


class TemplateConfigSchema(BaseModel):
    """Tuning knobs for template learning and retrieval."""

    merge_old_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    merge_new_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    rank_success_weight: float = Field(default=0.6, ge=0.0)
    rank_usage_weight: float = Field(default=0.4, ge=0.0)
    score_success_weight: float = Field(default=0.5, ge=0.0, le=1.0)
    score_overlap_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    score_usage_weight: float = Field(default=0.2, ge=0.0, le=1.0)
    fallback_min_score: float = Field(default=30.0, ge=0.0)
    provider_confirmation_threshold: int = Field(default=80, ge=0, le=100)


class ConfigSchema(BaseModel):
    """Schema for config.yaml."""

    store_dir: str = "data/templates"
    default_context: str = "pensions"
    matching: MatchingConfigSchema | None = None
    patterns: PatternConfigSchema | None = None
    templates: TemplateConfigSchema | None = None

    @field_validator("default_context")
    @classmethod
    def validate_default_context(cls, v: str) -> str:
        """Validate the default context is a known one."""
        if v not in CONTEXT_NAMES:
            raise ValueError(f"default_context must be one of {', '.join(CONTEXT_NAMES)}")
        return v


# Template schemas
class TemplateFieldMapping(BaseModel):
    """One learned header -> field assignment inside a template."""

    original_header: str
    mapped_field: str
    confidence: int = Field(default=0, ge=0, le=100)
    success_count: int = Field(default=1, ge=0)
    total_attempts: int = Field(default=1, ge=1)


class Template(BaseModel):
    """A provider-specific, user-confirmed field mapping."""

    user_id: str
    provider_name: str
    context: str
    field_mappings: list[TemplateFieldMapping] = Field(default_factory=list)
    date_format: str | None = None
    frequency: str | None = None
    example_headers: list[str] = Field(default_factory=list)
    usage_count: int = Field(default=1, ge=0)
    success_rate: int = Field(default=100, ge=0, le=100)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    last_used: datetime = Field(default_factory=utc_now)

    @field_validator("context")
    @classmethod
    def validate_context(cls, v: str) -> str:
        """Validate the template belongs to a known context."""
        if v not in CONTEXT_NAMES:
            raise ValueError(f"context must be one of {', '.join(CONTEXT_NAMES)}")
        return v

    @property
    def template_id(self) -> str:
        return make_template_id(self.provider_name, self.context)

    def find_field_mapping(self, field: str, header: str) -> TemplateFieldMapping | None:
        """Return the entry recording `header` -> `field`, if one exists."""
        for entry in self.field_mappings:
            if entry.mapped_field == field and entry.original_header == header:
                return entry
        return None


def validate_config(data: dict[str, Any]) -> ConfigSchema:
    """
    Validate config.yaml data.

    Args:
        data: Dictionary containing config data

    Returns:
        Validated ConfigSchema instance

    Raises:
        ValidationError: If validation fails
    """
    try:
        return ConfigSchema(**data)
    except Exception as e:
        raise ValidationError(f"Config validation failed: {e}") from e


def validate_template(data: dict[str, Any]) -> Template:
    """
    Validate a stored template document.

    Args:
        data: Dictionary loaded from a template YAML file

    Returns:
        Validated Template instance

    Raises:
        ValidationError: If validation fails
    """
    try:
        return Template(**data)
    except Exception as e:
        raise ValidationError(f"Template validation failed: {e}") from e
