#!/usr/bin/env python3
"""
Tests for configuration loading and CLI merging.
"""

import argparse

from statement_mapper.config_loader import (
    DEFAULT_MATCHING_CONFIG,
    Config,
    MatchingConfig,
    load_config,
)


def test_defaults_without_file(tmp_path):
    """Test that a missing config file gives built-in defaults."""
    config = load_config(tmp_path / "missing.yaml")
    assert config.store_dir == "data/templates"
    assert config.default_context == "pensions"
    assert config.matching == MatchingConfig()
    assert config.patterns.ambiguity_confidence == 95
    assert config.templates.merge_new_weight == 0.6


def test_partial_file_overrides_only_given_keys(tmp_path):
    """Test that keys absent from the file keep their defaults."""
    path = tmp_path / "config.yaml"
    path.write_text(
        "store_dir: templates\n"
        "default_context: debts\n"
        "matching:\n"
        "  auto_accept_threshold: 75\n"
        "patterns:\n"
        "  sample_size: 40\n"
        "templates:\n"
        "  score_usage_weight: 0.1\n",
        encoding="utf-8",
    )
    config = Config(path)
    assert config.store_dir == "templates"
    assert config.default_context == "debts"
    assert config.matching.auto_accept_threshold == 75
    assert config.matching.substring_match_score == 85
    assert config.patterns.sample_size == 40
    assert config.templates.score_usage_weight == 0.1
    assert config.templates.rank_success_weight == 0.6
    assert config.templates.fallback_min_score == 30.0
    assert config.templates.score_overlap_weight == 0.3


def test_invalid_file_keeps_defaults(tmp_path):
    """Test that an invalid config is reported and ignored."""
    path = tmp_path / "config.yaml"
    path.write_text("matching:\n  auto_accept_threshold: 500\n", encoding="utf-8")
    config = Config(path)
    assert config.matching.auto_accept_threshold == 65


def test_defaults_not_shared(tmp_path):
    """Test that tuning one Config does not leak into the module defaults."""
    config = load_config(tmp_path / "missing.yaml")
    config.matching.auto_accept_threshold = 10
    assert DEFAULT_MATCHING_CONFIG.auto_accept_threshold == 65


def test_merge_with_cli_args(tmp_path):
    """Test that CLI arguments take precedence over config values."""
    config = load_config(tmp_path / "missing.yaml")
    args = argparse.Namespace(store="/tmp/store", context=None, auto_accept=70)
    config.merge_with_cli_args(args)
    assert config.store_dir == "/tmp/store"
    assert args.context == "pensions"
    assert config.matching.auto_accept_threshold == 70


def test_merge_keeps_explicit_context(tmp_path):
    config = load_config(tmp_path / "missing.yaml")
    args = argparse.Namespace(store=None, context="savings", auto_accept=None)
    config.merge_with_cli_args(args)
    assert args.context == "savings"
    assert config.store_dir == "data/templates"


def test_store_dir_resolution(tmp_path):
    config = load_config(tmp_path / "missing.yaml")
    config.store_dir = str(tmp_path / "store")
    assert config.get_store_dir() == tmp_path / "store"
    config.store_dir = "relative"
    assert config.get_store_dir().is_absolute()
