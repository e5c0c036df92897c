"""Tests for schema validation functionality."""

import pytest

from statement_mapper.schema import (
    Template,
    ValidationError,
    make_template_id,
    validate_config,
    validate_template,
)


class TestConfigValidation:
    """Tests for config.yaml validation."""

    def test_valid_minimal_config(self):
        """Test that an empty config takes every default."""
        result = validate_config({})
        assert result.store_dir == "data/templates"
        assert result.default_context == "pensions"
        assert result.matching is None

    def test_valid_full_config(self):
        """Test that a full valid config passes validation."""
        config_data = {
            "store_dir": "/var/lib/statement-mapper",
            "default_context": "savings",
            "matching": {"auto_accept_threshold": 70, "template_bonus": 5},
            "patterns": {"sample_size": 30, "min_format_score": 0.6},
            "templates": {"fallback_min_score": 40},
        }
        result = validate_config(config_data)
        assert result.default_context == "savings"
        assert result.matching.auto_accept_threshold == 70
        assert result.patterns.sample_size == 30
        assert result.templates.fallback_min_score == 40

    def test_invalid_default_context(self):
        """Test that an unknown context fails."""
        with pytest.raises(ValidationError, match="default_context"):
            validate_config({"default_context": "crypto"})

    def test_threshold_out_of_range(self):
        """Test that confidence thresholds must stay within 0-100."""
        with pytest.raises(ValidationError):
            validate_config({"matching": {"auto_accept_threshold": 150}})

    def test_rate_out_of_range(self):
        with pytest.raises(ValidationError):
            validate_config({"matching": {"pattern_valid_rate": 1.5}})

    def test_invalid_type(self):
        """Test that wrong types fail validation."""
        with pytest.raises(ValidationError):
            validate_config({"patterns": {"sample_size": "many"}})


class TestTemplateValidation:
    """Tests for stored template validation."""

    def test_valid_template(self):
        """Test that a stored template document loads."""
        data = {
            "user_id": "u1",
            "provider_name": "Aviva",
            "context": "pensions",
            "field_mappings": [
                {
                    "original_header": "Payment Date",
                    "mapped_field": "date",
                    "confidence": 100,
                    "success_count": 3,
                    "total_attempts": 3,
                }
            ],
            "date_format": "DD/MM/YYYY",
            "usage_count": 3,
            "success_rate": 100,
            "created_at": "2024-05-01T10:00:00+00:00",
        }
        template = validate_template(data)
        assert template.template_id == "aviva_pensions"
        assert template.field_mappings[0].mapped_field == "date"
        assert template.created_at.year == 2024

    def test_unknown_context(self):
        with pytest.raises(ValidationError, match="context"):
            validate_template({"user_id": "u1", "provider_name": "Aviva", "context": "crypto"})

    def test_confidence_range(self):
        data = {
            "user_id": "u1",
            "provider_name": "Aviva",
            "context": "pensions",
            "field_mappings": [
                {"original_header": "A", "mapped_field": "date", "confidence": 101}
            ],
        }
        with pytest.raises(ValidationError):
            validate_template(data)

    def test_missing_required_keys(self):
        with pytest.raises(ValidationError):
            validate_template({"provider_name": "Aviva"})

    def test_find_field_mapping(self):
        template = Template(user_id="u1", provider_name="Aviva", context="pensions")
        assert template.find_field_mapping("date", "Date") is None


@pytest.mark.parametrize(
    "provider,context,expected",
    [
        ("Aviva", "pensions", "aviva_pensions"),
        ("Scottish Widows", "pensions", "scottish_widows_pensions"),
        (" Legal & General ", "investments", "legal_&_general_investments"),
    ],
)
def test_make_template_id(provider, context, expected):
    assert make_template_id(provider, context) == expected
