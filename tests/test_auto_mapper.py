#!/usr/bin/env python3
"""
Tests for whole-file auto-mapping, mapping validation and reviewer overrides.
"""

import pytest

from statement_mapper.auto_mapper import (
    TEMPLATE_METHOD,
    AutoMapper,
    apply_overrides,
    auto_map_headers,
    generate_suggestions,
    validate_mapping,
)
from statement_mapper.errors import MappingError
from statement_mapper.matcher import CandidateMatch, HeaderMatcher
from statement_mapper.schema import Template, TemplateFieldMapping

PENSION_HEADERS = ["Payment Date", "Pension Provider", "Contribution Amount"]


def pension_rows(amounts=None):
    amounts = amounts or ["£250.00"] * 12
    return [
        {
            "Payment Date": f"01/{month:02d}/2024",
            "Pension Provider": "Aviva",
            "Contribution Amount": amount,
        }
        for month, amount in zip(range(1, 13), amounts)
    ]


def make_template(entries):
    return Template(
        user_id="u1",
        provider_name="Aviva",
        context="pensions",
        field_mappings=[TemplateFieldMapping(**entry) for entry in entries],
    )


class TestAutoMapHeaders:
    """Tests for greedy header assignment."""

    def test_pension_statement(self):
        """Exact synonyms map every required pension field."""
        result = auto_map_headers(PENSION_HEADERS, "pensions", pension_rows())
        assert result.mapping == {
            "date": "Payment Date",
            "provider": "Pension Provider",
            "amount": "Contribution Amount",
        }
        assert result.confidence_scores == {"date": 100, "provider": 100, "amount": 100}
        assert result.overall_confidence == 100
        assert result.is_complete
        assert result.missing_required == []

    def test_missing_required(self):
        result = auto_map_headers(["Payment Date"], "pensions")
        assert result.missing_required == ["provider", "amount"]
        assert not result.is_complete

    def test_empty_headers(self):
        """No headers gives an empty, incomplete result."""
        result = auto_map_headers([], "pensions")
        assert result.mapping == {}
        assert result.overall_confidence == 0
        assert not result.is_complete

    def test_first_header_wins(self):
        """A field claimed by an earlier header is not reassigned."""
        result = auto_map_headers(["Amount", "Payment Amount"], "pensions")
        assert result.mapping == {"amount": "Amount"}
        assert "Payment Amount" in result.suggestions
        assert result.suggestions["Payment Amount"][0].field == "amount"
        assert "Payment Amount" not in result.unmapped_headers

    def test_unmapped_headers(self):
        """Headers without any candidate are reported."""
        result = auto_map_headers(["Payment Date", "zzqx"], "pensions")
        assert result.unmapped_headers == ["zzqx"]
        assert "zzqx" not in result.suggestions

    def test_overall_confidence_rounds_half_up(self):
        """Mean of 100 and 85 is reported as 93."""
        result = auto_map_headers(["Payment Date", "Monthly Contribution Amount"], "pensions")
        assert result.confidence_scores == {"date": 100, "amount": 85}
        assert result.overall_confidence == 93

    def test_one_to_one(self):
        """No header is used for two fields."""
        headers = ["Date", "Description", "Money Out", "Money In", "Balance", "Amount"]
        result = auto_map_headers(headers, "savings")
        assert len(set(result.mapping.values())) == len(result.mapping)
        assert result.mapping["debit"] == "Money Out"
        assert result.mapping["credit"] == "Money In"

    @pytest.mark.parametrize("confidence,assigned", [(65, True), (64, False)])
    def test_auto_accept_threshold(self, monkeypatch, confidence, assigned):
        """Candidates at 65 or above are assigned, 64 is only suggested."""
        monkeypatch.setattr(
            HeaderMatcher,
            "match_header",
            lambda self, header, context, sample_rows=(): [
                CandidateMatch("date", confidence, "fuzzy_match:date")
            ],
        )
        result = auto_map_headers(["Dte"], "savings")
        assert ("date" in result.mapping) is assigned
        assert result.suggestions["Dte"][0].confidence == confidence


class TestTemplatePreAssignment:
    """Tests for priming auto-mapping with a learned template."""

    def test_template_header_assigned_with_bonus(self):
        """Template headers are matched case-insensitively and get +10."""
        template = make_template([
            {"original_header": "Col A", "mapped_field": "amount", "confidence": 80},
        ])
        result = auto_map_headers(["col a", "Payment Date"], "pensions", template=template)
        assert result.mapping["amount"] == "col a"
        assert result.confidence_scores["amount"] == 90
        assert result.suggestions["col a"] == [CandidateMatch("amount", 90, TEMPLATE_METHOD)]
        assert result.mapping["date"] == "Payment Date"

    def test_template_confidence_capped(self):
        template = make_template([
            {"original_header": "Col A", "mapped_field": "amount", "confidence": 95},
        ])
        result = auto_map_headers(["Col A"], "pensions", template=template)
        assert result.confidence_scores["amount"] == 100

    def test_template_header_not_in_file(self):
        """Entries for headers the file does not have are ignored."""
        template = make_template([
            {"original_header": "Old Header", "mapped_field": "amount", "confidence": 90},
        ])
        result = auto_map_headers(["Contribution Amount"], "pensions", template=template)
        assert result.mapping == {"amount": "Contribution Amount"}
        assert result.confidence_scores["amount"] == 100

    def test_rejected_entries_skipped(self):
        """Entries that were only ever rejected do not pre-assign."""
        template = make_template([
            {
                "original_header": "Pension Provider",
                "mapped_field": "amount",
                "confidence": 0,
                "success_count": 0,
                "total_attempts": 1,
            },
        ])
        result = auto_map_headers(PENSION_HEADERS, "pensions", template=template)
        assert result.mapping["provider"] == "Pension Provider"
        assert result.mapping["amount"] == "Contribution Amount"

    def test_field_taken_once(self):
        """Two entries for one field: the first present header wins."""
        template = make_template([
            {"original_header": "Gross", "mapped_field": "amount", "confidence": 70},
            {"original_header": "Contribution Amount", "mapped_field": "amount", "confidence": 90},
        ])
        result = auto_map_headers(["Contribution Amount", "Gross"], "pensions", template=template)
        assert result.mapping["amount"] == "Gross"
        assert result.confidence_scores["amount"] == 80


class TestValidateMapping:
    """Tests for data validation of a mapping."""

    mapping = {
        "date": "Payment Date",
        "provider": "Pension Provider",
        "amount": "Contribution Amount",
    }

    def test_valid_mapping(self):
        report = validate_mapping(self.mapping, pension_rows(), "pensions")
        assert report.is_valid
        assert report.score == 100
        assert report.per_field_validation["date"] == {
            "valid_count": 12, "total_count": 12, "valid_rate": 100,
        }
        assert "provider" not in report.per_field_validation

    def test_warning_between_fifty_and_eighty(self):
        """60% valid values give a warning and cost 10 points."""
        amounts = ["£250.00"] * 6 + ["n/a"] * 4 + ["£250.00"] * 2
        report = AutoMapper().validate_mapping(self.mapping, pension_rows(amounts)[:10], "pensions")
        assert report.is_valid
        assert report.score == 90
        assert report.warnings[0]["field"] == "amount"
        assert report.per_field_validation["amount"]["valid_rate"] == 60

    def test_error_below_fifty(self):
        report = validate_mapping(self.mapping, pension_rows(["n/a"] * 12), "pensions")
        assert not report.is_valid
        assert report.score == 35
        assert report.errors[0]["severity"] == "error"

    def test_missing_required_is_error(self):
        mapping = {"date": "Payment Date", "amount": "Contribution Amount"}
        report = validate_mapping(mapping, pension_rows(), "pensions")
        assert not report.is_valid
        assert any(e["field"] == "provider" for e in report.errors)

    def test_no_rows(self):
        """Fields without sampled rows are skipped."""
        report = validate_mapping(self.mapping, [], "pensions")
        assert report.is_valid
        assert report.per_field_validation == {}


class TestSuggestionsAndOverrides:
    """Tests for review helpers."""

    def test_generate_suggestions(self):
        suggestions = generate_suggestions(["Ammount"], ["amount", "date"], "pensions")
        assert suggestions == [
            {"field": "amount", "suggestions": [{"header": "Ammount", "confidence": 86}]}
        ]

    def test_override_moves_header(self):
        """Reassigning a header releases its previous field."""
        mapping = {"date": "A", "amount": "B"}
        updated = apply_overrides(mapping, {"provider": "B"}, ["A", "B", "C"])
        assert updated == {"date": "A", "provider": "B"}
        assert mapping == {"date": "A", "amount": "B"}

    def test_override_clears_field(self):
        updated = apply_overrides({"date": "A", "amount": "B"}, {"amount": None}, ["A", "B"])
        assert updated == {"date": "A"}

    def test_override_unknown_header(self):
        with pytest.raises(MappingError, match="not in the file"):
            apply_overrides({"date": "A"}, {"amount": "Z"}, ["A", "B"])
