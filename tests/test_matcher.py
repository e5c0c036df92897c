#!/usr/bin/env python3
"""
Tests for single-header matching.
"""

from statement_mapper.config_loader import MatchingConfig
from statement_mapper.matcher import CandidateMatch, HeaderMatcher, match_header


def rows_for(header, values):
    return [{header: value} for value in values]


class TestMatchStrategies:
    """Tests for exact, substring and fuzzy scoring."""

    def test_exact_match(self):
        """A header equal to a synonym scores 100."""
        matches = match_header("Payment Date", "pensions")
        assert matches[0] == CandidateMatch("date", 100, "exact_match")

    def test_exact_match_ignores_case_and_spacing(self):
        matches = match_header("  PENSION   provider ", "pensions")
        assert matches[0] == CandidateMatch("provider", 100, "exact_match")

    def test_substring_match(self):
        """The first synonym contained in the header gives 85."""
        matches = match_header("Monthly Contribution Amount", "pensions")
        assert matches[0] == CandidateMatch("amount", 85, "substring_match:amount")

    def test_fuzzy_match(self):
        """A misspelt header falls back to Levenshtein similarity."""
        matches = match_header("Ammount", "pensions")
        assert matches[0] == CandidateMatch("amount", 86, "fuzzy_match:amount")

    def test_empty_header(self):
        """An empty header matches nothing."""
        assert match_header("", "pensions") == []

    def test_unrelated_header(self):
        assert match_header("zzqx", "savings") == []


class TestPatternValidation:
    """Tests for the sample-data bonus and penalty."""

    def test_valid_data_adds_bonus(self):
        """Matching data adds rate * 15, capped at 100."""
        matches = match_header("Ammount", "pensions", rows_for("Ammount", ["£250.00"] * 10))
        assert matches[0] == CandidateMatch(
            "amount", 100, "fuzzy_match:amount+pattern_validation"
        )

    def test_invalid_data_subtracts_penalty(self):
        """Data that does not fit the field costs 20 points."""
        matches = match_header("Ammount", "pensions", rows_for("Ammount", ["hello"] * 10))
        amount = next(m for m in matches if m.field == "amount")
        assert amount.confidence == 66
        assert amount.method == "fuzzy_match:amount-pattern_mismatch"

    def test_mixed_data_leaves_score(self):
        """A valid rate between 0.3 and 0.7 changes nothing."""
        values = ["£250.00"] * 5 + ["hello"] * 5
        matches = match_header("Ammount", "pensions", rows_for("Ammount", values))
        assert matches[0] == CandidateMatch("amount", 86, "fuzzy_match:amount")

    def test_exact_match_is_exempt(self):
        """Exact matches keep 100 whatever the data looks like."""
        matches = match_header("Amount", "pensions", rows_for("Amount", ["hello"] * 10))
        assert matches[0] == CandidateMatch("amount", 100, "exact_match")

    def test_exact_match_adjusted_when_exemption_disabled(self):
        config = MatchingConfig(exact_match_exempt=False)
        matches = HeaderMatcher(config).match_header(
            "Amount", "pensions", rows_for("Amount", ["hello"] * 10)
        )
        assert matches[0] == CandidateMatch("amount", 80, "exact_match-pattern_mismatch")

    def test_only_first_ten_values_checked(self):
        """Values past the pattern sample size are ignored."""
        values = ["£250.00"] * 10 + ["hello"] * 30
        matches = match_header("Ammount", "pensions", rows_for("Ammount", values))
        assert matches[0].method.endswith("+pattern_validation")

    def test_text_fields_are_not_validated(self):
        """Fields without a validator keep their raw score."""
        matches = match_header("Scheme Nme", "pensions", rows_for("Scheme Nme", ["12"] * 10))
        provider = next(m for m in matches if m.field == "provider")
        assert "pattern" not in provider.method


class TestResultShape:
    """Tests for filtering and ordering of candidates."""

    def test_sorted_descending(self):
        matches = match_header("Contribution", "pensions")
        confidences = [m.confidence for m in matches]
        assert confidences == sorted(confidences, reverse=True)

    def test_only_confidences_above_minimum(self):
        for header in ["Contribution", "Ref", "Bal", "Paid In"]:
            for match in match_header(header, "savings"):
                assert match.confidence > 40

    def test_custom_minimum(self):
        config = MatchingConfig(min_suggestion_confidence=90)
        matches = HeaderMatcher(config).match_header("Ammount", "pensions")
        assert matches == []

    def test_to_dict(self):
        match = CandidateMatch("date", 100, "exact_match")
        assert match.to_dict() == {"field": "date", "confidence": 100, "method": "exact_match"}
