#!/usr/bin/env python3
"""
Header matching for statement-mapper.

Scores one column header against every canonical field of a context:
- Exact synonym match
- Substring match (either direction)
- Fuzzy Levenshtein similarity
- Sample-data validation bonus/penalty

Literal equality is trusted completely; fuzzy matches are the least trusted
and the most exposed to being overridden by data-shape evidence.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config_loader import DEFAULT_MATCHING_CONFIG, MatchingConfig
from .fuzzy import FieldNormalizer, FuzzyMatcher, round_score
from .logging_config import get_logger
from .synonym import SynonymCatalog, Validator

# Initialize logger for this module
logger = get_logger(__name__)

RawRow = Dict[str, Any]


@dataclass
class CandidateMatch:
    """A candidate field for one header."""

    field: str
    confidence: int  # 0-100
    method: str  # "exact_match", "substring_match:<syn>", "fuzzy_match:<syn>", ...

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "confidence": self.confidence, "method": self.method}


def column_values(rows: Sequence[RawRow], header: str, limit: int) -> List[Any]:
    """First `limit` values of a column; missing cells come back as None."""
    return [row.get(header) for row in rows[:limit]]


def valid_rate(values: Sequence[Any], validator: Validator) -> float:
    """Share of values accepted by the validator (0.0 for no values)."""
    if not values:
        return 0.0
    return sum(1 for value in values if validator(value)) / len(values)


class HeaderMatcher:
    """Ranks canonical fields for a single header."""

    def __init__(self, config: Optional[MatchingConfig] = None):
        self.config = config or DEFAULT_MATCHING_CONFIG
        self.normalizer = FieldNormalizer()
        self.fuzzy_matcher = FuzzyMatcher()

    def match_header(
        self, header: str, context: Any, sample_rows: Sequence[RawRow] = ()
    ) -> List[CandidateMatch]:
        """
        Score a header against every field of the context.

        Args:
            header: Column header from the uploaded file
            context: Context name or Context member
            sample_rows: Sample data rows used for pattern validation

        Returns:
            Candidates with confidence above the minimum, best first
        """
        header_norm = self.normalizer.normalize_header(header)
        matches = []

        for field in SynonymCatalog.get_context_fields(context):
            synonyms = SynonymCatalog.get_synonyms(context, field)
            score, method = self._score_synonyms(header_norm, synonyms)

            exempt = method == "exact_match" and self.config.exact_match_exempt
            if sample_rows and score > 0 and not exempt:
                validator = SynonymCatalog.get_validator(context, field)
                if validator is not None:
                    score, method = self._apply_pattern_validation(
                        header, sample_rows, validator, score, method
                    )

            confidence = round_score(score)
            if confidence > self.config.min_suggestion_confidence:
                matches.append(CandidateMatch(field, confidence, method))

        # Stable sort keeps catalog order for equal confidences
        matches.sort(key=lambda m: m.confidence, reverse=True)

        if matches:
            logger.debug(
                f"Header '{header}': best {matches[0].field} "
                f"({matches[0].confidence}, {matches[0].method})"
            )
        return matches

    def _score_synonyms(self, header_norm: str, synonyms: List[str]) -> Tuple[float, str]:
        """Exact > substring > fuzzy score of a normalized header against a synonym list."""
        if header_norm in synonyms:
            return float(self.config.exact_match_score), "exact_match"

        if header_norm:
            for synonym in synonyms:
                if synonym in header_norm or header_norm in synonym:
                    return float(self.config.substring_match_score), f"substring_match:{synonym}"

        best_score = 0.0
        method = "none"
        for synonym in synonyms:
            score = self.fuzzy_matcher.similarity(header_norm, synonym)
            if score > best_score:
                best_score = float(score)
                method = f"fuzzy_match:{synonym}"
        return best_score, method

    def _apply_pattern_validation(
        self,
        header: str,
        sample_rows: Sequence[RawRow],
        validator: Validator,
        score: float,
        method: str,
    ) -> Tuple[float, str]:
        """Raise or lower a score depending on how well the column's data fits the field."""
        values = column_values(sample_rows, header, self.config.pattern_sample_size)
        rate = valid_rate(values, validator)

        if rate >= self.config.pattern_valid_rate:
            return (
                min(100.0, score + rate * self.config.pattern_bonus_weight),
                method + "+pattern_validation",
            )
        if rate < self.config.pattern_invalid_rate:
            return (
                max(0.0, score - self.config.pattern_mismatch_penalty),
                method + "-pattern_mismatch",
            )
        return score, method


def match_header(
    header: str,
    context: Any,
    sample_rows: Sequence[RawRow] = (),
    config: Optional[MatchingConfig] = None,
) -> List[CandidateMatch]:
    """Rank the fields of `context` for `header` (see HeaderMatcher.match_header)."""
    return HeaderMatcher(config).match_header(header, context, sample_rows)
