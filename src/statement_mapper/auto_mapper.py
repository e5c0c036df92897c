#!/usr/bin/env python3
"""
Automatic header-to-field mapping for statement-mapper.

Orchestrates header matching over a whole file:
- Learned provider templates are applied first
- Remaining headers are matched greedily in file order
- Overall confidence and missing required fields are reported
- Confirmed mappings can be validated against the data

Assignment is first-come first-served: a field claimed by an earlier
header (or by the template) is never reassigned to a later, better header.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .config_loader import DEFAULT_MATCHING_CONFIG, MatchingConfig
from .errors import MappingError
from .fuzzy import round_score
from .logging_config import get_logger
from .matcher import CandidateMatch, HeaderMatcher, RawRow, column_values, valid_rate
from .schema import Template
from .synonym import SynonymCatalog

# Initialize logger for this module
logger = get_logger(__name__)

TEMPLATE_METHOD = "provider_template"


@dataclass
class MappingResult:
    """Outcome of auto-mapping one file, handed to the review step."""

    mapping: Dict[str, str] = field(default_factory=dict)  # field -> header
    confidence_scores: Dict[str, int] = field(default_factory=dict)  # field -> 0-100
    overall_confidence: int = 0
    suggestions: Dict[str, List[CandidateMatch]] = field(default_factory=dict)  # header -> candidates
    unmapped_headers: List[str] = field(default_factory=list)
    missing_required: List[str] = field(default_factory=list)
    is_complete: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mapping": dict(self.mapping),
            "confidence_scores": dict(self.confidence_scores),
            "overall_confidence": self.overall_confidence,
            "suggestions": {
                header: [c.to_dict() for c in candidates]
                for header, candidates in self.suggestions.items()
            },
            "unmapped_headers": list(self.unmapped_headers),
            "missing_required": list(self.missing_required),
            "is_complete": self.is_complete,
        }


@dataclass
class ValidationReport:
    """Result of checking a mapping against the file's data."""

    is_valid: bool
    score: int
    per_field_validation: Dict[str, Dict[str, int]] = field(default_factory=dict)
    errors: List[Dict[str, str]] = field(default_factory=list)
    warnings: List[Dict[str, str]] = field(default_factory=list)


class AutoMapper:
    """Maps every header of a file to canonical fields."""

    def __init__(self, config: Optional[MatchingConfig] = None):
        self.config = config or DEFAULT_MATCHING_CONFIG
        self.header_matcher = HeaderMatcher(self.config)

    def auto_map_headers(
        self,
        headers: Sequence[str],
        context: Any,
        sample_rows: Sequence[RawRow] = (),
        template: Optional[Template] = None,
    ) -> MappingResult:
        """
        Auto-map all headers of a file to fields of the context.

        Args:
            headers: Column headers in file order
            context: Context name or Context member
            sample_rows: Sample data rows for pattern validation
            template: Optional learned template for the file's provider

        Returns:
            MappingResult with mapping, confidences and review suggestions
        """
        result = MappingResult()
        used_headers = set()

        if template is not None:
            self._apply_template(headers, template, result, used_headers)

        for header in headers:
            if header in used_headers:
                continue

            matches = self.header_matcher.match_header(header, context, sample_rows)
            if not matches:
                result.unmapped_headers.append(header)
                continue

            best = matches[0]
            if (
                best.confidence >= self.config.auto_accept_threshold
                and best.field not in result.mapping
            ):
                result.mapping[best.field] = header
                result.confidence_scores[best.field] = best.confidence
                used_headers.add(header)

            # Every candidate stays available for the reviewer
            result.suggestions[header] = matches

        scores = list(result.confidence_scores.values())
        result.overall_confidence = round_score(sum(scores) / len(scores)) if scores else 0

        result.missing_required = [
            f for f in SynonymCatalog.get_required_fields(context) if f not in result.mapping
        ]
        result.is_complete = not result.missing_required

        logger.debug(
            f"Auto-mapped {len(result.mapping)}/{len(headers)} headers "
            f"(overall {result.overall_confidence}%, missing: {result.missing_required})"
        )
        return result

    def _apply_template(
        self,
        headers: Sequence[str],
        template: Template,
        result: MappingResult,
        used_headers: set,
    ) -> None:
        """Pre-assign headers recorded in a learned template."""
        headers_by_lower = {}
        for header in headers:
            headers_by_lower.setdefault(header.lower(), header)

        for entry in template.field_mappings:
            header = headers_by_lower.get(entry.original_header.lower())
            if header is None:
                continue
            if entry.success_count == 0:
                # Only ever rejected by the reviewer
                continue
            if entry.mapped_field in result.mapping or header in used_headers:
                continue

            confidence = min(100, entry.confidence + self.config.template_bonus)
            result.mapping[entry.mapped_field] = header
            result.confidence_scores[entry.mapped_field] = confidence
            result.suggestions[header] = [
                CandidateMatch(entry.mapped_field, confidence, TEMPLATE_METHOD)
            ]
            used_headers.add(header)

        logger.debug(
            f"Template '{template.template_id}' pre-assigned {len(used_headers)} header(s)"
        )

    def validate_mapping(
        self, mapping: Mapping[str, str], rows: Sequence[RawRow], context: Any
    ) -> ValidationReport:
        """
        Check a mapping against the data it will be applied to.

        Args:
            mapping: Field -> header mapping
            rows: Data rows of the file
            context: Context name or Context member

        Returns:
            ValidationReport with per-field valid rates, errors and warnings
        """
        per_field = {}
        errors = []
        warnings = []

        for field_key, header in mapping.items():
            validator = SynonymCatalog.get_validator(context, field_key)
            if validator is None or header is None:
                continue

            values = column_values(rows, header, self.config.validation_sample_size)
            if not values:
                continue

            rate = valid_rate(values, validator)
            valid_count = sum(1 for value in values if validator(value))
            percent = round_score(rate * 100)
            per_field[field_key] = {
                "valid_count": valid_count,
                "total_count": len(values),
                "valid_rate": percent,
            }

            if rate < self.config.validation_error_rate:
                errors.append({
                    "field": field_key,
                    "header": header,
                    "message": f"Only {percent}% of values appear valid for {field_key}",
                    "severity": "error",
                })
            elif rate < self.config.validation_warning_rate:
                warnings.append({
                    "field": field_key,
                    "header": header,
                    "message": f"{percent}% of values appear valid for {field_key}. Some data may be malformed.",
                    "severity": "warning",
                })

        for field_key in SynonymCatalog.get_required_fields(context):
            if not mapping.get(field_key):
                errors.append({
                    "field": field_key,
                    "message": f"Required field '{field_key}' is not mapped",
                    "severity": "error",
                })

        is_valid = not errors
        if is_valid:
            score = 100 - len(warnings) * 10
        else:
            score = max(0, 50 - len(errors) * 15)

        return ValidationReport(
            is_valid=is_valid,
            score=score,
            per_field_validation=per_field,
            errors=errors,
            warnings=warnings,
        )

    def generate_suggestions(
        self,
        unmapped_headers: Sequence[str],
        unmapped_fields: Sequence[str],
        context: Any,
        rows: Sequence[RawRow] = (),
    ) -> List[Dict[str, Any]]:
        """
        Rank candidate headers for each field the reviewer still has to map.

        Returns:
            [{"field": ..., "suggestions": [{"header": ..., "confidence": ...}]}]
        """
        suggestions = []
        candidates_by_header = {
            header: self.header_matcher.match_header(header, context, rows)
            for header in unmapped_headers
        }

        for field_key in unmapped_fields:
            field_suggestions = []
            for header in unmapped_headers:
                for candidate in candidates_by_header[header]:
                    if candidate.field == field_key:
                        field_suggestions.append(
                            {"header": header, "confidence": candidate.confidence}
                        )
                        break

            if field_suggestions:
                field_suggestions.sort(key=lambda s: s["confidence"], reverse=True)
                suggestions.append({"field": field_key, "suggestions": field_suggestions})

        return suggestions


def apply_overrides(
    mapping: Mapping[str, str],
    overrides: Mapping[str, Optional[str]],
    headers: Sequence[str],
) -> Dict[str, str]:
    """
    Apply a reviewer's corrections to a mapping.

    Args:
        mapping: Field -> header mapping proposed by auto-mapping
        overrides: Field -> header (or None to clear the field)
        headers: Headers present in the file

    Returns:
        New mapping keeping one header per field and one field per header

    Raises:
        MappingError: If an override names a header that is not in the file
    """
    updated = dict(mapping)
    header_set = set(headers)

    for field_key, header in overrides.items():
        if not header:
            updated.pop(field_key, None)
            continue
        if header not in header_set:
            raise MappingError(f"Header '{header}' for field '{field_key}' is not in the file")

        # A header moves to its new field
        for other_field, other_header in list(updated.items()):
            if other_header == header and other_field != field_key:
                del updated[other_field]
        updated[field_key] = header

    return updated


def auto_map_headers(
    headers: Sequence[str],
    context: Any,
    sample_rows: Sequence[RawRow] = (),
    template: Optional[Template] = None,
    config: Optional[MatchingConfig] = None,
) -> MappingResult:
    """Auto-map headers to fields (see AutoMapper.auto_map_headers)."""
    return AutoMapper(config).auto_map_headers(headers, context, sample_rows, template)


def validate_mapping(
    mapping: Mapping[str, str],
    rows: Sequence[RawRow],
    context: Any,
    config: Optional[MatchingConfig] = None,
) -> ValidationReport:
    """Validate a mapping against data (see AutoMapper.validate_mapping)."""
    return AutoMapper(config).validate_mapping(mapping, rows, context)


def generate_suggestions(
    unmapped_headers: Sequence[str],
    unmapped_fields: Sequence[str],
    context: Any,
    rows: Sequence[RawRow] = (),
    config: Optional[MatchingConfig] = None,
) -> List[Dict[str, Any]]:
    """Rank headers for unmapped fields (see AutoMapper.generate_suggestions)."""
    return AutoMapper(config).generate_suggestions(unmapped_headers, unmapped_fields, context, rows)
