#!/usr/bin/env python3
"""
Upload and review orchestration for statement-mapper.

Glue between a parsed statement, the mapping engine and the template
store:
- process_upload: provider detection, template priming, auto-mapping and
  date pattern analysis for the review step
- confirm_upload: applies reviewer corrections and teaches the template
  store (best effort, never blocking the import)
- extract_records: typed records from a confirmed mapping
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .auto_mapper import AutoMapper, MappingResult, ValidationReport, apply_overrides
from .config_loader import Config
from .errors import MappingError, TemplateStoreError
from .logging_config import get_logger
from .matcher import RawRow
from .patterns import (
    UNKNOWN_PROVIDER,
    PatternAnalysis,
    PatternDetector,
    ProviderResult,
    is_supported_format,
    parse_date,
)
from .schema import Template
from .synonym import SynonymCatalog, resolve_context
from .templates import TemplateTrainer

# Initialize logger for this module
logger = get_logger(__name__)

SAMPLE_ROWS = 20


@dataclass
class UploadResult:
    """Everything the review step needs to show for one uploaded file."""

    headers: List[str]
    rows: List[RawRow]
    context: str
    file_name: str
    provider: ProviderResult
    requires_provider_confirmation: bool
    mapping_result: MappingResult
    pattern_analysis: Optional[PatternAnalysis] = None
    template: Optional[Template] = None

    @property
    def source(self) -> str:
        return "learned" if self.template is not None else "heuristic"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_name": self.file_name,
            "context": self.context,
            "headers": list(self.headers),
            "row_count": len(self.rows),
            "provider": {
                "name": self.provider.provider,
                "confidence": self.provider.confidence,
                "method": self.provider.method,
                "requires_confirmation": self.requires_provider_confirmation,
            },
            "source": self.source,
            "template_id": self.template.template_id if self.template else None,
            "patterns": self.pattern_analysis.to_dict() if self.pattern_analysis else None,
            **self.mapping_result.to_dict(),
        }


@dataclass
class ConfirmedUpload:
    """A mapping accepted by the reviewer."""

    context: str
    provider: str
    headers: List[str]
    mapping: Dict[str, str]
    confidence_scores: Dict[str, int]
    date_format: Optional[str]
    frequency: Optional[str]
    validation: ValidationReport
    template_saved: bool = False
    rejected: Dict[str, str] = field(default_factory=dict)  # field -> auto header replaced by reviewer


def parse_number(value: Any) -> float:
    """Parse an amount cell such as "£1,250.00"; unparsable values become 0.0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return 0.0

    cleaned = re.sub(r"[^0-9.\-]+", "", value)
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


class UploadPipeline:
    """Runs uploads through mapping and pattern detection, and learns from confirmations."""

    def __init__(self, config: Optional[Config] = None, trainer: Optional[TemplateTrainer] = None):
        self.config = config or Config()
        self.trainer = trainer
        self.auto_mapper = AutoMapper(self.config.matching)
        self.detector = PatternDetector(self.config.patterns)

    def _find_template(
        self, user_id: Optional[str], provider: ProviderResult, context: str, headers: Sequence[str]
    ) -> Optional[Template]:
        if self.trainer is None or not user_id:
            return None

        template = None
        if provider.provider != UNKNOWN_PROVIDER:
            template = self.trainer.get_template(user_id, provider.provider, context)
        if template is None:
            template = self.trainer.find_best_matching_template(user_id, context, headers)
        return template

    def process_upload(
        self,
        headers: Sequence[str],
        rows: Sequence[RawRow],
        context: Any,
        file_name: str = "",
        user_id: Optional[str] = None,
    ) -> UploadResult:
        """
        Analyze a parsed statement for human review.

        Args:
            headers: Column headers in file order
            rows: Raw data rows
            context: Context name or Context member
            file_name: Original file name (used for provider detection)
            user_id: Owner whose learned templates may prime the mapping

        Returns:
            UploadResult with mapping, suggestions, provider and date patterns
        """
        context_name = resolve_context(context).value
        headers = list(headers)
        rows = list(rows)

        provider = self.detector.detect_provider(file_name, headers)
        template = self._find_template(user_id, provider, context_name, headers)

        mapping_result = self.auto_mapper.auto_map_headers(
            headers, context_name, rows[:SAMPLE_ROWS], template
        )

        pattern_analysis = None
        date_header = mapping_result.mapping.get("date")
        if date_header:
            date_values = [row.get(date_header) for row in rows if row.get(date_header)]
            pattern_analysis = self.detector.analyze_patterns(date_values)

        logger.info(
            f"Processed {file_name or 'upload'}: {len(mapping_result.mapping)} fields mapped "
            f"({mapping_result.overall_confidence}% confidence), provider {provider.provider}"
        )

        return UploadResult(
            headers=headers,
            rows=rows,
            context=context_name,
            file_name=file_name,
            provider=provider,
            requires_provider_confirmation=(
                provider.confidence < self.config.templates.provider_confirmation_threshold
            ),
            mapping_result=mapping_result,
            pattern_analysis=pattern_analysis,
            template=template,
        )

    def _confidence_for(self, upload: UploadResult, field_key: str, header: str) -> int:
        """Confidence of a confirmed assignment: auto score, else the matching suggestion, else 0."""
        result = upload.mapping_result
        if result.mapping.get(field_key) == header:
            return result.confidence_scores.get(field_key, 0)
        for candidate in result.suggestions.get(header, []):
            if candidate.field == field_key:
                return candidate.confidence
        return 0

    def confirm_upload(
        self,
        upload: UploadResult,
        provider: Optional[str] = None,
        overrides: Optional[Mapping[str, Optional[str]]] = None,
        date_format: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ConfirmedUpload:
        """
        Accept a reviewed mapping and learn it as a template.

        Args:
            upload: Result of process_upload
            provider: Provider confirmed by the reviewer (defaults to the detected one)
            overrides: Reviewer corrections, field -> header (None clears a field)
            date_format: Reviewer-confirmed date format
            user_id: Owner of the template to update

        Returns:
            ConfirmedUpload; template_saved is False when learning failed or was skipped

        Raises:
            MappingError: If an override is not a file header, a required field is
                unmapped or the date format is not supported
        """
        if date_format and not is_supported_format(date_format):
            raise MappingError(f"Unsupported date format: {date_format}")

        auto_mapping = upload.mapping_result.mapping
        mapping = apply_overrides(auto_mapping, overrides or {}, upload.headers)

        missing = [
            f for f in SynonymCatalog.get_required_fields(upload.context) if f not in mapping
        ]
        if missing:
            raise MappingError(f"Required fields not mapped: {', '.join(missing)}")

        confidence_scores = {
            field_key: self._confidence_for(upload, field_key, header)
            for field_key, header in mapping.items()
        }
        rejected = {
            field_key: header
            for field_key, header in auto_mapping.items()
            if mapping.get(field_key) != header
        }

        analysis = upload.pattern_analysis
        date_format = date_format or (analysis.date_format if analysis else None)
        frequency = analysis.frequency if analysis else None
        provider_name = (provider or upload.provider.provider or "").strip()

        confirmed = ConfirmedUpload(
            context=upload.context,
            provider=provider_name,
            headers=list(upload.headers),
            mapping=mapping,
            confidence_scores=confidence_scores,
            date_format=date_format,
            frequency=frequency,
            validation=self.auto_mapper.validate_mapping(mapping, upload.rows, upload.context),
            rejected=rejected,
        )

        if self.trainer is not None and user_id and provider_name and provider_name != UNKNOWN_PROVIDER:
            confirmed.template_saved = self._learn(user_id, confirmed)
        return confirmed

    def _learn(self, user_id: str, confirmed: ConfirmedUpload) -> bool:
        """Save the template and record rejected suggestions; failures are logged only."""
        try:
            self.trainer.save_template(
                user_id,
                confirmed.provider,
                confirmed.context,
                confirmed.mapping,
                confirmed.confidence_scores,
                confirmed.date_format,
                confirmed.frequency,
                confirmed.headers,
            )
            for field_key, header in confirmed.rejected.items():
                self.trainer.record_feedback(
                    user_id, confirmed.provider, confirmed.context, field_key, header, False
                )
        except TemplateStoreError as e:
            logger.warning(f"Template not saved for {confirmed.provider}, continuing import: {e}")
            return False
        return True

    def extract_records(self, confirmed: ConfirmedUpload, rows: Sequence[RawRow]) -> List[Dict[str, Any]]:
        """
        Convert raw rows into field-keyed records using a confirmed mapping.

        Date fields become ISO dates (None when unparsable with the confirmed
        format), currency and number fields become floats, everything else
        stripped text.
        """
        records = []
        for row in rows:
            record = {}
            for field_key, header in confirmed.mapping.items():
                value = row.get(header)
                definition = SynonymCatalog.get_field_definition(confirmed.context, field_key)
                field_type = definition.type if definition else "text"

                if field_type == "date":
                    parsed = parse_date(value, confirmed.date_format) if confirmed.date_format else None
                    record[field_key] = parsed.date().isoformat() if parsed else None
                elif field_type in ("currency", "number"):
                    record[field_key] = parse_number(value)
                else:
                    record[field_key] = "" if value is None else str(value).strip()
            records.append(record)
        return records


def process_upload(
    headers: Sequence[str],
    rows: Sequence[RawRow],
    context: Any,
    file_name: str = "",
    user_id: Optional[str] = None,
    trainer: Optional[TemplateTrainer] = None,
    config: Optional[Config] = None,
) -> UploadResult:
    """Analyze an upload for review (see UploadPipeline.process_upload)."""
    return UploadPipeline(config, trainer).process_upload(headers, rows, context, file_name, user_id)


def confirm_upload(
    upload: UploadResult,
    provider: Optional[str] = None,
    overrides: Optional[Mapping[str, Optional[str]]] = None,
    date_format: Optional[str] = None,
    user_id: Optional[str] = None,
    trainer: Optional[TemplateTrainer] = None,
    config: Optional[Config] = None,
) -> ConfirmedUpload:
    """Accept a reviewed mapping (see UploadPipeline.confirm_upload)."""
    return UploadPipeline(config, trainer).confirm_upload(upload, provider, overrides, date_format, user_id)
