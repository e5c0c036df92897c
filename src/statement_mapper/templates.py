#!/usr/bin/env python3
"""
Template learning for statement-mapper.

Learns from user-confirmed mappings to improve future uploads:
- Stores provider-specific field mappings per user and context
- Tracks success rates and usage frequency
- Retrieves templates for auto-mapping, by provider or by header overlap
- Updates confidence scores from explicit reviewer feedback

The trainer is the only writer of templates. Stores are simple keyed
document stores; concurrent confirmations for the same key are
last-write-wins.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote

import yaml

from .config_loader import DEFAULT_TEMPLATE_CONFIG, TemplateConfig
from .errors import TemplateStoreError
from .fuzzy import round_score
from .logging_config import get_logger
from .schema import (
    Template,
    TemplateFieldMapping,
    ValidationError,
    make_template_id,
    utc_now,
    validate_template,
)
from .synonym import resolve_context

# Initialize logger for this module
logger = get_logger(__name__)


class TemplateStore(ABC):
    """Persistence contract for learned templates, keyed by (user, template id)."""

    @abstractmethod
    def load(self, user_id: str, template_id: str) -> Optional[Template]:
        """Return the stored template or None."""

    @abstractmethod
    def save(self, template: Template) -> None:
        """Create or replace a template."""

    @abstractmethod
    def list_templates(self, user_id: str) -> List[Template]:
        """All templates owned by a user."""


class InMemoryTemplateStore(TemplateStore):
    """Process-local store, used for tests and one-off CLI runs."""

    def __init__(self):
        self._templates: Dict[Tuple[str, str], Template] = {}

    def load(self, user_id: str, template_id: str) -> Optional[Template]:
        template = self._templates.get((user_id, template_id))
        return template.model_copy(deep=True) if template else None

    def save(self, template: Template) -> None:
        self._templates[(template.user_id, template.template_id)] = template.model_copy(deep=True)

    def list_templates(self, user_id: str) -> List[Template]:
        return [
            template.model_copy(deep=True)
            for (owner, _), template in self._templates.items()
            if owner == user_id
        ]


class YamlTemplateStore(TemplateStore):
    """
    One YAML document per template under <base_dir>/<user_id>/<template_id>.yaml.

    Path parts are percent-encoded (dots included), so distinct ids never
    share a directory and no id can escape base_dir.
    """

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    @staticmethod
    def _safe_name(name: str) -> str:
        return quote(name, safe="").replace(".", "%2E")

    def _user_dir(self, user_id: str) -> Path:
        return self.base_dir / self._safe_name(user_id)

    def _template_path(self, user_id: str, template_id: str) -> Path:
        return self._user_dir(user_id) / f"{self._safe_name(template_id)}.yaml"

    def _read(self, path: Path) -> Template:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
            return validate_template(data or {})
        except (OSError, yaml.YAMLError, ValidationError) as e:
            raise TemplateStoreError(f"Could not read template {path}: {e}") from e

    def load(self, user_id: str, template_id: str) -> Optional[Template]:
        path = self._template_path(user_id, template_id)
        if not path.exists():
            return None
        template = self._read(path)
        if template.user_id != user_id:
            logger.warning(f"Ignoring template {path} owned by another user")
            return None
        return template

    def save(self, template: Template) -> None:
        path = self._template_path(template.user_id, template.template_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                yaml.safe_dump(
                    template.model_dump(mode="json"),
                    f,
                    sort_keys=False,
                    allow_unicode=True,
                )
        except (OSError, yaml.YAMLError) as e:
            raise TemplateStoreError(f"Could not write template {path}: {e}") from e

    def list_templates(self, user_id: str) -> List[Template]:
        user_dir = self._user_dir(user_id)
        if not user_dir.is_dir():
            return []
        templates = [self._read(path) for path in sorted(user_dir.glob("*.yaml"))]
        return [t for t in templates if t.user_id == user_id]


def calculate_success_rate(field_mappings: Sequence[TemplateFieldMapping]) -> int:
    """Template-wide share of confirmed attempts (0-100)."""
    if not field_mappings:
        return 0
    total_success = sum(fm.success_count for fm in field_mappings)
    total_attempts = sum(fm.total_attempts or 1 for fm in field_mappings)
    return round_score(total_success / total_attempts * 100)


def count_header_overlap(headers1: Sequence[str], headers2: Sequence[str]) -> int:
    """Number of case-insensitively shared headers."""
    set1 = {h.lower() for h in headers1}
    set2 = {h.lower() for h in headers2}
    return len(set1 & set2)


class TemplateTrainer:
    """Persists and retrieves per-user, per-provider, per-context templates."""

    def __init__(self, store: TemplateStore, config: Optional[TemplateConfig] = None):
        self.store = store
        self.config = config or DEFAULT_TEMPLATE_CONFIG

    def save_template(
        self,
        user_id: str,
        provider: str,
        context: Any,
        mapping: Mapping[str, Optional[str]],
        confidence_scores: Mapping[str, int],
        date_format: Optional[str] = None,
        frequency: Optional[str] = None,
        headers: Sequence[str] = (),
    ) -> Template:
        """
        Save a confirmed mapping, creating or merging into the provider's template.

        Args:
            user_id: Owner of the template
            provider: Provider name as confirmed by the reviewer
            context: Context name or Context member
            mapping: Confirmed field -> header mapping
            confidence_scores: Confidence recorded for each mapped field
            date_format: Detected or confirmed date format
            frequency: Detected payment frequency
            headers: Headers of the uploaded file

        Returns:
            The stored template

        Raises:
            TemplateStoreError: If the store cannot be read or written
        """
        context_name = resolve_context(context).value
        template_id = make_template_id(provider, context_name)
        existing = self.store.load(user_id, template_id)
        now = utc_now()

        if existing is not None:
            existing.field_mappings = self._merge_field_mappings(
                existing.field_mappings, mapping, confidence_scores
            )
            existing.date_format = date_format or existing.date_format
            existing.frequency = frequency or existing.frequency
            existing.usage_count += 1
            existing.success_rate = calculate_success_rate(existing.field_mappings)
            existing.last_used = now
            existing.updated_at = now
            template = existing
        else:
            template = Template(
                user_id=user_id,
                provider_name=provider,
                context=context_name,
                field_mappings=[
                    TemplateFieldMapping(
                        original_header=header,
                        mapped_field=field,
                        confidence=confidence_scores.get(field, 0),
                        success_count=1,
                        total_attempts=1,
                    )
                    for field, header in mapping.items()
                    if header
                ],
                date_format=date_format,
                frequency=frequency,
                example_headers=list(headers),
                usage_count=1,
                success_rate=100,
                created_at=now,
                updated_at=now,
                last_used=now,
            )

        self.store.save(template)
        logger.info(f"Template saved for {provider} ({context_name})")
        return template

    def _merge_field_mappings(
        self,
        existing: Sequence[TemplateFieldMapping],
        new_mapping: Mapping[str, Optional[str]],
        new_scores: Mapping[str, int],
    ) -> List[TemplateFieldMapping]:
        """Fold a newly confirmed mapping into the stored entries."""
        merged = [entry.model_copy() for entry in existing]

        for field, header in new_mapping.items():
            if not header:
                continue
            new_confidence = new_scores.get(field, 0)
            entry = next(
                (e for e in merged if e.mapped_field == field and e.original_header == header),
                None,
            )

            if entry is not None:
                # Confirmed again, so it counts as a success
                entry.total_attempts += 1
                entry.success_count += 1
                entry.confidence = min(100, round_score(
                    entry.confidence * self.config.merge_old_weight
                    + new_confidence * self.config.merge_new_weight
                ))
            else:
                merged.append(
                    TemplateFieldMapping(
                        original_header=header,
                        mapped_field=field,
                        confidence=new_confidence,
                        success_count=1,
                        total_attempts=1,
                    )
                )

        return merged

    def get_template(self, user_id: str, provider: str, context: Any) -> Optional[Template]:
        """Exact lookup by (user, provider, context); store failures degrade to None."""
        template_id = make_template_id(provider, resolve_context(context).value)
        try:
            return self.store.load(user_id, template_id)
        except TemplateStoreError as e:
            logger.warning(f"Error retrieving template {template_id}: {e}")
            return None

    def get_templates_by_context(self, user_id: str, context: Any) -> List[Template]:
        """All of a user's templates for a context, most trusted first."""
        context_name = resolve_context(context).value
        try:
            templates = [
                t for t in self.store.list_templates(user_id) if t.context == context_name
            ]
        except TemplateStoreError as e:
            logger.warning(f"Error retrieving templates for {context_name}: {e}")
            return []

        templates.sort(
            key=lambda t: t.success_rate * self.config.rank_success_weight
            + t.usage_count * self.config.rank_usage_weight,
            reverse=True,
        )
        return templates

    def score_template(self, template: Template, headers: Sequence[str]) -> float:
        """Match score of a template for a file: success rate, header overlap and usage."""
        overlap = count_header_overlap(headers, template.example_headers)
        overlap_rate = overlap / max(len(headers), 1)
        return (
            template.success_rate * self.config.score_success_weight
            + overlap_rate * 100 * self.config.score_overlap_weight
            + min(template.usage_count, 10) * 10 * self.config.score_usage_weight
        )

    def find_best_matching_template(
        self, user_id: str, context: Any, headers: Sequence[str]
    ) -> Optional[Template]:
        """
        Find the stored template that best fits an unseen file.

        Returns:
            The top-scoring template when its score exceeds the fallback
            minimum, otherwise None (fresh auto-mapping should be used)
        """
        templates = self.get_templates_by_context(user_id, context)
        if not templates:
            return None

        scored = [(self.score_template(t, headers), t) for t in templates]
        scored.sort(key=lambda item: item[0], reverse=True)
        best_score, best = scored[0]

        if best_score > self.config.fallback_min_score:
            logger.debug(f"Best matching template {best.template_id} (score {best_score:.1f})")
            return best
        return None

    def record_feedback(
        self,
        user_id: str,
        provider: str,
        context: Any,
        field: str,
        header: str,
        was_correct: bool,
    ) -> Optional[Template]:
        """
        Record a reviewer's verdict on one header -> field assignment.

        Returns:
            The updated template, or None when no template exists yet

        Raises:
            TemplateStoreError: If the store cannot be read or written
        """
        context_name = resolve_context(context).value
        template_id = make_template_id(provider, context_name)
        template = self.store.load(user_id, template_id)
        if template is None:
            logger.warning(f"No template {template_id} to record feedback on")
            return None

        entry = template.find_field_mapping(field, header)
        if entry is not None:
            entry.total_attempts += 1
            if was_correct:
                entry.success_count += 1
            entry.confidence = round_score(entry.success_count / entry.total_attempts * 100)
        else:
            template.field_mappings.append(
                TemplateFieldMapping(
                    original_header=header,
                    mapped_field=field,
                    confidence=100 if was_correct else 0,
                    success_count=1 if was_correct else 0,
                    total_attempts=1,
                )
            )

        template.success_rate = calculate_success_rate(template.field_mappings)
        template.updated_at = utc_now()
        self.store.save(template)
        return template
