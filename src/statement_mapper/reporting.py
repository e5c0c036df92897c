#!/usr/bin/env python3
"""
Console reporting for statement-mapper CLI commands.

Renders upload analyses, confirmations and stored templates with Rich,
or as JSON when machine-readable output is requested.
"""

import json
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console
from rich.table import Table

from .auto_mapper import MappingResult
from .pipeline import ConfirmedUpload, UploadResult
from .schema import Template
from .synonym import SynonymCatalog


def _confidence_style(confidence: int) -> str:
    if confidence >= 80:
        return "green"
    if confidence >= 65:
        return "yellow"
    return "red"


def _method_for(result: MappingResult, field_key: str, header: str) -> str:
    for candidate in result.suggestions.get(header, []):
        if candidate.field == field_key:
            return candidate.method
    return "manual"


def print_json(data: Dict[str, Any]) -> None:
    """Print a JSON document to stdout."""
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def render_error(message: str, console: Optional[Console] = None) -> None:
    console = console or Console(stderr=True)
    console.print(f"[red]✗[/red] Error: {message}")


def render_upload(upload: UploadResult, console: Optional[Console] = None) -> None:
    """Print the mapping proposal for an uploaded file."""
    console = console or Console()
    result = upload.mapping_result

    check_color = "green" if result.is_complete else "yellow"
    check_mark = "✓" if result.is_complete else "⚠"
    console.print(
        f"[{check_color}]{check_mark}[/{check_color}] map  {upload.file_name or 'upload'}  "
        f"context={upload.context}  mapped={len(result.mapping)}  "
        f"unmapped={len(result.unmapped_headers)}  confidence={result.overall_confidence}%"
    )

    provider_note = "  (please confirm)" if upload.requires_provider_confirmation else ""
    console.print(
        f"  provider: {upload.provider.provider} "
        f"({upload.provider.confidence}%, {upload.provider.method}){provider_note}"
    )
    console.print(f"  source: {upload.source}")

    analysis = upload.pattern_analysis
    if analysis is not None:
        console.print(f"  dates: {analysis.summary}")

    table = Table(title="Field mapping")
    table.add_column("field")
    table.add_column("header")
    table.add_column("confidence", justify="right")
    table.add_column("method")
    table.add_column("required")

    for definition in SynonymCatalog.get_all_fields(upload.context):
        header = result.mapping.get(definition.key)
        required = "yes" if SynonymCatalog.is_required_field(upload.context, definition.key) else ""
        if header is None:
            table.add_row(definition.key, "[dim]-[/dim]", "", "", required)
            continue
        confidence = result.confidence_scores.get(definition.key, 0)
        style = _confidence_style(confidence)
        table.add_row(
            definition.key,
            header,
            f"[{style}]{confidence}%[/{style}]",
            _method_for(result, definition.key, header),
            required,
        )
    console.print(table)

    if result.unmapped_headers:
        console.print(f"  unmapped headers: {', '.join(result.unmapped_headers)}")
    if result.missing_required:
        console.print(
            f"  [yellow]missing required:[/yellow] {', '.join(result.missing_required)}"
        )


def render_confirmation(
    confirmed: ConfirmedUpload,
    records: Sequence[Dict[str, Any]] = (),
    console: Optional[Console] = None,
) -> None:
    """Print the outcome of a confirmed mapping with a preview of extracted records."""
    console = console or Console()
    validation = confirmed.validation
    warnings_count = len(validation.warnings) + len(validation.errors)

    check_color = "green" if validation.is_valid and confirmed.template_saved else "yellow"
    check_mark = "✓" if check_color == "green" else "⚠"
    console.print(
        f"[{check_color}]{check_mark}[/{check_color}] confirm  {confirmed.provider}  "
        f"context={confirmed.context}  fields={len(confirmed.mapping)}  "
        f"records={len(records)}"
    )
    console.print(f"  template saved: {'yes' if confirmed.template_saved else 'no'}")
    if confirmed.date_format:
        console.print(f"  date format: {confirmed.date_format}")
    console.print(f"  validation: {validation.score}/100  warnings: {warnings_count}")

    for issue in validation.errors + validation.warnings:
        color = "red" if issue["severity"] == "error" else "yellow"
        console.print(f"  [{color}]{issue['severity']}[/{color}] {issue['message']}")

    if records:
        table = Table(title="Records (sample)")
        table.add_column("#", style="dim")
        columns = list(confirmed.mapping.keys())
        for column in columns:
            table.add_column(column)
        for i, record in enumerate(records[:5], 1):
            table.add_row(str(i), *[str(record.get(column, ""))[:20] for column in columns])
        console.print(table)


def templates_to_dicts(templates: List[Template]) -> List[Dict[str, Any]]:
    return [t.model_dump(mode="json") | {"template_id": t.template_id} for t in templates]


def render_templates(templates: List[Template], console: Optional[Console] = None) -> None:
    """Print a table of stored templates."""
    console = console or Console()
    if not templates:
        console.print("No templates stored yet.")
        return

    table = Table(title="Templates")
    table.add_column("template_id")
    table.add_column("provider")
    table.add_column("context")
    table.add_column("fields", justify="right")
    table.add_column("usage", justify="right")
    table.add_column("success", justify="right")
    table.add_column("date format")
    table.add_column("last used")

    for template in templates:
        table.add_row(
            template.template_id,
            template.provider_name,
            template.context,
            str(len(template.field_mappings)),
            str(template.usage_count),
            f"{template.success_rate}%",
            template.date_format or "",
            template.last_used.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)
