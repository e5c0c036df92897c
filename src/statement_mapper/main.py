#!/usr/bin/env python3
"""
Command runners for statement-mapper.

Each run_*_command function takes the parsed CLI arguments and the merged
configuration, does its work through the library API and reports via
reporting. Exit codes:
- 1: usage error or template store failure
- 2: statement file missing, empty or unsupported
- 4: mapping rejected (unknown header or missing required field)
"""

import sys
from pathlib import Path

from .cli import setup_cli
from .errors import ExtractionError, MappingError, TemplateStoreError
from .logging_config import get_logger, setup_logging
from .parsers import extract_rows
from .pipeline import UploadPipeline
from .reporting import (
    print_json,
    render_confirmation,
    render_error,
    render_templates,
    render_upload,
    templates_to_dicts,
)
from .templates import TemplateTrainer, YamlTemplateStore

# Initialize logger for this module
logger = get_logger(__name__)


def _build_trainer(config) -> TemplateTrainer:
    store = YamlTemplateStore(config.get_store_dir())
    return TemplateTrainer(store, config.templates)


def _load_upload(args, config, pipeline: UploadPipeline):
    """Extract rows from args.file and run them through process_upload."""
    path = Path(args.file)
    try:
        extraction = extract_rows(path)
    except ExtractionError as e:
        render_error(str(e))
        sys.exit(2)

    return pipeline.process_upload(
        extraction.headers,
        extraction.rows,
        args.context,
        file_name=path.name,
        user_id=args.user,
    )


def run_map_command(args, config):
    """Run the map command - propose a mapping for one statement file."""
    trainer = _build_trainer(config) if args.user else None
    pipeline = UploadPipeline(config, trainer)
    upload = _load_upload(args, config, pipeline)

    if args.json:
        print_json(upload.to_dict())
    else:
        render_upload(upload)


def run_confirm_command(args, config):
    """Run the confirm command - accept a mapping, learn it and extract records."""
    pipeline = UploadPipeline(config, _build_trainer(config))
    upload = _load_upload(args, config, pipeline)

    try:
        confirmed = pipeline.confirm_upload(
            upload,
            provider=args.provider,
            overrides=args.overrides,
            date_format=args.date_format,
            user_id=args.user,
        )
    except MappingError as e:
        render_error(str(e))
        sys.exit(4)

    records = pipeline.extract_records(confirmed, upload.rows)

    if args.json:
        print_json({
            "provider": confirmed.provider,
            "context": confirmed.context,
            "mapping": confirmed.mapping,
            "confidence_scores": confirmed.confidence_scores,
            "date_format": confirmed.date_format,
            "frequency": confirmed.frequency,
            "template_saved": confirmed.template_saved,
            "validation": {
                "is_valid": confirmed.validation.is_valid,
                "score": confirmed.validation.score,
                "errors": confirmed.validation.errors,
                "warnings": confirmed.validation.warnings,
            },
            "records": records,
        })
    else:
        render_confirmation(confirmed, records)


def run_templates_command(args, config):
    """Run the templates command - list a user's learned templates."""
    trainer = _build_trainer(config)

    if args.filter_context:
        templates = trainer.get_templates_by_context(args.user, args.filter_context)
    else:
        try:
            templates = trainer.store.list_templates(args.user)
        except TemplateStoreError as e:
            render_error(str(e))
            sys.exit(1)

    if args.json:
        print_json({"user": args.user, "templates": templates_to_dicts(templates)})
    else:
        render_templates(templates)


def main(argv=None):
    """Main entry point for the application."""
    # Initialize logging
    setup_logging()

    args, config = setup_cli(argv)

    if args.verbose:
        setup_logging(level="DEBUG")

    # Execute the appropriate command
    if args.command == "map":
        run_map_command(args, config)
    elif args.command == "confirm":
        run_confirm_command(args, config)
    elif args.command == "templates":
        run_templates_command(args, config)
    else:
        logger.error(f"Unknown command: {args.command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
