#!/usr/bin/env python3
"""
CLI parsing and argument handling for statement-mapper.

Contains all CLI parsing and argument handling including:
- argparse setup and configuration
- subcommands (map, confirm, templates)
- help and version handling
"""

import argparse
import sys
from typing import Dict, List, Optional

from . import __version__
from .config_loader import load_config
from .logging_config import get_logger
from .synonym import Context

# Initialize logger for this module
logger = get_logger(__name__)

CONTEXT_CHOICES = [c.value for c in Context]


def parse_overrides(pairs: Optional[List[str]]) -> Dict[str, Optional[str]]:
    """
    Parse repeated ``--set field=header`` options.

    An empty header (``--set fees=``) clears the field.

    Raises:
        ValueError: If a pair has no '=' or no field name
    """
    overrides: Dict[str, Optional[str]] = {}
    for pair in pairs or []:
        field_key, sep, header = pair.partition("=")
        field_key = field_key.strip()
        if not sep or not field_key:
            raise ValueError(f"Invalid override '{pair}', expected field=header")
        overrides[field_key] = header.strip() or None
    return overrides


def _add_common_arguments(subparser: argparse.ArgumentParser, config) -> None:
    subparser.add_argument(
        "--store",
        type=str,
        help=f"Template store directory (default from config: {config.store_dir})",
    )
    subparser.add_argument(
        "--json", action="store_true", help="Print JSON to stdout instead of tables"
    )
    subparser.add_argument(
        "--verbose", action="store_true", help="Log matching decisions (DEBUG level)"
    )


def _add_upload_arguments(subparser: argparse.ArgumentParser, config) -> None:
    subparser.add_argument("file", help="Statement file (CSV or Excel)")
    subparser.add_argument(
        "-c",
        "--context",
        choices=CONTEXT_CHOICES,
        help=f"Statement context (default from config: {config.default_context})",
    )
    subparser.add_argument(
        "--auto-accept",
        type=int,
        help=(
            "Minimum confidence to auto-assign a header "
            f"(default: {config.matching.auto_accept_threshold})"
        ),
    )


def setup_cli(argv: Optional[List[str]] = None):
    """Set up the command line interface with argparse."""
    # Load configuration to get default values
    config = load_config()

    parser = argparse.ArgumentParser(
        prog="statement-mapper",
        description="Statement Mapper - Map financial statement columns to canonical fields",
    )
    parser.add_argument(
        "--version", action="version", version=f"statement-mapper {__version__}"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Map subcommand
    map_parser = subparsers.add_parser(
        "map", help="Propose a field mapping for a statement file"
    )
    _add_upload_arguments(map_parser, config)
    map_parser.add_argument(
        "-u", "--user", help="User whose learned templates prime the mapping"
    )
    _add_common_arguments(map_parser, config)

    # Confirm subcommand
    confirm_parser = subparsers.add_parser(
        "confirm", help="Confirm a mapping, learn it as a template and extract records"
    )
    _add_upload_arguments(confirm_parser, config)
    confirm_parser.add_argument("-u", "--user", required=True, help="Template owner")
    confirm_parser.add_argument(
        "-p", "--provider", required=True, help="Provider name as confirmed by the reviewer"
    )
    confirm_parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        metavar="FIELD=HEADER",
        help="Correct one assignment (repeatable); empty header clears the field",
    )
    confirm_parser.add_argument(
        "--date-format", help="Date format to use instead of the detected one (e.g. DD/MM/YYYY)"
    )
    _add_common_arguments(confirm_parser, config)

    # Templates subcommand
    templates_parser = subparsers.add_parser(
        "templates", help="List learned templates for a user"
    )
    templates_parser.add_argument("-u", "--user", required=True, help="Template owner")
    templates_parser.add_argument(
        "-c",
        "--context",
        dest="filter_context",
        choices=CONTEXT_CHOICES,
        help="Only list templates for this context",
    )
    _add_common_arguments(templates_parser, config)

    # Parse arguments
    args = parser.parse_args(argv)

    # If no command is specified, show help
    if args.command is None:
        parser.print_help()
        sys.exit(1)

    config.merge_with_cli_args(args)

    if args.command == "confirm":
        try:
            args.overrides = parse_overrides(args.overrides)
        except ValueError as e:
            parser.error(str(e))

    return args, config


def app():
    """Console script entry point."""
    from .main import main

    main()
