"""CLI entry point."""

import os
import sys
from typing import Optional

from cli.commands import handle_extract, handle_import, handle_usage, handle_validate
from cli.constants import EXIT_USAGE_ERROR, USAGE_TEXT
from cli.models import ExtractCommand, ImportCommand, ValidateCommand
from cli.parser import ParseError, parse_command
from common.exceptions import (
    BlockCheckException,
    ContractViolationError,
    ExtractionError,
    ValidationCancelledError,
)
from common.logging_config import setup_logging


def run(argv: list[str]) -> int:
    """
    Parse and execute one command.

    Args:
        argv: Arguments after the program name

    Returns:
        Process exit code
    """
    if not argv or argv[0] in ("help", "-h", "--help"):
        print(USAGE_TEXT)
        return 0 if argv else EXIT_USAGE_ERROR

    try:
        cmd = parse_command(argv)
    except ParseError as e:
        print(f"Error: {e}\n\n{USAGE_TEXT}", file=sys.stderr)
        return EXIT_USAGE_ERROR

    try:
        if isinstance(cmd, ValidateCommand):
            output, exit_code = handle_validate(cmd)
        elif isinstance(cmd, ImportCommand):
            output, exit_code = handle_import(cmd)
        elif isinstance(cmd, ExtractCommand):
            output, exit_code = handle_extract(cmd)
        else:
            output, exit_code = handle_usage(cmd)
    except (ContractViolationError, ExtractionError, ValidationCancelledError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE_ERROR

    print(output)
    return exit_code


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for CLI."""
    args = list(sys.argv[1:] if argv is None else argv)
    log_level = 'DEBUG' if '--debug' in args else os.getenv('LOG_LEVEL', 'WARNING')

    logger = setup_logging('cli', log_level=log_level)
    setup_logging('validator', log_level=log_level)
    setup_logging('blockstore', log_level=log_level)

    if '--debug' in args:
        logger.info("Debug logging enabled")
        args.remove('--debug')

    try:
        exit_code = run(args)
    except BlockCheckException as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        exit_code = EXIT_USAGE_ERROR

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
