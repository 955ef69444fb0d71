"""Command parser for CLI arguments."""

from typing import Optional

from cli.constants import COMMANDS
from cli.models import CommandRequest, ExtractCommand, ImportCommand, UsageCommand, ValidateCommand

VALUE_FLAGS = ("--repo", "--timeout", "--concurrency", "--chunk-size")
BOOL_FLAGS = ("--json", "--hash-on-read", "--overwrite")


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(tokens: list[str]) -> CommandRequest:
    """Parse command line tokens into a CommandRequest object.

    Args:
        tokens: Arguments after the program name

    Returns:
        ValidateCommand, UsageCommand, ImportCommand or ExtractCommand

    Raises:
        ParseError: If command syntax is invalid
    """
    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]

    if command_name == "validate":
        return _parse_validate(tokens[1:])
    elif command_name == "usage":
        return _parse_usage(tokens[1:])
    elif command_name == "import":
        return _parse_import(tokens[1:])
    elif command_name == "extract":
        return _parse_extract(tokens[1:])
    else:
        raise ParseError(f"Unknown command: {command_name} (expected one of: {', '.join(COMMANDS)})")


def _split_flags(args: list[str]) -> tuple[list[str], dict[str, str], set[str]]:
    """Separate positional arguments from --flag value and --switch options."""
    positional = []
    values: dict[str, str] = {}
    switches: set[str] = set()

    index = 0
    while index < len(args):
        arg = args[index]
        if arg in VALUE_FLAGS:
            if index + 1 >= len(args):
                raise ParseError(f"{arg} requires a value")
            values[arg] = args[index + 1]
            index += 2
            continue
        if arg in BOOL_FLAGS:
            switches.add(arg)
        elif arg.startswith("--"):
            raise ParseError(f"Unknown option: {arg}")
        else:
            positional.append(arg)
        index += 1

    return positional, values, switches


def _parse_positive(value: Optional[str], name: str, cast):
    if value is None:
        return None
    try:
        parsed = cast(value)
    except ValueError:
        raise ParseError(f"{name} must be a number, got {value!r}")
    if parsed <= 0:
        raise ParseError(f"{name} must be positive")
    return parsed


def _parse_validate(args: list[str]) -> ValidateCommand:
    """Parse 'validate ROOT [CID ...]' command."""
    positional, values, switches = _split_flags(args)

    if not positional:
        raise ParseError("validate requires a root CID")
    if "--chunk-size" in values:
        raise ParseError("validate does not accept --chunk-size")
    if "--overwrite" in switches:
        raise ParseError("validate does not accept --overwrite")

    return ValidateCommand(
        root=positional[0],
        blocks=tuple(positional[1:]),
        repo=values.get("--repo"),
        timeout=_parse_positive(values.get("--timeout"), "--timeout", float),
        concurrency=_parse_positive(values.get("--concurrency"), "--concurrency", int),
        as_json="--json" in switches,
        hash_on_read="--hash-on-read" in switches,
    )


def _parse_usage(args: list[str]) -> UsageCommand:
    """Parse 'usage' command."""
    positional, values, switches = _split_flags(args)

    if positional:
        raise ParseError("usage takes no positional arguments")
    if set(values) - {"--repo"} or switches - {"--json"}:
        raise ParseError("usage only accepts --repo and --json")

    return UsageCommand(repo=values.get("--repo"), as_json="--json" in switches)


def _parse_import(args: list[str]) -> ImportCommand:
    """Parse 'import FILE' command."""
    positional, values, switches = _split_flags(args)

    if len(positional) != 1:
        raise ParseError("import requires exactly one file")
    if set(values) - {"--repo", "--chunk-size"} or switches - {"--json"}:
        raise ParseError("import only accepts --repo, --chunk-size and --json")

    return ImportCommand(
        path=positional[0],
        repo=values.get("--repo"),
        chunk_size=_parse_positive(values.get("--chunk-size"), "--chunk-size", int),
        as_json="--json" in switches,
    )


def _parse_extract(args: list[str]) -> ExtractCommand:
    """Parse 'extract ROOT PATH' command."""
    positional, values, switches = _split_flags(args)

    if len(positional) != 2:
        raise ParseError("extract requires a root CID and an output path")
    if set(values) - {"--repo", "--timeout"}:
        raise ParseError("extract only accepts --repo, --timeout, --overwrite, --hash-on-read and --json")

    return ExtractCommand(
        root=positional[0],
        path=positional[1],
        repo=values.get("--repo"),
        timeout=_parse_positive(values.get("--timeout"), "--timeout", float),
        overwrite="--overwrite" in switches,
        hash_on_read="--hash-on-read" in switches,
        as_json="--json" in switches,
    )
