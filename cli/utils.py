"""Utility functions for CLI output."""

import json

from cli.constants import GREEN, RED, RESET, YELLOW
from validator.result import ValidationReport


def format_file_size(size_bytes: int) -> str:
    """
    Format a size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def format_report(report: ValidationReport, as_json: bool = False) -> str:
    """
    Render a validation report for the terminal.

    Args:
        report: Finished validation report
        as_json: Emit JSON instead of colored text

    Returns:
        Printable report
    """
    if as_json:
        return json.dumps(report.to_dict(), indent=2)

    status = f"{GREEN}complete{RESET}" if report.is_complete else f"{RED}incomplete{RESET}"
    restore = f"{GREEN}yes{RESET}" if report.can_restore else f"{RED}no{RESET}"
    lines = [
        f"Status:         {status}",
        f"Can restore:    {restore}",
        f"Reachable size: {format_file_size(report.reachable_size)}",
    ]

    if report.missing_blocks:
        lines.append(f"Missing blocks ({len(report.missing_blocks)}):")
        lines.extend(f"  {cid}" for cid in report.missing_blocks)
    if report.invalid_blocks:
        lines.append(f"Invalid blocks ({len(report.invalid_blocks)}):")
        lines.extend(f"  {cid!r}" for cid in report.invalid_blocks)
    if report.error_details:
        lines.append(f"{YELLOW}Errors ({len(report.error_details)}):{RESET}")
        lines.extend(f"  {message}" for message in report.error_details)

    return "\n".join(lines)
