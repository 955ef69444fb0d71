"""CLI constants."""

COMMANDS = ["validate", "usage", "import", "extract", "help"]

GREEN = "\033[32m"
RED = "\033[31m"
YELLOW = "\033[33m"
RESET = "\033[0m"

EXIT_COMPLETE = 0
EXIT_INCOMPLETE = 1
EXIT_USAGE_ERROR = 2

USAGE_TEXT = """usage:
  blockcheck validate ROOT [CID ...] [--repo PATH] [--timeout SECONDS]
                         [--concurrency N] [--hash-on-read] [--json] [--debug]
  blockcheck usage [--repo PATH] [--json] [--debug]
  blockcheck import FILE [--repo PATH] [--chunk-size BYTES] [--json] [--debug]
  blockcheck extract ROOT PATH [--repo PATH] [--timeout SECONDS] [--overwrite]
                         [--json] [--debug]
"""
