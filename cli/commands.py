"""Command handler functions for CLI operations."""

import asyncio
import json
from pathlib import Path
from typing import Optional, Tuple

from blockstore.base import BlockStore
from blockstore.dag_builder import import_bytes
from blockstore.flatfs_store import FlatFSBlockStore
from cli.constants import EXIT_COMPLETE, EXIT_INCOMPLETE
from cli.models import ExtractCommand, ImportCommand, UsageCommand, ValidateCommand
from cli.utils import format_file_size, format_report
from common.constants import DEFAULT_CHUNK_SIZE
from common.exceptions import BlockNotFoundError, ContractViolationError
from common.logging_config import get_logger
from validator import config
from validator.extractor import DAGExtractor
from validator.context import ValidationContext
from validator.validator import Validator

logger = get_logger(__name__)


def open_store(repo: Optional[str], hash_on_read: bool = False) -> BlockStore:
    """
    Open the flatfs block store for a repository.

    Args:
        repo: Repository path (default from BLOCKCHECK_REPO_PATH)
        hash_on_read: Verify block digests on read

    Returns:
        FlatFSBlockStore instance
    """
    path = repo or config.REPO_PATH
    logger.debug(f"Opening block store at {path}")
    return FlatFSBlockStore(path, hash_on_read=hash_on_read or config.HASH_ON_READ)


def handle_validate(cmd: ValidateCommand, store: Optional[BlockStore] = None) -> Tuple[str, int]:
    """
    Handle 'validate' command.

    Args:
        cmd: ValidateCommand with root, candidates and options
        store: Optional BlockStore for dependency injection (testing)

    Returns:
        Tuple of (output text, exit code)
    """
    if store is None:
        store = open_store(cmd.repo, cmd.hash_on_read)

    validator = Validator(store, concurrency=cmd.concurrency)
    ctx = ValidationContext(timeout=cmd.timeout or config.DEFAULT_TIMEOUT)
    report = asyncio.run(validator.validate(ctx, cmd.root, list(cmd.blocks)))

    exit_code = EXIT_COMPLETE if report.is_complete else EXIT_INCOMPLETE
    return format_report(report, as_json=cmd.as_json), exit_code


def handle_usage(cmd: UsageCommand, store: Optional[BlockStore] = None) -> Tuple[str, int]:
    """
    Handle 'usage' command.

    Args:
        cmd: UsageCommand with repository path
        store: Optional BlockStore for dependency injection (testing)

    Returns:
        Tuple of (output text, exit code)
    """
    if store is None:
        store = open_store(cmd.repo)

    async def measure() -> Tuple[int, int]:
        return await store.disk_usage(), len(await store.all_cids())

    usage, blocks = asyncio.run(measure())

    if cmd.as_json:
        return json.dumps({"bytes": usage, "blocks": blocks}), EXIT_COMPLETE
    return f"{format_file_size(usage)} in {blocks} blocks", EXIT_COMPLETE


def handle_import(cmd: ImportCommand, store: Optional[BlockStore] = None) -> Tuple[str, int]:
    """
    Handle 'import' command.

    Args:
        cmd: ImportCommand with file path and chunk size
        store: Optional BlockStore for dependency injection (testing)

    Returns:
        Tuple of (output text, exit code)

    Raises:
        ContractViolationError: If the file cannot be read
    """
    try:
        data = Path(cmd.path).read_bytes()
    except OSError as e:
        raise ContractViolationError(f"cannot read {cmd.path}: {e}") from e

    if store is None:
        store = open_store(cmd.repo)

    imported = asyncio.run(import_bytes(store, data, chunk_size=cmd.chunk_size or DEFAULT_CHUNK_SIZE))

    if cmd.as_json:
        return json.dumps({
            "root": str(imported.root),
            "blocks": list(imported.blocks),
            "size": imported.size,
        }, indent=2), EXIT_COMPLETE

    lines = [f"Root: {imported.root}", f"Blocks ({len(imported.blocks)}, {format_file_size(imported.size)}):"]
    lines.extend(f"  {cid}" for cid in imported.blocks)
    return "\n".join(lines), EXIT_COMPLETE


def handle_extract(cmd: ExtractCommand, store: Optional[BlockStore] = None) -> Tuple[str, int]:
    """
    Handle 'extract' command.

    Args:
        cmd: ExtractCommand with root, output path and options
        store: Optional BlockStore for dependency injection (testing)

    Returns:
        Tuple of (output text, exit code); EXIT_INCOMPLETE when a block
        of the DAG is absent from the store
    """
    if store is None:
        store = open_store(cmd.repo, cmd.hash_on_read)

    def report_progress(completed: int, total: int, name: str) -> None:
        logger.debug(f"Extracting {name}: {format_file_size(completed)} of {format_file_size(total)}")

    extractor = DAGExtractor(store, cmd.root, cmd.path).with_progress(report_progress)
    ctx = ValidationContext(timeout=cmd.timeout or config.DEFAULT_TIMEOUT)
    try:
        written = asyncio.run(extractor.extract(ctx, overwrite=cmd.overwrite))
    except BlockNotFoundError as e:
        logger.warning(f"Cannot restore {cmd.root}: {e}")
        return f"Cannot restore {cmd.root}: {e}", EXIT_INCOMPLETE

    if cmd.as_json:
        return json.dumps({"root": cmd.root, "path": str(extractor.path), "bytes": written}), EXIT_COMPLETE
    return f"Extracted {format_file_size(written)} to {extractor.path}", EXIT_COMPLETE
