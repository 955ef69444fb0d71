"""
Validation orchestrator: checks a candidate block list against a DAG.

Usage:

    store = FlatFSBlockStore("~/.blockcheck")
    validator = Validator(store)

    report = await validator.validate(ValidationContext(timeout=30), root, blocks)
    if report.is_complete:
        print("All blocks present and valid")
    else:
        print(f"Missing {len(report.missing_blocks)} blocks")

validate() raises only for caller mistakes (empty root, absent list,
undecodable root) and for cancellation before the candidate check finishes.
Everything else, including a failed DAG walk, is described by the report.
"""

import uuid
from typing import List, Optional, Set, Tuple

from blockstore.base import BlockStore
from blockstore.cid import ContentIdentifier, IdentifierDefect, decode
from common.exceptions import ContractViolationError, StoreError
from common.logging_config import get_logger
from validator import config
from validator.context import ValidationContext, background
from validator.links import LinkResolver
from validator.probe import BlockProbe
from validator.result import ValidationReport, ValidationResult
from validator.walker import DAGWalker

logger = get_logger(__name__)


class Validator:
    """
    Validates DAGs and candidate block lists against a block store.
    """

    def __init__(
        self,
        store: BlockStore,
        resolver: Optional[LinkResolver] = None,
        concurrency: Optional[int] = None
    ):
        """
        Args:
            store: Block store to query (read-only)
            resolver: Link resolver for DAG expansion (default handles dag-pb, dag-json, raw)
            concurrency: Walk worker count (default from BLOCKCHECK_WALK_CONCURRENCY)
        """
        self.store = store
        self.probe = BlockProbe(store)
        self.walker = DAGWalker(
            self.probe,
            resolver=resolver,
            concurrency=concurrency or config.WALK_CONCURRENCY
        )

    async def validate(
        self,
        ctx: Optional[ValidationContext],
        root_cid: str,
        blocks: Optional[List[str]]
    ) -> ValidationReport:
        """
        Validate the candidate blocks and the DAG rooted at root_cid.

        Args:
            ctx: Cancellation context (None for a background context)
            root_cid: Root CID of the DAG
            blocks: Candidate CIDs to check (may be empty, must not be None)

        Returns:
            ValidationReport describing missing/invalid blocks and restorability

        Raises:
            ContractViolationError: If root_cid is empty or blocks is None
            InvalidIdentifierError: If root_cid does not decode
            ValidationCancelledError: If ctx ends before the candidates are checked
        """
        ctx = ctx or background()
        self._validate_inputs(root_cid, blocks)
        root = ContentIdentifier.parse(root_cid)

        run_id = uuid.uuid4().hex[:12]
        logger.info(f"Validation started: root={root} candidates={len(blocks)} [run_id={run_id}]")

        result = ValidationResult()
        present, recorded_missing = await self._check_blocks(ctx, blocks, result)

        outcome = await self.walker.walk(ctx, root)
        for message in outcome.errors:
            result.add_error(message)
        if outcome.errors:
            # unreadable required blocks rule out a restore
            result.set_can_restore(False)

        if not outcome.ok:
            result.add_error(f"DAG traversal failed: {outcome.error}")
            result.set_can_restore(False)
            result.finalize()
            return self._finish(result, run_id)

        result.set_reachable_size(outcome.size)
        self._check_missing_required(present, recorded_missing, outcome.required, result)
        result.finalize()
        return self._finish(result, run_id)

    def _validate_inputs(self, root_cid: str, blocks: Optional[List[str]]) -> None:
        if not root_cid:
            raise ContractViolationError("root CID cannot be empty")
        if blocks is None:
            raise ContractViolationError("blocks list cannot be None")

    async def _check_blocks(
        self,
        ctx: ValidationContext,
        blocks: List[str],
        result: ValidationResult
    ) -> Tuple[Set[str], Set[str]]:
        """
        Decode and probe every candidate, in order.

        Returns:
            Tuple of (canonical CIDs found in the store,
                      canonical CIDs already recorded missing)

        Raises:
            ValidationCancelledError: If ctx ends during the check
        """
        present: Set[str] = set()
        recorded_missing: Set[str] = set()

        for cid_str in blocks:
            ctx.raise_if_cancelled()

            outcome = decode(cid_str)
            if isinstance(outcome, IdentifierDefect):
                result.add_invalid(outcome.original)
                result.add_error(str(outcome))
                logger.debug(f"Candidate {outcome.original!r} failed to decode: {outcome.reason}")
                continue

            try:
                found = await self.probe.has(ctx, outcome)
            except StoreError as e:
                result.add_error(str(e))
                logger.warning(f"Store error while checking {cid_str}: {e}")
                continue

            if found:
                present.add(str(outcome))
            else:
                result.add_missing(cid_str)
                recorded_missing.add(str(outcome))

        return present, recorded_missing

    def _check_missing_required(
        self,
        present: Set[str],
        recorded_missing: Set[str],
        required: frozenset,
        result: ValidationResult
    ) -> None:
        """Record every required block that was not supplied and found."""
        for required_cid in sorted(required):
            if required_cid not in present and required_cid not in recorded_missing:
                result.add_missing(required_cid)

    def _finish(self, result: ValidationResult, run_id: str) -> ValidationReport:
        report = result.snapshot()
        logger.info(
            f"Validation finished: complete={report.is_complete} can_restore={report.can_restore} "
            f"missing={len(report.missing_blocks)} invalid={len(report.invalid_blocks)} "
            f"errors={len(report.error_details)} reachable_size={report.reachable_size} [run_id={run_id}]"
        )
        return report
