"""Thread-safe accumulator for the findings of one validation run."""

import threading
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Tuple


@dataclass(frozen=True)
class ValidationReport:
    """
    Immutable snapshot of a finished validation run.

    Attributes:
        is_complete: No block is missing or invalid
        missing_blocks: Identifiers required or supplied but absent from the store
        invalid_blocks: Supplied strings that failed identifier decoding
        reachable_size: Bytes of all distinct blocks reachable from the root
        can_restore: Advisory verdict that the DAG can be reconstructed
        error_details: Free-form diagnostics in the order they were recorded
    """
    is_complete: bool
    missing_blocks: Tuple[str, ...]
    invalid_blocks: Tuple[str, ...]
    reachable_size: int
    can_restore: bool
    error_details: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-friendly dict."""
        data = asdict(self)
        for key in ('missing_blocks', 'invalid_blocks', 'error_details'):
            data[key] = list(data[key])
        return data


class ValidationResult:
    """
    Mutable record shared by the orchestrator and traversal workers.

    A single lock guards every field. can_restore starts optimistic and is
    only ever lowered: once set false it stays false.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.is_complete = False
        self.missing_blocks: List[str] = []
        self.invalid_blocks: List[str] = []
        self.reachable_size = 0
        self.can_restore = True
        self.error_details: List[str] = []

    def add_missing(self, cid: str) -> None:
        with self._lock:
            self.missing_blocks.append(cid)

    def add_invalid(self, cid: str) -> None:
        with self._lock:
            self.invalid_blocks.append(cid)

    def add_error(self, message: str) -> None:
        with self._lock:
            self.error_details.append(message)

    def set_can_restore(self, can_restore: bool) -> None:
        with self._lock:
            self.can_restore = can_restore

    def set_reachable_size(self, size: int) -> None:
        with self._lock:
            self.reachable_size = size

    def finalize(self) -> None:
        """
        Derive is_complete from the missing/invalid lists and lower
        can_restore to match. Safe to call any number of times.
        """
        with self._lock:
            self.is_complete = not self.missing_blocks and not self.invalid_blocks
            if self.can_restore:
                self.can_restore = self.is_complete

    def snapshot(self) -> ValidationReport:
        """Copy the current state into an immutable report."""
        with self._lock:
            return ValidationReport(
                is_complete=self.is_complete,
                missing_blocks=tuple(self.missing_blocks),
                invalid_blocks=tuple(self.invalid_blocks),
                reachable_size=self.reachable_size,
                can_restore=self.can_restore,
                error_details=tuple(self.error_details),
            )
