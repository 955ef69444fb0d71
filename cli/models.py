"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal, Optional, Union


@dataclass(frozen=True)
class ValidateCommand:
    """Validate a DAG and candidate block list."""

    root: str
    blocks: tuple[str, ...]
    repo: Optional[str] = None
    timeout: Optional[float] = None
    concurrency: Optional[int] = None
    as_json: bool = False
    hash_on_read: bool = False
    command: Literal["validate"] = "validate"


@dataclass(frozen=True)
class UsageCommand:
    """Report storage usage of a block repository."""

    repo: Optional[str] = None
    as_json: bool = False
    command: Literal["usage"] = "usage"


@dataclass(frozen=True)
class ImportCommand:
    """Import a file into the repository as a dag-pb DAG."""

    path: str
    repo: Optional[str] = None
    chunk_size: Optional[int] = None
    as_json: bool = False
    command: Literal["import"] = "import"


@dataclass(frozen=True)
class ExtractCommand:
    """Restore an imported DAG to a file."""

    root: str
    path: str
    repo: Optional[str] = None
    timeout: Optional[float] = None
    overwrite: bool = False
    hash_on_read: bool = False
    as_json: bool = False
    command: Literal["extract"] = "extract"


CommandRequest = Union[ValidateCommand, UsageCommand, ImportCommand, ExtractCommand]
