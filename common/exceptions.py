"""Custom exception classes for the block store and validator."""

from typing import Optional


class BlockCheckException(Exception):
    """
    Base exception class for all blockcheck errors.
    """
    pass


class ContractViolationError(BlockCheckException):
    """
    Raised when a caller passes input that cannot be validated at all
    (empty root, absent candidate list).
    """
    pass


class InvalidIdentifierError(ContractViolationError):
    """
    Raised when a content identifier string cannot be decoded.
    """

    def __init__(self, identifier: str, reason: str):
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"invalid CID {identifier!r}: {reason}")


class ValidationCancelledError(BlockCheckException):
    """
    Raised when the validation context is cancelled or its deadline passes.
    """
    pass


class StoreError(BlockCheckException):
    """
    Raised when the block store fails to answer a query for an identifier.
    """

    def __init__(self, message: str, cid: Optional[str] = None):
        self.cid = cid
        super().__init__(message)


class BlockNotFoundError(StoreError):
    """
    Raised when a block is not present in the store.
    """

    def __init__(self, cid: str):
        super().__init__(f"block not found: {cid}", cid=cid)


class ChecksumMismatchError(StoreError):
    """
    Raised when stored block data does not hash to its identifier.
    """

    def __init__(self, cid: str, actual: str):
        self.actual = actual
        super().__init__(f"block {cid} failed digest verification (got {actual})", cid=cid)


class TraversalError(BlockCheckException):
    """
    Raised when the DAG walk cannot complete.
    """
    pass


class LinkDecodeError(BlockCheckException):
    """
    Raised when a block does not decode as link-structured data.
    """
    pass


class ExtractionError(BlockCheckException):
    """
    Raised when a DAG cannot be restored to the filesystem.
    """
    pass


class PathExistsError(ExtractionError):
    """
    Raised when the extraction target exists and overwriting is not allowed.
    """

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"{path} already exists and overwriting is not allowed")


class PathTraversalError(ExtractionError):
    """
    Raised when the extraction target resolves outside of where it was asked
    to be written, for example through a symlink.
    """

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"extraction path escapes its target: {path}")


class UnsupportedLayoutError(ExtractionError):
    """
    Raised when a DAG node is not part of a chunked file layout.
    """
    pass
