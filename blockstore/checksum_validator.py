"""Multihash digest calculation and verification for stored blocks."""

import hashlib

from blockstore.cid import ContentIdentifier
from common.constants import HASH_IDENTITY, HASH_SHA2_256, HASH_SHA2_512, HASH_SHA3_256

HASH_CONSTRUCTORS = {
    HASH_SHA2_256: hashlib.sha256,
    HASH_SHA2_512: hashlib.sha512,
    HASH_SHA3_256: hashlib.sha3_256,
}


def compute_digest(data: bytes, hash_code: int = HASH_SHA2_256) -> bytes:
    """
    Compute the digest of data with the given multihash function.

    Args:
        data: Bytes to hash
        hash_code: Multihash function code

    Returns:
        Raw digest bytes

    Raises:
        ValueError: If the hash function is not supported
    """
    if hash_code == HASH_IDENTITY:
        return bytes(data)
    try:
        return HASH_CONSTRUCTORS[hash_code](data).digest()
    except KeyError:
        raise ValueError(f"unsupported multihash function 0x{hash_code:x}") from None


def verify_block(cid: ContentIdentifier, data: bytes) -> bool:
    """
    Verify that data hashes to the digest named by cid.

    Args:
        cid: Identifier the data is stored under
        data: Block payload

    Returns:
        True if the digest matches, False otherwise
    """
    return compute_digest(data, cid.hash_code) == cid.digest


class IncrementalDigestCalculator:
    """
    Calculate a multihash digest incrementally for streamed block data.

    Usage:
        calculator = IncrementalDigestCalculator(cid.hash_code)
        calculator.update(piece1)
        calculator.update(piece2)
        digest = calculator.finalize()
    """

    def __init__(self, hash_code: int = HASH_SHA2_256):
        """
        Initialize a new incremental digest calculator.

        Raises:
            ValueError: If the hash function is not supported
        """
        if hash_code == HASH_IDENTITY:
            self._buffer = bytearray()
            self._hasher = None
        elif hash_code in HASH_CONSTRUCTORS:
            self._buffer = None
            self._hasher = HASH_CONSTRUCTORS[hash_code]()
        else:
            raise ValueError(f"unsupported multihash function 0x{hash_code:x}")
        self._finalized = False

    def update(self, data: bytes) -> None:
        """
        Update digest with new data.

        Args:
            data: Bytes to add to digest calculation
        """
        if self._finalized:
            raise ValueError("Cannot update after finalization")
        if self._hasher is None:
            self._buffer.extend(data)
        else:
            self._hasher.update(data)

    def finalize(self) -> bytes:
        """
        Finalize digest calculation and return result.

        Returns:
            Raw digest bytes
        """
        self._finalized = True
        if self._hasher is None:
            return bytes(self._buffer)
        return self._hasher.digest()
