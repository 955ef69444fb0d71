"""
Content identifier (CID) codec.

A CID names a block by the multihash of its content plus a codec tag. Two
textual forms are supported:

- CIDv0: base58btc of a sha2-256 multihash, always 46 characters starting
  with "Qm", implicitly dag-pb.
- CIDv1: a multibase prefix ("b"/"B" base32, "z" base58btc) followed by
  varint(version) varint(codec) multihash. Canonical text is lowercase base32.

decode() never raises: malformed input yields an IdentifierDefect that
carries the original string.
"""

import hashlib
from dataclasses import dataclass
from typing import Tuple, Union

from blockstore.encoding import (
    b32decode_lower,
    b32encode_lower,
    b58decode,
    b58encode,
    decode_varint,
    encode_varint,
)
from common.constants import (
    CIDV0_LENGTH,
    CIDV0_PREFIX,
    CODEC_DAG_PB,
    CODEC_NAMES,
    HASH_DIGEST_LENGTHS,
    HASH_IDENTITY,
    HASH_SHA2_256,
    MAX_IDENTITY_DIGEST_LENGTH,
    MULTIBASE_BASE32,
    MULTIBASE_BASE58BTC,
)
from common.exceptions import InvalidIdentifierError


@dataclass(frozen=True)
class ContentIdentifier:
    """
    Parsed, immutable content identifier.

    Attributes:
        version: CID version (0 or 1)
        codec: Multicodec code of the addressed content
        multihash: Full multihash bytes (hash code, length, digest)
    """
    version: int
    codec: int
    multihash: bytes

    @property
    def hash_code(self) -> int:
        """Multihash function code."""
        return _parse_multihash(self.multihash, 0)[0]

    @property
    def digest(self) -> bytes:
        """Raw digest bytes of the multihash."""
        _, length, end = _parse_multihash(self.multihash, 0)
        return self.multihash[end - length:end]

    def to_bytes(self) -> bytes:
        """Binary CID form."""
        if self.version == 0:
            return self.multihash
        return encode_varint(self.version) + encode_varint(self.codec) + self.multihash

    def encode(self) -> str:
        """Canonical string form."""
        if self.version == 0:
            return b58encode(self.multihash)
        return MULTIBASE_BASE32 + b32encode_lower(self.to_bytes())

    def key(self) -> str:
        """
        Storage key derived from the multihash only.

        CIDv0 and CIDv1 forms of the same content share a key, the way
        multihash-keyed blockstores lay blocks out on disk.
        """
        return b32encode_lower(self.multihash).upper()

    def __str__(self) -> str:
        return self.encode()

    @classmethod
    def parse(cls, text: str) -> 'ContentIdentifier':
        """
        Decode a CID string, raising on failure.

        Args:
            text: CID string

        Returns:
            ContentIdentifier

        Raises:
            InvalidIdentifierError: If text is not a valid CID
        """
        outcome = decode(text)
        if isinstance(outcome, IdentifierDefect):
            raise InvalidIdentifierError(outcome.original, outcome.reason)
        return outcome

    @classmethod
    def from_bytes(cls, data: bytes) -> 'ContentIdentifier':
        """
        Decode the binary CID form.

        Raises:
            ValueError: If data is not a valid binary CID
        """
        if len(data) == 34 and data[0] == HASH_SHA2_256 and data[1] == 32:
            return cls(version=0, codec=CODEC_DAG_PB, multihash=bytes(data))

        version, offset = decode_varint(data, 0)
        if version != 1:
            raise ValueError(f"unsupported CID version {version}")
        codec, offset = decode_varint(data, offset)
        _, _, end = _parse_multihash(data, offset)
        if end != len(data):
            raise ValueError(f"{len(data) - end} trailing bytes after multihash")
        return cls(version=1, codec=codec, multihash=bytes(data[offset:end]))


@dataclass(frozen=True)
class IdentifierDefect:
    """
    Decode failure for a CID string.

    Attributes:
        original: The string that failed to decode
        reason: Human-readable failure reason
    """
    original: str
    reason: str

    def __str__(self) -> str:
        return f"invalid CID: {self.original}"


def _parse_multihash(data: bytes, offset: int) -> Tuple[int, int, int]:
    """
    Parse a multihash header and bounds-check its digest.

    Returns:
        Tuple of (hash code, digest length, offset just past the digest)

    Raises:
        ValueError: If the multihash is malformed
    """
    code, offset = decode_varint(data, offset)
    length, offset = decode_varint(data, offset)

    if code == HASH_IDENTITY:
        if length > MAX_IDENTITY_DIGEST_LENGTH:
            raise ValueError(f"identity digest too long ({length} bytes)")
    elif code in HASH_DIGEST_LENGTHS and length != HASH_DIGEST_LENGTHS[code]:
        raise ValueError(
            f"digest length {length} does not match hash 0x{code:x} "
            f"(expected {HASH_DIGEST_LENGTHS[code]})"
        )

    end = offset + length
    if end > len(data):
        raise ValueError("multihash digest truncated")
    return code, length, end


def _decode_v0(text: str) -> ContentIdentifier:
    multihash = b58decode(text)
    if len(multihash) != 34 or multihash[0] != HASH_SHA2_256 or multihash[1] != 32:
        raise ValueError("CIDv0 must be a sha2-256 multihash")
    return ContentIdentifier(version=0, codec=CODEC_DAG_PB, multihash=multihash)


def decode(text: str) -> Union[ContentIdentifier, IdentifierDefect]:
    """
    Decode a CID string without raising.

    Args:
        text: Candidate CID string (any input is accepted)

    Returns:
        ContentIdentifier on success, IdentifierDefect otherwise
    """
    if not isinstance(text, str):
        return IdentifierDefect(original=repr(text), reason="CID must be a string")
    if not text:
        return IdentifierDefect(original=text, reason="empty CID")

    try:
        if len(text) == CIDV0_LENGTH and text.startswith(CIDV0_PREFIX):
            return _decode_v0(text)

        prefix, body = text[0], text[1:]
        if not body:
            raise ValueError("CID body is empty")
        if prefix in (MULTIBASE_BASE32, MULTIBASE_BASE32.upper()):
            if body != body.lower() and body != body.upper():
                raise ValueError("mixed-case base32")
            raw = b32decode_lower(body)
        elif prefix == MULTIBASE_BASE58BTC:
            raw = b58decode(body)
        else:
            raise ValueError(f"unsupported multibase prefix {prefix!r}")

        cid = ContentIdentifier.from_bytes(raw)
        if cid.version == 0:
            raise ValueError("CIDv0 cannot carry a multibase prefix")
        return cid
    except ValueError as e:
        return IdentifierDefect(original=text, reason=str(e))


def resolve_codec(codec: Union[int, str]) -> int:
    """
    Resolve a codec name or code to its multicodec code.

    Raises:
        ValueError: If the codec name is unknown
    """
    if isinstance(codec, int):
        return codec
    try:
        return CODEC_NAMES[codec]
    except KeyError:
        raise ValueError(f"unknown codec {codec!r}") from None


def compute_cid(data: bytes, version: int = 0, codec: Union[int, str] = "dag-pb") -> ContentIdentifier:
    """
    Compute the sha2-256 content identifier of a payload.

    Args:
        data: Block payload
        version: CID version (0 or 1)
        codec: Codec name or multicodec code (CIDv0 requires dag-pb)

    Returns:
        ContentIdentifier naming the payload

    Raises:
        ValueError: If version/codec combination is not representable
    """
    codec_code = resolve_codec(codec)
    digest = hashlib.sha256(data).digest()
    multihash = encode_varint(HASH_SHA2_256) + encode_varint(len(digest)) + digest

    if version == 0:
        if codec_code != CODEC_DAG_PB:
            raise ValueError("CIDv0 only supports the dag-pb codec")
        return ContentIdentifier(version=0, codec=CODEC_DAG_PB, multihash=multihash)
    if version == 1:
        return ContentIdentifier(version=1, codec=codec_code, multihash=multihash)
    raise ValueError(f"unsupported CID version {version}")
