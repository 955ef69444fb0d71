"""Binary/text encodings used by content identifiers (base58btc, base32, varint)."""

import base64
from typing import Tuple

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
BASE58_INDEX = {char: index for index, char in enumerate(BASE58_ALPHABET)}

# Unsigned varints longer than 9 bytes cannot fit in 63 bits.
MAX_VARINT_BYTES = 9


def b58encode(data: bytes) -> str:
    """
    Encode bytes as base58btc.

    Args:
        data: Raw bytes

    Returns:
        Base58btc string (leading zero bytes map to '1')
    """
    number = int.from_bytes(data, "big")
    encoded = []
    while number > 0:
        number, remainder = divmod(number, 58)
        encoded.append(BASE58_ALPHABET[remainder])

    leading_zeros = len(data) - len(data.lstrip(b"\x00"))
    return "1" * leading_zeros + "".join(reversed(encoded))


def b58decode(text: str) -> bytes:
    """
    Decode a base58btc string.

    Args:
        text: Base58btc string

    Returns:
        Decoded bytes

    Raises:
        ValueError: If text contains characters outside the alphabet
    """
    number = 0
    for char in text:
        try:
            number = number * 58 + BASE58_INDEX[char]
        except KeyError:
            raise ValueError(f"invalid base58 character {char!r}") from None

    leading_ones = len(text) - len(text.lstrip("1"))
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    return b"\x00" * leading_ones + body


def b32encode_lower(data: bytes) -> str:
    """Encode bytes as lowercase, unpadded RFC 4648 base32."""
    return base64.b32encode(data).decode("ascii").rstrip("=").lower()


def b32decode_lower(text: str) -> bytes:
    """
    Decode lowercase (or uppercase), unpadded RFC 4648 base32.

    Raises:
        ValueError: If text is not valid base32
    """
    if not text.isascii():
        raise ValueError("base32 text must be ASCII")
    padding = "=" * (-len(text) % 8)
    try:
        return base64.b32decode(text.upper() + padding)
    except ValueError as e:
        raise ValueError(f"invalid base32: {e}") from None


def encode_varint(value: int) -> bytes:
    """
    Encode a non-negative integer as an unsigned LEB128 varint.

    Raises:
        ValueError: If value is negative
    """
    if value < 0:
        raise ValueError("varint cannot be negative")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_varint(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """
    Decode an unsigned varint.

    Args:
        data: Buffer holding the varint
        offset: Position of the first varint byte

    Returns:
        Tuple of (value, offset just past the varint)

    Raises:
        ValueError: If the varint is truncated, overlong or not minimally encoded
    """
    value = 0
    shift = 0
    position = offset
    while True:
        if position >= len(data):
            raise ValueError("truncated varint")
        if position - offset >= MAX_VARINT_BYTES:
            raise ValueError("varint too long")
        byte = data[position]
        position += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            if byte == 0 and position - offset > 1:
                raise ValueError("varint not minimally encoded")
            return value, position
        shift += 7
