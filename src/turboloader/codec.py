"""
PolyTrack Alphabet Codec

Reversible mapping between raw bytes and strings over the 62-character
PolyTrack alphabet (A-Z, a-z, 0-9).

Each symbol carries 6 bits, except symbols whose index has bits 1-4 set
(indices 30 and 31), which carry only their low 5 bits. Since 62 is not a
power of two, the 6-bit extensions of 30/31 (62/63) have no symbol of their
own; shortening them keeps the stream prefix-free without a length table.

Bits are packed least-significant-bit first.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType

# Index -> symbol
ALPHABET = tuple("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789")
ALPHABET_SIZE = len(ALPHABET)  # 62

# Reverse lookup table for decoding
ALPHABET_MAP = MappingProxyType({char: idx for idx, char in enumerate(ALPHABET)})

_SHORT_MASK = 0b11110


class DecodeErrorKind(Enum):
    """Reasons a codec call can fail."""

    INVALID_SYMBOL = "invalid_symbol"


class DecodeError(ValueError):
    """Raised when a string cannot be unpacked into bytes."""

    def __init__(self, kind: DecodeErrorKind, message: str, position: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.position = position


def _is_short(value: int) -> bool:
    return value & _SHORT_MASK == _SHORT_MASK


def symbol_width(index: int) -> int:
    """Number of bits an alphabet index occupies in the packed stream (5 or 6)."""
    if not 0 <= index < ALPHABET_SIZE:
        raise ValueError(f"Alphabet index out of range: {index}")
    return 5 if _is_short(index) else 6


def _write_bits(buffer: bytearray, bit_offset: int, num_bits: int, value: int, is_last: bool) -> None:
    byte_index = bit_offset // 8
    while byte_index >= len(buffer):
        buffer.append(0)

    bit_pos = bit_offset - 8 * byte_index
    buffer[byte_index] |= (value << bit_pos) & 0xFF

    # High bits spill into the next byte; the final symbol never allocates one
    if bit_pos > 8 - num_bits and not is_last:
        if byte_index + 1 >= len(buffer):
            buffer.append(0)
        buffer[byte_index + 1] |= value >> (8 - bit_pos)


def _read_window(data: bytes, bit_offset: int) -> int:
    byte_index = bit_offset // 8
    if byte_index >= len(data):
        return 0

    bit_pos = bit_offset - 8 * byte_index
    value = data[byte_index] >> bit_pos
    if byte_index + 1 < len(data) and bit_pos > 2:
        value |= data[byte_index + 1] << (8 - bit_pos)

    return value & 0x3F


def decode(text: str) -> bytes:
    """
    Unpack an alphabet string into bytes.

    Args:
        text: String made of alphabet symbols

    Returns:
        The packed bytes (empty for empty input)

    Raises:
        DecodeError: If a character is not part of the alphabet
    """
    buffer = bytearray()
    bit_offset = 0
    last = len(text) - 1

    for position, char in enumerate(text):
        value = ALPHABET_MAP.get(char)
        if value is None:
            raise DecodeError(
                DecodeErrorKind.INVALID_SYMBOL,
                f"Invalid character {char!r} at position {position}",
                position,
            )

        if _is_short(value):
            _write_bits(buffer, bit_offset, 5, value & 0x1F, position == last)
            bit_offset += 5
        else:
            _write_bits(buffer, bit_offset, 6, value, position == last)
            bit_offset += 6

    return bytes(buffer)


def encode(data: bytes) -> str:
    """
    Pack bytes into an alphabet string.

    Args:
        data: Raw bytes

    Returns:
        Alphabet string that decodes back to ``data``
    """
    chars = []
    bit_offset = 0
    total_bits = 8 * len(data)

    while bit_offset < total_bits:
        window = _read_window(data, bit_offset)
        if _is_short(window):
            chars.append(ALPHABET[window & 0x1F])
            bit_offset += 5
        else:
            chars.append(ALPHABET[window])
            bit_offset += 6

    return "".join(chars)


def try_decode(text: str) -> bytes | None:
    """Decode, returning None instead of raising on invalid symbols."""
    try:
        return decode(text)
    except DecodeError:
        return None
