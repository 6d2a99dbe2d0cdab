"""Script opcodes and push-data length framing.

Pushes are limited to OP_PUSHDATA2, i.e. at most 65535 bytes per push.
Redeem scripts themselves are capped at 520 bytes.
"""

from typing import Tuple

from mcp_kasplex_bridge.errors import (
    EncodingError,
    PayloadTooLargeError,
    TruncatedInputError,
    UnsupportedPushOpcodeError,
)

# Script opcodes
OP_FALSE = 0x00
OP_0 = OP_FALSE
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_1 = 0x51
OP_IF = 0x63
OP_ENDIF = 0x68
OP_CHECKSIG = 0xAC

MAX_DIRECT_PUSH = 0x4B
MAX_PUSH_SIZE = 0xFFFF
MAX_SCRIPT_SIZE = 520


def encode_push_length(length: int) -> bytes:
    """Encode the push prefix for a payload of ``length`` bytes.

    Uses the smallest push opcode that fits:
    - <= 75 bytes: direct push (1 byte length)
    - 76-255 bytes: OP_PUSHDATA1 (1 byte length)
    - 256-65535 bytes: OP_PUSHDATA2 (2 byte length, little-endian)

    Raises:
        PayloadTooLargeError: If length exceeds 65535
        EncodingError: If length is negative
    """
    if length < 0:
        raise EncodingError(f"Push length cannot be negative: {length}")

    if length <= MAX_DIRECT_PUSH:
        return bytes([length])
    elif length <= 0xFF:
        return bytes([OP_PUSHDATA1, length])
    elif length <= MAX_PUSH_SIZE:
        return bytes([OP_PUSHDATA2]) + length.to_bytes(2, "little")
    else:
        raise PayloadTooLargeError(length, MAX_PUSH_SIZE)


def encode_push(data: bytes) -> bytes:
    """Frame ``data`` as a single script push."""
    return encode_push_length(len(data)) + bytes(data)


def decode_push_length(script: bytes, pos: int) -> Tuple[int, int]:
    """Decode the push prefix starting at ``pos``.

    Args:
        script: Script bytes
        pos: Offset of the push opcode

    Returns:
        Tuple of (payload length, number of prefix bytes consumed). The
        payload starts at ``pos + consumed``.

    Raises:
        UnsupportedPushOpcodeError: If the opcode is not a supported push
        TruncatedInputError: If the prefix or the declared payload runs past
            the end of ``script``
    """
    if pos >= len(script):
        raise TruncatedInputError("length", pos, 1, 0)

    push_byte = script[pos]

    if push_byte <= MAX_DIRECT_PUSH:
        length = push_byte
        consumed = 1
    elif push_byte == OP_PUSHDATA1:
        if pos + 2 > len(script):
            raise TruncatedInputError("length", pos, 2, len(script) - pos)
        length = script[pos + 1]
        consumed = 2
    elif push_byte == OP_PUSHDATA2:
        if pos + 3 > len(script):
            raise TruncatedInputError("length", pos, 3, len(script) - pos)
        length = int.from_bytes(script[pos + 1:pos + 3], "little")
        consumed = 3
    else:
        raise UnsupportedPushOpcodeError(push_byte, pos)

    start = pos + consumed
    if start + length > len(script):
        raise TruncatedInputError("payload", start, length, len(script) - start)

    return length, consumed


def read_push(script: bytes, pos: int) -> Tuple[bytes, int]:
    """Read one push starting at ``pos``.

    Returns:
        Tuple of (payload, offset just past the payload)
    """
    length, consumed = decode_push_length(script, pos)
    start = pos + consumed
    return bytes(script[start:start + length]), start + length


def bytes_from_hex(value: str) -> bytes:
    """Decode a hex string, with or without a ``0x`` prefix.

    Raises:
        ValueError: If the string is not valid hex
    """
    text = value.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise ValueError(f"Invalid hex string: {e}") from e
