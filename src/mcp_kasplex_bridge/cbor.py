"""Compact binary (CBOR subset) encoding for the routing blob.

The writer emits only what the routing blob needs: unsigned integers below
2**32, byte strings, text keys and small maps, always in the shortest form.
Reading is left to ``cbor2`` so blobs produced by general-purpose CBOR
writers (e.g. ``0xb9 0x00 0x04`` map headers, self-describe tags) decode too.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Type, Union

from mcp_kasplex_bridge.errors import EncodingError

# Major types
MAJOR_UINT = 0
MAJOR_BYTES = 2
MAJOR_TEXT = 3
MAJOR_MAP = 5

MAX_UINT = 0xFFFFFFFF
MAX_STRING_LENGTH = 0xFFFF
MAX_MAP_ENTRIES = 23

BlobValue = Union[int, bytes, Mapping[str, Any]]


def _header(major: int, length: int) -> bytes:
    """Encode a major type and its argument in the shortest form."""
    if length < 24:
        return bytes([(major << 5) | length])
    elif length < 0x100:
        return bytes([(major << 5) | 24, length])
    elif length < 0x10000:
        return bytes([(major << 5) | 25]) + length.to_bytes(2, "big")
    elif length <= MAX_UINT:
        return bytes([(major << 5) | 26]) + length.to_bytes(4, "big")
    raise EncodingError(f"Value too large for compact encoding: {length}")


def encode_uint(value: int) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingError(f"Expected integer, got {type(value).__name__}")
    if value < 0:
        raise EncodingError(f"Negative integers are not supported: {value}")
    return _header(MAJOR_UINT, value)


def encode_bytes(value: bytes) -> bytes:
    if len(value) > MAX_STRING_LENGTH:
        raise EncodingError(f"Byte string too long: {len(value)} bytes")
    return _header(MAJOR_BYTES, len(value)) + bytes(value)


def encode_text(value: str) -> bytes:
    raw = value.encode("utf-8")
    if len(raw) > 0xFF:
        raise EncodingError(f"Key too long: {len(raw)} bytes")
    return _header(MAJOR_TEXT, len(raw)) + raw


def encode_value(value: BlobValue) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return encode_bytes(value)
    if isinstance(value, Mapping):
        return encode_map(value)
    return encode_uint(value)


def encode_map(value: Mapping[str, BlobValue]) -> bytes:
    """Encode a string-keyed map, preserving key order."""
    if len(value) > MAX_MAP_ENTRIES:
        raise EncodingError(f"Too many map entries: {len(value)}")

    parts = [bytes([(MAJOR_MAP << 5) | len(value)])]
    for key, item in value.items():
        if not isinstance(key, str):
            raise EncodingError(f"Map keys must be strings, got {type(key).__name__}")
        parts.append(encode_text(key))
        parts.append(encode_value(item))
    return b"".join(parts)


class BlobEncoder(ABC):
    """Strategy for serializing the routing blob map."""

    name: str = ""

    @abstractmethod
    def encode(self, value: Mapping[str, BlobValue]) -> bytes:
        """Serialize a string-keyed map to bytes."""
        pass  # pragma: no cover


class CompactCborEncoder(BlobEncoder):
    """Minimal, canonical CBOR writer."""

    name = "compact-cbor"

    def encode(self, value: Mapping[str, BlobValue]) -> bytes:
        return encode_map(value)


BLOB_ENCODERS: Dict[str, Type[BlobEncoder]] = {
    CompactCborEncoder.name: CompactCborEncoder,
}


def get_encoder(name: str) -> BlobEncoder:
    """Instantiate the blob encoder registered under ``name``.

    Raises:
        ValueError: If no encoder has that name
    """
    try:
        return BLOB_ENCODERS[name]()
    except KeyError:
        known = ", ".join(sorted(BLOB_ENCODERS))
        raise ValueError(f"Unknown blob encoder: {name!r} (available: {known})") from None

