"""Kasplex bridge envelope parsing.

The parser walks an arbitrary script (typically a signature script that
reveals the redeem script) looking for the envelope:

1. find the ``"kasplex"`` tag anywhere in the script
2. scan forward for the EXTRA lane selector (OP_1) and read its push
3. decode the routing blob, current CBOR format first, legacy layout second
4. scan forward for the CONTENT lane selector (OP_0) and read its push
5. decode the KRC-20 JSON

Structural problems (missing tag, unsupported framing, pushes that run off
the end of the script) raise :class:`ParseError`. Undecodable lane contents
only add warnings, so one bad lane never hides the other.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Type, Union

import cbor2

from mcp_kasplex_bridge.envelope import (
    ENVELOPE_TAG,
    L2_ADDRESS_LENGTH,
    SIGNATURE_LENGTH,
    LegacyRoutingBlob,
    RoutingBlob,
)
from mcp_kasplex_bridge.errors import (
    CborDecodeError,
    ContentOutOfBoundsError,
    ExtraMarkerNotFoundError,
    ExtraOutOfBoundsError,
    MarkerNotFoundError,
    ParseError,
    TruncatedInputError,
    TruncatedScriptError,
    UnsupportedFramingError,
    UnsupportedPushOpcodeError,
)
from mcp_kasplex_bridge.primitives import OP_0, OP_1, read_push
from mcp_kasplex_bridge.protocols.krc20 import KRC20Payload, KRC20Protocol

logger = logging.getLogger(__name__)

# version (1) + chain id (4) + bridge id (4) + address (20)
LEGACY_BLOB_MIN_LENGTH = 29

CURRENT_BLOB_KEYS = frozenset({"v", "c", "l", "s"})


class RoutingFormat(str, Enum):
    """Which routing blob format matched."""

    CURRENT = "current"
    LEGACY = "legacy"
    UNDECODABLE = "undecodable"


@dataclass(frozen=True)
class RoutingLane:
    """Decoded EXTRA lane."""

    format: RoutingFormat
    raw: bytes
    blob: Optional[Union[RoutingBlob, LegacyRoutingBlob]] = None

    @property
    def chain_id(self) -> Optional[int]:
        return self.blob.chain_id if self.blob is not None else None

    def to_dict(self) -> dict:
        result: dict[str, Any] = {
            "format": self.format.value,
            "raw_hex": self.raw.hex(),
            "length": len(self.raw),
        }
        if isinstance(self.blob, RoutingBlob):
            result.update({
                "version": self.blob.version,
                "chain_id": self.blob.chain_id,
                "l2_address": "0x" + self.blob.l2_address.hex(),
                "signature": "0x" + self.blob.signature.hex(),
            })
        elif isinstance(self.blob, LegacyRoutingBlob):
            result.update({
                "version": self.blob.version,
                "chain_id": self.blob.chain_id,
                "bridge_id": self.blob.bridge_id,
                "l2_address": "0x" + self.blob.l2_address.hex(),
            })
        return result


@dataclass
class ParsedEnvelope:
    """Everything recovered from a script.

    ``routing`` is None when the envelope has no EXTRA lane. ``transfer`` is
    None when there is no CONTENT lane or its text is not a valid KRC-20
    payload; in the latter case ``content_raw`` still holds the bytes.
    """

    marker_offset: int
    routing: Optional[RoutingLane] = None
    content_raw: Optional[bytes] = None
    content_text: Optional[str] = None
    transfer: Optional[KRC20Payload] = None
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def to_dict(self) -> dict:
        content = None
        if self.content_raw is not None:
            content = {
                "raw_hex": self.content_raw.hex(),
                "text": self.content_text,
                "transfer": self.transfer.to_dict() if self.transfer else None,
            }
        return {
            "marker_offset": self.marker_offset,
            "routing": self.routing.to_dict() if self.routing else None,
            "content": content,
            "warnings": list(self.warnings),
        }


# =============================================================================
# Routing blob decoding
# =============================================================================


def decode_current_blob(extra: bytes) -> RoutingBlob:
    """Decode the CBOR ``{v, c, l, s}`` routing blob.

    Any standard CBOR encoding of that map is accepted.

    Raises:
        CborDecodeError: If the bytes are not exactly that map
    """
    try:
        value = cbor2.loads(extra)
    except cbor2.CBORDecodeError as e:
        raise CborDecodeError(f"Invalid CBOR: {e}") from e

    if not isinstance(value, dict):
        raise CborDecodeError(f"Routing blob must be a map, got {type(value).__name__}")
    if set(value) != CURRENT_BLOB_KEYS:
        raise CborDecodeError(f"Unexpected routing blob keys: {sorted(map(str, value))}")

    version, chain_id, l2_address, signature = (value[k] for k in ("v", "c", "l", "s"))
    for name, number in (("v", version), ("c", chain_id)):
        if isinstance(number, bool) or not isinstance(number, int) or number < 0:
            raise CborDecodeError(f"Routing blob {name} must be a non-negative integer")
    if not isinstance(l2_address, bytes) or len(l2_address) != L2_ADDRESS_LENGTH:
        raise CborDecodeError(f"Routing blob l must be {L2_ADDRESS_LENGTH} bytes")
    if not isinstance(signature, bytes) or len(signature) != SIGNATURE_LENGTH:
        raise CborDecodeError(f"Routing blob s must be {SIGNATURE_LENGTH} bytes")

    return RoutingBlob(
        chain_id=chain_id,
        l2_address=l2_address,
        signature=signature,
        version=version,
    )


def decode_legacy_blob(extra: bytes) -> LegacyRoutingBlob:
    """Decode the fixed legacy layout.

    Layout: version (u8) | chain id (u32 LE) | bridge id (u32 LE) | address (20).
    Bytes beyond offset 29 are ignored.
    """
    if len(extra) < LEGACY_BLOB_MIN_LENGTH:
        raise ValueError(
            f"Legacy routing blob needs at least {LEGACY_BLOB_MIN_LENGTH} bytes, got {len(extra)}"
        )
    return LegacyRoutingBlob(
        version=extra[0],
        chain_id=int.from_bytes(extra[1:5], "little"),
        bridge_id=int.from_bytes(extra[5:9], "little"),
        l2_address=bytes(extra[9:29]),
    )


def decode_routing_blob(extra: bytes) -> RoutingLane:
    """Classify and decode EXTRA lane bytes.

    Never raises; bytes that match neither format come back as
    ``RoutingFormat.UNDECODABLE``.
    """
    extra = bytes(extra)
    try:
        return RoutingLane(RoutingFormat.CURRENT, extra, decode_current_blob(extra))
    except CborDecodeError as e:
        logger.debug("Routing blob is not current format: %s", e)

    if len(extra) >= LEGACY_BLOB_MIN_LENGTH:
        return RoutingLane(RoutingFormat.LEGACY, extra, decode_legacy_blob(extra))

    return RoutingLane(RoutingFormat.UNDECODABLE, extra)


# =============================================================================
# Script walking
# =============================================================================


def _read_lane(
    script: bytes,
    pos: int,
    stage: str,
    out_of_bounds: Type[ParseError],
    partial: ParsedEnvelope,
) -> tuple[bytes, int]:
    try:
        return read_push(script, pos)
    except UnsupportedPushOpcodeError as e:
        raise UnsupportedFramingError(
            f"{stage.upper()} lane: unsupported push opcode {e.opcode:#04x}",
            stage, e.position, partial,
        ) from e
    except TruncatedInputError as e:
        if e.field == "payload":
            raise out_of_bounds(
                f"{stage.upper()} data extends beyond script boundary "
                f"(declared {e.expected} bytes, {e.available} available)",
                stage, e.position, partial,
            ) from e
        raise TruncatedScriptError(
            f"{stage.upper()} lane: script ends inside length prefix",
            stage, e.position, partial,
        ) from e


def _decode_content(result: ParsedEnvelope, content: bytes) -> None:
    result.content_raw = content
    try:
        result.content_text = content.decode("utf-8")
    except UnicodeDecodeError as e:
        result.warn(f"CONTENT lane is not valid UTF-8: {e}")
        return

    try:
        result.transfer = KRC20Protocol.parse(result.content_text)
    except (ValueError, RecursionError) as e:
        result.warn(f"CONTENT lane is not a valid KRC-20 payload: {e}")


def parse_bridge_script(script: bytes) -> ParsedEnvelope:
    """Locate and decode the bridge envelope in ``script``.

    Args:
        script: Raw script bytes

    Returns:
        ParsedEnvelope with whatever lanes were present

    Raises:
        ParseError: On structural failures. ``error.partial`` holds the
            lanes decoded before the failure.
    """
    script = bytes(script)

    tag_pos = script.find(ENVELOPE_TAG)
    if tag_pos < 0:
        raise MarkerNotFoundError(
            "Kasplex envelope not found in script", "marker", len(script)
        )
    logger.debug("Found envelope tag at offset %d", tag_pos)

    result = ParsedEnvelope(marker_offset=tag_pos)
    pos = tag_pos + len(ENVELOPE_TAG)

    if pos < len(script) and script[pos] == OP_0:
        # CONTENT selector directly after the tag: no EXTRA lane
        logger.debug("Envelope has no EXTRA lane")
    else:
        extra_marker = script.find(bytes([OP_1]), pos)
        if extra_marker < 0:
            raise ExtraMarkerNotFoundError(
                "EXTRA marker (0x51) not found", "extra", len(script), result
            )
        logger.debug("Found EXTRA marker at offset %d", extra_marker)

        extra, pos = _read_lane(script, extra_marker + 1, "extra", ExtraOutOfBoundsError, result)
        result.routing = decode_routing_blob(extra)
        if result.routing.format == RoutingFormat.UNDECODABLE:
            result.warn(
                f"EXTRA lane ({len(extra)} bytes) matches neither the CBOR "
                f"nor the legacy routing format"
            )

    content_marker = script.find(bytes([OP_0]), pos)
    if content_marker < 0:
        logger.debug("No CONTENT marker after offset %d", pos)
        return result
    logger.debug("Found CONTENT marker at offset %d", content_marker)

    content, _ = _read_lane(script, content_marker + 1, "content", ContentOutOfBoundsError, result)
    _decode_content(result, content)
    return result
