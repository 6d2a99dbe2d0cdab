"""Kasplex bridge envelope construction.

The envelope is appended to a single-signer redeem script:

    <pubkey> OP_CHECKSIG
    OP_FALSE OP_IF <"kasplex">
      OP_1 <routing blob>        (EXTRA lane)
      OP_0 <KRC-20 JSON>         (CONTENT lane)
    OP_ENDIF

The routing blob is a compact CBOR map ``{v, c, l, s}`` carrying the
destination chain id, the 20-byte L2 address and a 64-byte r||s signature.
Both the envelope and the whole redeem script must fit in 520 bytes.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from mcp_kasplex_bridge.cbor import BlobEncoder, CompactCborEncoder
from mcp_kasplex_bridge.errors import (
    BuildError,
    EnvelopeTooLargeError,
    InvalidFieldLengthError,
    MissingRequiredParameterError,
    RedeemTooLargeError,
)
from mcp_kasplex_bridge.primitives import (
    MAX_SCRIPT_SIZE,
    OP_0,
    OP_1,
    OP_CHECKSIG,
    OP_ENDIF,
    OP_FALSE,
    OP_IF,
    encode_push,
)
from mcp_kasplex_bridge.protocols.base import Protocol

logger = logging.getLogger(__name__)

ENVELOPE_TAG = b"kasplex"
ROUTING_BLOB_VERSION = 1

L2_ADDRESS_LENGTH = 20
SIGNATURE_LENGTH = 64
COMPRESSED_PUBKEY_LENGTH = 33
XONLY_PUBKEY_LENGTH = 32

MAX_CHAIN_ID = 0xFFFFFFFF


@dataclass(frozen=True)
class RoutingBlob:
    """Current-format routing data (EXTRA lane)."""

    chain_id: int
    l2_address: bytes
    signature: bytes
    version: int = ROUTING_BLOB_VERSION

    def to_map(self) -> dict:
        # Single-letter keys keep the encoded blob small
        return {
            "v": self.version,
            "c": self.chain_id,
            "l": self.l2_address,
            "s": self.signature,
        }


@dataclass(frozen=True)
class LegacyRoutingBlob:
    """Fixed-layout routing data written by older bridge clients."""

    version: int
    chain_id: int
    bridge_id: int
    l2_address: bytes


def _check_length(name: str, value: bytes, expected: int) -> None:
    if len(value) != expected:
        raise InvalidFieldLengthError(name, str(expected), len(value))


def normalize_public_key(public_key: bytes) -> bytes:
    """Return the 32-byte x-only form of a public key.

    Accepts a 33-byte compressed key (0x02/0x03 prefix, stripped) or a key
    that is already 32 bytes. Curve membership is not checked.

    Raises:
        InvalidFieldLengthError: For any other shape
    """
    if len(public_key) == XONLY_PUBKEY_LENGTH:
        return bytes(public_key)
    if len(public_key) == COMPRESSED_PUBKEY_LENGTH and public_key[0] in (0x02, 0x03):
        return bytes(public_key[1:])
    raise InvalidFieldLengthError(
        "public_key", "33 (compressed, 0x02/0x03 prefix) or 32 (x-only)", len(public_key)
    )


def build_envelope(extra: bytes, content: bytes, limit: int = MAX_SCRIPT_SIZE) -> bytes:
    """Assemble the envelope suffix.

    Args:
        extra: Routing blob bytes; the EXTRA lane is omitted when empty
        content: CONTENT lane bytes
        limit: Maximum envelope size

    Raises:
        EnvelopeTooLargeError: If the envelope exceeds ``limit`` bytes
    """
    # Lane payloads alone already exceed the limit
    if len(extra) + len(content) > limit:
        raise EnvelopeTooLargeError(len(extra) + len(content), limit)

    parts = [bytes([OP_FALSE, OP_IF]), encode_push(ENVELOPE_TAG)]
    if extra:
        parts.append(bytes([OP_1]))
        parts.append(encode_push(extra))
    parts.append(bytes([OP_0]))
    parts.append(encode_push(content))
    parts.append(bytes([OP_ENDIF]))

    envelope = b"".join(parts)
    if len(envelope) > limit:
        raise EnvelopeTooLargeError(len(envelope), limit)
    return envelope


def build_redeem_script(public_key: bytes, envelope: bytes, limit: int = MAX_SCRIPT_SIZE) -> bytes:
    """Prefix ``envelope`` with ``<pubkey> OP_CHECKSIG``.

    Raises:
        InvalidFieldLengthError: If the public key has the wrong shape
        RedeemTooLargeError: If the redeem script exceeds ``limit`` bytes
    """
    key = normalize_public_key(public_key)
    redeem = encode_push(key) + bytes([OP_CHECKSIG]) + envelope
    if len(redeem) > limit:
        raise RedeemTooLargeError(len(redeem), limit)
    return redeem


class EnvelopeBuilder:
    """Builds bridge redeem scripts.

    Args:
        encoder: Routing blob encoder; defaults to the compact CBOR writer
        max_script_size: Size ceiling for both envelope and redeem script
    """

    def __init__(
        self,
        encoder: Optional[BlobEncoder] = None,
        max_script_size: int = MAX_SCRIPT_SIZE,
    ):
        self.encoder = encoder if encoder is not None else CompactCborEncoder()
        self.max_script_size = max_script_size

    def make_routing_blob(self, chain_id: int, l2_address: bytes, signature: bytes) -> RoutingBlob:
        """Validate routing fields and wrap them in a RoutingBlob.

        Raises:
            BuildError: If the chain id is out of range or a field has the
                wrong length
        """
        if isinstance(chain_id, bool) or not isinstance(chain_id, int):
            raise BuildError(f"chain_id must be an integer, got {type(chain_id).__name__}")
        if not 0 <= chain_id <= MAX_CHAIN_ID:
            raise BuildError(f"chain_id out of range: {chain_id}")

        _check_length("l2_address", l2_address, L2_ADDRESS_LENGTH)
        _check_length("signature", signature, SIGNATURE_LENGTH)
        return RoutingBlob(
            chain_id=chain_id,
            l2_address=bytes(l2_address),
            signature=bytes(signature),
        )

    def encode_routing_blob(self, blob: RoutingBlob) -> bytes:
        return self.encoder.encode(blob.to_map())

    def build(
        self,
        chain_id: int,
        l2_address: bytes,
        signature: bytes,
        transfer: Protocol,
        public_key: bytes,
    ) -> bytes:
        """Build a complete redeem script carrying the bridge envelope.

        Args:
            chain_id: Destination L2 chain id
            l2_address: 20-byte destination address on the L2
            signature: 64-byte r||s signature (no recovery byte)
            transfer: CONTENT lane payload (e.g. a KRC-20 transfer)
            public_key: 33-byte compressed or 32-byte x-only signer key

        Returns:
            Redeem script bytes

        Raises:
            BuildError: If any input is invalid or the result is too large
        """
        for name, value in (
            ("chain_id", chain_id),
            ("l2_address", l2_address),
            ("signature", signature),
            ("transfer", transfer),
            ("public_key", public_key),
        ):
            if value is None or (isinstance(value, (bytes, bytearray)) and not value):
                raise MissingRequiredParameterError(name)

        blob = self.make_routing_blob(chain_id, l2_address, signature)
        key = normalize_public_key(public_key)

        extra = self.encode_routing_blob(blob)
        content = transfer.to_bytes()
        logger.debug("Routing blob %d bytes, content %d bytes", len(extra), len(content))

        envelope = build_envelope(extra, content, self.max_script_size)
        redeem = build_redeem_script(key, envelope, self.max_script_size)
        logger.debug("Built redeem script of %d bytes", len(redeem))
        return redeem


def build_bridge_script(
    chain_id: int,
    l2_address: bytes,
    signature: bytes,
    transfer: Protocol,
    public_key: bytes,
    encoder: Optional[BlobEncoder] = None,
) -> bytes:
    """Build a bridge redeem script with a default :class:`EnvelopeBuilder`."""
    return EnvelopeBuilder(encoder).build(chain_id, l2_address, signature, transfer, public_key)
