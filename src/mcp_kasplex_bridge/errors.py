"""Exception hierarchy for envelope building and parsing.

Every error is a ``ValueError`` so callers that only care about "bad input"
can keep catching that.
"""

from typing import Any, Optional


class BridgeError(ValueError):
    """Base class for all codec errors."""


# =============================================================================
# Encoding (push-length codec, compact binary codec)
# =============================================================================


class EncodingError(BridgeError):
    """Raised by the shared framing and binary codecs."""


class PayloadTooLargeError(EncodingError):
    """Payload length cannot be expressed by the supported push opcodes."""

    def __init__(self, length: int, limit: int = 0xFFFF):
        self.length = length
        self.limit = limit
        super().__init__(f"Payload too large: {length} bytes (maximum {limit})")


class UnsupportedPushOpcodeError(EncodingError):
    """Length prefix is not a direct push, OP_PUSHDATA1 or OP_PUSHDATA2."""

    def __init__(self, opcode: int, position: int):
        self.opcode = opcode
        self.position = position
        super().__init__(f"Unsupported push opcode: {opcode:#04x} at offset {position}")


class TruncatedInputError(EncodingError):
    """Input ends inside a length prefix or inside the pushed payload.

    ``field`` is ``"length"`` when the prefix itself is cut short and
    ``"payload"`` when the declared length runs past the end of the input.
    """

    def __init__(self, field: str, position: int, expected: int, available: int):
        self.field = field
        self.position = position
        self.expected = expected
        self.available = available
        super().__init__(
            f"Truncated {field} at offset {position}: "
            f"expected {expected} bytes, got {available}"
        )


class CborDecodeError(EncodingError):
    """Bytes are not a supported compact binary (CBOR) item."""


# =============================================================================
# Building
# =============================================================================


class BuildError(BridgeError):
    """Raised when a redeem script cannot be built."""


class MissingRequiredParameterError(BuildError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"{name} is required")


class InvalidFieldLengthError(BuildError):
    def __init__(self, name: str, expected: str, actual: int):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(f"{name} must be {expected} bytes, got {actual}")


class EnvelopeTooLargeError(BuildError):
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Envelope too large: {size} bytes (limit {limit})")


class RedeemTooLargeError(BuildError):
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Redeem script exceeds {limit}-byte limit: {size} bytes")


# =============================================================================
# Parsing
# =============================================================================


class ParseError(BridgeError):
    """Structural failure while walking a script.

    Attributes:
        stage: Parser stage reached ("marker", "extra" or "content")
        offset: Byte offset in the script where parsing stopped
        partial: Whatever was recovered before the failure, if anything
    """

    def __init__(self, message: str, stage: str, offset: int, partial: Optional[Any] = None):
        self.stage = stage
        self.offset = offset
        self.partial = partial
        super().__init__(message)


class MarkerNotFoundError(ParseError):
    pass


class ExtraMarkerNotFoundError(ParseError):
    pass


class ExtraOutOfBoundsError(ParseError):
    pass


class ContentOutOfBoundsError(ParseError):
    pass


class UnsupportedFramingError(ParseError):
    """A lane's length prefix uses an opcode the codec does not accept."""


class TruncatedScriptError(ParseError):
    """The script ends inside a lane's length prefix."""
