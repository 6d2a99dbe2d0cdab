"""Kasplex bridge envelope codec and MCP server."""

__version__ = "0.1.0"

# Envelope building
from mcp_kasplex_bridge.envelope import (
    EnvelopeBuilder,
    LegacyRoutingBlob,
    RoutingBlob,
    build_bridge_script,
    build_envelope,
    build_redeem_script,
)

# Envelope parsing
from mcp_kasplex_bridge.parser import (
    ParsedEnvelope,
    RoutingFormat,
    RoutingLane,
    parse_bridge_script,
)

# Push-data primitives
from mcp_kasplex_bridge.primitives import (
    decode_push_length,
    encode_push,
    encode_push_length,
)

# Routing blob encoding
from mcp_kasplex_bridge.cbor import BlobEncoder, CompactCborEncoder

# Configuration
from mcp_kasplex_bridge.config import Config, Network, load_config

# Errors
from mcp_kasplex_bridge.errors import BridgeError, BuildError, EncodingError, ParseError

__all__ = [
    # Version
    "__version__",
    # Envelope
    "EnvelopeBuilder",
    "LegacyRoutingBlob",
    "RoutingBlob",
    "build_bridge_script",
    "build_envelope",
    "build_redeem_script",
    # Parser
    "ParsedEnvelope",
    "RoutingFormat",
    "RoutingLane",
    "parse_bridge_script",
    # Primitives
    "decode_push_length",
    "encode_push",
    "encode_push_length",
    # Encoding
    "BlobEncoder",
    "CompactCborEncoder",
    # Config
    "Config",
    "Network",
    "load_config",
    # Errors
    "BridgeError",
    "BuildError",
    "EncodingError",
    "ParseError",
]
