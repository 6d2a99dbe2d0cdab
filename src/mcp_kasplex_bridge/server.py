"""MCP server for Kasplex bridge envelope operations.

This server exposes tools for building and parsing bridge redeem scripts,
the push-data framing primitive they rely on, and the bridge metadata
endpoint.
"""

from typing import Optional

from mcp.server.fastmcp import FastMCP

from mcp_kasplex_bridge.config import Config, find_config
from mcp_kasplex_bridge.envelope import EnvelopeBuilder
from mcp_kasplex_bridge.errors import ParseError
from mcp_kasplex_bridge.metadata import BridgeMetadataClient, MetadataError
from mcp_kasplex_bridge.parser import parse_bridge_script as parse_script
from mcp_kasplex_bridge.primitives import (
    MAX_DIRECT_PUSH,
    bytes_from_hex,
    encode_push,
    read_push,
)
from mcp_kasplex_bridge.protocols.krc20 import TokenRef, make_operation


def _push_kind(length: int) -> str:
    if length <= MAX_DIRECT_PUSH:
        return "direct"
    elif length <= 0xFF:
        return "OP_PUSHDATA1"
    return "OP_PUSHDATA2"


def create_server(
    config: Optional[Config] = None,
    metadata_client: Optional[BridgeMetadataClient] = None,
) -> FastMCP:
    """Create and configure the MCP server with all tools.

    Args:
        config: Optional configuration. If not provided, uses defaults.
        metadata_client: Optional metadata client, created lazily otherwise.

    Returns:
        Configured FastMCP server instance.
    """
    if config is None:
        config = Config()

    mcp = FastMCP("mcp-kasplex-bridge")

    # Encoder is chosen once, from configuration
    builder = EnvelopeBuilder(encoder=config.make_encoder())

    mcp._config = config
    mcp._metadata: Optional[BridgeMetadataClient] = metadata_client

    def get_metadata_client() -> BridgeMetadataClient:
        """Get or create the metadata client."""
        if mcp._metadata is None:
            mcp._metadata = BridgeMetadataClient(config)
        return mcp._metadata

    # =========================================================================
    # Envelope Building & Parsing
    # =========================================================================

    @mcp.tool()
    def generate_bridge_script(
        public_key: str,
        l2_address: str,
        signature: str,
        amount: int,
        to: str,
        tick: Optional[str] = None,
        ca: Optional[str] = None,
        chain_id: Optional[int] = None,
        op: str = "transfer",
    ) -> dict:
        """Build a bridge redeem script carrying routing and KRC-20 data.

        Args:
            public_key: Signer public key hex (33-byte compressed or 32-byte x-only)
            l2_address: Destination L2 address hex (20 bytes, 0x prefix optional)
            signature: Routing signature hex (64 bytes, r+s without v)
            amount: Token amount in base units
            to: Kaspa destination address
            tick: Token ticker (mutually exclusive with ca)
            ca: Token content address for issued tokens (mutually exclusive with tick)
            chain_id: Destination L2 chain id (default from configuration)
            op: KRC-20 operation ('transfer' or 'mint')

        Returns:
            Dictionary with 'script_hex' and the encoded lanes.
        """
        try:
            transfer = make_operation(op, TokenRef.from_fields(tick=tick, ca=ca), amount, to)
            chain = config.default_chain_id if chain_id is None else chain_id
            script = builder.build(
                chain_id=chain,
                l2_address=bytes_from_hex(l2_address),
                signature=bytes_from_hex(signature),
                transfer=transfer,
                public_key=bytes_from_hex(public_key),
            )
        except ValueError as e:
            return {"error": str(e)}

        return {
            "script_hex": script.hex(),
            "script_size": len(script),
            "chain_id": chain,
            "chain_name": config.chain_name(chain),
            "content_json": transfer.to_json(),
        }

    @mcp.tool()
    def parse_bridge_script(script_hex: str) -> dict:
        """Decode routing and KRC-20 data from a script containing a bridge envelope.

        Args:
            script_hex: Script as hex string (redeem or signature script)

        Returns:
            Dictionary with 'routing', 'content' and 'warnings'. On structural
            failure, 'error', 'stage', 'offset' and any 'partial' result.
        """
        try:
            script = bytes_from_hex(script_hex)
        except ValueError as e:
            return {"error": str(e)}

        try:
            parsed = parse_script(script)
        except ParseError as e:
            return {
                "error": str(e),
                "stage": e.stage,
                "offset": e.offset,
                "partial": e.partial.to_dict() if e.partial is not None else None,
            }

        result = parsed.to_dict()
        if parsed.routing is not None:
            result["routing"]["chain_name"] = config.chain_name(parsed.routing.chain_id)
        return result

    @mcp.tool()
    def encode_routing_blob(chain_id: int, l2_address: str, signature: str) -> dict:
        """Encode the EXTRA lane routing blob on its own.

        Args:
            chain_id: Destination L2 chain id
            l2_address: Destination L2 address hex (20 bytes)
            signature: Routing signature hex (64 bytes)

        Returns:
            Dictionary with 'blob_hex' and 'length'.
        """
        try:
            blob = builder.make_routing_blob(
                chain_id, bytes_from_hex(l2_address), bytes_from_hex(signature)
            )
            encoded = builder.encode_routing_blob(blob)
        except ValueError as e:
            return {"error": str(e)}

        return {"blob_hex": encoded.hex(), "length": len(encoded)}

    # =========================================================================
    # Push-Data Primitives
    # =========================================================================

    @mcp.tool()
    def encode_push_data(data: str, encoding: str = "utf-8") -> dict:
        """Frame data as a single script push.

        Args:
            data: Data to push
            encoding: Encoding for the data ('utf-8', 'hex'). Default: 'utf-8'

        Returns:
            Dictionary with 'push_hex', 'length' and the push opcode used.
        """
        try:
            if encoding == "hex":
                data_bytes = bytes_from_hex(data)
            else:
                data_bytes = data.encode(encoding)
            push = encode_push(data_bytes)
        except (ValueError, LookupError) as e:
            return {"error": str(e)}

        return {
            "push_hex": push.hex(),
            "length": len(data_bytes),
            "push_opcode": _push_kind(len(data_bytes)),
        }

    @mcp.tool()
    def decode_push_data(push_hex: str) -> dict:
        """Read the payload of a single script push.

        Args:
            push_hex: Push (length prefix + payload) as hex string

        Returns:
            Dictionary with 'data_hex' and 'data_utf8' (if decodable).
        """
        try:
            data, _ = read_push(bytes_from_hex(push_hex), 0)
        except ValueError as e:
            return {"error": str(e)}

        result = {"data_hex": data.hex(), "length": len(data)}
        try:
            result["data_utf8"] = data.decode("utf-8")
        except UnicodeDecodeError:
            result["data_utf8"] = None
        return result

    # =========================================================================
    # Bridge Metadata
    # =========================================================================

    @mcp.tool()
    async def get_bridge_metadata() -> dict:
        """Fetch current bridge fees and token pairs.

        Returns:
            Dictionary with 'fees' and 'token_pairs' as returned by the
            metadata endpoint.
        """
        client = get_metadata_client()
        try:
            fees = await client.get_bridge_fees()
            pairs = await client.get_token_pairs()
        except MetadataError as e:
            return {"error": str(e)}

        return {"fees": fees, "token_pairs": pairs}

    return mcp


def main():
    """Entry point for the MCP server."""
    server = create_server(find_config())
    server.run()


if __name__ == "__main__":
    main()
