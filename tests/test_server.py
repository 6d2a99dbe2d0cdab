"""Tests for MCP server."""

import json
import pytest
from unittest.mock import AsyncMock, MagicMock

from mcp_kasplex_bridge.config import Config
from mcp_kasplex_bridge.metadata import MetadataError
from mcp_kasplex_bridge.server import create_server

PUBLIC_KEY = "02" + bytes(range(1, 33)).hex()
L2_ADDRESS = "0x" + bytes(range(1, 21)).hex()
SIGNATURE = "1234567890abcdef" * 8
TO = "kaspa:qryv8wv2g9y5mz6k8r7n4t3x1c2v5b6n9m0p1q2w3e4r5t6y7u8i9o0p"


def get_tool(server, name):
    return server._tool_manager._tools[name].fn


class TestServerCreation:
    """Test server initialization."""

    def test_create_server_returns_server(self):
        server = create_server()
        assert server is not None

    @pytest.mark.asyncio
    async def test_server_has_expected_tools(self):
        """Server registers all expected tools."""
        server = create_server()

        tools = await server.list_tools()
        tool_names = {tool.name for tool in tools}

        assert tool_names == {
            "generate_bridge_script",
            "parse_bridge_script",
            "encode_routing_blob",
            "encode_push_data",
            "decode_push_data",
            "get_bridge_metadata",
        }

    def test_server_uses_given_config(self):
        config = Config(default_chain_id=167012)
        server = create_server(config)

        assert server._config is config


class TestGenerateAndParseTools:
    """Test building and parsing through the tools."""

    def test_generate_bridge_script(self):
        server = create_server()
        result = get_tool(server, "generate_bridge_script")(
            public_key=PUBLIC_KEY,
            l2_address=L2_ADDRESS,
            signature=SIGNATURE,
            amount=100000000,
            to=TO,
            tick="NACHO",
        )

        assert "error" not in result
        assert result["chain_id"] == 202555
        assert result["chain_name"] == "Kasplex Mainnet"
        assert result["script_size"] == len(result["script_hex"]) // 2
        assert json.loads(result["content_json"])["tick"] == "NACHO"

    def test_generate_uses_config_chain_id(self):
        server = create_server(Config(default_chain_id=167012))
        result = get_tool(server, "generate_bridge_script")(
            public_key=PUBLIC_KEY,
            l2_address=L2_ADDRESS,
            signature=SIGNATURE,
            amount=1,
            to=TO,
            tick="NACHO",
        )

        assert result["chain_id"] == 167012
        assert result["chain_name"] == "Sepolia"

    def test_generate_with_content_address(self):
        server = create_server()
        result = get_tool(server, "generate_bridge_script")(
            public_key=PUBLIC_KEY,
            l2_address=L2_ADDRESS,
            signature=SIGNATURE,
            amount=1,
            to=TO,
            ca="abc123",
        )

        assert json.loads(result["content_json"])["ca"] == "abc123"

    def test_generate_reports_errors(self):
        server = create_server()
        result = get_tool(server, "generate_bridge_script")(
            public_key=PUBLIC_KEY,
            l2_address="0x1234",
            signature=SIGNATURE,
            amount=1,
            to=TO,
            tick="NACHO",
        )

        assert "l2_address must be 20 bytes" in result["error"]

    def test_generate_requires_token(self):
        server = create_server()
        result = get_tool(server, "generate_bridge_script")(
            public_key=PUBLIC_KEY,
            l2_address=L2_ADDRESS,
            signature=SIGNATURE,
            amount=1,
            to=TO,
        )

        assert "tick is required" in result["error"]

    def test_parse_generated_script(self):
        server = create_server()
        generated = get_tool(server, "generate_bridge_script")(
            public_key=PUBLIC_KEY,
            l2_address=L2_ADDRESS,
            signature=SIGNATURE,
            amount=100000000,
            to=TO,
            tick="NACHO",
        )

        result = get_tool(server, "parse_bridge_script")(generated["script_hex"])

        assert result["routing"]["format"] == "current"
        assert result["routing"]["chain_id"] == 202555
        assert result["routing"]["chain_name"] == "Kasplex Mainnet"
        assert result["routing"]["l2_address"] == L2_ADDRESS
        assert result["content"]["transfer"]["amt"] == "100000000"
        assert result["warnings"] == []

    def test_parse_reports_stage_and_offset(self):
        server = create_server()
        result = get_tool(server, "parse_bridge_script")("deadbeef")

        assert result["stage"] == "marker"
        assert result["offset"] == 4
        assert result["partial"] is None

    def test_parse_invalid_hex(self):
        server = create_server()
        result = get_tool(server, "parse_bridge_script")("abc")

        assert "Invalid hex string" in result["error"]

    def test_encode_routing_blob(self):
        server = create_server()
        result = get_tool(server, "encode_routing_blob")(202555, L2_ADDRESS, SIGNATURE)

        assert result["length"] == 102
        assert result["blob_hex"].startswith("a46176016163" "1a0003173b")


class TestPushTools:
    """Test push-data framing tools."""

    def test_encode_push_utf8(self):
        server = create_server()
        result = get_tool(server, "encode_push_data")("kasplex")

        assert result["push_hex"] == "07" + b"kasplex".hex()
        assert result["push_opcode"] == "direct"

    def test_encode_push_pushdata_kinds(self):
        server = create_server()
        encode = get_tool(server, "encode_push_data")

        assert encode("aa" * 76, encoding="hex")["push_opcode"] == "OP_PUSHDATA1"
        assert encode("aa" * 256, encoding="hex")["push_opcode"] == "OP_PUSHDATA2"

    def test_encode_push_bad_encoding(self):
        server = create_server()
        result = get_tool(server, "encode_push_data")("x", encoding="nope")

        assert "error" in result

    def test_decode_push(self):
        server = create_server()
        result = get_tool(server, "decode_push_data")("4c05" + b"hello".hex())

        assert result["data_hex"] == b"hello".hex()
        assert result["data_utf8"] == "hello"
        assert result["length"] == 5

    def test_decode_push_binary(self):
        server = create_server()
        result = get_tool(server, "decode_push_data")("02fffe")

        assert result["data_utf8"] is None

    def test_decode_push_truncated(self):
        server = create_server()
        result = get_tool(server, "decode_push_data")("05aabb")

        assert "Truncated payload" in result["error"]


class TestMetadataTool:
    """Test the bridge metadata tool."""

    @pytest.mark.asyncio
    async def test_get_bridge_metadata(self):
        client = MagicMock()
        client.get_bridge_fees = AsyncMock(return_value={"fee": "1000"})
        client.get_token_pairs = AsyncMock(return_value=[{"tick": "NACHO"}])
        server = create_server(metadata_client=client)

        result = await get_tool(server, "get_bridge_metadata")()

        assert result == {"fees": {"fee": "1000"}, "token_pairs": [{"tick": "NACHO"}]}

    @pytest.mark.asyncio
    async def test_get_bridge_metadata_error(self):
        client = MagicMock()
        client.get_bridge_fees = AsyncMock(side_effect=MetadataError("Metadata URL is not configured"))
        server = create_server(metadata_client=client)

        result = await get_tool(server, "get_bridge_metadata")()

        assert "not configured" in result["error"]

    @pytest.mark.asyncio
    async def test_metadata_client_created_lazily(self):
        server = create_server()
        assert server._metadata is None

        result = await get_tool(server, "get_bridge_metadata")()

        assert "not configured" in result["error"]
        assert server._metadata is not None
