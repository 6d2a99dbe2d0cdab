"""Tests for bridge envelope construction."""

import json
import pytest
from mcp_kasplex_bridge.cbor import BlobEncoder
from mcp_kasplex_bridge.envelope import (
    EnvelopeBuilder,
    RoutingBlob,
    build_bridge_script,
    build_envelope,
    build_redeem_script,
    normalize_public_key,
)
from mcp_kasplex_bridge.errors import (
    BuildError,
    EnvelopeTooLargeError,
    InvalidFieldLengthError,
    MissingRequiredParameterError,
    RedeemTooLargeError,
)
from mcp_kasplex_bridge.protocols.krc20 import KRC20Transfer, TokenRef

CHAIN_ID = 202555
L2_ADDRESS = bytes(range(1, 21))
SIGNATURE = bytes.fromhex("1234567890abcdef" * 8)
PUBLIC_KEY = bytes([0x02]) + bytes(range(1, 33))
TO = "kaspa:qryv8wv2g9y5mz6k8r7n4t3x1c2v5b6n9m0p1q2w3e4r5t6y7u8i9o0p"

EXPECTED_BLOB = bytes.fromhex(
    "a4"
    "6176" "01"
    "6163" "1a0003173b"
    "616c" "54" + L2_ADDRESS.hex() +
    "6173" "5840" + SIGNATURE.hex()
)


def make_transfer(to=TO, amount=100000000, tick="NACHO"):
    return KRC20Transfer(token=TokenRef.ticker(tick), amount=amount, to=to)


def build(**overrides):
    params = {
        "chain_id": CHAIN_ID,
        "l2_address": L2_ADDRESS,
        "signature": SIGNATURE,
        "transfer": make_transfer(),
        "public_key": PUBLIC_KEY,
    }
    params.update(overrides)
    return EnvelopeBuilder().build(**params)


class TestRoutingBlob:
    """Test routing blob encoding."""

    def test_blob_bytes(self):
        """The CBOR map has keys v, c, l, s in that order."""
        builder = EnvelopeBuilder()
        blob = builder.make_routing_blob(CHAIN_ID, L2_ADDRESS, SIGNATURE)

        encoded = builder.encode_routing_blob(blob)

        assert encoded == EXPECTED_BLOB
        assert len(encoded) == 102

    def test_blob_defaults_version(self):
        blob = RoutingBlob(chain_id=1, l2_address=L2_ADDRESS, signature=SIGNATURE)

        assert blob.version == 1
        assert list(blob.to_map()) == ["v", "c", "l", "s"]

    @pytest.mark.parametrize("length", [19, 21])
    def test_l2_address_length(self, length):
        with pytest.raises(InvalidFieldLengthError, match="l2_address must be 20 bytes"):
            EnvelopeBuilder().make_routing_blob(CHAIN_ID, b"\x01" * length, SIGNATURE)

    @pytest.mark.parametrize("length", [63, 65])
    def test_signature_length(self, length):
        with pytest.raises(InvalidFieldLengthError, match="signature must be 64 bytes"):
            EnvelopeBuilder().make_routing_blob(CHAIN_ID, L2_ADDRESS, b"\x01" * length)

    @pytest.mark.parametrize("chain_id", [-1, 2**32])
    def test_chain_id_range(self, chain_id):
        with pytest.raises(BuildError, match="out of range"):
            EnvelopeBuilder().make_routing_blob(chain_id, L2_ADDRESS, SIGNATURE)

    def test_chain_id_type(self):
        with pytest.raises(BuildError, match="must be an integer"):
            EnvelopeBuilder().make_routing_blob(True, L2_ADDRESS, SIGNATURE)


class TestPublicKey:
    """Test public key normalization."""

    def test_compressed_key_prefix_stripped(self):
        assert normalize_public_key(PUBLIC_KEY) == bytes(range(1, 33))

    def test_odd_y_prefix_stripped(self):
        assert normalize_public_key(b"\x03" + b"\xaa" * 32) == b"\xaa" * 32

    def test_xonly_key_accepted(self):
        assert normalize_public_key(b"\x11" * 32) == b"\x11" * 32

    def test_uncompressed_prefix_rejected(self):
        with pytest.raises(InvalidFieldLengthError, match="public_key"):
            normalize_public_key(b"\x04" + b"\x11" * 32)

    def test_wrong_length_rejected(self):
        with pytest.raises(InvalidFieldLengthError, match="got 65"):
            normalize_public_key(b"\x04" + b"\x11" * 64)


class TestBuildEnvelope:
    """Test envelope assembly."""

    def test_layout(self):
        envelope = build_envelope(b"\xaa\xbb", b"hi")

        assert envelope == bytes.fromhex("0063" "07") + b"kasplex" + bytes.fromhex(
            "51" "02aabb" "00" "026869" "68"
        )

    def test_no_extra_lane(self):
        """An empty routing blob omits the EXTRA lane entirely."""
        envelope = build_envelope(b"", b"hi")

        assert envelope == bytes.fromhex("0063" "07") + b"kasplex" + bytes.fromhex("00" "026869" "68")

    def test_lane_payloads_over_limit(self):
        with pytest.raises(EnvelopeTooLargeError) as exc_info:
            build_envelope(b"\x00" * 300, b"\x00" * 300)
        assert exc_info.value.size == 600
        assert exc_info.value.limit == 520

    def test_framed_envelope_over_limit(self):
        """Framing overhead alone can push the envelope past the limit."""
        with pytest.raises(EnvelopeTooLargeError):
            build_envelope(b"\x00" * 100, b"\x00" * 410)

    def test_redeem_script_prefix(self):
        redeem = build_redeem_script(PUBLIC_KEY, b"\x00\x68")

        assert redeem == bytes([0x20]) + bytes(range(1, 33)) + bytes([0xAC, 0x00, 0x68])


class TestEnvelopeBuilder:
    """Test complete redeem script construction."""

    def test_build_layout(self):
        script = build()
        content = make_transfer().to_bytes()

        prefix = bytes([0x20]) + bytes(range(1, 33)) + bytes([0xAC])
        header = bytes.fromhex("0063" "07") + b"kasplex"
        extra = bytes.fromhex("51" "4c66") + EXPECTED_BLOB

        assert script.startswith(prefix + header + extra)
        assert script[-1] == 0x68
        assert content in script
        assert len(script) <= 520

    def test_content_lane_is_transfer_json(self):
        script = build()
        content = make_transfer().to_bytes()
        start = script.index(content)

        assert script[start - 2:start] == bytes([0x4C, len(content)])
        assert script[start - 3] == 0x00
        assert json.loads(content)["tick"] == "NACHO"

    def test_xonly_and_compressed_keys_agree(self):
        assert build(public_key=bytes(range(1, 33))) == build()

    def test_module_level_helper(self):
        script = build_bridge_script(
            CHAIN_ID, L2_ADDRESS, SIGNATURE, make_transfer(), PUBLIC_KEY
        )

        assert script == build()

    @pytest.mark.parametrize("name", ["chain_id", "l2_address", "signature", "transfer", "public_key"])
    def test_missing_parameters(self, name):
        with pytest.raises(MissingRequiredParameterError, match=f"{name} is required"):
            build(**{name: None})

    def test_empty_bytes_is_missing(self):
        with pytest.raises(MissingRequiredParameterError, match="signature"):
            build(signature=b"")

    def test_envelope_too_large(self):
        with pytest.raises(EnvelopeTooLargeError):
            build(transfer=make_transfer(to="k" * 500))

    def test_redeem_too_large(self):
        """Envelope fits, but the pubkey prefix pushes the script over."""
        base = len(make_transfer(to="k").to_bytes()) - 1
        transfer = make_transfer(to="k" * (380 - base))
        assert len(transfer.to_bytes()) == 380

        with pytest.raises(RedeemTooLargeError) as exc_info:
            build(transfer=transfer)
        assert exc_info.value.size == 534

    def test_custom_limit(self):
        builder = EnvelopeBuilder(max_script_size=100)

        with pytest.raises(BuildError):
            builder.build(CHAIN_ID, L2_ADDRESS, SIGNATURE, make_transfer(), PUBLIC_KEY)

    def test_injected_encoder(self):
        """The routing blob encoder is pluggable."""

        class FixedEncoder(BlobEncoder):
            name = "fixed"

            def encode(self, value):
                return b"\x01\x02\x03"

        script = EnvelopeBuilder(encoder=FixedEncoder()).build(
            CHAIN_ID, L2_ADDRESS, SIGNATURE, make_transfer(), PUBLIC_KEY
        )

        assert b"kasplex" + bytes.fromhex("5103010203" "00") in script
