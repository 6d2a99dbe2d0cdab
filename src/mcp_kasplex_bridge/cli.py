"""Command line interface: build and parse bridge scripts.

    kasplex-bridge generate --public-key HEX --l2-address HEX --signature HEX \\
        --tick NACHO --amount 100000000 --to kaspa:...
    kasplex-bridge parse --script HEX [--json]
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from mcp_kasplex_bridge.config import Config, find_config, load_config
from mcp_kasplex_bridge.envelope import EnvelopeBuilder, LegacyRoutingBlob, RoutingBlob
from mcp_kasplex_bridge.errors import ParseError
from mcp_kasplex_bridge.parser import ParsedEnvelope, parse_bridge_script
from mcp_kasplex_bridge.primitives import bytes_from_hex
from mcp_kasplex_bridge.protocols.krc20 import (
    OPERATIONS,
    PROTOCOL_TAG,
    TokenRef,
    make_operation,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kasplex-bridge",
        description="Build and parse Kasplex bridge redeem scripts",
    )
    parser.add_argument("--config", type=Path, help="Path to TOML config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Build a bridge redeem script")
    gen.add_argument("--public-key", required=True, help="33-byte compressed or 32-byte x-only key (hex)")
    gen.add_argument("--chain-id", type=int, help="Destination L2 chain id (default from config)")
    gen.add_argument("--l2-address", required=True, help="20-byte L2 address (hex)")
    gen.add_argument("--signature", required=True, help="64-byte r+s signature (hex)")
    token = gen.add_mutually_exclusive_group(required=True)
    token.add_argument("--tick", help="Token ticker")
    token.add_argument("--ca", help="Token content address (issued tokens)")
    gen.add_argument("--amount", type=int, required=True, help="Amount in base units")
    gen.add_argument("--to", required=True, help="Kaspa destination address")
    gen.add_argument("--op", choices=sorted(OPERATIONS), default="transfer", help="KRC-20 operation")

    parse = sub.add_parser("parse", help="Decode a script containing a bridge envelope")
    parse.add_argument("--script", required=True, help="Script hex")
    parse.add_argument("--json", action="store_true", help="Print result as JSON")

    return parser


def cmd_generate(args: argparse.Namespace, config: Config) -> int:
    chain_id = config.default_chain_id if args.chain_id is None else args.chain_id
    try:
        transfer = make_operation(
            args.op, TokenRef.from_fields(tick=args.tick, ca=args.ca), args.amount, args.to
        )
        builder = EnvelopeBuilder(encoder=config.make_encoder())
        script = builder.build(
            chain_id=chain_id,
            l2_address=bytes_from_hex(args.l2_address),
            signature=bytes_from_hex(args.signature),
            transfer=transfer,
            public_key=bytes_from_hex(args.public_key),
        )
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    print(script.hex())
    return 0


def format_envelope(parsed: ParsedEnvelope, config: Config) -> str:
    """Render a parse result for humans."""
    lines = [f"Envelope tag at byte {parsed.marker_offset}"]

    routing = parsed.routing
    if routing is None:
        lines.append("EXTRA lane: absent")
    else:
        lines.append(f"EXTRA lane: {len(routing.raw)} bytes ({routing.format.value})")
        lines.append(f"  Raw: {routing.raw.hex()}")
        blob = routing.blob
        if isinstance(blob, (RoutingBlob, LegacyRoutingBlob)):
            lines.append(f"  Version: {blob.version}")
            lines.append(f"  L2 Chain ID: {blob.chain_id} ({config.chain_name(blob.chain_id)})")
            lines.append(f"  L2 Address: 0x{blob.l2_address.hex()}")
        if isinstance(blob, RoutingBlob):
            lines.append(f"  Signature (r+s): 0x{blob.signature.hex()}")
        elif isinstance(blob, LegacyRoutingBlob):
            lines.append(f"  Bridge ID: {blob.bridge_id}")

    if parsed.content_raw is None:
        lines.append("CONTENT lane: absent")
    else:
        lines.append(f"CONTENT lane: {len(parsed.content_raw)} bytes")
        if parsed.content_text is not None:
            lines.append(f"  Raw: {parsed.content_text}")
        else:
            lines.append(f"  Raw hex: {parsed.content_raw.hex()}")
        transfer = parsed.transfer
        if transfer is not None:
            lines.append(f"  Protocol: {PROTOCOL_TAG}")
            lines.append(f"  Operation: {transfer.op}")
            label = "Ticker" if transfer.token.key == "tick" else "Content address"
            lines.append(f"  {label}: {transfer.token.value}")
            lines.append(f"  Amount: {transfer.amount}")
            lines.append(f"  To: {transfer.to}")

    for warning in parsed.warnings:
        lines.append(f"warning: {warning}")

    return "\n".join(lines)


def cmd_parse(args: argparse.Namespace, config: Config) -> int:
    try:
        script = bytes_from_hex(args.script)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    try:
        parsed = parse_bridge_script(script)
    except ParseError as e:
        if e.partial is not None:
            if args.json:
                print(json.dumps(e.partial.to_dict(), indent=2))
            else:
                print(format_envelope(e.partial, config))
        print(f"error: {e} (stage={e.stage}, offset={e.offset})", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(parsed.to_dict(), indent=2))
    else:
        print(format_envelope(parsed, config))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the ``kasplex-bridge`` command."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config) if args.config else find_config()
    except ValueError as e:
        print(f"error: invalid config: {e}", file=sys.stderr)
        return 1

    if args.command == "generate":
        return cmd_generate(args, config)
    return cmd_parse(args, config)


if __name__ == "__main__":
    sys.exit(main())
