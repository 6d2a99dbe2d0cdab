"""Payload protocols carried in the envelope CONTENT lane."""

from mcp_kasplex_bridge.protocols.base import Protocol
from mcp_kasplex_bridge.protocols.krc20 import (
    KRC20Mint,
    KRC20Operation,
    KRC20Protocol,
    KRC20Transfer,
    TokenMode,
    TokenRef,
)

__all__ = [
    "Protocol",
    "KRC20Mint",
    "KRC20Operation",
    "KRC20Protocol",
    "KRC20Transfer",
    "TokenMode",
    "TokenRef",
]
