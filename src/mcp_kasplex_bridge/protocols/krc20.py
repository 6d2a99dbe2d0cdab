"""KRC-20 token protocol payloads.

KRC-20 operations are compact JSON inscriptions carried in the envelope
CONTENT lane, e.g.::

    {"p":"krc-20","op":"transfer","amt":"100000000","to":"kaspa:...","tick":"NACHO"}

A token is referenced either by ticker (``mode="mint"``, key ``tick``) or,
for issued tokens, by content address (``mode="issue"``, key ``ca``).
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Union

from mcp_kasplex_bridge.protocols.base import Protocol

PROTOCOL_TAG = "krc-20"

TICK_MIN_LENGTH = 4
TICK_MAX_LENGTH = 6

_DECIMAL_RE = re.compile(r"[0-9]+")


class TokenMode(str, Enum):
    """How a token is identified."""

    MINT = "mint"      # by ticker
    ISSUE = "issue"    # by content address


@dataclass
class TokenRef:
    """Reference to a KRC-20 token by ticker or content address."""

    mode: TokenMode
    tick: Optional[str] = None
    ca: Optional[str] = None

    def __post_init__(self):
        self.mode = TokenMode(self.mode)

        if self.mode == TokenMode.MINT:
            if not isinstance(self.tick, str) or not self.tick:
                raise ValueError("tick is required when mode is 'mint'")
            if self.ca:
                raise ValueError("ca must not be set when mode is 'mint'")
            if not TICK_MIN_LENGTH <= len(self.tick) <= TICK_MAX_LENGTH:
                raise ValueError(
                    f"Tick must be {TICK_MIN_LENGTH}-{TICK_MAX_LENGTH} characters, "
                    f"got {len(self.tick)}"
                )
        else:
            if not isinstance(self.ca, str) or not self.ca:
                raise ValueError("ca is required when mode is 'issue'")
            if self.tick:
                raise ValueError("tick must not be set when mode is 'issue'")

    @classmethod
    def ticker(cls, tick: str) -> "TokenRef":
        return cls(mode=TokenMode.MINT, tick=tick)

    @classmethod
    def content_address(cls, ca: str) -> "TokenRef":
        return cls(mode=TokenMode.ISSUE, ca=ca)

    @classmethod
    def from_fields(cls, tick: Optional[str] = None, ca: Optional[str] = None) -> "TokenRef":
        """Pick the mode from whichever identifier is given."""
        return cls(mode=TokenMode.ISSUE if ca else TokenMode.MINT, tick=tick, ca=ca)

    @property
    def key(self) -> str:
        return "tick" if self.mode == TokenMode.MINT else "ca"

    @property
    def value(self) -> str:
        return self.tick if self.mode == TokenMode.MINT else self.ca


@dataclass
class KRC20Operation(Protocol):
    """Common shape of KRC-20 transfer and mint payloads."""

    token: TokenRef
    amount: int
    to: str

    op: ClassVar[str] = ""

    def __post_init__(self):
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValueError(f"Amount must be an integer, got {type(self.amount).__name__}")
        if self.amount < 0:
            raise ValueError(f"Amount must not be negative, got {self.amount}")
        if not isinstance(self.to, str) or not self.to:
            raise ValueError("Destination address (to) is required")

    def to_dict(self) -> dict:
        return {
            "p": PROTOCOL_TAG,
            "op": self.op,
            "amt": str(self.amount),
            "to": self.to,
            self.token.key: self.token.value,
        }

    def to_json(self) -> str:
        """Convert to KRC-20 JSON format."""
        return json.dumps(self.to_dict(), separators=(',', ':'))

    def to_bytes(self) -> bytes:
        return self.to_json().encode('utf-8')


@dataclass
class KRC20Transfer(KRC20Operation):
    """KRC-20 transfer operation."""

    op: ClassVar[str] = "transfer"


@dataclass
class KRC20Mint(KRC20Operation):
    """KRC-20 mint operation."""

    op: ClassVar[str] = "mint"


KRC20Payload = Union[KRC20Transfer, KRC20Mint]

OPERATIONS = {
    KRC20Transfer.op: KRC20Transfer,
    KRC20Mint.op: KRC20Mint,
}


def make_operation(op: str, token: TokenRef, amount: int, to: str) -> KRC20Payload:
    """Instantiate the payload class for ``op``."""
    try:
        cls = OPERATIONS[op]
    except (KeyError, TypeError):
        raise ValueError(f"Unknown KRC-20 operation: {op}") from None
    return cls(token=token, amount=amount, to=to)


class KRC20Protocol:
    """KRC-20 protocol parser."""

    @staticmethod
    def parse(json_str: str) -> KRC20Payload:
        """Parse KRC-20 JSON into an operation object.

        Args:
            json_str: KRC-20 JSON string

        Returns:
            KRC20Transfer or KRC20Mint

        Raises:
            ValueError: If the text is not a well-formed KRC-20 transfer or mint
        """
        data = json.loads(json_str)
        if not isinstance(data, dict):
            raise ValueError(f"KRC-20 payload must be a JSON object, got {type(data).__name__}")

        if data.get("p") != PROTOCOL_TAG:
            raise ValueError(f"Not a KRC-20 inscription: p={data.get('p')}")

        for field in ("op", "amt", "to"):
            if field not in data:
                raise ValueError(f"Missing required field: {field}")

        amt = data["amt"]
        if not isinstance(amt, str) or not _DECIMAL_RE.fullmatch(amt):
            raise ValueError(f"Amount must be a decimal integer string, got {amt!r}")

        if "tick" in data and "ca" in data:
            raise ValueError("Exactly one of tick or ca may be present")
        if "tick" in data:
            token = TokenRef.ticker(data["tick"])
        elif "ca" in data:
            token = TokenRef.content_address(data["ca"])
        else:
            raise ValueError("Missing required field: tick or ca")

        return make_operation(data["op"], token, int(amt), data["to"])
