"""Configuration loading and management."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

try:
    import tomli
except ImportError:  # pragma: no cover
    import tomllib as tomli  # Python 3.11+

from mcp_kasplex_bridge.cbor import BlobEncoder, CompactCborEncoder, get_encoder


class Network(Enum):
    """Kaspa network the bridge deposits land on."""
    MAINNET = "mainnet"
    TESTNET = "testnet"


# Kasplex L2 chain id used when none is given
DEFAULT_CHAIN_ID = 202555

# Display names for known L2 chain ids
DEFAULT_CHAIN_NAMES = {
    1: "Mainnet",
    167012: "Sepolia",
    11155111: "Sepolia",
    202555: "Kasplex Mainnet",
}

CONFIG_PATHS = [
    Path("kasplex-bridge.toml"),
    Path.home() / ".config" / "kasplex-bridge" / "config.toml",
]


@dataclass
class Config:
    """Bridge tooling configuration."""

    # Bridge settings
    network: Network = Network.MAINNET
    default_chain_id: int = DEFAULT_CHAIN_ID

    # Encoding settings
    blob_encoder: str = CompactCborEncoder.name

    # Metadata endpoint settings
    metadata_url: str = ""
    metadata_timeout: float = 30.0

    chain_names: dict[int, str] = field(default_factory=lambda: dict(DEFAULT_CHAIN_NAMES))

    def chain_name(self, chain_id: Optional[int]) -> str:
        """Display name for a chain id, "Unknown" if not listed."""
        if chain_id is None:
            return "Unknown"
        return self.chain_names.get(chain_id, "Unknown")

    def make_encoder(self) -> BlobEncoder:
        """Instantiate the configured routing blob encoder."""
        return get_encoder(self.blob_encoder)


DEFAULT_CONFIG = Config()


def load_config(path: Path) -> Config:
    """Load configuration from TOML file.

    Args:
        path: Path to config file

    Returns:
        Loaded configuration, merged with defaults

    Raises:
        ValueError: If a value has the wrong type or an unknown name
    """
    if not path.exists():
        return Config()

    with open(path, "rb") as f:
        data = tomli.load(f)

    bridge = data.get("bridge", {})
    encoding = data.get("encoding", {})
    metadata = data.get("metadata", {})

    # TOML keys are strings; chain ids are integers
    chain_names = dict(DEFAULT_CHAIN_NAMES)
    for key, name in data.get("chains", {}).items():
        try:
            chain_names[int(key)] = str(name)
        except ValueError:
            raise ValueError(f"Invalid chain id in [chains]: {key!r}") from None

    config = Config(
        network=Network(bridge.get("network", "mainnet")),
        default_chain_id=int(bridge.get("default_chain_id", DEFAULT_CHAIN_ID)),
        blob_encoder=encoding.get("blob_encoder", CompactCborEncoder.name),
        metadata_url=metadata.get("url", ""),
        metadata_timeout=float(metadata.get("timeout", 30.0)),
        chain_names=chain_names,
    )

    # Fail at load time rather than on first build
    config.make_encoder()
    return config


def find_config() -> Config:
    """Load the first config file found in the standard locations."""
    for path in CONFIG_PATHS:
        if path.exists():
            return load_config(path)
    return Config()
