"""Base protocol class for envelope content payloads."""

from abc import ABC, abstractmethod


class Protocol(ABC):
    """Base class for payloads carried in the envelope CONTENT lane."""

    @abstractmethod
    def to_json(self) -> str:
        """Render the canonical textual form."""
        pass  # pragma: no cover

    @abstractmethod
    def to_bytes(self) -> bytes:
        """Convert to raw bytes for embedding."""
        pass  # pragma: no cover
