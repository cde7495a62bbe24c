from __future__ import annotations

from typing import Iterable, Sequence

__all__ = [
    "BridgeError",
    "ConfigError",
    "ConversionContractError",
    "UnresolvedPlaceholderError",
    "MaterializationError",
]


class BridgeError(Exception):
    """Base class for errors raised by udonbridge."""


class ConfigError(BridgeError, ValueError):
    """Raised when a settings file or scene document cannot be interpreted."""


class ConversionContractError(BridgeError):
    """Raised when the converted tree violates an internal invariant."""


class UnresolvedPlaceholderError(ConversionContractError):
    """A shared-asset placeholder survived the resolve pass."""

    def __init__(self, signatures: Iterable[str], node_ids: Sequence[str] = ()) -> None:
        self.signatures = sorted(set(signatures))
        self.node_ids = list(node_ids)
        preview = ", ".join(self.signatures[:5])
        if len(self.signatures) > 5:
            preview += f", ... ({len(self.signatures)} total)"
        super().__init__(
            f"Unresolved shared asset placeholder(s): {preview}"
            + (f" in {len(self.node_ids)} node(s)" if self.node_ids else "")
        )


class MaterializationError(BridgeError):
    """Wraps a remote failure while building one object or container."""

    def __init__(self, node_id: str, message: str) -> None:
        self.node_id = node_id
        super().__init__(f"{node_id}: {message}")
