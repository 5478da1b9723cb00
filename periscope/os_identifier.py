"""Operating system identifiers."""

from __future__ import annotations

from enum import Enum


class OSIdentifier(str, Enum):
    """Operating systems a node may run."""

    LINUX = "linux"
    WINDOWS = "windows"


def parse_os_identifier(identifier: str) -> OSIdentifier:
    """Parse an identifier string; raise ValueError when unknown."""
    try:
        return OSIdentifier(identifier)
    except ValueError:
        raise ValueError(f"unknown OS identifier '{identifier}'") from None