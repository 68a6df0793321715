"""Base marker for domain ports (interfaces implemented by infrastructure)."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Port(Protocol):
    """Marker protocol for all ports."""
