"""Adapters — bindings for the external tools the manager drives.

Public re-exports for convenient access.
"""

from relayctl.adapters.base import Adapter
from relayctl.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
]
