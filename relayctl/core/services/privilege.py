"""
Privilege gate — checked before the first mutating call of any operation.
"""

from __future__ import annotations

import os

from relayctl.core.errors import PrivilegeRequired


def is_privileged() -> bool:
    return os.geteuid() == 0


def require_root(operation: str) -> None:
    """Raise PrivilegeRequired unless running as root.

    Args:
        operation: Name used in the message, e.g. ``"install"``.
    """
    if not is_privileged():
        raise PrivilegeRequired(
            f"'{operation}' must run as root",
            hint="Re-run with sudo.",
        )
