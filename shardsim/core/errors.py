"""
Error types raised by the simulation core.

Only one kind of failure is distinguished: a broken partition or
relocation invariant. It is never retried or recovered from; the
driver lets it propagate and the run stops.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .prefix import Prefix


class FatalError(RuntimeError):
    """Structural corruption detected while resolving or validating a tick.

    Attributes:
        prefix: Prefix of the offending section, when one is known.
    """

    def __init__(self, message: str, prefix: Optional[Prefix] = None):
        super().__init__(message)
        self.prefix = prefix
