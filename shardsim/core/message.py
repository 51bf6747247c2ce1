"""
Actions, messages and churn events exchanged during a tick.

All three families are closed sets of frozen dataclasses. Sections
produce ``Action`` values from ``Section.evaluate``; the network resolves
them in ``Network.apply``, delivering the payload of every ``Send`` to
the one section whose prefix matches the message target. Churn events
are queued on sections by the driver and consumed by the section itself.

Relocation handshake (``old`` is the node's current name, ``new`` the
name it will carry after relocation)::

    source --RelocateRequest(new)--> destination
    destination --RelocateAccept(old) | RelocateReject(old)--> source
    source --RelocateCommit(new) | RelocateCancel(new)--> destination
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .node import Node
from .prefix import Prefix


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RelocateRequest:
    """Ask the section owning ``node.name`` to take the relocated node.

    Attributes:
        target: Address of the destination (the relocated node's name).
        source: Current name of the node, used as the reply address.
        node: The node as it will exist after relocation.
    """
    target: int
    source: int
    node: Node


@dataclass(frozen=True)
class RelocateAccept:
    target: int
    new_name: int


@dataclass(frozen=True)
class RelocateReject:
    target: int


@dataclass(frozen=True)
class RelocateCommit:
    """Final step of a relocation: the destination adds ``node``."""
    target: int
    node: Node


@dataclass(frozen=True)
class RelocateCancel:
    """Abort an accepted relocation whose node left in the meantime."""
    target: int


Message = Union[RelocateRequest, RelocateAccept, RelocateReject, RelocateCommit, RelocateCancel]

MESSAGE_TYPES = (RelocateRequest, RelocateAccept, RelocateReject, RelocateCommit, RelocateCancel)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Reject:
    """A join or relocation attempt discarded by admission control."""
    name: int


@dataclass(frozen=True)
class Merge:
    target: Prefix


@dataclass(frozen=True)
class Split:
    source: Prefix


@dataclass(frozen=True)
class Send:
    message: Message


Action = Union[Reject, Merge, Split, Send]


# ---------------------------------------------------------------------------
# Churn events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Join:
    node: Node

    @property
    def address(self) -> int:
        return self.node.name


@dataclass(frozen=True)
class Drop:
    name: int

    @property
    def address(self) -> int:
        return self.name


Event = Union[Join, Drop]
