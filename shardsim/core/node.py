"""
Network nodes and the ageing rules applied to them.

A node is identified by its name, which doubles as its address: a node
always lives in the section whose prefix matches its name. Relocating a
node gives it a new name (and therefore a new home section) and bumps
its age by one. Names are derived with blake2s so that a run is
reproducible across interpreter sessions regardless of
``PYTHONHASHSEED``.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Iterable

from .config import Params
from .prefix import Prefix


def stable_hash(*components: int) -> int:
    """Return a 64-bit digest of the given non-negative integers.

    Each component is packed as a big-endian 8-byte value before being
    fed to blake2s, so the result is stable across sessions.
    """
    h = hashlib.blake2s(digest_size=8)
    for value in components:
        h.update(int(value).to_bytes(8, byteorder="big", signed=False))
    return int.from_bytes(h.digest(), byteorder="big", signed=False)


@dataclass(frozen=True)
class Node:
    """Member of a section.

    Attributes:
        name: Address of the node; also its unique identifier.
        age: Number of relocations survived, offset by the initial age.
    """

    name: int
    age: int

    def is_adult(self, params: Params) -> bool:
        return self.age > params.adult_age

    def relocated(self) -> "Node":
        """Return the node as it will exist after relocation."""
        return Node(stable_hash(self.name, self.age), self.age + 1)

    def is_relocation_due(self, event_hash: int) -> bool:
        """Return True if a churn event with ``event_hash`` triggers relocation.

        Older nodes are relocated exponentially less often.
        """
        return event_hash % (1 << self.age) == 0


def count_matching_adults(params: Params, prefix: Prefix, nodes: Iterable[Node]) -> int:
    """Count adult nodes whose names fall inside ``prefix``."""
    return sum(1 for node in nodes if node.is_adult(params) and prefix.matches(node.name))
