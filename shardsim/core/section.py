"""
Section state machine.

A section owns the nodes whose names fall inside its prefix, together
with the bookkeeping for relocations in flight. It is evaluated once per
round by the network and reacts by emitting actions; it never touches
the partition map itself. Within one tick a section:

1. processes the messages delivered to it during the previous round,
2. handles at most one queued churn event (join or drop), which may
   trigger the relocation of one of its nodes,
3. asks to split when both halves would hold enough adults, or to merge
   with its sibling when it has too few nodes.

Relocation caches:

``incoming_relocations``  relocated nodes this section accepted but has
                          not received yet, keyed by their new name.
``outgoing_relocations``  nodes leaving this section, keyed by their
                          current name, mapped to the relocated node.

Both caches must be empty once a tick has converged.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from .config import Params
from .message import (
    MESSAGE_TYPES,
    Action,
    Drop,
    Event,
    Join,
    Merge,
    Message,
    Reject,
    RelocateAccept,
    RelocateCancel,
    RelocateCommit,
    RelocateReject,
    RelocateRequest,
    Send,
    Split,
)
from .node import Node, count_matching_adults, stable_hash
from .prefix import ADDRESS_BITS, Prefix

logger = logging.getLogger(__name__)


class Section:
    """Mutable state owned by one prefix of the partition map."""

    def __init__(self, prefix: Prefix):
        self.prefix = prefix
        self.nodes: Dict[int, Node] = {}
        self.incoming_relocations: Dict[int, Node] = {}
        self.outgoing_relocations: Dict[int, Node] = {}
        self._inbox: List[Message] = []
        self._events: List[Event] = []
        # Per-tick flags, reset by ``prepare``
        self._churned = False
        self._accepted_relocation = False

    def __repr__(self) -> str:
        return f"Section([{self.prefix}], nodes={len(self.nodes)})"

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def add_node(self, node: Node) -> None:
        """Insert ``node`` directly, bypassing admission control."""
        self._check_address(node.name)
        self.nodes[node.name] = node

    def queue_event(self, event: Event) -> None:
        """Queue a join or drop to be handled on a later evaluation."""
        self._check_address(event.address)
        self._events.append(event)

    def pending_events(self) -> int:
        return len(self._events)

    def receive(self, message: Message) -> None:
        """Accept a message addressed to this section.

        Messages are only queued here; they are acted upon by the next
        call to ``evaluate``.
        """
        if not isinstance(message, MESSAGE_TYPES):
            raise TypeError(f"unknown message type: {type(message).__name__}")
        self._check_address(message.target)
        self._inbox.append(message)

    def _check_address(self, address: int) -> None:
        if not self.prefix.matches(address):
            raise ValueError(f"address {address:#018x} is outside section [{self.prefix}]")

    # ------------------------------------------------------------------
    # Tick hooks
    # ------------------------------------------------------------------

    def prepare(self) -> None:
        self._churned = False
        self._accepted_relocation = False

    def evaluate(self, params: Params) -> List[Action]:
        """Run one round of this section and return the emitted actions."""
        actions: List[Action] = []

        inbox, self._inbox = self._inbox, []
        for message in inbox:
            actions.extend(self._handle_message(params, message))

        if self._events and not self._churned:
            self._churned = True
            actions.extend(self._handle_event(params, self._events.pop(0)))

        if self._should_split(params):
            actions.append(Split(self.prefix))
        elif self._should_merge(params):
            actions.append(Merge(self.prefix.parent()))

        return actions

    def is_complete(self, params: Params) -> bool:
        """Return True once the section holds enough adults to be stable."""
        return self.num_adults(params) >= params.min_section_size

    def num_adults(self, params: Params) -> int:
        return sum(1 for node in self.nodes.values() if node.is_adult(params))

    # ------------------------------------------------------------------
    # Structural changes
    # ------------------------------------------------------------------

    def merge(self, params: Params, other: "Section") -> None:
        """Absorb ``other``, which must lie inside this section's prefix.

        ``other`` is left empty and must not be used afterwards. The
        result does not depend on the order in which sources are merged.
        """
        if not other.prefix.is_descendant(self.prefix):
            raise ValueError(f"cannot merge [{other.prefix}] into [{self.prefix}]")
        self.nodes.update(other.nodes)
        self.incoming_relocations.update(other.incoming_relocations)
        self.outgoing_relocations.update(other.outgoing_relocations)
        self._inbox.extend(other._inbox)
        self._events.extend(other._events)
        self._churned = self._churned or other._churned
        self._accepted_relocation = self._accepted_relocation or other._accepted_relocation
        other._clear()

    def split(self, params: Params) -> Tuple["Section", "Section"]:
        """Divide this section into its two children.

        Every node, cache entry, queued message and queued event goes to
        the child whose prefix matches its address. This section is left
        empty and must not be used afterwards.
        """
        children = tuple(Section(prefix) for prefix in self.prefix.split())
        for child in children:
            child._churned = self._churned
            child._accepted_relocation = self._accepted_relocation
            child.nodes = {
                name: node for name, node in self.nodes.items() if child.prefix.matches(name)
            }
            child.incoming_relocations = {
                name: node
                for name, node in self.incoming_relocations.items()
                if child.prefix.matches(name)
            }
            child.outgoing_relocations = {
                name: node
                for name, node in self.outgoing_relocations.items()
                if child.prefix.matches(name)
            }
            child._inbox = [m for m in self._inbox if child.prefix.matches(m.target)]
            child._events = [e for e in self._events if child.prefix.matches(e.address)]
        self._clear()
        return children[0], children[1]

    def _clear(self) -> None:
        self.nodes = {}
        self.incoming_relocations = {}
        self.outgoing_relocations = {}
        self._inbox = []
        self._events = []

    def _should_split(self, params: Params) -> bool:
        if self.prefix.length == ADDRESS_BITS:
            return False
        threshold = params.split_threshold()
        return all(
            count_matching_adults(params, child, self.nodes.values()) >= threshold
            for child in self.prefix.split()
        )

    def _should_merge(self, params: Params) -> bool:
        return self.prefix.length > 0 and len(self.nodes) < params.min_section_size

    # ------------------------------------------------------------------
    # Churn
    # ------------------------------------------------------------------

    def _handle_event(self, params: Params, event: Event) -> List[Action]:
        if isinstance(event, Join):
            node = event.node
            if node.name in self.nodes or node.name in self.incoming_relocations:
                logger.debug("[%s]: duplicate join of %x rejected", self.prefix, node.name)
                return [Reject(node.name)]
            if self.is_complete(params) and self._num_infants(params) >= params.max_infants:
                return [Reject(node.name)]
            self.nodes[node.name] = node
            return self._relocate_one(params, stable_hash(node.name, 0))
        elif isinstance(event, Drop):
            if self.nodes.pop(event.name, None) is None:
                return []
            # A pending relocation of the dropped node is cancelled when
            # the destination's accept comes back.
            self.outgoing_relocations.pop(event.name, None)
            return self._relocate_one(params, stable_hash(event.name, 1))
        raise TypeError(f"unknown event type: {type(event).__name__}")

    def _num_infants(self, params: Params) -> int:
        return sum(1 for node in self.nodes.values() if not node.is_adult(params))

    def _relocate_one(self, params: Params, event_hash: int) -> List[Action]:
        staying = len(self.nodes) - len(self.outgoing_relocations)
        if self.prefix.length > 0 and staying <= params.min_section_size:
            return []

        candidates = [
            node
            for node in self.nodes.values()
            if node.name not in self.outgoing_relocations and node.is_relocation_due(event_hash)
        ]
        if not candidates:
            return []

        node = max(candidates, key=lambda n: (n.age, n.name))
        relocated = node.relocated()
        self.outgoing_relocations[node.name] = relocated
        logger.debug(
            "[%s]: relocating %x (age %d) to %x", self.prefix, node.name, node.age, relocated.name
        )
        return [Send(RelocateRequest(relocated.name, node.name, relocated))]

    # ------------------------------------------------------------------
    # Relocation handshake
    # ------------------------------------------------------------------

    def _handle_message(self, params: Params, message: Message) -> List[Action]:
        if isinstance(message, RelocateRequest):
            node = message.node
            if (
                self._accepted_relocation
                or node.name in self.nodes
                or node.name in self.incoming_relocations
            ):
                return [Reject(node.name), Send(RelocateReject(message.source))]
            self._accepted_relocation = True
            self.incoming_relocations[node.name] = node
            return [Send(RelocateAccept(message.source, node.name))]

        elif isinstance(message, RelocateAccept):
            relocated = self.outgoing_relocations.pop(message.target, None)
            if relocated is None:
                # The node dropped after its relocation was requested.
                return [Send(RelocateCancel(message.new_name))]
            del self.nodes[message.target]
            return [Send(RelocateCommit(relocated.name, relocated))]

        elif isinstance(message, RelocateReject):
            self.outgoing_relocations.pop(message.target, None)
            return []

        elif isinstance(message, RelocateCommit):
            self.incoming_relocations.pop(message.node.name, None)
            self.nodes[message.node.name] = message.node
            return []

        elif isinstance(message, RelocateCancel):
            self.incoming_relocations.pop(message.target, None)
            return []

        raise TypeError(f"unknown message type: {type(message).__name__}")
