"""
Network: tick orchestration, action resolution and invariant checks.

The network owns the partition map, a mapping from prefix to section
whose keys always form an exact partition of the address space at tick
boundaries. One tick proceeds as follows:

1. every section is prepared,
2. rounds are run until quiescent: each round evaluates every section
   once and resolves the concatenated actions against the map,
3. the tick totals are recorded in the ``Stats`` sink,
4. the converged map is validated.

The map is mutated only by ``apply``. Sections are moved out of the map
when merged or split and never shared between two entries.

Benign races (a ``Merge`` whose sources were already merged, a
``Split`` whose source was already absorbed) are resolved as no-ops.
Anything else that breaks the partition raises ``FatalError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from .config import Params
from .errors import FatalError
from .message import Action, Drop, Join, Merge, Reject, RelocateCommit, Send, Split
from .node import Node, count_matching_adults
from .prefix import ADDRESS_BITS, ADDRESS_SPACE, ROOT, Prefix
from .section import Section
from .stats import Aggregator, Distribution, Stats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TickStats:
    """Event counters for one round, or for a whole tick once combined.

    ``empty_merges`` and ``stale_splits`` count the benign races that
    were resolved as no-ops; they are diagnostics only and are not
    recorded in ``Stats``.
    """
    merges: int = 0
    splits: int = 0
    relocations: int = 0
    rejections: int = 0
    empty_merges: int = 0
    stale_splits: int = 0

    def combine(self, other: "TickStats") -> "TickStats":
        return TickStats(
            merges=self.merges + other.merges,
            splits=self.splits + other.splits,
            relocations=self.relocations + other.relocations,
            rejections=self.rejections + other.rejections,
            empty_merges=self.empty_merges + other.empty_merges,
            stale_splits=self.stale_splits + other.stale_splits,
        )


@dataclass(frozen=True)
class TickReport:
    """Outcome of a converged tick."""
    iteration: int
    rounds: int
    stats: TickStats


class Network:
    """Simulated network of sections partitioning the address space."""

    def __init__(self, params: Params, section_factory: Callable[[Prefix], Section] = Section):
        self.params = params
        self.stats = Stats()
        self.section_factory = section_factory
        self.sections: Dict[Prefix, Section] = {ROOT: section_factory(ROOT)}

    @classmethod
    def from_sections(
        cls,
        params: Params,
        sections: Iterable[Section],
        section_factory: Callable[[Prefix], Section] = Section,
    ) -> "Network":
        """Build a network whose map holds exactly ``sections``.

        Raises ``FatalError`` if the sections do not partition the
        address space.
        """
        network = cls(params, section_factory)
        network.sections = {section.prefix: section for section in sections}
        network.check_partition()
        return network

    # ------------------------------------------------------------------
    # Driver inputs
    # ------------------------------------------------------------------

    def section_for(self, address: int) -> Section:
        """Return the section responsible for ``address``."""
        section = self._find_section(address)
        if section is None:
            raise FatalError(f"no section matching {address:#018x} found")
        return section

    def join(self, node: Node) -> None:
        self.section_for(node.name).queue_event(Join(node))

    def drop(self, name: int) -> None:
        self.section_for(name).queue_event(Drop(name))

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, iteration: int) -> TickReport:
        """Execute a single iteration of the simulation."""
        for section in self.sections.values():
            section.prepare()

        stats = TickStats()
        rounds = 0
        while True:
            actions: List[Action] = []
            for section in self.sections.values():
                actions.extend(section.evaluate(self.params))

            if not actions:
                break

            rounds += 1
            if rounds > self.params.max_rounds_per_tick:
                raise FatalError(
                    f"tick {iteration} did not converge within "
                    f"{self.params.max_rounds_per_tick} rounds"
                )
            logger.debug("tick %d round %d: %d actions", iteration, rounds, len(actions))
            stats = stats.combine(self.apply(actions))

        self.stats.record(
            iteration,
            self.num_nodes(),
            len(self.sections),
            stats.merges,
            stats.splits,
            stats.relocations,
            stats.rejections,
        )
        if stats.empty_merges or stats.stale_splits:
            logger.debug(
                "tick %d: %d empty merges, %d stale splits ignored",
                iteration,
                stats.empty_merges,
                stats.stale_splits,
            )

        self.validate()
        return TickReport(iteration, rounds, stats)

    def apply(self, actions: List[Action]) -> TickStats:
        """Resolve one round of actions against the partition map.

        The list is consumed. Returns the counters for this round.
        """
        merges = splits = relocations = rejections = 0
        empty_merges = stale_splits = 0

        pending = list(actions)
        actions.clear()
        merge_targets = {action.target for action in pending if isinstance(action, Merge)}
        for action in pending:
            if isinstance(action, Reject):
                rejections += 1

            elif isinstance(action, Merge):
                # A merge nested inside another merge of the same round is
                # folded into the outer one, whichever comes first.
                if any(action.target.is_descendant(outer) for outer in merge_targets):
                    logger.debug("merge to [%s] covered by an outer merge", action.target)
                    empty_merges += 1
                elif self._merge(action.target):
                    merges += 1
                else:
                    empty_merges += 1

            elif isinstance(action, Split):
                # Counted even when stale so the totals do not depend on
                # whether a merge of the same region was resolved first.
                splits += 1
                if not self._split(action.source):
                    stale_splits += 1

            elif isinstance(action, Send):
                message = action.message
                section = self._find_section(message.target)
                if section is None:
                    raise FatalError(f"no section matching {message.target:#018x} found")
                if isinstance(message, RelocateCommit):
                    relocations += 1
                section.receive(message)

            else:
                raise TypeError(f"unknown action type: {type(action).__name__}")

        return TickStats(merges, splits, relocations, rejections, empty_merges, stale_splits)

    def _merge(self, target: Prefix) -> bool:
        sources = [prefix for prefix in self.sections if prefix.is_descendant(target)]
        if not sources:
            # Both halves of a pair can lose nodes in the same round and
            # each ask for the same merge; the second request finds
            # nothing left to merge.
            logger.debug("pre-merge sections not found (to be merged to [%s])", target)
            return False

        removed = [self.sections.pop(prefix) for prefix in sources]
        section = self.sections.get(target)
        if section is None:
            section = self.section_factory(target)
            self.sections[target] = section
        for source in removed:
            section.merge(self.params, source)
        logger.debug("merged %d sections into [%s]", len(removed), target)
        return True

    def _split(self, source: Prefix) -> bool:
        section = self.sections.pop(source, None)
        if section is None:
            # The section asked to split but a merge resolved earlier in
            # the same round absorbed it. Each section emits at most one
            # split per round, so this is never a duplicate.
            logger.debug("pre-split section [%s] not found", source)
            return False

        for child in section.split(self.params):
            if child.prefix in self.sections:
                raise FatalError(
                    f"section with prefix [{child.prefix}] already exists", child.prefix
                )
            self.sections[child.prefix] = child
        logger.debug("split [%s]", source)
        return True

    def _find_section(self, address: int) -> Optional[Section]:
        for section in self.sections.values():
            if section.prefix.matches(address):
                return section
        return None

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def check_partition(self) -> None:
        """Raise ``FatalError`` unless the map exactly partitions the space."""
        for prefix, section in self.sections.items():
            if section.prefix != prefix:
                raise FatalError(
                    f"section [{section.prefix}] stored under key [{prefix}]", prefix
                )

        # Sorted by lower bound, an exact partition tiles the space with
        # no gap and no overlap.
        expected = 0
        for prefix in sorted(self.sections, key=lambda p: p.lower_bound()):
            if prefix.lower_bound() != expected:
                raise FatalError(f"partition gap or overlap at [{prefix}]", prefix)
            expected += prefix.span()
        if expected != ADDRESS_SPACE:
            raise FatalError("partition does not cover the whole address space")

    def validate(self) -> None:
        """Check the converged map after a tick."""
        self.check_partition()

        for section in self.sections.values():
            prefix = section.prefix
            oversized = len(section.nodes) > self.params.max_section_size
            if oversized and prefix.length < ADDRESS_BITS:
                prefix0, prefix1 = prefix.split()
                count0 = count_matching_adults(self.params, prefix0, section.nodes.values())
                count1 = count_matching_adults(self.params, prefix1, section.nodes.values())
                logger.error(
                    "[%s]: too many nodes: %d (adults per subsections: [..0]: %d, [..1]: %d)",
                    prefix,
                    len(section.nodes),
                    count0,
                    count1,
                )

            incoming = section.incoming_relocations
            if len(incoming) > 0:
                raise FatalError(
                    f"[{prefix}]: incoming relocation cache not cleared: {incoming!r}", prefix
                )

            outgoing = section.outgoing_relocations
            if len(outgoing) > 0:
                raise FatalError(
                    f"[{prefix}]: outgoing relocation cache not cleared: {outgoing!r}", prefix
                )

    # ------------------------------------------------------------------
    # Read views
    # ------------------------------------------------------------------

    def num_nodes(self) -> int:
        return sum(len(section.nodes) for section in self.sections.values())

    def num_complete_sections(self) -> int:
        return sum(1 for section in self.sections.values() if section.is_complete(self.params))

    def age_distribution(self) -> Distribution:
        return Distribution(self._ages())

    def age_aggregator(self) -> Aggregator:
        return Aggregator(self._ages())

    def section_size_aggregator(self) -> Aggregator:
        return Aggregator(len(section.nodes) for section in self.sections.values())

    def prefix_len_aggregator(self) -> Aggregator:
        return Aggregator(prefix.length for prefix in self.sections)

    def _ages(self):
        for section in self.sections.values():
            for node in section.nodes.values():
                yield node.age
