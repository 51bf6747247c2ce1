"""
Random churn scenario.

Starting from a single root section, every iteration queues
``Params.joins_per_tick`` joins of freshly named nodes and drops each
existing node with probability ``Params.drop_probability``, then ticks
the network. All randomness comes from a numpy generator seeded with
``Params.seed`` so runs are reproducible.

Run from the command line::

    python -m shardsim.scenarios.churn --iterations 500 --seed 7
"""

from __future__ import annotations

import argparse
import logging
from typing import List, Optional

import numpy as np

from ..core.config import Params
from ..core.network import Network, TickReport
from ..core.node import Node
from ..core.prefix import ADDRESS_BITS

logger = logging.getLogger(__name__)


class ChurnScenario:
    """Feed random joins and drops into a network, one tick at a time."""

    def __init__(self, params: Params):
        params.validate()
        self.params = params
        self.network = Network(params)
        self.rng = np.random.default_rng(params.seed)
        self.iteration = 0

    def random_name(self) -> int:
        # Two 32-bit draws keep the full address width independent of
        # numpy's signed default integer type.
        high, low = self.rng.integers(0, 1 << (ADDRESS_BITS // 2), size=2)
        return (int(high) << (ADDRESS_BITS // 2)) | int(low)

    def churn(self) -> None:
        """Queue this iteration's joins and drops on the network."""
        for _ in range(self.params.joins_per_tick):
            self.network.join(Node(self.random_name(), self.params.init_age))

        if self.params.drop_probability > 0.0:
            names = sorted(
                name for section in self.network.sections.values() for name in section.nodes
            )
            draws = self.rng.random(len(names))
            for name, draw in zip(names, draws):
                if draw < self.params.drop_probability:
                    self.network.drop(name)

    def step(self) -> TickReport:
        self.iteration += 1
        self.churn()
        report = self.network.tick(self.iteration)
        record = self.network.stats.last()
        logger.info(
            "iteration %d: %d nodes in %d sections (%d rounds)",
            report.iteration,
            record.nodes,
            record.sections,
            report.rounds,
        )
        return report

    def run(self, iterations: int) -> List[TickReport]:
        return [self.step() for _ in range(iterations)]


def run(params: Params, iterations: int) -> Network:
    """Run a churn scenario and return the resulting network."""
    scenario = ChurnScenario(params)
    scenario.run(iterations)
    return scenario.network


def report(network: Network) -> str:
    """Format the end-of-run statistics of ``network``."""
    lines = [
        network.stats.summary(),
        f"complete sections: {network.num_complete_sections()}",
        f"node age: {network.age_aggregator()}",
        f"section size: {network.section_size_aggregator()}",
        f"prefix length: {network.prefix_len_aggregator()}",
        f"age distribution: {network.age_distribution()}",
    ]
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    defaults = Params()
    parser = argparse.ArgumentParser(
        description="Simulate section splits and merges under random churn."
    )
    parser.add_argument("--iterations", type=int, default=1000, help="number of ticks to run")
    parser.add_argument("--seed", type=int, default=defaults.seed)
    parser.add_argument("--max-section-size", type=int, default=defaults.max_section_size)
    parser.add_argument("--min-section-size", type=int, default=defaults.min_section_size)
    parser.add_argument("--split-buffer", type=int, default=defaults.split_buffer)
    parser.add_argument("--init-age", type=int, default=defaults.init_age)
    parser.add_argument("--adult-age", type=int, default=defaults.adult_age)
    parser.add_argument("--max-infants", type=int, default=defaults.max_infants)
    parser.add_argument("--joins-per-tick", type=int, default=defaults.joins_per_tick)
    parser.add_argument("--drop-probability", type=float, default=defaults.drop_probability)
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    params = Params(
        max_section_size=args.max_section_size,
        min_section_size=args.min_section_size,
        split_buffer=args.split_buffer,
        init_age=args.init_age,
        adult_age=args.adult_age,
        max_infants=args.max_infants,
        seed=args.seed,
        joins_per_tick=args.joins_per_tick,
        drop_probability=args.drop_probability,
    )
    try:
        params.validate()
    except ValueError as exc:
        logger.error("invalid parameters: %s", exc)
        return 2

    logger.info("params: %s", params.to_dict())
    network = run(params, args.iterations)
    print(report(network))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
