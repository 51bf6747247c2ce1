"""
Parameters of a network simulation run.

``Params`` holds the section size limits, the node ageing thresholds,
the per-tick round cap, the random seed and the churn rates. Defaults
give a working churn run. The network, its sections and the validator
all read the same instance, which must not change during a tick.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass
class Params:
    """Top level configuration for shardsim runs.

    Section sizing fields drive both the split/merge decisions made by
    sections and the capacity warning emitted by the validator. Ageing
    fields control when a node counts as an adult. Churn fields are only
    consumed by the scenario driver.
    """

    # Section sizing
    max_section_size: int = 60
    min_section_size: int = 8
    split_buffer: int = 1

    # Node ageing
    init_age: int = 4
    adult_age: int = 4  # a node is an adult once its age exceeds this
    max_infants: int = 1

    # Convergence guard (rounds per tick before the run is aborted)
    max_rounds_per_tick: int = 1000

    # Random seed for the scenario driver
    seed: int = 42

    # Churn rates used by the scenario driver
    joins_per_tick: int = 2
    drop_probability: float = 0.005

    def split_threshold(self) -> int:
        """Adults each child must hold before a section splits."""
        return self.min_section_size + self.split_buffer

    def validate(self) -> None:
        """Raise ``ValueError`` if the parameters are inconsistent."""
        if self.min_section_size < 1:
            raise ValueError("min_section_size must be at least 1")
        if self.split_buffer < 0:
            raise ValueError("split_buffer must not be negative")
        if self.max_section_size < 2 * self.split_threshold():
            raise ValueError(
                "max_section_size must fit two post-split sections "
                f"({2 * self.split_threshold()} nodes)"
            )
        if self.init_age < 0 or self.adult_age < 0:
            raise ValueError("ages must not be negative")
        if self.max_infants < 0:
            raise ValueError("max_infants must not be negative")
        if self.max_rounds_per_tick < 1:
            raise ValueError("max_rounds_per_tick must be at least 1")
        if self.joins_per_tick < 0:
            raise ValueError("joins_per_tick must not be negative")
        if not 0.0 <= self.drop_probability <= 1.0:
            raise ValueError("drop_probability must be within [0, 1]")

    def to_dict(self) -> dict:
        """Return the parameters as a plain dict, keyed by field name."""
        return asdict(self)
