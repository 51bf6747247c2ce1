"""
shardsim: structural simulation of a sharded, prefix-addressed network.

A population of nodes is partitioned into non-overlapping address-space
segments ("sections"). Under churn (joins, drops and node relocation)
sections split when they grow large enough and merge when they grow too
small. Each simulated tick resolves the structural actions emitted by
all sections into one consistent partition before time advances.

The subpackages are:

``shardsim.core``       Simulation core: prefixes, nodes, sections, the
                        tick orchestrator and its invariant checks,
                        configuration and statistics.
``shardsim.scenarios``  Drivers that feed churn into a network and run it
                        for a number of iterations.

Please see the individual modules for further documentation.
"""

__all__ = [
    "core",
    "scenarios",
]
