"""Simulation core: partition map, sections and tick orchestration."""

from .config import Params
from .errors import FatalError
from .network import Network, TickReport, TickStats
from .node import Node
from .prefix import ROOT, Prefix
from .section import Section
from .stats import Aggregator, Distribution, Stats

__all__ = [
    "Aggregator",
    "Distribution",
    "FatalError",
    "Network",
    "Node",
    "Params",
    "Prefix",
    "ROOT",
    "Section",
    "Stats",
    "TickReport",
    "TickStats",
]
