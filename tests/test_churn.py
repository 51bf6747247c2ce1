"""
Tests for the scenarios.churn module.

These run the full simulation for a bounded number of iterations and
check the properties that must hold after every converged tick.
"""

import unittest
import io
import contextlib
import sys
import os

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shardsim.core.config import Params
from shardsim.core.prefix import ADDRESS_BITS
from shardsim.scenarios.churn import ChurnScenario, main, report, run


def small_params(**overrides):
    values = dict(
        max_section_size=20,
        min_section_size=4,
        split_buffer=1,
        joins_per_tick=4,
        drop_probability=0.02,
        seed=7,
    )
    values.update(overrides)
    return Params(**values)


class TestChurnScenario(unittest.TestCase):
    """Tests for ChurnScenario."""

    def test_partition_complete_after_every_tick(self):
        """Test every sampled address has exactly one owner after each tick."""
        scenario = ChurnScenario(small_params())
        rng = np.random.default_rng(0)
        for _ in range(60):
            scenario.step()
            sections = list(scenario.network.sections.values())
            for high, low in rng.integers(0, 1 << (ADDRESS_BITS // 2), size=(20, 2)):
                address = (int(high) << (ADDRESS_BITS // 2)) | int(low)
                owners = [s for s in sections if s.prefix.matches(address)]
                self.assertEqual(len(owners), 1)

    def test_ticks_converge_quickly(self):
        """Test the round loop terminates well inside a small bound."""
        scenario = ChurnScenario(small_params(joins_per_tick=6))
        for tick_report in scenario.run(150):
            nodes = scenario.network.stats.records[tick_report.iteration - 1].nodes
            # One relocation handshake plus a split or merge cascade fits in
            # four rounds beyond one per node.
            self.assertLessEqual(tick_report.rounds, nodes + 4)

    def test_recorded_totals_match_map(self):
        """Test the recorded node and section counts reflect the map."""
        network = run(small_params(), 40)
        record = network.stats.last()
        self.assertEqual(len(network.stats), 40)
        self.assertEqual(record.nodes, network.num_nodes())
        self.assertEqual(record.sections, len(network.sections))
        for section in network.sections.values():
            self.assertEqual(section.incoming_relocations, {})
            self.assertEqual(section.outgoing_relocations, {})
            for name in section.nodes:
                self.assertTrue(section.prefix.matches(name))

    def test_runs_are_reproducible(self):
        """Test the same seed produces the same history."""
        first = run(small_params(), 50)
        second = run(small_params(), 50)
        np.testing.assert_array_equal(first.stats.as_array(), second.stats.as_array())
        self.assertEqual(sorted(first.sections), sorted(second.sections))

    def test_invalid_params_rejected(self):
        """Test the scenario validates its configuration."""
        with self.assertRaises(ValueError):
            ChurnScenario(small_params(min_section_size=0))

    def test_report(self):
        """Test the end-of-run report mentions every view."""
        text = report(run(small_params(), 5))
        self.assertIn("iterations: 5", text)
        self.assertIn("section size:", text)
        self.assertIn("age distribution:", text)


class TestMain(unittest.TestCase):
    """Tests for the command line entry point."""

    def test_main_prints_summary(self):
        """Test a short run prints its summary."""
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = main(["--iterations", "5", "--seed", "3", "--max-section-size", "20"])
        self.assertEqual(code, 0)
        self.assertIn("iterations: 5", out.getvalue())

    def test_main_rejects_invalid_params(self):
        """Test invalid parameters exit with a usage error code."""
        code = main(["--iterations", "1", "--min-section-size", "0"])
        self.assertEqual(code, 2)


if __name__ == "__main__":
    unittest.main()
