"""
Tests for the core.stats and core.config modules.
"""

import unittest
import sys
import os

import numpy as np

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shardsim.core.config import Params
from shardsim.core.stats import Aggregator, Distribution, Stats


class TestStats(unittest.TestCase):
    """Tests for the Stats sink."""

    def test_empty(self):
        """Test an empty history."""
        stats = Stats()
        self.assertEqual(len(stats), 0)
        self.assertEqual(stats.as_array().shape, (0, len(Stats.COLUMNS)))
        self.assertEqual(stats.summary(), "no ticks recorded")
        with self.assertRaises(IndexError):
            stats.last()

    def test_record_and_totals(self):
        """Test records are kept in order and counters summed."""
        stats = Stats()
        stats.record(1, 10, 1, 0, 1, 2, 3)
        stats.record(2, 12, 2, 1, 0, 1, 0)
        self.assertEqual(stats.last().iteration, 2)
        self.assertEqual(stats.last().nodes, 12)
        self.assertEqual(
            stats.totals(), {"merges": 1, "splits": 1, "relocations": 3, "rejections": 3}
        )
        table = stats.as_array()
        np.testing.assert_array_equal(table[:, 0], [1, 2])
        self.assertIn("nodes: 12", stats.summary())
        self.assertIn("relocations: 3", stats.summary())


class TestDistribution(unittest.TestCase):
    """Tests for the Distribution histogram."""

    def test_counts(self):
        """Test occurrences are counted per value."""
        dist = Distribution([4, 5, 5, 7])
        self.assertEqual(dist[5], 2)
        self.assertEqual(dist[6], 0)
        self.assertEqual(dist.total(), 4)
        self.assertEqual(str(dist), "4: 1, 5: 2, 7: 1")

    def test_empty(self):
        """Test an empty histogram."""
        self.assertEqual(Distribution([]).total(), 0)


class TestAggregator(unittest.TestCase):
    """Tests for the Aggregator summary."""

    def test_values(self):
        """Test min, max and mean."""
        agg = Aggregator(iter([2, 4, 9]))
        self.assertEqual(agg.count, 3)
        self.assertEqual(agg.min, 2)
        self.assertEqual(agg.max, 9)
        self.assertAlmostEqual(agg.mean, 5.0)
        self.assertEqual(str(agg), "min: 2, max: 9, avg: 5.00")

    def test_empty(self):
        """Test an empty sequence aggregates to zeros."""
        agg = Aggregator([])
        self.assertEqual((agg.count, agg.min, agg.max, agg.mean), (0, 0, 0, 0.0))


class TestParams(unittest.TestCase):
    """Tests for Params validation."""

    def test_defaults_are_valid(self):
        """Test the default configuration passes validation."""
        Params().validate()

    def test_split_threshold(self):
        """Test the split threshold adds the buffer."""
        self.assertEqual(Params(min_section_size=8, split_buffer=2).split_threshold(), 10)

    def test_invalid_values(self):
        """Test inconsistent parameters are rejected."""
        with self.assertRaises(ValueError):
            Params(min_section_size=0).validate()
        with self.assertRaises(ValueError):
            Params(max_section_size=10, min_section_size=8).validate()
        with self.assertRaises(ValueError):
            Params(drop_probability=1.5).validate()

    def test_to_dict(self):
        """Test the dict view is a copy."""
        params = Params()
        data = params.to_dict()
        data["seed"] = -1
        self.assertEqual(params.seed, 42)


if __name__ == "__main__":
    unittest.main()
