"""
Unit tests for the estimate distribution aggregator.

STRATEGY:
    1. Statistics on hand-built histograms (average, median with and without interpolation)
    2. Empty distributions refuse to produce statistics
    3. Recording order and concurrent writers do not change the result
    4. Bucket rounding, including negative durations
"""

import pickle
import random
import threading
import unittest

from release_estimate.distribution import EstimateDistribution, bucket_key
from release_estimate.errors import EmptyDistributionError

DAY = 86400


def build_distribution(buckets, failures=0):
    distribution = EstimateDistribution()
    for key, count in buckets.items():
        for _ in range(count):
            distribution.record_success(key)
    for _ in range(failures):
        distribution.record_failure()
    return distribution


class TestBucketKey(unittest.TestCase):
    """Test rounding durations to bucket keys."""

    def test_rounds_down_to_bucket_start(self):
        self.assertEqual(bucket_key(90000, DAY), DAY)
        self.assertEqual(bucket_key(DAY - 1, DAY), 0)

    def test_exact_boundary_stays_in_bucket(self):
        self.assertEqual(bucket_key(2 * DAY, DAY), 2 * DAY)
        self.assertEqual(bucket_key(0, DAY), 0)

    def test_negative_duration_truncates_toward_zero(self):
        """Negative durations must not fall into the next lower bucket."""
        self.assertEqual(bucket_key(-1, DAY), 0)
        self.assertEqual(bucket_key(-90000, DAY), -DAY)

    def test_rejects_non_positive_bucket_size(self):
        with self.assertRaises(ValueError):
            bucket_key(100, 0)


class TestRecording(unittest.TestCase):
    """Test success/failure bookkeeping."""

    def test_new_distribution_is_empty(self):
        distribution = EstimateDistribution()
        self.assertEqual(distribution.get_success_count(), 0)
        self.assertEqual(distribution.get_failure_count(), 0)
        self.assertEqual(distribution.get_buckets(), {})

    def test_success_creates_and_increments_bucket(self):
        distribution = EstimateDistribution()
        distribution.record_success(DAY)
        distribution.record_success(DAY)
        distribution.record_success(0)
        self.assertEqual(distribution.get_buckets(), {0: 1, DAY: 2})
        self.assertEqual(distribution.get_success_count(), 3)
        self.assertEqual(distribution.get_failure_count(), 0)

    def test_failure_only_counts(self):
        distribution = EstimateDistribution()
        distribution.record_failure()
        distribution.record_failure()
        self.assertEqual(distribution.get_failure_count(), 2)
        self.assertEqual(distribution.get_success_count(), 0)
        self.assertEqual(distribution.get_buckets(), {})

    def test_recording_order_does_not_matter(self):
        """The same outcomes in any order give the same state."""
        outcomes = [0] * 5 + [DAY] * 3 + [3 * DAY] * 2 + [None] * 4
        states = []
        for seed in range(5):
            shuffled = list(outcomes)
            random.Random(seed).shuffle(shuffled)
            distribution = EstimateDistribution()
            for outcome in shuffled:
                if outcome is None:
                    distribution.record_failure()
                else:
                    distribution.record_success(outcome)
            states.append(distribution.to_dict())
        for state in states[1:]:
            self.assertEqual(state, states[0])

    def test_concurrent_writers(self):
        """Counters stay exact with several threads recording at once."""
        distribution = EstimateDistribution()

        def record():
            for i in range(1000):
                distribution.record_success((i % 4) * DAY)
                distribution.record_failure()

        threads = [threading.Thread(target=record) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(distribution.snapshot(), (8000, 8000))
        self.assertEqual(sum(distribution.get_buckets().values()), 8000)


class TestAverage(unittest.TestCase):
    """Test the weighted average."""

    def test_single_bucket_average_is_bucket_key(self):
        distribution = build_distribution({5 * DAY: 7})
        self.assertEqual(distribution.get_average(), 5 * DAY)

    def test_weighted_average(self):
        distribution = build_distribution({0: 1, DAY: 2, 4 * DAY: 1})
        self.assertEqual(distribution.get_average(), 1.5 * DAY)

    def test_failures_do_not_affect_average(self):
        distribution = build_distribution({DAY: 2}, failures=10)
        self.assertEqual(distribution.get_average(), DAY)

    def test_empty_raises(self):
        with self.assertRaises(EmptyDistributionError):
            EstimateDistribution().get_average()

    def test_only_failures_raises(self):
        with self.assertRaises(EmptyDistributionError):
            build_distribution({}, failures=3).get_average()


class TestMedian(unittest.TestCase):
    """Test the median lookup."""

    def test_middle_of_three_buckets(self):
        distribution = build_distribution({0: 1, DAY: 1, 2 * DAY: 1})
        self.assertEqual(distribution.get_median(False), DAY)

    def test_interpolates_between_buckets(self):
        distribution = build_distribution({0: 1, DAY: 1})
        self.assertEqual(distribution.get_median(True), DAY / 2)

    def test_without_interpolation_returns_lower_bucket(self):
        distribution = build_distribution({0: 1, DAY: 1})
        self.assertEqual(distribution.get_median(False), 0)

    def test_interpolation_ignored_inside_a_bucket(self):
        distribution = build_distribution({0: 1, DAY: 3, 2 * DAY: 1})
        self.assertEqual(distribution.get_median(True), DAY)

    def test_interpolates_across_gap(self):
        distribution = build_distribution({DAY: 2, 5 * DAY: 2})
        self.assertEqual(distribution.get_median(True), 3 * DAY)

    def test_unsorted_insertion(self):
        distribution = build_distribution({3 * DAY: 1, 0: 1, DAY: 1})
        self.assertEqual(distribution.get_median(), DAY)

    def test_empty_raises(self):
        with self.assertRaises(EmptyDistributionError):
            EstimateDistribution().get_median()
        with self.assertRaises(EmptyDistributionError):
            EstimateDistribution().get_median(True)

    def test_empty_error_is_runtime_error(self):
        with self.assertRaises(RuntimeError):
            EstimateDistribution().get_median(True)


class TestSerialization(unittest.TestCase):
    """Test storage formats."""

    def test_to_dict(self):
        distribution = build_distribution({DAY: 2, 0: 1}, failures=3)
        self.assertEqual(
            distribution.to_dict(),
            {"buckets": {"0": 1, "86400": 2}, "success_count": 3, "failure_count": 3},
        )

    def test_from_dict_restores_statistics(self):
        original = build_distribution({0: 1, DAY: 1, 2 * DAY: 2}, failures=1)
        restored = EstimateDistribution.from_dict(original.to_dict())
        self.assertEqual(restored.get_buckets(), original.get_buckets())
        self.assertEqual(restored.snapshot(), original.snapshot())
        self.assertEqual(restored.get_median(True), original.get_median(True))

    def test_pickle_keeps_counts_and_lock(self):
        distribution = build_distribution({DAY: 2}, failures=1)
        restored = pickle.loads(pickle.dumps(distribution))
        restored.record_success(DAY)
        self.assertEqual(restored.snapshot(), (3, 1))
        self.assertEqual(distribution.snapshot(), (2, 1))


if __name__ == "__main__":
    unittest.main()
