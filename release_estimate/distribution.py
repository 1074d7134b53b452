"""
PURPOSE: Aggregate iteration outcomes into a bucketed estimate distribution.

RESPONSIBILITIES:
- Count successful iterations per duration bucket
- Count failed iterations
- Compute average and median estimates from the buckets
- Serialize the distribution for storage
- Single responsibility: aggregation and statistics, no simulation

Bucketing keeps the result bounded and serializable regardless of the number
of iterations, and lets the statistics be computed without retaining every
individual duration.
"""

import threading
from typing import Any, Dict, Mapping, Tuple, Union

from release_estimate.errors import EmptyDistributionError

Number = Union[int, float]


def bucket_key(duration: Number, bucket_size: Number) -> Number:
    """
    Round a duration down to the start of its bucket.

    Rounds toward zero, so a negative duration lands in the bucket nearer zero.

    Args:
        duration: Estimated duration in seconds.
        bucket_size: Bucket width in seconds (> 0).

    Returns:
        The bucket key for the duration.
    """
    if bucket_size <= 0:
        raise ValueError(f"bucket_size must be positive, got {bucket_size}")
    remainder = abs(duration) % bucket_size
    if duration < 0:
        return duration + remainder
    return duration - remainder


class EstimateDistribution:
    """
    Histogram of successful iteration estimates plus success/failure counters.

    Mutations are atomic, so several worker threads may record outcomes into
    the same instance.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._buckets: Dict[Number, int] = {}
        self._success_count = 0
        self._failure_count = 0

    def __getstate__(self):
        state = self.__dict__.copy()
        del state["_lock"]
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self._lock = threading.Lock()

    def __repr__(self):
        return (
            f"<EstimateDistribution(buckets={len(self._buckets)}, "
            f"success_count={self._success_count}, failure_count={self._failure_count})>"
        )

    def record_success(self, bucket: Number) -> None:
        """Record a successful iteration in the given bucket."""
        with self._lock:
            self._buckets[bucket] = self._buckets.get(bucket, 0) + 1
            self._success_count += 1

    def record_failure(self) -> None:
        """Record a failed iteration."""
        with self._lock:
            self._failure_count += 1

    def get_success_count(self) -> int:
        return self._success_count

    def get_failure_count(self) -> int:
        return self._failure_count

    def snapshot(self) -> Tuple[int, int]:
        """Return (success_count, failure_count) read together."""
        with self._lock:
            return self._success_count, self._failure_count

    def get_buckets(self) -> Dict[Number, int]:
        """Return a copy of the histogram, ordered by bucket key."""
        with self._lock:
            return dict(sorted(self._buckets.items()))

    def get_average(self) -> float:
        """
        Mean of the bucket keys weighted by their counts.

        Raises:
            EmptyDistributionError: If no iteration succeeded.
        """
        with self._lock:
            if self._success_count == 0:
                raise EmptyDistributionError("No successful iterations to average")
            total = sum(key * count for key, count in self._buckets.items())
            return total / self._success_count

    def get_median(self, interpolate: bool = False) -> Number:
        """
        Median bucket of the successful iterations.

        When the median rank falls exactly on the boundary between two
        buckets, interpolation returns the midpoint between their keys.
        Otherwise the key of the bucket holding the median is returned.
        Empty stretches between buckets are bridged, so the midpoint may lie
        several bucket widths away from either key.

        Args:
            interpolate: Interpolate between buckets when the median lies between them.

        Returns:
            The median estimate in seconds.

        Raises:
            EmptyDistributionError: If no iteration succeeded.
        """
        with self._lock:
            if self._success_count == 0:
                raise EmptyDistributionError("No successful iterations to take a median of")
            buckets = sorted(self._buckets.items())
            median_rank = self._success_count / 2

        accumulated = 0
        for index, (key, count) in enumerate(buckets):
            accumulated += count
            if accumulated < median_rank:
                continue
            if interpolate and accumulated == median_rank and index + 1 < len(buckets):
                next_key = buckets[index + 1][0]
                return key + (next_key - key) / 2
            return key

        # Counts always sum to success_count, so the loop returns.
        raise AssertionError("median rank exceeds recorded successes")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        with self._lock:
            return {
                "buckets": {str(key): count for key, count in sorted(self._buckets.items())},
                "success_count": self._success_count,
                "failure_count": self._failure_count,
            }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EstimateDistribution":
        """Rebuild a distribution from the output of to_dict()."""
        distribution = cls()
        for key, count in data.get("buckets", {}).items():
            number = float(key)
            distribution._buckets[int(number) if number.is_integer() else number] = int(count)
        distribution._success_count = int(data.get("success_count", sum(distribution._buckets.values())))
        distribution._failure_count = int(data.get("failure_count", 0))
        return distribution
