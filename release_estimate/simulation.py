"""
PURPOSE: Monte Carlo engine estimating how long it takes to empty an issue backlog.

Each iteration replays randomly drawn historical transitions against the
current backlog until it is empty, and reports the simulated time that took.
A run repeats this many times and collects the results in an
EstimateDistribution.

SINGLE RESPONSIBILITY:
- Run single iterations with divergence and timeout failsafes
- Run many iterations, classify outcomes, and abort on too many failures or on timeout
- Hand the (possibly partial) distribution back to the caller

CONSTRAINTS:
- Does NOT select or weight samples; that is the sample source's job
- Does NOT handle database I/O or result formatting
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from release_estimate.config import RunConfig
from release_estimate.distribution import EstimateDistribution, bucket_key
from release_estimate.errors import (
    IncreasingBacklogError,
    IncreasingException,
    IterationTimeoutError,
    RunAbortedError,
    TimeoutException,
)
from release_estimate.sampling import SampleSource

logger = logging.getLogger(__name__)


class _RunState:
    """Shared bookkeeping for a run spread over several worker threads."""

    def __init__(self):
        self.lock = threading.Lock()
        self.stop = threading.Event()
        self.started = 0
        self.completed = 0
        self.abort: Optional[RunAbortedError] = None


class MonteCarlo:
    """
    Monte Carlo estimator for the time until a backlog of issues is resolved.

    Each iteration:
    - Starts from the issue count of the most recent sample
    - Repeatedly draws a random historical sample, adding its duration and
      subtracting the issues it resolved
    - Succeeds once no issues remain, fails if the backlog grows far beyond
      any count seen or the abort time passes
    """

    def __init__(
        self,
        sample_selector: SampleSource,
        config: Optional[RunConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the engine.

        Args:
            sample_selector: Source of the current sample and random historical samples.
            config: Run parameters (default RunConfig()).
            clock: Returns the current unix time; used for abort deadlines.
        """
        self.sample_selector = sample_selector
        self.config = config or RunConfig()
        self._clock = clock

    def iteration(self, abort_time: Optional[float] = None) -> int:
        """
        Get an estimated duration from a single iteration.

        Args:
            abort_time: Unix timestamp at which to give up on the iteration.

        Returns:
            Simulated seconds until the backlog is empty.

        Raises:
            IncreasingBacklogError: If the backlog diverged.
            IterationTimeoutError: If abort_time was reached.
        """
        return self._iterate(self.sample_selector, abort_time, self.config.divergence_factor)

    def _iterate(self, sample_selector, abort_time, divergence_factor):
        issues = highest_issues = sample_selector.last_sample().count
        duration = 0

        while True:
            sample = sample_selector.random_sample()
            duration += sample.duration
            issues -= sample.resolved

            highest_issues = max(highest_issues, sample.count, sample.resolved)

            # Failsafe for if the simulation goes in the wrong direction too far.
            if issues > highest_issues * divergence_factor:
                raise IncreasingBacklogError("Iteration failed due to increasing issue count")
            if abort_time is not None and self._clock() >= abort_time:
                raise IterationTimeoutError("Iteration passed the abort time")

            if issues <= 0:
                return duration

    def run_distribution(self, config: Optional[RunConfig] = None) -> EstimateDistribution:
        """
        Get the distribution of estimates over many iterations.

        Args:
            config: Run parameters; defaults to the engine's configuration.

        Returns:
            EstimateDistribution of bucketed estimates and failure counts.

        Raises:
            IncreasingException: Too many iterations failed after the warm-up period.
            TimeoutException: The time limit was reached.
            Both carry the partial distribution.
        """
        config = config or self.config
        distribution = EstimateDistribution()
        abort_time = self._clock() + config.time_limit

        logger.info(
            "Starting run of %s iterations (bucket size %ss, time limit %ss, workers %s)",
            config.iterations,
            config.bucket_size,
            config.time_limit,
            config.workers,
        )

        if config.workers > 1:
            self._run_parallel(config, distribution, abort_time)
        else:
            self._run_sequential(config, distribution, abort_time)

        success_count, failure_count = distribution.snapshot()
        logger.info(
            "Run completed after %s iterations: %s succeeded, %s failed",
            success_count + failure_count,
            success_count,
            failure_count,
        )
        return distribution

    def _run_sequential(self, config, distribution, abort_time):
        for run in range(1, config.iterations + 1):
            try:
                estimate = self._iterate(self.sample_selector, abort_time, config.divergence_factor)
            except IncreasingBacklogError as e:
                distribution.record_failure()
                if self._failure_ratio_exceeded(config, distribution, run):
                    raise self._aborted(
                        IncreasingException(f"Run aborted after iteration {run}", distribution, run), e
                    )
            except IterationTimeoutError as e:
                distribution.record_failure()
                raise self._aborted(
                    TimeoutException(f"Run aborted during iteration {run}", distribution, run), e
                )
            else:
                distribution.record_success(bucket_key(estimate, config.bucket_size))

    def _run_parallel(self, config, distribution, abort_time):
        state = _RunState()
        sources = [self._worker_source() for _ in range(config.workers)]

        with ThreadPoolExecutor(max_workers=config.workers, thread_name_prefix="monte-carlo") as executor:
            futures = [
                executor.submit(self._worker, source, config, distribution, abort_time, state)
                for source in sources
            ]
        for future in futures:
            future.result()

        if state.abort is not None:
            raise state.abort

    def _worker_source(self):
        spawn = getattr(self.sample_selector, "spawn", None)
        return spawn() if callable(spawn) else self.sample_selector

    def _worker(self, sample_selector, config, distribution, abort_time, state):
        while True:
            with state.lock:
                if state.stop.is_set() or state.started >= config.iterations:
                    return
                state.started += 1

            try:
                estimate = self._iterate(sample_selector, abort_time, config.divergence_factor)
            except IncreasingBacklogError as e:
                with state.lock:
                    distribution.record_failure()
                    state.completed += 1
                    run = state.completed
                    if state.abort is None and self._failure_ratio_exceeded(config, distribution, run):
                        state.abort = self._aborted(
                            IncreasingException(f"Run aborted after iteration {run}", distribution, run), e
                        )
                        state.stop.set()
            except IterationTimeoutError as e:
                with state.lock:
                    distribution.record_failure()
                    state.completed += 1
                    run = state.completed
                    if state.abort is None:
                        state.abort = self._aborted(
                            TimeoutException(f"Run aborted during iteration {run}", distribution, run), e
                        )
                    state.stop.set()
            except Exception:
                state.stop.set()
                raise
            else:
                with state.lock:
                    distribution.record_success(bucket_key(estimate, config.bucket_size))
                    state.completed += 1

    @staticmethod
    def _failure_ratio_exceeded(config, distribution, run):
        logger.debug(
            "Iteration %s failed due to increasing issue count (%s failures so far)",
            run,
            distribution.get_failure_count(),
        )
        if run <= config.failure_check_threshold():
            return False
        return distribution.get_failure_count() / run > config.increasing_failure_ratio

    @staticmethod
    def _aborted(exception, cause):
        exception.__cause__ = cause
        logger.warning(
            "%s: %s succeeded, %s failed",
            exception,
            exception.distribution.get_success_count(),
            exception.distribution.get_failure_count(),
        )
        return exception

    def run_average(self, config: Optional[RunConfig] = None) -> float:
        """Get the average estimate of a full run, in seconds."""
        return self.run_distribution(config).get_average()

    def run_median(self, config: Optional[RunConfig] = None, interpolate: bool = False):
        """Get the median estimate of a full run, in seconds."""
        return self.run_distribution(config).get_median(interpolate)
