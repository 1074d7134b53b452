"""
PURPOSE: Turn a Monte Carlo run into a storable estimate record.

This module runs the distribution, keeps the partial result when a run is
aborted, and derives the human-readable note and the estimated completion
date that the persistence layer stores.

SRP/DRY: Single responsibility = run outcome handling and result formatting.
         No simulation internals, no database access.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Any, Dict, Optional

from release_estimate.config import RunConfig
from release_estimate.distribution import EstimateDistribution
from release_estimate.errors import EmptyDistributionError, IncreasingException, TimeoutException
from release_estimate.simulation import MonteCarlo

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_INCREASING = "increasing"
STATUS_TIMEOUT = "timeout"


@dataclass
class EstimateResult:
    """Outcome of one estimate run.

    Attributes:
        status (str): "completed", "increasing", or "timeout".
        note (str): Human-readable summary of how the run ended.
        started (datetime): When the run started.
        completed (datetime): When the run finished.
        estimate (date | None): Estimated completion date, None without successful
            iterations or when the median is past the last representable date.
        median_seconds (float | None): Interpolated median estimate.
        average_seconds (float | None): Average estimate.
        success_count (int): Successful iterations.
        failure_count (int): Failed iterations.
        distribution (EstimateDistribution): The full or partial distribution.
    """
    status: str
    note: str
    started: datetime
    completed: datetime
    estimate: Optional[date]
    median_seconds: Optional[float]
    average_seconds: Optional[float]
    success_count: int
    failure_count: int
    distribution: EstimateDistribution

    @property
    def iterations(self) -> int:
        """Total iterations run, successful or not."""
        return self.success_count + self.failure_count

    def to_dict(self) -> Dict[str, Any]:
        """Convert results to dictionary for JSON serialization."""
        return {
            "status": self.status,
            "note": self.note,
            "started": self.started.isoformat(),
            "completed": self.completed.isoformat(),
            "estimate": self.estimate.isoformat() if self.estimate else None,
            "median_seconds": self.median_seconds,
            "average_seconds": round(self.average_seconds, 2) if self.average_seconds is not None else None,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "data": self.distribution.to_dict(),
        }


def run_estimate(
    monte_carlo: MonteCarlo,
    config: Optional[RunConfig] = None,
    started: Optional[datetime] = None,
) -> EstimateResult:
    """
    Run an estimate and summarize it, keeping partial results of aborted runs.

    Args:
        monte_carlo: Engine wired to a sample source.
        config: Run parameters; defaults to the engine's configuration.
        started: Start time of the estimate job (default now, UTC).

    Returns:
        EstimateResult. Never raises for aborted runs, empty distributions, or
        medians too far out to convert to a date.
    """
    started = started or datetime.now(UTC)

    try:
        distribution = monte_carlo.run_distribution(config)
        status = STATUS_COMPLETED
    except IncreasingException as e:
        distribution = e.distribution
        status = STATUS_INCREASING
    except TimeoutException as e:
        distribution = e.distribution
        status = STATUS_TIMEOUT

    completed = datetime.now(UTC)
    success_count, failure_count = distribution.snapshot()
    iterations = success_count + failure_count

    if status == STATUS_COMPLETED:
        elapsed = int((completed - started).total_seconds())
        note = f"Run completed in {elapsed} seconds after {iterations} iterations"
    elif status == STATUS_INCREASING:
        note = f"Run terminated due to increasing issue count after {iterations} iterations"
    else:
        note = f"Run terminated due to timeout after {iterations} iterations"

    estimate = None
    try:
        median_seconds = distribution.get_median(interpolate=True)
        average_seconds = distribution.get_average()
    except EmptyDistributionError:
        logger.warning("No successful iterations, storing run without an estimate")
        median_seconds = average_seconds = None
    else:
        try:
            estimate = (started + timedelta(seconds=median_seconds)).date()
        except OverflowError:
            logger.warning("Median of %s seconds is past the last representable date", median_seconds)

    logger.info("%s; estimate: %s", note, estimate)

    return EstimateResult(
        status=status,
        note=note,
        started=started,
        completed=completed,
        estimate=estimate,
        median_seconds=median_seconds,
        average_seconds=average_seconds,
        success_count=success_count,
        failure_count=failure_count,
        distribution=distribution,
    )
