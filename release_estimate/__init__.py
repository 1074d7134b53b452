"""
Monte Carlo estimation of when a backlog of open issues will be resolved.

PURPOSE:
    Estimate a completion date for a backlog by repeatedly replaying its
    historical drain rate, and summarize the outcomes as a distribution.

RESPONSIBILITIES:
    - Represent issue count samples and draw random historical transitions
    - Run single iterations and full runs with abort policies
    - Aggregate outcomes into a bucketed distribution (average, median)
    - Summarize a run for storage

SRP/DRY CHECK:
    Each submodule has a single responsibility:
    - config.py: Run parameters only
    - sampling.py: Samples and the uniform sample source only
    - simulation.py: Iterations and run control only
    - distribution.py: Aggregation and statistics only
    - outputs.py: Run outcome handling and formatting only
"""

from .config import RunConfig
from .distribution import EstimateDistribution, bucket_key
from .errors import (
    EmptyDistributionError,
    IncreasingBacklogError,
    IncreasingException,
    IterationFailure,
    IterationTimeoutError,
    RunAbortedError,
    TimeoutException,
)
from .outputs import EstimateResult, run_estimate
from .sampling import RandomSampleSelector, Sample, SampleSet, SampleSource
from .simulation import MonteCarlo

__version__ = "0.1.0"

__all__ = [
    "RunConfig",
    "EstimateDistribution",
    "bucket_key",
    "EmptyDistributionError",
    "IncreasingBacklogError",
    "IncreasingException",
    "IterationFailure",
    "IterationTimeoutError",
    "RunAbortedError",
    "TimeoutException",
    "EstimateResult",
    "run_estimate",
    "RandomSampleSelector",
    "Sample",
    "SampleSet",
    "SampleSource",
    "MonteCarlo",
]
