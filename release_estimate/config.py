"""
PURPOSE: Run configuration and default parameters for the Monte Carlo estimate engine.

RESPONSIBILITIES:
- Define default run parameters (iterations, bucket size, time limit)
- Failure ratio thresholds used to abort a run early
- Divergence failsafe factor for a single iteration
- Single responsibility: configuration only, no simulation logic
"""

from typing import Any, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# Simulation Parameters
DEFAULT_ITERATIONS = 100000  # Iterations per estimate run
DEFAULT_BUCKET_SIZE = 86400  # One day, in seconds
DEFAULT_TIME_LIMIT = 3600  # Wall clock budget for a run, in seconds
DEFAULT_WORKERS = 1  # 1 = sequential

# Failure thresholds
# A minimum of 10% of requested iterations always run before failures can abort the run.
DEFAULT_INCREASING_FAILURE_THRESHOLD_RATIO = 0.1
# Once past the warm-up, the run aborts if more than 50% of iterations have failed.
DEFAULT_INCREASING_FAILURE_RATIO = 0.5

# An iteration fails once its backlog exceeds this multiple of the highest count seen.
DEFAULT_DIVERGENCE_FACTOR = 3


class RunConfig(BaseModel):
    """Validated parameters for one estimate run.

    Accepts both the snake_case field names and the camelCase option names
    used by the estimate job configuration mapping.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    iterations: int = Field(
        default=DEFAULT_ITERATIONS,
        gt=0,
        description="Number of iterations to run.",
    )
    bucket_size: int = Field(
        default=DEFAULT_BUCKET_SIZE,
        gt=0,
        validation_alias=AliasChoices("bucket_size", "bucketSize"),
        description="Width in seconds of each distribution bucket.",
    )
    time_limit: float = Field(
        default=DEFAULT_TIME_LIMIT,
        gt=0,
        validation_alias=AliasChoices("time_limit", "timeLimit", "timeout"),
        description="Seconds of wall clock time the run may take.",
    )
    increasing_failure_threshold_ratio: float = Field(
        default=DEFAULT_INCREASING_FAILURE_THRESHOLD_RATIO,
        ge=0.0,
        le=1.0,
        validation_alias=AliasChoices(
            "increasing_failure_threshold_ratio", "increasingFailureThresholdRatio"
        ),
        description="Fraction of iterations to complete before the failure ratio is checked.",
    )
    increasing_failure_ratio: float = Field(
        default=DEFAULT_INCREASING_FAILURE_RATIO,
        ge=0.0,
        le=1.0,
        validation_alias=AliasChoices("increasing_failure_ratio", "increasingFailureRatio"),
        description="Failure fraction above which the run is aborted.",
    )
    divergence_factor: float = Field(
        default=DEFAULT_DIVERGENCE_FACTOR,
        gt=0,
        validation_alias=AliasChoices("divergence_factor", "divergenceFactor"),
        description="Multiple of the highest seen issue count at which an iteration fails.",
    )
    workers: int = Field(
        default=DEFAULT_WORKERS,
        ge=1,
        description="Number of threads running iterations.",
    )

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]] = None) -> "RunConfig":
        """Build a config from a flat option mapping, filling in defaults."""
        return cls.model_validate(dict(mapping or {}))

    def failure_check_threshold(self) -> float:
        """Number of iterations that must complete before the failure ratio is checked."""
        return self.iterations * self.increasing_failure_threshold_ratio
