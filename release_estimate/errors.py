"""
Error types raised by the estimate engine.

Iteration failures are raised by a single iteration and handled by the run
controller. Run aborts cross the package boundary and carry the partial
distribution collected before the abort.
"""


class IterationFailure(Exception):
    """A single iteration could not produce an estimate."""


class IncreasingBacklogError(IterationFailure):
    """The simulated backlog diverged past the failsafe limit."""


class IterationTimeoutError(IterationFailure):
    """The wall clock passed the abort time during an iteration."""


class RunAbortedError(Exception):
    """A run stopped before completing all iterations."""

    def __init__(self, message, distribution, run=None):
        super().__init__(message)
        self.distribution = distribution
        self.run = run


class IncreasingException(RunAbortedError):
    """Too many iterations failed due to an increasing backlog."""


class TimeoutException(RunAbortedError):
    """The run exceeded its time limit."""


class EmptyDistributionError(RuntimeError):
    """A statistic was requested from a distribution with no successful iterations."""
