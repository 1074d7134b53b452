"""
PURPOSE: Issue count samples and a uniform random sample source.

RESPONSIBILITIES:
- Represent an observed backlog size and its change since the previous observation
- Build an ordered sample series from (timestamp, count) observations
- Draw random historical transitions for the simulation engine
- NO database access, NO time-based weighting of samples
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Protocol, Sequence, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sample:
    """An observed backlog size.

    Attributes:
        when (int): Unix timestamp of the observation.
        count (int): Number of open issues at that time.
        resolved (int): Issues resolved since the previous sample. Negative if the backlog grew.
        duration (int): Seconds elapsed since the previous sample.
    """
    when: int
    count: int
    resolved: int = 0
    duration: int = 0

    def __post_init__(self):
        if self.duration < 0:
            raise ValueError(f"duration must be non-negative, got {self.duration}")

    def following(self, when: int, count: int) -> "Sample":
        """Return a new sample observed after this one."""
        return Sample(
            when=when,
            count=count,
            resolved=self.count - count,
            duration=when - self.when,
        )


class SampleSource(Protocol):
    """Supplies samples to the simulation engine."""

    def last_sample(self) -> Sample:
        ...

    def random_sample(self) -> Sample:
        ...


class SampleSet:
    """An ordered series of samples.

    The first sample anchors the series. Every later sample is a transition
    relative to its predecessor.
    """

    def __init__(self, samples: Sequence[Sample] = ()):
        self._samples: List[Sample] = list(samples)

    @classmethod
    def from_observations(cls, observations: Iterable[Tuple[int, int]]) -> "SampleSet":
        """
        Build a series from (when, count) pairs.

        Args:
            observations: Pairs of unix timestamp and open issue count, oldest first.

        Returns:
            SampleSet with resolved/duration derived from consecutive observations.

        Raises:
            ValueError: If the observations are not in chronological order.
        """
        samples: List[Sample] = []
        for when, count in observations:
            if not samples:
                samples.append(Sample(when=when, count=count))
                continue
            previous = samples[-1]
            if when < previous.when:
                raise ValueError(
                    f"observations must be in chronological order: {when} follows {previous.when}"
                )
            samples.append(previous.following(when, count))
        return cls(samples)

    def __len__(self) -> int:
        return len(self._samples)

    def last_sample(self) -> Sample:
        if not self._samples:
            raise ValueError("sample set is empty")
        return self._samples[-1]

    def transitions(self) -> List[Sample]:
        """All samples that carry a change relative to a previous sample."""
        return self._samples[1:]


class RandomSampleSelector:
    """Selects transitions uniformly at random from a sample set."""

    def __init__(
        self,
        sample_set: SampleSet,
        random_state: Union[int, np.random.Generator, None] = None,
    ):
        transitions = sample_set.transitions()
        if not transitions:
            raise ValueError("sample set needs at least two samples to draw transitions from")
        self._sample_set = sample_set
        self._transitions = transitions
        if isinstance(random_state, np.random.Generator):
            self._rng = random_state
        else:
            self._rng = np.random.default_rng(random_state)
        logger.debug("Sample selector created over %s transitions", len(transitions))

    def last_sample(self) -> Sample:
        return self._sample_set.last_sample()

    def random_sample(self) -> Sample:
        return self._transitions[int(self._rng.integers(len(self._transitions)))]

    def spawn(self) -> "RandomSampleSelector":
        """Return a selector over the same samples with an independent random stream."""
        child = self._rng.spawn(1)[0]
        return RandomSampleSelector(self._sample_set, random_state=child)
