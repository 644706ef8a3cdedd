"""Partitioning of random number streams.

Candidate MCMC chains each own a private random stream. The streams are
derived from a parent generator and the candidate id alone, so results do not
depend on how (or in which order) candidates are scheduled.
"""

import numpy as np
from numpy.random import Generator, SeedSequence


class RNGPartition:
    """Deterministic per-id random streams derived from a parent generator.

    The parent generator is advanced exactly once, when the partition is
    created, to draw the entropy shared by all partitions.

    Parameters
    ----------
    rng : Generator
        Parent random number generator.
    """

    def __init__(self, rng: Generator):
        self.entropy = [int(x) for x in rng.integers(0, 2**32, size=4, dtype=np.uint64)]

    def seed_sequence(self, id: int) -> SeedSequence:
        """Seed sequence for the stream with the given id."""
        if id < 0:
            raise ValueError("Partition ids must be non-negative.")
        return SeedSequence(self.entropy, spawn_key=(int(id),))

    def rng(self, id: int) -> Generator:
        """Fresh generator for the stream with the given id."""
        return np.random.default_rng(self.seed_sequence(id))


def partition_random_stream(rng: Generator, ids) -> dict[int, Generator]:
    """Split rng into one independent generator per id."""
    partition = RNGPartition(rng)
    return {int(id): partition.rng(id) for id in ids}
