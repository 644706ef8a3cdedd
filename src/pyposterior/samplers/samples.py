"""Weighted sample buffers."""

from dataclasses import dataclass, field

import numpy as np

from ..utils.types import FloatArray


@dataclass
class DensitySampleVector:
    """Weighted samples of a density, with their log-density values.

    Samples are flat float arrays. Each sample has an integer-valued or
    real-valued weight, depending on the sample weighting of the sampler
    that produced it.
    """

    v: list[FloatArray] = field(default_factory=list)
    logd: list[float] = field(default_factory=list)
    weight: list[float] = field(default_factory=list)
    chain_id: list[int] = field(default_factory=list)

    def __post_init__(self):
        """Post-initialization checks."""
        n = len(self.v)
        if any(len(x) != n for x in (self.logd, self.weight, self.chain_id)):
            raise ValueError("All sample fields must have the same length.")

    def __len__(self) -> int:
        """Number of stored samples."""
        return len(self.v)

    def append(self, v: FloatArray, logd: float, weight: float, chain_id: int = 0) -> int:
        """Append a sample and return its index."""
        self.v.append(np.array(v, dtype=float))
        self.logd.append(float(logd))
        self.weight.append(float(weight))
        self.chain_id.append(int(chain_id))
        return len(self.v) - 1

    def add_weight(self, index: int, weight: float) -> None:
        """Increase the weight of the sample at index."""
        self.weight[index] += weight

    def remove(self, index: int) -> None:
        """Remove the sample at index."""
        del self.v[index], self.logd[index], self.weight[index], self.chain_id[index]

    @property
    def last_v(self) -> FloatArray:
        """The most recently appended sample."""
        return self.v[-1]

    @property
    def total_weight(self) -> float:
        """Sum of all weights."""
        return float(np.sum(self.weight))

    def nonzero(self) -> "DensitySampleVector":
        """Copy without the samples of weight zero."""
        keep = [i for i, w in enumerate(self.weight) if w != 0]
        return DensitySampleVector(
            v=[self.v[i] for i in keep],
            logd=[self.logd[i] for i in keep],
            weight=[self.weight[i] for i in keep],
            chain_id=[self.chain_id[i] for i in keep],
        )

    def v_array(self) -> FloatArray:
        """Samples as an array of shape (n_samples, n_dims)."""
        if not self.v:
            return np.empty((0, 0))
        return np.vstack(self.v)

    def mean(self) -> FloatArray:
        """Weighted mean of the samples."""
        return np.average(self.v_array(), axis=0, weights=self.weight)

    def cov(self) -> FloatArray:
        """Weighted covariance matrix of the samples."""
        return np.atleast_2d(np.cov(self.v_array().T, aweights=self.weight))

    @classmethod
    def concatenate(cls, vectors: list["DensitySampleVector"]) -> "DensitySampleVector":
        """Concatenate sample vectors, e.g. those of several chains."""
        result = cls()
        for vec in vectors:
            result.v.extend(vec.v)
            result.logd.extend(vec.logd)
            result.weight.extend(vec.weight)
            result.chain_id.extend(vec.chain_id)
        return result
