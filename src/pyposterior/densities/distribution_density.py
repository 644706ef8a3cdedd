"""Densities defined by scipy.stats distributions."""

from collections.abc import Mapping, Sequence

import numpy as np
from numpy.random import Generator
from scipy import stats

from ..exceptions import InputError
from ..utils.shapes import ArrayShape, NamedShape, ValueShape
from ..utils.types import FloatArray, Variate
from .abstract_density import Density


def is_univariate_dist(obj) -> bool:
    """Whether obj is a frozen scipy.stats continuous univariate distribution."""
    return isinstance(getattr(obj, "dist", None), stats.rv_continuous)


def is_multivariate_dist(obj) -> bool:
    """Whether obj is a frozen scipy.stats multivariate distribution."""
    return (
        not is_univariate_dist(obj)
        and isinstance(getattr(obj, "dim", None), int | np.integer)
        and callable(getattr(obj, "logpdf", None))
        and callable(getattr(obj, "rvs", None))
    )


class DistributionDensity(Density):
    """Density of independent univariate distributions.

    The variate is the vector of all components. Priors are typically
    ``DistributionDensity`` instances, they can be sampled from and have
    known bounds.

    Parameters
    ----------
    dists : sequence or mapping
        Either a sequence of frozen scipy.stats continuous distributions,
        giving variates of ``ArrayShape(len(dists))``, or a mapping from
        names to a frozen distribution (a scalar field) or a sequence of
        them (a vector field), giving variates of ``NamedShape``.

    Examples
    --------
    >>> from scipy import stats
    >>> prior = DistributionDensity({"a": stats.norm(0, 2), "b": [stats.uniform(-1, 2)] * 3})
    >>> prior.ndof
    4
    """

    def __init__(self, dists: Sequence | Mapping):
        if isinstance(dists, Mapping):
            sizes = {}
            components = []
            for name, dist in dists.items():
                if is_univariate_dist(dist):
                    sizes[name] = 0
                    components.append(dist)
                else:
                    dist = list(dist)
                    sizes[name] = len(dist)
                    components.extend(dist)
            self._var_shape: ValueShape = NamedShape.from_sizes(sizes)
        else:
            components = list(dists)
            self._var_shape = ArrayShape(len(components))

        if not all(is_univariate_dist(d) for d in components):
            raise InputError(
                "DistributionDensity requires frozen scipy.stats continuous univariate distributions."
            )
        self.components = components

    @classmethod
    def standard_uniform(cls, ndof: int) -> "DistributionDensity":
        """Uniform distribution over the unit hypercube of dimension ndof."""
        return cls([stats.uniform(loc=0.0, scale=1.0) for _ in range(ndof)])

    @classmethod
    def standard_normal(cls, ndof: int) -> "DistributionDensity":
        """Standard multivariate normal distribution of dimension ndof."""
        return cls([stats.norm(loc=0.0, scale=1.0) for _ in range(ndof)])

    @property
    def var_shape(self) -> ValueShape:
        """Shape of the variates."""
        return self._var_shape

    @property
    def var_bounds(self) -> tuple[FloatArray, FloatArray]:
        """Supports of the components."""
        supports = np.array([d.support() for d in self.components], dtype=float).reshape(-1, 2)
        return supports[:, 0], supports[:, 1]

    def log_density(self, v: Variate) -> float:
        """Sum of the component log-densities."""
        x = self._var_shape.flatten(v)
        return float(sum(d.logpdf(xi) for d, xi in zip(self.components, x)))

    def sample(self, rng: Generator) -> Variate:
        """Draw a single shaped variate."""
        x = np.array([d.rvs(random_state=rng) for d in self.components], dtype=float)
        return self._var_shape.unflatten(x)

    def cov(self) -> FloatArray:
        """Covariance matrix of the flattened variates."""
        return np.diag([d.var() for d in self.components])

    def is_standard_uniform(self) -> bool:
        """Whether every component is uniform on [0, 1]."""
        return isinstance(self._var_shape, ArrayShape) and all(
            d.dist.name == "uniform" and np.allclose(d.support(), (0.0, 1.0))
            for d in self.components
        )

    def is_standard_normal(self) -> bool:
        """Whether every component is a standard normal."""
        return isinstance(self._var_shape, ArrayShape) and all(
            d.dist.name == "norm" and np.isclose(d.mean(), 0.0) and np.isclose(d.std(), 1.0)
            for d in self.components
        )


class MvDistributionDensity(Density):
    """Density of a frozen scipy.stats multivariate distribution.

    The components need not be independent, e.g. for a correlated
    ``stats.multivariate_normal``. Variates are flat vectors of length
    ``dist.dim`` and are not bounded. Such densities can be used as
    likelihoods and can be sampled from, but as priors they cannot be
    transformed to a standard distribution family.

    Parameters
    ----------
    dist : frozen multivariate distribution
        Distribution with ``dim``, ``logpdf`` and ``rvs``, and optionally a
        ``cov`` attribute.

    Examples
    --------
    >>> from scipy import stats
    >>> likelihood = MvDistributionDensity(stats.multivariate_normal([0, 1], [[1, 0.5], [0.5, 2]]))
    >>> likelihood.ndof
    2
    """

    def __init__(self, dist):
        if not is_multivariate_dist(dist):
            raise InputError(
                "MvDistributionDensity requires a frozen scipy.stats multivariate distribution."
            )
        self.dist = dist
        self._var_shape = ArrayShape(int(dist.dim))

    @property
    def var_shape(self) -> ArrayShape:
        """Shape of the variates."""
        return self._var_shape

    @property
    def var_bounds(self) -> tuple[FloatArray, FloatArray]:
        """Unbounded in every dimension."""
        ndof = self._var_shape.ndof
        return np.full(ndof, -np.inf), np.full(ndof, np.inf)

    def log_density(self, v: Variate) -> float:
        return float(self.dist.logpdf(self._var_shape.flatten(v)))

    def sample(self, rng: Generator) -> FloatArray:
        """Draw a single variate."""
        return self._var_shape.unflatten(self.dist.rvs(random_state=rng))

    def cov(self) -> FloatArray:
        """Covariance matrix of the distribution, NaN if it does not provide one."""
        cov = getattr(self.dist, "cov", None)
        if cov is None:
            ndof = self._var_shape.ndof
            return np.full((ndof, ndof), np.nan)
        if callable(cov):
            cov = cov()
        return np.atleast_2d(np.asarray(cov, dtype=float))
