"""Density abstraction.

Every density-like object used by pyposterior is a ``Density``. A density
must be able to evaluate its log-density; it may also know the shape and the
bounds of its variates.

Note
----
If ``log_density`` is called with a variate that is out of bounds, the
behaviour is undefined. The result for such variates is *implicitly*
``-inf``, but it is the caller's responsibility to handle these cases.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence

import numpy as np

from ..exceptions import DensityEvalError, InputError
from ..utils.shapes import ValueShape, check_variate
from ..utils.types import FloatArray, LogDensityFunction, Variate

logger = logging.getLogger(__name__)


class Density(ABC):
    """Abstract base class for densities.

    Subclasses must implement ``log_density``. Densities with a known
    variate shape override ``var_shape``, densities with known variate
    bounds override ``var_bounds``.

    Densities are immutable, new densities are built by wrapping existing
    ones.
    """

    @abstractmethod
    def log_density(self, v: Variate) -> float:
        """Evaluate the log-density at variate v."""
        ...

    @property
    def var_shape(self) -> ValueShape | None:
        """Shape of the variates, None if unknown."""
        return None

    @property
    def var_bounds(self) -> tuple[FloatArray, FloatArray] | None:
        """Lower and upper bounds of the flattened variates, None if unknown."""
        return None

    @property
    def ndof(self) -> int | None:
        """Number of degrees of freedom of the variates, None if unknown."""
        shape = self.var_shape
        return None if shape is None else shape.ndof

    def __call__(self, v: Variate) -> float:
        """Evaluate the log-density at variate v."""
        return self.log_density(v)

    def _checked_eval(self, v: Variate) -> float:
        """Log-density evaluation used by checked_log_density.

        Wrapping densities override this to evaluate the densities they wrap
        with checks as well.
        """
        return self.log_density(v)

    def __repr__(self):
        """String representation of the density."""
        shape = self.var_shape
        shape_msg = "" if shape is None else f", var_shape={shape}"
        return f"{type(self).__name__}(id={id(self)}{shape_msg})"


class LogFuncDensity(Density):
    """Density defined by a plain log-density function.

    Parameters
    ----------
    log_f : LogDensityFunction
        Function returning the log-density at a variate.
    var_shape : ValueShape, optional
        Shape of the variates, if known.
    """

    def __init__(self, log_f: LogDensityFunction, var_shape: ValueShape | None = None):
        self.log_f = log_f
        self._var_shape = var_shape

    def log_density(self, v: Variate) -> float:
        """Evaluate the wrapped function at v."""
        return float(self.log_f(v))

    @property
    def var_shape(self) -> ValueShape | None:
        """Shape of the variates, None if unknown."""
        return self._var_shape


def to_density(obj) -> Density:
    """Convert a density-like object to a Density.

    - A ``Density`` is returned unchanged.
    - A frozen ``scipy.stats`` continuous univariate distribution, or a
      sequence or mapping of them, is wrapped in a ``DistributionDensity``.
    - A frozen ``scipy.stats`` multivariate distribution is wrapped in an
      ``MvDistributionDensity``.
    - Any other callable is wrapped in a ``LogFuncDensity``.

    Raises
    ------
    InputError
        If obj is not density-like.
    """
    from .distribution_density import (
        DistributionDensity,
        MvDistributionDensity,
        is_multivariate_dist,
        is_univariate_dist,
    )

    if isinstance(obj, Density):
        return obj
    if is_univariate_dist(obj):
        return DistributionDensity([obj])
    if is_multivariate_dist(obj):
        return MvDistributionDensity(obj)
    if isinstance(obj, Mapping) or (
        isinstance(obj, Sequence) and not isinstance(obj, str)
    ):
        return DistributionDensity(obj)
    if callable(obj):
        return LogFuncDensity(obj)
    raise InputError(f"Cannot convert object of type {type(obj).__name__} to a density.")


def checked_log_density(density: Density, v: Variate) -> float:
    """Evaluate the log-density of density at v with additional checks.

    Raises
    ------
    DensityEvalError
        If the variate shape of density (if known) does not match v, if the
        evaluation raises, or if the result is NaN or positive infinity.
    """
    try:
        check_variate(density.var_shape, v)
    except InputError as err:
        raise DensityEvalError(density, v, err) from err

    try:
        logval = density._checked_eval(v)
    except DensityEvalError:
        raise
    except Exception as err:
        logger.debug("Density evaluation raised %s", type(err).__name__)
        raise DensityEvalError(density, v, err) from err

    check_density_logval(density, v, logval)
    return logval


def check_density_logval(density: Density, v: Variate, logval: float) -> None:
    """Raise a DensityEvalError if logval is NaN or positive infinity."""
    if np.isnan(logval) or not logval < np.inf:
        raise DensityEvalError(density, v, logval)


def log_zero_density() -> float:
    """Log-density of regions of implicit zero density, e.g. outside of bounds."""
    return -np.inf


def is_log_zero(x: float) -> bool:
    """Whether x is an equivalent of the log of zero, i.e. negative infinity."""
    return not np.isnan(x) and (x == -np.inf or x <= np.finfo(float).min)
