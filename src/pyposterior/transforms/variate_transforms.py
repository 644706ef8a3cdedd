"""Bijective variate transforms.

Every transform maps variates of a source space to variates of a target
space and knows its inverse. The inverse is also available together with
the log-absolute-determinant of its Jacobian (ladj), computed in one pass,
which is what volume-corrected density evaluation needs.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum, auto

import numpy as np
from scipy import stats
from scipy.special import ndtr, ndtri_exp

from ..densities.distribution_density import DistributionDensity
from ..exceptions import InputError
from ..utils.shapes import ArrayShape, ValueShape
from ..utils.types import FloatArray, Variate

LOG_HALF = np.log(0.5)


class VariateTransform(ABC):
    """Abstract base class for bijective variate transforms."""

    def __call__(self, x: Variate) -> Variate:
        """Apply the forward transform to x."""
        return self.forward(x)

    @abstractmethod
    def forward(self, x: Variate) -> Variate:
        """Map a source variate to the target space."""
        ...

    @abstractmethod
    def inverse_with_ladj(self, y: Variate) -> tuple[Variate, float]:
        """Map a target variate back, with the ladj of the inverse at y."""
        ...

    def inverse(self, y: Variate) -> Variate:
        """Map a target variate back to the source space."""
        return self.inverse_with_ladj(y)[0]

    @abstractmethod
    def transform_shape(self, shape: ValueShape | None) -> ValueShape | None:
        """Shape of the target variates given the shape of the source variates."""
        ...


@dataclass(frozen=True)
class IdentityTransform(VariateTransform):
    """The identity transform."""

    def forward(self, x: Variate) -> Variate:
        return x

    def inverse_with_ladj(self, y: Variate) -> tuple[Variate, float]:
        return y, 0.0

    def transform_shape(self, shape: ValueShape | None) -> ValueShape | None:
        return shape


class TargetFamily(StrEnum):
    """Standard distribution families that priors can be transformed to."""

    UNIFORM = auto()
    NORMAL = auto()


@dataclass(eq=True)
class DistributionTransform(VariateTransform):
    """Transform a prior distribution into a standard distribution family.

    Each component is mapped through its cumulative distribution function,
    and for the normal family additionally through the standard normal
    quantile function. The resulting variates follow the standard uniform
    distribution on the unit hypercube, resp. the standard normal
    distribution, if the source variates follow the prior.

    Parameters
    ----------
    family : TargetFamily
        Target distribution family.
    source : DistributionDensity
        Prior whose distribution is transformed.
    """

    family: TargetFamily
    source: DistributionDensity
    target_dist: DistributionDensity = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        """Build the standard target distribution."""
        ndof = self.source.ndof
        if self.family == TargetFamily.UNIFORM:
            self.target_dist = DistributionDensity.standard_uniform(ndof)
        else:
            self.target_dist = DistributionDensity.standard_normal(ndof)

    def forward(self, x: Variate) -> FloatArray:
        x = self.source.var_shape.flatten(x)
        if self.family == TargetFamily.UNIFORM:
            return np.array([d.cdf(xi) for d, xi in zip(self.source.components, x)])

        # Go through the tail that keeps the most precision.
        logcdf = np.array([d.logcdf(xi) for d, xi in zip(self.source.components, x)])
        logsf = np.array([d.logsf(xi) for d, xi in zip(self.source.components, x)])
        return np.where(logcdf < LOG_HALF, ndtri_exp(logcdf), -ndtri_exp(logsf))

    def inverse_with_ladj(self, y: Variate) -> tuple[Variate, float]:
        y = np.asarray(y, dtype=float).reshape(-1)
        if y.shape[0] != self.source.ndof:
            raise InputError(
                f"Variate of length {y.shape[0]} does not match {self.source.ndof} degrees of freedom."
            )
        components = self.source.components

        if self.family == TargetFamily.UNIFORM:
            inside = (y >= 0.0) & (y <= 1.0)
            x = np.array([d.ppf(yi) for d, yi in zip(components, y)])
            log_target = np.zeros_like(y)
        else:
            inside = ~np.isnan(y)
            x = np.array(
                [
                    d.ppf(ndtr(yi)) if yi < 0 else d.isf(ndtr(-yi))
                    for d, yi in zip(components, y)
                ]
            )
            log_target = stats.norm.logpdf(y)

        with np.errstate(invalid="ignore"):
            log_source = np.array([d.logpdf(xi) for d, xi in zip(components, x)])
            terms = np.where(inside, log_target - log_source, -np.inf)
        # x is NaN outside of the target support
        return self.source.var_shape.unflatten(x), float(np.sum(terms))

    def transform_shape(self, shape: ValueShape | None) -> ValueShape | None:
        if shape is None:
            return None
        if shape != self.source.var_shape:
            raise InputError(
                f"Shape {shape} is not compatible with transform from shape {self.source.var_shape}."
            )
        return ArrayShape(self.source.ndof)


@dataclass(frozen=True)
class UnshapeTransform(VariateTransform):
    """Flatten shaped variates into plain float vectors."""

    shape: ValueShape

    def forward(self, x: Variate) -> FloatArray:
        return self.shape.flatten(x)

    def inverse_with_ladj(self, y: Variate) -> tuple[Variate, float]:
        return self.shape.unflatten(y), 0.0

    def transform_shape(self, shape: ValueShape | None) -> ValueShape | None:
        if shape != self.shape:
            raise InputError(f"Shape {shape} is not compatible with unshaping of {self.shape}.")
        return ArrayShape(self.shape.ndof)


@dataclass(frozen=True)
class ComposedTransform(VariateTransform):
    """The composition ``outer(inner(x))``."""

    outer: VariateTransform
    inner: VariateTransform

    def forward(self, x: Variate) -> Variate:
        return self.outer.forward(self.inner.forward(x))

    def inverse_with_ladj(self, y: Variate) -> tuple[Variate, float]:
        x_mid, ladj_outer = self.outer.inverse_with_ladj(y)
        x, ladj_inner = self.inner.inverse_with_ladj(x_mid)
        return x, ladj_outer + ladj_inner

    def transform_shape(self, shape: ValueShape | None) -> ValueShape | None:
        return self.outer.transform_shape(self.inner.transform_shape(shape))


def compose(outer: VariateTransform, inner: VariateTransform) -> VariateTransform:
    """Compose two transforms, dropping identities."""
    if isinstance(outer, IdentityTransform):
        return inner
    if isinstance(inner, IdentityTransform):
        return outer
    return ComposedTransform(outer, inner)
