"""Densities for pyposterior.

- Density abstraction and conversion of density-like objects
- Products of scipy.stats distributions, used as priors, and multivariate
  scipy.stats distributions
- Posterior and renormalized densities
- Transformed densities with volume correction
"""

from .abstract_density import (
    Density,
    LogFuncDensity,
    checked_log_density,
    is_log_zero,
    log_zero_density,
    to_density,
)
from .distribution_density import DistributionDensity, MvDistributionDensity
from .posterior_density import PosteriorDensity, RenormalizedDensity
from .transformed_density import (
    NEAR_NEG_INF,
    TransformedDensity,
    VolumeCorrection,
    combine_log_density_with_ladj,
)

__all__ = [
    "Density",
    "LogFuncDensity",
    "DistributionDensity",
    "MvDistributionDensity",
    "PosteriorDensity",
    "RenormalizedDensity",
    "TransformedDensity",
    "VolumeCorrection",
    "NEAR_NEG_INF",
    "checked_log_density",
    "combine_log_density_with_ladj",
    "is_log_zero",
    "log_zero_density",
    "to_density",
]
