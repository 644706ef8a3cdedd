"""Posterior and renormalized densities."""

from ..utils.shapes import ValueShape
from ..utils.types import FloatArray, Variate
from .abstract_density import Density, checked_log_density, is_log_zero, to_density


class PosteriorDensity(Density):
    """Unnormalized posterior, the product of a likelihood and a prior.

    The prior is evaluated first. Where it is log-zero the likelihood is not
    evaluated at all, so likelihoods need not handle variates outside of the
    prior support.

    Parameters
    ----------
    likelihood : density-like
        Likelihood, converted with ``to_density``.
    prior : density-like
        Prior, converted with ``to_density``. It determines the variate shape
        and bounds of the posterior.
    """

    def __init__(self, likelihood, prior):
        self.likelihood = to_density(likelihood)
        self.prior = to_density(prior)

    @property
    def var_shape(self) -> ValueShape | None:
        """Shape of the prior variates."""
        return self.prior.var_shape

    @property
    def var_bounds(self) -> tuple[FloatArray, FloatArray] | None:
        """Bounds of the prior variates."""
        return self.prior.var_bounds

    def log_density(self, v: Variate) -> float:
        """Log-prior plus log-likelihood."""
        log_prior = self.prior.log_density(v)
        if is_log_zero(log_prior):
            return log_prior
        return self.likelihood.log_density(v) + log_prior

    def _checked_eval(self, v: Variate) -> float:
        log_prior = checked_log_density(self.prior, v)
        if is_log_zero(log_prior):
            return log_prior
        return checked_log_density(self.likelihood, v) + log_prior


class RenormalizedDensity(Density):
    """Density shifted by a constant log-renormalization factor.

    Parameters
    ----------
    parent : density-like
        Density to renormalize.
    log_renorm_f : float
        Added to the log-density of parent.
    """

    def __init__(self, parent, log_renorm_f: float):
        self.parent = to_density(parent)
        self.log_renorm_f = float(log_renorm_f)

    @property
    def var_shape(self) -> ValueShape | None:
        """Shape of the parent variates."""
        return self.parent.var_shape

    @property
    def var_bounds(self) -> tuple[FloatArray, FloatArray] | None:
        """Bounds of the parent variates."""
        return self.parent.var_bounds

    def log_density(self, v: Variate) -> float:
        """Parent log-density plus the log-renormalization factor."""
        return self.parent.log_density(v) + self.log_renorm_f

    def _checked_eval(self, v: Variate) -> float:
        return checked_log_density(self.parent, v) + self.log_renorm_f
