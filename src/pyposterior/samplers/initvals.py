"""Initial values for MCMC chains."""

from dataclasses import dataclass

from numpy.random import Generator

from ..densities.abstract_density import Density
from ..densities.distribution_density import DistributionDensity, MvDistributionDensity
from ..densities.posterior_density import PosteriorDensity, RenormalizedDensity
from ..densities.transformed_density import TransformedDensity
from ..exceptions import InputError
from ..utils.types import Variate


@dataclass(frozen=True)
class InitFromTarget:
    """Draw initial values from the target density itself.

    Posterior densities are sampled via their prior, transformed densities
    by sampling the original density and applying the forward transform.
    """

    def draw_initial_value(self, rng: Generator, density: Density) -> Variate:
        """Draw a single initial value for density.

        Raises
        ------
        InputError
            If density has no distribution that can be sampled from.
        """
        if isinstance(density, DistributionDensity | MvDistributionDensity):
            return density.sample(rng)
        if isinstance(density, PosteriorDensity):
            return self.draw_initial_value(rng, density.prior)
        if isinstance(density, RenormalizedDensity):
            return self.draw_initial_value(rng, density.parent)
        if isinstance(density, TransformedDensity):
            return density.trafo(self.draw_initial_value(rng, density.orig))
        raise InputError(
            f"Cannot draw initial values from density of type {type(density).__name__}."
        )


def draw_initial_value(rng: Generator, density: Density, init_alg=InitFromTarget()) -> Variate:
    """Draw a single initial value for density with init_alg."""
    return init_alg.draw_initial_value(rng, density)
