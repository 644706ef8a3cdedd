"""Density transformation targets and algorithms."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum, auto

from ..densities.abstract_density import Density, to_density
from ..densities.distribution_density import DistributionDensity, MvDistributionDensity
from ..densities.posterior_density import PosteriorDensity, RenormalizedDensity
from ..densities.transformed_density import TransformedDensity, VolumeCorrection
from ..exceptions import InputError, TransformPreconditionError
from ..utils.shapes import NamedShape
from .variate_transforms import (
    DistributionTransform,
    IdentityTransform,
    TargetFamily,
    UnshapeTransform,
    VariateTransform,
    compose,
)

logger = logging.getLogger(__name__)


class TransformTarget(StrEnum):
    """Destination space of a density transformation."""

    NO_TRANSFORM = auto()
    PRIOR_TO_UNIFORM = auto()  # prior becomes uniform on the unit hypercube
    PRIOR_TO_GAUSSIAN = auto()  # prior becomes standard normal, unbounded

    @property
    def is_unit_space(self) -> bool:
        """Whether the target space is the unit hypercube."""
        return self == TransformTarget.PRIOR_TO_UNIFORM

    @property
    def is_infinite_space(self) -> bool:
        """Whether the target space is unbounded in all dimensions."""
        return self == TransformTarget.PRIOR_TO_GAUSSIAN


class TransformAlgorithm(StrEnum):
    """How a density transformation is realized."""

    IDENTITY = auto()
    FULL_DENSITY = auto()
    PRIOR_SUBSTITUTION = auto()


target_families: dict[TransformTarget, TargetFamily] = {
    TransformTarget.PRIOR_TO_UNIFORM: TargetFamily.UNIFORM,
    TransformTarget.PRIOR_TO_GAUSSIAN: TargetFamily.NORMAL,
}


@dataclass
class TransformResult:
    """Result of a density transformation."""

    result: Density
    trafo: VariateTransform
    algorithm: TransformAlgorithm

    def __iter__(self):
        """Unpack as ``density, trafo``."""
        return iter((self.result, self.trafo))


TransformPolicy = Callable[[TransformTarget, Density], TransformAlgorithm]


def default_transform_algorithm(target: TransformTarget, density: Density) -> TransformAlgorithm:
    """Default transform algorithm for a target and density.

    No transformation and priors that are already in the target family need
    no work. Everything else substitutes the prior.
    """
    if target == TransformTarget.NO_TRANSFORM or _matches_target(target, density):
        return TransformAlgorithm.IDENTITY
    return TransformAlgorithm.PRIOR_SUBSTITUTION


def transform(
    target: TransformTarget,
    density,
    algorithm: TransformAlgorithm | None = None,
    policy: TransformPolicy = default_transform_algorithm,
) -> TransformResult:
    """Transform density to the variate space defined by target.

    Parameters
    ----------
    target : TransformTarget
        Destination space.
    density : density-like
        Density to transform, converted with ``to_density``.
    algorithm : TransformAlgorithm, optional
        Transform algorithm. If None, it is chosen by policy.
    policy : TransformPolicy, optional
        Chooses the algorithm from target and density if none is given.
        Default is ``default_transform_algorithm``.

    Returns
    -------
    TransformResult
        The new density and the forward variate transform from the space of
        density to the space of the new density.

    Raises
    ------
    TransformPreconditionError
        If algorithm is not compatible with target, if algorithm needs a
        prior of independent univariate distributions that cannot be found
        in density, or if the likelihood and prior variate shapes differ.

    Examples
    --------
    >>> from scipy import stats
    >>> posterior = PosteriorDensity(my_log_likelihood, [stats.norm(0, 5)] * 3)
    >>> new_density, trafo = transform(TransformTarget.PRIOR_TO_UNIFORM, posterior)
    """
    target = TransformTarget(target)
    density = to_density(density)
    if algorithm is None:
        algorithm = policy(target, density)
        logger.info("Using transform algorithm %s", algorithm)
    algorithm = TransformAlgorithm(algorithm)

    if algorithm == TransformAlgorithm.IDENTITY:
        return _identity_transform(target, density)

    if target == TransformTarget.NO_TRANSFORM:
        raise TransformPreconditionError(
            f"Transform algorithm {algorithm} is not compatible with target {target}."
        )

    if algorithm == TransformAlgorithm.FULL_DENSITY:
        return _full_density_transform(target, density)

    new_density, trafo = _substitute_prior(target, density)
    return TransformResult(new_density, trafo, algorithm)


def transform_and_unshape(
    target: TransformTarget,
    density,
    algorithm: TransformAlgorithm | None = None,
    policy: TransformPolicy = default_transform_algorithm,
) -> tuple[Density, VariateTransform]:
    """Transform density and flatten the variates of the result.

    The returned transform is the composition of flattening after the
    density transform.
    """
    transformed_density, initial_trafo = transform(target, density, algorithm, policy)
    shape = transformed_density.var_shape
    if not isinstance(shape, NamedShape):
        return transformed_density, initial_trafo

    unshape = UnshapeTransform(shape)
    result_density = TransformedDensity(transformed_density, unshape, VolumeCorrection.NONE)
    return result_density, compose(unshape, initial_trafo)


def get_deep_prior(density: Density) -> DistributionDensity | MvDistributionDensity:
    """Find the prior distribution at the bottom of a layered density.

    Posterior densities are unwrapped to their prior, renormalized densities
    to their parent, until a ``DistributionDensity`` or an
    ``MvDistributionDensity`` is reached.

    Raises
    ------
    TransformPreconditionError
        If some layer is neither of these.
    """
    if isinstance(density, DistributionDensity | MvDistributionDensity):
        return density
    if isinstance(density, PosteriorDensity):
        return get_deep_prior(density.prior)
    if isinstance(density, RenormalizedDensity):
        return get_deep_prior(density.parent)
    raise TransformPreconditionError(
        f"Cannot locate a prior distribution in density of type {type(density).__name__}."
    )


def _matches_target(target: TransformTarget, density: Density) -> bool:
    if not isinstance(density, DistributionDensity):
        return False
    if target == TransformTarget.PRIOR_TO_UNIFORM:
        return density.is_standard_uniform()
    if target == TransformTarget.PRIOR_TO_GAUSSIAN:
        return density.is_standard_normal()
    return False


def _identity_transform(target: TransformTarget, density: Density) -> TransformResult:
    if target != TransformTarget.NO_TRANSFORM and not _matches_target(target, density):
        raise TransformPreconditionError(
            f"Identity transform requires target {TransformTarget.NO_TRANSFORM} or a prior "
            f"already matching target {target}."
        )
    return TransformResult(density, IdentityTransform(), TransformAlgorithm.IDENTITY)


def _full_density_transform(target: TransformTarget, density: Density) -> TransformResult:
    orig_prior = get_deep_prior(density)
    if not isinstance(orig_prior, DistributionDensity):
        raise TransformPreconditionError(
            f"Transform to target {target} requires a prior of independent univariate "
            f"distributions, got {type(orig_prior).__name__}."
        )
    trafo = DistributionTransform(target_families[target], orig_prior)
    return TransformResult(
        TransformedDensity(density, trafo, VolumeCorrection.LADJ),
        trafo,
        TransformAlgorithm.FULL_DENSITY,
    )


def _substitute_prior(
    target: TransformTarget, density: Density
) -> tuple[Density, VariateTransform]:
    if isinstance(density, DistributionDensity):
        trafo = DistributionTransform(target_families[target], density)
        return trafo.target_dist, trafo

    if isinstance(density, MvDistributionDensity):
        raise TransformPreconditionError(
            f"Transform to target {target} requires a prior of independent univariate "
            f"distributions, got {type(density).__name__}."
        )

    if isinstance(density, PosteriorDensity):
        new_prior, trafo = _substitute_prior(target, density.prior)
        try:
            # the substituted prior already accounts for the change of volume
            new_likelihood = TransformedDensity(density.likelihood, trafo, VolumeCorrection.NONE)
        except InputError as err:
            raise TransformPreconditionError(
                f"Likelihood variate shape {density.likelihood.var_shape} does not match "
                f"prior variate shape {density.prior.var_shape}."
            ) from err
        return PosteriorDensity(new_likelihood, new_prior), trafo

    if isinstance(density, RenormalizedDensity):
        new_parent, trafo = _substitute_prior(target, density.parent)
        return RenormalizedDensity(new_parent, density.log_renorm_f), trafo

    raise TransformPreconditionError(
        f"Prior substitution is not supported for density of type {type(density).__name__}."
    )
