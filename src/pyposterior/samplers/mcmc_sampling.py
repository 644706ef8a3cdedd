"""MCMC sampling of densities.

Transforms the density, initializes a pool of chains, tunes the chains
during burn-in and runs the main sampling, then maps the samples back to
the original variate space.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.random import Generator

from ..densities.abstract_density import Density
from ..exceptions import InputError
from ..transforms.transform_algorithm import TransformTarget, transform_and_unshape
from ..transforms.variate_transforms import VariateTransform
from ..utils.shapes import NamedShape
from ..utils.types import PoolLike, StepCallback
from .chain_pool import ChainPoolInit, bootstrap_chains
from .metropolis import MetropolisHastings, MHChain, mcmc_iterate
from .samples import DensitySampleVector
from .tuning import ProposalCovTuning

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MCMCSampling:
    """Settings of an MCMC sampling run.

    Parameters
    ----------
    algorithm : MetropolisHastings, optional
        MCMC algorithm. Default is ``MetropolisHastings()``.
    nchains : int, optional
        Number of chains. Default is 4.
    nsteps : int, optional
        Number of steps per chain after burn-in. Default is 10000.
    init : ChainPoolInit, optional
        Chain pool initialization. Default is ``ChainPoolInit()``.
    tuning : optional
        Tuning algorithm. Default is ``ProposalCovTuning()``.
    nsteps_burnin : int, optional
        Number of burn-in steps per chain, split over the tuning cycles.
        Default is 2000.
    n_burnin_cycles : int, optional
        Number of burn-in cycles, the chains are tuned after each.
        Default is 4.
    trafo : TransformTarget, optional
        Space the density is sampled in. Default is PRIOR_TO_GAUSSIAN.
    nonzero_weights : bool, optional
        Whether to drop samples of weight zero. Default is True.
    """

    algorithm: MetropolisHastings = field(default_factory=MetropolisHastings)
    nchains: int = 4
    nsteps: int = 10_000
    init: ChainPoolInit = field(default_factory=ChainPoolInit)
    tuning: Any = field(default_factory=ProposalCovTuning)
    nsteps_burnin: int = 2000
    n_burnin_cycles: int = 4
    trafo: TransformTarget = TransformTarget.PRIOR_TO_GAUSSIAN
    nonzero_weights: bool = True

    def __post_init__(self):
        """Post-initialization checks."""
        if self.nchains < 1:
            raise InputError("nchains must be a positive integer.")
        if self.nsteps < 0 or self.nsteps_burnin < 0:
            raise InputError("Numbers of steps must be non-negative.")
        if self.n_burnin_cycles < 1:
            raise InputError("n_burnin_cycles must be a positive integer.")


@dataclass
class MCMCSamplingResult:
    """Result of an MCMC sampling run."""

    samples: DensitySampleVector  # in the original variate space, flattened
    chains: list[MHChain]
    density: Density  # the density the chains sampled
    trafo: VariateTransform  # from the original to the sampled space

    @property
    def n_samples(self) -> int:
        """Number of stored samples."""
        return len(self.samples)


def run_mcmc_sampling(
    rng: Generator,
    density,
    sampling: MCMCSampling = MCMCSampling(),
    callback: StepCallback | None = None,
    pool: PoolLike | None = None,
    progress: bool = False,
) -> MCMCSamplingResult:
    """Sample a density with MCMC.

    Parameters
    ----------
    rng : Generator
        Random number generator, the run is reproducible for a given state.
    density : density-like
        Density to sample, typically a ``PosteriorDensity``.
    sampling : MCMCSampling, optional
        Sampling settings.
    callback : StepCallback, optional
        Called with the chain after every MCMC step.
    pool : PoolLike, optional
        User-provided pool for parallelizing over chains.
    progress : bool, optional
        Whether to display progress bars. Default is False.

    Returns
    -------
    MCMCSamplingResult
        Weighted samples of all chains, mapped back to the original
        variate space and flattened.

    Examples
    --------
    >>> from scipy import stats
    >>> posterior = PosteriorDensity(my_log_likelihood, [stats.uniform(-5, 10)] * 2)
    >>> result = run_mcmc_sampling(np.random.default_rng(0), posterior, MCMCSampling(nsteps=10**4))
    >>> result.samples.mean()
    """
    sampled_density, trafo = transform_and_unshape(sampling.trafo, density)

    logger.info("Running MCMC sampling with %d chain(s)", sampling.nchains)

    chains, tuners, outputs = bootstrap_chains(
        rng,
        sampling.algorithm,
        sampled_density,
        sampling.nchains,
        init_alg=sampling.init,
        tuning_alg=sampling.tuning,
        nonzero_weights=sampling.nonzero_weights,
        callback=callback,
        pool=pool,
        progress=progress,
    )

    nsteps_per_cycle = int(np.ceil(sampling.nsteps_burnin / sampling.n_burnin_cycles))
    for cycle in range(sampling.n_burnin_cycles):
        outputs = [DensitySampleVector() for _ in chains]
        chains, outputs = mcmc_iterate(
            chains,
            outputs,
            max_nsteps=max(chain.n_steps for chain in chains) + nsteps_per_cycle,
            callback=callback,
            nonzero_weights=sampling.nonzero_weights,
            pool=pool,
            progress=progress,
        )
        for tuner, chain, output in zip(tuners, chains, outputs):
            tuner.tune(chain, output)
        logger.debug(
            "Burn-in cycle %d, acceptance ratios %s",
            cycle + 1,
            [round(chain.acceptance_ratio, 3) for chain in chains],
        )

    outputs = [DensitySampleVector() for _ in chains]
    chains, outputs = mcmc_iterate(
        chains,
        outputs,
        max_nsteps=max(chain.n_steps for chain in chains) + sampling.nsteps,
        callback=callback,
        nonzero_weights=sampling.nonzero_weights,
        pool=pool,
        progress=progress,
    )

    samples = DensitySampleVector.concatenate(outputs)
    if sampling.nonzero_weights:
        samples = samples.nonzero()
    samples = _to_original_space(samples, trafo)

    logger.info("Generated %d samples", len(samples))

    return MCMCSamplingResult(samples=samples, chains=chains, density=sampled_density, trafo=trafo)


def _to_original_space(samples: DensitySampleVector, trafo: VariateTransform) -> DensitySampleVector:
    """Map samples back through trafo and flatten them.

    The log-density values stay those of the sampled density.
    """
    result = DensitySampleVector()
    for v, logd, weight, chain_id in zip(samples.v, samples.logd, samples.weight, samples.chain_id):
        v_orig = trafo.inverse(v)
        if isinstance(v_orig, dict):
            v_orig = NamedShape.from_sizes(
                {k: np.size(x) if np.ndim(x) else 0 for k, x in v_orig.items()}
            ).flatten(v_orig)
        result.append(v_orig, logd, weight, chain_id)
    return result
