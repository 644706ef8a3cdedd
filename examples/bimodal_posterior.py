"""
MCMC sampling of a bimodal posterior

This script samples a two-dimensional posterior whose likelihood has two
well-separated modes. The chain pool initialization tries many short-lived
candidate chains and keeps a set of healthy chains spread over both modes,
which a single randomly started chain would usually fail to do.

The candidate chains are independent, so they are run in parallel with a
ProcessPoolExecutor. Any pool with a map() method (e.g. schwimmbad pools for
MPI) can be used instead.

Usage:
    python bimodal_posterior.py
"""

import logging
from concurrent.futures import ProcessPoolExecutor

import numpy as np
from scipy import stats

from pyposterior.densities import PosteriorDensity
from pyposterior.samplers import ChainPoolInit, MCMCSampling, run_mcmc_sampling
from pyposterior.transforms import TransformTarget

logger = logging.getLogger(__name__)

MODES = np.array([[-3.0, -3.0], [3.0, 3.0]])
SIGMA = 0.5


def log_likelihood(v):
    """Equal-weight mixture of two Gaussians, up to a constant."""
    x = np.array([v["x"], v["y"]])
    log_terms = -0.5 * np.sum((x - MODES) ** 2, axis=1) / SIGMA**2
    return np.logaddexp(log_terms[0], log_terms[1])


def main():
    prior = {"x": stats.uniform(-10, 20), "y": stats.uniform(-10, 20)}
    posterior = PosteriorDensity(log_likelihood, prior)

    sampling = MCMCSampling(
        nchains=4,
        nsteps=5000,
        init=ChainPoolInit(init_tries_per_chain=(8, 64), nsteps_init=500),
        nsteps_burnin=2000,
        n_burnin_cycles=4,
        trafo=TransformTarget.PRIOR_TO_GAUSSIAN,
    )

    with ProcessPoolExecutor(max_workers=4) as pool:
        result = run_mcmc_sampling(
            np.random.default_rng(42), posterior, sampling, pool=pool, progress=True
        )

    samples = result.samples.v_array()
    weights = np.asarray(result.samples.weight)
    in_upper_mode = samples[:, 0] > 0
    logger.info("Number of stored samples: %d", result.n_samples)
    logger.info("Weighted posterior mean: %s", result.samples.mean())
    logger.info(
        "Weight fraction in the upper mode: %.3f",
        weights[in_upper_mode].sum() / weights.sum(),
    )
    for chain in result.chains:
        logger.info(
            "Chain %d ends at %s, acceptance ratio %.3f",
            chain.id,
            np.round(result.trafo.inverse(chain.current_v)["x"], 2),
            chain.acceptance_ratio,
        )


if __name__ == "__main__":
    main()
