"""pyposterior: Bayesian posterior densities, transformations and MCMC sampling.

pyposterior evaluates, reshapes and samples from probability densities.
The package provides:

- Densities built from scipy.stats priors and plain log-likelihood functions
- Transformations of densities into unit-hypercube or standard-normal
  variate spaces, with exact volume correction
- Robust MCMC chain initialization over possibly multimodal targets
- Metropolis-Hastings sampling with proposal tuning

Examples
--------
Sampling a posterior with a Gaussian prior:

    >>> import numpy as np
    >>> from scipy import stats
    >>> from pyposterior.densities import PosteriorDensity
    >>> from pyposterior.samplers import MCMCSampling, run_mcmc_sampling
    >>> posterior = PosteriorDensity(my_log_likelihood, {"a": stats.norm(0, 5), "b": stats.norm(0, 5)})
    >>> result = run_mcmc_sampling(
    ...     np.random.default_rng(42), posterior,
    ...     MCMCSampling(nchains=4, nsteps=10_000),
    ... )
    >>> result.samples.mean()
"""
