"""MCMC sampling for pyposterior.

This module provides the Markov chain Monte Carlo machinery:

- Weighted sample buffers
- Random-walk Metropolis-Hastings chains and the chain stepping loop
- Proposal covariance tuning
- Chain pool initialization, selecting viable and well-spread chains
- The MCMC sampling driver, from density to weighted samples

Chain pool initialization is the part that makes sampling of unknown,
possibly multimodal targets reliable: many short-lived candidate chains are
tried, and only healthy ones, spread over the variate space, are kept.
"""

from .chain_pool import ChainPoolInit, ChainPoolResult, bootstrap_chains, has_accepted_samples
from .initvals import InitFromTarget, draw_initial_value
from .mcmc_sampling import MCMCSampling, MCMCSamplingResult, run_mcmc_sampling
from .metropolis import MetropolisHastings, MHChain, SampleWeighting, mcmc_iterate
from .samples import DensitySampleVector
from .tuning import NoOpTuning, ProposalCovTuning

__all__ = [
    "run_mcmc_sampling",
    "bootstrap_chains",
    "mcmc_iterate",
    "draw_initial_value",
    "has_accepted_samples",
    "MCMCSampling",
    "MCMCSamplingResult",
    "ChainPoolInit",
    "ChainPoolResult",
    "InitFromTarget",
    "MetropolisHastings",
    "MHChain",
    "SampleWeighting",
    "DensitySampleVector",
    "NoOpTuning",
    "ProposalCovTuning",
]
