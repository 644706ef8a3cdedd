"""MCMC chain pool initialization.

Generates many short-lived candidate chains, screens them for viability,
refines the viable ones and keeps the good ones, until enough chains have
been found. The final chains are then selected so that they are spread
over the distinct regions of the variate space the candidates ended up in.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from typing import Any

import numpy as np
from numpy.random import Generator
from tqdm import tqdm

from ..densities.abstract_density import Density, to_density
from ..exceptions import (
    ClusteringConvergenceError,
    DensityEvalError,
    InputError,
    InsufficientViableChainsError,
)
from ..utils.clustering import centrality_kmeans
from ..utils.rng import RNGPartition
from ..utils.types import IntArray, PoolLike, StepCallback
from .initvals import InitFromTarget
from .metropolis import MetropolisHastings, MHChain, mcmc_iterate
from .samples import DensitySampleVector
from .tuning import ProposalCovTuning

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def has_accepted_samples(chain: MHChain) -> bool:
    """Viability predicate: the chain has moved at least once."""
    return chain.n_samples >= 2


@dataclass(frozen=True)
class ChainPoolInit:
    """MCMC chain pool initialization strategy.

    Parameters
    ----------
    init_tries_per_chain : tuple of int, optional
        Closed interval (lo, hi). At least ``lo * nchains`` good candidates
        are collected, at most ``hi * nchains`` candidates are tried.
        Default is (8, 128).
    nsteps_init : int, optional
        Number of steps each viable candidate performs. Default is 1000.
    good_chain_fraction : float, optional
        Viable candidates with at least this fraction of the median number
        of unique samples are kept. Default is 0.8.
    is_viable : Callable, optional
        Predicate that decides after screening whether a candidate is worth
        refining. Must be picklable if a process pool is used. Default is
        ``has_accepted_samples``.
    """

    init_tries_per_chain: tuple[int, int] = (8, 128)
    nsteps_init: int = 1000
    good_chain_fraction: float = 0.8
    is_viable: Callable[[MHChain], bool] = field(default=has_accepted_samples, repr=False)

    def __post_init__(self):
        """Post-initialization checks."""
        lo, hi = self.init_tries_per_chain
        if lo < 1 or hi < lo:
            raise InputError("init_tries_per_chain must be an interval (lo, hi) with 1 <= lo <= hi.")
        if self.nsteps_init < 0:
            raise InputError("nsteps_init must be non-negative.")
        if not 0 < self.good_chain_fraction <= 1:
            raise InputError("good_chain_fraction must be in (0, 1].")

    @property
    def nsteps_screening(self) -> int:
        """Number of steps of the screening run."""
        return max(50, self.nsteps_init // 5)


@dataclass
class ChainPoolResult:
    """The selected chains, their tuners and their accumulated samples."""

    chains: list[MHChain]
    tuners: list[Any]
    outputs: list[DensitySampleVector]

    def __iter__(self):
        """Unpack as ``chains, tuners, outputs``."""
        return iter((self.chains, self.tuners, self.outputs))

    @property
    def n_chains(self) -> int:
        """Number of chains."""
        return len(self.chains)


def bootstrap_chains(
    rng: Generator,
    algorithm: MetropolisHastings,
    density,
    nchains: int,
    init_alg: ChainPoolInit = ChainPoolInit(),
    tuning_alg=None,
    nonzero_weights: bool = True,
    callback: StepCallback | None = None,
    pool: PoolLike | None = None,
    progress: bool = False,
    initval_alg=InitFromTarget(),
) -> ChainPoolResult:
    """Generate nchains viable, well-spread MCMC chains.

    Parameters
    ----------
    rng : Generator
        Parent random number generator. Each candidate chain gets its own
        generator, derived from rng and the candidate id only.
    algorithm : MetropolisHastings
        MCMC algorithm of the chains.
    density : density-like
        Target density, converted with ``to_density``.
    nchains : int
        Number of chains to return.
    init_alg : ChainPoolInit, optional
        Chain pool settings. Default is ``ChainPoolInit()``.
    tuning_alg : optional
        Tuning algorithm, builds one tuner per chain. Default is None, which
        uses ``ProposalCovTuning()``.
    nonzero_weights : bool, optional
        Whether to drop samples of weight zero. Default is True.
    callback : StepCallback, optional
        Called with the chain after every MCMC step.
    pool : PoolLike, optional
        User-provided pool for parallelizing over candidate chains. The pool
        must implement a map() method compatible with the standard library's
        map() function. Results do not depend on whether a pool is used.
    progress : bool, optional
        Whether to display progress bars. Default is False.
    initval_alg : optional
        Draws the initial value of each candidate. Default is
        ``InitFromTarget()``.

    Returns
    -------
    ChainPoolResult
        Exactly nchains chains with their tuners and the samples they
        produced during initialization.

    Raises
    ------
    InsufficientViableChainsError
        If fewer than ``lo * nchains`` good chains are found within
        ``hi * nchains`` candidates.
    ClusteringConvergenceError
        If the clustering of the final chain positions does not converge.

    Examples
    --------
    >>> from scipy import stats
    >>> posterior = PosteriorDensity(my_log_likelihood, [stats.norm(0, 5)] * 2)
    >>> chains, tuners, outputs = bootstrap_chains(
    ...     np.random.default_rng(42), MetropolisHastings(), posterior, nchains=4,
    ...     init_alg=ChainPoolInit(init_tries_per_chain=(4, 32), nsteps_init=500),
    ... )
    """
    if nchains < 1:
        raise InputError("nchains must be a positive integer.")
    density = to_density(density)
    if tuning_alg is None:
        tuning_alg = ProposalCovTuning()

    logger.info("Trying to generate %d viable MCMC chain(s).", nchains)

    lo, hi = init_alg.init_tries_per_chain
    min_nviable = lo * nchains
    max_ncandidates = hi * nchains

    rngpart = RNGPartition(rng)
    construct = partial(
        _construct_chain,
        rngpart=rngpart,
        algorithm=algorithm,
        density=density,
        initval_alg=initval_alg,
    )

    chains: list[MHChain] = []
    tuners: list[Any] = []
    outputs: list[DensitySampleVector] = []
    ncandidates = 0
    cycle = 1

    while len(tuners) < min_nviable and ncandidates < max_ncandidates:
        n = min(min_nviable, max_ncandidates - ncandidates)
        logger.debug(
            "Generating %d %sMCMC chain(s).", n, "additional " if cycle > 1 else ""
        )

        ids = range(ncandidates + 1, ncandidates + n + 1)
        new_chains = _map(construct, ids, pool, progress)
        new_chains = [chain for chain in new_chains if chain is not None]
        ncandidates += n

        new_tuners = [tuning_alg.build(chain) for chain in new_chains]
        for tuner, chain in zip(new_tuners, new_chains):
            tuner.tuning_init(chain)
        new_outputs = [DensitySampleVector() for _ in new_chains]

        logger.debug("Testing %d MCMC chain(s).", len(new_chains))

        new_chains, new_outputs = mcmc_iterate(
            new_chains,
            new_outputs,
            max_nsteps=init_alg.nsteps_screening,
            callback=callback,
            nonzero_weights=nonzero_weights,
            pool=pool,
            progress=progress,
        )

        viable_idxs = [i for i, chain in enumerate(new_chains) if init_alg.is_viable(chain)]
        viable_chains = [new_chains[i] for i in viable_idxs]
        viable_tuners = [new_tuners[i] for i in viable_idxs]
        viable_outputs = [new_outputs[i] for i in viable_idxs]

        logger.debug("Found %d viable MCMC chain(s).", len(viable_idxs))

        if viable_chains:
            viable_chains, viable_outputs = mcmc_iterate(
                viable_chains,
                viable_outputs,
                max_nsteps=init_alg.nsteps_init,
                callback=callback,
                nonzero_weights=nonzero_weights,
                pool=pool,
                progress=progress,
            )

            ratings = [chain.n_samples for chain in viable_chains]
            good_idxs, nsamples_thresh = select_good_chains(ratings, init_alg.good_chain_fraction)
            logger.debug(
                "Found %d MCMC chain(s) with at least %d unique accepted samples.",
                len(good_idxs),
                nsamples_thresh,
            )

            chains.extend(viable_chains[i] for i in good_idxs)
            tuners.extend(viable_tuners[i] for i in good_idxs)
            outputs.extend(viable_outputs[i] for i in good_idxs)

        cycle += 1

    if len(tuners) < min_nviable:
        raise InsufficientViableChainsError(
            f"Failed to generate {min_nviable} viable MCMC chains "
            f"after trying {ncandidates} candidates."
        )

    selected = select_diverse_chains(chains, nchains)
    result = ChainPoolResult(
        chains=[chains[i] for i in selected],
        tuners=[tuners[i] for i in selected],
        outputs=[outputs[i] for i in selected],
    )

    logger.info("Selected %d MCMC chain(s).", result.n_chains)

    return result


def select_good_chains(ratings: list[int], fraction: float = 0.8) -> tuple[list[int], int]:
    """Indices of the chains rated at least fraction times the median rating.

    Returns
    -------
    good_idxs : list of int
        Indices into ratings, in ascending order.
    threshold : int
        The rating threshold, ``floor(fraction * median(ratings))``.
    """
    threshold = int(np.floor(fraction * np.median(ratings)))
    return [i for i, rating in enumerate(ratings) if rating >= threshold], threshold


def select_diverse_chains(chains: list[MHChain], nchains: int) -> list[int]:
    """Select nchains chains from a pool, spread over the variate space.

    If ``2 <= nchains < len(chains)``, the final positions of the chains are
    clustered into nchains groups and the best rated chain of every group is
    selected. A single chain is the best rated chain of the pool. Otherwise
    the pool must contain exactly nchains chains.

    Returns
    -------
    list of int
        Indices of the selected chains, in ascending order.

    Raises
    ------
    ClusteringConvergenceError
        If the clustering does not converge.
    """
    n = len(chains)
    ratings = np.array([chain.n_samples for chain in chains])

    if 2 <= nchains < n:
        positions = np.vstack([chain.current_v for chain in chains])
        clusters = centrality_kmeans(positions, nchains)
        if not clusters.converged:
            raise ClusteringConvergenceError("k-means clustering of MCMC chains did not converge")
        return _best_per_cluster(clusters.assignments, ratings, nchains)

    if nchains == 1 and n > 1:
        return [int(np.argmax(ratings))]

    assert n == nchains, f"Chain pool contains {n} chains, expected {nchains}"
    return list(range(n))


def _best_per_cluster(assignments: IntArray, ratings: IntArray, n_clusters: int) -> list[int]:
    max_rating = np.full(n_clusters, -np.inf)
    chain_sel_idxs = np.full(n_clusters, -1)
    for i, j in enumerate(assignments):
        if ratings[i] > max_rating[j]:
            max_rating[j] = ratings[i]
            chain_sel_idxs[j] = i

    assert np.all(chain_sel_idxs >= 0), "Every cluster must contain a chain"
    return sorted(int(i) for i in chain_sel_idxs)


def _construct_chain(
    id: int,
    rngpart: RNGPartition,
    algorithm: MetropolisHastings,
    density: Density,
    initval_alg,
) -> MHChain | None:
    """Build candidate chain id, or None if its initial value is unusable."""
    rng = rngpart.rng(id)
    try:
        v_init = initval_alg.draw_initial_value(rng, density)
        chain = MHChain.create(rng, algorithm, density, id, v_init)
    except (DensityEvalError, InputError) as err:
        logger.debug("Discarding MCMC chain %d: %s", id, err)
        return None
    if not chain.is_valid():
        logger.debug("Discarding MCMC chain %d with zero density at its initial value.", id)
        return None
    return chain


def _map(func, items, pool: PoolLike | None, progress: bool) -> list:
    """Map func over items sequentially or with a user-provided pool."""
    items = list(items)
    mapped = map(func, items) if pool is None else pool.map(func, items)
    return list(tqdm(mapped, total=len(items), disable=not progress))
