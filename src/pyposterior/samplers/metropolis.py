"""Random-walk Metropolis-Hastings chains.

This module provides the stepping oracle used by the chain pool: a chain
holds its own random stream, its current sample and its step statistics,
and ``mcmc_iterate`` advances a batch of chains, recording the produced
samples in per-chain ``DensitySampleVector`` buffers.
"""

import logging
from dataclasses import dataclass, field
from enum import StrEnum, auto
from functools import partial

import numpy as np
from numpy.random import Generator
from tqdm import tqdm

from ..densities.abstract_density import Density, checked_log_density, is_log_zero
from ..densities.transformed_density import TransformedDensity
from ..exceptions import InputError, TransformPreconditionError
from ..transforms.transform_algorithm import get_deep_prior
from ..transforms.variate_transforms import UnshapeTransform
from ..utils.shapes import NamedShape
from ..utils.types import FloatArray, PoolLike, StepCallback
from .samples import DensitySampleVector

logger = logging.getLogger(__name__)


class SampleWeighting(StrEnum):
    """How Metropolis-Hastings samples are weighted."""

    REPETITION = auto()  # rejections add weight 1 to the current sample
    ACCEPT_REJECT = auto()  # every proposal is kept, weighted by its acceptance probability


@dataclass(frozen=True)
class MetropolisHastings:
    """Random-walk Metropolis-Hastings with Gaussian proposals.

    Parameters
    ----------
    weighting : SampleWeighting, optional
        Sample weighting scheme. Default is REPETITION.
    proposal_scale : float, optional
        Scale factor of the proposal covariance. Default is None, which uses
        ``2.38 / sqrt(n_dims)``.
    """

    weighting: SampleWeighting = SampleWeighting.REPETITION
    proposal_scale: float | None = None

    def __post_init__(self):
        """Post-initialization checks."""
        if self.proposal_scale is not None and self.proposal_scale <= 0:
            raise InputError("proposal_scale must be positive.")

    def scale_for(self, n_dims: int) -> float:
        """Proposal scale factor for a given dimension."""
        if self.proposal_scale is not None:
            return self.proposal_scale
        return 2.38 / np.sqrt(max(n_dims, 1))


@dataclass
class MHChain:
    """State of a single Metropolis-Hastings chain.

    Use ``MHChain.create`` to build a chain from an initial value.
    """

    rng: Generator
    algorithm: MetropolisHastings
    density: Density
    id: int
    current_v: FloatArray
    current_logd: float
    proposal_cov: FloatArray
    n_steps: int = 0
    n_accepted: int = 0
    output_index: int | None = field(default=None, repr=False)

    def __repr__(self):
        """String representation of the chain."""
        return (
            f"MHChain(id={self.id}, n_steps={self.n_steps}, "
            f"n_samples={self.n_samples})"
        )

    @classmethod
    def create(
        cls,
        rng: Generator,
        algorithm: MetropolisHastings,
        density: Density,
        id: int,
        v_init,
    ) -> "MHChain":
        """Build a chain starting at v_init.

        Raises
        ------
        DensityEvalError
            If the density cannot be evaluated at v_init.
        """
        shape = density.var_shape
        if isinstance(shape, NamedShape):
            v_init = shape.flatten(v_init)
        v_init = np.asarray(v_init, dtype=float).reshape(-1)
        chain = cls(
            rng=rng,
            algorithm=algorithm,
            density=density,
            id=id,
            current_v=v_init,
            current_logd=-np.inf,
            proposal_cov=initial_proposal_cov(density, v_init.shape[0]),
        )
        chain.current_logd = chain.eval_log_density(v_init)
        return chain

    @property
    def n_dims(self) -> int:
        """Dimension of the flat variates."""
        return self.current_v.shape[0]

    @property
    def n_samples(self) -> int:
        """Number of unique samples visited, the initial one included."""
        return self.n_accepted + 1

    @property
    def acceptance_ratio(self) -> float:
        """Fraction of accepted proposals."""
        return self.n_accepted / self.n_steps if self.n_steps else 0.0

    def is_valid(self) -> bool:
        """Whether the current sample has non-zero density."""
        return not is_log_zero(self.current_logd)

    def eval_log_density(self, v: FloatArray) -> float:
        """Checked log-density at a flat variate, -inf outside of the bounds."""
        bounds = self.density.var_bounds
        if bounds is not None and not np.all((v >= bounds[0]) & (v <= bounds[1])):
            return -np.inf
        shape = self.density.var_shape
        if isinstance(shape, NamedShape):
            return checked_log_density(self.density, shape.unflatten(v))
        return checked_log_density(self.density, v)

    def propose(self) -> FloatArray:
        """Draw a proposal around the current sample."""
        scale = self.algorithm.scale_for(self.n_dims)
        chol = np.linalg.cholesky(scale**2 * self.proposal_cov)
        return self.current_v + chol @ self.rng.standard_normal(self.n_dims)


def step_chain(
    chain: MHChain,
    output: DensitySampleVector,
    nonzero_weights: bool = True,
) -> bool:
    """Perform a single Metropolis-Hastings step.

    The chain and its output are updated in place.

    Returns
    -------
    bool
        Whether the proposal was accepted.
    """
    if len(output) == 0 or chain.output_index is None:
        chain.output_index = output.append(chain.current_v, chain.current_logd, 0.0, chain.id)

    proposed_v = chain.propose()
    proposed_logd = chain.eval_log_density(proposed_v)

    # Metropolis-Hastings acceptance criterion
    with np.errstate(invalid="ignore"):
        log_ratio = proposed_logd - chain.current_logd
    if np.isnan(log_ratio):
        log_ratio = -np.inf
    accept = bool(log_ratio > -np.inf and log_ratio >= np.log(chain.rng.random()))
    p_accept = float(np.exp(min(log_ratio, 0.0)))

    if chain.algorithm.weighting == SampleWeighting.ACCEPT_REJECT:
        output.add_weight(chain.output_index, 1.0 - p_accept)
        if accept:
            _leave_current_sample(chain, output, nonzero_weights)
            chain.output_index = output.append(proposed_v, proposed_logd, p_accept, chain.id)
        elif p_accept > 0 or not nonzero_weights:
            output.append(proposed_v, proposed_logd, p_accept, chain.id)
    else:
        if accept:
            _leave_current_sample(chain, output, nonzero_weights)
            chain.output_index = output.append(proposed_v, proposed_logd, 1.0, chain.id)
        else:
            output.add_weight(chain.output_index, 1.0)

    if accept:
        chain.current_v = proposed_v
        chain.current_logd = proposed_logd
        chain.n_accepted += 1
    chain.n_steps += 1

    return accept


def _leave_current_sample(chain: MHChain, output: DensitySampleVector, nonzero_weights: bool) -> None:
    """Drop the current sample from the output if it ends up without weight."""
    if nonzero_weights and output.weight[chain.output_index] == 0:
        output.remove(chain.output_index)


def iterate_chain(
    chain_and_output: tuple[MHChain, DensitySampleVector],
    max_nsteps: int,
    callback: StepCallback | None = None,
    nonzero_weights: bool = True,
) -> tuple[MHChain, DensitySampleVector]:
    """Advance a chain until it has performed max_nsteps steps in total.

    Steps already performed count towards max_nsteps, so iterating again
    with a larger max_nsteps continues the chain where it stopped.
    """
    chain, output = chain_and_output
    while chain.n_steps < max_nsteps:
        step_chain(chain, output, nonzero_weights)
        if callback is not None:
            callback(chain)
    return chain, output


def mcmc_iterate(
    chains: list[MHChain],
    outputs: list[DensitySampleVector],
    max_nsteps: int,
    callback: StepCallback | None = None,
    nonzero_weights: bool = True,
    pool: PoolLike | None = None,
    progress: bool = False,
) -> tuple[list[MHChain], list[DensitySampleVector]]:
    """Advance every chain until it has performed max_nsteps steps in total.

    Chains are independent, so they can be advanced in parallel. With a pool
    the updated chains and outputs are copies, always use the returned lists.

    Parameters
    ----------
    chains : list of MHChain
        Chains to advance.
    outputs : list of DensitySampleVector
        Sample buffers of the chains, extended with the new samples.
    max_nsteps : int
        Total number of steps per chain.
    callback : StepCallback, optional
        Called with the chain after every step. Must be picklable if a
        process pool is used.
    nonzero_weights : bool, optional
        Whether to drop samples of weight zero. Default is True.
    pool : PoolLike, optional
        User-provided pool for parallelizing over chains. The pool must
        implement a map() method compatible with the standard library's
        map() function. Default is None (sequential).
    progress : bool, optional
        Whether to display a progress bar. Default is False.

    Returns
    -------
    chains, outputs
        The advanced chains and their sample buffers.
    """
    if len(chains) != len(outputs):
        raise InputError("Number of chains and outputs must match.")

    logger.debug("Advancing %d MCMC chain(s) to %d steps.", len(chains), max_nsteps)

    func = partial(
        iterate_chain,
        max_nsteps=max_nsteps,
        callback=callback,
        nonzero_weights=nonzero_weights,
    )
    jobs = list(zip(chains, outputs))
    mapped = map(func, jobs) if pool is None else pool.map(func, jobs)
    results = list(tqdm(mapped, total=len(jobs), disable=not progress))

    return [r[0] for r in results], [r[1] for r in results]


def initial_proposal_cov(density: Density, n_dims: int) -> FloatArray:
    """Initial proposal covariance for a density.

    Uses the covariance of the target distribution of a transformed density,
    or of the prior of the density, if known and finite. Falls back to the
    identity matrix.
    """
    if isinstance(density, TransformedDensity) and hasattr(density.trafo, "target_dist"):
        cov = density.trafo.target_dist.cov()
    elif isinstance(density, TransformedDensity) and isinstance(density.trafo, UnshapeTransform):
        return initial_proposal_cov(density.orig, n_dims)
    else:
        try:
            cov = get_deep_prior(density).cov()
        except TransformPreconditionError:
            cov = None

    if cov is None or cov.shape != (n_dims, n_dims) or not np.all(np.isfinite(cov)):
        return np.eye(n_dims)
    return cov
