"""Tuning of Metropolis-Hastings proposal distributions.

A tuning algorithm builds one tuner per chain. Tuners are initialised once
the chain exists and are asked to tune the chain after each burn-in cycle.
"""

from dataclasses import dataclass

import numpy as np

from ..exceptions import InputError
from .metropolis import MHChain
from .samples import DensitySampleVector


@dataclass
class NoOpTuner:
    """Tuner that leaves the chain unchanged."""

    def tuning_init(self, chain: MHChain) -> None:
        pass

    def tune(self, chain: MHChain, output: DensitySampleVector) -> None:
        pass


@dataclass(frozen=True)
class NoOpTuning:
    """Tuning algorithm that does not tune."""

    def build(self, chain: MHChain) -> NoOpTuner:
        """Build a tuner for chain."""
        return NoOpTuner()


@dataclass(frozen=True)
class ProposalCovTuning:
    """Adapt the proposal covariance to the samples of the chain.

    After each cycle the proposal covariance is set to the weighted sample
    covariance of the cycle, multiplied by a scale factor that grows when
    the acceptance ratio of the cycle is above target_acceptance and shrinks
    when it is below.

    Parameters
    ----------
    target_acceptance : float, optional
        Desired acceptance ratio. Default is 0.234.
    scale_bounds : tuple of float, optional
        Lower and upper bound of the scale factor. Default is (1e-4, 1e2).
    """

    target_acceptance: float = 0.234
    scale_bounds: tuple[float, float] = (1e-4, 1e2)

    def __post_init__(self):
        """Post-initialization checks."""
        if not 0 < self.target_acceptance < 1:
            raise InputError("target_acceptance must be in (0, 1).")
        lo, hi = self.scale_bounds
        if not 0 < lo <= 1 <= hi:
            raise InputError("scale_bounds must satisfy 0 < lower <= 1 <= upper.")

    def build(self, chain: MHChain) -> "ProposalCovTuner":
        """Build a tuner for chain."""
        return ProposalCovTuner(config=self)


@dataclass
class ProposalCovTuner:
    """Tuner state of ``ProposalCovTuning`` for a single chain."""

    config: ProposalCovTuning
    scale: float = 1.0
    n_steps_seen: int = 0
    n_accepted_seen: int = 0
    base_cov: np.ndarray | None = None

    def tuning_init(self, chain: MHChain) -> None:
        """Start counting acceptances from the current state of chain."""
        self.scale = 1.0
        self.n_steps_seen = chain.n_steps
        self.n_accepted_seen = chain.n_accepted
        self.base_cov = chain.proposal_cov.copy()

    def tune(self, chain: MHChain, output: DensitySampleVector) -> None:
        """Update the proposal covariance of chain from the samples in output."""
        n_steps = chain.n_steps - self.n_steps_seen
        if n_steps == 0:
            return
        acceptance = (chain.n_accepted - self.n_accepted_seen) / n_steps
        self.n_steps_seen = chain.n_steps
        self.n_accepted_seen = chain.n_accepted

        lo, hi = self.config.scale_bounds
        self.scale = float(
            np.clip(self.scale * np.exp(acceptance - self.config.target_acceptance), lo, hi)
        )

        samples = output.nonzero()
        if len(samples) <= chain.n_dims:
            if self.base_cov is not None:
                chain.proposal_cov = self.scale * self.base_cov
            return

        cov = samples.cov() + 1e-10 * np.eye(chain.n_dims)
        try:
            np.linalg.cholesky(cov)
        except np.linalg.LinAlgError:
            return
        chain.proposal_cov = self.scale * cov
