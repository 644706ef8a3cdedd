"""Tests for MCMC chain pool initialization."""

from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace

import numpy as np
import pytest
from scipy import stats

from pyposterior.densities import PosteriorDensity
from pyposterior.exceptions import InputError, InsufficientViableChainsError
from pyposterior.samplers.chain_pool import (
    ChainPoolInit,
    bootstrap_chains,
    select_diverse_chains,
    select_good_chains,
)
from pyposterior.samplers.metropolis import MetropolisHastings
from pyposterior.samplers.tuning import ProposalCovTuner


def log_likelihood(v):
    return -0.5 * np.sum((np.asarray(v) - 1.0) ** 2)


def positive_log_likelihood(v):
    """Zero density for negative first components."""
    if v[0] < 0:
        return -np.inf
    return log_likelihood(v)


def bimodal_log_likelihood(v):
    """Equal-weight mixture of two unit Gaussians at (-3, -3) and (3, 3)."""
    modes = np.array([[-3.0, -3.0], [3.0, 3.0]])
    log_terms = -0.5 * np.sum((np.asarray(v) - modes) ** 2, axis=1)
    return np.logaddexp(log_terms[0], log_terms[1])


@pytest.fixture
def posterior() -> PosteriorDensity:
    return PosteriorDensity(log_likelihood, [stats.norm(0, 1.5), stats.norm(0, 1.5)])


@pytest.fixture
def init_alg() -> ChainPoolInit:
    return ChainPoolInit(init_tries_per_chain=(2, 16), nsteps_init=100)


def run_bootstrap(posterior, init_alg, nchains=2, seed=42, **kwargs):
    return bootstrap_chains(
        np.random.default_rng(seed), MetropolisHastings(), posterior, nchains, init_alg=init_alg, **kwargs
    )


class TestChainPoolInit:
    """Tests for the chain pool settings."""

    def test_defaults(self):
        init_alg = ChainPoolInit()
        assert init_alg.init_tries_per_chain == (8, 128)
        assert init_alg.nsteps_init == 1000
        assert init_alg.nsteps_screening == 200

    def test_minimum_screening(self):
        assert ChainPoolInit(nsteps_init=100).nsteps_screening == 50

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"init_tries_per_chain": (0, 5)},
            {"init_tries_per_chain": (5, 2)},
            {"nsteps_init": -1},
            {"good_chain_fraction": 0.0},
            {"good_chain_fraction": 1.5},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(InputError):
            ChainPoolInit(**kwargs)


class TestSelectGoodChains:
    """Tests for the median-based chain rating threshold."""

    def test_outlier_dropped(self):
        idxs, threshold = select_good_chains([10, 10, 10, 1])
        assert threshold == 8
        assert idxs == [0, 1, 2]

    def test_threshold_inclusive(self):
        idxs, threshold = select_good_chains([5, 4, 5])
        assert threshold == 4
        assert idxs == [0, 1, 2]

    def test_fraction(self):
        idxs, threshold = select_good_chains([10, 6, 10], fraction=0.5)
        assert threshold == 5
        assert idxs == [0, 1, 2]


def fake_chain(position, n_samples):
    return SimpleNamespace(current_v=np.asarray(position, dtype=float), n_samples=n_samples)


class TestSelectDiverseChains:
    """Tests for the final, clustering-based chain selection."""

    def test_best_per_cluster(self):
        chains = [
            fake_chain([0.0, 0.0], 3),
            fake_chain([0.1, 0.0], 5),
            fake_chain([10.0, 10.0], 5),
            fake_chain([10.1, 10.0], 2),
        ]
        assert select_diverse_chains(chains, 2) == [1, 2]

    def test_ties_go_to_first(self):
        chains = [
            fake_chain([0.0, 0.0], 4),
            fake_chain([0.1, 0.0], 4),
            fake_chain([10.0, 10.0], 1),
        ]
        assert select_diverse_chains(chains, 2) == [0, 2]

    def test_single_chain(self):
        chains = [fake_chain([0.0], 3), fake_chain([1.0], 7), fake_chain([2.0], 7)]
        assert select_diverse_chains(chains, 1) == [1]

    def test_exact_pool(self):
        chains = [fake_chain([0.0], 3), fake_chain([1.0], 7)]
        assert select_diverse_chains(chains, 2) == [0, 1]

    def test_pool_too_small(self):
        with pytest.raises(AssertionError):
            select_diverse_chains([fake_chain([0.0], 3)], 2)


class TestBootstrapChains:
    """Tests for the chain pool initialization loop."""

    @pytest.mark.parametrize("nchains", [1, 2, 3])
    def test_number_of_chains(self, posterior, init_alg, nchains):
        result = run_bootstrap(posterior, init_alg, nchains=nchains)
        assert result.n_chains == nchains
        assert len(result.tuners) == nchains
        assert len(result.outputs) == nchains

    def test_result(self, posterior, init_alg):
        chains, tuners, outputs = run_bootstrap(posterior, init_alg)

        ids = [chain.id for chain in chains]
        assert ids == sorted(set(ids))
        for chain, tuner, output in zip(chains, tuners, outputs):
            assert chain.n_steps == init_alg.nsteps_init
            assert chain.is_valid()
            assert isinstance(tuner, ProposalCovTuner)
            assert len(output) > 0
            assert set(output.chain_id) == {chain.id}

    def test_deterministic(self, posterior, init_alg):
        a = run_bootstrap(posterior, init_alg, seed=7)
        b = run_bootstrap(posterior, init_alg, seed=7)
        assert [c.id for c in a.chains] == [c.id for c in b.chains]
        for chain_a, chain_b in zip(a.chains, b.chains):
            np.testing.assert_array_equal(chain_a.current_v, chain_b.current_v)
        for out_a, out_b in zip(a.outputs, b.outputs):
            np.testing.assert_array_equal(out_a.v_array(), out_b.v_array())
            assert out_a.weight == out_b.weight

    def test_seed_matters(self, posterior, init_alg):
        a = run_bootstrap(posterior, init_alg, seed=1)
        b = run_bootstrap(posterior, init_alg, seed=2)
        assert not np.array_equal(a.chains[0].current_v, b.chains[0].current_v)

    def test_pool_gives_same_result(self, posterior, init_alg):
        sequential = run_bootstrap(posterior, init_alg, seed=3)
        with ThreadPoolExecutor(max_workers=2) as pool:
            pooled = run_bootstrap(posterior, init_alg, seed=3, pool=pool)

        assert [c.id for c in sequential.chains] == [c.id for c in pooled.chains]
        for chain_a, chain_b in zip(sequential.chains, pooled.chains):
            np.testing.assert_array_equal(chain_a.current_v, chain_b.current_v)

    def test_no_viable_chains(self, posterior):
        calls = []

        def never_viable(chain):
            calls.append(chain.id)
            return False

        init_alg = ChainPoolInit(init_tries_per_chain=(2, 4), nsteps_init=60, is_viable=never_viable)
        with pytest.raises(
            InsufficientViableChainsError,
            match="Failed to generate 4 viable MCMC chains after trying 8 candidates",
        ):
            run_bootstrap(posterior, init_alg, nchains=2)

        assert len(calls) == 8
        assert sorted(calls) == list(range(1, 9))

    def test_invalid_initial_values_discarded(self):
        posterior = PosteriorDensity(positive_log_likelihood, [stats.norm(0, 3), stats.norm(0, 3)])
        init_alg = ChainPoolInit(init_tries_per_chain=(2, 32), nsteps_init=100)
        chains, _, outputs = run_bootstrap(posterior, init_alg, nchains=2)
        for chain, output in zip(chains, outputs):
            assert chain.current_v[0] >= 0
            assert all(v[0] >= 0 for v in output.v)

    def test_callback(self, posterior, init_alg):
        steps = []
        run_bootstrap(posterior, init_alg, nchains=1, callback=lambda chain: steps.append(chain.id))
        assert len(steps) >= 2 * init_alg.nsteps_init

    def test_invalid_nchains(self, posterior, init_alg):
        with pytest.raises(InputError, match="nchains"):
            run_bootstrap(posterior, init_alg, nchains=0)

    def test_chains_in_distinct_modes(self):
        posterior = PosteriorDensity(bimodal_log_likelihood, [stats.uniform(-6, 12), stats.uniform(-6, 12)])
        init_alg = ChainPoolInit(init_tries_per_chain=(8, 64), nsteps_init=500)
        chains, _, _ = bootstrap_chains(
            np.random.default_rng(42), MetropolisHastings(proposal_scale=0.5), posterior, 2, init_alg=init_alg
        )
        positions = np.array([chain.current_v for chain in chains])
        # nearest mode of each chain, by the side of the x + y = 0 diagonal
        assert sorted(np.sign(positions.sum(axis=1))) == [-1.0, 1.0]
