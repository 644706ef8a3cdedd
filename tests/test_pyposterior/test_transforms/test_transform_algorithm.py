"""Tests for density transformation targets and algorithms."""

import logging

import numpy as np
import pytest
from scipy import stats

from pyposterior.densities import (
    DistributionDensity,
    LogFuncDensity,
    MvDistributionDensity,
    PosteriorDensity,
    RenormalizedDensity,
    TransformedDensity,
    VolumeCorrection,
)
from pyposterior.exceptions import TransformPreconditionError
from pyposterior.transforms import (
    DistributionTransform,
    IdentityTransform,
    TransformAlgorithm,
    TransformTarget,
    UnshapeTransform,
    default_transform_algorithm,
    get_deep_prior,
    transform,
    transform_and_unshape,
)
from pyposterior.utils.shapes import ArrayShape


def log_likelihood(v):
    v = np.asarray(v)
    return -0.5 * np.sum((v - 1.0) ** 2)


def named_log_likelihood(v):
    return -0.5 * (v["a"] - 1.0) ** 2 - 0.5 * np.sum(v["b"] ** 2)


@pytest.fixture
def posterior() -> PosteriorDensity:
    return PosteriorDensity(log_likelihood, [stats.norm(1, 2), stats.uniform(-1, 3)])


@pytest.fixture
def named_posterior() -> PosteriorDensity:
    return PosteriorDensity(
        named_log_likelihood, {"a": stats.norm(0, 2), "b": [stats.uniform(-1, 2)] * 2}
    )


class TestIdentity:
    """Tests for the identity algorithm."""

    def test_no_transform(self, posterior: PosteriorDensity):
        result = transform(TransformTarget.NO_TRANSFORM, posterior)
        assert result.result is posterior
        assert isinstance(result.trafo, IdentityTransform)
        assert result.algorithm == TransformAlgorithm.IDENTITY

    @pytest.mark.parametrize(
        "target, prior",
        [
            (TransformTarget.PRIOR_TO_UNIFORM, DistributionDensity.standard_uniform(3)),
            (TransformTarget.PRIOR_TO_GAUSSIAN, DistributionDensity.standard_normal(3)),
        ],
    )
    def test_matching_prior(self, target, prior):
        density, trafo = transform(target, prior)
        assert density is prior
        assert isinstance(trafo, IdentityTransform)

    def test_explicit_identity_with_non_matching_prior(self, posterior: PosteriorDensity):
        with pytest.raises(TransformPreconditionError, match="Identity transform requires"):
            transform(TransformTarget.PRIOR_TO_UNIFORM, posterior, TransformAlgorithm.IDENTITY)


@pytest.mark.parametrize(
    "algorithm", [TransformAlgorithm.FULL_DENSITY, TransformAlgorithm.PRIOR_SUBSTITUTION]
)
def test_no_transform_requires_identity(posterior: PosteriorDensity, algorithm):
    with pytest.raises(TransformPreconditionError, match="not compatible"):
        transform(TransformTarget.NO_TRANSFORM, posterior, algorithm)


class TestFullDensity:
    """Tests for the whole-density algorithm."""

    def test_structure(self, posterior: PosteriorDensity):
        result = transform(
            TransformTarget.PRIOR_TO_GAUSSIAN, posterior, TransformAlgorithm.FULL_DENSITY
        )
        assert result.algorithm == TransformAlgorithm.FULL_DENSITY
        assert isinstance(result.result, TransformedDensity)
        assert result.result.orig is posterior
        assert result.result.volcorr == VolumeCorrection.LADJ
        assert result.result.trafo is result.trafo
        assert result.trafo.source is posterior.prior

    def test_finds_deep_prior(self, posterior: PosteriorDensity):
        density = RenormalizedDensity(posterior, 1.0)
        _, trafo = transform(TransformTarget.PRIOR_TO_UNIFORM, density, TransformAlgorithm.FULL_DENSITY)
        assert trafo.source is posterior.prior

    def test_no_prior(self):
        with pytest.raises(TransformPreconditionError, match="Cannot locate a prior"):
            transform(
                TransformTarget.PRIOR_TO_UNIFORM,
                LogFuncDensity(log_likelihood),
                TransformAlgorithm.FULL_DENSITY,
            )


class TestPriorSubstitution:
    """Tests for the prior substitution algorithm."""

    def test_distribution(self):
        prior = DistributionDensity([stats.norm(1, 2), stats.expon()])
        density, trafo = transform(TransformTarget.PRIOR_TO_UNIFORM, prior)
        assert isinstance(density, DistributionDensity)
        assert density.is_standard_uniform()
        assert density.ndof == 2
        assert isinstance(trafo, DistributionTransform)
        assert trafo.source is prior

    def test_posterior_structure(self, posterior: PosteriorDensity):
        result = transform(TransformTarget.PRIOR_TO_GAUSSIAN, posterior)
        assert result.algorithm == TransformAlgorithm.PRIOR_SUBSTITUTION

        density = result.result
        assert isinstance(density, PosteriorDensity)
        assert density.prior.is_standard_normal()
        assert isinstance(density.likelihood, TransformedDensity)
        assert density.likelihood.volcorr == VolumeCorrection.NONE
        assert density.likelihood.orig is posterior.likelihood
        assert density.likelihood.trafo is result.trafo

    def test_renormalized_structure(self, posterior: PosteriorDensity):
        density, _ = transform(TransformTarget.PRIOR_TO_GAUSSIAN, RenormalizedDensity(posterior, 2.5))
        assert isinstance(density, RenormalizedDensity)
        assert density.log_renorm_f == 2.5
        assert isinstance(density.parent, PosteriorDensity)

    def test_unsupported_density(self):
        with pytest.raises(TransformPreconditionError, match="not supported"):
            transform(TransformTarget.PRIOR_TO_GAUSSIAN, LogFuncDensity(log_likelihood))

    @pytest.mark.parametrize("target", [TransformTarget.PRIOR_TO_UNIFORM, TransformTarget.PRIOR_TO_GAUSSIAN])
    @pytest.mark.parametrize("y", [[0.2, 0.7], [0.5, 0.5], [0.9, 0.1]])
    def test_agrees_with_full_density(self, posterior: PosteriorDensity, target, y):
        """Both algorithms give the same density in the new space."""
        if target == TransformTarget.PRIOR_TO_GAUSSIAN:
            y = stats.norm.ppf(y)
        y = np.asarray(y, dtype=float)
        substituted, _ = transform(target, posterior, TransformAlgorithm.PRIOR_SUBSTITUTION)
        full, _ = transform(target, posterior, TransformAlgorithm.FULL_DENSITY)
        assert substituted.log_density(y) == pytest.approx(full.log_density(y))


    def test_likelihood_shape_mismatch(self):
        likelihood = LogFuncDensity(log_likelihood, ArrayShape(3))
        posterior = PosteriorDensity(likelihood, [stats.norm(0, 1), stats.norm(0, 1)])
        with pytest.raises(TransformPreconditionError, match="does not match prior variate shape"):
            transform(TransformTarget.PRIOR_TO_UNIFORM, posterior)


def test_custom_policy(posterior: PosteriorDensity):
    def policy(target, density):
        return TransformAlgorithm.FULL_DENSITY

    result = transform(TransformTarget.PRIOR_TO_UNIFORM, posterior, policy=policy)
    assert result.algorithm == TransformAlgorithm.FULL_DENSITY


def test_algorithm_choice_is_logged(posterior: PosteriorDensity, caplog):
    with caplog.at_level(logging.INFO, logger="pyposterior.transforms.transform_algorithm"):
        transform(TransformTarget.PRIOR_TO_GAUSSIAN, posterior)
    assert "Using transform algorithm prior_substitution" in caplog.text


def test_default_policy_table(posterior: PosteriorDensity):
    assert (
        default_transform_algorithm(TransformTarget.NO_TRANSFORM, posterior)
        == TransformAlgorithm.IDENTITY
    )
    assert (
        default_transform_algorithm(TransformTarget.PRIOR_TO_GAUSSIAN, DistributionDensity.standard_normal(2))
        == TransformAlgorithm.IDENTITY
    )
    assert (
        default_transform_algorithm(TransformTarget.PRIOR_TO_GAUSSIAN, DistributionDensity.standard_uniform(2))
        == TransformAlgorithm.PRIOR_SUBSTITUTION
    )
    assert (
        default_transform_algorithm(TransformTarget.PRIOR_TO_UNIFORM, posterior)
        == TransformAlgorithm.PRIOR_SUBSTITUTION
    )


def test_target_properties():
    assert TransformTarget.PRIOR_TO_UNIFORM.is_unit_space
    assert not TransformTarget.PRIOR_TO_UNIFORM.is_infinite_space
    assert TransformTarget.PRIOR_TO_GAUSSIAN.is_infinite_space
    assert not TransformTarget.NO_TRANSFORM.is_unit_space


def test_get_deep_prior(posterior: PosteriorDensity):
    assert get_deep_prior(RenormalizedDensity(posterior, 0.0)) is posterior.prior
    with pytest.raises(TransformPreconditionError):
        get_deep_prior(LogFuncDensity(log_likelihood))


class TestTransformAndUnshape:
    """Tests for transformation followed by flattening."""

    def test_named_without_transform(self, named_posterior: PosteriorDensity):
        density, trafo = transform_and_unshape(TransformTarget.NO_TRANSFORM, named_posterior)
        assert isinstance(density, TransformedDensity)
        assert density.volcorr == VolumeCorrection.NONE
        assert density.var_shape == ArrayShape(3)
        assert isinstance(trafo, UnshapeTransform)

        v = {"a": 0.5, "b": np.array([0.1, -0.2])}
        assert density.log_density(trafo(v)) == pytest.approx(named_posterior.log_density(v))

    def test_named_with_transform(self, named_posterior: PosteriorDensity):
        density, trafo = transform_and_unshape(TransformTarget.PRIOR_TO_GAUSSIAN, named_posterior)
        assert density.var_shape == ArrayShape(3)
        assert isinstance(trafo, DistributionTransform)
        v = trafo.inverse(np.zeros(3))
        assert set(v) == {"a", "b"}

    def test_array_unchanged(self, posterior: PosteriorDensity):
        density, trafo = transform_and_unshape(TransformTarget.NO_TRANSFORM, posterior)
        assert density is posterior
        assert isinstance(trafo, IdentityTransform)


class TestMultivariateDistributions:
    """Correlated multivariate distributions can be used as likelihoods but not as priors."""

    @pytest.fixture
    def mv_dist(self):
        return stats.multivariate_normal([-0.3, 0.3], [[1.0, 1.5], [1.5, 4.0]])

    def test_as_likelihood(self, mv_dist):
        posterior = PosteriorDensity(mv_dist, [stats.uniform(-5, 10), stats.uniform(-8, 16)])
        density, trafo = transform(TransformTarget.PRIOR_TO_GAUSSIAN, posterior)
        v = np.array([0.2, 0.4])
        y = trafo(v)
        # the substituted prior is standard normal
        expected = mv_dist.logpdf(v) + np.sum(stats.norm.logpdf(y))
        assert density.log_density(y) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "algorithm", [None, TransformAlgorithm.PRIOR_SUBSTITUTION, TransformAlgorithm.FULL_DENSITY]
    )
    @pytest.mark.parametrize("target", [TransformTarget.PRIOR_TO_UNIFORM, TransformTarget.PRIOR_TO_GAUSSIAN])
    def test_not_transformable_as_prior(self, mv_dist, target, algorithm):
        with pytest.raises(TransformPreconditionError, match="independent univariate"):
            transform(target, mv_dist, algorithm)
        with pytest.raises(TransformPreconditionError, match="independent univariate"):
            transform(target, PosteriorDensity(log_likelihood, mv_dist), algorithm)

    def test_no_transform(self, mv_dist):
        density, trafo = transform(TransformTarget.NO_TRANSFORM, mv_dist)
        assert isinstance(density, MvDistributionDensity)
        assert isinstance(trafo, IdentityTransform)

    def test_deep_prior(self, mv_dist):
        posterior = PosteriorDensity(log_likelihood, mv_dist)
        assert get_deep_prior(RenormalizedDensity(posterior, 1.0)) is posterior.prior
