"""Custom exceptions for pyposterior.

This module defines the exception hierarchy for the pyposterior package,
providing specific error types for different failure modes.
"""

import numpy as np


class PyPosteriorError(Exception):
    """Base exception class for all pyposterior-specific errors.

    This is the root exception class from which all other pyposterior
    exceptions inherit. It can be used to catch any pyposterior-related
    error in a general exception handler.
    """

    pass


class InputError(PyPosteriorError, ValueError):
    """Raised when required inputs are missing or invalid.

    This exception is raised when:
    - Required function arguments are not provided
    - Variates have a shape incompatible with the density
    - Parameter values are outside acceptable ranges

    Parameters
    ----------
    msg : str, optional
        Human-readable error message describing the input problem.
    """

    def __init__(self, msg="Invalid or missing input parameters"):
        super().__init__(msg)


class DensityEvalError(PyPosteriorError):
    """Raised when a log-density evaluation fails.

    The evaluation fails if the log-density is NaN or positive infinity, or
    if the evaluation itself raised. In the latter case the original
    exception is available both as ``ret`` and as ``__cause__``.

    Parameters
    ----------
    density : Density
        Density being evaluated.
    v : Any
        Variate at which the evaluation failed.
    ret : float or Exception
        The invalid return value, or the exception raised by the evaluation.
    """

    def __init__(self, density, v, ret):
        self.density = density
        self.v = v
        self.ret = ret
        if isinstance(ret, Exception):
            reason = f"due to exception {type(ret).__name__}: {ret}"
        else:
            reason = f"must not evaluate to {ret}"
        super().__init__(
            f"Density evaluation failed at {_value_for_msg(v)}, {reason}, "
            f"density is {density!r}"
        )


class TransformPreconditionError(PyPosteriorError):
    """Raised when a density transform cannot be applied.

    Either the transform algorithm is incompatible with the transform target,
    or the algorithm requires a prior that cannot be located in the density.
    """

    pass


class InsufficientViableChainsError(PyPosteriorError):
    """Raised when the chain pool cannot produce enough viable MCMC chains."""

    pass


class ClusteringConvergenceError(PyPosteriorError):
    """Raised when k-means clustering of chain positions does not converge."""

    pass


def _value_for_msg(v):
    if isinstance(v, dict):
        return {k: _value_for_msg(x) for k, x in v.items()}
    if isinstance(v, np.ndarray):
        return v.tolist()
    return v
