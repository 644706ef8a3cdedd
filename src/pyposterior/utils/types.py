"""Custom types for pyposterior."""

from typing import Annotated, Any, Protocol, TypeAlias

import numpy as np
import numpy.typing as npt

# These types are not actually supported by type checkers, so this is more for documentation purposes.
# Current numpy type annotations only specify the dtype, not the shape.
IntArray: TypeAlias = npt.NDArray[np.integer]
FloatArray: TypeAlias = npt.NDArray[np.floating]
ChainPositions: TypeAlias = Annotated[FloatArray, "(n_chains, n_dims)"]
NamedVariate: TypeAlias = dict[str, float | FloatArray]
Variate: TypeAlias = FloatArray | NamedVariate


class LogDensityFunction(Protocol):
    """Protocol for plain log-density functions.

    Any callable with this signature can be used wherever a density is
    expected, it is wrapped in a ``LogFuncDensity``. The function is not
    necessarily normalized.
    """

    def __call__(self, v: Variate) -> float:
        """Evaluate the log-density at variate v.

        Parameters
        ----------
        v : Variate
            Point where the density is evaluated.

        Returns
        -------
        float
            Log-density value at v.
        """
        ...


class PoolLike(Protocol):
    """Protocol for user-provided pools.

    Any object with a ``map`` method compatible with the standard library's
    ``map()`` function, e.g. ``ProcessPoolExecutor``, ``ThreadPoolExecutor``
    or schwimmbad pools.
    """

    def map(self, fn: Any, *iterables: Any) -> Any:
        """Apply fn to every item of the iterables."""
        ...


class StepCallback(Protocol):
    """Observer invoked by the stepping loop after every MCMC step."""

    def __call__(self, chain: Any) -> None:
        """Receive the chain that has just been advanced by one step."""
        ...
