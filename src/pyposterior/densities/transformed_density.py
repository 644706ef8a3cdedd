"""Transformed densities with volume correction."""

from enum import StrEnum, auto

import numpy as np

from ..utils.shapes import ValueShape
from ..utils.types import FloatArray, Variate
from .abstract_density import Density, checked_log_density, log_zero_density, to_density

# Large negative but finite log-density, still representable in float32.
NEAR_NEG_INF = -1e38


class VolumeCorrection(StrEnum):
    """Volume correction policy of a transformed density."""

    NONE = auto()  # measure preserving, or corrected elsewhere
    LADJ = auto()  # add the log-abs-det-Jacobian of the inverse transform


def combine_log_density_with_ladj(logd_orig: float, ladj: float) -> float:
    """Combine an original log-density value with the ladj of the inverse transform.

    - Zero density wins against infinite volume: ``(-inf, +inf)`` gives ``-inf``.
    - A finite log-density with ``ladj == -inf`` gives ``NEAR_NEG_INF``
      instead of ``-inf``, which gradient-based consumers cannot handle.
    - Otherwise the sum.
    """
    with np.errstate(invalid="ignore"):
        logd_result = logd_orig + ladj

    if np.isnan(logd_result) and logd_orig == -np.inf and ladj == np.inf:
        return -np.inf
    elif np.isfinite(logd_orig) and ladj == -np.inf:
        return NEAR_NEG_INF
    else:
        return float(logd_result)


class TransformedDensity(Density):
    """Density expressed in the target space of a variate transform.

    The variate shape is derived once, on construction, by applying the
    transform to the shape of the original density.

    Parameters
    ----------
    orig : density-like
        Original density.
    trafo : VariateTransform
        Forward transform from the variate space of orig to the new space.
    volcorr : VolumeCorrection
        Volume correction policy.
    """

    def __init__(self, orig, trafo, volcorr: VolumeCorrection):
        self.orig = to_density(orig)
        self.trafo = trafo
        self.volcorr = VolumeCorrection(volcorr)
        self._var_shape = trafo.transform_shape(self.orig.var_shape)

    @property
    def parent(self) -> Density:
        """The original density."""
        return self.orig

    @property
    def var_shape(self) -> ValueShape | None:
        """Shape of the transformed variates."""
        return self._var_shape

    @property
    def var_bounds(self) -> tuple[FloatArray, FloatArray] | None:
        """Bounds of the target distribution of the transform, if it has one."""
        target_dist = getattr(self.trafo, "target_dist", None)
        return None if target_dist is None else target_dist.var_bounds

    def log_density(self, v: Variate) -> float:
        """Log-density at v, volume corrected according to the policy."""
        if self.volcorr == VolumeCorrection.NONE:
            return self.orig.log_density(self.trafo.inverse(v))
        v_orig, ladj = self.trafo.inverse_with_ladj(v)
        if _outside_target_support(v_orig, ladj):
            return log_zero_density()
        return combine_log_density_with_ladj(self.orig.log_density(v_orig), ladj)

    def _checked_eval(self, v: Variate) -> float:
        if self.volcorr == VolumeCorrection.NONE:
            return checked_log_density(self.orig, self.trafo.inverse(v))
        v_orig, ladj = self.trafo.inverse_with_ladj(v)
        if _outside_target_support(v_orig, ladj):
            return log_zero_density()
        return combine_log_density_with_ladj(checked_log_density(self.orig, v_orig), ladj)


def _outside_target_support(v_orig: Variate, ladj: float) -> bool:
    """Whether the inverse transform found no original variate.

    Inverse transforms map variates outside of the target support to NaN,
    with an ladj of -inf.
    """
    if ladj != -np.inf:
        return False
    values = v_orig.values() if isinstance(v_orig, dict) else [v_orig]
    return any(np.any(np.isnan(x)) for x in values)
