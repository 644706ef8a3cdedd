"""Density transformations for pyposterior.

- Transform targets (no transform, prior to uniform, prior to Gaussian)
- Transform algorithms (identity, whole-density with volume correction,
  prior substitution)
- Bijective variate transforms and their composition
"""

from .transform_algorithm import (
    TransformAlgorithm,
    TransformResult,
    TransformTarget,
    default_transform_algorithm,
    get_deep_prior,
    transform,
    transform_and_unshape,
)
from .variate_transforms import (
    ComposedTransform,
    DistributionTransform,
    IdentityTransform,
    TargetFamily,
    UnshapeTransform,
    VariateTransform,
    compose,
)

__all__ = [
    "transform",
    "transform_and_unshape",
    "default_transform_algorithm",
    "get_deep_prior",
    "TransformAlgorithm",
    "TransformResult",
    "TransformTarget",
    "VariateTransform",
    "IdentityTransform",
    "DistributionTransform",
    "UnshapeTransform",
    "ComposedTransform",
    "TargetFamily",
    "compose",
]
