"""Variate shapes.

A variate shape describes the structure of valid variates of a density.
Two shapes are supported:

- ``ArrayShape``: a flat vector of ``ndof`` reals.
- ``NamedShape``: a mapping of names to scalars or fixed-length vectors,
  flattened in insertion order.
"""

from dataclasses import dataclass

import numpy as np

from ..exceptions import InputError
from .types import FloatArray, NamedVariate


@dataclass(frozen=True)
class ArrayShape:
    """Shape of flat real vectors."""

    ndof: int

    def __post_init__(self):
        """Post-initialization checks."""
        if not isinstance(self.ndof, int | np.integer) or self.ndof < 0:
            raise InputError("ndof must be a non-negative integer.")

    def flatten(self, v) -> FloatArray:
        """Return v as a flat float array."""
        return np.asarray(v, dtype=float).reshape(-1)

    def unflatten(self, x: FloatArray) -> FloatArray:
        """Return x as a flat float array."""
        return np.asarray(x, dtype=float).reshape(-1)

    def is_valid(self, v) -> bool:
        """Whether v is a variate of this shape."""
        if isinstance(v, dict):
            return False
        arr = np.asarray(v)
        return arr.ndim == 1 and arr.shape[0] == self.ndof


@dataclass(frozen=True)
class NamedShape:
    """Shape of named variates.

    ``fields`` maps each name to its length, with ``0`` marking a scalar.
    """

    fields: tuple[tuple[str, int], ...]

    def __post_init__(self):
        """Post-initialization checks."""
        names = [name for name, _ in self.fields]
        if len(set(names)) != len(names):
            raise InputError("Field names of a NamedShape must be unique.")
        if any(size < 0 for _, size in self.fields):
            raise InputError("Field sizes of a NamedShape must be non-negative.")

    @classmethod
    def from_sizes(cls, sizes: dict[str, int]) -> "NamedShape":
        """Build a NamedShape from a name -> size mapping."""
        return cls(tuple(sizes.items()))

    @property
    def names(self) -> list[str]:
        """Field names in flattening order."""
        return [name for name, _ in self.fields]

    @property
    def ndof(self) -> int:
        """Total number of degrees of freedom."""
        return sum(max(size, 1) for _, size in self.fields)

    def flatten(self, v: NamedVariate) -> FloatArray:
        """Concatenate the fields of v into a flat float array."""
        if not self.is_valid(v):
            raise InputError(f"Variate {v} does not match shape {self}.")
        return np.concatenate(
            [np.atleast_1d(np.asarray(v[name], dtype=float)) for name in self.names]
        ) if self.fields else np.empty(0)

    def unflatten(self, x: FloatArray) -> NamedVariate:
        """Split a flat array into the named fields of this shape."""
        x = np.asarray(x, dtype=float).reshape(-1)
        if x.shape[0] != self.ndof:
            raise InputError(
                f"Flat variate of length {x.shape[0]} does not match shape with {self.ndof} degrees of freedom."
            )
        v = {}
        offset = 0
        for name, size in self.fields:
            if size == 0:
                v[name] = float(x[offset])
                offset += 1
            else:
                v[name] = x[offset : offset + size].copy()
                offset += size
        return v

    def is_valid(self, v) -> bool:
        """Whether v is a variate of this shape."""
        if not isinstance(v, dict) or set(v.keys()) != set(self.names):
            return False
        for name, size in self.fields:
            arr = np.asarray(v[name])
            if size == 0 and arr.ndim != 0:
                return False
            if size > 0 and arr.shape != (size,):
                return False
        return True


ValueShape = ArrayShape | NamedShape


def check_variate(shape: ValueShape | None, v) -> None:
    """Raise an InputError if v does not match shape.

    Unknown shapes (``None``) accept any variate.
    """
    if shape is not None and not shape.is_valid(v):
        raise InputError(f"Variate {v} does not match shape {shape}.")
