"""Tests for variate shapes."""

import numpy as np
import pytest

from pyposterior.exceptions import InputError
from pyposterior.utils.shapes import ArrayShape, NamedShape, check_variate


@pytest.fixture
def named_shape() -> NamedShape:
    """A named shape with a scalar and a vector field."""
    return NamedShape.from_sizes({"a": 0, "b": 2})


class TestArrayShape:
    """Tests for flat array shapes."""

    def test_is_valid(self):
        shape = ArrayShape(3)
        assert shape.is_valid(np.zeros(3))
        assert not shape.is_valid(np.zeros(2))
        assert not shape.is_valid(np.zeros((3, 1)))
        assert not shape.is_valid({"a": 1.0})

    def test_negative_ndof(self):
        with pytest.raises(InputError, match="ndof must be a non-negative integer"):
            ArrayShape(-1)

    def test_flatten_unflatten(self):
        shape = ArrayShape(2)
        np.testing.assert_array_equal(shape.flatten([1, 2]), np.array([1.0, 2.0]))
        np.testing.assert_array_equal(shape.unflatten(np.array([[1.0, 2.0]])), np.array([1.0, 2.0]))


class TestNamedShape:
    """Tests for named shapes."""

    def test_ndof(self, named_shape: NamedShape):
        assert named_shape.ndof == 3
        assert named_shape.names == ["a", "b"]

    def test_flatten(self, named_shape: NamedShape):
        flat = named_shape.flatten({"a": 1.0, "b": np.array([2.0, 3.0])})
        np.testing.assert_array_equal(flat, np.array([1.0, 2.0, 3.0]))

    def test_unflatten(self, named_shape: NamedShape):
        v = named_shape.unflatten(np.array([1.0, 2.0, 3.0]))
        assert set(v) == {"a", "b"}
        assert v["a"] == 1.0
        np.testing.assert_array_equal(v["b"], np.array([2.0, 3.0]))

    def test_unflatten_wrong_length(self, named_shape: NamedShape):
        with pytest.raises(InputError, match="does not match shape"):
            named_shape.unflatten(np.zeros(4))

    def test_is_valid(self, named_shape: NamedShape):
        assert named_shape.is_valid({"a": 1.0, "b": np.zeros(2)})
        assert not named_shape.is_valid({"a": 1.0})
        assert not named_shape.is_valid({"a": np.zeros(1), "b": np.zeros(2)})
        assert not named_shape.is_valid({"a": 1.0, "b": np.zeros(3)})
        assert not named_shape.is_valid(np.zeros(3))

    def test_flatten_invalid(self, named_shape: NamedShape):
        with pytest.raises(InputError):
            named_shape.flatten({"a": 1.0, "c": np.zeros(2)})

    def test_duplicate_names(self):
        with pytest.raises(InputError, match="must be unique"):
            NamedShape((("a", 0), ("a", 2)))


def test_check_variate_unknown_shape():
    """Unknown shapes accept any variate."""
    check_variate(None, np.zeros(5))
    check_variate(None, {"x": 1.0})


def test_check_variate_mismatch():
    """Mismatching variates raise an InputError."""
    with pytest.raises(InputError, match="does not match shape"):
        check_variate(ArrayShape(2), np.zeros(3))
