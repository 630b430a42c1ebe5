"""
Input validation utilities for bootstatespace.

These validators follow the "fail fast, fail loud" principle. They raise
immediately with clear error messages rather than silently correcting
or making assumptions about user intent.

Design principles:
    - No silent type coercion (except np.asarray on array-likes)
    - Clear, actionable error messages with actual values
    - Each function validates ONE thing
    - Parameter names included in all error messages
"""

import numbers

import numpy as np
from numpy.typing import ArrayLike, NDArray
from typing import Any

from bootstatespace.core.exceptions import ValidationError, DimensionError


def check_array(
    array: ArrayLike,
    name: str,
) -> NDArray[np.floating[Any]]:
    """
    Validate and convert input to a float64 numpy array.

    Rejects inputs that result in object dtype (mixed types) or a
    non-numeric dtype.

    Args:
        array: Input to validate
        name: Parameter name for error messages

    Returns:
        numpy.ndarray with float64 dtype (always a fresh copy)

    Raises:
        ValidationError: If input cannot be converted to numeric array
    """
    try:
        result = np.array(array)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"{name}: cannot convert to array: {e}") from e

    if result.dtype == object:
        raise ValidationError(
            f"{name}: converted to object dtype, indicating mixed types or non-numeric data"
        )

    if not (np.issubdtype(result.dtype, np.number) or result.dtype == np.bool_):
        raise ValidationError(
            f"{name}: non-numeric dtype {result.dtype}, expected numeric data"
        )

    return result.astype(np.float64)


def check_finite(array: NDArray[np.floating[Any]], name: str) -> None:
    """
    Verify array contains no NaN or Inf values.

    Raises:
        ValidationError: If array contains non-finite values
    """
    if not np.all(np.isfinite(array)):
        n_nan = int(np.sum(np.isnan(array)))
        n_inf = int(np.sum(np.isinf(array)))
        raise ValidationError(
            f"{name}: contains non-finite values ({n_nan} NaN, {n_inf} Inf)"
        )


def check_ndim(array: NDArray[np.floating[Any]], ndim: int, name: str) -> None:
    """
    Verify array has exactly the specified number of dimensions.

    Raises:
        DimensionError: If array has wrong number of dimensions
    """
    if array.ndim != ndim:
        raise DimensionError(
            f"{name}: expected {ndim}D array, got {array.ndim}D with shape {array.shape}"
        )


def check_1d(array: NDArray[np.floating[Any]], name: str) -> None:
    """Verify array is 1-dimensional."""
    check_ndim(array, 1, name)


def check_2d(array: NDArray[np.floating[Any]], name: str) -> None:
    """Verify array is 2-dimensional."""
    check_ndim(array, 2, name)


def check_square(array: NDArray[np.floating[Any]], size: int, name: str) -> None:
    """
    Verify array is a size x size matrix.

    Raises:
        DimensionError: If array is not 2D or not of the expected size
    """
    check_2d(array, name)
    if array.shape != (size, size):
        raise DimensionError(
            f"{name}: expected shape ({size}, {size}), got {array.shape}"
        )


def check_lower_triangular(array: NDArray[np.floating[Any]], name: str) -> None:
    """
    Verify a square matrix has no nonzero entries above the diagonal.

    Cholesky factors are passed as lower-triangular matrices; an upper
    entry usually means the user passed chol(X) instead of t(chol(X)).

    Raises:
        ValidationError: If any strictly-upper entry is nonzero
    """
    upper = np.triu(array, k=1)
    if np.any(upper != 0.0):
        rows, cols = np.nonzero(upper)
        raise ValidationError(
            f"{name}: must be lower-triangular, found nonzero entries at "
            f"{list(zip(rows.tolist(), cols.tolist()))}"
        )


def check_length(array: NDArray[np.floating[Any]], length: int, name: str) -> None:
    """
    Verify a 1D array has the expected length.

    Raises:
        DimensionError: If array is not 1D or has the wrong length
    """
    check_1d(array, name)
    if array.shape[0] != length:
        raise DimensionError(
            f"{name}: expected length {length}, got {array.shape[0]}"
        )


def check_positive_int(value: Any, name: str, minimum: int = 1) -> int:
    """
    Verify value is an integer >= minimum.

    Accepts Python and numpy integers, and floats with integral value
    (10 as well as 10.0). Booleans are rejected.

    Returns:
        The value as a Python int

    Raises:
        ValidationError: If value is not integral or is below minimum
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValidationError(
            f"{name}: expected an integer, got {type(value).__name__}"
        )
    if not isinstance(value, numbers.Integral) and (
        not np.isfinite(value) or int(value) != value
    ):
        raise ValidationError(f"{name}: expected an integer, got {value!r}")
    value = int(value)
    if value < minimum:
        raise ValidationError(f"{name}: must be >= {minimum}, got {value}")
    return value


def check_probability(value: Any, name: str) -> float:
    """
    Verify value lies strictly inside (0, 1).

    Returns:
        The value as a Python float

    Raises:
        ValidationError: If value is outside (0, 1)
    """
    try:
        value = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name}: expected a number, got {value!r}") from e
    if not 0.0 < value < 1.0:
        raise ValidationError(f"{name}: must be in (0, 1), got {value}")
    return value
