"""
Dense linear algebra for the allocation engine.

This module provides the Vector and Matrix containers used by every optimizer,
together with the Cholesky engine (factorization, triangular solves and
inversion of symmetric positive-definite matrices). Storage is numpy float64,
row-major; shapes are fixed at construction and only change through an
explicit ``resize``.
"""

import numbers
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from constants import EPSILON


class DimensionMismatchError(ValueError):
    """Raised when operand shapes disagree."""
    pass


class NonSquareMatrixError(ValueError):
    """Raised when an operation requires a square matrix."""
    pass


class NotPositiveDefiniteError(ArithmeticError):
    """Raised when a Cholesky factorization meets a non-positive pivot."""
    pass


class SingularMatrixError(ArithmeticError):
    """Raised when a triangular solve meets a (near) zero diagonal element."""
    pass


def _is_scalar(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


class Vector:
    """Fixed-size vector of floats.

    Examples:
        >>> Vector([1.0, 2.0, 3.0]).dot(Vector([4.0, 5.0, 6.0]))
        32.0
        >>> Vector(3)          # zero-filled
        >>> Vector(3, 0.25)    # value-filled
    """

    # Let Vector.__rmul__ win over numpy scalar broadcasting
    __array_ufunc__ = None

    def __init__(self, data: Union[int, Sequence[float], np.ndarray, "Vector", None] = None,
                 value: float = 0.0):
        """Create a vector.

        Args:
            data: Size (zero- or value-filled), a sequence of numbers, or another Vector
            value: Fill value when ``data`` is a size
        """
        if data is None:
            self._data = np.zeros(0)
        elif isinstance(data, (int, np.integer)) and not isinstance(data, bool):
            if data < 0:
                raise ValueError(f"Vector size must be non-negative, got {data}")
            self._data = np.full(int(data), float(value))
        elif isinstance(data, Vector):
            self._data = data._data.copy()
        else:
            array = np.array(data, dtype=float)
            if array.ndim != 1:
                raise DimensionMismatchError(
                    f"Vector data must be one-dimensional, got shape {array.shape}"
                )
            self._data = array

    @classmethod
    def _wrap(cls, array: np.ndarray) -> "Vector":
        vector = cls.__new__(cls)
        vector._data = array
        return vector

    @property
    def size(self) -> int:
        return int(self._data.shape[0])

    @property
    def empty(self) -> bool:
        return self.size == 0

    def __len__(self) -> int:
        return self.size

    def __iter__(self):
        return (float(x) for x in self._data)

    def resize(self, size: int, value: float = 0.0) -> None:
        """Resize in place, keeping the leading elements and padding with ``value``."""
        if size < 0:
            raise ValueError(f"Vector size must be non-negative, got {size}")
        resized = np.full(size, float(value))
        keep = min(size, self.size)
        resized[:keep] = self._data[:keep]
        self._data = resized

    def __getitem__(self, index: int) -> float:
        assert 0 <= index < self.size, "Vector index out of bounds"
        return float(self._data[index])

    def __setitem__(self, index: int, value: float) -> None:
        assert 0 <= index < self.size, "Vector index out of bounds"
        self._data[index] = value

    def at(self, index: int) -> float:
        """Bounds-checked element access.

        Raises:
            IndexError: If ``index`` is outside ``[0, size)``
        """
        if not 0 <= index < self.size:
            raise IndexError(f"Vector index {index} out of range for size {self.size}")
        return float(self._data[index])

    def set_at(self, index: int, value: float) -> None:
        if not 0 <= index < self.size:
            raise IndexError(f"Vector index {index} out of range for size {self.size}")
        self._data[index] = value

    def to_numpy(self) -> np.ndarray:
        return self._data.copy()

    def tolist(self) -> List[float]:
        return self._data.tolist()

    def __array__(self, dtype=None, copy=None):
        array = self._data.copy()
        return array if dtype is None else array.astype(dtype)

    def _require_same_size(self, other: "Vector", operation: str) -> None:
        if self.size != other.size:
            raise DimensionMismatchError(
                f"Vector {operation} requires equal sizes ({self.size} != {other.size})"
            )

    def dot(self, other: "Vector") -> float:
        self._require_same_size(other, "dot product")
        return float(np.dot(self._data, other._data))

    def norm(self) -> float:
        """L2 (Euclidean) norm."""
        return float(np.sqrt(self.dot(self)))

    def sum(self) -> float:
        return float(np.sum(self._data))

    def min(self) -> float:
        if self.empty:
            raise ValueError("min() of an empty vector")
        return float(np.min(self._data))

    def max(self) -> float:
        if self.empty:
            raise ValueError("max() of an empty vector")
        return float(np.max(self._data))

    def __add__(self, other: "Vector") -> "Vector":
        if not isinstance(other, Vector):
            return NotImplemented
        self._require_same_size(other, "addition")
        return Vector._wrap(self._data + other._data)

    def __sub__(self, other: "Vector") -> "Vector":
        if not isinstance(other, Vector):
            return NotImplemented
        self._require_same_size(other, "subtraction")
        return Vector._wrap(self._data - other._data)

    def __mul__(self, scalar: float) -> "Vector":
        if not _is_scalar(scalar):
            return NotImplemented
        return Vector._wrap(self._data * float(scalar))

    __rmul__ = __mul__

    def __truediv__(self, scalar: float) -> "Vector":
        if not _is_scalar(scalar):
            return NotImplemented
        if abs(scalar) < EPSILON:
            raise ZeroDivisionError("Division by zero")
        return Vector._wrap(self._data / float(scalar))

    def __neg__(self) -> "Vector":
        return Vector._wrap(-self._data)

    def __iadd__(self, other: "Vector") -> "Vector":
        if not isinstance(other, Vector):
            return NotImplemented
        self._require_same_size(other, "addition")
        self._data += other._data
        return self

    def __isub__(self, other: "Vector") -> "Vector":
        if not isinstance(other, Vector):
            return NotImplemented
        self._require_same_size(other, "subtraction")
        self._data -= other._data
        return self

    def __imul__(self, scalar: float) -> "Vector":
        if not _is_scalar(scalar):
            return NotImplemented
        self._data *= float(scalar)
        return self

    def __itruediv__(self, scalar: float) -> "Vector":
        if not _is_scalar(scalar):
            return NotImplemented
        if abs(scalar) < EPSILON:
            raise ZeroDivisionError("Division by zero")
        self._data /= float(scalar)
        return self

    def __eq__(self, other) -> bool:
        if not isinstance(other, Vector):
            return NotImplemented
        return bool(np.array_equal(self._data, other._data))

    __hash__ = None

    def __repr__(self) -> str:
        return f"Vector({self._data.tolist()})"


def as_vector(values: Union[Vector, Sequence[float], np.ndarray]) -> Vector:
    """Return a Vector copy of ``values``."""
    return Vector(values)


class Matrix:
    """Dense row-major matrix of floats with a Cholesky engine for SPD inputs.

    Examples:
        >>> a = Matrix([[4.0, 2.0], [2.0, 3.0]])
        >>> a.inverse() @ a        # identity, up to rounding
        >>> Matrix(2, 3)           # zero-filled 2x3
        >>> Matrix(2, 3, 1.0)      # value-filled 2x3
    """

    __array_ufunc__ = None

    def __init__(self, rows: Union[int, Sequence[Sequence[float]], np.ndarray, "Matrix", None] = None,
                 cols: Optional[int] = None, value: float = 0.0):
        """Create a matrix.

        Args:
            rows: Row count (with ``cols``), nested sequence of rows, 2-D array or Matrix
            cols: Column count when ``rows`` is a count
            value: Fill value for the counted form
        """
        if rows is None:
            self._data = np.zeros((0, 0))
        elif isinstance(rows, (int, np.integer)) and not isinstance(rows, bool):
            if cols is None:
                raise ValueError("Matrix(rows, cols) requires a column count")
            if rows < 0 or cols < 0:
                raise ValueError(f"Matrix dimensions must be non-negative, got {rows}x{cols}")
            self._data = np.full((int(rows), int(cols)), float(value))
        elif isinstance(rows, Matrix):
            self._data = rows._data.copy()
        elif isinstance(rows, np.ndarray):
            if rows.ndim != 2:
                raise DimensionMismatchError(
                    f"Matrix data must be two-dimensional, got shape {rows.shape}"
                )
            self._data = np.array(rows, dtype=float)
        else:
            row_list = [list(row) for row in rows]
            if not row_list:
                self._data = np.zeros((0, 0))
                return
            width = len(row_list[0])
            if any(len(row) != width for row in row_list):
                raise DimensionMismatchError("All rows must have the same length")
            self._data = np.array(row_list, dtype=float).reshape(len(row_list), width)

    @classmethod
    def _wrap(cls, array: np.ndarray) -> "Matrix":
        matrix = cls.__new__(cls)
        matrix._data = array
        return matrix

    @classmethod
    def identity(cls, size: int) -> "Matrix":
        return cls._wrap(np.eye(size))

    @property
    def rows(self) -> int:
        return int(self._data.shape[0])

    @property
    def cols(self) -> int:
        return int(self._data.shape[1])

    @property
    def shape(self) -> Tuple[int, int]:
        return self.rows, self.cols

    @property
    def size(self) -> int:
        return self.rows * self.cols

    @property
    def empty(self) -> bool:
        return self.rows == 0 or self.cols == 0

    def is_square(self) -> bool:
        return self.rows == self.cols

    def resize(self, rows: int, cols: int, value: float = 0.0) -> None:
        """Resize in place; the row-major element sequence is truncated or padded."""
        if rows < 0 or cols < 0:
            raise ValueError(f"Matrix dimensions must be non-negative, got {rows}x{cols}")
        flat = np.full(rows * cols, float(value))
        current = self._data.ravel()
        keep = min(flat.size, current.size)
        flat[:keep] = current[:keep]
        self._data = flat.reshape(rows, cols)

    def __getitem__(self, index: Tuple[int, int]) -> float:
        row, col = index
        assert 0 <= row < self.rows and 0 <= col < self.cols, "Matrix index out of bounds"
        return float(self._data[row, col])

    def __setitem__(self, index: Tuple[int, int], value: float) -> None:
        row, col = index
        assert 0 <= row < self.rows and 0 <= col < self.cols, "Matrix index out of bounds"
        self._data[row, col] = value

    def _check_index(self, row: int, col: int) -> None:
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            raise IndexError(f"Matrix index ({row}, {col}) out of range for shape {self.shape}")

    def at(self, row: int, col: int) -> float:
        """Bounds-checked element access.

        Raises:
            IndexError: If either index is out of range
        """
        self._check_index(row, col)
        return float(self._data[row, col])

    def set_at(self, row: int, col: int, value: float) -> None:
        self._check_index(row, col)
        self._data[row, col] = value

    def get_row(self, row: int) -> Vector:
        if not 0 <= row < self.rows:
            raise IndexError(f"Row index {row} out of range for {self.rows} rows")
        return Vector._wrap(self._data[row, :].copy())

    def get_column(self, col: int) -> Vector:
        if not 0 <= col < self.cols:
            raise IndexError(f"Column index {col} out of range for {self.cols} columns")
        return Vector._wrap(self._data[:, col].copy())

    def set_row(self, row: int, values: Vector) -> None:
        if not 0 <= row < self.rows:
            raise IndexError(f"Row index {row} out of range for {self.rows} rows")
        if len(values) != self.cols:
            raise DimensionMismatchError("Vector size must match number of columns")
        self._data[row, :] = np.asarray(values, dtype=float)

    def set_column(self, col: int, values: Vector) -> None:
        if not 0 <= col < self.cols:
            raise IndexError(f"Column index {col} out of range for {self.cols} columns")
        if len(values) != self.rows:
            raise DimensionMismatchError("Vector size must match number of rows")
        self._data[:, col] = np.asarray(values, dtype=float)

    def diagonal(self) -> Vector:
        return Vector._wrap(np.diag(self._data).copy())

    def to_numpy(self) -> np.ndarray:
        return self._data.copy()

    def tolist(self) -> List[List[float]]:
        return self._data.tolist()

    def __array__(self, dtype=None, copy=None):
        array = self._data.copy()
        return array if dtype is None else array.astype(dtype)

    def transpose(self) -> "Matrix":
        return Matrix._wrap(self._data.T.copy())

    def __matmul__(self, other: Union["Matrix", Vector]) -> Union["Matrix", Vector]:
        if isinstance(other, Matrix):
            if self.cols != other.rows:
                raise DimensionMismatchError(
                    "Matrix multiplication requires cols of first matrix to match rows of second "
                    f"({self.shape} @ {other.shape})"
                )
            return Matrix._wrap(self._data @ other._data)
        if isinstance(other, Vector):
            if self.cols != other.size:
                raise DimensionMismatchError(
                    "Matrix-vector multiplication requires matrix columns to match vector size "
                    f"({self.cols} != {other.size})"
                )
            return Vector._wrap(self._data @ other._data)
        return NotImplemented

    def _require_same_shape(self, other: "Matrix", operation: str) -> None:
        if self.shape != other.shape:
            raise DimensionMismatchError(
                f"Matrix {operation} requires equal dimensions ({self.shape} != {other.shape})"
            )

    def __add__(self, other: "Matrix") -> "Matrix":
        if not isinstance(other, Matrix):
            return NotImplemented
        self._require_same_shape(other, "addition")
        return Matrix._wrap(self._data + other._data)

    def __sub__(self, other: "Matrix") -> "Matrix":
        if not isinstance(other, Matrix):
            return NotImplemented
        self._require_same_shape(other, "subtraction")
        return Matrix._wrap(self._data - other._data)

    def __mul__(self, scalar: float) -> "Matrix":
        if not _is_scalar(scalar):
            return NotImplemented
        return Matrix._wrap(self._data * float(scalar))

    __rmul__ = __mul__

    def __truediv__(self, scalar: float) -> "Matrix":
        if not _is_scalar(scalar):
            return NotImplemented
        if abs(scalar) < EPSILON:
            raise ZeroDivisionError("Division by zero")
        return Matrix._wrap(self._data / float(scalar))

    def __neg__(self) -> "Matrix":
        return Matrix._wrap(-self._data)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return bool(np.array_equal(self._data, other._data))

    __hash__ = None

    def __repr__(self) -> str:
        return f"Matrix({self._data.tolist()})"

    def is_symmetric(self) -> bool:
        """Symmetry within ``EPSILON * max(1, |a_ij|, |a_ji|)`` per pair."""
        if not self.is_square():
            return False
        upper = self._data
        lower = self._data.T
        scale = np.maximum(1.0, np.maximum(np.abs(upper), np.abs(lower)))
        return bool(np.all(np.abs(upper - lower) <= EPSILON * scale))

    # Cholesky engine

    def cholesky(self) -> "Matrix":
        """Compute the lower-triangular factor L with ``L @ L.T == self``.

        Returns:
            Lower triangular Cholesky factor

        Raises:
            NonSquareMatrixError: If the matrix is not square
            NotPositiveDefiniteError: If a diagonal radicand is not strictly positive
        """
        if not self.is_square():
            raise NonSquareMatrixError("Cholesky decomposition requires a square matrix")

        n = self.rows
        a = self._data
        lower = np.zeros((n, n))

        for i in range(n):
            for j in range(i + 1):
                if i == j:
                    radicand = a[j, j] - np.dot(lower[j, :j], lower[j, :j])
                    if not radicand > 0.0:
                        raise NotPositiveDefiniteError("Matrix is not positive-definite")
                    lower[j, j] = np.sqrt(radicand)
                else:
                    lower[i, j] = (a[i, j] - np.dot(lower[i, :j], lower[j, :j])) / lower[j, j]

        return Matrix._wrap(lower)

    def _check_triangular_system(self, b: Vector) -> None:
        if not self.is_square() or self.rows != len(b):
            raise DimensionMismatchError("Matrix must be square and match vector size")

    def solve_lower(self, b: Vector) -> Vector:
        """Forward substitution for ``L x = b`` with L lower triangular."""
        self._check_triangular_system(b)
        n = self.rows
        rhs = np.asarray(b, dtype=float)
        x = np.zeros(n)

        for i in range(n):
            pivot = self._data[i, i]
            if abs(pivot) < EPSILON:
                raise SingularMatrixError("Matrix is singular (zero diagonal element)")
            x[i] = (rhs[i] - np.dot(self._data[i, :i], x[:i])) / pivot

        return Vector._wrap(x)

    def solve_upper(self, b: Vector) -> Vector:
        """Backward substitution for ``U x = b`` with U upper triangular."""
        self._check_triangular_system(b)
        n = self.rows
        rhs = np.asarray(b, dtype=float)
        x = np.zeros(n)

        for i in range(n - 1, -1, -1):
            pivot = self._data[i, i]
            if abs(pivot) < EPSILON:
                raise SingularMatrixError("Matrix is singular (zero diagonal element)")
            x[i] = (rhs[i] - np.dot(self._data[i, i + 1:], x[i + 1:])) / pivot

        return Vector._wrap(x)

    def inverse(self) -> "Matrix":
        """Invert a symmetric positive-definite matrix through its Cholesky factor.

        Column i of the inverse solves ``L y = e_i`` then ``L.T x = y``. General
        (non-SPD) inversion is not supported.

        Raises:
            NonSquareMatrixError: If the matrix is not square
            NotPositiveDefiniteError: If the factorization fails
            SingularMatrixError: If a triangular solve meets a zero pivot
        """
        if not self.is_square():
            raise NonSquareMatrixError("Matrix inversion requires a square matrix")

        n = self.rows
        lower = self.cholesky()
        upper = lower.transpose()
        inverse = Matrix(n, n)

        for i in range(n):
            unit = Vector(n)
            unit[i] = 1.0
            y = lower.solve_lower(unit)
            inverse.set_column(i, upper.solve_upper(y))

        return inverse

    def is_positive_definite(self) -> bool:
        """Check positive-definiteness without raising."""
        if self.empty or not self.is_square():
            return False
        if not np.all(np.isfinite(self._data)):
            return False
        if not self.is_symmetric():
            return False
        if np.any(np.diag(self._data) <= 0.0):
            return False
        try:
            self.cholesky()
        except (NotPositiveDefiniteError, NonSquareMatrixError):
            return False
        return True
